"""Deciding whether a channel line should trigger a reply."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from loguru import logger

from emul_agent.proactive.interjection import InterjectionScheduler

if TYPE_CHECKING:
    from emul_agent.providers.retry import RetryingGenerationClient

CLASSIFIER_PROMPT = (
    "You are {name}. Check if the provided message is aimed at {name}, or if it is "
    'merely a mention. Respond with a single word, "respond" or "mention".'
)


def is_directly_addressed(nickname: str, text: str) -> bool:
    """``nick: ...``, ``nick, ...`` or a first word equal to the nick."""
    nick = nickname.lower()
    lowered = text.lower()
    if lowered.startswith(f"{nick}:") or lowered.startswith(f"{nick},"):
        return True
    words = lowered.split()
    return bool(words) and words[0] == nick


def mentions(nickname: str, text: str) -> bool:
    return f" {nickname.lower()}" in text.lower()


async def classify_addressing(
    client: RetryingGenerationClient,
    nickname: str,
    text: str,
    model: str | None = None,
) -> bool:
    """
    Ask the fast model whether a passing mention is really aimed at the bot.

    An answer that is neither "respond" nor "mention" counts as a mention.
    """
    answer = await client.complete_text(text, CLASSIFIER_PROMPT.format(name=nickname), model=model)
    lowered = answer.lower()
    if "respond" in lowered:
        return True
    if "mention" in lowered:
        return False
    logger.warning(f"Unexpected addressing classifier answer: {answer!r}")
    return False


@dataclass(frozen=True)
class TriggerDecision:
    triggered: bool
    was_addressed: bool


class TriggerPolicy:
    """Combine direct addressing, mentions and random interjection."""

    def __init__(
        self,
        nickname: str,
        client: RetryingGenerationClient,
        interjecter: InterjectionScheduler,
        mention_interjecter: InterjectionScheduler,
        classifier_model: str | None = None,
    ):
        self.nickname = nickname
        self.client = client
        self.interjecter = interjecter
        self.mention_interjecter = mention_interjecter
        self.classifier_model = classifier_model

    async def decide(self, text: str) -> TriggerDecision:
        addressed = is_directly_addressed(self.nickname, text)
        if not addressed and mentions(self.nickname, text):
            addressed = self.mention_interjecter.should_act() or await classify_addressing(
                self.client, self.nickname, text, model=self.classifier_model
            )
        triggered = addressed or self.interjecter.should_act()
        logger.debug(f"Trigger decision: triggered={triggered} addressed={addressed}")
        return TriggerDecision(triggered=triggered, was_addressed=addressed)
