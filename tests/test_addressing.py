import asyncio
import random
from typing import Any

import pytest

from emul_agent.agent.addressing import (
    TriggerPolicy,
    classify_addressing,
    is_directly_addressed,
    mentions,
)
from emul_agent.errors import RetryExhaustedError, TransportError
from emul_agent.proactive.interjection import InterjectionScheduler


class FakeClassifierClient:
    def __init__(self, answer: str | Exception = "mention"):
        self.answer = answer
        self.prompts: list[dict[str, Any]] = []

    async def complete_text(self, prompt: str, system_prompt: str, model: str | None = None) -> str:
        self.prompts.append({"prompt": prompt, "system_prompt": system_prompt, "model": model})
        if isinstance(self.answer, Exception):
            raise self.answer
        return self.answer


class StubScheduler(InterjectionScheduler):
    def __init__(self, decisions: list[bool]):
        super().__init__(0.5, rng=random.Random(0))
        self.decisions = list(decisions)
        self.ticks = 0

    def should_act(self) -> bool:
        self.ticks += 1
        return self.decisions.pop(0) if self.decisions else False


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("Emul: roll 2d6", True),
        ("emul, what's up", True),
        ("EMUL are you there", True),
        ("emul", True),
        ("hey emul, sup", False),
        ("emulation is fun", False),
        ("", False),
    ],
)
def test_is_directly_addressed(text: str, expected: bool):
    assert is_directly_addressed("Emul", text) is expected


def test_mentions_requires_leading_space():
    assert mentions("Emul", "I wonder what Emul thinks")
    assert not mentions("Emul", "Emul thinks")
    assert not mentions("Emul", "nobody here")


@pytest.mark.parametrize(
    ("answer", "expected"),
    [("respond", True), ("Respond.", True), ("mention", False), ("MENTION", False), ("maybe?", False)],
)
def test_classifier_answers(answer: str, expected: bool):
    client = FakeClassifierClient(answer)
    assert asyncio.run(classify_addressing(client, "Emul", "what does Emul think")) is expected
    assert 'Respond with a single word, "respond" or "mention".' in client.prompts[0]["system_prompt"]
    assert client.prompts[0]["prompt"] == "what does Emul think"


def test_classifier_errors_propagate():
    client = FakeClassifierClient(RetryExhaustedError(3, TransportError("down")))
    with pytest.raises(RetryExhaustedError):
        asyncio.run(classify_addressing(client, "Emul", "ask Emul"))


def _policy(client, interjecter, mention_interjecter) -> TriggerPolicy:
    return TriggerPolicy("Emul", client, interjecter, mention_interjecter, classifier_model="fast")


def test_direct_address_skips_schedulers_and_classifier():
    client = FakeClassifierClient("respond")
    interjecter, mention = StubScheduler([True]), StubScheduler([True])

    decision = asyncio.run(_policy(client, interjecter, mention).decide("Emul: hello"))

    assert decision.triggered and decision.was_addressed
    assert interjecter.ticks == 0
    assert mention.ticks == 0
    assert client.prompts == []


def test_mention_scheduler_short_circuits_classifier():
    client = FakeClassifierClient("mention")
    interjecter, mention = StubScheduler([]), StubScheduler([True])

    decision = asyncio.run(_policy(client, interjecter, mention).decide("what would Emul say"))

    assert decision.was_addressed
    assert client.prompts == []
    assert interjecter.ticks == 0


def test_mention_falls_back_to_classifier():
    client = FakeClassifierClient("respond")
    interjecter, mention = StubScheduler([]), StubScheduler([False])

    decision = asyncio.run(_policy(client, interjecter, mention).decide("what would Emul say"))

    assert decision.triggered and decision.was_addressed
    assert client.prompts[0]["model"] == "fast"


def test_unaddressed_line_ticks_generic_scheduler():
    client = FakeClassifierClient("mention")
    interjecter, mention = StubScheduler([True]), StubScheduler([False])

    decision = asyncio.run(_policy(client, interjecter, mention).decide("what would Emul say"))

    assert decision.triggered
    assert not decision.was_addressed
    assert interjecter.ticks == 1


def test_quiet_line_without_mention():
    client = FakeClassifierClient()
    interjecter, mention = StubScheduler([False]), StubScheduler([])

    decision = asyncio.run(_policy(client, interjecter, mention).decide("just chatting"))

    assert not decision.triggered
    assert mention.ticks == 0
    assert client.prompts == []
