"""Embeddable chatbot API: trigger decisions, prompt building and replies."""

from __future__ import annotations

import asyncio
import random
from pathlib import Path

from loguru import logger

from emul_agent.agent.addressing import TriggerDecision, TriggerPolicy
from emul_agent.agent.loop import ChatbotResponse, ConversationOrchestrator
from emul_agent.agent.tools import (
    DownloadTorrentTool,
    FetchImageTool,
    ImageCache,
    ReadWebpageTool,
    RollDiceTool,
    ToolRegistry,
)
from emul_agent.agent.tools.torrent import MagnetHandler
from emul_agent.config.loader import load_config
from emul_agent.config.schema import Config
from emul_agent.errors import ConfigError
from emul_agent.proactive.interjection import InterjectionScheduler
from emul_agent.providers.base import GenerationProvider
from emul_agent.providers.gemini import GeminiProvider
from emul_agent.providers.retry import RetryingGenerationClient
from emul_agent.utils.helpers import HistoryEntry, format_history

APOLOGY_TEMPLATE = "{speaker}: Eeep! I had trouble thinking about that..."
INTERJECTION_TRIGGER = (
    "Current trigger: Random chance (interject your opinion in the current conversation)"
)


def build_default_registry(
    config: Config,
    *,
    image_cache: ImageCache | None = None,
    magnet_handler: MagnetHandler | None = None,
    rng: random.Random | None = None,
) -> ToolRegistry:
    """Register the built-in tools with their configured limits."""
    image_cfg = config.tools.image
    registry = ToolRegistry()
    registry.register(RollDiceTool(rng=rng))
    registry.register(
        FetchImageTool(
            image_cache if image_cache is not None else ImageCache(image_cfg.cache_size),
            max_bytes=image_cfg.max_bytes,
            max_pixels=image_cfg.max_pixels,
            timeout=image_cfg.timeout_seconds,
            allowed_mime_types=tuple(image_cfg.allowed_mime_types),
        )
    )
    registry.register(
        ReadWebpageTool(
            timeout=config.tools.web.timeout_seconds,
            max_chars=config.tools.web.max_chars,
        )
    )
    registry.register(
        DownloadTorrentTool(
            timeout=config.tools.torrent.timeout_seconds,
            magnet_handler=magnet_handler,
        )
    )
    return registry


def build_prompt(
    channel: str,
    speaker: str,
    text: str,
    history: list[HistoryEntry],
    was_addressed: bool,
) -> str:
    """
    Seed prompt for one orchestration.

    When the bot was addressed the triggering line is quoted separately.
    Otherwise it joins the history and the trigger reads as an interjection.
    """
    if was_addressed:
        return f"History:\n{format_history(history)}\n\n Current Trigger from {speaker}:\n{text}"
    lines = [*history, HistoryEntry(channel=channel, speaker=speaker, text=text)]
    return f"History:\n{format_history(lines)}\n\n {INTERJECTION_TRIGGER}"


class Chatbot:
    """
    Channel-facing chatbot.

    Owns the retrying generation client, the tool registry (with its shared
    image cache) and both interjection schedulers.
    """

    def __init__(
        self,
        config: Config | None = None,
        *,
        provider: GenerationProvider | None = None,
        registry: ToolRegistry | None = None,
        policy: TriggerPolicy | None = None,
        magnet_handler: MagnetHandler | None = None,
        rng: random.Random | None = None,
    ):
        self.config = config or load_config()
        gemini = self.config.gemini

        self.client = RetryingGenerationClient(
            provider or self._build_provider(),
            max_attempts=gemini.max_attempts,
            initial_delay=gemini.initial_backoff_seconds,
            attempt_timeout=gemini.timeout_seconds,
        )
        if registry is None:
            self.image_cache: ImageCache | None = ImageCache(self.config.tools.image.cache_size)
            registry = build_default_registry(
                self.config,
                image_cache=self.image_cache,
                magnet_handler=magnet_handler,
                rng=rng,
            )
        else:
            image_tool = registry.get("fetch_and_prepare_image")
            self.image_cache = image_tool.cache if isinstance(image_tool, FetchImageTool) else None
        self.tools = registry
        self.orchestrator = ConversationOrchestrator(
            self.client,
            self.tools,
            max_rounds=self.config.agent.max_tool_rounds,
            model=gemini.model,
        )
        self.policy = policy or TriggerPolicy(
            self.config.agent.nickname,
            self.client,
            InterjectionScheduler(self.config.interjection.chance, rng=rng),
            InterjectionScheduler(self.config.interjection.mention_chance, rng=rng),
            classifier_model=gemini.fast_model,
        )
        self.interjecter = self.policy.interjecter

    def _build_provider(self) -> GenerationProvider:
        api_key = self.config.get_api_key()
        if not api_key:
            raise ConfigError(
                "No Gemini API key configured. Set gemini.apiKey, EMUL_GEMINI__API_KEY "
                "or GEMINI_API_KEY, or pass a custom provider."
            )
        gemini = self.config.gemini
        return GeminiProvider(
            api_key=api_key,
            default_model=gemini.model,
            api_base=gemini.api_base,
            timeout=gemini.timeout_seconds,
        )

    async def read_system_prompt(self) -> str:
        path: Path = self.config.prompt_file
        try:
            return await asyncio.to_thread(path.read_text, encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Failed to read system prompt file {path}: {e}") from e

    async def respond(
        self,
        channel: str,
        speaker: str,
        text: str,
        history: list[HistoryEntry],
        was_addressed: bool,
    ) -> ChatbotResponse:
        """Run one orchestration for a triggering line. Errors propagate."""
        logger.info(f"AI response requested in {channel} by {speaker} (addressed={was_addressed})")
        system_prompt = await self.read_system_prompt()
        prompt = build_prompt(channel, speaker, text, history, was_addressed)
        logger.debug(f"Constructed initial AI context ({len(prompt)} chars)")
        return await self.orchestrator.run_conversation(prompt, system_prompt)

    async def decide(self, text: str) -> TriggerDecision:
        return await self.policy.decide(text)

    async def handle_message(
        self,
        channel: str,
        speaker: str,
        text: str,
        history: list[HistoryEntry],
    ) -> ChatbotResponse | None:
        """
        Full pipeline for one channel line.

        Returns None when the line does not trigger a reply. Any failure is
        logged and replaced by a short apology addressed to the speaker.
        """
        try:
            decision = await self.decide(text)
            if not decision.triggered:
                return None
            return await self.respond(channel, speaker, text, history, decision.was_addressed)
        except Exception as e:
            logger.error(f"Failed to handle message in {channel} from {speaker}: {e}")
            return ChatbotResponse(final_text=APOLOGY_TEMPLATE.format(speaker=speaker))

    def force_interjection(self) -> None:
        """Make the next unaddressed line trigger a reply."""
        self.interjecter.force_next()
