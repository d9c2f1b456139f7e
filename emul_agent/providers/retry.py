"""Timeout-bounded generation calls with exponential backoff."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

from loguru import logger

from emul_agent.agent.transcript import TextPart, Transcript
from emul_agent.errors import (
    MissingTextError,
    ProtocolViolationError,
    RemoteAPIError,
    RetryExhaustedError,
    TransportError,
)
from emul_agent.providers.base import GenerationProvider, ModelReply

Sleep = Callable[[float], Awaitable[Any]]

RETRYABLE_STATUSES = frozenset({408, 429, 500, 502, 503, 504})


def is_retryable(error: BaseException) -> bool:
    """Classify a failed attempt: transport trouble is retried, protocol trouble is not."""
    if isinstance(error, ProtocolViolationError):
        return False
    if isinstance(error, (asyncio.TimeoutError, TimeoutError, TransportError)):
        return True
    if isinstance(error, RemoteAPIError):
        # An error object without a status is a remote-side hiccup.
        return error.status is None or error.status in RETRYABLE_STATUSES or error.status >= 500
    return False


class RetryingGenerationClient:
    """
    Wrap a provider with a per-attempt timeout and exponential backoff.

    The delay starts at ``initial_delay`` and doubles after every failed
    attempt, whatever the failure. Only transport/shape success is checked
    here; reply content is the caller's business.
    """

    def __init__(
        self,
        provider: GenerationProvider,
        *,
        max_attempts: int = 3,
        initial_delay: float = 1.0,
        attempt_timeout: float = 60.0,
        sleep: Sleep = asyncio.sleep,
    ):
        self.provider = provider
        self.max_attempts = max(1, int(max_attempts))
        self.initial_delay = max(0.0, float(initial_delay))
        self.attempt_timeout = attempt_timeout
        self._sleep = sleep

    async def call(
        self,
        transcript: Transcript,
        system_prompt: str,
        tools: list[dict[str, Any]] | None = None,
        model: str | None = None,
    ) -> ModelReply:
        contents = transcript.to_wire()
        delay = self.initial_delay
        attempt = 0

        while True:
            attempt += 1
            try:
                payload = await asyncio.wait_for(
                    self.provider.generate(contents, system_prompt, tools=tools, model=model),
                    timeout=self.attempt_timeout,
                )
                return ModelReply.from_response(payload)
            except Exception as e:
                if not is_retryable(e):
                    raise
                if isinstance(e, asyncio.TimeoutError):
                    logger.warning(
                        f"Generation call timed out after {self.attempt_timeout}s "
                        f"(attempt {attempt}/{self.max_attempts})"
                    )
                else:
                    logger.warning(
                        f"Generation call failed (attempt {attempt}/{self.max_attempts}): {e}"
                    )
                if attempt >= self.max_attempts:
                    raise RetryExhaustedError(self.max_attempts, e) from e

            await self._sleep(delay)
            delay *= 2

    async def complete_text(
        self,
        prompt: str,
        system_prompt: str,
        model: str | None = None,
    ) -> str:
        """Single-turn, tool-less call returning the first text part."""
        reply = await self.call(Transcript.from_user_text(prompt), system_prompt, model=model)
        for part in reply.parts:
            if isinstance(part, TextPart):
                return part.text
        raise MissingTextError("Fast generation response missing text part")
