"""Conversation orchestrator: the bounded generate / execute-tools loop."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from loguru import logger

from emul_agent.agent.tools.registry import ToolRegistry
from emul_agent.agent.transcript import (
    ROLE_MODEL,
    ROLE_TOOL_RESULT,
    ROLE_USER,
    FunctionCallPart,
    FunctionResponsePart,
    InlineDataPart,
    TextPart,
    Transcript,
)
from emul_agent.errors import (
    MalformedResponseError,
    MissingTextError,
    RoundLimitExceededError,
    UnexpectedFunctionCallError,
)

if TYPE_CHECKING:
    from emul_agent.providers.base import ModelReply
    from emul_agent.providers.retry import RetryingGenerationClient

DEFAULT_MAX_ROUNDS = 2


@dataclass(frozen=True)
class ToolInvocation:
    """One requested tool call, kept for auditing."""

    name: str
    args: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ChatbotResponse:
    final_text: str
    invoked_tools: list[ToolInvocation] = field(default_factory=list)


class ConversationOrchestrator:
    """
    Drive one conversation with the generation endpoint until it answers in text.

    Each round:
    1. Sends the whole transcript (tools advertised only while rounds remain)
    2. Appends the model's reply as a model turn
    3. Returns the first text part when no function calls were requested
    4. Otherwise runs every requested tool in order and appends their results

    The round cap is hard: on the last permitted round tools are withheld, and
    a model that still asks for a function call ends the run with an error.
    """

    def __init__(
        self,
        client: RetryingGenerationClient,
        tools: ToolRegistry,
        max_rounds: int = DEFAULT_MAX_ROUNDS,
        model: str | None = None,
    ):
        self.client = client
        self.tools = tools
        self.max_rounds = max(0, int(max_rounds))
        self.model = model

    async def run_conversation(
        self,
        user_prompt: str,
        system_prompt: str,
        max_rounds: int | None = None,
    ) -> ChatbotResponse:
        """Run the bounded loop for one seeded user turn."""
        rounds = self.max_rounds if max_rounds is None else max(0, int(max_rounds))
        transcript = Transcript.from_user_text(user_prompt)
        invoked: list[ToolInvocation] = []
        declarations = self.tools.get_definitions()

        for round_index in range(rounds + 1):
            use_tools = round_index < rounds and bool(declarations)
            logger.info(f"Starting AI round {round_index + 1}/{rounds + 1} (tools={use_tools})")

            transcript, reply = await self._generate_turn(
                transcript, system_prompt, declarations if use_tools else None
            )

            calls = [part for part in reply.parts if isinstance(part, FunctionCallPart)]
            if not calls:
                text = self._final_text(reply)
                logger.info(f"Received final AI text response ({len(text)} chars)")
                return ChatbotResponse(final_text=text, invoked_tools=list(invoked))

            if not use_tools:
                logger.error("Function call requested while tools were withheld")
                raise UnexpectedFunctionCallError(
                    "Model requested a function call after tools were disabled "
                    f"(round {round_index + 1} of {rounds + 1})"
                )

            logger.info(f"{len(calls)} function call(s) requested, executing")
            responses, images = await self._execute_calls(calls, invoked)
            transcript = self._inject_results(transcript, responses, images)

        logger.error(f"No final text response after {rounds + 1} rounds")
        raise RoundLimitExceededError(
            f"AI failed to provide a text response after {rounds + 1} rounds"
        )

    async def _generate_turn(
        self,
        transcript: Transcript,
        system_prompt: str,
        tools: list[dict[str, Any]] | None,
    ) -> tuple[Transcript, ModelReply]:
        reply = await self.client.call(transcript, system_prompt, tools=tools, model=self.model)
        return transcript.append(ROLE_MODEL, reply.parts), reply

    async def _execute_calls(
        self,
        calls: list[FunctionCallPart],
        invoked: list[ToolInvocation],
    ) -> tuple[list[FunctionResponsePart], list[InlineDataPart]]:
        responses: list[FunctionResponsePart] = []
        images: list[InlineDataPart] = []
        for call in calls:
            if not call.name:
                raise MalformedResponseError("Function call missing name")

            # Recorded before execution so failed rounds stay auditable.
            invoked.append(ToolInvocation(name=call.name, args=dict(call.args)))
            logger.info(f"Executing function call: {call.name} {json.dumps(call.args)}")

            result = await self.tools.execute(call.name, dict(call.args))
            if result.inline_data is not None:
                images.append(result.inline_data)
            responses.append(
                FunctionResponsePart(
                    name=call.name, response=result.to_response(), call_id=call.call_id
                )
            )
        return responses, images

    @staticmethod
    def _inject_results(
        transcript: Transcript,
        responses: list[FunctionResponsePart],
        images: list[InlineDataPart],
    ) -> Transcript:
        # The model sees fetched images ahead of the textual tool results.
        if images:
            transcript = transcript.append(ROLE_USER, images)
            logger.info(f"Injected {len(images)} image(s) into the conversation")
        return transcript.append(ROLE_TOOL_RESULT, responses)

    @staticmethod
    def _final_text(reply: ModelReply) -> str:
        for part in reply.parts:
            if isinstance(part, TextPart):
                return part.text
        raise MissingTextError("Gemini response missing text part")
