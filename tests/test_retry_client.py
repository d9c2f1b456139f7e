import asyncio
from typing import Any

import pytest

from emul_agent.agent.transcript import FunctionCallPart, TextPart, Transcript
from emul_agent.errors import (
    MalformedResponseError,
    MissingTextError,
    RemoteAPIError,
    RetryExhaustedError,
    TransportError,
    UnexpectedFunctionCallError,
)
from emul_agent.providers.base import GenerationProvider, ModelReply
from emul_agent.providers.retry import RetryingGenerationClient, is_retryable


def _text_payload(text: str) -> dict[str, Any]:
    return {"candidates": [{"content": {"role": "model", "parts": [{"text": text}]}}]}


class ScriptedProvider(GenerationProvider):
    """Plays back a list of payloads or exceptions, one per call."""

    def __init__(self, outcomes: list[Any]):
        self.outcomes = list(outcomes)
        self.calls: list[dict[str, Any]] = []

    async def generate(
        self,
        contents: list[dict[str, Any]],
        system_prompt: str,
        tools: list[dict[str, Any]] | None = None,
        model: str | None = None,
    ) -> dict[str, Any]:
        self.calls.append(
            {"contents": contents, "system_prompt": system_prompt, "tools": tools, "model": model}
        )
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        if callable(outcome):
            return await outcome()
        return outcome

    def get_default_model(self) -> str:
        return "scripted"


class _Sleeps:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _client(provider: GenerationProvider, sleeps: _Sleeps, **kwargs: Any) -> RetryingGenerationClient:
    return RetryingGenerationClient(provider, sleep=sleeps, **kwargs)


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (TransportError("reset"), True),
        (asyncio.TimeoutError(), True),
        (RemoteAPIError("busy", status=503), True),
        (RemoteAPIError("slow down", status=429), True),
        (RemoteAPIError("hiccup", status=None), True),
        (RemoteAPIError("bad key", status=403), False),
        (RemoteAPIError("bad request", status=400), False),
        (MalformedResponseError("no candidates"), False),
        (UnexpectedFunctionCallError("late call"), False),
        (ValueError("other"), False),
    ],
)
def test_is_retryable(error: BaseException, expected: bool):
    assert is_retryable(error) is expected


def test_success_on_first_attempt_does_not_sleep():
    provider = ScriptedProvider([_text_payload("hello")])
    sleeps = _Sleeps()

    reply = asyncio.run(_client(provider, sleeps).call(Transcript.from_user_text("hi"), "sys"))

    assert reply.parts == (TextPart(text="hello"),)
    assert sleeps.delays == []
    assert provider.calls[0]["contents"] == [{"role": "user", "parts": [{"text": "hi"}]}]


def test_backoff_doubles_between_attempts():
    provider = ScriptedProvider(
        [TransportError("reset"), RemoteAPIError("busy", status=503), _text_payload("ok")]
    )
    sleeps = _Sleeps()

    reply = asyncio.run(
        _client(provider, sleeps, max_attempts=3, initial_delay=1.0).call(
            Transcript.from_user_text("hi"), "sys"
        )
    )

    assert reply.parts == (TextPart(text="ok"),)
    assert sleeps.delays == [1.0, 2.0]
    assert len(provider.calls) == 3


def test_exhaustion_reports_attempts_and_last_error():
    provider = ScriptedProvider([TransportError("one"), TransportError("two"), TransportError("three")])
    sleeps = _Sleeps()

    with pytest.raises(RetryExhaustedError, match="after 3 attempts: three") as exc:
        asyncio.run(
            _client(provider, sleeps, max_attempts=3, initial_delay=0.5).call(
                Transcript.from_user_text("hi"), "sys"
            )
        )

    assert exc.value.attempts == 3
    assert isinstance(exc.value.last_error, TransportError)
    assert sleeps.delays == [0.5, 1.0]


def test_non_positive_attempts_still_make_one_call():
    provider = ScriptedProvider([TransportError("down")])
    sleeps = _Sleeps()

    with pytest.raises(RetryExhaustedError, match="after 1 attempts: down") as exc:
        asyncio.run(
            _client(provider, sleeps, max_attempts=0).call(Transcript.from_user_text("hi"), "sys")
        )

    assert exc.value.attempts == 1
    assert sleeps.delays == []


def test_fatal_errors_are_not_retried():
    provider = ScriptedProvider([MalformedResponseError("Missing 'candidates'"), _text_payload("x")])
    sleeps = _Sleeps()

    with pytest.raises(MalformedResponseError):
        asyncio.run(_client(provider, sleeps).call(Transcript.from_user_text("hi"), "sys"))

    assert len(provider.calls) == 1
    assert sleeps.delays == []


def test_attempt_timeout_is_retried():
    async def slow() -> dict[str, Any]:
        await asyncio.sleep(5)
        return _text_payload("late")

    provider = ScriptedProvider([slow, _text_payload("fast")])
    sleeps = _Sleeps()

    reply = asyncio.run(
        _client(provider, sleeps, attempt_timeout=0.01).call(Transcript.from_user_text("hi"), "sys")
    )

    assert reply.parts == (TextPart(text="fast"),)
    assert sleeps.delays == [1.0]


def test_tools_and_model_are_forwarded():
    provider = ScriptedProvider([_text_payload("ok")])
    tools = [{"name": "roll_dice"}]

    asyncio.run(
        _client(provider, _Sleeps()).call(
            Transcript.from_user_text("hi"), "sys", tools=tools, model="gemini-fast"
        )
    )

    assert provider.calls[0]["tools"] == tools
    assert provider.calls[0]["model"] == "gemini-fast"


def test_model_reply_keeps_function_calls_and_unknown_parts():
    reply = ModelReply.from_response(
        {
            "candidates": [
                {
                    "content": {
                        "parts": [
                            {"functionCall": {"name": "roll_dice", "args": {"dice_notation": "1d6"}}},
                            {"thought": True, "thoughtSignature": "abc"},
                        ]
                    }
                }
            ]
        }
    )

    assert reply.parts[0] == FunctionCallPart(name="roll_dice", args={"dice_notation": "1d6"})
    assert reply.parts[1].to_wire() == {"thought": True, "thoughtSignature": "abc"}


def test_complete_text_returns_first_text_part():
    provider = ScriptedProvider([_text_payload("respond")])
    text = asyncio.run(_client(provider, _Sleeps()).complete_text("Emul?", "classify", model="fast"))

    assert text == "respond"
    assert provider.calls[0]["tools"] is None
    assert provider.calls[0]["model"] == "fast"


def test_complete_text_without_text_part():
    provider = ScriptedProvider([{"candidates": [{"content": {"parts": []}}]}])

    with pytest.raises(MissingTextError):
        asyncio.run(_client(provider, _Sleeps()).complete_text("Emul?", "classify"))
