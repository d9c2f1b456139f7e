"""Error taxonomy shared by the orchestrator, generation client and tools."""

from __future__ import annotations


class EmulError(RuntimeError):
    """Base class for all emul-agent errors."""


class ConfigError(EmulError):
    """Missing or unusable configuration (API key, prompt file)."""


class TransportError(EmulError):
    """Network, timeout or body-decoding failure talking to a remote endpoint."""


class RemoteAPIError(EmulError):
    """The remote endpoint answered with an error status or error object."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class ProtocolViolationError(EmulError):
    """The remote conversation broke the protocol. Never retried."""


class MalformedResponseError(ProtocolViolationError):
    """Response lacks the expected shape (no candidates, nameless function call)."""


class UnexpectedFunctionCallError(ProtocolViolationError):
    """Model requested a function call on a round where tools were withheld."""


class MissingTextError(ProtocolViolationError):
    """Model reply carried neither a function call nor a text part."""


class RoundLimitExceededError(ProtocolViolationError):
    """Conversation loop ran out of rounds without a final text answer."""


class RetryExhaustedError(EmulError):
    """Every attempt of a retried remote call failed."""

    def __init__(self, attempts: int, last_error: BaseException):
        super().__init__(f"Generation call failed after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


class ToolError(EmulError):
    """A tool failed; reported back to the model instead of aborting the turn."""
