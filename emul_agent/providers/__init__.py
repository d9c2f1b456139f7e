"""Generation provider abstraction and retry wrapper."""

from emul_agent.providers.base import GenerationProvider, ModelReply
from emul_agent.providers.gemini import GeminiProvider
from emul_agent.providers.retry import RetryingGenerationClient, is_retryable

__all__ = [
    "GeminiProvider",
    "GenerationProvider",
    "ModelReply",
    "RetryingGenerationClient",
    "is_retryable",
]
