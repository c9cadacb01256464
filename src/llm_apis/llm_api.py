from __future__ import annotations

from abc import ABC, abstractmethod

__all__ = ["LLMGateway", "LLMGatewayError", "LLMTimeoutError"]


class LLMGatewayError(RuntimeError):
    """The completion service could not produce an answer."""


class LLMTimeoutError(LLMGatewayError):
    """The completion service did not answer within the timeout budget."""


class LLMGateway(ABC):
    """
    Base contract for completion providers used by the estimation pipeline.

    Subclasses encapsulate authentication, transport and provider-specific
    request quirks; the pipeline only ever sees ``send``.
    """

    def __init__(self, provider: str) -> None:
        if not provider:
            raise ValueError("provider must be a non-empty string")
        self.provider = provider

    @abstractmethod
    def send(self, prompt: str, timeout_s: float, *, max_tokens: int | None = None) -> str:
        """
        Send a single instruction and return the raw completion text.

        Implementations must abort the call once ``timeout_s`` elapses and
        raise LLMTimeoutError, and raise LLMGatewayError for any other
        upstream failure (non-2xx responses, connection errors).
        """
