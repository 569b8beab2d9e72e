from __future__ import annotations


class LlmProviderError(RuntimeError):
    """Base class for every error the chat provider reports to its caller."""


class UnsupportedModelError(LlmProviderError):
    def __init__(self, model: str) -> None:
        super().__init__(f"Model is not supported by this provider: {model!r}")
        self.model = model


class RequestTooLargeError(LlmProviderError):
    pass


class MalformedResponseError(LlmProviderError):
    pass


class IncompleteStreamError(LlmProviderError):
    pass


class TransportError(LlmProviderError):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
