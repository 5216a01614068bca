from __future__ import annotations
from typing import Optional


class StreamError(Exception):
    """Base class for failures of a single generate / test_connection call."""

    retryable = False


class ConfigError(StreamError, ValueError):
    """
    Non-retryable: empty credential or model, unknown provider, bad proxy URL.
    Detected before any network call; the fix is to change config, not retry.
    """


class TransportError(StreamError):
    """Anything that went wrong between us and the backend's HTTP layer."""


class TransportTimeout(TransportError):
    """The overall request deadline (connect + full drain) was exceeded."""

    retryable = True

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout
        msg = f"Request timed out after {timeout:g}s" if timeout is not None else "Request timed out"
        super().__init__(msg)


class TransportNetworkError(TransportError):
    """Connection reset, DNS failure, proxy refused, stream broken mid-body."""

    retryable = True

    def __init__(self, cause: BaseException):
        self.cause = cause
        super().__init__(f"Request failed: {cause}")


class BackendRejected(TransportError):
    """
    Non-2xx response. Status and body are kept verbatim for diagnostics.
    429 and 5xx are worth retrying at a higher level; other 4xx are not.
    """

    def __init__(self, status: int, body: str):
        self.status = int(status)
        self.body = body
        super().__init__(f"API error {self.status}: {body}")

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return self.status == 429 or 500 <= self.status <= 599


class ProtocolError(StreamError):
    """Unrecoverable framing violation. Single malformed fragments never raise this."""


class EmptyResponse(StreamError):
    """The stream completed normally but produced no text at all."""

    def __init__(self, message: str = "No content generated from LLM"):
        super().__init__(message)
