"""
Error taxonomy for chat streaming.

Failures before a stream exists (building or sending the request, non-2xx
responses) are raised from ``BaseProvider.stream``. Failures after that
arrive as the ``error`` of the final chunk on the stream.

Usage:
    from chatstream.utils.exceptions import ProviderHTTPError, raise_for_status

    raise_for_status("claude", 401, b'{"error": "invalid x-api-key"}')
"""

from typing import NoReturn, Optional


class ChatStreamError(Exception):
    """Base class for every error raised by chatstream."""


# Pre-stream (raised synchronously)


class ProviderError(ChatStreamError):
    """Request could not be turned into a stream."""

    def __init__(self, message: str, provider: str = ""):
        super().__init__(message)
        self.provider = provider


class RequestBuildError(ProviderError):
    """Request payload could not be serialized or assembled."""


class ProviderConnectionError(ProviderError):
    """Transport failed before a response arrived."""


class ProviderHTTPError(ProviderError):
    """Endpoint answered with a non-success status."""

    def __init__(self, status_code: int, body: str, provider: str = ""):
        super().__init__(f"API error (status {status_code}): {body}", provider)
        self.status_code = status_code
        self.body = body


# In-stream (delivered as Chunk.error)


class StreamError(ChatStreamError):
    """Failure after the stream started."""


class StreamReadError(StreamError):
    """Connection dropped or the body could not be read mid-stream."""


class StreamDecodeError(StreamError):
    """A payload event was not valid JSON."""


class RemoteStreamError(StreamError):
    """The model endpoint reported an error event in-band."""

    def __init__(self, message: str, error_type: Optional[str] = None):
        super().__init__(f"API error: {message}")
        self.message = message
        self.error_type = error_type


# Control flow


class StreamCancelled(ChatStreamError):
    """Cancellation token fired while waiting."""


class ChannelClosedError(ChatStreamError):
    """Send on, or close of, an already closed channel."""


def raise_for_status(provider: str, status_code: int, body: bytes) -> NoReturn:
    """Raise ProviderHTTPError with the decoded response body."""
    raise ProviderHTTPError(
        status_code=status_code,
        body=body.decode("utf-8", errors="replace"),
        provider=provider,
    )
