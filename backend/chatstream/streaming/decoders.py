import logging
from abc import ABC, abstractmethod

import orjson

from chatstream.models.response import Chunk, DecodeResult
from chatstream.utils.exceptions import RemoteStreamError, StreamDecodeError

logger = logging.getLogger(__name__)

# Constants
SSE_DONE_SIGNAL = "[DONE]"
UNKNOWN_ERROR = "unknown error"


def remote_error(error_data) -> RemoteStreamError:
    """Build the error for an in-band `{"type": ..., "message": ...}` object."""
    message = UNKNOWN_ERROR
    error_type = None
    if isinstance(error_data, dict):
        if isinstance(error_data.get("message"), str):
            message = error_data["message"]
        if isinstance(error_data.get("type"), str):
            error_type = error_data["type"]
    return RemoteStreamError(message, error_type)


class Decoder(ABC):
    """Interprets one payload event of a provider's SSE protocol."""

    # Whether empty chunks from this protocol should be kept off the stream
    drop_empty_chunks: bool = False

    def __init__(self, provider: str = ""):
        self.provider = provider

    @abstractmethod
    def decode(self, payload: str) -> DecodeResult:
        """Decode one payload event into at most one chunk and a stop flag."""
        pass

    def _content(self, text: str) -> DecodeResult:
        return DecodeResult(Chunk(content=text, provider=self.provider))

    def _done(self) -> DecodeResult:
        return DecodeResult(Chunk(done=True, provider=self.provider), stop=True)

    def _error(self, error: Exception) -> DecodeResult:
        return DecodeResult(Chunk(error=error, provider=self.provider), stop=True)

    def _parse_error(self, error: Exception) -> DecodeResult:
        """Log JSON parse error at debug level and end the stream."""
        logger.debug(f"JSON parse error in {self.provider or type(self).__name__}: {error}")
        return self._error(StreamDecodeError(f"failed to parse SSE data: {error}"))


class EventTypedDecoder(Decoder):
    """Anthropic Messages API events, discriminated by their ``type`` field.

    Events that are well-formed JSON but lack expected fields are ignored,
    since non-text deltas legitimately omit ``text``.
    """

    drop_empty_chunks = True

    def decode(self, payload: str) -> DecodeResult:
        try:
            event = orjson.loads(payload)
        except orjson.JSONDecodeError as e:
            return self._parse_error(e)

        if not isinstance(event, dict):
            return self._parse_error(ValueError("event is not a JSON object"))

        event_type = event.get("type")
        if not isinstance(event_type, str):
            return DecodeResult(None)

        if event_type == "content_block_delta":
            delta = event.get("delta")
            text = delta.get("text") if isinstance(delta, dict) else None
            if not isinstance(text, str):
                return DecodeResult(None)
            return self._content(text)

        if event_type == "message_stop":
            return self._done()

        if event_type == "error":
            return self._error(remote_error(event.get("error")))

        # message_start, content_block_start, ping, message_delta, ...
        return DecodeResult(None)


class DeltaTypedDecoder(Decoder):
    """OpenAI Chat Completions chunks, terminated by a ``[DONE]`` sentinel.

    ``finish_reason`` does not end the stream; only the sentinel does.
    Missing or null fields decode as empty; fields of the wrong type are
    a decode error.
    """

    def decode(self, payload: str) -> DecodeResult:
        if payload == SSE_DONE_SIGNAL:
            return self._done()

        try:
            data = orjson.loads(payload)
        except orjson.JSONDecodeError as e:
            return self._parse_error(e)

        if data is None:
            return DecodeResult(Chunk(provider=self.provider))
        if not isinstance(data, dict):
            return self._parse_error(ValueError("chunk is not a JSON object"))

        # OpenAI-compatible servers report mid-stream failures in-band
        if isinstance(data.get("error"), dict):
            return self._error(remote_error(data["error"]))

        try:
            content = self._first_delta_content(data.get("choices"))
        except ValueError as e:
            return self._parse_error(e)
        return self._content(content)

    @staticmethod
    def _first_delta_content(choices) -> str:
        if choices is None:
            return ""
        if not isinstance(choices, list):
            raise ValueError("choices is not an array")
        if not all(choice is None or isinstance(choice, dict) for choice in choices):
            raise ValueError("choice is not an object")
        if not choices or choices[0] is None:
            return ""

        delta = choices[0].get("delta")
        if delta is None:
            return ""
        if not isinstance(delta, dict):
            raise ValueError("delta is not an object")

        content = delta.get("content")
        if content is None:
            return ""
        if not isinstance(content, str):
            raise ValueError("delta content is not a string")
        return content
