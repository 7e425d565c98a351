import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import httpx
import orjson

from chatstream.config import ProviderConfig, settings
from chatstream.models.request import ChatMessage
from chatstream.streaming.cancellation import CancellationToken
from chatstream.streaming.decoders import Decoder
from chatstream.streaming.lines import LineSource
from chatstream.streaming.pipeline import StreamHandle, StreamPipeline
from chatstream.utils.exceptions import (
    ProviderConnectionError,
    RequestBuildError,
    StreamCancelled,
    raise_for_status,
)

logger = logging.getLogger(__name__)


class BaseProvider(ABC):
    """Abstract base class for streaming chat backends.

    ``stream()`` raises for anything that goes wrong before the response
    body is available; after that, failures arrive as error chunks.
    """

    def __init__(self, config: ProviderConfig, client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self.name = config.name
        self.api_key = config.api_key
        self.model = config.model
        self.base_url = config.base_url
        self.system_prompt = config.system_prompt
        self.max_tokens = config.max_tokens
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=self.timeout)
        self._active_streams = 0

    @property
    def timeout(self) -> float:
        """Get the configured provider timeout in seconds."""
        return float(settings.provider_timeout)

    @property
    def active_streams(self) -> int:
        return self._active_streams

    def is_configured(self) -> bool:
        """Check if provider has valid API key"""
        return bool(self.api_key)

    @abstractmethod
    def _endpoint(self) -> str:
        """Absolute URL of the streaming endpoint."""
        pass

    @abstractmethod
    def _headers(self) -> Dict[str, str]:
        pass

    @abstractmethod
    def _build_payload(self, messages: List[ChatMessage]) -> dict:
        """Request body, including any system prompt handling."""
        pass

    @abstractmethod
    def _decoder(self) -> Decoder:
        pass

    def _build_request(self, messages: List[ChatMessage]) -> httpx.Request:
        try:
            body = orjson.dumps(self._build_payload(messages))
        except (orjson.JSONEncodeError, TypeError) as e:
            raise RequestBuildError(f"failed to marshal request: {e}", self.name) from e

        try:
            return self._client.build_request(
                "POST", self._endpoint(), content=body, headers=self._headers()
            )
        except httpx.InvalidURL as e:
            raise RequestBuildError(f"failed to create request: {e}", self.name) from e

    async def _send(
        self, request: httpx.Request, token: Optional[CancellationToken]
    ) -> httpx.Response:
        try:
            if token is None:
                return await self._client.send(request, stream=True)
            return await token.guard(self._client.send(request, stream=True))
        except StreamCancelled as e:
            raise ProviderConnectionError("request cancelled", self.name) from e
        except httpx.HTTPError as e:
            raise ProviderConnectionError(f"failed to send request: {e}", self.name) from e

    async def stream(
        self,
        messages: List[ChatMessage],
        token: Optional[CancellationToken] = None,
    ) -> StreamHandle:
        """Start a streaming chat completion and return its handle."""
        request = self._build_request(messages)
        response = await self._send(request, token)

        if not response.is_success:
            try:
                if token is None:
                    body = await response.aread()
                else:
                    body = await token.guard(response.aread())
            except StreamCancelled as e:
                raise ProviderConnectionError("request cancelled", self.name) from e
            except httpx.HTTPError as e:
                raise ProviderConnectionError(
                    f"failed to read error response (status {response.status_code}): {e}",
                    self.name,
                ) from e
            finally:
                await response.aclose()
            logger.error(
                f"{self.name} API error for model '{self.model}': "
                f"status={response.status_code}"
            )
            raise_for_status(self.name, response.status_code, body)

        # The pipeline owns the response body from here on
        pipeline = StreamPipeline(
            LineSource.from_response(response),
            self._decoder(),
            token=token,
            on_close=self._stream_ended,
        )
        self._active_streams += 1
        logger.debug(f"{self.name}: stream started ({self._active_streams} active)")
        return pipeline.start()

    def _stream_ended(self) -> None:
        self._active_streams = max(0, self._active_streams - 1)

    async def cleanup(self):
        """Cleanup HTTP client resources."""
        if self._client and self._owns_client:
            await self._client.aclose()
        self._client = None
