from typing import Dict, List

from chatstream.models.request import ChatMessage, to_wire_messages
from chatstream.providers.base import BaseProvider
from chatstream.streaming.decoders import Decoder, EventTypedDecoder

ANTHROPIC_VERSION = "2023-06-01"


class ClaudeProvider(BaseProvider):
    """Anthropic Messages API (event-typed SSE)."""

    def _endpoint(self) -> str:
        return f"{self.base_url}/v1/messages"

    def _headers(self) -> Dict[str, str]:
        return {
            "x-api-key": self.api_key or "",
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }

    def _build_payload(self, messages: List[ChatMessage]) -> dict:
        payload = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "stream": True,
            "messages": to_wire_messages(messages),
        }
        # System prompt is a top-level field, not a message
        if self.system_prompt:
            payload["system"] = self.system_prompt
        return payload

    def _decoder(self) -> Decoder:
        return EventTypedDecoder(self.name)
