"""
OpenAI Chat Completions provider.

Also serves OpenAI-compatible servers (Ollama, LM Studio, vLLM, etc.); those
may run without an API key, in which case no Authorization header is sent.
"""

from typing import Dict, List

from chatstream.models.request import ChatMessage, to_wire_messages
from chatstream.providers.base import BaseProvider
from chatstream.streaming.decoders import Decoder, DeltaTypedDecoder


class OpenAIProvider(BaseProvider):
    """OpenAI-style provider (delta-typed SSE with a [DONE] sentinel)."""

    def _endpoint(self) -> str:
        return f"{self.base_url}/chat/completions"

    def _headers(self) -> Dict[str, str]:
        # Authorization is optional for local servers
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _build_payload(self, messages: List[ChatMessage]) -> dict:
        formatted_messages = []
        if self.system_prompt:
            formatted_messages.append({"role": "system", "content": self.system_prompt})
        formatted_messages.extend(to_wire_messages(messages))

        return {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "stream": True,
            "messages": formatted_messages,
        }

    def _decoder(self) -> Decoder:
        return DeltaTypedDecoder(self.name)

    def is_configured(self) -> bool:
        """OpenAI-compatible servers may not require an API key."""
        return bool(self.base_url)
