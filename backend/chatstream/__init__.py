"""Client-side SSE streaming for chat-completion APIs."""

from chatstream.config import ChatConfig, ProviderConfig, ProviderKind, settings
from chatstream.models.request import ChatMessage
from chatstream.models.response import Chunk
from chatstream.providers import BaseProvider, ClaudeProvider, OpenAIProvider, ProviderRegistry
from chatstream.streaming import CancellationToken, StreamHandle, collect_reply

__version__ = "1.0.0"

__all__ = [
    "BaseProvider",
    "CancellationToken",
    "ChatConfig",
    "ChatMessage",
    "Chunk",
    "ClaudeProvider",
    "OpenAIProvider",
    "ProviderConfig",
    "ProviderKind",
    "ProviderRegistry",
    "StreamHandle",
    "collect_reply",
    "settings",
]
