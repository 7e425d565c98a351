from chatstream.providers.base import BaseProvider
from chatstream.providers.claude import ClaudeProvider
from chatstream.providers.openai import OpenAIProvider
from chatstream.providers.registry import ProviderRegistry, create_provider

__all__ = [
    "BaseProvider",
    "ClaudeProvider",
    "OpenAIProvider",
    "ProviderRegistry",
    "create_provider",
]
