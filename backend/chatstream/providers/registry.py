import asyncio
import logging
from typing import Dict, Iterable, List, Optional, Type

import httpx

from chatstream.config import ChatConfig, ProviderConfig, ProviderKind, settings
from chatstream.providers.base import BaseProvider
from chatstream.providers.claude import ClaudeProvider
from chatstream.providers.openai import OpenAIProvider

logger = logging.getLogger(__name__)


# Mapping of wire protocols to their provider classes
PROVIDER_CLASSES: Dict[ProviderKind, Type[BaseProvider]] = {
    ProviderKind.EVENT_TYPED: ClaudeProvider,
    ProviderKind.DELTA_TYPED: OpenAIProvider,
}


def create_provider(
    config: ProviderConfig, client: Optional[httpx.AsyncClient] = None
) -> BaseProvider:
    return PROVIDER_CLASSES[config.kind](config, client=client)


class ProviderRegistry:
    """Central registry for configured providers"""

    def __init__(self):
        self._providers: Dict[str, BaseProvider] = {}
        self._default: Optional[str] = None

    def load(
        self,
        configs: Iterable[ProviderConfig],
        default: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """Create one provider per config, keyed by config name"""
        for config in configs:
            if config.name in self._providers:
                logger.warning(f"Duplicate provider '{config.name}' replaced")
            self._providers[config.name] = create_provider(config, client=client)
            logger.debug(f"Registered provider '{config.name}' ({config.kind.value})")
        if default is not None:
            self._default = default

    @classmethod
    def from_config(
        cls, config: ChatConfig, client: Optional[httpx.AsyncClient] = None
    ) -> "ProviderRegistry":
        registry = cls()
        registry.load(config.providers.values(), config.default_provider, client=client)
        return registry

    def get_provider(self, name: str) -> Optional[BaseProvider]:
        return self._providers.get(name)

    def get_default(self) -> Optional[BaseProvider]:
        if self._default is None:
            return None
        return self._providers.get(self._default)

    def get_active_providers(self) -> List[BaseProvider]:
        """Return all providers that can issue requests"""
        return [p for p in self._providers.values() if p.is_configured()]

    def get_provider_names(self) -> List[str]:
        """Return names of all configured providers"""
        return list(self._providers.keys())

    def _active_streams(self) -> int:
        return sum(p.active_streams for p in self._providers.values())

    async def cleanup(self, timeout: Optional[float] = None):
        """Cleanup all providers, waiting for active streams to complete."""
        limit = settings.cleanup_timeout if timeout is None else timeout
        wait_time = 0.0
        while self._active_streams() > 0 and wait_time < limit:
            logger.debug(f"Waiting for {self._active_streams()} active streams to complete...")
            await asyncio.sleep(0.1)
            wait_time += 0.1

        if self._active_streams() > 0:
            logger.warning(
                f"Cleanup timeout: {self._active_streams()} streams still active after "
                f"{limit}s. Proceeding with cleanup."
            )

        for provider in self._providers.values():
            try:
                await provider.cleanup()
            except Exception as e:
                logger.warning(f"Error cleaning up provider {provider.name}: {e}")
        self._providers.clear()
