import logging
import os
import sys
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def setup_logging(level: str = "INFO"):
    """Configure application logging."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    # Set third-party loggers to WARNING to reduce noise
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="CHATSTREAM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Timeout settings (seconds)
    provider_timeout: int = 60

    # Applied when a provider config leaves max_tokens unset
    default_max_tokens: int = 4096

    # Output channel capacity per stream
    stream_buffer_size: int = Field(default=1, ge=1)

    # Maximum time to wait for active streams during cleanup (seconds)
    cleanup_timeout: float = 10.0

    log_level: str = "INFO"


settings = Settings()

# Initialize logging on import
setup_logging(settings.log_level)


class ProviderKind(str, Enum):
    """Wire protocol spoken by a provider endpoint."""

    EVENT_TYPED = "anthropic"
    DELTA_TYPED = "openai"


class ProviderConfig(BaseModel):
    """One configured backend, as handed over by the config loader."""

    model_config = ConfigDict(frozen=True)

    name: str
    kind: ProviderKind
    base_url: str
    model: str
    api_key: Optional[str] = None
    system_prompt: Optional[str] = None
    max_tokens: int = Field(default=0, validate_default=True)

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("api_key")
    @classmethod
    def _expand_env_key(cls, value: Optional[str]) -> Optional[str]:
        """Resolve "$VAR" keys from the environment; leave as-is if unset."""
        if value and value.startswith("$"):
            resolved = os.environ.get(value[1:])
            if resolved:
                return resolved
        return value

    @field_validator("max_tokens")
    @classmethod
    def _default_max_tokens(cls, value: int) -> int:
        return value if value > 0 else settings.default_max_tokens


class ChatConfig(BaseModel):
    """Provider table plus the one used when the caller doesn't pick."""

    default_provider: str
    providers: Dict[str, ProviderConfig]

    @model_validator(mode="after")
    def _check_default(self) -> "ChatConfig":
        if not self.providers:
            raise ValueError("at least one provider must be defined")
        if self.default_provider not in self.providers:
            raise ValueError(
                f"default_provider '{self.default_provider}' not found in providers"
            )
        return self
