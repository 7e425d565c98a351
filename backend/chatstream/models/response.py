from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Chunk:
    """Represents a single streaming chunk delivered to the caller"""

    content: str = ""
    done: bool = False
    error: Optional[Exception] = None
    provider: str = ""

    @property
    def is_empty(self) -> bool:
        """True for structural no-ops: no text, not done, no error."""
        return not self.content and not self.done and self.error is None

    @property
    def is_terminal(self) -> bool:
        return self.done or self.error is not None


@dataclass(frozen=True)
class DecodeResult:
    """Outcome of decoding one payload event.

    ``chunk`` is None when the event carries nothing for the caller.
    ``stop`` ends the stream after ``chunk`` (if any) is published.
    """

    chunk: Optional[Chunk]
    stop: bool = False
