"""Markdown export for finished conversations."""

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import List

from pydantic import BaseModel, Field

from chatstream.models.request import ChatMessage
from chatstream.utils.time import format_long_date, utcnow

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 50
ROLE_HEADERS = {"user": "**You:**", "assistant": "**Assistant:**"}

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


class Transcript(BaseModel):
    """A conversation with the metadata shown in its export header"""

    title: str = ""
    provider: str
    model: str
    created_at: datetime = Field(default_factory=utcnow)
    messages: List[ChatMessage] = Field(default_factory=list)


def sanitize_title(title: str) -> str:
    """
    Convert a title into a safe filename component.

    Examples:
        >>> sanitize_title("Hello, World!")
        'hello-world'
        >>> sanitize_title("???")
        'untitled'
    """
    slug = _NON_ALNUM.sub("-", title.lower()).strip("-")
    if len(slug) > MAX_TITLE_LENGTH:
        slug = slug[:MAX_TITLE_LENGTH].rstrip("-")
    return slug or "untitled"


def to_markdown(transcript: Transcript) -> str:
    lines = [
        f"# {transcript.title}",
        "",
        f"**Provider:** {transcript.provider} | **Model:** {transcript.model}  ",
        f"**Date:** {format_long_date(transcript.created_at)}",
        "",
    ]
    for msg in transcript.messages:
        if msg.role == "system":
            continue
        lines += ["---", "", ROLE_HEADERS[msg.role], "", msg.content, ""]
    lines.append("---")
    return "\n".join(lines) + "\n"


def export_markdown(transcript: Transcript, directory: str | Path) -> Path:
    """
    Write the transcript to ``directory`` and return the absolute file path.

    Files are named ``YYYY-MM-DD-<title>.md``; an existing file is never
    overwritten, a ``-1``, ``-2``, ... suffix is added instead.
    """
    target_dir = Path(directory).expanduser()
    target_dir.mkdir(parents=True, exist_ok=True)

    stem = f"{transcript.created_at:%Y-%m-%d}-{sanitize_title(transcript.title)}"
    path = target_dir / f"{stem}.md"
    counter = 1
    while path.exists():
        path = target_dir / f"{stem}-{counter}.md"
        counter += 1

    path.write_text(to_markdown(transcript), encoding="utf-8")
    logger.info(f"Exported transcript to {path}")
    return path.resolve()
