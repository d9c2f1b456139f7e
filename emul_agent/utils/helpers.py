"""Utility functions for emul."""

import os
from dataclasses import dataclass
from pathlib import Path

PRIMARY_DATA_DIR = ".emul"
DATA_DIR_ENV = "EMUL_DATA_DIR"
DEFAULT_LINE_LIMIT = 430


def ensure_dir(path: Path) -> Path:
    """Ensure a directory exists, creating it if necessary."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_path() -> Path:
    """
    Get the emul data directory.

    ``EMUL_DATA_DIR`` overrides the default ``~/.emul``; relative values are
    resolved against the home directory.
    """
    override = os.environ.get(DATA_DIR_ENV, "").strip()
    if override:
        path = Path(override).expanduser()
        if not path.is_absolute():
            path = Path.home() / path
        return ensure_dir(path)
    return ensure_dir(Path.home() / PRIMARY_DATA_DIR)


@dataclass(frozen=True)
class HistoryEntry:
    """One logged channel line, oldest first when passed as history."""

    channel: str
    speaker: str
    text: str

    def format(self) -> str:
        return f"{self.channel} {self.speaker}: {self.text}"


def format_history(history: list[HistoryEntry]) -> str:
    return "\n".join(entry.format() for entry in history)


def parse_history_line(line: str, channel: str) -> HistoryEntry | None:
    """Parse a ``speaker: text`` line; blank or speaker-less lines are skipped."""
    speaker, sep, text = line.strip().partition(":")
    if not sep or not speaker.strip():
        return None
    return HistoryEntry(channel=channel, speaker=speaker.strip(), text=text.strip())


def split_response(text: str, limit: int = DEFAULT_LINE_LIMIT) -> list[str]:
    """
    Split a reply into chat-sized chunks.

    Each input line becomes at least one chunk. Lines longer than ``limit`` are
    broken at the last space before the limit (or hard at the limit when there is
    none) and the remainder loses its leading whitespace.
    """
    if limit < 1:
        raise ValueError("limit must be positive")
    chunks: list[str] = []
    for line in text.splitlines():
        remaining = line
        while remaining:
            if len(remaining) <= limit:
                chunks.append(remaining)
                break
            split_at = remaining.rfind(" ", 0, limit)
            if split_at <= 0:
                split_at = limit
            chunks.append(remaining[:split_at])
            remaining = remaining[split_at:].lstrip()
    return chunks
