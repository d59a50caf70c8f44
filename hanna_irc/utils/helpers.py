"""General utility helper functions."""

from __future__ import annotations

import re

from ..constants import DEFAULT_NICK, NICK_MAX_LENGTH, PRIVMSG_MAX_CHUNK

__all__ = ["format_duration", "sanitize_nick", "split_message"]

_NICK_INVALID_RE = re.compile(r"[^A-Za-z0-9_\-\[\]{}`]")


def format_duration(total_seconds: int | float | None) -> str:
    """Return a human-friendly Hh Mm Ss string for a duration in seconds.

    Examples:
      65 -> "1m 5s"
      3605 -> "1h 0m 5s"
      59 -> "59s"
    """
    if total_seconds is None:
        return "unknown"
    seconds = int(total_seconds)
    if seconds < 60:
        return f"{seconds}s"
    minutes, sec = divmod(seconds, 60)
    if minutes < 60:
        return f"{minutes}m {sec}s"
    hours, minutes = divmod(minutes, 60)
    if hours < 24:
        return f"{hours}h {minutes}m {sec}s"
    days, hours = divmod(hours, 24)
    return f"{days}d {hours}h {minutes}m {sec}s"


def sanitize_nick(nick: str | None) -> str:
    """Keep only ``A-Z a-z 0-9 _ - [ ] { } ` `` and cap the length.

    Falls back to the default nick when nothing usable remains.
    """
    cleaned = _NICK_INVALID_RE.sub("", (nick or "").strip())
    cleaned = cleaned[:NICK_MAX_LENGTH]
    return cleaned or DEFAULT_NICK


def split_message(text: str, limit: int = PRIVMSG_MAX_CHUNK) -> list[str]:
    """Split on newlines, then cut each line into chunks of at most ``limit``
    UTF-8 bytes.

    Chunks never end inside a code point. Blank lines are skipped since IRC
    cannot carry an empty PRIVMSG.
    """
    chunks: list[str] = []
    for line in text.replace("\r\n", "\n").replace("\r", "\n").split("\n"):
        if not line.strip():
            continue
        current: list[str] = []
        size = 0
        for char in line:
            width = len(char.encode("utf-8"))
            if current and size + width > limit:
                chunks.append("".join(current))
                current, size = [], 0
            current.append(char)
            size += width
        if current:
            chunks.append("".join(current))
    return chunks
