"""Utility helpers shared by the IRC client and the configuration layer.

Exposed functions:
    format_duration: Formats time durations into human-readable strings.
    sanitize_nick: Reduces a requested nickname to characters IRC accepts.
    split_message: Splits outbound text into wire-sized chunks.
"""

from .helpers import format_duration, sanitize_nick, split_message

__all__ = ["format_duration", "sanitize_nick", "split_message"]
