"""Nickname mention detection for incoming PRIVMSG bodies."""

from __future__ import annotations

import re
from functools import lru_cache


@lru_cache(maxsize=32)
def _patterns(nick: str) -> tuple[re.Pattern[str], re.Pattern[str]]:
    quoted = re.escape(nick)
    word = re.compile(rf"(?<!\w){quoted}(?!\w)", re.IGNORECASE | re.ASCII)
    slashed = re.compile(rf"/{quoted}(?!\w)|(?<!\w){quoted}/", re.IGNORECASE | re.ASCII)
    return word, slashed


def is_mention(nick: str, message: str) -> bool:
    """True when ``nick`` appears in ``message`` as a standalone word.

    ``@Hanna`` counts, ``Hannalore`` and ``someHanna`` do not. Any
    occurrence touching a ``/`` (``/Hanna/``, ``/Hanna``, ``Hanna/``)
    rejects the whole message.
    """
    if not nick or not message:
        return False
    word, slashed = _patterns(nick)
    if not word.search(message):
        return False
    return not slashed.search(message)
