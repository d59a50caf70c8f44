"""IRC line parsing and serialization."""

from __future__ import annotations

from dataclasses import dataclass, field

from ..errors.internal import LineParseError

_TAG_UNESCAPES = {":": ";", "s": " ", "\\": "\\", "r": "\r", "n": "\n"}
_TAG_ESCAPES = {";": "\\:", " ": "\\s", "\\": "\\\\", "\r": "\\r", "\n": "\\n"}


@dataclass
class IRCMessage:
    raw: str
    command: str
    params: list[str] = field(default_factory=list)
    prefix: str | None = None
    tags: dict[str, str | None] = field(default_factory=dict)

    @property
    def verb(self) -> str:
        """Upper-cased command used for dispatch."""
        return self.command.upper()

    @property
    def is_numeric(self) -> bool:
        return len(self.command) == 3 and self.command.isdigit()

    @property
    def nick(self) -> str:
        """Nick part of the prefix, or the whole prefix for servers."""
        return split_prefix(self.prefix)[0]

    @property
    def trailing(self) -> str:
        return self.params[-1] if self.params else ""

    def param(self, index: int, default: str = "") -> str:
        if -len(self.params) <= index < len(self.params):
            return self.params[index]
        return default


def parse_irc_message(raw_line: str) -> IRCMessage:
    """Split one raw line into tags, prefix, command and parameters.

    Raises:
        LineParseError: the line is empty or carries no command token.
    """
    line = raw_line.rstrip("\r\n")
    if not line.strip():
        raise LineParseError("empty line", raw_line)

    tags: dict[str, str | None] = {}
    prefix: str | None = None
    rest = line

    if rest.startswith("@"):
        tags_part, _, rest = rest.partition(" ")
        tags = _parse_tags(tags_part[1:])
        rest = rest.lstrip(" ")

    if rest.startswith(":"):
        prefix, _, rest = rest[1:].partition(" ")
        rest = rest.lstrip(" ")

    command, _, rest = rest.partition(" ")
    if not command:
        raise LineParseError("missing command", raw_line)

    params: list[str] = []
    while rest:
        rest = rest.lstrip(" ")
        if not rest:
            break
        if rest.startswith(":"):
            params.append(rest[1:])
            break
        token, _, rest = rest.partition(" ")
        params.append(token)

    return IRCMessage(raw=raw_line, command=command, params=params, prefix=prefix, tags=tags)


def _parse_tags(raw_tags: str) -> dict[str, str | None]:
    tags: dict[str, str | None] = {}
    for tag in raw_tags.split(";"):
        if not tag:
            continue
        if "=" in tag:
            key, value = tag.split("=", 1)
            tags[key] = _unescape_tag_value(value)
        else:
            tags[tag] = None
    return tags


def _unescape_tag_value(value: str) -> str:
    out: list[str] = []
    chars = iter(value)
    for ch in chars:
        if ch != "\\":
            out.append(ch)
            continue
        nxt = next(chars, None)
        if nxt is None:
            break  # a lone trailing backslash is dropped
        out.append(_TAG_UNESCAPES.get(nxt, nxt))
    return "".join(out)


def _escape_tag_value(value: str) -> str:
    return "".join(_TAG_ESCAPES.get(ch, ch) for ch in value)


def serialize_message(message: IRCMessage) -> str:
    """Render a message back into a wire line (without the delimiter)."""
    parts: list[str] = []
    if message.tags:
        rendered = [
            key if value is None else f"{key}={_escape_tag_value(value)}"
            for key, value in message.tags.items()
        ]
        parts.append("@" + ";".join(rendered))
    if message.prefix:
        parts.append(f":{message.prefix}")
    parts.append(message.command)
    if message.params:
        *middle, last = message.params
        parts.extend(middle)
        if not last or " " in last or last.startswith(":"):
            parts.append(f":{last}")
        else:
            parts.append(last)
    return " ".join(parts)


def split_prefix(prefix: str | None) -> tuple[str, str | None, str | None]:
    """Split ``nick!user@host`` into its parts; servers come back as nick only."""
    if not prefix:
        return "", None, None
    nick, bang, rest = prefix.partition("!")
    if bang:
        user, at, host = rest.partition("@")
        return nick, user or None, host if at else None
    nick, at, host = prefix.partition("@")
    return nick, None, host if at else None


@dataclass
class PrivMsg:
    sender: str
    target: str
    message: str
    tags: dict[str, str | None]


def build_privmsg(parsed: IRCMessage) -> PrivMsg | None:
    if parsed.verb != "PRIVMSG":
        return None
    if len(parsed.params) < 2:
        return None
    return PrivMsg(
        sender=parsed.nick,
        target=parsed.params[0],
        message=parsed.params[1],
        tags=parsed.tags,
    )


def is_channel_name(name: str, chantypes: str = "#&") -> bool:
    return bool(name) and name[0] in chantypes
