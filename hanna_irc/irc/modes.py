"""Mode string codec.

Decodes ``+oo-v+h nick1 nick2 nick3`` style changes into ordered
``ModeChange`` records, encodes them back, and turns NAMES/WHO membership
prefixes (``@``, ``+``, ``%``, ``&``, ``~``) into member mode sets.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

DEFAULT_PREFIX_MAP: dict[str, str] = {"@": "o", "+": "v", "%": "h", "&": "a", "~": "q"}
DEFAULT_MEMBER_MODES = frozenset("ovh")
DEFAULT_PARAM_MODES = frozenset("ovhbkl")
LIST_MODES = frozenset("beI")

_ISUPPORT_PREFIX_RE = re.compile(r"^\(([^)]*)\)(.*)$")


@dataclass(frozen=True)
class ModeChange:
    adding: bool
    mode: str
    param: str | None = None

    def __str__(self) -> str:
        sign = "+" if self.adding else "-"
        return f"{sign}{self.mode} {self.param}" if self.param else f"{sign}{self.mode}"


@dataclass
class DecodedModes:
    changes: list[ModeChange] = field(default_factory=list)
    unmatched: list[ModeChange] = field(default_factory=list)
    """Flags that needed an argument but ran out of arguments."""

    @property
    def ok(self) -> bool:
        return not self.unmatched


@dataclass
class ModeRules:
    """Which flags consume arguments and which ones target channel members.

    Starts from the defaults (``o v h`` member flags; ``o v h b k l`` take an
    argument) and is widened by ISUPPORT ``PREFIX`` / ``CHANMODES`` when the
    server advertises them.
    """

    member_modes: frozenset[str] = DEFAULT_MEMBER_MODES
    param_modes: frozenset[str] = DEFAULT_PARAM_MODES
    set_only_modes: frozenset[str] = frozenset()
    list_modes: frozenset[str] = LIST_MODES
    prefix_map: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_PREFIX_MAP))

    def takes_param(self, mode: str, adding: bool) -> bool:
        if mode in self.param_modes:
            return True
        return adding and mode in self.set_only_modes

    def apply_isupport_prefix(self, value: str) -> None:
        mapping = parse_isupport_prefix(value)
        if not mapping:
            return
        self.prefix_map = mapping
        self.member_modes = frozenset(mapping.values())
        self.param_modes = self.param_modes | self.member_modes

    def apply_isupport_chanmodes(self, value: str) -> None:
        """CHANMODES=A,B,C,D: A lists, B always-param, C param-on-set, D none."""
        groups = (value.split(",") + ["", "", "", ""])[:4]
        list_group, always_group, set_group, _plain = groups
        self.list_modes = frozenset(list_group)
        self.param_modes = frozenset(list_group) | frozenset(always_group) | self.member_modes
        self.set_only_modes = frozenset(set_group)


def decode_modes(
    modestring: str,
    args: Sequence[str] = (),
    rules: ModeRules | None = None,
) -> DecodedModes:
    """Pair each flag with its argument, honouring the sign runs.

    A flag that needs an argument when none is left is reported in
    ``unmatched``; the flags before and after it are still decoded.
    """
    rules = rules or ModeRules()
    result = DecodedModes()
    adding = True
    remaining = list(args)
    for char in modestring:
        if char == "+":
            adding = True
            continue
        if char == "-":
            adding = False
            continue
        if rules.takes_param(char, adding):
            if remaining:
                result.changes.append(ModeChange(adding, char, remaining.pop(0)))
            else:
                result.unmatched.append(ModeChange(adding, char))
        else:
            result.changes.append(ModeChange(adding, char))
    return result


def encode_modes(changes: Iterable[ModeChange]) -> tuple[str, list[str]]:
    """Render changes as ``(modestring, args)``; consecutive signs are merged."""
    out: list[str] = []
    params: list[str] = []
    current: bool | None = None
    for change in changes:
        if change.adding is not current:
            out.append("+" if change.adding else "-")
            current = change.adding
        out.append(change.mode)
        if change.param is not None:
            params.append(change.param)
    return "".join(out), params


def decode_names_prefix(
    token: str, prefix_map: dict[str, str] | None = None
) -> tuple[str, set[str]]:
    """Strip membership prefixes from a NAMES/WHO nick token.

    ``@+alice`` becomes ``("alice", {"o", "v"})``. With userhost-in-names
    the ``!user@host`` suffix is left for the caller to split.
    """
    prefix_map = prefix_map if prefix_map is not None else DEFAULT_PREFIX_MAP
    modes: set[str] = set()
    index = 0
    while index < len(token) and token[index] in prefix_map:
        modes.add(prefix_map[token[index]])
        index += 1
    return token[index:], modes


def parse_isupport_prefix(value: str) -> dict[str, str]:
    """``(qaohv)~&@%+`` → ``{"~": "q", "&": "a", "@": "o", "%": "h", "+": "v"}``."""
    match = _ISUPPORT_PREFIX_RE.match(value)
    if not match:
        return {}
    modes, symbols = match.groups()
    if len(modes) != len(symbols):
        return {}
    return dict(zip(symbols, modes, strict=True))


def format_member_modes(modes: Iterable[str], order: str = "qaohv") -> str:
    """Stable rendering of a member mode set, highest rank first."""
    ranked = sorted(modes, key=lambda m: (order.find(m) if m in order else len(order), m))
    return "".join(ranked)
