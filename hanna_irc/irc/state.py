"""Authoritative in-memory model of server, channel, user and error state.

The dispatcher is the only writer. Every public mutation takes the store's
re-entrant lock for its whole multi-step change, and ``snapshot()`` copies
everything under the same lock, so readers on other threads never see a
half-applied rename or membership change.
"""

from __future__ import annotations

import copy
import threading
import time
from collections import deque
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

from ..constants import ERROR_LOG_CAPACITY, STATS_LOG_CAPACITY
from .models import Channel, IRCError, ListEntry, ServerInfo, StatEntry, User
from .modes import ModeChange, ModeRules, decode_modes, decode_names_prefix, format_member_modes
from .numerics import classify_error
from .parser import split_prefix

_LIST_ATTRS = {"b": "bans", "e": "excepts", "I": "invites"}


@dataclass(frozen=True)
class StateSnapshot:
    """Isolated point-in-time copy of the store."""

    connected: bool
    nick: str
    channels: dict[str, Channel]
    users: dict[str, User]
    server: ServerInfo
    errors: tuple[IRCError, ...]
    stats: tuple[StatEntry, ...]
    timestamp: float

    def channel(self, name: str) -> Channel | None:
        return self.channels.get(name.lower())

    def user(self, nick: str) -> User | None:
        return self.users.get(nick.lower())

    def members(self, channel: str) -> dict[str, str | None]:
        """Display nick → sorted mode string (``None`` without flags)."""
        chan = self.channel(channel)
        if chan is None:
            return {}
        out: dict[str, str | None] = {}
        for key, modes in sorted(chan.members.items()):
            user = self.users.get(key)
            display = user.nick if user else key
            out[display] = format_member_modes(modes) or None
        return out

    def to_dict(self) -> dict[str, Any]:
        channels = []
        for key in sorted(self.channels):
            chan = self.channels[key]
            channels.append(
                {
                    "name": chan.name,
                    "topic": chan.topic,
                    "topic_set_by": chan.topic_set_by,
                    "topic_set_time": chan.topic_set_time,
                    "created": chan.created,
                    "url": chan.url,
                    "modes": "".join(sorted(chan.modes)),
                    "mode_params": dict(chan.mode_params),
                    "members": self.members(key),
                    "bans": [entry.to_dict() for entry in chan.bans],
                    "invites": [entry.to_dict() for entry in chan.invites],
                    "excepts": [entry.to_dict() for entry in chan.excepts],
                }
            )
        return {
            "connected": self.connected,
            "nick": self.nick,
            "channels": channels,
            "users": [self.users[key].to_dict() for key in sorted(self.users)],
            "server": self.server.to_dict(),
            "errors": [error.to_dict() for error in self.errors],
            "stats": [stat.to_dict() for stat in self.stats],
            "timestamp": self.timestamp,
        }


class StateStore:  # pylint: disable=too-many-public-methods
    def __init__(
        self,
        nick: str = "",
        *,
        error_capacity: int = ERROR_LOG_CAPACITY,
        stats_capacity: int = STATS_LOG_CAPACITY,
    ) -> None:
        self._lock = threading.RLock()
        self.server = ServerInfo()
        self.rules = ModeRules()
        self._channels: dict[str, Channel] = {}
        self._users: dict[str, User] = {}
        self._errors: deque[IRCError] = deque(maxlen=error_capacity)
        self._stats: deque[StatEntry] = deque(maxlen=stats_capacity)
        self._names_pending: dict[str, dict[str, tuple[str, set[str]]]] = {}
        self._nick = nick
        self._connected = False

    @contextmanager
    def transaction(self) -> Iterator[StateStore]:
        """Hold the store lock across several mutations."""
        with self._lock:
            yield self

    # -- identity -------------------------------------------------------

    @property
    def nick(self) -> str:
        with self._lock:
            return self._nick

    def set_nick(self, nick: str) -> None:
        with self._lock:
            self._nick = nick

    def is_self(self, nick: str) -> bool:
        with self._lock:
            return bool(nick) and nick.lower() == self._nick.lower()

    @property
    def connected(self) -> bool:
        with self._lock:
            return self._connected

    def set_connected(self, connected: bool) -> None:
        with self._lock:
            self._connected = connected

    # -- lookups (copies) -----------------------------------------------

    def get_channel(self, name: str) -> Channel | None:
        with self._lock:
            chan = self._channels.get(name.lower())
            return copy.deepcopy(chan) if chan else None

    def get_user(self, nick: str) -> User | None:
        with self._lock:
            user = self._users.get(nick.lower())
            return copy.deepcopy(user) if user else None

    def channel_names(self) -> list[str]:
        with self._lock:
            return [chan.name for chan in self._channels.values()]

    def errors(self) -> list[IRCError]:
        with self._lock:
            return list(self._errors)

    def stats(self) -> list[StatEntry]:
        with self._lock:
            return list(self._stats)

    # -- server ---------------------------------------------------------

    def update_server(self, **changes: Any) -> None:
        with self._lock:
            for attr, value in changes.items():
                setattr(self.server, attr, value)

    def update_admin(self, **changes: str) -> None:
        with self._lock:
            for attr, value in changes.items():
                setattr(self.server.admin, attr, value)

    def update_isupport(self, tokens: Iterable[str]) -> None:
        """Merge ISUPPORT tokens (``KEY=value``, ``KEY`` or ``-KEY``)."""
        with self._lock:
            for token in tokens:
                if token.startswith("-"):
                    self.server.isupport.pop(token[1:], None)
                    continue
                key, _, value = token.partition("=")
                self.server.isupport[key] = value
                if key == "PREFIX":
                    self.rules.apply_isupport_prefix(value)
                elif key == "CHANMODES":
                    self.rules.apply_isupport_chanmodes(value)
                elif key == "NETWORK":
                    self.server.network = value

    def add_capabilities(self, caps: Iterable[str]) -> None:
        with self._lock:
            self.server.capabilities.update(c for c in caps if c)

    def remove_capabilities(self, caps: Iterable[str]) -> None:
        with self._lock:
            self.server.capabilities.difference_update(caps)

    def capabilities(self) -> set[str]:
        with self._lock:
            return set(self.server.capabilities)

    def isupport_value(self, key: str, default: str = "") -> str:
        with self._lock:
            return self.server.isupport.get(key) or default

    def motd_length(self) -> int:
        with self._lock:
            return len(self.server.motd)

    def clear_motd(self) -> None:
        with self._lock:
            self.server.motd = []

    def append_motd(self, line: str) -> None:
        with self._lock:
            self.server.motd.append(line)

    # -- users ----------------------------------------------------------

    def _ensure_user(self, nick: str) -> User:
        key = nick.lower()
        user = self._users.get(key)
        if user is None:
            user = User(nick=nick)
            self._users[key] = user
        return user

    def _ensure_channel(self, name: str) -> Channel:
        key = name.lower()
        chan = self._channels.get(key)
        if chan is None:
            chan = Channel(name=name)
            self._channels[key] = chan
        return chan

    def _prune_user(self, key: str) -> None:
        user = self._users.get(key)
        if user is None or user.channels or user.seen_in_whois:
            return
        if key == self._nick.lower():
            return
        del self._users[key]

    def touch_user(
        self, nick: str, username: str | None = None, host: str | None = None
    ) -> None:
        """Record that ``nick`` was seen now, filling in ident/host if known."""
        if not nick:
            return
        with self._lock:
            user = self._ensure_user(nick)
            user.last_seen = time.time()
            if username:
                user.username = username
            if host:
                user.host = host

    def update_user(
        self,
        nick: str,
        *,
        extra: dict[str, str] | None = None,
        whois: bool = False,
        **changes: Any,
    ) -> None:
        with self._lock:
            user = self._ensure_user(nick)
            for attr, value in changes.items():
                setattr(user, attr, value)
            if extra:
                user.extra.update(extra)
            if whois:
                user.seen_in_whois = True

    def rename_user(self, old: str, new: str) -> None:
        """Rename a user across the directory and every membership map."""
        if not old or not new:
            return
        with self._lock:
            old_key, new_key = old.lower(), new.lower()
            user = self._users.pop(old_key, None)
            if user is None:
                user = User(nick=new)
            if new_key != old_key and new_key in self._users:
                self._drop_user(new_key)
            user.nick = new
            self._users[new_key] = user
            for chan_key in user.channels:
                chan = self._channels.get(chan_key)
                if chan is not None and old_key in chan.members:
                    chan.members[new_key] = chan.members.pop(old_key)
            for pending in self._names_pending.values():
                if old_key in pending:
                    pending[new_key] = (new, pending.pop(old_key)[1])
            if old_key == self._nick.lower():
                self._nick = new

    def _drop_user(self, key: str) -> None:
        user = self._users.pop(key, None)
        if user is None:
            return
        for chan_key in user.channels:
            chan = self._channels.get(chan_key)
            if chan is not None:
                chan.members.pop(key, None)

    def quit_user(self, nick: str) -> list[str]:
        """Remove ``nick`` from every channel and the directory.

        Returns the display names of the channels the user was in.
        """
        with self._lock:
            key = nick.lower()
            user = self._users.get(key)
            if user is None:
                return []
            names = [
                self._channels[c].name for c in sorted(user.channels) if c in self._channels
            ]
            self._drop_user(key)
            return names

    # -- membership -----------------------------------------------------

    def join(
        self,
        channel: str,
        nick: str,
        username: str | None = None,
        host: str | None = None,
    ) -> None:
        with self._lock:
            chan = self._ensure_channel(channel)
            user = self._ensure_user(nick)
            if username:
                user.username = username
            if host:
                user.host = host
            user.last_seen = time.time()
            chan.members.setdefault(user.key, set())
            user.channels.add(chan.key)

    def part(self, channel: str, nick: str) -> None:
        """PART or KICK: the bot leaving drops the whole channel."""
        with self._lock:
            chan_key = channel.lower()
            if self.is_self(nick):
                self._drop_channel(chan_key)
                return
            chan = self._channels.get(chan_key)
            key = nick.lower()
            if chan is not None:
                chan.members.pop(key, None)
            user = self._users.get(key)
            if user is not None:
                user.channels.discard(chan_key)
                self._prune_user(key)

    def _drop_channel(self, chan_key: str) -> None:
        chan = self._channels.pop(chan_key, None)
        self._names_pending.pop(chan_key, None)
        if chan is None:
            return
        for member_key in list(chan.members):
            user = self._users.get(member_key)
            if user is not None:
                user.channels.discard(chan_key)
                self._prune_user(member_key)

    # -- NAMES accumulation ---------------------------------------------

    def names_add(self, channel: str, tokens: Iterable[str]) -> None:
        """Accumulate one 353 line; the first one starts a fresh list."""
        with self._lock:
            pending = self._names_pending.setdefault(channel.lower(), {})
            for token in tokens:
                bare, modes = decode_names_prefix(token, self.rules.prefix_map)
                nick, username, host = split_prefix(bare)
                if not nick:
                    continue
                pending[nick.lower()] = (nick, modes)
                if username or host:
                    user = self._ensure_user(nick)
                    user.username = username or user.username
                    user.host = host or user.host

    def names_end(self, channel: str) -> int:
        """Finalize a NAMES list; it replaces the channel membership.

        Returns the number of members now recorded.
        """
        with self._lock:
            chan_key = channel.lower()
            pending = self._names_pending.pop(chan_key, None)
            if pending is None:
                chan = self._channels.get(chan_key)
                return len(chan.members) if chan else 0
            chan = self._ensure_channel(channel)
            previous = set(chan.members)
            chan.members = {}
            for key, (nick, modes) in pending.items():
                user = self._ensure_user(nick)
                user.channels.add(chan_key)
                chan.members[key] = set(modes)
            for key in previous - set(pending):
                user = self._users.get(key)
                if user is not None:
                    user.channels.discard(chan_key)
                    self._prune_user(key)
            return len(chan.members)

    def names_in_flight(self, channel: str) -> bool:
        with self._lock:
            return channel.lower() in self._names_pending

    # -- modes ----------------------------------------------------------

    def apply_channel_modes(self, channel: str, changes: Iterable[ModeChange]) -> None:
        with self._lock:
            chan = self._ensure_channel(channel)
            for change in changes:
                self._apply_channel_mode(chan, change)

    def _apply_channel_mode(self, chan: Channel, change: ModeChange) -> None:
        mode, param = change.mode, change.param
        if mode in self.rules.member_modes and param:
            key = param.lower()
            if key not in chan.members:
                if not change.adding:
                    return
                user = self._ensure_user(param)
                user.channels.add(chan.key)
                chan.members[key] = set()
            if change.adding:
                chan.members[key].add(mode)
            else:
                chan.members[key].discard(mode)
        elif mode in _LIST_ATTRS and param:
            entries: list[ListEntry] = getattr(chan, _LIST_ATTRS[mode])
            entries[:] = [e for e in entries if e.mask != param]
            if change.adding:
                entries.append(ListEntry(mask=param, set_time=int(time.time())))
        elif change.adding:
            chan.modes.add(mode)
            if param is not None:
                chan.mode_params[mode] = param
        else:
            chan.modes.discard(mode)
            chan.mode_params.pop(mode, None)

    def set_channel_modes(self, channel: str, modestring: str, args: list[str]) -> None:
        """RPL_CHANNELMODEIS: the reply is the complete channel mode set."""
        with self._lock:
            chan = self._ensure_channel(channel)
            chan.modes = set()
            chan.mode_params = {}
            for change in decode_modes(modestring, args, self.rules).changes:
                if change.adding:
                    chan.modes.add(change.mode)
                    if change.param is not None:
                        chan.mode_params[change.mode] = change.param

    def set_user_modes(self, nick: str, changes: Iterable[ModeChange]) -> None:
        with self._lock:
            user = self._ensure_user(nick)
            current = set(user.modes)
            for change in changes:
                if change.adding:
                    current.add(change.mode)
                else:
                    current.discard(change.mode)
            user.modes = "".join(sorted(current))

    # -- channel info ---------------------------------------------------

    def update_channel(self, channel: str, **changes: Any) -> None:
        with self._lock:
            chan = self._ensure_channel(channel)
            for attr, value in changes.items():
                setattr(chan, attr, value)

    def add_list_entry(self, channel: str, mode: str, entry: ListEntry) -> None:
        with self._lock:
            chan = self._ensure_channel(channel)
            entries: list[ListEntry] = getattr(chan, _LIST_ATTRS[mode])
            entries[:] = [e for e in entries if e.mask != entry.mask]
            entries.append(entry)

    # -- logs -----------------------------------------------------------

    def record_error(self, code: str, target: str, message: str) -> IRCError:
        error = IRCError(
            code=code,
            target=target,
            message=message,
            timestamp=time.time(),
            severity=classify_error(code).value,
        )
        with self._lock:
            self._errors.append(error)
        return error

    def record_stat(self, kind: str, data: dict[str, str]) -> None:
        with self._lock:
            self._stats.append(StatEntry(kind=kind, data=dict(data), timestamp=time.time()))

    # -- lifecycle ------------------------------------------------------

    def reset_session(self) -> None:
        """Forget channels and users; server info and the logs survive."""
        with self._lock:
            self._channels.clear()
            self._users.clear()
            self._names_pending.clear()
            self._connected = False

    def snapshot(self) -> StateSnapshot:
        with self._lock:
            return StateSnapshot(
                connected=self._connected,
                nick=self._nick,
                channels=copy.deepcopy(self._channels),
                users=copy.deepcopy(self._users),
                server=copy.deepcopy(self.server),
                errors=tuple(self._errors),
                stats=tuple(copy.deepcopy(s) for s in self._stats),
                timestamp=time.time(),
            )
