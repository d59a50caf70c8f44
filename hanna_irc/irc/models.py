"""Shared IRC data models (packaged)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True)
class AdminInfo:
    server: str = ""
    location1: str = ""
    location2: str = ""
    email: str = ""


@dataclass(slots=True)
class ServerInfo:
    name: str = ""
    version: str = ""
    created: str = ""
    network: str = ""
    user_modes: str = ""
    channel_modes: str = ""
    isupport: dict[str, str] = field(default_factory=dict)
    capabilities: set[str] = field(default_factory=set)
    motd: list[str] = field(default_factory=list)
    local_users: int = 0
    max_local_users: int = 0
    global_users: int = 0
    max_global_users: int = 0
    operators: int = 0
    unknown_connections: int = 0
    channels_formed: int = 0
    admin: AdminInfo = field(default_factory=AdminInfo)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "created": self.created,
            "network": self.network,
            "user_modes": self.user_modes,
            "channel_modes": self.channel_modes,
            "isupport": dict(self.isupport),
            "capabilities": sorted(self.capabilities),
            "motd": list(self.motd),
            "local_users": self.local_users,
            "max_local_users": self.max_local_users,
            "global_users": self.global_users,
            "max_global_users": self.max_global_users,
            "operators": self.operators,
            "unknown_connections": self.unknown_connections,
            "channels_formed": self.channels_formed,
            "admin": {
                "server": self.admin.server,
                "location1": self.admin.location1,
                "location2": self.admin.location2,
                "email": self.admin.email,
            },
        }


@dataclass(slots=True)
class ListEntry:
    """One ban/invite/except list entry."""

    mask: str
    set_by: str = ""
    set_time: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"mask": self.mask, "set_by": self.set_by, "set_time": self.set_time}


@dataclass(slots=True)
class Channel:
    name: str
    topic: str = ""
    topic_set_by: str = ""
    topic_set_time: int = 0
    created: int = 0
    url: str = ""
    modes: set[str] = field(default_factory=set)
    mode_params: dict[str, str] = field(default_factory=dict)
    members: dict[str, set[str]] = field(default_factory=dict)
    """Lower-cased nick → member mode flags."""
    bans: list[ListEntry] = field(default_factory=list)
    invites: list[ListEntry] = field(default_factory=list)
    excepts: list[ListEntry] = field(default_factory=list)

    @property
    def key(self) -> str:
        return self.name.lower()


@dataclass(slots=True)
class User:
    nick: str
    username: str = ""
    host: str = ""
    real_name: str = ""
    away: bool = False
    away_message: str = ""
    channels: set[str] = field(default_factory=set)
    """Lower-cased channel keys."""
    operator: bool = False
    idle_seconds: int = 0
    signon_time: int = 0
    last_seen: float = 0.0
    server: str = ""
    server_info: str = ""
    account: str = ""
    secure: bool = False
    bot: bool = False
    actual_host: str = ""
    modes: str = ""
    extra: dict[str, str] = field(default_factory=dict)
    seen_in_whois: bool = False

    @property
    def key(self) -> str:
        return self.nick.lower()

    def to_dict(self) -> dict[str, Any]:
        return {
            "nick": self.nick,
            "username": self.username,
            "host": self.host,
            "real_name": self.real_name,
            "away": self.away,
            "away_message": self.away_message,
            "channels": sorted(self.channels),
            "operator": self.operator,
            "idle_seconds": self.idle_seconds,
            "signon_time": self.signon_time,
            "last_seen": self.last_seen,
            "server": self.server,
            "server_info": self.server_info,
            "account": self.account,
            "secure": self.secure,
            "bot": self.bot,
            "actual_host": self.actual_host,
            "modes": self.modes,
            "extra": dict(self.extra),
        }


@dataclass(frozen=True, slots=True)
class IRCError:
    code: str
    target: str
    message: str
    timestamp: float
    severity: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "target": self.target,
            "message": self.message,
            "timestamp": self.timestamp,
            "severity": self.severity,
        }


@dataclass(frozen=True, slots=True)
class StatEntry:
    kind: str
    data: dict[str, str]
    timestamp: float

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "data": dict(self.data), "timestamp": self.timestamp}
