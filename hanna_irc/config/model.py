from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from ..utils import sanitize_nick

_TRUE_VALUES = ("1", "true", "yes", "on")


def _normalize_channels(channels: list[str] | Any) -> list[str]:
    """Normalize autojoin channel names.

    Strips whitespace, adds a leading '#' when the name has no channel
    prefix, and deduplicates case-insensitively while keeping order.
    """
    if isinstance(channels, str):
        channels = channels.split(",")
    if not isinstance(channels, list):
        raise ValueError("channels must be a list or comma separated string")
    seen: dict[str, str] = {}
    for ch in channels:
        if not isinstance(ch, str):
            continue
        name = ch.strip()
        if not name:
            continue
        if name[0] not in "#&":
            name = f"#{name}"
        seen.setdefault(name.lower(), name)
    return list(seen.values())


def _split_addr(addr: str) -> tuple[str, int | None]:
    host, sep, port = addr.rpartition(":")
    if not sep or not port.isdigit():
        return addr, None
    return host.strip("[]"), int(port)


def _env_bool(env: Mapping[str, str], key: str, default: bool = False) -> bool:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUE_VALUES


class BotConfig(BaseModel):
    """Connection settings for the IRC client.

    Attributes:
        host: IRC server host name.
        port: IRC server port (6697 with TLS, 6667 without by default).
        tls: Whether to wrap the socket in TLS.
        tls_insecure: Skip certificate verification.
        password: Optional server password sent as PASS.
        nick: Bot nickname, sanitized to characters IRC accepts.
        user: Ident/username sent in USER.
        realname: Real name sent in USER.
        autojoin: Channels joined after registration.
        capabilities: IRCv3 capabilities requested with CAP REQ.
    """

    host: str = Field(default="irc.libera.chat", min_length=1)
    port: int = Field(default=6697, ge=1, le=65535)
    tls: bool = True
    tls_insecure: bool = False
    password: str | None = None
    nick: str = "Hanna"
    user: str = "hanna"
    realname: str = "Hanna IRC bot"
    autojoin: list[str] = Field(default_factory=list)
    capabilities: list[str] = Field(
        default_factory=lambda: ["message-tags", "server-time", "multi-prefix"]
    )

    @field_validator("nick", mode="before")
    @classmethod
    def validate_nick(cls, v: Any) -> str:
        return sanitize_nick(v if isinstance(v, str) else None)

    @field_validator("user", mode="before")
    @classmethod
    def validate_user(cls, v: Any) -> str:
        cleaned = sanitize_nick(v if isinstance(v, str) else None)
        return cleaned.lower()

    @field_validator("autojoin", mode="before")
    @classmethod
    def validate_autojoin(cls, v: Any) -> list[str]:
        return _normalize_channels(v)

    @field_validator("capabilities", mode="before")
    @classmethod
    def validate_capabilities(cls, v: Any) -> list[str]:
        if isinstance(v, str):
            v = v.replace(",", " ").split()
        if not isinstance(v, list):
            raise ValueError("capabilities must be a list")
        return list(dict.fromkeys(c.strip() for c in v if isinstance(c, str) and c.strip()))

    @model_validator(mode="after")
    def validate_password(self) -> BotConfig:
        if self.password is not None and not self.password.strip():
            self.password = None
        return self

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> BotConfig:
        """Build the configuration from ``IRC_*`` / ``AUTOJOIN`` variables.

        ``IRC_ADDR`` is ``host[:port]``; without a port, 6697 is used with
        TLS and 6667 without.
        """
        env = os.environ if env is None else env
        tls = _env_bool(env, "IRC_TLS", default=True)
        data: dict[str, Any] = {
            "tls": tls,
            "tls_insecure": _env_bool(env, "IRC_TLS_INSECURE"),
        }
        addr = env.get("IRC_ADDR", "").strip()
        if addr:
            host, port = _split_addr(addr)
            data["host"] = host
            data["port"] = port if port is not None else (6697 if tls else 6667)
        elif not tls:
            data["port"] = 6667
        for key, field_name in (
            ("IRC_PASS", "password"),
            ("IRC_NICK", "nick"),
            ("IRC_USER", "user"),
            ("IRC_NAME", "realname"),
            ("AUTOJOIN", "autojoin"),
            ("IRC_CAPS", "capabilities"),
        ):
            value = env.get(key)
            if value is not None and value.strip():
                data[field_name] = value.strip()
        return cls.model_validate(data)

    def to_dict(self) -> dict[str, Any]:
        """Dictionary form with the password masked."""
        data = self.model_dump()
        if data.get("password"):
            data["password"] = "***"
        return data
