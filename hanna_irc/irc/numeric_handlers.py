"""Handlers for server numerics.

Each handler takes the parsed message; the ones that need to answer the
server are coroutines, the rest only touch the state store. ``table()``
builds the exact-code map and ``range_fallbacks()`` the per-range defaults
used by the dispatcher.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from ..constants import DEFAULT_NICK, NICK_MAX_LENGTH
from ..logs.logger import logger
from . import numerics as n
from .models import ListEntry
from .numerics import NumericRange
from .parser import IRCMessage

if TYPE_CHECKING:  # pragma: no cover
    from .client import AsyncIRCClient
    from .state import StateStore

Handler = Callable[[IRCMessage], Awaitable[None] | None]

_VERSION_RE = re.compile(r"running version (.+)$")
_CREATED_RE = re.compile(r"created (.+)$")
_LUSERCLIENT_RE = re.compile(r"(\d+) users and (\d+) invisible on (\d+) servers")
_LUSERME_RE = re.compile(r"I have (\d+) clients and (\d+) servers")
_CERTFP_RE = re.compile(r"fingerprint (.+)$")
_ACTUALLY_RE = re.compile(r"is actually (.+)")
_COUNTRY_RE = re.compile(r"from (.+)$")


def _int(value: str, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _stat_data(msg: IRCMessage) -> dict[str, str]:
    data = {"numeric": msg.command, "raw": " ".join(msg.params)}
    for index, arg in enumerate(msg.params[:-1]):
        data[f"arg{index}"] = arg
    if msg.params:
        data["trailing"] = msg.trailing
    return data


class NumericHandlers:  # pylint: disable=too-many-public-methods
    def __init__(self, client: AsyncIRCClient) -> None:
        self.client = client

    @property
    def store(self) -> StateStore:
        return self.client.store

    def table(self) -> dict[str, Handler]:
        stats = dict.fromkeys(n.STATS_NUMERICS, self.stats_numeric)
        nick_rejected = dict.fromkeys(n.NICK_REJECTED, self.nick_rejected)
        fatal = dict.fromkeys(n.FATAL_REGISTRATION, self.fatal_registration)
        return {
            n.RPL_WELCOME: self.welcome,
            n.RPL_YOURHOST: self.your_host,
            n.RPL_CREATED: self.created,
            n.RPL_MYINFO: self.my_info,
            n.RPL_ISUPPORT: self.isupport,
            n.RPL_LUSERCLIENT: self.luser_client,
            n.RPL_LUSEROP: self.luser_counter("operators"),
            n.RPL_LUSERUNKNOWN: self.luser_counter("unknown_connections"),
            n.RPL_LUSERCHANNELS: self.luser_counter("channels_formed"),
            n.RPL_LUSERME: self.luser_me,
            n.RPL_ADMINME: self.admin_me,
            n.RPL_ADMINLOC1: self.admin_line("location1"),
            n.RPL_ADMINLOC2: self.admin_line("location2"),
            n.RPL_ADMINEMAIL: self.admin_line("email"),
            n.RPL_LOCALUSERS: self.user_counts("local_users", "max_local_users"),
            n.RPL_GLOBALUSERS: self.user_counts("global_users", "max_global_users"),
            n.RPL_WHOISCERTFP: self.whois_certfp,
            n.RPL_AWAY: self.away,
            n.RPL_UNAWAY: self.self_away(False),
            n.RPL_NOWAWAY: self.self_away(True),
            n.RPL_WHOISREGNICK: self.whois_flag("registered"),
            n.RPL_WHOISUSER: self.whois_user,
            n.RPL_WHOISSERVER: self.whois_server,
            n.RPL_WHOISOPERATOR: self.whois_operator,
            n.RPL_WHOISIDLE: self.whois_idle,
            n.RPL_ENDOFWHOIS: self.end_of_whois,
            n.RPL_WHOISCHANNELS: self.whois_channels,
            n.RPL_LIST: self.list_entry,
            n.RPL_LISTEND: self.list_end,
            n.RPL_CHANNELMODEIS: self.channel_mode_is,
            n.RPL_CHANNEL_URL: self.channel_url,
            n.RPL_CREATIONTIME: self.creation_time,
            n.RPL_WHOISACCOUNT: self.whois_account,
            n.RPL_NOTOPIC: self.no_topic,
            n.RPL_TOPIC: self.topic,
            n.RPL_TOPICWHOTIME: self.topic_who_time,
            n.RPL_WHOISBOT: self.whois_bot,
            n.RPL_WHOISACTUALLY: self.whois_actually,
            "344": self.whois_country,
            n.RPL_INVITELIST: self.list_mode_entry("I"),
            "347": self.end_of_list,
            n.RPL_EXCEPTLIST: self.list_mode_entry("e"),
            "349": self.end_of_list,
            n.RPL_NAMREPLY: self.names_reply,
            n.RPL_ENDOFNAMES: self.end_of_names,
            n.RPL_BANLIST: self.list_mode_entry("b"),
            "368": self.end_of_list,
            n.RPL_INFO: self.info,
            n.RPL_MOTD: self.motd,
            n.RPL_MOTDSTART: self.motd_start,
            n.RPL_ENDOFMOTD: self.end_of_motd,
            n.RPL_WHOISHOST: self.whois_extra("host_info"),
            n.RPL_WHOISMODES: self.whois_extra("user_modes"),
            n.RPL_VISIBLEHOST: self.visible_host,
            "569": self.whois_asn,
            n.RPL_WHOISSECURE: self.whois_secure,
            n.RPL_LOGGEDIN: self.logged_in,
            n.RPL_LOGGEDOUT: self.logged_out,
            n.ERR_NICKLOCKED: self.server_error,
            n.ERR_SASLFAIL: self.server_error,
            n.ERR_SASLTOOLONG: self.server_error,
            **stats,
            **nick_rejected,
            **fatal,
        }

    def range_fallbacks(self) -> dict[NumericRange, Handler]:
        fallbacks: dict[NumericRange, Handler] = {
            group: self.unknown_numeric for group in NumericRange
        }
        fallbacks[NumericRange.ERROR] = self.server_error
        return fallbacks

    # -- registration / server info ---------------------------------------

    async def welcome(self, msg: IRCMessage) -> None:
        nick = msg.param(0) or self.store.nick
        await self.client.on_welcome(nick)

    def your_host(self, msg: IRCMessage) -> None:
        changes: dict[str, str] = {"name": msg.prefix or ""}
        match = _VERSION_RE.search(msg.trailing)
        if match:
            changes["version"] = match.group(1)
        self.store.update_server(**changes)

    def created(self, msg: IRCMessage) -> None:
        match = _CREATED_RE.search(msg.trailing)
        if match:
            self.store.update_server(created=match.group(1))

    def my_info(self, msg: IRCMessage) -> None:
        if len(msg.params) < 4:
            return
        self.store.update_server(
            name=msg.params[1],
            version=msg.params[2],
            user_modes=msg.params[3],
            channel_modes=msg.param(4),
        )

    def isupport(self, msg: IRCMessage) -> None:
        tokens = msg.params[1:]
        if tokens and " " in tokens[-1]:
            tokens = tokens[:-1]
        self.store.update_isupport(tokens)

    def luser_client(self, msg: IRCMessage) -> None:
        match = _LUSERCLIENT_RE.search(msg.trailing)
        if match:
            self.store.update_server(global_users=int(match.group(1)) + int(match.group(2)))

    def luser_counter(self, attr: str) -> Handler:
        def handler(msg: IRCMessage) -> None:
            if len(msg.params) >= 3 and msg.params[1].isdigit():
                self.store.update_server(**{attr: int(msg.params[1])})

        return handler

    def luser_me(self, msg: IRCMessage) -> None:
        match = _LUSERME_RE.search(msg.trailing)
        if match:
            self.store.update_server(local_users=int(match.group(1)))

    def admin_me(self, msg: IRCMessage) -> None:
        if len(msg.params) >= 3:
            self.store.update_admin(server=msg.params[1])

    def admin_line(self, attr: str) -> Handler:
        def handler(msg: IRCMessage) -> None:
            self.store.update_admin(**{attr: msg.trailing})

        return handler

    def user_counts(self, current_attr: str, max_attr: str) -> Handler:
        def handler(msg: IRCMessage) -> None:
            if len(msg.params) < 4:
                return
            if msg.params[1].isdigit() and msg.params[2].isdigit():
                self.store.update_server(
                    **{current_attr: int(msg.params[1]), max_attr: int(msg.params[2])}
                )

        return handler

    # -- MOTD / INFO -------------------------------------------------------

    def motd_start(self, msg: IRCMessage) -> None:  # noqa: ARG002
        self.store.clear_motd()

    def motd(self, msg: IRCMessage) -> None:
        line = msg.trailing
        if line.startswith("- "):
            line = line[2:]
        self.store.append_motd(line)

    def info(self, msg: IRCMessage) -> None:
        self.store.append_motd(msg.trailing)

    def end_of_motd(self, msg: IRCMessage) -> None:  # noqa: ARG002
        logger.log_event(
            "irc",
            "motd_received",
            level=logging.DEBUG,
            nick=self.store.nick,
            lines=self.store.motd_length(),
        )

    # -- away / identity ---------------------------------------------------

    def away(self, msg: IRCMessage) -> None:
        if len(msg.params) >= 2:
            self.store.update_user(msg.params[1], away=True, away_message=msg.trailing)

    def self_away(self, is_away: bool) -> Handler:
        def handler(msg: IRCMessage) -> None:  # noqa: ARG001
            nick = self.store.nick
            if not nick:
                return
            if is_away:
                self.store.update_user(nick, away=True)
            else:
                self.store.update_user(nick, away=False, away_message="")

        return handler

    def visible_host(self, msg: IRCMessage) -> None:
        nick = self.store.nick
        if nick and len(msg.params) >= 2:
            self.store.update_user(nick, extra={"visible_host": msg.params[1]})

    def logged_in(self, msg: IRCMessage) -> None:
        nick = self.store.nick
        if nick and len(msg.params) >= 3:
            self.store.update_user(nick, account=msg.params[2])

    def logged_out(self, msg: IRCMessage) -> None:  # noqa: ARG002
        nick = self.store.nick
        if nick:
            self.store.update_user(nick, account="")

    # -- WHOIS -------------------------------------------------------------

    def whois_user(self, msg: IRCMessage) -> None:
        if len(msg.params) < 6:
            return
        nick, username, host = msg.params[1], msg.params[2], msg.params[3]
        self.store.update_user(
            nick, whois=True, username=username, host=host, real_name=msg.trailing
        )
        self.client.requests.add_entry(
            "whois",
            {
                "type": "user",
                "nick": nick,
                "user": username,
                "host": host,
                "real_name": msg.trailing,
            },
            target=nick,
        )

    def whois_server(self, msg: IRCMessage) -> None:
        if len(msg.params) < 4:
            return
        nick, server = msg.params[1], msg.params[2]
        self.store.update_user(nick, whois=True, server=server, server_info=msg.trailing)
        self.client.requests.add_entry(
            "whois",
            {"type": "server", "nick": nick, "server": server, "server_info": msg.trailing},
            target=nick,
        )

    def whois_operator(self, msg: IRCMessage) -> None:
        if len(msg.params) < 3:
            return
        nick = msg.params[1]
        self.store.update_user(nick, whois=True, operator=True)
        self.client.requests.add_entry(
            "whois",
            {"type": "operator", "nick": nick, "privileges": msg.trailing},
            target=nick,
        )

    def whois_idle(self, msg: IRCMessage) -> None:
        if len(msg.params) < 4:
            return
        nick, seconds = msg.params[1], msg.params[2]
        changes: dict[str, int] = {"idle_seconds": _int(seconds)}
        if len(msg.params) >= 5 and msg.params[3].isdigit():
            changes["signon_time"] = int(msg.params[3])
        self.store.update_user(nick, whois=True, **changes)
        self.client.requests.add_entry(
            "whois",
            {"type": "idle", "nick": nick, "seconds": seconds, "info": msg.trailing},
            target=nick,
        )

    def whois_channels(self, msg: IRCMessage) -> None:
        if len(msg.params) < 3:
            return
        nick = msg.params[1]
        self.client.requests.add_entry(
            "whois",
            {"type": "channels", "nick": nick, "channels": msg.trailing},
            target=nick,
        )

    def end_of_whois(self, msg: IRCMessage) -> None:
        if len(msg.params) >= 2:
            self.client.requests.complete("whois", target=msg.params[1])

    def whois_account(self, msg: IRCMessage) -> None:
        if len(msg.params) >= 3:
            self.store.update_user(msg.params[1], whois=True, account=msg.params[2])

    def whois_bot(self, msg: IRCMessage) -> None:
        if len(msg.params) >= 2:
            self.store.update_user(msg.params[1], whois=True, bot=True)

    def whois_secure(self, msg: IRCMessage) -> None:
        if len(msg.params) >= 2:
            self.store.update_user(msg.params[1], whois=True, secure=True)

    def whois_actually(self, msg: IRCMessage) -> None:
        if len(msg.params) < 3:
            return
        if len(msg.params) >= 4:
            actual = msg.params[2]
        else:
            match = _ACTUALLY_RE.search(msg.trailing)
            if not match:
                return
            actual = match.group(1)
        self.store.update_user(msg.params[1], whois=True, actual_host=actual)

    def whois_certfp(self, msg: IRCMessage) -> None:
        match = _CERTFP_RE.search(msg.trailing)
        if match and len(msg.params) >= 3:
            self.store.update_user(msg.params[1], whois=True, extra={"certfp": match.group(1)})

    def whois_country(self, msg: IRCMessage) -> None:
        match = _COUNTRY_RE.search(msg.trailing)
        if match and len(msg.params) >= 4:
            self.store.update_user(
                msg.params[1],
                whois=True,
                extra={"country_code": msg.params[2], "country": match.group(1)},
            )

    def whois_asn(self, msg: IRCMessage) -> None:
        if len(msg.params) >= 4:
            self.store.update_user(msg.params[1], whois=True, extra={"asn": msg.params[2]})

    def whois_flag(self, key: str) -> Handler:
        def handler(msg: IRCMessage) -> None:
            if len(msg.params) >= 2:
                self.store.update_user(msg.params[1], whois=True, extra={key: "true"})

        return handler

    def whois_extra(self, key: str) -> Handler:
        def handler(msg: IRCMessage) -> None:
            if len(msg.params) >= 3:
                self.store.update_user(msg.params[1], whois=True, extra={key: msg.trailing})

        return handler

    # -- LIST --------------------------------------------------------------

    def list_entry(self, msg: IRCMessage) -> None:
        if len(msg.params) < 3:
            return
        self.client.requests.add_entry(
            "list",
            {"channel": msg.params[1], "users": msg.params[2], "topic": msg.param(3)},
        )

    def list_end(self, msg: IRCMessage) -> None:  # noqa: ARG002
        self.client.requests.complete("list")

    # -- channel info ------------------------------------------------------

    def channel_mode_is(self, msg: IRCMessage) -> None:
        if len(msg.params) >= 3:
            self.store.set_channel_modes(msg.params[1], msg.params[2], msg.params[3:])

    def channel_url(self, msg: IRCMessage) -> None:
        if len(msg.params) >= 3:
            self.store.update_channel(msg.params[1], url=msg.trailing)

    def creation_time(self, msg: IRCMessage) -> None:
        if len(msg.params) >= 3 and msg.params[2].isdigit():
            self.store.update_channel(msg.params[1], created=int(msg.params[2]))

    def no_topic(self, msg: IRCMessage) -> None:
        if len(msg.params) >= 2:
            self.store.update_channel(msg.params[1], topic="")

    def topic(self, msg: IRCMessage) -> None:
        if len(msg.params) >= 3:
            self.store.update_channel(msg.params[1], topic=msg.trailing)

    def topic_who_time(self, msg: IRCMessage) -> None:
        if len(msg.params) >= 4 and msg.params[3].isdigit():
            self.store.update_channel(
                msg.params[1], topic_set_by=msg.params[2], topic_set_time=int(msg.params[3])
            )

    def list_mode_entry(self, mode: str) -> Handler:
        def handler(msg: IRCMessage) -> None:
            if len(msg.params) < 3:
                return
            entry = ListEntry(
                mask=msg.params[2],
                set_by=msg.param(3),
                set_time=_int(msg.param(4)),
            )
            self.store.add_list_entry(msg.params[1], mode, entry)

        return handler

    def end_of_list(self, msg: IRCMessage) -> None:
        logger.log_event(
            "irc",
            "list_end",
            level=logging.DEBUG,
            nick=self.store.nick,
            channel=msg.param(1),
            numeric=msg.command,
        )

    def names_reply(self, msg: IRCMessage) -> None:
        # Some servers omit the channel type token: "353 me #chan :names".
        if len(msg.params) < 3:
            return
        channel = msg.params[-2]
        self.store.names_add(channel, msg.trailing.split())

    def end_of_names(self, msg: IRCMessage) -> None:
        if len(msg.params) < 2:
            return
        channel = msg.params[1]
        count = self.store.names_end(channel)
        logger.log_event(
            "irc",
            "names_complete",
            level=logging.DEBUG,
            nick=self.store.nick,
            channel=channel,
            members=count,
        )

    # -- errors / stats ----------------------------------------------------

    def server_error(self, msg: IRCMessage) -> None:
        target = msg.params[1] if len(msg.params) > 2 else ""
        error = self.store.record_error(msg.command, target, msg.trailing)
        logger.log_event(
            "irc",
            "server_error",
            level=logging.WARNING if error.severity == "warning" else logging.ERROR,
            nick=self.store.nick,
            code=error.code,
            target=target,
            message=error.message,
            severity=error.severity,
        )

    async def nick_rejected(self, msg: IRCMessage) -> None:
        self.server_error(msg)
        if self.client.registered:
            return
        current = self.store.nick or self.client.config.nick
        if msg.command == n.ERR_ERRONEUSNICKNAME and current != DEFAULT_NICK:
            alternate = DEFAULT_NICK
        else:
            alternate = f"{current[: NICK_MAX_LENGTH - 1]}_"
        logger.log_event(
            "irc",
            "nick_alternate",
            level=logging.WARNING,
            nick=current,
            alternate=alternate,
            code=msg.command,
        )
        self.store.set_nick(alternate)
        await self.client._send_line(f"NICK {alternate}")  # noqa: SLF001

    async def fatal_registration(self, msg: IRCMessage) -> None:
        self.server_error(msg)
        if not self.client.registered:
            await self.client.registration_failed(msg.command, msg.trailing)

    def stats_numeric(self, msg: IRCMessage) -> None:
        self.store.record_stat(f"stats_{msg.command}", _stat_data(msg))

    def unknown_numeric(self, msg: IRCMessage) -> None:
        data = _stat_data(msg)
        group = NumericRange.for_code(msg.command)
        if group is not None:
            data["group"] = group.name.lower()
        self.store.record_stat("unknown_numeric", data)
        logger.log_event(
            "irc",
            "unknown_numeric",
            level=logging.DEBUG,
            nick=self.store.nick,
            numeric=msg.command,
        )
