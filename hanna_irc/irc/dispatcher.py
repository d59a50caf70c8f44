"""Message dispatch: routes parsed lines to command and numeric handlers."""

from __future__ import annotations

import inspect
import logging
import time
from typing import TYPE_CHECKING

from ..errors.internal import LineParseError
from ..logs.logger import logger
from .events import TriggerEvent
from .mention import is_mention
from .modes import decode_modes
from .numeric_handlers import Handler, NumericHandlers
from .numerics import NumericRange
from .parser import (
    IRCMessage,
    build_privmsg,
    is_channel_name,
    parse_irc_message,
    split_prefix,
)

if TYPE_CHECKING:  # pragma: no cover
    from .client import AsyncIRCClient
    from .state import StateStore


class IRCDispatcher:
    def __init__(self, client: AsyncIRCClient):
        self.client = client
        self.numeric_handlers = NumericHandlers(client)
        self._commands: dict[str, Handler] = {
            "PING": self._handle_ping,
            "PONG": self._handle_pong,
            "CAP": self._handle_cap,
            "JOIN": self._handle_join,
            "PART": self._handle_part,
            "KICK": self._handle_kick,
            "QUIT": self._handle_quit,
            "NICK": self._handle_nick,
            "MODE": self._handle_mode,
            "TOPIC": self._handle_topic,
            "PRIVMSG": self._handle_privmsg,
            "NOTICE": self._handle_notice,
            "ERROR": self._handle_error,
            "AWAY": self._handle_away,
            "ACCOUNT": self._handle_account,
            "CHGHOST": self._handle_chghost,
        }
        self._numerics: dict[str, Handler] = self.numeric_handlers.table()
        self._ranges: dict[NumericRange, Handler] = (
            self.numeric_handlers.range_fallbacks()
        )
        self._cap_awaiting: set[str] = set()
        self._cap_ended = True

    @property
    def store(self) -> StateStore:
        return self.client.store

    async def process_incoming_data(self, buffer: str, new_data: str) -> str:
        """Append ``new_data`` and dispatch every complete line.

        Returns the unterminated remainder to feed back on the next read.
        """
        buffer += new_data
        self.client.last_server_activity = time.time()
        while "\n" in buffer:
            line, buffer = buffer.split("\n", 1)
            line = line.rstrip("\r")
            if line.strip():
                await self.handle_line(line)
        return buffer

    def handler_for(self, msg: IRCMessage) -> Handler | None:
        if msg.is_numeric:
            handler = self._numerics.get(msg.command)
            if handler is not None:
                return handler
            group = NumericRange.for_code(msg.command)
            if group is not None:
                return self._ranges[group]
            return self.numeric_handlers.unknown_numeric
        return self._commands.get(msg.verb)

    async def handle_line(self, raw_line: str) -> None:
        """Parse and dispatch one line; a bad line or failing handler never escapes."""
        try:
            msg = parse_irc_message(raw_line)
        except LineParseError as e:
            logger.log_event(
                "irc",
                "parse_error",
                level=logging.WARNING,
                nick=self.store.nick,
                error=str(e),
                line=e.line,
            )
            return
        logger.log_event(
            "irc",
            "raw",
            level=logging.DEBUG,
            human=f"<< {raw_line}",
            nick=self.store.nick,
        )
        handler = self.handler_for(msg)
        if handler is None:
            logger.log_event(
                "irc",
                "unhandled_command",
                level=logging.DEBUG,
                nick=self.store.nick,
                command=msg.command,
            )
            return
        try:
            result = handler(msg)
            if inspect.isawaitable(result):
                await result
        except Exception as e:  # noqa: BLE001
            logger.log_event(
                "irc",
                "handler_error",
                level=logging.ERROR,
                nick=self.store.nick,
                command=msg.command,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )

    # -- capability negotiation ---------------------------------------------

    def begin_cap_negotiation(self, requested: list[str]) -> None:
        self._cap_awaiting = {cap.lower() for cap in requested}
        self._cap_ended = not requested

    async def _handle_cap(self, msg: IRCMessage) -> None:
        if len(msg.params) < 3:
            return
        subcommand = msg.params[1].upper()
        caps = msg.trailing.split()
        logger.log_event(
            "irc",
            "cap_response",
            level=logging.DEBUG,
            nick=self.store.nick,
            subcommand=subcommand,
            caps=" ".join(caps),
        )
        if subcommand == "ACK":
            enabled = [c for c in caps if not c.startswith("-")]
            self.store.add_capabilities(c.split("=", 1)[0] for c in enabled)
            self.store.remove_capabilities(c[1:] for c in caps if c.startswith("-"))
            await self._cap_answered(caps)
        elif subcommand == "NAK":
            await self._cap_answered(caps)
        elif subcommand == "NEW":
            await self._request_new_caps(caps)
        elif subcommand == "DEL":
            self.store.remove_capabilities(caps)

    async def _request_new_caps(self, caps: list[str]) -> None:
        wanted = {c.lower() for c in self.client.config.capabilities}
        enabled = self.store.capabilities()
        names = [c.split("=", 1)[0] for c in caps]
        request = [c for c in names if c.lower() in wanted and c not in enabled]
        if request:
            await self.client._send_line(f"CAP REQ :{' '.join(request)}")  # noqa: SLF001

    async def _cap_answered(self, caps: list[str]) -> None:
        for cap in caps:
            self._cap_awaiting.discard(cap.lstrip("-").split("=", 1)[0].lower())
        if not self._cap_awaiting and not self._cap_ended:
            self._cap_ended = True
            await self.client._send_line("CAP END")  # noqa: SLF001

    # -- keepalive ------------------------------------------------------------

    async def _handle_ping(self, msg: IRCMessage) -> None:
        token = msg.trailing or (msg.prefix or "")
        await self.client._send_line(f"PONG :{token}")  # noqa: SLF001
        self.client.last_ping_from_server = time.time()

    def _handle_pong(self, msg: IRCMessage) -> None:  # noqa: ARG002
        self.client.last_pong = time.time()

    async def _handle_error(self, msg: IRCMessage) -> None:
        error = self.store.record_error("ERROR", "", msg.trailing)
        logger.log_event(
            "irc",
            "server_closing",
            level=logging.ERROR,
            nick=self.store.nick,
            message=error.message,
        )
        if not self.client.registered:
            await self.client.registration_failed("ERROR", msg.trailing)

    # -- membership -----------------------------------------------------------

    async def _handle_join(self, msg: IRCMessage) -> None:
        nick, username, host = split_prefix(msg.prefix)
        channel = msg.param(0)
        if not nick or not channel:
            return
        self.store.join(channel, nick, username, host)
        if len(msg.params) >= 3:
            # extended-join: JOIN #chan account :realname
            account = msg.params[1]
            self.store.update_user(
                nick, account="" if account == "*" else account, real_name=msg.params[2]
            )
        if self.store.is_self(nick):
            logger.log_event("irc", "joined", nick=nick, channel=channel)
            return
        logger.log_event(
            "irc", "user_joined", level=logging.DEBUG, nick=nick, channel=channel
        )
        await self._emit(msg, "join", nick, channel, "", "")

    async def _handle_part(self, msg: IRCMessage) -> None:
        nick = msg.nick
        channel = msg.param(0)
        if not nick or not channel:
            return
        reason = msg.param(1)
        is_self = self.store.is_self(nick)
        self.store.part(channel, nick)
        if is_self:
            logger.log_event("irc", "left", nick=nick, channel=channel)
            return
        logger.log_event(
            "irc", "user_left", level=logging.DEBUG, nick=nick, channel=channel
        )
        await self._emit(msg, "part", nick, channel, reason, reason)

    async def _handle_kick(self, msg: IRCMessage) -> None:
        if len(msg.params) < 2:
            return
        kicker = msg.nick
        channel, kicked = msg.params[0], msg.params[1]
        reason = msg.param(2)
        is_self = self.store.is_self(kicked)
        self.store.part(channel, kicked)
        if is_self:
            logger.log_event(
                "irc",
                "kicked",
                level=logging.WARNING,
                nick=kicked,
                channel=channel,
                by=kicker,
                reason=reason,
            )
            return
        text = f"{kicker} kicked {kicked}: {reason}"
        await self._emit(msg, "kick", kicker, channel, text, reason)

    async def _handle_quit(self, msg: IRCMessage) -> None:
        nick = msg.nick
        if not nick:
            return
        reason = msg.param(0)
        channels = self.store.quit_user(nick)
        logger.log_event(
            "irc",
            "user_quit",
            level=logging.DEBUG,
            nick=nick,
            channels=len(channels),
        )
        await self._emit(msg, "quit", nick, "", reason, reason)

    async def _handle_nick(self, msg: IRCMessage) -> None:
        old = msg.nick
        new = msg.param(0)
        if not old or not new:
            return
        was_self = self.store.is_self(old)
        self.store.rename_user(old, new)
        if was_self:
            logger.log_event("irc", "nick_changed", nick=new, old_nick=old)
            return
        await self._emit(msg, "nick", old, "", f"{old} is now known as {new}", new)

    # -- modes / topic --------------------------------------------------------

    async def _handle_mode(self, msg: IRCMessage) -> None:
        if len(msg.params) < 2:
            return
        setter = msg.nick
        target, modestring, args = msg.params[0], msg.params[1], msg.params[2:]
        decoded = decode_modes(modestring, args, self.store.rules)
        if decoded.unmatched:
            logger.log_event(
                "irc",
                "mode_unmatched",
                level=logging.WARNING,
                nick=self.store.nick,
                target=target,
                modes=modestring,
                unmatched=" ".join(str(c) for c in decoded.unmatched),
            )
        if is_channel_name(target, self._chantypes()):
            self.store.apply_channel_modes(target, decoded.changes)
        else:
            self.store.set_user_modes(target, decoded.changes)
        text = f"Mode {target} {modestring} {' '.join(args)}".rstrip()
        await self._emit(msg, "mode", setter, target, text)

    async def _handle_topic(self, msg: IRCMessage) -> None:
        if not msg.params:
            return
        setter = msg.nick
        channel = msg.params[0]
        topic = msg.param(1)
        self.store.update_channel(
            channel,
            topic=topic,
            topic_set_by=msg.prefix or setter,
            topic_set_time=int(time.time()),
        )
        text = f"Topic for {channel} set by {setter}: {topic}"
        await self._emit(msg, "topic", setter, channel, text, topic)

    # -- user metadata --------------------------------------------------------

    def _handle_away(self, msg: IRCMessage) -> None:
        nick = msg.nick
        if not nick:
            return
        message = msg.param(0)
        self.store.update_user(nick, away=bool(message), away_message=message)

    def _handle_account(self, msg: IRCMessage) -> None:
        nick = msg.nick
        account = msg.param(0)
        if nick and account:
            self.store.update_user(nick, account="" if account == "*" else account)

    def _handle_chghost(self, msg: IRCMessage) -> None:
        nick = msg.nick
        if nick and len(msg.params) >= 2:
            self.store.update_user(nick, username=msg.params[0], host=msg.params[1])

    # -- messages -------------------------------------------------------------

    async def _handle_privmsg(self, msg: IRCMessage) -> None:
        priv = build_privmsg(msg)
        if priv is None or not priv.message:
            return
        nick, username, host = split_prefix(msg.prefix)
        self.store.touch_user(nick, username, host)
        logger.log_event(
            "irc",
            "privmsg",
            level=logging.DEBUG,
            nick=self.store.nick,
            human=f"{priv.sender} -> {priv.target}: {priv.message}",
            sender=priv.sender,
            target=priv.target,
        )
        await self._emit(msg, "privmsg", priv.sender, priv.target, priv.message)
        if self.store.is_self(priv.sender):
            return
        if is_mention(self.store.nick, priv.message):
            logger.log_event(
                "irc",
                "mention",
                nick=self.store.nick,
                channel=priv.target,
                sender=priv.sender,
            )
            await self._emit(msg, "mention", priv.sender, priv.target, priv.message)

    async def _handle_notice(self, msg: IRCMessage) -> None:
        if len(msg.params) < 2 or not msg.trailing:
            return
        sender = msg.nick
        target = msg.params[0]
        logger.log_event(
            "irc",
            "notice",
            level=logging.DEBUG,
            nick=self.store.nick,
            sender=sender,
            target=target,
            text=msg.trailing,
        )
        await self._emit(msg, "notice", sender, target, msg.trailing)

    # -- helpers --------------------------------------------------------------

    def _chantypes(self) -> str:
        return self.store.isupport_value("CHANTYPES", "#&")

    async def _emit(
        self,
        msg: IRCMessage,
        event_type: str,
        sender: str,
        target: str,
        message: str,
        full_message: str | None = None,
    ) -> None:
        event = TriggerEvent(
            event_type=event_type,
            sender=sender,
            target=target,
            message=message,
            full_message=message if full_message is None else full_message,
            bot_nick=self.store.nick,
            tags=dict(msg.tags),
        )
        await self.client.emit_event(event)
