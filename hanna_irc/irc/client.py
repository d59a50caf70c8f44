"""Async IRC client: connection supervisor, registration and outbound API."""

from __future__ import annotations

import asyncio
import concurrent.futures
import inspect
import logging
import ssl
import time
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any, TypeVar

from ..config.model import BotConfig
from ..constants import (
    HEARTBEAT_CHECK_INTERVAL,
    IRC_CONNECT_TIMEOUT,
    IRC_REGISTRATION_TIMEOUT,
    IRC_SHUTDOWN_GRACE,
    PING_INTERVAL,
    REQUEST_RESULT_TIMEOUT,
    SERVER_ACTIVITY_TIMEOUT,
)
from ..errors.handling import log_error
from ..errors.internal import (
    InvalidTransitionError,
    NetworkError,
    RegistrationError,
)
from ..logs.logger import logger
from ..utils import sanitize_nick, split_message
from .connection import ConnectionState, IRCConnectionController
from .dispatcher import IRCDispatcher
from .events import TriggerEvent
from .health import IRCHealthMonitor
from .heartbeat import IRCHeartbeat
from .listener import IRCListener
from .requests import RequestTracker
from .state import StateSnapshot, StateStore

T = TypeVar("T")
EventHandler = Callable[[TriggerEvent], Awaitable[None] | None]


class AsyncIRCClient:  # pylint: disable=too-many-instance-attributes
    def __init__(self, config: BotConfig, store: StateStore | None = None):
        self.config = config
        self.store = store or StateStore(config.nick)
        self.requests = RequestTracker()
        self.reader: asyncio.StreamReader | None = None
        self.writer: asyncio.StreamWriter | None = None
        self.running = False
        self.message_buffer = ""
        self.last_server_activity = 0.0
        self.last_ping_from_server = 0.0
        self.last_ping_sent = 0.0
        self.last_pong = 0.0
        self.server_activity_timeout = SERVER_ACTIVITY_TIMEOUT
        self.ping_interval = PING_INTERVAL
        self.read_timeout = HEARTBEAT_CHECK_INTERVAL
        self.registration_timeout = IRC_REGISTRATION_TIMEOUT
        self.registration_deadline = 0.0
        self.event_handler: EventHandler | None = None
        self._write_lock = asyncio.Lock()
        self._stop_event = asyncio.Event()
        self._registration_failure: RegistrationError | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self.connection_controller = IRCConnectionController(self)
        self.health_monitor = IRCHealthMonitor(self)
        self.dispatcher = IRCDispatcher(self)
        self.heartbeat = IRCHeartbeat(self)
        self.listener = IRCListener(self)

    # -- state ----------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self.connection_controller.state

    @property
    def registered(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    def _set_state(self, new_state: ConnectionState) -> None:
        self.connection_controller.transition(new_state)

    def snapshot(self) -> StateSnapshot:
        return self.store.snapshot()

    def is_healthy(self) -> bool:
        return self.health_monitor.is_healthy()

    def get_health_snapshot(self) -> dict[str, Any]:
        return self.health_monitor.get_health_snapshot()

    def set_event_handler(self, handler: EventHandler | None) -> None:
        self.event_handler = handler

    # -- supervisor -----------------------------------------------------------

    async def run(self) -> None:
        """Keep one connection alive until ``stop()`` is called."""
        self._loop = asyncio.get_running_loop()
        self.running = True
        try:
            while not self._stop_event.is_set():
                reason = await self._run_session()
                if self._stop_event.is_set():
                    break
                delay = self.connection_controller.connection_lost(reason)
                if not await self.connection_controller.wait_before_reconnect(
                    delay, self._stop_event
                ):
                    break
        finally:
            self.running = False
            await self._close_transport()
            self.requests.fail_all("client stopped")
            logger.log_event("irc", "stopped", nick=self.store.nick)

    async def _run_session(self) -> str:
        try:
            await self.connect()
            return await self.listener.listen()
        except RegistrationError as e:
            log_error("Registration failed", e, {"code": e.code}, level=logging.WARNING)
            return str(e)
        except (NetworkError, OSError, TimeoutError) as e:
            reason = str(e) or type(e).__name__
            logger.log_event(
                "irc",
                "connect_network_error",
                level=logging.ERROR,
                nick=self.store.nick,
                error=reason,
            )
            log_error("Connection failed", e, {"server": self.config.address})
            return reason
        except InvalidTransitionError:
            if self._stop_event.is_set():
                return "shutdown requested"
            raise
        finally:
            await self._close_transport()

    async def connect(self) -> None:
        """Open the transport and send the registration burst."""
        self._set_state(ConnectionState.CONNECTING)
        logger.log_event(
            "irc",
            "connect_start",
            nick=self.config.nick,
            server=self.config.host,
            port=self.config.port,
            tls=self.config.tls,
        )
        ssl_context = self._ssl_context()
        self.reader, self.writer = await asyncio.wait_for(
            asyncio.open_connection(
                self.config.host,
                self.config.port,
                ssl=ssl_context,
                server_hostname=self.config.host if ssl_context else None,
            ),
            timeout=IRC_CONNECT_TIMEOUT,
        )
        logger.log_event(
            "irc", "connection_established", level=logging.DEBUG, nick=self.config.nick
        )
        self._registration_failure = None
        self.registration_deadline = time.time() + self.registration_timeout
        self.last_server_activity = time.time()
        self._set_state(ConnectionState.REGISTERING)
        await self._register()

    def _ssl_context(self) -> ssl.SSLContext | None:
        if not self.config.tls:
            return None
        context = ssl.create_default_context()
        if self.config.tls_insecure:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        return context

    async def _register(self) -> None:
        config = self.config
        self.store.set_nick(config.nick)
        if config.password:
            await self._send_line(f"PASS {config.password}")
        self.dispatcher.begin_cap_negotiation(config.capabilities)
        if config.capabilities:
            await self._send_line("CAP LS 302")
            await self._send_line(f"CAP REQ :{' '.join(config.capabilities)}")
        await self._send_line(f"NICK {config.nick}")
        await self._send_line(f"USER {config.user} 0 * :{config.realname}")
        logger.log_event(
            "irc",
            "registration_sent",
            level=logging.DEBUG,
            nick=config.nick,
            caps=len(config.capabilities),
        )

    async def on_welcome(self, nick: str) -> None:
        """RPL_WELCOME: registration finished under ``nick``."""
        self.store.set_nick(nick)
        self.store.touch_user(nick)
        self.store.set_connected(True)
        self._set_state(ConnectionState.CONNECTED)
        logger.log_event("irc", "connect_success", nick=nick, server=self.config.host)
        await self._send_line(f"MODE {nick} +B")
        for channel in self.config.autojoin:
            await self.join(channel)

    async def registration_failed(self, code: str, message: str) -> None:
        """Abort the current registration; the listener raises it after this line."""
        logger.log_event(
            "irc",
            "registration_failed",
            level=logging.ERROR,
            nick=self.store.nick,
            code=code,
            message=message,
        )
        self._registration_failure = RegistrationError(
            f"registration refused ({code}): {message}", code=code
        )

    def take_registration_failure(self) -> RegistrationError | None:
        failure, self._registration_failure = self._registration_failure, None
        return failure

    async def stop(self, reason: str = "Shutting down") -> None:
        """Send QUIT, close the socket and end ``run()``."""
        if self._stop_event.is_set():
            return
        self._stop_event.set()
        self._set_state(ConnectionState.SHUTTING_DOWN)
        logger.log_event("irc", "shutdown", nick=self.store.nick, reason=reason)
        writer = self.writer
        if writer is None:
            return
        try:
            await asyncio.wait_for(self._send_line(f"QUIT :{reason}"), IRC_SHUTDOWN_GRACE)
        except (NetworkError, TimeoutError) as e:
            logger.log_event(
                "irc",
                "quit_failed",
                level=logging.DEBUG,
                nick=self.store.nick,
                error=str(e),
            )
        writer.close()

    async def _close_transport(self) -> None:
        writer = self.writer
        self.writer = None
        self.reader = None
        self.store.set_connected(False)
        if writer is None:
            return
        writer.close()
        try:
            await asyncio.wait_for(writer.wait_closed(), IRC_SHUTDOWN_GRACE)
        except (OSError, TimeoutError) as e:
            logger.log_event(
                "irc",
                "close_error",
                level=logging.DEBUG,
                nick=self.store.nick,
                error=str(e) or type(e).__name__,
            )

    # -- writing --------------------------------------------------------------

    async def _send_line(self, message: str) -> None:
        """Write one line; writes are serialized so lines never interleave."""
        if "\r" in message or "\n" in message:
            raise ValueError("IRC lines must not contain CR or LF")
        async with self._write_lock:
            writer = self.writer
            if writer is None:
                raise NetworkError("not connected", data={"line": message[:32]})
            logged = "PASS ***" if message.startswith("PASS ") else message
            logger.log_event(
                "irc", "send", level=logging.DEBUG, human=f">> {logged}", nick=self.store.nick
            )
            try:
                writer.write(f"{message}\r\n".encode())
                await writer.drain()
            except (OSError, ConnectionError) as e:
                raise NetworkError(f"write failed: {e}") from e

    # -- events ---------------------------------------------------------------

    async def emit_event(self, event: TriggerEvent) -> None:
        handler = self.event_handler
        if handler is None:
            return
        try:
            if inspect.iscoroutinefunction(handler):
                await handler(event)
            else:
                maybe = handler(event)
                if inspect.isawaitable(maybe):
                    await maybe
        except Exception as e:  # noqa: BLE001
            logger.log_event(
                "irc",
                "event_handler_error",
                level=logging.ERROR,
                nick=self.store.nick,
                event_type=event.event_type,
                error=str(e),
                error_type=type(e).__name__,
            )

    # -- outbound commands ----------------------------------------------------

    @staticmethod
    def _require(value: str, what: str) -> str:
        value = value.strip()
        if not value or " " in value:
            raise ValueError(f"invalid {what}: {value!r}")
        return value

    async def join(self, channel: str) -> None:
        await self._send_line(f"JOIN {self._require(channel, 'channel')}")

    async def part(self, channel: str, reason: str = "") -> None:
        channel = self._require(channel, "channel")
        await self._send_line(f"PART {channel} :{reason}" if reason else f"PART {channel}")

    async def change_nick(self, nick: str) -> str:
        """Request a nick change; the sanitized nick is returned."""
        clean = sanitize_nick(nick)
        if not self.registered:
            self.store.set_nick(clean)
        await self._send_line(f"NICK {clean}")
        return clean

    async def privmsg(self, target: str, text: str) -> int:
        """Send ``text`` as one PRIVMSG per line/chunk; returns the line count."""
        target = self._require(target, "target")
        chunks = split_message(text)
        for chunk in chunks:
            await self._send_line(f"PRIVMSG {target} :{chunk}")
        return len(chunks)

    async def notice(self, target: str, text: str) -> int:
        target = self._require(target, "target")
        chunks = split_message(text)
        for chunk in chunks:
            await self._send_line(f"NOTICE {target} :{chunk}")
        return len(chunks)

    async def mode(self, target: str, flags: str, *args: str) -> None:
        target = self._require(target, "target")
        flags = self._require(flags, "mode flags")
        await self._send_line(" ".join(["MODE", target, flags, *args]))

    async def send_raw(self, line: str) -> None:
        if not line.strip():
            raise ValueError("raw line is empty")
        await self._send_line(line)

    async def list_channels(
        self, timeout: float = REQUEST_RESULT_TIMEOUT
    ) -> list[dict[str, str]]:
        request = self.requests.create("list")
        await self._send_line("LIST")
        return await self.requests.wait(request, timeout)

    async def whois(
        self, nick: str, timeout: float = REQUEST_RESULT_TIMEOUT
    ) -> list[dict[str, str]]:
        nick = self._require(nick, "nick")
        request = self.requests.create("whois", nick)
        await self._send_line(f"WHOIS {nick}")
        return await self.requests.wait(request, timeout)

    def submit_threadsafe(
        self, coro: Coroutine[Any, Any, T]
    ) -> concurrent.futures.Future[T]:
        """Schedule ``coro`` on the client's loop from another thread."""
        loop = self._loop
        if loop is None or loop.is_closed():
            coro.close()
            raise NetworkError("client loop is not running")
        return asyncio.run_coroutine_threadsafe(coro, loop)
