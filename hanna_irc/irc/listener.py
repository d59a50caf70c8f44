"""Ingestion loop: reads the socket and feeds the dispatcher."""

from __future__ import annotations

import asyncio
import codecs
import logging
import time
from typing import TYPE_CHECKING

from ..errors.internal import NetworkError, RegistrationError
from ..logs.logger import logger
from .connection import ConnectionState

if TYPE_CHECKING:  # pragma: no cover
    from .client import AsyncIRCClient


class IRCListener:
    """Owns the read loop and delegates message handling & heartbeat checks."""

    def __init__(self, client: AsyncIRCClient):
        self.client = client
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    async def listen(self) -> str:
        """Run until the transport ends; returns why it ended.

        Raises:
            NetworkError: the socket failed mid-read.
            RegistrationError: registration was refused or timed out.
        """
        self._initialize_listening()
        try:
            while True:
                reason = await self._process_read_cycle()
                if reason:
                    return reason
        finally:
            self._finalize_listening()

    def _initialize_listening(self) -> None:
        logger.log_event(
            "irc", "listener_start", level=logging.DEBUG, nick=self.client.store.nick
        )
        self.client.last_server_activity = time.time()
        self.client.message_buffer = ""
        self._decoder.reset()

    async def _process_read_cycle(self) -> str | None:
        try:
            reason = await self._handle_data_read()
        except TimeoutError:
            reason = await self._handle_read_timeout()
        except (OSError, ConnectionError) as e:
            raise NetworkError(str(e) or type(e).__name__) from e
        self._check_registration()
        return reason

    async def _handle_data_read(self) -> str | None:
        reader = self.client.reader
        if reader is None:
            return "no reader"
        data = await asyncio.wait_for(reader.read(4096), timeout=self.client.read_timeout)
        if not data:
            logger.log_event(
                "irc",
                "connection_lost",
                level=logging.WARNING,
                nick=self.client.store.nick,
            )
            return "connection closed by server"
        # multi-byte characters may straddle reads
        decoded_data = self._decoder.decode(data)
        self.client.message_buffer = await self.client.dispatcher.process_incoming_data(
            self.client.message_buffer, decoded_data
        )
        if await self.client.heartbeat.perform_periodic_checks():
            return "server activity timeout"
        return None

    async def _handle_read_timeout(self) -> str | None:
        if await self.client.heartbeat.perform_periodic_checks():
            return "server activity timeout"
        return None

    def _check_registration(self) -> None:
        client = self.client
        failure = client.take_registration_failure()
        if failure is not None:
            raise failure
        if (
            client.connection_controller.state is ConnectionState.REGISTERING
            and time.time() > client.registration_deadline
        ):
            raise RegistrationError("registration timed out")

    def _finalize_listening(self) -> None:
        logger.log_event(
            "irc", "listener_stopped", level=logging.DEBUG, nick=self.client.store.nick
        )
