"""Heartbeat & periodic connection health checks (packaged)."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from ..logs.logger import logger

if TYPE_CHECKING:  # pragma: no cover
    from .client import AsyncIRCClient


class IRCHeartbeat:
    def __init__(self, client: AsyncIRCClient):
        self.client = client

    async def perform_periodic_checks(self, now: float | None = None) -> bool:
        """Probe an idle server with PING; True when the link must be dropped."""
        current_time = time.time() if now is None else now
        idle = current_time - self.client.last_server_activity
        if idle > self.client.server_activity_timeout:
            logger.log_event(
                "irc",
                "no_server_activity",
                level=logging.WARNING,
                nick=self.client.store.nick,
                timeout=self.client.server_activity_timeout,
            )
            return True
        if (
            idle > self.client.ping_interval
            and current_time - self.client.last_ping_sent > self.client.ping_interval
        ):
            self.client.last_ping_sent = current_time
            logger.log_event(
                "irc",
                "keepalive_ping",
                level=logging.DEBUG,
                nick=self.client.store.nick,
                idle=round(idle, 1),
            )
            await self.client._send_line(f"PING :{int(current_time)}")  # noqa: SLF001
        return False

    def is_connection_stale(self, now: float | None = None) -> bool:
        current_time = time.time() if now is None else now
        time_since_activity = current_time - self.client.last_server_activity
        return time_since_activity > (self.client.server_activity_timeout / 2)
