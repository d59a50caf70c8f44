"""Connection lifecycle state machine and reconnect backoff (packaged)."""

from __future__ import annotations

import asyncio
import logging
import secrets
import time
from enum import Enum, auto
from typing import TYPE_CHECKING

from ..constants import (
    BACKOFF_BASE_DELAY,
    BACKOFF_JITTER_FACTOR,
    BACKOFF_MAX_DELAY,
    BACKOFF_MULTIPLIER,
    BACKOFF_STABLE_CONNECTION,
)
from ..errors.internal import InvalidTransitionError
from ..logs.logger import logger
from ..utils import format_duration

if TYPE_CHECKING:  # pragma: no cover
    from .client import AsyncIRCClient


class ConnectionState(Enum):
    DISCONNECTED = auto()
    CONNECTING = auto()
    REGISTERING = auto()
    CONNECTED = auto()
    RECONNECTING = auto()
    SHUTTING_DOWN = auto()


_TRANSITIONS: dict[ConnectionState, frozenset[ConnectionState]] = {
    ConnectionState.DISCONNECTED: frozenset({ConnectionState.CONNECTING}),
    ConnectionState.CONNECTING: frozenset(
        {ConnectionState.REGISTERING, ConnectionState.RECONNECTING}
    ),
    ConnectionState.REGISTERING: frozenset(
        {ConnectionState.CONNECTED, ConnectionState.RECONNECTING}
    ),
    ConnectionState.CONNECTED: frozenset({ConnectionState.RECONNECTING}),
    ConnectionState.RECONNECTING: frozenset({ConnectionState.CONNECTING}),
    ConnectionState.SHUTTING_DOWN: frozenset(),
}


def can_transition(current: ConnectionState, new: ConnectionState) -> bool:
    if new is ConnectionState.SHUTTING_DOWN:
        return True
    return new in _TRANSITIONS[current]


class ReconnectBackoff:
    """Exponential backoff with jitter, reset after a stable connection."""

    def __init__(
        self,
        base: float = BACKOFF_BASE_DELAY,
        multiplier: float = BACKOFF_MULTIPLIER,
        max_delay: float = BACKOFF_MAX_DELAY,
        jitter: float = BACKOFF_JITTER_FACTOR,
        stable_after: float = BACKOFF_STABLE_CONNECTION,
    ) -> None:
        self.base = base
        self.multiplier = multiplier
        self.max_delay = max_delay
        self.jitter = jitter
        self.stable_after = stable_after
        self.failures = 0
        self.last_delay = 0.0

    def raw_delay(self, failures: int) -> float:
        if failures <= 0:
            return 0.0
        delay = self.base * (self.multiplier ** (failures - 1))
        return min(delay, self.max_delay)

    def next_delay(self) -> float:
        """Count one more failure and return the jittered wait before retrying."""
        self.failures += 1
        delay = self.raw_delay(self.failures)
        jitter = delay * self.jitter * (secrets.SystemRandom().random() * 2 - 1)
        self.last_delay = max(0.0, delay + jitter)
        return self.last_delay

    def stable_threshold(self) -> float:
        return max(self.last_delay, self.stable_after)

    def note_connected_for(self, seconds: float) -> bool:
        """Reset when the connection outlived one full backoff cycle."""
        if seconds >= self.stable_threshold():
            self.reset()
            return True
        return False

    def reset(self) -> None:
        self.failures = 0
        self.last_delay = 0.0


class IRCConnectionController:
    """Owns the lifecycle state of the host client and its reconnect pacing."""

    def __init__(self, host: AsyncIRCClient, backoff: ReconnectBackoff | None = None):
        self.host = host
        self.backoff = backoff or ReconnectBackoff()
        self.state = ConnectionState.DISCONNECTED
        self.connected_since = 0.0
        self.last_reconnect_attempt = 0.0

    @property
    def consecutive_failures(self) -> int:
        return self.backoff.failures

    def transition(self, new_state: ConnectionState) -> None:
        if new_state is self.state:
            return
        if not can_transition(self.state, new_state):
            raise InvalidTransitionError(
                f"cannot move from {self.state.name} to {new_state.name}",
                data={"from": self.state.name, "to": new_state.name},
            )
        old_state = self.state
        self.state = new_state
        if new_state is ConnectionState.CONNECTED:
            self.connected_since = time.monotonic()
        logger.log_event(
            "irc",
            "state_change",
            level=logging.DEBUG,
            nick=self.host.store.nick,
            old_state=old_state.name,
            new_state=new_state.name,
        )

    def connection_lost(self, reason: str) -> float:
        """Enter RECONNECTING, clear session state and return the wait.

        A connection that stayed up for a full backoff cycle resets the
        failure count first, so the next attempt uses the base delay.
        """
        host = self.host
        was_connected = self.state is ConnectionState.CONNECTED
        self.transition(ConnectionState.RECONNECTING)
        if was_connected and self.connected_since:
            uptime = time.monotonic() - self.connected_since
            if self.backoff.note_connected_for(uptime):
                logger.log_event(
                    "irc",
                    "backoff_reset",
                    level=logging.DEBUG,
                    nick=host.store.nick,
                    uptime=format_duration(uptime),
                )
        self.connected_since = 0.0
        host.store.reset_session()
        host.requests.fail_all(reason)
        delay = self.backoff.next_delay()
        logger.log_event(
            "irc",
            "reconnect_scheduled",
            level=logging.WARNING,
            nick=host.store.nick,
            reason=reason,
            delay=round(delay, 2),
            attempt=self.backoff.failures,
        )
        return delay

    async def wait_before_reconnect(self, delay: float, stop: asyncio.Event) -> bool:
        """Sleep for ``delay`` unless shutdown is requested; False when stopped."""
        try:
            await asyncio.wait_for(stop.wait(), timeout=delay)
        except TimeoutError:
            self.last_reconnect_attempt = time.time()
            return True
        return False
