"""Health checking helpers (packaged)."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

from .connection import ConnectionState

if TYPE_CHECKING:  # pragma: no cover
    from .client import AsyncIRCClient


class IRCHealthMonitor:
    def __init__(self, host: AsyncIRCClient) -> None:
        self.host = host

    def is_healthy(self) -> bool:
        snap = self.get_health_snapshot()
        healthy = snap.get("healthy")
        return bool(healthy)

    def get_health_snapshot(self, now: float | None = None) -> dict[str, Any]:
        host = self.host
        reasons: list[str] = []
        current_time = time.time() if now is None else now
        self._check_basic_connection_health(reasons)
        time_since_activity = self._check_activity_health(reasons, current_time)
        self._check_operational_health(reasons)
        controller = host.connection_controller
        return {
            "nick": host.store.nick,
            "state": controller.state.name,
            "healthy": len(reasons) == 0,
            "reasons": reasons,
            "connected": controller.state is ConnectionState.CONNECTED,
            "running": host.running,
            "time_since_activity": time_since_activity,
            "time_since_ping": (
                current_time - host.last_ping_from_server
                if host.last_ping_from_server > 0
                else None
            ),
            "consecutive_failures": controller.consecutive_failures,
            "backoff_delay": controller.backoff.last_delay,
            "channels": len(host.store.channel_names()),
            "has_streams": host.reader is not None and host.writer is not None,
        }

    def _check_basic_connection_health(self, reasons: list[str]) -> None:
        h = self.host
        if h.connection_controller.state is not ConnectionState.CONNECTED:
            reasons.append("not_connected")
        if not h.reader or not h.writer:
            reasons.append("missing_streams")

    def _check_activity_health(
        self, reasons: list[str], current_time: float
    ) -> float | None:
        h = self.host
        time_since_activity = (
            current_time - h.last_server_activity
            if h.last_server_activity > 0
            else None
        )
        if time_since_activity is not None:
            if h.heartbeat.is_connection_stale(current_time):
                reasons.append("idle_warning")
            if time_since_activity > h.server_activity_timeout:
                reasons.append("stale_activity")
        return time_since_activity

    def _check_operational_health(self, reasons: list[str]) -> None:
        if self.host.connection_controller.consecutive_failures > 0:
            reasons.append("recent_failures")
