"""Trigger events handed to the forwarding collaborator."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class TriggerEvent:
    event_type: str
    sender: str
    target: str
    message: str
    full_message: str
    bot_nick: str
    tags: dict[str, str | None] = field(default_factory=dict)
    timestamp: int = field(default_factory=lambda: int(time.time()))

    def to_payload(self) -> dict[str, Any]:
        """Wire form consumed by the webhook forwarder."""
        payload: dict[str, Any] = {
            "eventType": self.event_type,
            "sender": self.sender,
            "target": self.target,
            "message": self.message,
            "fullMessage": self.full_message,
            "botNick": self.bot_nick,
            "timestamp": self.timestamp,
        }
        if self.tags:
            payload["messageTags"] = dict(self.tags)
        return payload
