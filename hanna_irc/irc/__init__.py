"""IRC subsystem package.

Contains parsing, mode codec, dispatch, state tracking, connection lifecycle,
heartbeat, listener and health related modules for the Hanna IRC bot.
"""

from .client import AsyncIRCClient  # noqa: F401
from .connection import ConnectionState, IRCConnectionController  # noqa: F401
from .dispatcher import IRCDispatcher  # noqa: F401
from .events import TriggerEvent  # noqa: F401
from .health import IRCHealthMonitor  # noqa: F401
from .heartbeat import IRCHeartbeat  # noqa: F401
from .listener import IRCListener  # noqa: F401
from .mention import is_mention  # noqa: F401
from .modes import ModeChange, decode_modes, encode_modes  # noqa: F401
from .parser import IRCMessage, PrivMsg, build_privmsg, parse_irc_message  # noqa: F401
from .state import StateSnapshot, StateStore  # noqa: F401

__all__ = [
    "AsyncIRCClient",
    "ConnectionState",
    "IRCConnectionController",
    "IRCDispatcher",
    "IRCHealthMonitor",
    "IRCHeartbeat",
    "IRCListener",
    "IRCMessage",
    "ModeChange",
    "PrivMsg",
    "StateSnapshot",
    "StateStore",
    "TriggerEvent",
    "build_privmsg",
    "decode_modes",
    "encode_modes",
    "is_mention",
    "parse_irc_message",
]
