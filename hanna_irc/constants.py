"""
Configuration constants for the Hanna IRC bot

This module contains the tunables used throughout the application.
Each constant can be overridden by setting an environment variable with the same name.
"""

import os


def _get_env_int(name: str, default: int) -> int:
    """Retrieve an integer value from an environment variable.

    Attempts to parse the environment variable as an integer. If the variable
    is not set or cannot be parsed, prints a warning and returns the default value.

    Args:
        name: The name of the environment variable to read.
        default: The default integer value to return if parsing fails.

    Returns:
        The parsed integer value from the environment, or the default if unavailable.
    """
    value = os.getenv(name)
    if value is not None:
        try:
            return int(value)
        except ValueError:
            print(
                f"Warning: Invalid integer value for {name}='{value}', using default {default}"
            )
    return default


def _get_env_float(name: str, default: float) -> float:
    """Retrieve a float value from an environment variable.

    Attempts to parse the environment variable as a float. If the variable
    is not set or cannot be parsed, prints a warning and returns the default value.

    Args:
        name: The name of the environment variable to read.
        default: The default float value to return if parsing fails.

    Returns:
        The parsed float value from the environment, or the default if unavailable.
    """
    value = os.getenv(name)
    if value is not None:
        try:
            return float(value)
        except ValueError:
            print(
                f"Warning: Invalid float value for {name}='{value}', using default {default}"
            )
    return default


# Connection timeouts
IRC_CONNECT_TIMEOUT = _get_env_float(
    "IRC_CONNECT_TIMEOUT", 15.0
)  # Seconds allowed for the TCP/TLS connect
IRC_REGISTRATION_TIMEOUT = _get_env_float(
    "IRC_REGISTRATION_TIMEOUT", 60.0
)  # Seconds between connect and RPL_WELCOME before giving up
IRC_SHUTDOWN_GRACE = _get_env_float(
    "IRC_SHUTDOWN_GRACE", 2.0
)  # Seconds to wait for the ingestion task after closing the socket

# Reconnect backoff
BACKOFF_BASE_DELAY = _get_env_float("BACKOFF_BASE_DELAY", 1.0)  # First retry delay
BACKOFF_MULTIPLIER = _get_env_float("BACKOFF_MULTIPLIER", 2.0)  # Growth per failure
BACKOFF_MAX_DELAY = _get_env_float("BACKOFF_MAX_DELAY", 120.0)  # Upper bound
BACKOFF_JITTER_FACTOR = _get_env_float(
    "BACKOFF_JITTER_FACTOR", 0.2
)  # +/- fraction applied to each delay
BACKOFF_STABLE_CONNECTION = _get_env_float(
    "BACKOFF_STABLE_CONNECTION", 30.0
)  # Minimum CONNECTED seconds before the backoff resets

# Liveness
PING_INTERVAL = _get_env_float(
    "PING_INTERVAL", 90.0
)  # Idle seconds before we PING the server ourselves
SERVER_ACTIVITY_TIMEOUT = _get_env_float(
    "SERVER_ACTIVITY_TIMEOUT", 240.0
)  # Idle seconds before the connection is declared dead
HEARTBEAT_CHECK_INTERVAL = _get_env_float(
    "HEARTBEAT_CHECK_INTERVAL", 15.0
)  # Seconds between heartbeat checks

# State store capacities
ERROR_LOG_CAPACITY = _get_env_int("ERROR_LOG_CAPACITY", 100)  # Recent IRC errors kept
STATS_LOG_CAPACITY = _get_env_int("STATS_LOG_CAPACITY", 1000)  # Stat entries kept

# Outbound messages
PRIVMSG_MAX_CHUNK = _get_env_int(
    "PRIVMSG_MAX_CHUNK", 450
)  # Characters per PRIVMSG body (512 byte line limit minus overhead)

# Pending LIST / WHOIS requests
REQUEST_RESULT_TIMEOUT = _get_env_float(
    "REQUEST_RESULT_TIMEOUT", 10.0
)  # Seconds a caller waits for LIST/WHOIS completion
REQUEST_EXPIRY_SECONDS = _get_env_float(
    "REQUEST_EXPIRY_SECONDS", 30.0
)  # Seconds before an unanswered request is discarded

# Nick handling
DEFAULT_NICK = "Hanna"
NICK_MAX_LENGTH = _get_env_int("NICK_MAX_LENGTH", 63)
