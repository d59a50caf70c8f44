#!/usr/bin/env python3
"""
Main entry point for the Hanna IRC bot
"""

import asyncio
import logging
import signal
import sys

from .config import BotConfig
from .errors.handling import log_error
from .irc.client import AsyncIRCClient
from .logging_config import LoggerConfigurator
from .logs.logger import logger

configurator = LoggerConfigurator()
configurator.configure()


def setup_signal_handlers(
    client: AsyncIRCClient, loop: asyncio.AbstractEventLoop
) -> None:  # pragma: no cover - system interaction
    def handler(signum, _frame):
        logger.log_event(
            "app",
            "shutdown_initiated",
            level=logging.WARNING,
            signal=signal.Signals(signum).name,
        )
        loop.call_soon_threadsafe(lambda: loop.create_task(client.stop()))

    signal.signal(signal.SIGINT, handler)
    signal.signal(signal.SIGTERM, handler)


async def main() -> None:
    """Load the configuration from the environment and run the client.

    The client keeps its single connection alive (reconnecting with
    backoff) until SIGINT or SIGTERM asks it to QUIT.

    Raises:
        SystemExit: If the configuration is invalid or a critical error occurs.
    """
    try:
        config = BotConfig.from_env()
        logger.log_event("app", "start", server=config.address, nick=config.nick)
        client = AsyncIRCClient(config)
        setup_signal_handlers(client, asyncio.get_running_loop())
        await client.run()
    except asyncio.CancelledError:
        raise
    except KeyboardInterrupt:
        pass
    except Exception as e:
        log_error("Main application error", e)
        sys.exit(1)
    finally:
        logger.log_event("app", "shutdown_complete")


def health_check() -> int:
    """Validate the environment configuration; returns the exit code."""
    try:
        config = BotConfig.from_env()
    except ValueError as e:
        logger.log_event("app", "health_check_failed", level=logging.ERROR, error=str(e))
        return 1
    logger.log_event(
        "app", "health_check_passed", server=config.address, nick=config.nick
    )
    return 0


def run() -> None:
    """Synchronous entry point for the application.

    Runs the main asynchronous function and handles top-level exceptions.

    Raises:
        SystemExit: If a critical error occurs during execution.
    """
    if len(sys.argv) > 1 and sys.argv[1] == "--health-check":
        sys.exit(health_check())
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        sys.exit(0)
    except asyncio.CancelledError:
        sys.exit(0)
    except Exception as e:
        log_error("Top-level error", e)
        sys.exit(1)


if __name__ == "__main__":
    run()
