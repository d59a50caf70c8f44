"""Root logging setup for the IRC client: colored console output, keepalive
filtering and a per-category error tally."""

import atexit
import logging
import os
import sys
import threading
import time
from collections import defaultdict
from typing import Any

import colorlog


class PingFilter(logging.Filter):
    """Drops the ``<<`` / ``>>`` trace lines for PING and PONG."""

    _MARKERS = ("<< PING", "<< PONG", ">> PING", ">> PONG")

    def filter(self, record):
        message = record.getMessage()
        return not any(marker in message for marker in self._MARKERS)


class ErrorAggregator:
    """Counts structured errors per category (network, registration, ...).

    A category whose hourly rate crosses the alert threshold gets a CRITICAL
    line; the tally is printed once more at exit.
    """

    def __init__(self, max_per_type: int = 1000):
        self.errors: dict[str, list[dict[str, Any]]] = defaultdict(list)
        self.lock = threading.Lock()
        self.start_time = time.time()
        self.max_per_type = max_per_type

    def record_error(self, error_type: str, message: str, context: dict[str, Any] | None = None) -> None:
        with self.lock:
            error_entry = {
                "timestamp": time.time(),
                "message": message,
                "context": context or {},
            }
            self.errors[error_type].append(error_entry)

            if len(self.errors[error_type]) > self.max_per_type:
                self.errors[error_type] = self.errors[error_type][-self.max_per_type:]

    def get_error_summary(self) -> dict[str, Any]:
        with self.lock:
            summary = {}
            current_time = time.time()
            runtime_hours = (current_time - self.start_time) / 3600

            for error_type, occurrences in self.errors.items():
                recent_count = len([e for e in occurrences if current_time - e["timestamp"] < 3600])
                total_count = len(occurrences)
                rate_per_hour = total_count / max(runtime_hours, 1)

                summary[error_type] = {
                    "total_count": total_count,
                    "recent_count": recent_count,
                    "rate_per_hour": rate_per_hour,
                    "last_occurrence": occurrences[-1] if occurrences else None,
                }

            return summary

    def should_alert(self, error_type: str, threshold_rate: float = 10.0) -> bool:
        """True when ``error_type`` exceeds ``threshold_rate`` per hour."""
        summary = self.get_error_summary()
        if error_type not in summary:
            return False
        return summary[error_type]["rate_per_hour"] > threshold_rate

    def reset(self) -> None:
        with self.lock:
            self.errors.clear()
            self.start_time = time.time()

    def log_summary_report(self) -> None:
        summary = self.get_error_summary()
        if not summary:
            logging.info("No errors recorded in current session")
            return

        logging.warning("🚨 ERROR SUMMARY REPORT")
        for error_type, stats in summary.items():
            logging.warning(
                f"  {error_type}: {stats['total_count']} total, "
                f"{stats['recent_count']} in last hour, "
                f"{stats['rate_per_hour']:.1f}/hour"
            )
            if stats["last_occurrence"]:
                logging.warning(f"    Last: {stats['last_occurrence']['message']}")


error_aggregator = ErrorAggregator()


def log_structured_error(
    error_type: str,
    message: str,
    exception: Exception | None = None,
    context: dict[str, Any] | None = None,
    level: int = logging.ERROR,
) -> None:
    """Log ``[CATEGORY] message | Exception: ... | Context: k=v`` and count it.

    ``error_type`` is the category from ``errors.handling.error_category``
    (network, timeout, registration, parsing, internal).
    """
    structured_message = f"[{error_type.upper()}] {message}"

    if exception:
        structured_message += f" | Exception: {type(exception).__name__}: {str(exception)}"

    if context:
        context_str = " | ".join(f"{k}={v}" for k, v in context.items())
        structured_message += f" | Context: {context_str}"

    logging.log(level, structured_message)

    error_aggregator.record_error(error_type, message, context)

    if error_aggregator.should_alert(error_type):
        logging.critical(
            f"🚨 HIGH ERROR RATE ALERT: {error_type} occurring at "
            f"{error_aggregator.get_error_summary()[error_type]['rate_per_hour']:.1f}/hour"
        )


class LoggerConfigurator:
    """Installs the colorlog handler on the root logger.

    ``config`` keys: ``show_keepalive`` keeps PING/PONG lines, ``final_summary``
    prints the error tally at exit.
    """

    def __init__(self, config=None):
        self.config = config or {}

    def configure(self):
        """``DEBUG=true|1|yes`` selects DEBUG, anything else INFO."""
        debug_env = os.environ.get("DEBUG", "").lower()
        log_level = logging.DEBUG if debug_env in ("true", "1", "yes") else logging.INFO

        formatter = colorlog.ColoredFormatter(
            "%(asctime)s %(log_color)s%(levelname)-8s%(reset)s %(message_log_color)s%(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "magenta",
            },
            secondary_log_colors={
                "message": {
                    "ERROR": "red",
                    "CRITICAL": "magenta",
                }
            },
            reset=True,
        )

        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(formatter)
        if not self.config.get("show_keepalive", False):
            handler.addFilter(PingFilter())

        logging.basicConfig(
            level=log_level,
            handlers=[handler],
            format="%(message)s",
            force=True,
        )

        root_logger = logging.getLogger()
        root_logger.setLevel(log_level)

        # asyncio debug chatter is not useful for this bot
        logging.getLogger("asyncio").setLevel(logging.WARNING)

        if self.config.get("final_summary", True):
            atexit.register(self._log_final_error_summary)

    def _log_final_error_summary(self):
        try:
            logging.info("📊 Final error summary before shutdown:")
            error_aggregator.log_summary_report()
        except Exception as e:  # noqa: BLE001
            logging.error(f"Failed to log final error summary: {e}")
