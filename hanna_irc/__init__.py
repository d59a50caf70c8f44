"""Hanna IRC bot: IRC protocol state tracker and connection supervisor."""

__version__ = "1.0.0"
