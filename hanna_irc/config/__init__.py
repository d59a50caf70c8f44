"""Configuration package exports."""

from .model import BotConfig

__all__ = ["BotConfig"]
