"""Core modules for the session bot."""

from .config import BotConfig
from .health_server import HealthCheckServer
from .logging import setup_logging

__all__ = [
    "BotConfig",
    "HealthCheckServer",
    "setup_logging",
]
