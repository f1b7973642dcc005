"""
IFRS Bridge utility modules.

Configuration, logging, SSL and the persisted settings store.
"""

from .logging import setup_logging, get_logger
from .settings import config
from .settings_store import SettingsStore
from .ssl import setup_ssl

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    # Settings
    "config",
    "SettingsStore",
    # SSL
    "setup_ssl",
]
