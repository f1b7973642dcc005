"""
Structured logging setup using structlog.

Renders one line per event: timestamp, level, a status icon, the event name
and any bound context as ``key=value`` pairs.
"""

import logging
import sys
from typing import Any, Dict, Optional

import structlog

from ..settings import config

LEVEL_ICONS = {
    "debug": "·",
    "info": "✓",
    "warning": "⚠",
    "error": "✗",
    "critical": "✗",
}


def custom_renderer(_logger: Any, _method_name: Optional[str], event_dict: Dict[str, Any]) -> str:
    """
    Render a structlog event dictionary as a single readable line.

    Args:
        _logger: Wrapped logger (unused).
        _method_name: Name of the log method called (unused).
        event_dict: Event dictionary produced by the processor chain.

    Returns:
        Formatted log line.
    """
    event_dict = dict(event_dict)
    timestamp = event_dict.pop("timestamp", "")
    level = str(event_dict.pop("level", "info")).lower()
    event = event_dict.pop("event", "")
    icon = LEVEL_ICONS.get(level, " ")

    line = f"{timestamp} {level.upper():<8} {icon} {event}"
    if event_dict:
        context = " ".join(f"{key}={value!r}" for key, value in event_dict.items())
        line = f"{line} | {context}"
    return line


def setup_logging(log_level: Optional[str] = None) -> None:
    """
    Configure stdlib logging and structlog.

    Args:
        log_level: Level name; defaults to ``config.log_level``.
    """
    level_name = (log_level or config.log_level or "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level, force=True)
    logging.getLogger().setLevel(level)
    # Keep HTTP client chatter out of the application log
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
            structlog.processors.format_exc_info,
            custom_renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


def get_logger(name: Optional[str] = None):
    """Return a structlog logger, optionally bound to ``name``."""
    return structlog.get_logger(name or "ifrsbridge")
