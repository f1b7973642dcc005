"""Logging module for structured logging configuration."""

from .logger_setup import custom_renderer, get_logger, setup_logging

__all__ = ["setup_logging", "get_logger", "custom_renderer"]
