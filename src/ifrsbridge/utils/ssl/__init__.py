"""SSL setup for outgoing HTTPS calls."""

from .ssl_setup import setup_ssl

__all__ = ["setup_ssl"]
