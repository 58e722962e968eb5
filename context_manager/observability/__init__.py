"""
Logging helpers. Everything goes to stderr; stdout belongs to the protocol.
"""

from .logging import JSONFormatter, configure_logging

__all__ = ["JSONFormatter", "configure_logging"]
