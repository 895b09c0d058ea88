"""Logging formatters and filters for console output."""

from wakeshell.logging.filters import StreamRoutingFilter
from wakeshell.logging.formatters import StreamFormatter

__all__ = ["StreamFormatter", "StreamRoutingFilter"]
