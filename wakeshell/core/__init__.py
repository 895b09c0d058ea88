"""Core wakeshell functionality."""

from __future__ import annotations

from wakeshell.core.signals import (
    CancellationToken,
    get_active_token,
    set_active_token,
    setup_signal_handlers,
)

__all__ = [
    "CancellationToken",
    "setup_signal_handlers",
    "set_active_token",
    "get_active_token",
]
