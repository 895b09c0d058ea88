"""Provider-agnostic services (interactive SSH session)."""

from __future__ import annotations

from wakeshell.services.ssh import (
    ConnectOptions,
    OpenSSHSession,
    RetrySession,
    SSHManager,
    backoff_delays,
)

__all__ = [
    "ConnectOptions",
    "OpenSSHSession",
    "RetrySession",
    "SSHManager",
    "backoff_delays",
]
