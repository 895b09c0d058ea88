"""Global constants for wakeshell.

This module contains application-wide constants that are used across multiple
components. Provider-specific values live in ``wakeshell.providers.aws.constants``.
"""

from enum import Enum

DEFAULT_SSH_USERNAME = "ubuntu"
"""Login user for the interactive session.

Matches the default user of the Ubuntu images most dev machines are built from.
"""

DEFAULT_SSH_PORT = 22
"""Remote SSH port used when none is configured."""

DEFAULT_MAX_ATTEMPTS = 5
"""Number of session attempts before giving up.

Zero means retry until the session succeeds or the run is interrupted.
"""

DEFAULT_INITIAL_DELAY_SECONDS = 10.0
"""First backoff delay between failed session attempts.

A freshly started instance typically needs some seconds before sshd accepts
connections, so the first retry waits long enough for boot to progress.
"""

MAX_BACKOFF_DELAY_SECONDS = 120.0
"""Upper bound for the exponential backoff delay.

The delay doubles after every failed attempt and then holds at this value.
"""

SSH_ATTEMPT_TIMEOUT_SECONDS = 30
"""Bound for establishing a single session attempt.

Passed to ssh as ConnectTimeout so an unreachable host cannot hang an attempt.
"""

SSH_SERVER_ALIVE_INTERVAL_SECONDS = 15
"""Keepalive interval for an established session.

Together with SSH_SERVER_ALIVE_COUNT_MAX this ends sessions whose peer has
silently gone away instead of blocking forever.
"""

SSH_SERVER_ALIVE_COUNT_MAX = 4
"""Unanswered keepalives tolerated before ssh drops the session."""

SESSION_POLL_INTERVAL_SECONDS = 0.2
"""Interval for checking cancellation while an ssh child process runs."""

SESSION_TERMINATE_TIMEOUT_SECONDS = 10
"""Grace period for a cancelled ssh child before it is killed."""

EXIT_SUCCESS = 0
"""Exit code indicating successful program completion."""

EXIT_ERROR = 1
"""Exit code indicating a general application error.

Also used when the session could not be established or the instance could
not be stopped.
"""

EXIT_CONFIG_ERROR = 2
"""Exit code indicating a configuration error."""

EXIT_INTERRUPTED = 130
"""Exit code used when the run was interrupted by SIGINT/SIGTERM."""


class InstanceState(str, Enum):
    """Instance lifecycle states as reported by the compute API."""

    PENDING = "pending"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    SHUTTING_DOWN = "shutting-down"
    TERMINATED = "terminated"


TERMINAL_STATES = frozenset((InstanceState.SHUTTING_DOWN, InstanceState.TERMINATED))
"""States with no supported way out. Start/stop is refused for them."""
