"""Error types raised by the instance controller and the session retry engine."""

from __future__ import annotations


class WakeShellError(Exception):
    """Base class for all wakeshell errors."""


class AmbiguousMatchError(WakeShellError):
    """The name filter did not select exactly one instance.

    Parameters
    ----------
    pattern : str
        Name tag pattern that was queried
    reservations : int
        Number of reservations returned
    instances : int
        Number of instances returned across all reservations
    """

    def __init__(self, pattern: str, reservations: int, instances: int) -> None:
        self.pattern = pattern
        self.reservations = reservations
        self.instances = instances
        super().__init__(
            f"Expected exactly 1 instance named '{pattern}', got {instances} "
            f"instance(s) in {reservations} reservation(s)"
        )


class FilterMismatchError(WakeShellError):
    """Resolved instance name does not match the configured prefix/suffix."""


class UnsupportedStateError(WakeShellError):
    """Instance is in, or was asked to move to, a state wakeshell cannot handle."""


class UnexpectedResponseShapeError(WakeShellError):
    """A start/stop call did not report exactly one transitioning instance."""


class ConfirmationTimeoutError(WakeShellError):
    """Instance did not reach the desired state within the wait window."""


class NotRunningError(WakeShellError):
    """Instance is not in the running state."""


class NoPublicAddressError(WakeShellError):
    """Running instance has no public network address."""


class CancelledError(WakeShellError):
    """Operation was interrupted through the cancellation token."""


class SessionFailedError(WakeShellError):
    """A single session attempt ended unsuccessfully.

    Parameters
    ----------
    target : str
        ``user@address`` the attempt was made against
    exit_code : int | None
        Exit status of the ssh process, None if it could not be started
    """

    def __init__(self, target: str, exit_code: int | None, reason: str | None = None) -> None:
        self.target = target
        self.exit_code = exit_code
        if reason is None:
            reason = f"ssh exited with status {exit_code}"
        super().__init__(f"Session to {target} failed: {reason}")


class RetriesExhaustedError(WakeShellError):
    """All session attempts failed.

    Parameters
    ----------
    attempts : int
        Number of attempts made
    last_error : BaseException
        Error of the final attempt
    """

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Failed to connect after {attempts} attempts: last error: {last_error}"
        )


class InstanceStopError(WakeShellError):
    """The instance could not be confirmed stopped on exit.

    This is the one error that means a billable machine may still be running.
    """
