"""Interactive SSH session with retries and exponential backoff."""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Any, Protocol

from wakeshell.constants import (
    DEFAULT_INITIAL_DELAY_SECONDS,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_SSH_PORT,
    DEFAULT_SSH_USERNAME,
    MAX_BACKOFF_DELAY_SECONDS,
    SESSION_POLL_INTERVAL_SECONDS,
    SESSION_TERMINATE_TIMEOUT_SECONDS,
    SSH_ATTEMPT_TIMEOUT_SECONDS,
    SSH_SERVER_ALIVE_COUNT_MAX,
    SSH_SERVER_ALIVE_INTERVAL_SECONDS,
)
from wakeshell.core.signals import CancellationToken
from wakeshell.exceptions import CancelledError, RetriesExhaustedError, SessionFailedError

logger = logging.getLogger(__name__)


def backoff_delays(
    initial_delay: float, max_delay: float = MAX_BACKOFF_DELAY_SECONDS
) -> Iterator[float]:
    """Yield exponentially growing delays, holding at ``max_delay``.

    With initial_delay=10 and max_delay=120 the sequence is
    10, 20, 40, 80, 120, 120, ...

    Parameters
    ----------
    initial_delay : float
        First delay in seconds
    max_delay : float
        Cap applied to every doubled delay

    Yields
    ------
    float
        Next delay in seconds
    """
    delay = initial_delay
    while True:
        yield delay
        delay = min(delay * 2, max_delay)


@dataclass
class ConnectOptions:
    """Parameters for one connect call.

    Attributes
    ----------
    target_address : str
        Host name or IP of the instance
    user : str
        Remote login user
    max_attempts : int
        Attempts before giving up; 0 retries until success or cancellation
    initial_delay : float
        First backoff delay in seconds
    max_delay : float
        Backoff cap in seconds
    attempt_timeout : float
        Bound for establishing one attempt, in seconds
    port : int
        Remote SSH port
    identity_file : str | None
        Private key passed to ssh with -i
    on_give_up : Callable[[BaseException], None] | None
        Observer called with the last error right before giving up
    """

    target_address: str
    user: str = DEFAULT_SSH_USERNAME
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    initial_delay: float = DEFAULT_INITIAL_DELAY_SECONDS
    max_delay: float = MAX_BACKOFF_DELAY_SECONDS
    attempt_timeout: float = SSH_ATTEMPT_TIMEOUT_SECONDS
    port: int = DEFAULT_SSH_PORT
    identity_file: str | None = None
    on_give_up: Callable[[BaseException], None] | None = None

    @property
    def target(self) -> str:
        """``user@address`` string handed to ssh."""
        return f"{self.user}@{self.target_address}"


@dataclass
class RetrySession:
    """Mutable state of one sequence of connection attempts."""

    user: str
    target_address: str
    max_attempts: int
    initial_delay: float
    max_delay: float = MAX_BACKOFF_DELAY_SECONDS
    attempt_count: int = 0
    last_error: BaseException | None = None
    current_delay: float = field(init=False)
    _delays: Iterator[float] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._delays = backoff_delays(self.initial_delay, self.max_delay)
        self.current_delay = next(self._delays)

    @classmethod
    def from_options(cls, options: ConnectOptions) -> RetrySession:
        return cls(
            user=options.user,
            target_address=options.target_address,
            max_attempts=options.max_attempts,
            initial_delay=options.initial_delay,
            max_delay=options.max_delay,
        )

    def record_failure(self, error: BaseException) -> None:
        self.attempt_count += 1
        self.last_error = error

    def can_retry(self) -> bool:
        """Whether the attempt budget allows another attempt."""
        return self.max_attempts == 0 or self.attempt_count < self.max_attempts

    def advance_delay(self) -> float:
        """Return the delay to wait now and double the next one."""
        delay = self.current_delay
        self.current_delay = next(self._delays)
        return delay


class SessionRunner(Protocol):
    """Runs one interactive session attempt."""

    def run(self, options: ConnectOptions, cancel_token: CancellationToken) -> None:
        """Run the session to completion.

        Raises
        ------
        SessionFailedError
            If the session could not be established or ended unsuccessfully
        CancelledError
            If the token was cancelled during the attempt
        """
        ...


class OpenSSHSession:
    """Runs the OpenSSH client attached to the caller's terminal.

    Host key checking is relaxed because the machine's public address changes
    on every start. The ssh process inherits stdin, stdout, stderr and the
    environment; its exit status is the only success signal. ssh passes the
    remote shell's exit status through, so a session the user leaves with
    `exit 1` counts as a failed attempt and is retried, the same as ssh's own
    connection error status 255.

    Parameters
    ----------
    ssh_binary : str
        ssh executable (default: ssh from PATH)
    popen_factory : Callable[..., Any] | None
        Optional factory for creating processes. If None, uses subprocess.Popen
    poll_interval : float
        Seconds between cancellation checks while ssh runs
    terminate_timeout : float
        Grace period after SIGTERM before a cancelled ssh is killed
    """

    def __init__(
        self,
        ssh_binary: str = "ssh",
        popen_factory: Callable[..., Any] | None = None,
        poll_interval: float = SESSION_POLL_INTERVAL_SECONDS,
        terminate_timeout: float = SESSION_TERMINATE_TIMEOUT_SECONDS,
    ) -> None:
        self.ssh_binary = ssh_binary
        self.popen_factory = popen_factory or subprocess.Popen
        self.poll_interval = poll_interval
        self.terminate_timeout = terminate_timeout

    def build_command(self, options: ConnectOptions) -> list[str]:
        """Build the ssh argv for ``options``.

        Parameters
        ----------
        options : ConnectOptions
            Connection parameters

        Returns
        -------
        list[str]
            Command line for subprocess
        """
        command = [
            self.ssh_binary,
            "-o",
            "StrictHostKeyChecking=no",
            "-o",
            f"ConnectTimeout={int(options.attempt_timeout)}",
            "-o",
            f"ServerAliveInterval={SSH_SERVER_ALIVE_INTERVAL_SECONDS}",
            "-o",
            f"ServerAliveCountMax={SSH_SERVER_ALIVE_COUNT_MAX}",
        ]

        if options.port != DEFAULT_SSH_PORT:
            command.extend(["-p", str(options.port)])

        if options.identity_file:
            command.extend(["-i", options.identity_file])

        command.append(options.target)
        return command

    def run(self, options: ConnectOptions, cancel_token: CancellationToken) -> None:
        """Run ssh until it exits or the token is cancelled.

        Parameters
        ----------
        options : ConnectOptions
            Connection parameters
        cancel_token : CancellationToken
            Token observed while ssh runs

        Raises
        ------
        SessionFailedError
            If ssh cannot be started or exits with a non-zero status
        CancelledError
            If the token is cancelled; ssh is stopped before this propagates
        """
        target = options.target
        command = self.build_command(options)
        logger.debug("Running %s", " ".join(command))

        try:
            process = self.popen_factory(command)
        except OSError as e:
            raise SessionFailedError(target, None, reason=str(e)) from e

        try:
            exit_code = self._wait(process, cancel_token)
        finally:
            self._reap(process)

        if exit_code != 0:
            cancel_token.raise_if_cancelled()
            raise SessionFailedError(target, exit_code)

    def _wait(self, process: Any, cancel_token: CancellationToken) -> int:
        while True:
            try:
                return process.wait(timeout=self.poll_interval)
            except subprocess.TimeoutExpired:
                cancel_token.raise_if_cancelled()

    def _reap(self, process: Any) -> None:
        if process.poll() is not None:
            return

        logger.debug("Terminating ssh process %s", process.pid)
        process.terminate()

        try:
            process.wait(timeout=self.terminate_timeout)
        except subprocess.TimeoutExpired:
            logger.warning("ssh process %s did not exit, killing it", process.pid)
            process.kill()
            process.wait()


class SSHManager:
    """Opens the interactive session, retrying with exponential backoff.

    Parameters
    ----------
    cancel_token : CancellationToken | None
        Token observed before every attempt and during every wait
    session : SessionRunner | None
        Session collaborator (default: OpenSSHSession)
    """

    def __init__(
        self,
        cancel_token: CancellationToken | None = None,
        session: SessionRunner | None = None,
    ) -> None:
        self.cancel_token = cancel_token or CancellationToken()
        self.session = session or OpenSSHSession()

    def connect(self, options: ConnectOptions) -> None:
        """Run the session, retrying failed attempts.

        A successful attempt ends the call immediately, whatever budget is
        left. Failed attempts are followed by a backoff wait that doubles up
        to ``options.max_delay`` and never resets.

        Parameters
        ----------
        options : ConnectOptions
            Connection parameters

        Raises
        ------
        RetriesExhaustedError
            If ``options.max_attempts`` attempts failed; wraps the last error
        CancelledError
            If the token is cancelled before an attempt, during one, or
            while waiting between attempts
        """
        retry = RetrySession.from_options(options)
        target = options.target

        while True:
            self.cancel_token.raise_if_cancelled()

            logger.info("Attempt %d: Connecting to %s...", retry.attempt_count + 1, target)

            try:
                self.session.run(options, self.cancel_token)
            except SessionFailedError as e:
                retry.record_failure(e)
                logger.warning(
                    "Attempt %d: Failed to connect to %s: %s", retry.attempt_count, target, e
                )
            else:
                logger.info("Session to %s closed.", target)
                return

            if not retry.can_retry():
                if options.on_give_up is not None:
                    options.on_give_up(retry.last_error)
                raise RetriesExhaustedError(
                    retry.attempt_count, retry.last_error
                ) from retry.last_error

            delay = retry.advance_delay()
            logger.info("Retrying in %gs...", delay)

            if self.cancel_token.wait(delay):
                raise CancelledError("Interrupted while waiting to retry")
