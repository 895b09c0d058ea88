"""Signal handling and cooperative cancellation."""

from __future__ import annotations

import signal
import threading
import types

from wakeshell.constants import EXIT_INTERRUPTED
from wakeshell.exceptions import CancelledError


class CancellationToken:
    """Cancellation flag shared by every blocking wait of a run.

    Waits go through :meth:`wait` so that a signal handler calling
    :meth:`cancel` wakes them up immediately instead of after the full delay.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self.signum: int | None = None

    @property
    def cancelled(self) -> bool:
        """Whether cancellation has been requested."""
        return self._event.is_set()

    def cancel(self, signum: int | None = None) -> None:
        """Request cancellation.

        Parameters
        ----------
        signum : int | None
            Signal that triggered the cancellation, if any
        """
        if self.signum is None:
            self.signum = signum
        self._event.set()

    def wait(self, timeout: float) -> bool:
        """Block for up to ``timeout`` seconds or until cancelled.

        Parameters
        ----------
        timeout : float
            Maximum number of seconds to wait

        Returns
        -------
        bool
            True if the token was cancelled, False if the timeout elapsed
        """
        return self._event.wait(timeout)

    def raise_if_cancelled(self) -> None:
        """Raise CancelledError if cancellation has been requested.

        Raises
        ------
        CancelledError
            If the token is cancelled
        """
        if self.cancelled:
            raise CancelledError(_describe(self.signum))


def _describe(signum: int | None) -> str:
    if signum is None:
        return "Operation cancelled"
    return f"Interrupted by {signal.Signals(signum).name}"


class ActiveTokenManager:
    """Thread-safe holder for the token that signal handlers cancel.

    The run swaps in a fresh token before cleanup, so an interrupt that ended
    the session does not also abort the stop confirmation. The lock is
    reentrant because the handler runs on the main thread, which may already
    hold it inside set() or get().
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._token: CancellationToken | None = None

    def set(self, token: CancellationToken | None) -> None:
        """Set the token cancelled by incoming signals.

        Parameters
        ----------
        token : CancellationToken | None
            Token to cancel, or None to ignore signals
        """
        with self._lock:
            self._token = token

    def get(self) -> CancellationToken | None:
        """Get the currently registered token."""
        with self._lock:
            return self._token

    def cancel_with_lock(self, signum: int) -> bool:
        """Cancel the registered token, if any.

        Parameters
        ----------
        signum : int
            Signal number

        Returns
        -------
        bool
            True if a token was registered and cancelled
        """
        with self._lock:
            if self._token is None:
                return False
            self._token.cancel(signum)
            return True


_token_manager = ActiveTokenManager()


def setup_signal_handlers() -> None:
    """Route SIGINT and SIGTERM to the active cancellation token.

    While a token is registered, Ctrl+C never raises KeyboardInterrupt in the
    middle of an API call; every wait point observes the token instead. With
    no token registered (status, init, config loading, between phases) the
    signal interrupts the process: SIGINT raises KeyboardInterrupt and SIGTERM
    raises SystemExit with the interrupted exit code.
    """

    def handler(signum: int, frame: types.FrameType | None) -> None:
        if _token_manager.cancel_with_lock(signum):
            return
        if signum == signal.SIGINT:
            signal.default_int_handler(signum, frame)
        raise SystemExit(EXIT_INTERRUPTED)

    signal.signal(signal.SIGINT, handler)
    signal.signal(signal.SIGTERM, handler)


def set_active_token(token: CancellationToken | None) -> None:
    """Set the token signal handlers should cancel.

    Parameters
    ----------
    token : CancellationToken | None
        Token for the current phase of the run
    """
    _token_manager.set(token)


def get_active_token() -> CancellationToken | None:
    """Get the token signal handlers currently cancel."""
    return _token_manager.get()
