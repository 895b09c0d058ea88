"""Fake session runner and cancellation token for the retry engine."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from wakeshell.core.signals import CancellationToken
from wakeshell.exceptions import SessionFailedError


class FakeSession:
    """Session runner that replays scripted outcomes.

    Parameters
    ----------
    outcomes : list[int]
        Exit codes returned by successive attempts; 0 is success. When the
        list runs out, the last outcome repeats
    on_run : Callable[[int], None] | None
        Hook called with the attempt number before the outcome is applied
    """

    def __init__(
        self,
        outcomes: list[int] | None = None,
        on_run: Callable[[int], None] | None = None,
    ) -> None:
        self.outcomes = outcomes or [0]
        self.on_run = on_run
        self.runs: list[Any] = []

    def run(self, options: Any, cancel_token: CancellationToken) -> None:
        self.runs.append(options)
        attempt = len(self.runs)

        if self.on_run is not None:
            self.on_run(attempt)

        cancel_token.raise_if_cancelled()

        exit_code = self.outcomes[min(attempt, len(self.outcomes)) - 1]
        if exit_code != 0:
            raise SessionFailedError(options.target, exit_code)


class FakeCancellationToken(CancellationToken):
    """Token that records waits instead of sleeping.

    Parameters
    ----------
    cancel_on_wait : int | None
        1-based index of the wait call that cancels the token
    """

    def __init__(self, cancel_on_wait: int | None = None) -> None:
        super().__init__()
        self.cancel_on_wait = cancel_on_wait
        self.waits: list[float] = []

    def wait(self, timeout: float) -> bool:
        self.waits.append(timeout)
        if self.cancel_on_wait is not None and len(self.waits) >= self.cancel_on_wait:
            self.cancel()
        return self.cancelled
