import os
import signal
import threading
import time
from unittest.mock import Mock, patch

import pytest

from tests.unit.fakes.fake_ec2_manager import FakeEC2Manager
from wakeshell.constants import InstanceState
from wakeshell.core.config import ConfigLoader
from wakeshell.core.signals import (
    ActiveTokenManager,
    CancellationToken,
    get_active_token,
    set_active_token,
    setup_signal_handlers,
)
from wakeshell.exceptions import CancelledError
from wakeshell.lifecycle import LifecycleManager
from wakeshell.utils import log_and_print_error


class TestCancellationToken:
    def test_starts_uncancelled(self) -> None:
        token = CancellationToken()

        assert not token.cancelled
        token.raise_if_cancelled()

    def test_wait_times_out_when_not_cancelled(self) -> None:
        assert CancellationToken().wait(0.01) is False

    def test_wait_returns_immediately_when_cancelled(self) -> None:
        token = CancellationToken()
        token.cancel()

        started = time.monotonic()
        assert token.wait(30) is True
        assert time.monotonic() - started < 1

    def test_cancel_from_other_thread_wakes_wait(self) -> None:
        token = CancellationToken()
        timer = threading.Timer(0.05, token.cancel)
        timer.start()

        started = time.monotonic()
        try:
            assert token.wait(30) is True
        finally:
            timer.cancel()

        assert time.monotonic() - started < 5

    def test_raise_names_the_signal(self) -> None:
        token = CancellationToken()
        token.cancel(signal.SIGINT)

        with pytest.raises(CancelledError, match="SIGINT"):
            token.raise_if_cancelled()

    def test_first_signal_is_kept(self) -> None:
        token = CancellationToken()
        token.cancel(signal.SIGTERM)
        token.cancel(signal.SIGINT)

        assert token.signum == signal.SIGTERM

    def test_raise_without_signal(self) -> None:
        token = CancellationToken()
        token.cancel()

        with pytest.raises(CancelledError, match="Operation cancelled"):
            token.raise_if_cancelled()


class TestActiveToken:
    def test_cancel_reaches_registered_token(self) -> None:
        manager = ActiveTokenManager()
        token = CancellationToken()
        manager.set(token)

        manager.cancel_with_lock(signal.SIGINT)

        assert token.cancelled
        assert manager.get() is token

    def test_cancel_without_token_reports_nothing_cancelled(self) -> None:
        assert ActiveTokenManager().cancel_with_lock(signal.SIGINT) is False

    def test_cancel_while_lock_is_held_does_not_block(self) -> None:
        manager = ActiveTokenManager()
        token = CancellationToken()
        manager.set(token)

        with manager._lock:
            assert manager.cancel_with_lock(signal.SIGINT) is True

        assert token.cancelled

    def test_swapped_token_is_not_cancelled(self) -> None:
        manager = ActiveTokenManager()
        old, new = CancellationToken(), CancellationToken()
        manager.set(old)
        manager.set(new)

        manager.cancel_with_lock(signal.SIGTERM)

        assert new.cancelled
        assert not old.cancelled

    def test_module_helpers(self) -> None:
        token = CancellationToken()

        set_active_token(token)
        assert get_active_token() is token

        set_active_token(None)
        assert get_active_token() is None


def test_signal_handlers_cancel_active_token() -> None:
    token = CancellationToken()
    set_active_token(token)

    with patch("wakeshell.core.signals.signal.signal") as mock_signal:
        setup_signal_handlers()

    registered = {call.args[0]: call.args[1] for call in mock_signal.call_args_list}
    assert set(registered) == {signal.SIGINT, signal.SIGTERM}

    registered[signal.SIGINT](signal.SIGINT, None)

    assert token.cancelled
    assert token.signum == signal.SIGINT


def installed_handlers() -> dict:
    with patch("wakeshell.core.signals.signal.signal") as mock_signal:
        setup_signal_handlers()
    return {call.args[0]: call.args[1] for call in mock_signal.call_args_list}


def test_sigint_without_token_raises_keyboard_interrupt() -> None:
    set_active_token(None)
    handler = installed_handlers()[signal.SIGINT]

    with pytest.raises(KeyboardInterrupt):
        handler(signal.SIGINT, None)


def test_sigterm_without_token_exits_interrupted() -> None:
    set_active_token(None)
    handler = installed_handlers()[signal.SIGTERM]

    with pytest.raises(SystemExit) as exc_info:
        handler(signal.SIGTERM, None)

    assert exc_info.value.code == 130


def test_real_sigint_interrupts_status_lookup(config_file) -> None:
    ec2_manager = FakeEC2Manager(state=InstanceState.STOPPED)
    ec2_manager.on_find = lambda: os.kill(os.getpid(), signal.SIGINT)
    lifecycle = LifecycleManager(
        config_loader=ConfigLoader(),
        compute_provider_factory=Mock(return_value=ec2_manager),
        log_and_print_error=log_and_print_error,
    )
    previous = {sig: signal.getsignal(sig) for sig in (signal.SIGINT, signal.SIGTERM)}
    set_active_token(None)

    try:
        setup_signal_handlers()
        with pytest.raises(KeyboardInterrupt):
            lifecycle.status()
            time.sleep(1)
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
