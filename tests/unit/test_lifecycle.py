"""Unit tests for LifecycleManager."""

from unittest.mock import Mock

import pytest

from tests.unit.fakes.fake_ec2_manager import FakeEC2Manager
from wakeshell.constants import InstanceState
from wakeshell.core.config import ConfigLoader
from wakeshell.exceptions import AmbiguousMatchError, CancelledError, UnsupportedStateError
from wakeshell.lifecycle import LifecycleManager
from wakeshell.providers.exceptions import ProviderAPIError, ProviderCredentialsError
from wakeshell.utils import log_and_print_error


@pytest.fixture
def ec2_manager():
    return FakeEC2Manager(state=InstanceState.STOPPED)


@pytest.fixture
def lifecycle(config_file, ec2_manager):
    return LifecycleManager(
        config_loader=ConfigLoader(),
        compute_provider_factory=Mock(return_value=ec2_manager),
        log_and_print_error=log_and_print_error,
    )


class TestStatus:
    def test_prints_instance_details(self, lifecycle, capsys) -> None:
        lifecycle.status()

        out = capsys.readouterr().out
        assert "Instance ID: i-0123456789abcdef0" in out
        assert "State: stopped" in out
        assert "Public Address: N/A" in out

    def test_running_instance_shows_address(self, lifecycle, ec2_manager, capsys) -> None:
        ec2_manager.state = InstanceState.RUNNING

        lifecycle.status()

        assert "ec2-1-2-3-4.compute-1.amazonaws.com" in capsys.readouterr().out

    def test_ambiguous_match_exits(self, lifecycle, ec2_manager, capsys) -> None:
        ec2_manager.find_error = AmbiguousMatchError("dev-*", 2, 2)

        with pytest.raises(SystemExit) as exc_info:
            lifecycle.status()

        assert exc_info.value.code == 1
        assert "Expected exactly 1 instance" in capsys.readouterr().err

    def test_unauthorized(self, lifecycle, ec2_manager, capsys) -> None:
        ec2_manager.find_error = ProviderAPIError("denied", error_code="UnauthorizedOperation")

        with pytest.raises(SystemExit) as exc_info:
            lifecycle.status()

        assert exc_info.value.code == 1
        assert "Insufficient cloud provider permissions" in capsys.readouterr().err


class TestStartStop:
    def test_start(self, lifecycle, ec2_manager, capsys) -> None:
        lifecycle.start()

        assert ec2_manager.requested_states() == [InstanceState.RUNNING]
        assert "is running" in capsys.readouterr().out

    def test_stop(self, lifecycle, ec2_manager, capsys) -> None:
        ec2_manager.state = InstanceState.RUNNING

        lifecycle.stop()

        assert ec2_manager.requested_states() == [InstanceState.STOPPED]
        assert "is stopped" in capsys.readouterr().out

    def test_overrides_are_applied(self, config_file, ec2_manager) -> None:
        factory = Mock(return_value=ec2_manager)
        manager = LifecycleManager(ConfigLoader(), factory, log_and_print_error)

        manager.start(overrides={"region": "ap-south-1", "name_prefix": "dev-"})

        factory.assert_called_once_with(
            region="ap-south-1", access_key_id=None, secret_access_key=None
        )

    def test_unsupported_state_exits(self, lifecycle, ec2_manager, capsys) -> None:
        ec2_manager.stop_error = UnsupportedStateError("instance is terminated")

        with pytest.raises(SystemExit) as exc_info:
            lifecycle.stop()

        assert exc_info.value.code == 1
        assert "Cannot stop instance" in capsys.readouterr().err

    def test_interrupted_exits_130(self, lifecycle, ec2_manager) -> None:
        ec2_manager.start_error = CancelledError("Interrupted by SIGINT")

        with pytest.raises(SystemExit) as exc_info:
            lifecycle.start()

        assert exc_info.value.code == 130

    def test_missing_credentials(self, lifecycle, ec2_manager, capsys) -> None:
        ec2_manager.start_error = ProviderCredentialsError("Unable to locate credentials")

        with pytest.raises(SystemExit) as exc_info:
            lifecycle.start()

        assert exc_info.value.code == 1
        assert "credentials not configured" in capsys.readouterr().err
