from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

from wakeshell.constants import EXIT_ERROR, EXIT_INTERRUPTED, EXIT_SUCCESS, InstanceState
from wakeshell.core.signals import CancellationToken, set_active_token
from wakeshell.exceptions import (
    CancelledError,
    InstanceStopError,
    RetriesExhaustedError,
    UnsupportedStateError,
    WakeShellError,
)
from wakeshell.providers.aws.compute import InstanceFilter, InstanceRecord
from wakeshell.providers.exceptions import ProviderError
from wakeshell.services.ssh import ConnectOptions
from wakeshell.utils import log_and_print_error

logger = logging.getLogger(__name__)


class RunExecutor:
    """Orchestrates the connect command: start, shell, stop.

    Parameters
    ----------
    config_loader : Any
        Configuration loader instance
    compute_provider_factory : Callable[..., Any]
        Factory creating an EC2Manager from region and credentials
    ssh_manager_factory : Callable[..., Any]
        Factory creating an SSHManager from a cancellation token
    """

    def __init__(
        self,
        config_loader: Any,
        compute_provider_factory: Callable[..., Any],
        ssh_manager_factory: Callable[..., Any],
    ) -> None:
        self.config_loader = config_loader
        self.compute_provider_factory = compute_provider_factory
        self.ssh_manager_factory = ssh_manager_factory

    def execute(
        self,
        machine: str | None = None,
        code: str | None = None,
        overrides: dict[str, Any] | None = None,
        verbose: bool = False,
    ) -> dict[str, Any]:
        """Execute the connect command with all orchestration logic.

        Parameters
        ----------
        machine : str | None
            Named machine configuration from YAML
        code : str | None
            Encoded credentials/name pattern blob
        overrides : dict[str, Any] | None
            CLI overrides
        verbose : bool
            Enable verbose logging

        Returns
        -------
        dict[str, Any]
            instance_id, target_address and exit_code of the run

        Raises
        ------
        ValueError
            If the configuration is invalid
        AmbiguousMatchError, FilterMismatchError, UnsupportedStateError
            If the target instance cannot be resolved or started
        CancelledError
            If interrupted while the instance was starting
        InstanceStopError
            If the instance could not be confirmed stopped on exit
        """
        if verbose:
            logging.getLogger().setLevel(logging.DEBUG)
            logging.debug("Verbose mode enabled")

        config = self.config_loader.resolve(
            machine_name=machine, code=code, overrides=overrides
        )
        instance_filter = build_instance_filter(config)
        ec2_manager = create_compute_provider(self.compute_provider_factory, config)

        cancel_token = CancellationToken()
        set_active_token(cancel_token)

        try:
            with self.running_instance(ec2_manager, instance_filter, cancel_token) as instance:
                target_address = self._get_target_address(ec2_manager, instance_filter)
                exit_code = self._connect(config, target_address, cancel_token)
        finally:
            set_active_token(None)

        return {
            "instance_id": instance.instance_id,
            "target_address": target_address,
            "exit_code": exit_code,
        }

    @contextmanager
    def running_instance(
        self,
        ec2_manager: Any,
        instance_filter: InstanceFilter,
        cancel_token: CancellationToken,
    ) -> Iterator[InstanceRecord]:
        """Start the target instance and stop it on every way out.

        Resolution errors propagate before anything is started. Once the
        instance is resolved, the stop runs whether starting, the session,
        or an interrupt ended the block.

        Parameters
        ----------
        ec2_manager : Any
            EC2Manager for the target region
        instance_filter : InstanceFilter
            Name tag filter
        cancel_token : CancellationToken
            Token for the start wait

        Yields
        ------
        InstanceRecord
            The running instance
        """
        instance = ec2_manager.find_target_instance(instance_filter)
        logger.info(
            "Target instance %s (%s) is %s",
            instance.instance_id,
            instance.name_tag,
            instance.state.value,
        )

        try:
            if instance.state != InstanceState.RUNNING:
                instance = ec2_manager.ensure_state(
                    instance_filter, InstanceState.RUNNING, cancel_token
                )
            yield instance
        finally:
            self._stop_instance(ec2_manager, instance_filter)

    def _stop_instance(self, ec2_manager: Any, instance_filter: InstanceFilter) -> None:
        cleanup_token = CancellationToken()
        set_active_token(cleanup_token)

        try:
            ec2_manager.ensure_state(instance_filter, InstanceState.STOPPED, cleanup_token)
        except UnsupportedStateError as e:
            logger.warning("Nothing to stop: %s", e)
        except (WakeShellError, ProviderError) as e:
            logger.critical("Instance may still be running and billing: %s", e)
            log_and_print_error(
                "Failed to stop instance matching '%s': %s",
                instance_filter.name_pattern,
                e,
            )
            raise InstanceStopError(
                f"Failed to stop instance matching '{instance_filter.name_pattern}': {e}"
            ) from e
        finally:
            set_active_token(None)

    def _get_target_address(self, ec2_manager: Any, instance_filter: InstanceFilter) -> str:
        try:
            return ec2_manager.get_public_address(instance_filter)
        except (WakeShellError, ProviderError) as e:
            logger.error("Failed to get target address: %s", e)
            return ""

    def _connect(
        self, config: dict[str, Any], target_address: str, cancel_token: CancellationToken
    ) -> int:
        identity_file = config.get("identity_file")
        options = ConnectOptions(
            target_address=target_address,
            user=config["ssh_username"],
            max_attempts=config["max_attempts"],
            initial_delay=float(config["initial_delay"]),
            port=config["ssh_port"],
            identity_file=os.path.expanduser(identity_file) if identity_file else None,
            on_give_up=report_give_up,
        )
        ssh_manager = self.ssh_manager_factory(cancel_token=cancel_token)

        try:
            ssh_manager.connect(options)
        except RetriesExhaustedError as e:
            logger.error("Failed to connect SSH: %s", e)
            return EXIT_ERROR
        except CancelledError as e:
            logger.warning("%s", e)
            return EXIT_INTERRUPTED

        return EXIT_SUCCESS


def build_instance_filter(config: dict[str, Any]) -> InstanceFilter:
    """Build the Name tag filter from configuration."""
    return InstanceFilter(
        name_prefix=config.get("name_prefix") or "",
        name_suffix=config.get("name_suffix") or "",
    )


def create_compute_provider(factory: Callable[..., Any], config: dict[str, Any]) -> Any:
    """Create the compute provider for the configured region and credentials."""
    return factory(
        region=config.get("region"),
        access_key_id=config.get("access_key_id"),
        secret_access_key=config.get("secret_access_key"),
    )


def report_give_up(error: BaseException) -> None:
    """Explain the usual causes once the session attempts are used up."""
    logger.error("Giving up on SSH: %s", error)
    logger.error(
        "This usually means the instance is not ready yet, a security group "
        "blocks port 22, or the key is not accepted by the instance."
    )
