from __future__ import annotations

import logging
import sys
from typing import Any

from wakeshell.constants import EXIT_ERROR, EXIT_INTERRUPTED, InstanceState
from wakeshell.core.run_executor import build_instance_filter, create_compute_provider
from wakeshell.core.signals import CancellationToken, set_active_token
from wakeshell.exceptions import (
    AmbiguousMatchError,
    CancelledError,
    FilterMismatchError,
    UnsupportedStateError,
    WakeShellError,
)
from wakeshell.providers.exceptions import ProviderAPIError, ProviderCredentialsError


class LifecycleManager:
    """Manages the target instance outside of a session (start, stop, status).

    Parameters
    ----------
    config_loader : Any
        Configuration loader instance
    compute_provider_factory : Any
        Factory function to create compute provider instances
    log_and_print_error : Any
        Function to log and print errors to stderr
    """

    def __init__(
        self,
        config_loader: Any,
        compute_provider_factory: Any,
        log_and_print_error: Any,
    ) -> None:
        self.config_loader = config_loader
        self.compute_provider_factory = compute_provider_factory
        self.log_and_print_error = log_and_print_error

    def _prepare(
        self,
        machine: str | None,
        code: str | None,
        overrides: dict[str, Any] | None,
    ) -> tuple[Any, Any]:
        config = self.config_loader.resolve(
            machine_name=machine, code=code, overrides=overrides
        )
        instance_filter = build_instance_filter(config)
        ec2_manager = create_compute_provider(self.compute_provider_factory, config)
        return ec2_manager, instance_filter

    def status(
        self,
        machine: str | None = None,
        code: str | None = None,
        overrides: dict[str, Any] | None = None,
    ) -> None:
        """Display the state and address of the target instance.

        Parameters
        ----------
        machine : str | None
            Named machine configuration from YAML
        code : str | None
            Encoded credentials/name pattern blob
        overrides : dict[str, Any] | None
            CLI overrides

        Raises
        ------
        SystemExit
            Exits with code 1 if the target cannot be resolved or cloud errors
            occur. Returns normally after printing the status.
        """
        ec2_manager, instance_filter = self._prepare(machine, code, overrides)

        try:
            instance = ec2_manager.find_target_instance(instance_filter)
        except (AmbiguousMatchError, FilterMismatchError) as e:
            self.log_and_print_error("%s", e)
            sys.exit(EXIT_ERROR)
        except ProviderCredentialsError:
            self.log_and_print_error(
                "Cloud provider credentials not configured. Please set up credentials."
            )
            sys.exit(EXIT_ERROR)
        except ProviderAPIError as e:
            self._report_api_error(e)

        print(f"Instance Information: {instance.name_tag}")
        print(f"  Instance ID: {instance.instance_id}")
        print(f"  State: {instance.state.value}")
        print(f"  Public Address: {instance.public_address or 'N/A'}")
        print(f"  Public IP: {instance.public_ip or 'N/A'}")

    def start(
        self,
        machine: str | None = None,
        code: str | None = None,
        overrides: dict[str, Any] | None = None,
    ) -> None:
        """Start the target instance and wait until it is running.

        Parameters
        ----------
        machine : str | None
            Named machine configuration from YAML
        code : str | None
            Encoded credentials/name pattern blob
        overrides : dict[str, Any] | None
            CLI overrides

        Raises
        ------
        SystemExit
            Exits with code 1 on resolution, state or cloud errors and 130 if
            interrupted. Returns normally once the instance is running.
        """
        instance = self._transition(machine, code, overrides, InstanceState.RUNNING, "start")

        print(f"\nInstance {instance.instance_id} is running.")
        print(f"  Public Address: {instance.public_address or 'N/A'}")
        print("\n  To open a shell: wakeshell connect")

    def stop(
        self,
        machine: str | None = None,
        code: str | None = None,
        overrides: dict[str, Any] | None = None,
    ) -> None:
        """Stop the target instance and wait until it is stopped.

        Parameters
        ----------
        machine : str | None
            Named machine configuration from YAML
        code : str | None
            Encoded credentials/name pattern blob
        overrides : dict[str, Any] | None
            CLI overrides

        Raises
        ------
        SystemExit
            Exits with code 1 on resolution, state or cloud errors and 130 if
            interrupted. Returns normally once the instance is stopped.
        """
        instance = self._transition(machine, code, overrides, InstanceState.STOPPED, "stop")

        print(f"\nInstance {instance.instance_id} is stopped.")
        print("\n  Restart with: wakeshell start")

    def _transition(
        self,
        machine: str | None,
        code: str | None,
        overrides: dict[str, Any] | None,
        desired: InstanceState,
        operation_name: str,
    ) -> Any:
        ec2_manager, instance_filter = self._prepare(machine, code, overrides)
        cancel_token = CancellationToken()
        set_active_token(cancel_token)

        logging.info(
            "Requesting %s of instance matching '%s'...",
            operation_name,
            instance_filter.name_pattern,
        )

        try:
            return ec2_manager.ensure_state(instance_filter, desired, cancel_token)
        except CancelledError as e:
            self.log_and_print_error("%s", e)
            sys.exit(EXIT_INTERRUPTED)
        except UnsupportedStateError as e:
            self.log_and_print_error("Cannot %s instance: %s", operation_name, e)
            sys.exit(EXIT_ERROR)
        except ProviderCredentialsError:
            self.log_and_print_error(
                "Cloud provider credentials not configured. Please set up credentials."
            )
            sys.exit(EXIT_ERROR)
        except ProviderAPIError as e:
            self._report_api_error(e)
        except WakeShellError as e:
            self.log_and_print_error("Failed to %s instance: %s", operation_name, e)
            sys.exit(EXIT_ERROR)
        finally:
            set_active_token(None)

    def _report_api_error(self, error: ProviderAPIError) -> None:
        if error.error_code == "UnauthorizedOperation":
            self.log_and_print_error(
                "Insufficient cloud provider permissions to perform this operation."
            )
            sys.exit(EXIT_ERROR)

        self.log_and_print_error("Cloud provider API error: %s", error)
        sys.exit(EXIT_ERROR)
