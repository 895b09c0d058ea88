"""CLI entry point for wakeshell."""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Callable
from typing import Any

import fire

from wakeshell.constants import EXIT_CONFIG_ERROR, EXIT_ERROR, EXIT_INTERRUPTED
from wakeshell.core.signals import setup_signal_handlers
from wakeshell.exceptions import CancelledError, InstanceStopError, WakeShellError
from wakeshell.logging import StreamFormatter, StreamRoutingFilter
from wakeshell.providers import ProviderAPIError, ProviderConnectionError, ProviderCredentialsError
from wakeshell.providers.aws.utils import get_aws_credentials_error_message


def get_wakeshell_base_class() -> type:
    """Get WakeShell base class on-demand to avoid circular imports.

    Returns
    -------
    type
        WakeShell base class
    """
    from wakeshell.__main__ import WakeShell

    return WakeShell


class WakeShellCLI:
    """CLI wrapper that handles process exit codes.

    This is defined as a factory that creates a subclass of WakeShell
    at runtime to avoid circular import issues.

    Parameters
    ----------
    compute_provider_factory : Callable[..., Any] | None
        Optional factory function for creating compute provider instances.
        If None, uses EC2Manager.
    ssh_manager_factory : Callable[..., Any] | None
        Optional factory function for creating SSHManager instances.
        If None, uses the default SSHManager class.
    """

    _cached_class: type | None = None

    def __new__(
        cls,
        compute_provider_factory: Callable[..., Any] | None = None,
        ssh_manager_factory: Callable[..., Any] | None = None,
    ) -> Any:
        """Create WakeShellCLI instance with dynamic subclassing.

        Parameters
        ----------
        compute_provider_factory : Callable[..., Any] | None
            Optional factory for compute provider (default: None, uses EC2Manager)
        ssh_manager_factory : Callable[..., Any] | None
            Optional factory for SSHManager (default: None, uses SSHManager)

        Returns
        -------
        Any
            Instance of dynamically created WakeShellCLI subclass
        """
        if cls._cached_class is None:
            WakeShell = get_wakeshell_base_class()

            class WakeShellCLIImpl(WakeShell):
                """CLI wrapper implementation for WakeShell."""

                def connect(
                    self,
                    machine: str | None = None,
                    code: str | None = None,
                    region: str | None = None,
                    name_prefix: str | None = None,
                    name_suffix: str | None = None,
                    user: str | None = None,
                    max_attempts: int | None = None,
                    initial_delay: float | None = None,
                    identity_file: str | None = None,
                    verbose: bool = False,
                ) -> None:
                    """Run the connect flow and exit with its status code.

                    Parameters
                    ----------
                    machine : str | None
                        Named machine configuration from YAML
                    code : str | None
                        Encoded credentials/name pattern blob
                    region : str | None
                        AWS region override
                    name_prefix : str | None
                        Required start of the instance Name tag
                    name_suffix : str | None
                        Required end of the instance Name tag
                    user : str | None
                        Remote login user
                    max_attempts : int | None
                        Session attempts before giving up (0 = unlimited)
                    initial_delay : float | None
                        First backoff delay in seconds
                    identity_file : str | None
                        SSH private key file
                    verbose : bool
                        Enable verbose logging
                    """
                    result = super().connect(
                        machine=machine,
                        code=code,
                        region=region,
                        name_prefix=name_prefix,
                        name_suffix=name_suffix,
                        user=user,
                        max_attempts=max_attempts,
                        initial_delay=initial_delay,
                        identity_file=identity_file,
                        verbose=verbose,
                    )
                    sys.exit(result.get("exit_code", 0))

            cls._cached_class = WakeShellCLIImpl

        return cls._cached_class(
            compute_provider_factory=compute_provider_factory,
            ssh_manager_factory=ssh_manager_factory,
        )


def handle_credentials_error(debug_mode: bool) -> None:
    """Handle provider credentials error.

    Parameters
    ----------
    debug_mode : bool
        Whether debug mode is enabled

    Raises
    ------
    ProviderCredentialsError
        Re-raised if debug mode is enabled
    """
    if debug_mode:
        raise

    print(get_aws_credentials_error_message(), file=sys.stderr)
    sys.exit(EXIT_ERROR)


def handle_value_error(error: ValueError, debug_mode: bool) -> None:
    """Handle configuration errors.

    Parameters
    ----------
    error : ValueError
        The value error that was raised
    debug_mode : bool
        Whether debug mode is enabled

    Raises
    ------
    ValueError
        Re-raised if debug mode is enabled
    """
    if debug_mode:
        raise

    print(f"Configuration error: {error}", file=sys.stderr)
    sys.exit(EXIT_CONFIG_ERROR)


def handle_api_error(error: ProviderAPIError, debug_mode: bool) -> None:
    """Handle provider API error with context-specific messages.

    Parameters
    ----------
    error : ProviderAPIError
        The API error that was raised
    debug_mode : bool
        Whether debug mode is enabled

    Raises
    ------
    ProviderAPIError
        Re-raised if debug mode is enabled
    """
    if debug_mode:
        raise

    error_code = error.error_code

    if error_code == "UnauthorizedOperation":
        print("Insufficient IAM permissions\n", file=sys.stderr)
        print(
            "Your cloud credentials don't have the required permissions.",
            file=sys.stderr,
        )
        print("Contact your cloud administrator to grant:", file=sys.stderr)
        print(
            "  - ec2:DescribeInstances, ec2:StartInstances, ec2:StopInstances",
            file=sys.stderr,
        )
    elif error_code == "NoRegion":
        print("No AWS region configured\n", file=sys.stderr)
        print("Fix it:", file=sys.stderr)
        print("  wakeshell connect --region us-east-1", file=sys.stderr)
        print("  export AWS_DEFAULT_REGION=us-east-1", file=sys.stderr)
    elif error_code in ["AuthFailure", "InvalidClientTokenId"]:
        print("Cloud credentials were rejected\n", file=sys.stderr)
        print("Check the access key and secret key in use.", file=sys.stderr)
    elif error_code in ["ExpiredToken", "RequestExpired", "ExpiredTokenException"]:
        print("Cloud credentials have expired\n", file=sys.stderr)
        print("This usually means:", file=sys.stderr)
        print("  - Your temporary credentials (STS) have expired", file=sys.stderr)
        print("  - Your session token needs to be refreshed\n", file=sys.stderr)
        print("Fix it:", file=sys.stderr)
        print("  aws sso login           # If using AWS SSO", file=sys.stderr)
        print("  aws configure           # Re-configure credentials", file=sys.stderr)
    else:
        print(f"Cloud API error: {error}", file=sys.stderr)

    sys.exit(EXIT_ERROR)


def handle_connection_error(error: ProviderConnectionError, debug_mode: bool) -> None:
    """Handle failure to reach the cloud API endpoint.

    Parameters
    ----------
    error : ProviderConnectionError
        The connection error that was raised
    debug_mode : bool
        Whether debug mode is enabled

    Raises
    ------
    ProviderConnectionError
        Re-raised if debug mode is enabled
    """
    if debug_mode:
        raise

    print(f"Cannot reach cloud API: {error}\n", file=sys.stderr)
    print("Check your network connection and the configured region.", file=sys.stderr)
    sys.exit(EXIT_ERROR)


def handle_wakeshell_error(error: WakeShellError, debug_mode: bool) -> None:
    """Handle instance resolution, state and cleanup errors.

    Parameters
    ----------
    error : WakeShellError
        The error that was raised
    debug_mode : bool
        Whether debug mode is enabled

    Raises
    ------
    WakeShellError
        Re-raised if debug mode is enabled
    """
    if debug_mode:
        raise

    if isinstance(error, CancelledError):
        print(f"Interrupted: {error}", file=sys.stderr)
        sys.exit(EXIT_INTERRUPTED)

    if isinstance(error, InstanceStopError):
        print("\n!!! The instance could not be confirmed stopped !!!", file=sys.stderr)
        print(f"{error}\n", file=sys.stderr)
        print("Check it and stop it by hand to avoid charges:", file=sys.stderr)
        print("  wakeshell status", file=sys.stderr)
        print("  wakeshell stop", file=sys.stderr)
        sys.exit(EXIT_ERROR)

    print(f"Error: {error}", file=sys.stderr)
    sys.exit(EXIT_ERROR)


def handle_runtime_error(error: RuntimeError, debug_mode: bool) -> None:
    """Handle unexpected runtime error.

    Parameters
    ----------
    error : RuntimeError
        The runtime error that was raised
    debug_mode : bool
        Whether debug mode is enabled

    Raises
    ------
    RuntimeError
        Re-raised if debug mode is enabled
    """
    if debug_mode:
        raise

    print(f"Unexpected error: {error}", file=sys.stderr)
    sys.exit(EXIT_ERROR)


def configure_logging() -> None:
    """Route INFO and DEBUG to stdout and WARNING and above to stderr."""
    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(StreamFormatter("%(message)s"))
    stdout_handler.addFilter(StreamRoutingFilter("stdout"))

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(StreamFormatter("%(message)s"))
    stderr_handler.addFilter(StreamRoutingFilter("stderr"))

    logging.basicConfig(
        level=logging.INFO,
        handlers=[stdout_handler, stderr_handler],
    )


def main() -> None:
    """Entry point for Fire CLI with graceful error handling.

    Fire maps the methods of the WakeShellCLI class to commands and handles
    argument parsing, help text generation, and command routing.
    """
    configure_logging()
    setup_signal_handlers()

    debug_mode = os.environ.get("WAKESHELL_DEBUG") == "1"

    try:
        fire.Fire(WakeShellCLI())
    except ProviderCredentialsError:
        handle_credentials_error(debug_mode)
    except ValueError as e:
        handle_value_error(e, debug_mode)
    except ProviderAPIError as e:
        handle_api_error(e, debug_mode)
    except ProviderConnectionError as e:
        handle_connection_error(e, debug_mode)
    except WakeShellError as e:
        handle_wakeshell_error(e, debug_mode)
    except RuntimeError as e:
        handle_runtime_error(e, debug_mode)
    except KeyboardInterrupt:
        if debug_mode:
            raise
        print("Interrupted", file=sys.stderr)
        sys.exit(EXIT_INTERRUPTED)
