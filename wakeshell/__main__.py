#!/usr/bin/env python3
"""wakeshell - start a stopped EC2 instance, open a shell, stop it again."""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Any, Callable

import boto3

for _boto_module in ["botocore", "boto3", "urllib3"]:
    logging.getLogger(_boto_module).setLevel(logging.WARNING)

from wakeshell.cli.parsing import build_cli_overrides, parse_name_part  # noqa: E402
from wakeshell.core.config import ConfigLoader  # noqa: E402
from wakeshell.core.run_executor import RunExecutor  # noqa: E402
from wakeshell.lifecycle import LifecycleManager  # noqa: E402
from wakeshell.providers.aws.compute import EC2Manager  # noqa: E402
from wakeshell.services.ssh import SSHManager  # noqa: E402
from wakeshell.templates import CONFIG_TEMPLATE  # noqa: E402
from wakeshell.cli.main import main  # noqa: E402
from wakeshell.utils import log_and_print_error  # noqa: E402


class WakeShell:
    """Main CLI interface for wakeshell."""

    def __init__(
        self,
        compute_provider_factory: Callable[..., Any] | None = None,
        ssh_manager_factory: Callable[..., Any] | None = None,
        boto3_client_factory: Callable | None = None,
    ) -> None:
        """Initialize WakeShell CLI with optional dependency injection."""
        self._config_loader = ConfigLoader()
        self._boto3_client_factory = boto3_client_factory or boto3.client
        self._compute_provider_factory_override = compute_provider_factory
        self._ssh_manager_factory = ssh_manager_factory or SSHManager
        self._lifecycle_manager: LifecycleManager | None = None
        self._run_executor: RunExecutor | None = None

    @property
    def compute_provider_factory(self) -> Callable[..., Any]:
        """Get the compute provider factory."""
        if self._compute_provider_factory_override is not None:
            return self._compute_provider_factory_override
        return self._create_compute_provider

    def _create_compute_provider(
        self,
        region: str | None = None,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
    ) -> EC2Manager:
        return EC2Manager(
            region=region,
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            boto3_client_factory=self._boto3_client_factory,
        )

    @property
    def run_executor(self) -> RunExecutor:
        """Get the run executor instance."""
        if self._run_executor is None:
            self._run_executor = RunExecutor(
                config_loader=self._config_loader,
                compute_provider_factory=self.compute_provider_factory,
                ssh_manager_factory=self._ssh_manager_factory,
            )
        return self._run_executor

    @property
    def lifecycle_manager(self) -> LifecycleManager:
        """Get the lifecycle manager instance."""
        if self._lifecycle_manager is None:
            self._lifecycle_manager = LifecycleManager(
                config_loader=self._config_loader,
                compute_provider_factory=self.compute_provider_factory,
                log_and_print_error=log_and_print_error,
            )
        return self._lifecycle_manager

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
    ) -> dict[str, Any]:
        """Start the instance, open an interactive shell, then stop it.

        Parameters
        ----------
        machine : str | None
            Named machine configuration from YAML
        code : str | None
            Encoded credentials/name pattern blob (default: WAKESHELL_CODE)
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

        Returns
        -------
        dict[str, Any]
            instance_id, target_address and exit_code of the run
        """
        overrides = build_cli_overrides(
            region=region,
            name_prefix=name_prefix,
            name_suffix=name_suffix,
            user=user,
            max_attempts=max_attempts,
            initial_delay=initial_delay,
            identity_file=identity_file,
        )
        return self.run_executor.execute(
            machine=machine, code=code, overrides=overrides, verbose=verbose
        )

    def start(
        self,
        machine: str | None = None,
        code: str | None = None,
        region: str | None = None,
        name_prefix: str | None = None,
        name_suffix: str | None = None,
    ) -> None:
        """Start the target instance without opening a shell."""
        overrides = build_cli_overrides(
            region=region, name_prefix=name_prefix, name_suffix=name_suffix
        )
        return self.lifecycle_manager.start(machine=machine, code=code, overrides=overrides)

    def stop(
        self,
        machine: str | None = None,
        code: str | None = None,
        region: str | None = None,
        name_prefix: str | None = None,
        name_suffix: str | None = None,
    ) -> None:
        """Stop the target instance."""
        overrides = build_cli_overrides(
            region=region, name_prefix=name_prefix, name_suffix=name_suffix
        )
        return self.lifecycle_manager.stop(machine=machine, code=code, overrides=overrides)

    def status(
        self,
        machine: str | None = None,
        code: str | None = None,
        region: str | None = None,
        name_prefix: str | None = None,
        name_suffix: str | None = None,
    ) -> None:
        """Show the state and address of the target instance."""
        overrides = build_cli_overrides(
            region=region, name_prefix=name_prefix, name_suffix=name_suffix
        )
        return self.lifecycle_manager.status(machine=machine, code=code, overrides=overrides)

    def encode(
        self,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        region: str | None = None,
        name_prefix: str | None = None,
        name_suffix: str | None = None,
    ) -> None:
        """Print a code blob usable with --code or WAKESHELL_CODE.

        Parameters
        ----------
        access_key_id : str | None
            Static access key
        secret_access_key : str | None
            Static secret key
        region : str | None
            AWS region
        name_prefix : str | None
            Required start of the instance Name tag
        name_suffix : str | None
            Required end of the instance Name tag
        """
        values = {
            "access_key_id": access_key_id,
            "secret_access_key": secret_access_key,
            "region": region,
            "name_prefix": parse_name_part(name_prefix),
            "name_suffix": parse_name_part(name_suffix),
        }

        if bool(access_key_id) != bool(secret_access_key):
            raise ValueError("access_key_id and secret_access_key must be set together")

        print(self._config_loader.encode_code(values))

    def init(self, force: bool = False) -> None:
        """Create a default wakeshell.yaml configuration file."""
        config_path = os.environ.get("WAKESHELL_CONFIG", "wakeshell.yaml")
        config_file = Path(config_path)

        if config_file.exists() and not force:
            log_and_print_error(
                "%s already exists. Use --force to overwrite.",
                config_path,
            )
            sys.exit(1)

        config_file.parent.mkdir(parents=True, exist_ok=True)

        with open(config_file, "w") as f:
            f.write(CONFIG_TEMPLATE)

        print(f"Created {config_path} configuration file.")


if __name__ == "__main__":
    main()
