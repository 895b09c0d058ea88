import base64
import binascii
import copy
import json
import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from omegaconf import DictConfig, OmegaConf
from omegaconf.errors import InterpolationResolutionError

from wakeshell.constants import (
    DEFAULT_INITIAL_DELAY_SECONDS,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_SSH_PORT,
    DEFAULT_SSH_USERNAME,
)

logger = logging.getLogger(__name__)

CODE_KEYS = {
    "accessKeyID": "access_key_id",
    "secretAccessKey": "secret_access_key",
    "region": "region",
    "prefixStr": "name_prefix",
    "postfixStr": "name_suffix",
}
"""Keys of the encoded code blob and the config keys they set."""


class ConfigLoader:
    """Load and merge YAML configuration, code blob and CLI overrides."""

    def __init__(self) -> None:
        """Initialize ConfigLoader with built-in defaults."""
        self.BUILT_IN_DEFAULTS: dict[str, Any] = {
            "region": None,
            "access_key_id": None,
            "secret_access_key": None,
            "name_prefix": "",
            "name_suffix": "",
            "ssh_username": DEFAULT_SSH_USERNAME,
            "ssh_port": DEFAULT_SSH_PORT,
            "identity_file": None,
            "max_attempts": DEFAULT_MAX_ATTEMPTS,
            "initial_delay": DEFAULT_INITIAL_DELAY_SECONDS,
        }

    def load_config(self, config_path: str | None = None) -> dict[str, Any]:
        """Load configuration from YAML file.

        Parameters
        ----------
        config_path : str | None
            Path to YAML config file. If None, checks WAKESHELL_CONFIG env var,
            then falls back to wakeshell.yaml

        Returns
        -------
        dict[str, Any]
            Parsed configuration with defaults and machines sections,
            with all variable interpolations resolved

        Raises
        ------
        omegaconf.errors.InterpolationResolutionError
            If undefined variables are referenced or circular references exist
        ValueError
            If the YAML is invalid or its top level is not a mapping
        """
        if config_path is None:
            config_path = os.environ.get("WAKESHELL_CONFIG", "wakeshell.yaml")

        config_file = Path(config_path)

        if not config_file.exists():
            return {"defaults": {}}

        try:
            cfg = OmegaConf.load(config_file)
        except yaml.YAMLError as e:
            logger.error("Failed to parse YAML config file %s: %s", config_file, e)
            raise ValueError(f"Invalid YAML in {config_file}: {e}") from e
        except OSError as e:
            logger.error("Failed to read config file %s: %s", config_file, e)
            raise RuntimeError(f"Failed to read config file {config_file}: {e}") from e

        if not isinstance(cfg, DictConfig):
            raise ValueError(
                f"Invalid config file {config_file}: top level must be a mapping"
            )

        if not cfg:
            return {"defaults": {}}

        if "vars" in cfg:
            vars_dict = OmegaConf.to_container(cfg.vars, resolve=False)
            for key, value in vars_dict.items():
                if key not in cfg:
                    cfg[key] = value

        try:
            config = OmegaConf.to_container(cfg, resolve=True, throw_on_missing=True)
        except InterpolationResolutionError as e:
            logger.error("Failed to resolve configuration variables: %s", e)
            raise
        except (ValueError, KeyError, AttributeError) as e:
            logger.error("Failed to resolve configuration variables: %s", e)
            raise ValueError(f"Configuration variable resolution error: {e}") from e

        return config

    def get_machine_config(
        self, config: dict[str, Any], machine_name: str | None = None
    ) -> dict[str, Any]:
        """Get merged configuration for a specific machine or defaults.

        Parameters
        ----------
        config : dict[str, Any]
            Full configuration from YAML
        machine_name : str | None
            Name of machine section to use, or None for defaults only

        Returns
        -------
        dict[str, Any]
            Merged configuration (built-in defaults + YAML defaults + machine settings)
        """
        merged = copy.deepcopy(self.BUILT_IN_DEFAULTS)

        yaml_defaults = config.get("defaults") or {}
        if not isinstance(yaml_defaults, dict):
            raise ValueError("defaults section must be a mapping")

        for key, value in yaml_defaults.items():
            merged[key] = value

        if machine_name is not None:
            machines = config.get("machines") or {}
            if not isinstance(machines, dict):
                raise ValueError("machines section must be a mapping")

            if machine_name not in machines:
                available = list(machines.keys())

                if not available:
                    raise ValueError(
                        f"Machine '{machine_name}' not found in configuration. "
                        f"No machines are defined in the config file."
                    )

                raise ValueError(
                    f"Machine '{machine_name}' not found in configuration. "
                    f"Available machines: {available}"
                )

            machine = machines[machine_name] or {}
            if not isinstance(machine, dict):
                raise ValueError(f"Machine '{machine_name}' must be a mapping")

            for key, value in machine.items():
                merged[key] = value

        return merged

    def decode_code(self, code: str) -> dict[str, Any]:
        """Decode a base64-encoded JSON code blob into config keys.

        Parameters
        ----------
        code : str
            Base64 of a JSON object with accessKeyID, secretAccessKey, region,
            prefixStr and postfixStr keys (all optional)

        Returns
        -------
        dict[str, Any]
            Config keys set by the blob; non-string values are ignored

        Raises
        ------
        ValueError
            If the blob is not valid base64 or not a JSON object
        """
        try:
            decoded = base64.b64decode(code.strip(), validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"Invalid code: failed to decode base64: {e}") from e

        try:
            payload = json.loads(decoded)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ValueError(f"Invalid code: failed to parse JSON: {e}") from e

        if not isinstance(payload, dict):
            raise ValueError("Invalid code: expected a JSON object")

        values: dict[str, Any] = {}
        for code_key, config_key in CODE_KEYS.items():
            if code_key not in payload:
                continue
            value = payload[code_key]
            if isinstance(value, str):
                values[config_key] = value
            else:
                logger.warning("Ignoring non-string '%s' in code", code_key)

        return values

    def encode_code(self, config: dict[str, Any]) -> str:
        """Encode credentials and name pattern into a code blob.

        Parameters
        ----------
        config : dict[str, Any]
            Configuration holding any of the keys in CODE_KEYS values

        Returns
        -------
        str
            Base64-encoded JSON accepted by decode_code
        """
        payload = {
            code_key: config[config_key]
            for code_key, config_key in CODE_KEYS.items()
            if config.get(config_key) is not None
        }
        return base64.b64encode(json.dumps(payload).encode()).decode()

    def resolve(
        self,
        machine_name: str | None = None,
        code: str | None = None,
        overrides: dict[str, Any] | None = None,
        config_path: str | None = None,
    ) -> dict[str, Any]:
        """Build the validated configuration for a run.

        Precedence, lowest first: built-in defaults, YAML defaults, YAML
        machine section, code blob (argument or WAKESHELL_CODE), overrides.

        Parameters
        ----------
        machine_name : str | None
            Machine section to apply
        code : str | None
            Encoded code blob; falls back to the WAKESHELL_CODE env var
        overrides : dict[str, Any] | None
            CLI values; None entries are skipped
        config_path : str | None
            YAML file path (see load_config)

        Returns
        -------
        dict[str, Any]
            Merged and validated configuration

        Raises
        ------
        ValueError
            If any source is invalid
        """
        config = self.load_config(config_path)
        merged = self.get_machine_config(config, machine_name)

        if code is None:
            code = os.environ.get("WAKESHELL_CODE") or None

        if code:
            merged.update(self.decode_code(code))

        for key, value in (overrides or {}).items():
            if value is not None:
                merged[key] = value

        self.validate_config(merged)
        return merged

    def validate_config(self, config: dict[str, Any]) -> None:
        """Validate configuration types and ranges.

        Parameters
        ----------
        config : dict[str, Any]
            Configuration to validate

        Raises
        ------
        ValueError
            If configuration is invalid
        """
        optional_strings = ("region", "access_key_id", "secret_access_key", "identity_file")
        for field in optional_strings:
            value = config.get(field)
            if value is not None and not isinstance(value, str):
                raise ValueError(f"{field} must be a string")

        if config.get("region") == "":
            raise ValueError("region must not be empty")

        if bool(config.get("access_key_id")) != bool(config.get("secret_access_key")):
            raise ValueError("access_key_id and secret_access_key must be set together")

        for field in ("name_prefix", "name_suffix"):
            if not isinstance(config.get(field, ""), str):
                raise ValueError(f"{field} must be a string")

        self._validate_ssh_fields(config)
        self._validate_retry_fields(config)

    def _validate_ssh_fields(self, config: dict[str, Any]) -> None:
        ssh_username = config.get("ssh_username")
        if not isinstance(ssh_username, str):
            raise ValueError("ssh_username must be a string")

        pattern: str = r"^[a-z_][a-z0-9_-]{0,31}$"
        if not re.match(pattern, ssh_username):
            raise ValueError(
                f"Invalid ssh_username '{ssh_username}'. "
                f"Must start with lowercase letter or underscore, "
                f"contain only lowercase letters, numbers, underscores, "
                f"and hyphens, and be 1-32 characters long."
            )

        ssh_port = config.get("ssh_port")
        if isinstance(ssh_port, bool) or not isinstance(ssh_port, int):
            raise ValueError("ssh_port must be an integer")

        if not (1 <= ssh_port <= 65535):
            raise ValueError("ssh_port must be between 1 and 65535")

    def _validate_retry_fields(self, config: dict[str, Any]) -> None:
        max_attempts = config.get("max_attempts")
        if isinstance(max_attempts, bool) or not isinstance(max_attempts, int):
            raise ValueError("max_attempts must be an integer")

        if max_attempts < 0:
            raise ValueError("max_attempts must be 0 (unlimited) or positive")

        initial_delay = config.get("initial_delay")
        if isinstance(initial_delay, bool) or not isinstance(initial_delay, (int, float)):
            raise ValueError("initial_delay must be a number")

        if initial_delay <= 0:
            raise ValueError("initial_delay must be positive")
