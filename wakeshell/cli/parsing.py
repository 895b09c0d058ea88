"""CLI argument parsing and parameter conversion utilities."""

from __future__ import annotations

from typing import Any


def parse_name_part(value: str | int | float | None) -> str | None:
    """Parse a name prefix/suffix into a string.

    Fire converts numeric-looking arguments (``--name-suffix 01``) into
    numbers, so anything that is not None is turned back into text.

    Parameters
    ----------
    value : str | int | float | None
        Raw CLI value

    Returns
    -------
    str | None
        String value, or None when not given
    """
    if value is None:
        return None
    return str(value)


def parse_max_attempts(value: str | int | None) -> int | None:
    """Parse the attempt budget.

    Parameters
    ----------
    value : str | int | None
        Raw CLI value; 0 means unlimited

    Returns
    -------
    int | None
        Attempt count, or None when not given

    Raises
    ------
    ValueError
        If the value is not a whole number
    """
    if value is None:
        return None

    if isinstance(value, bool):
        raise ValueError(f"Invalid max_attempts value: {value}")

    try:
        return int(str(value).strip())
    except ValueError:
        raise ValueError(f"Invalid max_attempts value: '{value}' is not numeric") from None


def parse_delay(value: str | int | float | None) -> float | None:
    """Parse a delay in seconds.

    Parameters
    ----------
    value : str | int | float | None
        Raw CLI value

    Returns
    -------
    float | None
        Delay in seconds, or None when not given

    Raises
    ------
    ValueError
        If the value is not numeric
    """
    if value is None:
        return None

    if isinstance(value, bool):
        raise ValueError(f"Invalid delay value: {value}")

    try:
        return float(str(value).strip())
    except ValueError:
        raise ValueError(f"Invalid delay value: '{value}' is not numeric") from None


def build_cli_overrides(
    region: str | None = None,
    name_prefix: str | None = None,
    name_suffix: str | None = None,
    user: str | None = None,
    max_attempts: str | int | None = None,
    initial_delay: str | float | None = None,
    identity_file: str | None = None,
) -> dict[str, Any]:
    """Convert CLI options into configuration overrides.

    Parameters
    ----------
    region : str | None
        AWS region
    name_prefix : str | None
        Required start of the instance Name tag
    name_suffix : str | None
        Required end of the instance Name tag
    user : str | None
        Remote login user
    max_attempts : str | int | None
        Session attempts before giving up (0 = unlimited)
    initial_delay : str | float | None
        First backoff delay in seconds
    identity_file : str | None
        SSH private key file

    Returns
    -------
    dict[str, Any]
        Overrides keyed by config name; options not given map to None
    """
    return {
        "region": region,
        "name_prefix": parse_name_part(name_prefix),
        "name_suffix": parse_name_part(name_suffix),
        "ssh_username": user,
        "max_attempts": parse_max_attempts(max_attempts),
        "initial_delay": parse_delay(initial_delay),
        "identity_file": identity_file,
    }


__all__ = [
    "parse_name_part",
    "parse_max_attempts",
    "parse_delay",
    "build_cli_overrides",
]
