"""CLI argument parsing and handling."""

from __future__ import annotations

from wakeshell.cli.parsing import (
    build_cli_overrides,
    parse_delay,
    parse_max_attempts,
    parse_name_part,
)

__all__ = [
    "build_cli_overrides",
    "parse_name_part",
    "parse_max_attempts",
    "parse_delay",
]
