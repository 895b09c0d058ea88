"""AWS EC2 provider."""

from __future__ import annotations

from wakeshell.providers.aws.compute import (
    DotProgress,
    EC2Manager,
    InstanceFilter,
    InstanceRecord,
)

__all__ = ["DotProgress", "EC2Manager", "InstanceFilter", "InstanceRecord"]
