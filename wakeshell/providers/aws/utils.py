"""AWS-specific utility functions for wakeshell."""

from __future__ import annotations

from typing import Any


def get_tag_value(tags: list[dict[str, Any]] | None, key: str) -> str:
    """Return the value of tag ``key``, or an empty string if absent.

    Parameters
    ----------
    tags : list[dict[str, Any]] | None
        Tags list as returned by describe_instances
    key : str
        Tag key to look up

    Returns
    -------
    str
        Tag value, or "" when the tag is missing
    """
    for tag in tags or []:
        if tag.get("Key") == key:
            return tag.get("Value", "")
    return ""


def count_instances(response: dict[str, Any]) -> tuple[int, int]:
    """Count reservations and instances in a describe_instances response.

    Parameters
    ----------
    response : dict[str, Any]
        Response from boto3 describe_instances call

    Returns
    -------
    tuple[int, int]
        (reservation_count, instance_count)
    """
    reservations = response.get("Reservations", [])
    instances = sum(len(r.get("Instances", [])) for r in reservations)
    return len(reservations), instances


def get_aws_credentials_error_message() -> str:
    """Get standard AWS credentials error message.

    Returns
    -------
    str
        Formatted AWS credentials error message
    """
    return (
        "Cloud credentials not found\n\n"
        "Configure your credentials:\n"
        "  aws configure\n\n"
        "Or set environment variables:\n"
        "  export AWS_ACCESS_KEY_ID=...\n"
        "  export AWS_SECRET_ACCESS_KEY=...\n\n"
        "Or pass an encoded config blob:\n"
        "  export WAKESHELL_CODE=$(wakeshell encode ...)"
    )
