"""AWS-specific constants for EC2 lifecycle operations."""

NAME_TAG_KEY = "Name"
"""Tag key the instance filter matches against."""

STATE_POLL_INTERVAL_SECONDS = 0.6
"""Delay between describe_instances calls while waiting for a state change.

Short enough that the confirmation is reported promptly, long enough to stay
far below the EC2 API request rate limits for a single caller.
"""

STATE_CHANGE_TIMEOUT_SECONDS = 120.0
"""Maximum time to wait for an instance to reach the requested state.

Two minutes covers a normal start or stop of an EBS-backed instance.
"""
