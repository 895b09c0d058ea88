"""EC2 instance lookup and start/stop state management for wakeshell."""

from __future__ import annotations

import logging
import sys
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

import boto3

from wakeshell.constants import TERMINAL_STATES, InstanceState
from wakeshell.core.signals import CancellationToken
from wakeshell.exceptions import (
    AmbiguousMatchError,
    CancelledError,
    ConfirmationTimeoutError,
    FilterMismatchError,
    NoPublicAddressError,
    NotRunningError,
    UnexpectedResponseShapeError,
    UnsupportedStateError,
)
from wakeshell.providers.aws.constants import (
    NAME_TAG_KEY,
    STATE_CHANGE_TIMEOUT_SECONDS,
    STATE_POLL_INTERVAL_SECONDS,
)
from wakeshell.providers.aws.errors import handle_aws_errors
from wakeshell.providers.aws.utils import count_instances, get_tag_value

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InstanceFilter:
    """Selects the target instance by its Name tag.

    Parameters
    ----------
    name_prefix : str
        Required start of the Name tag
    name_suffix : str
        Required end of the Name tag
    """

    name_prefix: str = ""
    name_suffix: str = ""

    @property
    def name_pattern(self) -> str:
        """Glob pattern sent to EC2, ``prefix*suffix``."""
        return f"{self.name_prefix}*{self.name_suffix}"

    def to_ec2_filters(self) -> list[dict[str, Any]]:
        """Build the describe_instances Filters argument."""
        return [{"Name": f"tag:{NAME_TAG_KEY}", "Values": [self.name_pattern]}]

    def matches(self, name: str) -> bool:
        """Check a Name tag against the prefix and suffix."""
        return name.startswith(self.name_prefix) and name.endswith(self.name_suffix)


@dataclass(frozen=True)
class InstanceRecord:
    """Snapshot of the target instance as last reported by EC2."""

    instance_id: str
    state: InstanceState
    name_tag: str
    public_address: str | None = None
    public_ip: str | None = None

    @classmethod
    def from_ec2(cls, instance: dict[str, Any]) -> InstanceRecord:
        """Build a record from a describe_instances instance dictionary.

        The public address prefers the public DNS name and falls back to the
        public IP when EC2 assigns no DNS name (e.g. VPCs without DNS hostnames).
        """
        public_ip = instance.get("PublicIpAddress") or None
        public_dns = instance.get("PublicDnsName") or None
        return cls(
            instance_id=instance["InstanceId"],
            state=InstanceState(instance["State"]["Name"]),
            name_tag=get_tag_value(instance.get("Tags"), NAME_TAG_KEY),
            public_address=public_dns or public_ip,
            public_ip=public_ip,
        )


class StateProgress(Protocol):
    """Observer for the state confirmation loop."""

    def tick(self, instance: InstanceRecord) -> None:
        """Called after every poll that did not yet see the target state."""
        ...

    def done(self) -> None:
        """Called once when the loop ends, successfully or not."""
        ...


class DotProgress:
    """Prints one dot per poll to stderr, like a classic wait indicator."""

    def __init__(self) -> None:
        self._ticks = 0

    def tick(self, instance: InstanceRecord) -> None:
        self._ticks += 1
        sys.stderr.write(".")
        sys.stderr.flush()

    def done(self) -> None:
        if self._ticks:
            sys.stderr.write("\n")
            sys.stderr.flush()
        self._ticks = 0


_STATE_TARGETS: dict[InstanceState, tuple[InstanceState, frozenset[InstanceState]]] = {
    InstanceState.STOPPING: (
        InstanceState.STOPPED,
        frozenset((InstanceState.STOPPING, InstanceState.STOPPED)),
    ),
    InstanceState.STOPPED: (
        InstanceState.STOPPED,
        frozenset((InstanceState.STOPPING, InstanceState.STOPPED)),
    ),
    InstanceState.PENDING: (
        InstanceState.RUNNING,
        frozenset((InstanceState.PENDING, InstanceState.RUNNING)),
    ),
    InstanceState.RUNNING: (
        InstanceState.RUNNING,
        frozenset((InstanceState.PENDING, InstanceState.RUNNING)),
    ),
}
"""Requested state -> (state to confirm, states that need no command)."""


class EC2Manager:
    """Locates one pre-existing instance by Name tag and starts or stops it.

    Parameters
    ----------
    region : str | None
        AWS region. None lets boto3 resolve it (AWS_DEFAULT_REGION, profile)
    access_key_id : str | None
        Static access key. None uses the default credential chain
    secret_access_key : str | None
        Static secret key, used together with ``access_key_id``
    boto3_client_factory : Callable[..., Any] | None
        Optional factory for creating boto3 clients. If None, uses boto3.client
    poll_interval : float
        Seconds between polls while waiting for a state change
    state_change_timeout : float
        Seconds before a state change is reported as timed out
    progress_factory : Callable[[], StateProgress] | None
        Creates the observer for each confirmation loop (default: DotProgress)

    Attributes
    ----------
    ec2_client : Any
        boto3 EC2 client
    """

    def __init__(
        self,
        region: str | None = None,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        boto3_client_factory: Callable[..., Any] | None = None,
        poll_interval: float = STATE_POLL_INTERVAL_SECONDS,
        state_change_timeout: float = STATE_CHANGE_TIMEOUT_SECONDS,
        progress_factory: Callable[[], StateProgress] | None = None,
    ) -> None:
        self.region = region
        self.boto3_client_factory = boto3_client_factory or boto3.client
        self.poll_interval = poll_interval
        self.state_change_timeout = state_change_timeout
        self.progress_factory = progress_factory or DotProgress

        client_kwargs: dict[str, Any] = {}
        if region:
            client_kwargs["region_name"] = region
        if access_key_id and secret_access_key:
            client_kwargs["aws_access_key_id"] = access_key_id
            client_kwargs["aws_secret_access_key"] = secret_access_key

        with handle_aws_errors():
            self.ec2_client = self.boto3_client_factory("ec2", **client_kwargs)

        self._instance_cache: InstanceRecord | None = None
        self._cached_filter: InstanceFilter | None = None

    def clear_instance_cache(self) -> None:
        """Forget the last resolved instance so the next lookup hits EC2."""
        self._instance_cache = None
        self._cached_filter = None

    def find_target_instance(self, instance_filter: InstanceFilter) -> InstanceRecord:
        """Resolve the single instance selected by ``instance_filter``.

        Parameters
        ----------
        instance_filter : InstanceFilter
            Name tag filter

        Returns
        -------
        InstanceRecord
            The matching instance (cached until clear_instance_cache)

        Raises
        ------
        AmbiguousMatchError
            If EC2 returns anything but one reservation holding one instance
        FilterMismatchError
            If the instance Name tag does not fit the prefix/suffix
        ProviderAPIError
            If the describe_instances call fails
        """
        if self._instance_cache is not None and self._cached_filter == instance_filter:
            return self._instance_cache

        with handle_aws_errors():
            response = self.ec2_client.describe_instances(
                Filters=instance_filter.to_ec2_filters()
            )

        reservations = response.get("Reservations", [])
        if len(reservations) != 1 or len(reservations[0].get("Instances", [])) != 1:
            reservation_count, instance_count = count_instances(response)
            raise AmbiguousMatchError(
                instance_filter.name_pattern, reservation_count, instance_count
            )

        instance = InstanceRecord.from_ec2(reservations[0]["Instances"][0])

        if not instance_filter.matches(instance.name_tag):
            raise FilterMismatchError(
                f"Expected instance name to start with '{instance_filter.name_prefix}' "
                f"and end with '{instance_filter.name_suffix}', got '{instance.name_tag}'"
            )

        self._instance_cache = instance
        self._cached_filter = instance_filter
        return instance

    def ensure_state(
        self,
        instance_filter: InstanceFilter,
        desired_state: InstanceState | str,
        cancel_token: CancellationToken | None = None,
    ) -> InstanceRecord:
        """Move the target instance to ``desired_state`` and wait for it.

        ``stopping`` is treated as ``stopped`` and ``pending`` as ``running``.
        No start/stop call is made when the instance is already in the target
        state or on its way there.

        Parameters
        ----------
        instance_filter : InstanceFilter
            Name tag filter
        desired_state : InstanceState | str
            Requested state
        cancel_token : CancellationToken | None
            Token that aborts the wait when cancelled

        Returns
        -------
        InstanceRecord
            Freshly fetched record in the target state

        Raises
        ------
        UnsupportedStateError
            If the instance is shutting down/terminated, or the requested
            state cannot be driven by start/stop
        UnexpectedResponseShapeError
            If the start/stop response does not list exactly one instance
        ConfirmationTimeoutError
            If the target state is not reached within state_change_timeout
        CancelledError
            If ``cancel_token`` is cancelled while waiting
        """
        desired_state = InstanceState(desired_state)
        logger.info("Changing target instance state to %s...", desired_state.value)

        self.clear_instance_cache()
        instance = self.find_target_instance(instance_filter)

        if instance.state in TERMINAL_STATES:
            raise UnsupportedStateError(
                f"Instance {instance.instance_id} is {instance.state.value}; "
                "it can no longer be started or stopped"
            )

        if desired_state not in _STATE_TARGETS:
            raise UnsupportedStateError(
                f"Unsupported target state {desired_state.value}; "
                "only running and stopped can be requested"
            )

        target, already_moving = _STATE_TARGETS[desired_state]

        if instance.state == target:
            logger.info("Instance %s is already %s", instance.instance_id, target.value)
            return instance

        if instance.state in already_moving:
            logger.info(
                "Instance %s is already %s",
                instance.instance_id,
                instance.state.value,
            )
        else:
            self._request_transition(instance.instance_id, target)

        return self._wait_for_state(instance_filter, target, cancel_token)

    def _request_transition(self, instance_id: str, target: InstanceState) -> None:
        if target == InstanceState.RUNNING:
            logger.info("Starting instance %s...", instance_id)
            with handle_aws_errors():
                response = self.ec2_client.start_instances(InstanceIds=[instance_id])
            response_key = "StartingInstances"
        else:
            logger.info("Stopping instance %s...", instance_id)
            with handle_aws_errors():
                response = self.ec2_client.stop_instances(InstanceIds=[instance_id])
            response_key = "StoppingInstances"

        transitions = response.get(response_key, [])
        if len(transitions) != 1:
            raise UnexpectedResponseShapeError(
                f"Expected 1 entry in {response_key}, got {len(transitions)}: {transitions}"
            )

    def _wait_for_state(
        self,
        instance_filter: InstanceFilter,
        target: InstanceState,
        cancel_token: CancellationToken | None,
    ) -> InstanceRecord:
        token = cancel_token or CancellationToken()
        progress = self.progress_factory()
        deadline = time.monotonic() + self.state_change_timeout

        logger.info("Waiting for the instance to be %s...", target.value)

        try:
            while True:
                if token.wait(self.poll_interval):
                    raise CancelledError(
                        f"Stopped waiting for the instance to be {target.value}"
                    )

                self.clear_instance_cache()
                instance = self.find_target_instance(instance_filter)

                if instance.state == target:
                    break

                progress.tick(instance)

                if time.monotonic() >= deadline:
                    raise ConfirmationTimeoutError(
                        f"Instance {instance.instance_id} did not become {target.value} "
                        f"within {self.state_change_timeout:g}s "
                        f"(last state: {instance.state.value})"
                    )
        finally:
            progress.done()

        logger.info("Instance %s is now %s", instance.instance_id, target.value)
        return instance

    def get_public_address(self, instance_filter: InstanceFilter) -> str:
        """Get the address to open the session against.

        Parameters
        ----------
        instance_filter : InstanceFilter
            Name tag filter

        Returns
        -------
        str
            Public DNS name, or public IP when EC2 reports no DNS name

        Raises
        ------
        NotRunningError
            If the instance is not running
        NoPublicAddressError
            If the instance has no public IP address
        """
        logger.info("Getting target address...")
        instance = self.find_target_instance(instance_filter)

        if instance.state != InstanceState.RUNNING:
            raise NotRunningError(
                f"Instance {instance.instance_id} is not running, but {instance.state.value}"
            )

        if not instance.public_ip or not instance.public_address:
            raise NoPublicAddressError(
                f"Instance {instance.instance_id} does not have a public IP address"
            )

        return instance.public_address
