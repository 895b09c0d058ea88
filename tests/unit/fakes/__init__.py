"""Fake implementations for testing wakeshell without AWS or ssh."""

from tests.unit.fakes.fake_ec2_manager import FakeEC2Manager
from tests.unit.fakes.fake_session import FakeCancellationToken, FakeSession

__all__ = ["FakeEC2Manager", "FakeSession", "FakeCancellationToken"]
