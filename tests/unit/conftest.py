"""Pytest configuration and fixtures for wakeshell tests."""

import os
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import boto3
import pytest
import yaml
from moto import mock_aws

from wakeshell.core.signals import set_active_token


@pytest.fixture(autouse=True)
def clean_wakeshell_env() -> Generator[None, None, None]:
    """Ensure WAKESHELL_CODE and WAKESHELL_DEBUG do not leak into unit tests.

    Yields
    ------
    None
        Control back to test after ensuring clean environment
    """
    saved = {key: os.environ.pop(key, None) for key in ("WAKESHELL_CODE", "WAKESHELL_DEBUG")}

    yield

    for key, value in saved.items():
        if value is not None:
            os.environ[key] = value
        else:
            os.environ.pop(key, None)

    set_active_token(None)


@pytest.fixture
def aws_credentials() -> Generator[None, None, None]:
    """Fixture to set AWS credentials for testing with proper cleanup.

    Sets mock AWS credentials in environment variables for the duration of the test,
    then restores the original environment state.

    Yields
    ------
    None
        Control back to test after setting credentials
    """
    keys = ("AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY", "AWS_DEFAULT_REGION")
    saved = {key: os.environ.get(key) for key in keys}

    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"

    yield

    for key, value in saved.items():
        if value is not None:
            os.environ[key] = value
        else:
            os.environ.pop(key, None)


@pytest.fixture
def config_file(tmp_path: Path) -> Generator[Path, None, None]:
    """Create a temporary config file path and point WAKESHELL_CONFIG at it.

    Parameters
    ----------
    tmp_path : Path
        Pytest temporary directory path

    Yields
    ------
    Path
        Path to temporary config file
    """
    config_path = tmp_path / "wakeshell.yaml"

    original_env = os.environ.get("WAKESHELL_CONFIG")
    os.environ["WAKESHELL_CONFIG"] = str(config_path)

    yield config_path

    if original_env is not None:
        os.environ["WAKESHELL_CONFIG"] = original_env
    else:
        os.environ.pop("WAKESHELL_CONFIG", None)


@pytest.fixture
def write_config(config_file: Path) -> Callable[[dict[str, Any]], None]:
    """Helper fixture to write config data to file.

    Parameters
    ----------
    config_file : Path
        Path to config file from config_file fixture

    Returns
    -------
    callable
        Function that takes config_data dict and writes to file
    """

    def _write(config_data: dict[str, Any]) -> None:
        with open(config_file, "w") as f:
            yaml.dump(config_data, f)

    return _write


@pytest.fixture
def ec2_client(aws_credentials) -> Generator[Any, None, None]:
    """Mocked EC2 client shared with the code under test."""
    with mock_aws():
        yield boto3.client("ec2", region_name="us-east-1")


@pytest.fixture
def launch_instance(ec2_client) -> Callable[..., str]:
    """Launch tagged instances in the mocked account.

    Returns
    -------
    callable
        Function taking a Name tag (and optional count) that returns the
        first instance ID; each call creates a separate reservation
    """
    image_id = ec2_client.register_image(
        Name="test-ami-image",
        Description="Test AMI",
        Architecture="x86_64",
        RootDeviceName="/dev/sda1",
        VirtualizationType="hvm",
    )["ImageId"]

    def _launch(name: str, count: int = 1) -> str:
        response = ec2_client.run_instances(
            ImageId=image_id,
            InstanceType="t3.micro",
            MinCount=count,
            MaxCount=count,
            TagSpecifications=[
                {"ResourceType": "instance", "Tags": [{"Key": "Name", "Value": name}]}
            ],
        )
        return response["Instances"][0]["InstanceId"]

    return _launch
