"""Translation of botocore exceptions into provider exceptions."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from botocore.exceptions import (
    ClientError,
    EndpointConnectionError,
    NoCredentialsError,
    NoRegionError,
    PartialCredentialsError,
)

from wakeshell.providers.exceptions import (
    ProviderAPIError,
    ProviderConnectionError,
    ProviderCredentialsError,
)

logger = logging.getLogger(__name__)


@contextmanager
def handle_aws_errors() -> Iterator[None]:
    """Re-raise botocore failures as provider exceptions.

    Raises
    ------
    ProviderCredentialsError
        If AWS credentials are missing or incomplete
    ProviderConnectionError
        If the EC2 endpoint cannot be reached
    ProviderAPIError
        If EC2 rejects the request, or no region is configured
    """
    try:
        yield
    except (NoCredentialsError, PartialCredentialsError) as e:
        raise ProviderCredentialsError(str(e)) from e
    except NoRegionError as e:
        raise ProviderAPIError(
            message=f"{e}. Set a region in the configuration or AWS_DEFAULT_REGION.",
            error_code="NoRegion",
        ) from e
    except EndpointConnectionError as e:
        raise ProviderConnectionError(str(e)) from e
    except ClientError as e:
        error = e.response.get("Error", {})
        error_code = error.get("Code", "")
        operation = e.operation_name
        logger.debug("AWS %s failed with %s", operation, error_code)
        raise ProviderAPIError(
            message=error.get("Message", str(e)),
            error_code=error_code,
            operation=operation,
        ) from e
