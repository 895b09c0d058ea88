"""Cloud provider integrations.

Only AWS EC2 is implemented; provider failures are reported through the
provider-agnostic exceptions exported here.
"""

from __future__ import annotations

from wakeshell.providers.exceptions import (
    ProviderAPIError,
    ProviderConnectionError,
    ProviderCredentialsError,
    ProviderError,
)

__all__ = [
    "ProviderError",
    "ProviderCredentialsError",
    "ProviderAPIError",
    "ProviderConnectionError",
]
