"""
implstore.integrations.chain.factory - Chain Client Factory
=============================================================

Maps ChainConfig.provider to a concrete ChainClient implementation.

Usage:
    >>> from implstore.integrations.chain import create_chain_client
    >>> client = create_chain_client(ChainConfig(provider="mock", network="sepolia"))
"""

from __future__ import annotations

from implstore.core.config import ChainConfig
from implstore.core.exceptions import ConfigurationError
from implstore.integrations.chain.base import ChainClient


def create_chain_client(config: ChainConfig) -> ChainClient:
    """Create a chain client instance based on configuration.

    Only "mock" ships with implstore. Real chain access is provided by the
    caller as a ChainClient subclass passed directly to UpgradesManager.

    Raises:
        ConfigurationError: If the provider name is not recognized.
    """
    provider_name = config.provider.lower()

    if provider_name == "mock":
        from implstore.integrations.chain.mock import MockChainClient
        return MockChainClient(config.network)

    raise ConfigurationError(
        message=(
            f"Unknown chain provider: '{provider_name}'. "
            f"Available providers: 'mock'. Pass a ChainClient instance for real networks."
        ),
        error_code="UNKNOWN_CHAIN_PROVIDER",
        details={"provider": provider_name},
    )
