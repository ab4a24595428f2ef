"""
implstore.integrations.chain - Chain Access
=============================================

    - ChainClient:     Abstract deploy / has_code contract.
    - MockChainClient: In-memory chain (for testing and examples).
"""

from implstore.integrations.chain.base import ChainClient
from implstore.integrations.chain.mock import MockChainClient
from implstore.integrations.chain.factory import create_chain_client

__all__ = [
    "ChainClient",
    "MockChainClient",
    "create_chain_client",
]
