"""
implstore.integrations - External Collaborators
=================================================

Adapters for the systems implstore consumes but does not implement:

    - chain: deploy contracts and check for deployed code (ChainClient)
"""

from implstore.integrations.chain import ChainClient, MockChainClient, create_chain_client

__all__ = [
    "ChainClient",
    "MockChainClient",
    "create_chain_client",
]
