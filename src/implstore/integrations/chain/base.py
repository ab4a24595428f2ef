"""
implstore.integrations.chain.base - Abstract Chain Client Interface
=====================================================================

This module defines the narrow contract implstore needs from a blockchain:
broadcast a deployment, and check whether an address holds code. Wallets,
signing, gas and transaction confirmation live behind this interface.

Architecture Context:

    ┌──────────────────────┐    deploy()     ┌──────────────────┐
    │ ImplementationDeployer│ ─────────────→ │   ChainClient    │
    │                      │                 │   (abstract)     │
    ├──────────────────────┤    has_code()   │                  │
    │   DeploymentCache    │ ─────────────→  │                  │
    └──────────────────────┘                 └────────┬─────────┘
                                                      │
                                            ┌─────────┴────────┐
                                       ┌────▼────┐      ┌──────▼──────┐
                                       │  Mock   │      │ web3 / zk / │
                                       │ Client  │      │ caller's own│
                                       └─────────┘      └─────────────┘

Error Contract:
    Implementations raise DeployError for failed or reverted deployments and
    NetworkError when the endpoint cannot be reached. implstore propagates
    both unchanged and never retries.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from implstore.core.models import DeployResult


class ChainClient(ABC):
    """Abstract base class for chain access.

    Attributes:
        network: Identifier of the network this client talks to; used as the
            manifest key (e.g. "sepolia", "unknown-31337").
    """

    def __init__(self, network: str) -> None:
        self._network = network

    @property
    def network(self) -> str:
        return self._network

    async def connect(self) -> None:
        """Open connections to the chain endpoint. Idempotent."""

    async def disconnect(self) -> None:
        """Close connections to the chain endpoint. Idempotent."""

    @abstractmethod
    async def deploy(self, bytecode: str, encoded_args: str) -> DeployResult:
        """Broadcast a contract creation and wait for it to be mined.

        Args:
            bytecode: Linked creation bytecode (0x-prefixed hex).
            encoded_args: ABI-encoded constructor arguments ("0x" for none).

        Returns:
            The deployed address and, when available, the transaction hash.

        Raises:
            DeployError: If the deployment fails or reverts.
            NetworkError: If the chain endpoint cannot be reached.
        """

    @abstractmethod
    async def has_code(self, address: str) -> bool:
        """Return True if `address` currently holds deployed code.

        Raises:
            NetworkError: If the chain endpoint cannot be reached.
        """
