"""
implstore.integrations.chain.mock - Mock Chain Client for Testing
===================================================================

An in-memory chain that "deploys" contracts by remembering their bytecode.
It is the default chain client for tests, examples and dry runs.

Features:
    - **Deterministic addresses**: derived from the network and a nonce.
    - **Call tracking**: every deploy() is recorded for assertions.
    - **Error simulation**: raise DeployError / NetworkError on demand.
    - **Chain reset**: drop code at an address to simulate a stale manifest.
    - **Deploy gate**: hold deploys until released, to force races in tests.

Usage:
    >>> chain = MockChainClient("unknown-31337")
    >>> result = await chain.deploy("0x6080...", "0x")
    >>> await chain.has_code(result.address)
    True
    >>> chain.deploy_count
    1
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

import structlog
from eth_utils import keccak, to_checksum_address

from implstore.core.exceptions import ChainError, DeployError
from implstore.core.models import DeployResult
from implstore.integrations.chain.base import ChainClient


# =============================================================================
# Logger
# =============================================================================
logger = structlog.get_logger()


class MockChainClient(ChainClient):
    """In-memory chain client.

    Attributes:
        _code: Address → deployed bytecode.
        _deploy_calls: One dict per deploy() call ("bytecode", "encoded_args").
        _failure: Exception raised by the next deploy() calls, if set.
        _gate: When set, deploy() waits on this event before "mining".
    """

    def __init__(
        self,
        network: str = "unknown-31337",
        *,
        report_transaction_hash: bool = True,
    ) -> None:
        super().__init__(network)
        self._code: dict[str, str] = {}
        self._deploy_calls: list[dict[str, Any]] = []
        self._nonce = 0
        self._report_transaction_hash = report_transaction_hash
        self._failure: Optional[ChainError] = None
        self._gate: Optional[asyncio.Event] = None
        self._logger = logger.bind(component="mock_chain_client", network=network)

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def deploy_calls(self) -> list[dict[str, Any]]:
        return self._deploy_calls

    @property
    def deploy_count(self) -> int:
        return len(self._deploy_calls)

    @property
    def deployed_addresses(self) -> list[str]:
        return list(self._code)

    # =========================================================================
    # Simulation Controls
    # =========================================================================

    def set_should_fail(self, error: Optional[ChainError] = None, *, should_fail: bool = True) -> None:
        """Make subsequent deploy() calls raise `error` (DeployError by default)."""
        if not should_fail:
            self._failure = None
            return
        self._failure = error or DeployError(message="Mock deployment reverted")

    def hold_deploys(self) -> asyncio.Event:
        """Block deploy() calls until the returned event is set."""
        self._gate = asyncio.Event()
        return self._gate

    def reset_code(self, address: str) -> None:
        """Forget the code at `address`, as if the chain had been reset."""
        self._code.pop(to_checksum_address(address), None)

    # =========================================================================
    # ChainClient Implementation
    # =========================================================================

    async def deploy(self, bytecode: str, encoded_args: str) -> DeployResult:
        self._deploy_calls.append({"bytecode": bytecode, "encoded_args": encoded_args})

        if self._gate is not None:
            await self._gate.wait()
        if self._failure is not None:
            self._logger.info("mock_deploy_failed", error_code=self._failure.error_code)
            raise self._failure

        self._nonce += 1
        seed = f"{self.network}:{self._nonce}".encode()
        address = to_checksum_address(keccak(seed)[12:])
        self._code[address] = bytecode + encoded_args.removeprefix("0x")

        tx_hash = None
        if self._report_transaction_hash:
            tx_hash = "0x" + keccak(seed + b":tx").hex()

        self._logger.debug("mock_contract_deployed", address=address, nonce=self._nonce)
        return DeployResult(address=address, transaction_hash=tx_hash)

    async def has_code(self, address: str) -> bool:
        return to_checksum_address(address) in self._code
