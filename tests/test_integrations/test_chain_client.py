"""
Tests for implstore.integrations.chain
========================================

Covers the MockChainClient simulation controls and the provider factory.
"""

import asyncio

import pytest

from implstore.core.config import ChainConfig
from implstore.core.exceptions import ConfigurationError, DeployError, NetworkError
from implstore.integrations.chain.base import ChainClient
from implstore.integrations.chain.factory import create_chain_client
from implstore.integrations.chain.mock import MockChainClient


BYTECODE = "0x6080604052"


class TestMockChainClient:
    async def test_deploy_returns_distinct_checksummed_addresses(self, chain) -> None:
        a = await chain.deploy(BYTECODE, "0x")
        b = await chain.deploy(BYTECODE, "0x")

        assert a.address != b.address
        assert a.address.startswith("0x") and len(a.address) == 42
        assert a.address != a.address.lower()
        assert chain.deploy_count == 2

    async def test_addresses_are_deterministic_per_network(self) -> None:
        first = await MockChainClient("sepolia").deploy(BYTECODE, "0x")
        again = await MockChainClient("sepolia").deploy(BYTECODE, "0x")
        other = await MockChainClient("mainnet").deploy(BYTECODE, "0x")

        assert first.address == again.address
        assert first.address != other.address

    async def test_has_code(self, chain) -> None:
        result = await chain.deploy(BYTECODE, "0x")

        assert await chain.has_code(result.address)
        assert await chain.has_code(result.address.lower())
        assert not await chain.has_code("0x" + "00" * 20)

    async def test_reset_code(self, chain) -> None:
        result = await chain.deploy(BYTECODE, "0x")
        chain.reset_code(result.address)
        assert not await chain.has_code(result.address)

    async def test_transaction_hash_reporting(self) -> None:
        with_hash = await MockChainClient().deploy(BYTECODE, "0x")
        without = await MockChainClient(report_transaction_hash=False).deploy(BYTECODE, "0x")

        assert with_hash.transaction_hash is not None
        assert len(with_hash.transaction_hash) == 66
        assert without.transaction_hash is None

    async def test_set_should_fail(self, chain) -> None:
        chain.set_should_fail()
        with pytest.raises(DeployError):
            await chain.deploy(BYTECODE, "0x")

        chain.set_should_fail(NetworkError("endpoint down"))
        with pytest.raises(NetworkError):
            await chain.deploy(BYTECODE, "0x")

        chain.set_should_fail(should_fail=False)
        await chain.deploy(BYTECODE, "0x")
        assert chain.deployed_addresses and chain.deploy_count == 3

    async def test_hold_deploys(self, chain) -> None:
        gate = chain.hold_deploys()
        task = asyncio.create_task(chain.deploy(BYTECODE, "0x"))
        await asyncio.sleep(0.01)

        assert chain.deploy_count == 1
        assert not task.done()

        gate.set()
        result = await task
        assert await chain.has_code(result.address)

    async def test_deploy_calls_are_recorded(self, chain) -> None:
        await chain.deploy(BYTECODE, "0x2a")
        assert chain.deploy_calls == [{"bytecode": BYTECODE, "encoded_args": "0x2a"}]


class TestChainFactory:
    def test_mock_provider(self) -> None:
        client = create_chain_client(ChainConfig(provider="mock", network="sepolia"))
        assert isinstance(client, MockChainClient)
        assert isinstance(client, ChainClient)
        assert client.network == "sepolia"

    def test_provider_name_is_case_insensitive(self) -> None:
        assert isinstance(create_chain_client(ChainConfig(provider="Mock")), MockChainClient)

    def test_unknown_provider(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            create_chain_client(ChainConfig(provider="infura"))
        assert exc_info.value.error_code == "UNKNOWN_CHAIN_PROVIDER"
