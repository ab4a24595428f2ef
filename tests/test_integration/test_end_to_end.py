"""
End-to-End Integration Tests for implstore
============================================

These tests run the full stack (UpgradesManager, FileManifestStore,
DeploymentCache, ImplementationDeployer, MockChainClient) against a real
temporary directory.

Test Scenarios:
    1. Box V1 deploy, V2 rejected, V3 accepted, V1 reused
    2. Two managers sharing one manifest directory
    3. Networks are isolated from each other, including corruption
"""

from __future__ import annotations

import asyncio

import pytest

from implstore import UpgradesManager
from implstore.core.config import ChainConfig, ImplStoreConfig, ManifestConfig
from implstore.core.exceptions import CorruptManifestError, UnsafeUpgradeError
from implstore.core.models import DeployOptions
from implstore.integrations.chain.mock import MockChainClient

from tests.factories import BOX_V1_LAYOUT, BOX_V3_LAYOUT, box_v1, box_v2, box_v3


NETWORK = "unknown-31337"


@pytest.fixture
def manifest_dir(tmp_path):
    return tmp_path / "manifests"


def _config(manifest_dir, network: str = NETWORK) -> ImplStoreConfig:
    return ImplStoreConfig(
        manifest=ManifestConfig(directory=str(manifest_dir)),
        chain=ChainConfig(network=network),
    )


# =============================================================================
# Test: Upgrade Scenario
# =============================================================================
@pytest.mark.integration
class TestBoxUpgradeScenario:
    async def test_v1_v2_v3_lifecycle(self, manifest_dir) -> None:
        chain = MockChainClient(NETWORK)

        async with UpgradesManager(_config(manifest_dir), chain=chain) as manager:
            # V1: fresh deployment
            v1 = await manager.deploy_proxy_implementation(box_v1())
            assert chain.deploy_count == 1
            assert v1.layout == BOX_V1_LAYOUT

            # V2 retypes `value`: rejected, nothing deployed or recorded
            with pytest.raises(UnsafeUpgradeError) as exc_info:
                await manager.deploy_implementation(box_v2(), upgrade_from=v1.layout)
            assert [v.label for v in exc_info.value.violations] == ["value"]
            assert chain.deploy_count == 1
            assert len(await manager.read_manifest()) == 1

            # V3 appends `counter`: accepted
            v3 = await manager.upgrade_implementation(box_v3(), current_address=v1.address)
            assert chain.deploy_count == 2
            assert v3.address != v1.address
            assert v3.layout == BOX_V3_LAYOUT

            # V1 again: reused from the manifest
            again = await manager.deploy_proxy_implementation(box_v1())
            assert again.address == v1.address
            assert chain.deploy_count == 2

            manifest = await manager.read_manifest()
            assert {r.address for r in manifest.implementations.values()} == {v1.address, v3.address}

    async def test_strict_reuse_across_restarts(self, manifest_dir) -> None:
        chain = MockChainClient(NETWORK)

        async with UpgradesManager(_config(manifest_dir), chain=chain) as manager:
            deployed = await manager.deploy_implementation(box_v1())

        async with UpgradesManager(_config(manifest_dir), chain=chain) as manager:
            reused = await manager.deploy_implementation(
                box_v1(), options=DeployOptions(require_already_deployed=True)
            )

        assert reused.address == deployed.address
        assert chain.deploy_count == 1


# =============================================================================
# Test: Shared Manifest Directory
# =============================================================================
@pytest.mark.integration
class TestSharedManifest:
    async def test_concurrent_managers_converge(self, manifest_dir) -> None:
        chain = MockChainClient(NETWORK)
        gate = chain.hold_deploys()
        managers = [UpgradesManager(_config(manifest_dir), chain=chain) for _ in range(2)]
        for manager in managers:
            await manager.initialize()

        tasks = [asyncio.create_task(m.deploy_implementation(box_v1())) for m in managers]
        while chain.deploy_count < 2:
            await asyncio.sleep(0.001)
        gate.set()
        a, b = await asyncio.gather(*tasks)

        assert a.address == b.address
        assert len(await managers[0].read_manifest()) == 1
        for manager in managers:
            await manager.shutdown()


# =============================================================================
# Test: Network Isolation
# =============================================================================
@pytest.mark.integration
class TestNetworkIsolation:
    async def test_corrupt_network_does_not_affect_another(self, manifest_dir) -> None:
        manifest_dir.mkdir(parents=True)
        (manifest_dir / "sepolia.json").write_text("{{ broken")

        async with UpgradesManager(_config(manifest_dir, "sepolia")) as broken:
            with pytest.raises(CorruptManifestError):
                await broken.deploy_implementation(box_v1())

        async with UpgradesManager(_config(manifest_dir)) as healthy:
            result = await healthy.deploy_implementation(box_v1())
            assert result.address

        assert (manifest_dir / "sepolia.json").read_text() == "{{ broken"
