"""
Deploy and Upgrade Example: Box V1 → V2 → V3
==============================================

This example walks through the typical lifecycle of an upgradeable
implementation against the in-memory MockChainClient:

    1. Deploy BoxV1 (fresh deployment, recorded in the manifest)
    2. Try BoxV2, which retypes `value`: rejected before deploying
    3. Upgrade to BoxV3, which appends `counter`: accepted
    4. Deploy BoxV1 again: reused from the manifest, no transaction

Manifests are written to ./.implstore-example/<network>.json.

Usage:
    python examples/deploy_and_upgrade.py
"""

from __future__ import annotations

import asyncio

from implstore import UpgradesManager
from implstore.core.config import ImplStoreConfig, ManifestConfig
from implstore.core.exceptions import UnsafeUpgradeError
from implstore.core.models import (
    ContractArtifact,
    StorageLayout,
    StorageSlot,
    TypeDescriptor,
    ValidationData,
    ValidationEntry,
)
from implstore.validation.version import hash_bytecode


TYPES = {
    "t_address": TypeDescriptor(label="address", number_of_bytes=20),
    "t_uint256": TypeDescriptor(label="uint256", number_of_bytes=32),
    "t_bool": TypeDescriptor(label="bool", number_of_bytes=1),
}


def box(name: str, bytecode: str, *variables: tuple[str, str]) -> ContractArtifact:
    """Build an artifact whose variables occupy consecutive slots."""
    layout = StorageLayout(
        storage=[
            StorageSlot(label=label, type=type_id, slot=i, contract=name)
            for i, (label, type_id) in enumerate(variables)
        ],
        types=TYPES,
    )
    entry = ValidationEntry(
        contract_name=name,
        linked_bytecode_hash=hash_bytecode(bytecode),
        layout=layout,
    )
    return ContractArtifact(
        contract_name=name,
        bytecode=bytecode,
        validation_data=ValidationData(entries=[entry]),
    )


async def main() -> None:
    """Deploy BoxV1, attempt two upgrades and redeploy V1."""
    config = ImplStoreConfig(manifest=ManifestConfig(directory=".implstore-example"))

    box_v1 = box("BoxV1", "0x6080604052600a600055", ("owner", "t_address"), ("value", "t_uint256"))
    box_v2 = box("BoxV2", "0x6080604052600b600055", ("owner", "t_address"), ("value", "t_bool"))
    box_v3 = box(
        "BoxV3",
        "0x6080604052600c600055",
        ("owner", "t_address"),
        ("value", "t_uint256"),
        ("counter", "t_uint256"),
    )

    async with UpgradesManager(config) as manager:
        v1 = await manager.deploy_proxy_implementation(box_v1)
        print(f"BoxV1 deployed at {v1.address}")

        try:
            await manager.upgrade_implementation(box_v2, current_address=v1.address)
        except UnsafeUpgradeError as e:
            print("BoxV2 rejected:")
            for violation in e.violations:
                print(f"  [{violation.kind.value}] {violation.label}: {violation.detail}")

        v3 = await manager.upgrade_implementation(box_v3, current_address=v1.address)
        print(f"BoxV3 deployed at {v3.address}")

        again = await manager.deploy_proxy_implementation(box_v1)
        print(f"BoxV1 reused at  {again.address}")

        manifest = await manager.read_manifest()
        print()
        print(f"Manifest for {manifest.network}: {len(manifest)} implementation(s)")


if __name__ == "__main__":
    asyncio.run(main())
