"""
implstore - Upgradeable Implementation Deployment Cache
=========================================================

implstore decides, for a compiled upgradeable contract, whether a matching
implementation is already deployed on a network; deploys it exactly once if
not; durably records the result in a per-network manifest; and refuses
upgrades whose storage layout would corrupt existing contract state.

    ContractArtifact ─→ Version ─→ StorageLayout check ─→ fetch_or_deploy ─→ Manifest

Quick Start:
    >>> from implstore import UpgradesManager
    >>> async with UpgradesManager(chain=my_chain) as manager:
    ...     deployment = await manager.deploy_proxy_implementation(artifact)
"""

__version__ = "0.1.0"

from implstore.facade import UpgradesManager

__all__ = ["UpgradesManager", "__version__"]
