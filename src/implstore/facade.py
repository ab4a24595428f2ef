"""
implstore.facade - UpgradesManager Top-Level Facade
=====================================================

The single entry point that wires configuration, manifest storage, the
chain client, the deployment cache and the implementation deployer.

Architecture Context:

    ┌──────────────────────────────────────────────────┐
    │               UpgradesManager (Facade)            │
    │                                                   │
    │  ┌─────────────────────────────────────────────┐ │
    │  │        Orchestration Layer                   │ │
    │  │  ImplementationDeployer → DeploymentCache    │ │
    │  └─────────────────────┬───────────────────────┘ │
    │                        │                          │
    │  ┌─────────────────────▼───────────────────────┐ │
    │  │        Infrastructure Layer                  │ │
    │  │  ManifestStore (file / in-memory)            │ │
    │  └─────────────────────┬───────────────────────┘ │
    │                        │                          │
    │  ┌─────────────────────▼───────────────────────┐ │
    │  │        Integration Layer                     │ │
    │  │  ChainClient (deploy, has_code)              │ │
    │  └─────────────────────────────────────────────┘ │
    └──────────────────────────────────────────────────┘

Usage:
    >>> async with UpgradesManager(config, chain=my_chain) as manager:
    ...     v1 = await manager.deploy_proxy_implementation(box_v1)
    ...     v2 = await manager.upgrade_implementation(box_v2, current_address=v1.address)
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional, Sequence, Union

import structlog

from implstore.core.config import ImplStoreConfig
from implstore.core.enums import ProxyKind, Relaxation, ViolationKind
from implstore.core.exceptions import ConfigurationError, NoExistingDeploymentError
from implstore.core.models import (
    CompatibilityReport,
    ContractArtifact,
    DeployOptions,
    DeploymentRecord,
    FetchOptions,
    ImplementationDeployment,
    Manifest,
    StorageLayout,
    Version,
)
from implstore.infrastructure.manifest_store import FileManifestStore, ManifestStore
from implstore.integrations.chain.base import ChainClient
from implstore.integrations.chain.factory import create_chain_client
from implstore.orchestration.deployment_cache import DeploymentCache, Produce
from implstore.orchestration.implementation_deployer import ImplementationDeployer
from implstore.validation.layout import check_compatible


# =============================================================================
# Logger
# =============================================================================
logger = structlog.get_logger()


class UpgradesManager:
    """Top-level facade for implementation deployment and upgrade validation.

    Lifecycle:
        1. ``UpgradesManager(config)``: Instantiate with configuration
        2. ``await initialize()``     : Open the manifest store, connect the chain
        3. ``await deploy_*()``       : Deploy / reuse implementations
        4. ``await shutdown()``       : Release resources

    Or use the async context manager:
        async with UpgradesManager(config) as manager:
            ...

    Attributes:
        _config: implstore configuration.
        _store: Manifest persistence (FileManifestStore by default).
        _chain: Chain access (built from config.chain by default).
        _cache: fetch_or_deploy orchestrator.
        _deployer: Validation + deployment workflow.
    """

    def __init__(
        self,
        config: Optional[ImplStoreConfig] = None,
        *,
        store: Optional[ManifestStore] = None,
        chain: Optional[ChainClient] = None,
    ) -> None:
        self._config = config or ImplStoreConfig()

        self._store = store or FileManifestStore(
            self._config.manifest.directory,
            lock_timeout_seconds=self._config.manifest.lock_timeout_seconds,
            lock_poll_interval_seconds=self._config.manifest.lock_poll_interval_seconds,
        )
        self._chain = chain or create_chain_client(self._config.chain)

        self._cache = DeploymentCache(self._store, self._chain.has_code)
        self._deployer = ImplementationDeployer(self._cache, self._chain)

        self._initialized = False
        self._logger = logger.bind(component="upgrades_manager", network=self._chain.network)

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def config(self) -> ImplStoreConfig:
        return self._config

    @property
    def store(self) -> ManifestStore:
        return self._store

    @property
    def chain(self) -> ChainClient:
        return self._chain

    @property
    def network(self) -> str:
        return self._chain.network

    @property
    def cache(self) -> DeploymentCache:
        return self._cache

    @property
    def deployer(self) -> ImplementationDeployer:
        return self._deployer

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    # =========================================================================
    # Lifecycle Management
    # =========================================================================

    async def initialize(self) -> None:
        """Open the manifest store and connect the chain client. Idempotent."""
        if self._initialized:
            return
        await self._store.open()
        await self._chain.connect()
        self._initialized = True
        self._logger.info("upgrades_manager_initialized")

    async def shutdown(self) -> None:
        """Disconnect the chain client and close the manifest store. Idempotent."""
        if not self._initialized:
            return
        await self._chain.disconnect()
        await self._store.close()
        self._initialized = False
        self._logger.info("upgrades_manager_shutdown")

    async def __aenter__(self) -> "UpgradesManager":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.shutdown()

    # =========================================================================
    # Deployment
    # =========================================================================

    async def deploy_implementation(
        self,
        artifact: ContractArtifact,
        constructor_args: Sequence[Any] = (),
        upgrade_from: Optional[StorageLayout] = None,
        options: Optional[DeployOptions] = None,
    ) -> ImplementationDeployment:
        """Validate and deploy (or reuse) an implementation on this manager's network."""
        return await self._deployer.deploy_implementation(
            artifact,
            constructor_args,
            network=self.network,
            upgrade_from=upgrade_from,
            options=options,
        )

    async def deploy_proxy_implementation(
        self,
        artifact: ContractArtifact,
        constructor_args: Sequence[Any] = (),
        options: Optional[DeployOptions] = None,
    ) -> ImplementationDeployment:
        """Deploy an implementation for a transparent or UUPS proxy."""
        options = options or DeployOptions()
        if options.kind == ProxyKind.BEACON:
            raise ConfigurationError(
                message="Use deploy_beacon_implementation() for beacon proxies",
                error_code="INVALID_PROXY_KIND",
                details={"kind": options.kind.value},
            )
        return await self.deploy_implementation(artifact, constructor_args, options=options)

    async def deploy_beacon_implementation(
        self,
        artifact: ContractArtifact,
        constructor_args: Sequence[Any] = (),
        options: Optional[DeployOptions] = None,
    ) -> ImplementationDeployment:
        """Deploy an implementation for a beacon."""
        options = (options or DeployOptions()).model_copy(update={"kind": ProxyKind.BEACON})
        return await self.deploy_implementation(artifact, constructor_args, options=options)

    async def upgrade_implementation(
        self,
        artifact: ContractArtifact,
        constructor_args: Sequence[Any] = (),
        *,
        current_address: str,
        options: Optional[DeployOptions] = None,
    ) -> ImplementationDeployment:
        """Deploy a new implementation replacing the one recorded at `current_address`.

        The current implementation's layout is taken from this network's
        manifest.

        Raises:
            NoExistingDeploymentError: `current_address` is not in the manifest.
            UnsafeUpgradeError: The new layout is incompatible.
        """
        manifest = await self.read_manifest()
        current = manifest.find_by_address(current_address)
        if current is None:
            raise NoExistingDeploymentError(
                message=(
                    f"No implementation at {current_address} is registered on "
                    f"network '{self.network}'; its storage layout is unknown"
                ),
                network=self.network,
                fingerprint="",
                details={"address": current_address},
            )
        return await self.deploy_implementation(
            artifact, constructor_args, upgrade_from=current.layout, options=options
        )

    async def fetch_or_deploy(
        self,
        version: Version,
        produce: Produce,
        options: Optional[FetchOptions] = None,
    ) -> DeploymentRecord:
        """Lower-level access to the deployment cache for this network."""
        return await self._cache.fetch_or_deploy(version, self.network, produce, options)

    # =========================================================================
    # Queries
    # =========================================================================

    async def read_manifest(self, network: Optional[str] = None) -> Manifest:
        """Read-only snapshot of a network's manifest (this network by default)."""
        return await self._store.read(network or self.network)

    @staticmethod
    def check_compatible(
        old_layout: StorageLayout,
        new_layout: StorageLayout,
        allowed_relaxations: Iterable[Union[Relaxation, str]] = (),
        rules: Optional[Mapping[ViolationKind, Optional[Relaxation]]] = None,
    ) -> CompatibilityReport:
        return check_compatible(old_layout, new_layout, allowed_relaxations, rules)

    @staticmethod
    def get_transaction_hash(record: Union[DeploymentRecord, ImplementationDeployment]) -> Optional[str]:
        """Hash of the deployment transaction, or None when the chain did not report one."""
        if isinstance(record, ImplementationDeployment):
            record = record.record
        return record.transaction_hash
