"""
implstore.orchestration.implementation_deployer - Implementation Deployer
===========================================================================

Top-level workflow for getting an implementation contract onto a network:

    ContractArtifact + constructor args
        │
        ├── encode_constructor_args()   (ABI encoding)
        ├── compute_version()           (identity)
        ├── extract_layout()            (LayoutNotFoundError)
        ├── assert_upgrade_safe()       (UnsafeImplementationError)
        ├── check_compatible()          (UnsafeUpgradeError, upgrades only)
        └── DeploymentCache.fetch_or_deploy(produce=chain.deploy)

Nothing is deployed unless every validation step passes.
"""

from __future__ import annotations

from typing import Any, NamedTuple, Optional, Sequence

import structlog

from implstore.core.exceptions import ConfigurationError, UnsafeUpgradeError
from implstore.core.models import (
    ContractArtifact,
    DeployOptions,
    ImplementationDeployment,
    ProducedDeployment,
    StorageLayout,
    Version,
)
from implstore.integrations.chain.base import ChainClient
from implstore.orchestration.deployment_cache import DeploymentCache
from implstore.validation.layout import check_compatible, extract_layout
from implstore.validation.safety import assert_upgrade_safe
from implstore.validation.version import compute_version, encode_constructor_args


# =============================================================================
# Logger
# =============================================================================
logger = structlog.get_logger()


class DeployData(NamedTuple):
    """Everything derived from an artifact before touching the chain."""

    encoded_args: str
    version: Version
    layout: StorageLayout


class ImplementationDeployer:
    """Validates an implementation and deploys it through the DeploymentCache.

    Example:
        >>> deployer = ImplementationDeployer(cache, chain)
        >>> result = await deployer.deploy_implementation(
        ...     artifact, [42], upgrade_from=current_layout,
        ... )
        >>> result.address
    """

    def __init__(self, cache: DeploymentCache, chain: ChainClient) -> None:
        self._cache = cache
        self._chain = chain
        self._logger = logger.bind(component="implementation_deployer")

    def get_deploy_data(
        self, artifact: ContractArtifact, constructor_args: Sequence[Any] = ()
    ) -> DeployData:
        """Encode arguments, compute the Version and extract its storage layout.

        Raises:
            InvalidBytecodeError: Malformed bytecode or unencodable arguments.
            LayoutNotFoundError: Validation data does not cover this version.
        """
        encoded_args = encode_constructor_args(artifact.abi, constructor_args)
        version = compute_version(artifact.bytecode, artifact.linked_bytecode, encoded_args)
        layout = extract_layout(artifact.validation_data, version)
        return DeployData(encoded_args=encoded_args, version=version, layout=layout)

    async def deploy_implementation(
        self,
        artifact: ContractArtifact,
        constructor_args: Sequence[Any] = (),
        network: Optional[str] = None,
        upgrade_from: Optional[StorageLayout] = None,
        options: Optional[DeployOptions] = None,
    ) -> ImplementationDeployment:
        """Validate and deploy (or reuse) an implementation.

        Args:
            artifact: Compiled contract with its validation data.
            constructor_args: Python values for the constructor inputs.
            network: Target network. Defaults to the chain client's network
                and must match it when given.
            upgrade_from: Layout of the implementation being replaced. When
                None this is a fresh deployment and no layout check runs.
            options: Reuse policy, proxy kind and opt-in relaxations.

        Returns:
            The canonical record, annotated with the validated layout.

        Raises:
            UnsafeUpgradeError: The layout is incompatible with `upgrade_from`.
            UnsafeImplementationError: Unsafe patterns not opted into.
            NoExistingDeploymentError: Strict reuse requested, nothing to reuse.
        """
        options = options or DeployOptions()
        network = self._resolve_network(network)
        data = self.get_deploy_data(artifact, constructor_args)
        log = self._logger.bind(
            network=network,
            contract=artifact.contract_name,
            fingerprint=data.version.fingerprint,
            kind=options.kind.value,
        )

        validation_data = artifact.validation_data
        assert_upgrade_safe(validation_data, data.version, options.kind, options.unsafe_allow)

        if upgrade_from is not None:
            report = check_compatible(
                upgrade_from,
                data.layout,
                options.unsafe_allow_relaxations,
                rules=validation_data.suppression_rules,
            )
            for violation in report.suppressed:
                log.warning(
                    "layout_violation_allowed",
                    kind=violation.kind.value,
                    path=violation.path,
                    detail=violation.detail,
                )
            if not report.is_compatible:
                log.error("unsafe_upgrade_rejected", violations=len(report.violations))
                raise UnsafeUpgradeError(
                    message=(
                        f"New storage layout of {artifact.contract_name} is incompatible:\n"
                        f"{report.explain()}"
                    ),
                    violations=report.violations,
                    details={"contract": artifact.contract_name, "network": network},
                )

        async def produce() -> ProducedDeployment:
            result = await self._chain.deploy(artifact.deployable_bytecode, data.encoded_args)
            return ProducedDeployment(
                address=result.address,
                transaction_hash=result.transaction_hash,
                abi=artifact.abi,
                layout=data.layout,
            )

        record = await self._cache.fetch_or_deploy(
            data.version, network, produce, options.fetch_options()
        )
        if record.layout != data.layout:
            record = record.model_copy(update={"layout": data.layout})

        log.info("implementation_ready", address=record.address)
        return ImplementationDeployment(record=record, kind=options.kind)

    def _resolve_network(self, network: Optional[str]) -> str:
        if network is None:
            return self._chain.network
        if network != self._chain.network:
            raise ConfigurationError(
                message=(
                    f"Requested network '{network}' but the chain client is "
                    f"connected to '{self._chain.network}'"
                ),
                error_code="NETWORK_MISMATCH",
                details={"requested": network, "connected": self._chain.network},
            )
        return network
