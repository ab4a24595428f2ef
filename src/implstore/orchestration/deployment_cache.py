"""
implstore.orchestration.deployment_cache - Deployment Cache Orchestrator
==========================================================================

Returns an existing live deployment for a Version, or deploys a new one and
commits it to the network's manifest, so that every (network, fingerprint)
converges on exactly one canonical record.

Algorithm (fetch_or_deploy):

    1. read manifest ───────────────┐
    2. cached & reuse & has_code? ──┼── yes ──→ return cached (no deploy)
    3. require_already_deployed? ───┼── yes ──→ NoExistingDeploymentError
    4. produce()  ← only network-mutating step; on failure nothing is written
    5. locked_update:
         a record for the fingerprint exists (other than the one found
         stale in step 2)?
            yes → it is canonical: keep it, discard ours
            no  → insert ours (replacing the stale record, if any)
    6. return the canonical record

Why Commit-Time Dedup:
    Two processes may both reach step 4 before either commits, so redundant
    on-chain deployments are possible. The manifest lock turns step 5 into a
    compare-and-set against the manifest as re-read under the lock; only one of them wins,
    and every later cache hit returns the winner.
"""

from __future__ import annotations

from typing import Awaitable, Callable, Optional

import structlog

from implstore.core.exceptions import NoExistingDeploymentError
from implstore.core.models import (
    DeploymentRecord,
    FetchOptions,
    Manifest,
    ProducedDeployment,
    Version,
)
from implstore.infrastructure.manifest_store import ManifestStore


# =============================================================================
# Logger
# =============================================================================
logger = structlog.get_logger()


Produce = Callable[[], Awaitable[ProducedDeployment]]
CodeChecker = Callable[[str], Awaitable[bool]]


class DeploymentCache:
    """Fetch-or-deploy orchestration over a ManifestStore.

    Attributes:
        _store: Durable per-network manifests.
        _has_code: Liveness check; returns True if an address holds code.

    Example:
        >>> cache = DeploymentCache(store, chain.has_code)
        >>> record = await cache.fetch_or_deploy(version, "sepolia", produce)
    """

    def __init__(self, store: ManifestStore, has_code: CodeChecker) -> None:
        self._store = store
        self._has_code = has_code
        self._logger = logger.bind(component="deployment_cache")

    @property
    def store(self) -> ManifestStore:
        return self._store

    async def fetch_or_deploy(
        self,
        version: Version,
        network: str,
        produce: Produce,
        options: Optional[FetchOptions] = None,
    ) -> DeploymentRecord:
        """Return the canonical deployment of `version` on `network`, deploying if needed.

        Args:
            version: Identity of the implementation.
            network: Network identifier (manifest key).
            produce: Performs the actual deployment. Called at most once.
            options: Reuse policy (defaults: reuse live deployments, allow deploying).

        Returns:
            The canonical DeploymentRecord, which may belong to a concurrent
            caller that committed first.

        Raises:
            NoExistingDeploymentError: Strict reuse requested and nothing usable is cached.
            CorruptManifestError: The network's manifest does not parse.
            Any exception raised by `produce` or the liveness check, unchanged.
        """
        options = options or FetchOptions()
        fingerprint = version.fingerprint
        log = self._logger.bind(network=network, fingerprint=fingerprint)

        manifest = await self._store.read(network)
        observed = manifest.get(fingerprint)
        stale: Optional[DeploymentRecord] = None

        if observed is not None and options.reuse_existing:
            if await self._has_code(observed.address):
                log.info("implementation_cache_hit", address=observed.address)
                return observed
            log.warning("implementation_cache_stale", address=observed.address)
            stale = observed

        if options.require_already_deployed:
            raise NoExistingDeploymentError(
                message=(
                    "The implementation contract was not previously deployed on "
                    f"network '{network}', and strict reuse was requested."
                ),
                network=network,
                fingerprint=fingerprint,
                details={"stale_address": stale.address} if stale else None,
            )

        log.info("implementation_deploying", replaces=stale.address if stale else None)
        produced = await produce()
        candidate = DeploymentRecord.from_produced(version, produced)
        log.info(
            "implementation_deployed",
            address=candidate.address,
            transaction_hash=candidate.transaction_hash,
        )

        committed: dict[str, DeploymentRecord] = {}

        def commit(current: Manifest) -> Manifest:
            existing = current.get(fingerprint)
            if existing is not None and (stale is None or existing.address != stale.address):
                committed["record"] = existing
                return current
            committed["record"] = candidate
            return current.with_record(candidate)

        await self._store.locked_update(network, commit)
        record = committed["record"]

        if record is not candidate:
            log.warning(
                "implementation_race_lost",
                discarded_address=candidate.address,
                canonical_address=record.address,
            )
        return record
