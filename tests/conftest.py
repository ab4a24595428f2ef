"""
Shared Test Fixtures for implstore
====================================

Fixtures are organized by layer:

    1. Configuration fixtures
    2. Infrastructure fixtures (manifest stores)
    3. Integration fixtures (mock chain client)
    4. Orchestration fixtures (DeploymentCache, ImplementationDeployer)
"""

from __future__ import annotations

import pytest

from implstore.core.config import ChainConfig, ImplStoreConfig, ManifestConfig
from implstore.infrastructure.manifest_store import FileManifestStore, InMemoryManifestStore
from implstore.integrations.chain.mock import MockChainClient
from implstore.orchestration.deployment_cache import DeploymentCache
from implstore.orchestration.implementation_deployer import ImplementationDeployer


NETWORK = "unknown-31337"


# =============================================================================
# Configuration
# =============================================================================

@pytest.fixture
def config(tmp_path):
    """Configuration pointing the manifest directory at a temp dir."""
    return ImplStoreConfig(
        manifest=ManifestConfig(directory=str(tmp_path / "manifests")),
        chain=ChainConfig(provider="mock", network=NETWORK),
    )


# =============================================================================
# Infrastructure
# =============================================================================

@pytest.fixture
def file_store(tmp_path):
    """FileManifestStore in a fresh temp directory."""
    return FileManifestStore(tmp_path / "manifests")


@pytest.fixture
def memory_store():
    """Fresh InMemoryManifestStore."""
    return InMemoryManifestStore()


# =============================================================================
# Chain
# =============================================================================

@pytest.fixture
def chain():
    """Fresh MockChainClient on the test network."""
    return MockChainClient(NETWORK)


# =============================================================================
# Orchestration
# =============================================================================

@pytest.fixture
def cache(file_store, chain):
    """DeploymentCache over the file store, probing the mock chain."""
    return DeploymentCache(file_store, chain.has_code)


@pytest.fixture
def deployer(cache, chain):
    """ImplementationDeployer wired to the cache and mock chain."""
    return ImplementationDeployer(cache, chain)
