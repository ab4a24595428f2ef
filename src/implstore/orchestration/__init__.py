"""
implstore.orchestration - Deployment Workflow Layer
=====================================================

    - DeploymentCache:         fetch_or_deploy() with commit-time dedup
    - ImplementationDeployer:  identity → validation → fetch_or_deploy

Usage:
    from implstore.orchestration import DeploymentCache, ImplementationDeployer
"""

from implstore.orchestration.deployment_cache import DeploymentCache
from implstore.orchestration.implementation_deployer import DeployData, ImplementationDeployer

__all__ = [
    "DeployData",
    "DeploymentCache",
    "ImplementationDeployer",
]
