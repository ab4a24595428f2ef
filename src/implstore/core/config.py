"""
implstore.core.config - Configuration Management
==================================================

Configuration can be loaded from multiple sources with the following
priority (highest first):

    1. Explicit constructor arguments
    2. Environment variables (prefixed with IMPLSTORE_)
    3. YAML configuration file (implstore.yaml)
    4. Default values defined in the models below

Architecture Context:
    The top-level ImplStoreConfig is created once and passed down:

        ImplStoreConfig
            ├── ManifestConfig  → FileManifestStore (directory, lock timeout)
            ├── ChainConfig     → ChainClient factory (provider, default network)
            └── (other settings) → UpgradesManager

Usage:
    # Load from environment variables:
    config = ImplStoreConfig()

    # Load from YAML file:
    config = load_config("implstore.yaml")

    # Explicit overrides:
    config = ImplStoreConfig(manifest=ManifestConfig(directory="/tmp/manifests"))

Environment Variables:
    IMPLSTORE_MANIFEST__DIRECTORY=/var/lib/implstore
    IMPLSTORE_MANIFEST__LOCK_TIMEOUT_SECONDS=30
    IMPLSTORE_CHAIN__NETWORK=sepolia
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

from implstore.core.exceptions import ConfigurationError


# =============================================================================
# Manifest Configuration
# =============================================================================
class ManifestConfig(BaseModel):
    """Where manifests live and how their locks are acquired.

    Attributes:
        directory: Directory holding one `<network>.json` manifest per network
            plus its `.lock` sidecar. Every process that should share a cache
            must point at the same directory.
        lock_timeout_seconds: Maximum time to wait for a manifest lock. None
            (the default) waits until the lock is available.
        lock_poll_interval_seconds: Retry interval while waiting for a lock
            under a timeout. Unused when no timeout is configured.
    """

    directory: str = Field(
        default=".implstore",
        description="Directory containing per-network manifest files",
    )
    lock_timeout_seconds: Optional[float] = Field(
        default=None,
        gt=0,
        description="Lock acquisition timeout (None = wait indefinitely)",
    )
    lock_poll_interval_seconds: float = Field(
        default=0.05,
        gt=0,
        le=5.0,
        description="Polling interval while waiting for a lock under a timeout",
    )


# =============================================================================
# Chain Configuration
# =============================================================================
class ChainConfig(BaseModel):
    """Which chain client to construct and which network it talks to.

    Attributes:
        provider: Chain client implementation name. Only "mock" ships with
            the library; real clients are supplied by the caller.
        network: Network identifier used as the manifest key
            (e.g. "mainnet", "sepolia", "unknown-31337").
    """

    provider: str = Field(
        default="mock",
        description="Chain client provider name",
    )
    network: str = Field(
        default="unknown-31337",
        min_length=1,
        description="Default network identifier",
    )


# =============================================================================
# Main Configuration
# =============================================================================
# Environment Variable Mapping:
#   IMPLSTORE_MANIFEST__DIRECTORY   → config.manifest.directory
#   IMPLSTORE_CHAIN__NETWORK        → config.chain.network
# =============================================================================
class ImplStoreConfig(BaseSettings):
    """Top-level configuration for implstore.

    Attributes:
        manifest: Manifest storage configuration (see ManifestConfig).
        chain: Chain client configuration (see ChainConfig).

    Example:
        >>> config = ImplStoreConfig(
        ...     manifest=ManifestConfig(directory="/tmp/manifests"),
        ... )
    """

    manifest: ManifestConfig = Field(
        default_factory=ManifestConfig,
        description="Manifest storage configuration",
    )
    chain: ChainConfig = Field(
        default_factory=ChainConfig,
        description="Chain client configuration",
    )

    model_config = {
        "env_prefix": "IMPLSTORE_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
    }


# =============================================================================
# Configuration Loader
# =============================================================================
def load_config(path: Optional[str] = None) -> ImplStoreConfig:
    """Load implstore configuration from a YAML file and/or environment variables.

    Args:
        path: Path to a YAML configuration file. If None, looks for
            'implstore.yaml' in the current directory, and falls back to
            pure defaults + environment variables if that is absent too.

    Returns:
        A fully validated ImplStoreConfig instance.

    Raises:
        ConfigurationError: If the YAML file exists but is not valid YAML
            or does not contain a mapping at the top level.
        FileNotFoundError: If an explicit path is provided but doesn't exist.
    """
    if path is None:
        default_path = Path("implstore.yaml")
        if default_path.exists():
            path = str(default_path)

    yaml_data: dict[str, Any] = {}
    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(
                f"Configuration file not found: {path}. "
                f"Create one or use IMPLSTORE_* environment variables."
            )

        with open(config_path) as f:
            try:
                raw_data = yaml.safe_load(f)
            except yaml.YAMLError as exc:
                raise ConfigurationError(
                    message=f"Malformed YAML in {path}: {exc}",
                    error_code="INVALID_YAML",
                    details={"path": str(config_path)},
                ) from exc

        if raw_data is None:
            raw_data = {}
        if not isinstance(raw_data, dict):
            raise ConfigurationError(
                message=f"Configuration file {path} must contain a mapping",
                error_code="INVALID_YAML",
                details={"path": str(config_path)},
            )
        yaml_data = raw_data

    return ImplStoreConfig(**yaml_data)


def get_default_config() -> ImplStoreConfig:
    """Create an ImplStoreConfig with all defaults (plus any set env vars)."""
    return ImplStoreConfig()
