"""
implstore.core - Foundation Layer
=================================

This package contains the foundational building blocks that every other
module in implstore depends on:

    - config:      Configuration management (ImplStoreConfig, ManifestConfig, ChainConfig)
    - enums:       Type-safe enumerations (TypeKind, ViolationKind, Relaxation, ...)
    - models:      Pydantic data models (Version, StorageLayout, DeploymentRecord, Manifest)
    - exceptions:  Custom exception hierarchy for structured error handling

Dependency Rule:
    core/ depends on NOTHING else in the implstore package.
"""

from implstore.core.config import ChainConfig, ImplStoreConfig, ManifestConfig
from implstore.core.enums import (
    ProxyKind,
    Relaxation,
    SafetyCheck,
    StorageEncoding,
    TypeKind,
    ViolationKind,
)
from implstore.core.exceptions import (
    ChainError,
    ConfigurationError,
    CorruptManifestError,
    DeployError,
    ImplStoreError,
    InvalidBytecodeError,
    LayoutNotFoundError,
    ManifestLockTimeoutError,
    NetworkError,
    NoExistingDeploymentError,
    UnsafeImplementationError,
    UnsafeUpgradeError,
)
from implstore.core.models import (
    CompatibilityReport,
    ContractArtifact,
    DeployOptions,
    DeployResult,
    DeploymentRecord,
    FetchOptions,
    ImplementationDeployment,
    LayoutViolation,
    Manifest,
    ProducedDeployment,
    SafetyIssue,
    StorageLayout,
    StorageSlot,
    TypeDescriptor,
    ValidationData,
    ValidationEntry,
    Version,
)

__all__ = [
    # Config
    "ImplStoreConfig",
    "ManifestConfig",
    "ChainConfig",
    # Enums
    "ProxyKind",
    "Relaxation",
    "SafetyCheck",
    "StorageEncoding",
    "TypeKind",
    "ViolationKind",
    # Models
    "CompatibilityReport",
    "ContractArtifact",
    "DeployOptions",
    "DeployResult",
    "DeploymentRecord",
    "FetchOptions",
    "ImplementationDeployment",
    "LayoutViolation",
    "Manifest",
    "ProducedDeployment",
    "SafetyIssue",
    "StorageLayout",
    "StorageSlot",
    "TypeDescriptor",
    "ValidationData",
    "ValidationEntry",
    "Version",
    # Exceptions
    "ImplStoreError",
    "ConfigurationError",
    "InvalidBytecodeError",
    "LayoutNotFoundError",
    "UnsafeUpgradeError",
    "UnsafeImplementationError",
    "NoExistingDeploymentError",
    "CorruptManifestError",
    "ManifestLockTimeoutError",
    "ChainError",
    "DeployError",
    "NetworkError",
]
