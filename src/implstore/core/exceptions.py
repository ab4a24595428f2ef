"""
implstore.core.exceptions - Custom Exception Hierarchy
========================================================

This module defines a structured exception hierarchy for implstore.
Components raise and catch specific exception types that carry contextual
information instead of bare strings.

Exception Hierarchy:
    ImplStoreError (base)
        ├── ConfigurationError         - Invalid config, malformed YAML
        ├── InvalidBytecodeError       - Bytecode / args are not valid hex
        ├── LayoutNotFoundError        - Validation data does not cover a version
        ├── UnsafeUpgradeError         - Storage layout incompatible with predecessor
        ├── UnsafeImplementationError  - Compiler-reported unsafe patterns
        ├── NoExistingDeploymentError  - Strict reuse requested, nothing to reuse
        ├── CorruptManifestError       - Persisted manifest does not parse
        ├── ManifestLockTimeoutError   - Lock not acquired within configured timeout
        └── ChainError
              ├── DeployError          - Deploy transaction failed
              └── NetworkError         - Chain endpoint unreachable

Retry Semantics:
    Validation and identity errors are never worth retrying: the inputs
    must change. DeployError and NetworkError leave the manifest untouched,
    so the whole operation can always be retried by the caller. The library
    itself never retries.

Usage:
    >>> from implstore.core.exceptions import NoExistingDeploymentError
    >>> raise NoExistingDeploymentError(
    ...     message="The implementation contract was not previously deployed",
    ...     network="sepolia",
    ...     fingerprint="0xabc...",
    ... )
"""

from __future__ import annotations

from typing import Any, Optional


# =============================================================================
# Base Exception
# =============================================================================
# All implstore exceptions inherit from this base class, so callers can
# catch every library error with a single except clause:
#
#   try:
#       await manager.deploy_implementation(artifact, args, network="sepolia")
#   except ImplStoreError as e:
#       logger.error(e.message, error_code=e.error_code, details=e.details)
# =============================================================================
class ImplStoreError(Exception):
    """Base exception for all implstore errors.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code for programmatic handling.
            Convention: UPPER_SNAKE_CASE (e.g., "CORRUPT_MANIFEST").
        details: Arbitrary dict with additional debugging context.
    """

    def __init__(
        self,
        message: str,
        error_code: str = "UNKNOWN_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)

        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize this exception to a dictionary.

        Returns:
            Dictionary with error_type, message, error_code, and details.
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ConfigurationError(ImplStoreError):
    """Raised when implstore configuration is invalid or malformed."""

    def __init__(
        self,
        message: str,
        error_code: str = "CONFIG_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, error_code=error_code, details=details)


# =============================================================================
# Identity & Validation Errors
# =============================================================================
# Local and immediate: raised before any network interaction happens.
# =============================================================================
class InvalidBytecodeError(ImplStoreError):
    """Raised when bytecode or encoded constructor arguments are not valid hex.

    Attributes:
        field: Which input was malformed ("unlinked_bytecode",
            "linked_bytecode" or "encoded_args").
    """

    def __init__(
        self,
        message: str,
        field: str,
        error_code: str = "INVALID_BYTECODE",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        enriched_details["field"] = field

        super().__init__(message=message, error_code=error_code, details=enriched_details)

        self.field = field


class LayoutNotFoundError(ImplStoreError):
    """Raised when validation data has no layout for the requested version.

    This usually means the artifact was compiled in a different toolchain
    run than the one that produced the validation data. The caller must
    recompile; retrying does not help.
    """

    def __init__(
        self,
        message: str,
        linked_bytecode_hash: str,
        error_code: str = "LAYOUT_NOT_FOUND",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        enriched_details["linked_bytecode_hash"] = linked_bytecode_hash

        super().__init__(message=message, error_code=error_code, details=enriched_details)

        self.linked_bytecode_hash = linked_bytecode_hash


class UnsafeUpgradeError(ImplStoreError):
    """Raised when a new storage layout is incompatible with the one it replaces.

    Carries every violation found, not just the first one, so the caller can
    fix all of them in a single pass.

    Attributes:
        violations: The unsuppressed LayoutViolation objects.

    Example:
        >>> try:
        ...     await deployer.deploy_implementation(...)
        ... except UnsafeUpgradeError as e:
        ...     for v in e.violations:
        ...         print(v.kind, v.label, v.detail)
    """

    def __init__(
        self,
        message: str,
        violations: list[Any],
        error_code: str = "UNSAFE_UPGRADE",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        enriched_details["violations"] = [
            v.model_dump(mode="json") if hasattr(v, "model_dump") else v
            for v in violations
        ]

        super().__init__(message=message, error_code=error_code, details=enriched_details)

        self.violations = list(violations)


class UnsafeImplementationError(ImplStoreError):
    """Raised when the implementation contains unsafe patterns not opted into.

    Attributes:
        issues: The SafetyIssue objects that were not allowed.
    """

    def __init__(
        self,
        message: str,
        issues: list[Any],
        error_code: str = "UNSAFE_IMPLEMENTATION",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        enriched_details["issues"] = [
            i.model_dump(mode="json") if hasattr(i, "model_dump") else i
            for i in issues
        ]

        super().__init__(message=message, error_code=error_code, details=enriched_details)

        self.issues = list(issues)


# =============================================================================
# Deployment Cache Errors
# =============================================================================
class NoExistingDeploymentError(ImplStoreError):
    """Raised when strict reuse was requested but no usable deployment exists.

    Deploying a new implementation here would violate the caller's intent,
    so nothing is deployed.
    """

    def __init__(
        self,
        message: str,
        network: str,
        fingerprint: str,
        error_code: str = "NO_EXISTING_DEPLOYMENT",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        enriched_details["network"] = network
        enriched_details["fingerprint"] = fingerprint

        super().__init__(message=message, error_code=error_code, details=enriched_details)

        self.network = network
        self.fingerprint = fingerprint


# =============================================================================
# Manifest Errors
# =============================================================================
# Isolated per network: a corrupt manifest for one network never affects
# operations against another network's manifest.
# =============================================================================
class CorruptManifestError(ImplStoreError):
    """Raised when persisted manifest bytes do not parse as a valid manifest.

    The current operation is aborted. The corrupt file is left exactly as
    found; it is never overwritten.

    Attributes:
        network: The network whose manifest is corrupt.
        path: Filesystem location of the manifest (if file-backed).
    """

    def __init__(
        self,
        message: str,
        network: str,
        path: Optional[str] = None,
        error_code: str = "CORRUPT_MANIFEST",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        enriched_details["network"] = network
        if path:
            enriched_details["path"] = path

        super().__init__(message=message, error_code=error_code, details=enriched_details)

        self.network = network
        self.path = path


class ManifestLockTimeoutError(ImplStoreError):
    """Raised when a manifest lock is not acquired within the configured timeout."""

    def __init__(
        self,
        message: str,
        network: str,
        timeout_seconds: float,
        error_code: str = "MANIFEST_LOCK_TIMEOUT",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        enriched_details["network"] = network
        enriched_details["timeout_seconds"] = timeout_seconds

        super().__init__(message=message, error_code=error_code, details=enriched_details)

        self.network = network
        self.timeout_seconds = timeout_seconds


# =============================================================================
# Chain Errors
# =============================================================================
# Raised by ChainClient implementations. The deployment cache propagates
# them unchanged and never mutates the manifest on this path.
# =============================================================================
class ChainError(ImplStoreError):
    """Base class for errors raised by chain client implementations."""

    def __init__(
        self,
        message: str,
        error_code: str = "CHAIN_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, error_code=error_code, details=details)


class DeployError(ChainError):
    """Raised when a deployment transaction fails or reverts."""

    def __init__(
        self,
        message: str,
        error_code: str = "DEPLOY_FAILED",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, error_code=error_code, details=details)


class NetworkError(ChainError):
    """Raised when the chain endpoint cannot be reached."""

    def __init__(
        self,
        message: str,
        error_code: str = "NETWORK_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, error_code=error_code, details=details)
