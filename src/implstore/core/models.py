"""
implstore.core.models - Core Data Models
==========================================

This module defines the Pydantic data models that flow through every layer
of implstore. Every component speaks in terms of these types, and the
manifest store persists them as JSON.

Model Hierarchy:
    Version            → Which compiled implementation is this? (identity)
    StorageLayout      → What storage shape does it expect?
      ├── StorageSlot
      └── TypeDescriptor
    DeployResult       → What did the chain report for a deploy?
    ProducedDeployment → A fresh deployment, before it has a version attached
    DeploymentRecord   → Durable manifest entry for (network, fingerprint)
    Manifest           → Per-network mapping fingerprint → DeploymentRecord

    CompatibilityReport / LayoutViolation  → Output of check_compatible()
    ValidationData / ValidationEntry       → Input from the compiler collaborator
    ContractArtifact                       → Compiled contract handed to the deployer

Data Flow:
    ┌──────────────┐  Version   ┌──────────────────┐  DeploymentRecord  ┌──────────┐
    │  Identity    │ ─────────→ │  DeploymentCache │ ─────────────────→ │ Manifest │
    │  Builder     │            │                  │ ←───────────────── │  Store   │
    └──────────────┘            └──────────────────┘      Manifest      └──────────┘

Design Principles:
    1. Immutable: records and versions are frozen once created
    2. Self-validating: Pydantic enforces hash formats and manifest keys
    3. Lossless: every field round-trips through the JSON manifest
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from implstore.core.enums import (
    ProxyKind,
    Relaxation,
    SafetyCheck,
    StorageEncoding,
    TypeKind,
    ViolationKind,
)


HASH_PATTERN = r"^0x[0-9a-f]{64}$"

MANIFEST_VERSION = "1.0"


# =============================================================================
# Version Identity
# =============================================================================
class Version(BaseModel):
    """Deterministic identity of a compiled implementation plus its arguments.

    Two compilations producing identical bytecode and constructor arguments
    always yield an identical fingerprint. The three component hashes are
    kept so that diagnostics can tell a bytecode change from an argument
    change.

    Attributes:
        fingerprint: keccak256 over the three component hashes.
        unlinked_bytecode_hash: keccak256 of the unlinked creation bytecode.
        linked_bytecode_hash: keccak256 of the linked creation bytecode.
            Validation data is keyed by this hash.
        encoded_args_hash: keccak256 of the ABI-encoded constructor arguments.
    """

    model_config = ConfigDict(frozen=True)

    fingerprint: str = Field(pattern=HASH_PATTERN)
    unlinked_bytecode_hash: str = Field(pattern=HASH_PATTERN)
    linked_bytecode_hash: str = Field(pattern=HASH_PATTERN)
    encoded_args_hash: str = Field(pattern=HASH_PATTERN)


# =============================================================================
# Storage Layout
# =============================================================================
# Mirrors the shape of solc's `storageLayout` output:
#   storage: [{label, type, slot, offset, contract}, ...]
#   types:   {"t_uint256": {label, encoding, numberOfBytes, ...}, ...}
# =============================================================================
class StorageSlot(BaseModel):
    """One state variable (or struct member) and its storage position.

    Attributes:
        label: Variable name as declared in source.
        type: Type id; a key into StorageLayout.types.
        slot: Storage slot index.
        offset: Byte offset within the slot (packed variables).
        contract: Declaring contract, used only in diagnostics.
    """

    model_config = ConfigDict(frozen=True)

    label: str
    type: str
    slot: int = Field(default=0, ge=0)
    offset: int = Field(default=0, ge=0, le=31)
    contract: Optional[str] = None

    @property
    def position(self) -> tuple[int, int]:
        return (self.slot, self.offset)


class TypeDescriptor(BaseModel):
    """Shape of a storage type.

    `members` holds StorageSlot entries for structs (slots relative to the
    struct's start) and plain member names for enums. `value` is the value
    type id of a mapping or the base type id of an array.
    """

    model_config = ConfigDict(frozen=True)

    label: str
    kind: TypeKind = TypeKind.ELEMENTARY
    encoding: StorageEncoding = StorageEncoding.INPLACE
    number_of_bytes: int = Field(default=32, ge=0)
    members: Optional[list[Union[StorageSlot, str]]] = None
    key: Optional[str] = None
    value: Optional[str] = None
    length: Optional[int] = Field(default=None, ge=0)


class StorageLayout(BaseModel):
    """Ordered storage slots plus the type table they reference."""

    model_config = ConfigDict(frozen=True)

    storage: list[StorageSlot] = Field(default_factory=list)
    types: dict[str, TypeDescriptor] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _types_are_declared(self) -> "StorageLayout":
        missing = sorted({s.type for s in self.storage} - set(self.types))
        if missing:
            raise ValueError(f"storage references undeclared types: {missing}")
        return self

    def by_position(self) -> dict[tuple[int, int], StorageSlot]:
        return {s.position: s for s in self.storage}


# =============================================================================
# Compatibility Report
# =============================================================================
class LayoutViolation(BaseModel):
    """A single storage layout incompatibility.

    Attributes:
        kind: The violation class.
        label: Top-level state variable the violation belongs to.
        slot: Storage slot of that variable in the old layout.
        offset: Byte offset of that variable in the old layout.
        path: Dotted path into nested members ("balances.owner"), or just
            the label for top-level variables.
        detail: Human-readable explanation.
    """

    model_config = ConfigDict(frozen=True)

    kind: ViolationKind
    label: str
    slot: int
    offset: int = 0
    path: str
    detail: str


class CompatibilityReport(BaseModel):
    """Result of check_compatible(). An empty `violations` list means compatible.

    Suppressed violations are kept separately so that opted-in risk stays
    visible in logs and diagnostics.
    """

    violations: list[LayoutViolation] = Field(default_factory=list)
    suppressed: list[LayoutViolation] = Field(default_factory=list)

    @property
    def is_compatible(self) -> bool:
        return not self.violations

    def labels(self) -> list[str]:
        return [v.label for v in self.violations]

    def explain(self) -> str:
        return "\n".join(
            f"- {v.path} (slot {v.slot}, offset {v.offset}): [{v.kind.value}] {v.detail}"
            for v in self.violations
        )


# =============================================================================
# Validation Data (compiler collaborator output)
# =============================================================================
class SafetyIssue(BaseModel):
    """A compiler-reported unsafe pattern in an implementation."""

    model_config = ConfigDict(frozen=True)

    kind: SafetyCheck
    contract: Optional[str] = None
    src: Optional[str] = None
    detail: str = ""


class ValidationEntry(BaseModel):
    """Validation facts for one compiled contract, keyed by linked bytecode hash."""

    contract_name: str
    linked_bytecode_hash: str = Field(pattern=HASH_PATTERN)
    layout: StorageLayout
    issues: list[SafetyIssue] = Field(default_factory=list)


class ValidationData(BaseModel):
    """Everything the compiler collaborator knows about a compilation run.

    Attributes:
        entries: One entry per compiled contract.
        suppression_rules: Optional override of which Relaxation suppresses
            which ViolationKind. When absent the built-in table is used.
    """

    entries: list[ValidationEntry] = Field(default_factory=list)
    suppression_rules: Optional[dict[ViolationKind, Optional[Relaxation]]] = None

    def find(self, linked_bytecode_hash: str) -> Optional[ValidationEntry]:
        for entry in self.entries:
            if entry.linked_bytecode_hash == linked_bytecode_hash:
                return entry
        return None


class ContractArtifact(BaseModel):
    """A compiled contract as handed over by the compiler collaborator.

    Attributes:
        contract_name: Source-level contract name.
        bytecode: Creation bytecode, possibly with library placeholders.
        linked_bytecode: Creation bytecode after library linking. Defaults
            to `bytecode` when the contract links no libraries.
        abi: ABI fragments (used to encode constructor arguments and stored
            in the deployment record).
        validation_data: Validation data from the same compilation run.
    """

    contract_name: str
    bytecode: str
    linked_bytecode: Optional[str] = None
    abi: list[Any] = Field(default_factory=list)
    validation_data: ValidationData = Field(default_factory=ValidationData)

    @property
    def deployable_bytecode(self) -> str:
        return self.linked_bytecode if self.linked_bytecode is not None else self.bytecode


# =============================================================================
# Deployment Records
# =============================================================================
class DeployResult(BaseModel):
    """What the chain reports for a successful deployment.

    `transaction_hash` is None when the deploy capability does not expose
    one. There is no separate "transaction object" variant.
    """

    model_config = ConfigDict(frozen=True)

    address: str
    transaction_hash: Optional[str] = None


class ProducedDeployment(BaseModel):
    """A fresh deployment returned by a `produce` callable, before versioning."""

    model_config = ConfigDict(frozen=True)

    address: str
    transaction_hash: Optional[str] = None
    abi: list[Any] = Field(default_factory=list)
    layout: StorageLayout = Field(default_factory=StorageLayout)


class DeploymentRecord(BaseModel):
    """Durable record of an implementation deployed on one network.

    Created exactly once per (network, fingerprint) and never modified
    afterwards. The manifest is its only durable owner.
    """

    model_config = ConfigDict(frozen=True)

    version: Version
    address: str
    transaction_hash: Optional[str] = None
    abi: list[Any] = Field(default_factory=list)
    layout: StorageLayout = Field(default_factory=StorageLayout)
    deployed_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the record was committed (UTC, informational)",
    )

    @classmethod
    def from_produced(cls, version: Version, produced: ProducedDeployment) -> "DeploymentRecord":
        return cls(
            version=version,
            address=produced.address,
            transaction_hash=produced.transaction_hash,
            abi=produced.abi,
            layout=produced.layout,
        )


class Manifest(BaseModel):
    """Per-network mapping from fingerprint to DeploymentRecord.

    Instances are treated as snapshots: `with_record` and `without` return
    new manifests instead of mutating this one.

    Invariant:
        Every record's version.fingerprint equals its own key.
    """

    model_config = ConfigDict(frozen=True)

    manifest_version: str = MANIFEST_VERSION
    network: str
    implementations: dict[str, DeploymentRecord] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _keys_match_fingerprints(self) -> "Manifest":
        for key, record in self.implementations.items():
            if record.version.fingerprint != key:
                raise ValueError(
                    f"record under {key} has fingerprint {record.version.fingerprint}"
                )
        return self

    def get(self, fingerprint: str) -> Optional[DeploymentRecord]:
        return self.implementations.get(fingerprint)

    def find_by_address(self, address: str) -> Optional[DeploymentRecord]:
        wanted = address.lower()
        for record in self.implementations.values():
            if record.address.lower() == wanted:
                return record
        return None

    def with_record(self, record: DeploymentRecord) -> "Manifest":
        implementations = dict(self.implementations)
        implementations[record.version.fingerprint] = record
        return self.model_copy(update={"implementations": implementations})

    def __len__(self) -> int:
        return len(self.implementations)


# =============================================================================
# Options
# =============================================================================
class FetchOptions(BaseModel):
    """Options for DeploymentCache.fetch_or_deploy().

    Attributes:
        reuse_existing: Return a live cached deployment instead of deploying.
            When False a new contract is deployed, but an existing record
            stays canonical and is what the call returns.
        require_already_deployed: Fail instead of deploying when no usable
            cached deployment exists.
    """

    reuse_existing: bool = True
    require_already_deployed: bool = False


class DeployOptions(FetchOptions):
    """Options for ImplementationDeployer.deploy_implementation().

    Attributes:
        kind: Proxy pattern the implementation is deployed for.
        unsafe_allow_relaxations: Layout violation classes the caller accepts.
        unsafe_allow: Compiler-reported unsafe patterns the caller accepts.
    """

    kind: ProxyKind = ProxyKind.TRANSPARENT
    unsafe_allow_relaxations: set[Relaxation] = Field(default_factory=set)
    unsafe_allow: set[SafetyCheck] = Field(default_factory=set)

    def fetch_options(self) -> FetchOptions:
        return FetchOptions(
            reuse_existing=self.reuse_existing,
            require_already_deployed=self.require_already_deployed,
        )


class ImplementationDeployment(BaseModel):
    """Result of deploy_implementation(): the canonical record and proxy kind."""

    model_config = ConfigDict(frozen=True)

    record: DeploymentRecord
    kind: ProxyKind

    @property
    def address(self) -> str:
        return self.record.address

    @property
    def layout(self) -> StorageLayout:
        return self.record.layout
