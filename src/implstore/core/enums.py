"""
implstore.core.enums - Type-Safe Enumerations
===============================================

This module defines the enumeration types used throughout implstore.

All enums inherit from both `str` and `Enum`, which means:
    - They serialize to strings in JSON (Pydantic-friendly, manifest-friendly)
    - They can be compared with plain strings: TypeKind.STRUCT == "struct"
    - Validation data produced by the compiler collaborator can use bare strings

Where They Are Used:

    ┌─────────────────────────────────────────────────────────────────┐
    │  STORAGE LAYOUT                                                 │
    │    TypeKind, StorageEncoding: shape of a storage type           │
    │    ViolationKind: classes of layout incompatibility             │
    │    Relaxation: opt-in flags that suppress violation classes     │
    ├─────────────────────────────────────────────────────────────────┤
    │  UPGRADE SAFETY                                                 │
    │    SafetyCheck: compiler-reported unsafe patterns               │
    │    ProxyKind: which proxy pattern the implementation serves     │
    └─────────────────────────────────────────────────────────────────┘
"""

from enum import Enum


# =============================================================================
# Storage Type Kinds
# =============================================================================
class TypeKind(str, Enum):
    """The structural kind of a storage type.

    Usage:
        >>> TypeKind("struct") is TypeKind.STRUCT
        True
    """

    ELEMENTARY = "elementary"   # uint256, bool, address, bytes32, ...
    ENUM = "enum"
    STRUCT = "struct"
    MAPPING = "mapping"
    ARRAY = "array"
    CONTRACT = "contract"       # stored as an address


class StorageEncoding(str, Enum):
    """How a type's value is laid out in storage (mirrors solc's encoding field)."""

    INPLACE = "inplace"
    MAPPING = "mapping"
    DYNAMIC_ARRAY = "dynamic_array"
    BYTES = "bytes"


# =============================================================================
# Layout Violation Classes
# =============================================================================
# Each incompatibility found by check_compatible() is tagged with one of
# these. Some classes can be suppressed by an explicit Relaxation.
# =============================================================================
class ViolationKind(str, Enum):
    """Class of storage layout incompatibility."""

    DELETE = "delete"                   # old slot (or member) has nothing at its position
    TYPECHANGE = "typechange"           # incompatible type at an unchanged position
    RENAME = "rename"                   # same position and type, different label
    ENUM_EXTENSION = "enumextension"    # enum gained trailing members
    ENUM_SHRINK = "enumshrink"          # enum lost or reordered members
    STRUCT_GROWTH = "structgrowth"      # in-place struct gained trailing members


class Relaxation(str, Enum):
    """Opt-in risk acceptance flags for check_compatible()."""

    RENAME_LABELS = "renamelabels"
    ENUM_EXTENSION = "enumextension"


# =============================================================================
# Upgrade Safety
# =============================================================================
class SafetyCheck(str, Enum):
    """Compiler-reported unsafe patterns for an upgradeable implementation.

    The string values match the identifiers used in validation data so that
    entries can be parsed without translation.
    """

    CONSTRUCTOR = "constructor"
    DELEGATECALL = "delegatecall"
    SELFDESTRUCT = "selfdestruct"
    STATE_VARIABLE_ASSIGNMENT = "state-variable-assignment"
    STATE_VARIABLE_IMMUTABLE = "state-variable-immutable"
    EXTERNAL_LIBRARY_LINKING = "external-library-linking"
    MISSING_PUBLIC_UPGRADETO = "missing-public-upgradeto"


class ProxyKind(str, Enum):
    """The proxy pattern the implementation is deployed for."""

    TRANSPARENT = "transparent"
    UUPS = "uups"
    BEACON = "beacon"
