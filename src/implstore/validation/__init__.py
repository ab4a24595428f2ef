"""
implstore.validation - Identity & Storage Layout Validation
=============================================================

Pure functions with no I/O:

    - version: compute_version(), encode_constructor_args()
    - layout:  extract_layout(), check_compatible()
    - safety:  check_upgrade_safety(), assert_upgrade_safe()
"""

from implstore.validation.layout import (
    DEFAULT_SUPPRESSION_RULES,
    check_compatible,
    extract_layout,
    find_entry,
)
from implstore.validation.safety import assert_upgrade_safe, check_upgrade_safety
from implstore.validation.version import (
    compute_version,
    encode_constructor_args,
    hash_bytecode,
)

__all__ = [
    "DEFAULT_SUPPRESSION_RULES",
    "assert_upgrade_safe",
    "check_compatible",
    "check_upgrade_safety",
    "compute_version",
    "encode_constructor_args",
    "extract_layout",
    "find_entry",
    "hash_bytecode",
]
