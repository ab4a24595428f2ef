"""
implstore.validation.safety - Upgrade Safety Checks
=====================================================

Filters compiler-reported unsafe patterns (constructors, delegatecall,
selfdestruct, ...) against the patterns a caller has explicitly opted into.

The patterns themselves are detected by the compiler collaborator and
shipped in ValidationData; this module only decides which of them block
a deployment.
"""

from __future__ import annotations

from typing import Iterable, Union

from implstore.core.enums import ProxyKind, SafetyCheck
from implstore.core.exceptions import UnsafeImplementationError
from implstore.core.models import SafetyIssue, ValidationData, Version
from implstore.validation.layout import find_entry

# Only UUPS implementations must expose upgradeTo themselves.
_KIND_SPECIFIC_CHECKS: dict[SafetyCheck, set[ProxyKind]] = {
    SafetyCheck.MISSING_PUBLIC_UPGRADETO: {ProxyKind.UUPS},
}


def check_upgrade_safety(
    validation_data: ValidationData,
    version: Version,
    kind: ProxyKind = ProxyKind.TRANSPARENT,
    unsafe_allow: Iterable[Union[SafetyCheck, str]] = (),
) -> list[SafetyIssue]:
    """Return the issues for `version` that are neither allowed nor irrelevant to `kind`.

    Raises:
        LayoutNotFoundError: If the validation data does not cover `version`.
    """
    entry = find_entry(validation_data, version)
    allowed = {SafetyCheck(a) for a in unsafe_allow}

    blocking = []
    for issue in entry.issues:
        applies_to = _KIND_SPECIFIC_CHECKS.get(issue.kind)
        if applies_to is not None and kind not in applies_to:
            continue
        if issue.kind in allowed:
            continue
        blocking.append(issue)
    return blocking


def assert_upgrade_safe(
    validation_data: ValidationData,
    version: Version,
    kind: ProxyKind = ProxyKind.TRANSPARENT,
    unsafe_allow: Iterable[Union[SafetyCheck, str]] = (),
) -> None:
    """Raise UnsafeImplementationError if any blocking issue remains."""
    issues = check_upgrade_safety(validation_data, version, kind, unsafe_allow)
    if issues:
        summary = ", ".join(sorted({i.kind.value for i in issues}))
        raise UnsafeImplementationError(
            message=f"Contract is not upgrade safe: {summary}",
            issues=issues,
            details={"kind": kind.value},
        )
