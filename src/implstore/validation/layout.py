"""
implstore.validation.layout - Storage Layout Validator
=======================================================

Extracts the storage layout recorded for a version and decides whether a
new layout can safely replace an old one.

Compatibility Model:
    Storage is compared BY POSITION. For every variable in the old layout,
    the new layout must hold a variable at the same (slot, offset) with a
    compatible type. Appending new trailing variables is always allowed;
    reordering, removing or retyping existing ones is not.

    old:  [ owner@0 ][ balance@1 ][ paused@2 ]
    new:  [ owner@0 ][ balance@1 ][ paused@2 ][ fee@3 ]   → compatible
    new:  [ owner@0 ][ paused@1  ][ balance@2 ]           → rename + typechange

Violation Classes and Relaxations:
    Every incompatibility is tagged with a ViolationKind. Some kinds can be
    suppressed by an explicit Relaxation passed by the caller:

        ViolationKind     suppressed by
        ─────────────     ─────────────
        delete            (never)
        typechange        (never)
        rename            renamelabels
        enumextension     enumextension
        enumshrink        (never)
        structgrowth      (never)

    The table above is only a default. Validation data produced by the
    compiler collaborator may carry its own `suppression_rules`, which take
    precedence.

check_compatible() never raises. It collects ALL violations into a
CompatibilityReport so every problem is surfaced in one pass.
"""

from __future__ import annotations

from typing import Iterable, Mapping, Optional, Union

import structlog

from implstore.core.enums import Relaxation, StorageEncoding, TypeKind, ViolationKind
from implstore.core.exceptions import LayoutNotFoundError
from implstore.core.models import (
    CompatibilityReport,
    LayoutViolation,
    StorageLayout,
    StorageSlot,
    TypeDescriptor,
    ValidationData,
    ValidationEntry,
    Version,
)


# =============================================================================
# Logger
# =============================================================================
logger = structlog.get_logger()


DEFAULT_SUPPRESSION_RULES: dict[ViolationKind, Optional[Relaxation]] = {
    ViolationKind.DELETE: None,
    ViolationKind.TYPECHANGE: None,
    ViolationKind.RENAME: Relaxation.RENAME_LABELS,
    ViolationKind.ENUM_EXTENSION: Relaxation.ENUM_EXTENSION,
    ViolationKind.ENUM_SHRINK: None,
    ViolationKind.STRUCT_GROWTH: None,
}


# =============================================================================
# Layout Extraction
# =============================================================================
def find_entry(validation_data: ValidationData, version: Version) -> ValidationEntry:
    """Find the validation entry for a version's linked bytecode.

    Raises:
        LayoutNotFoundError: If the validation data does not know this
            version (typically a mismatched compilation run).
    """
    entry = validation_data.find(version.linked_bytecode_hash)
    if entry is None:
        raise LayoutNotFoundError(
            message=(
                "The requested contract was not found in the validation data. "
                "Make sure it was compiled in the same run that produced them."
            ),
            linked_bytecode_hash=version.linked_bytecode_hash,
            details={"known_contracts": [e.contract_name for e in validation_data.entries]},
        )
    return entry


def extract_layout(validation_data: ValidationData, version: Version) -> StorageLayout:
    """Look up the storage layout recorded for a version's linked bytecode.

    Raises:
        LayoutNotFoundError: If the validation data does not know this version.
    """
    entry = find_entry(validation_data, version)
    logger.debug(
        "layout_extracted",
        contract=entry.contract_name,
        linked_bytecode_hash=version.linked_bytecode_hash,
        variables=len(entry.layout.storage),
    )
    return entry.layout


# =============================================================================
# Compatibility Check
# =============================================================================
class _LayoutComparator:
    """Walks two layouts side by side, collecting violations for one variable at a time."""

    def __init__(self, old: StorageLayout, new: StorageLayout) -> None:
        self._old = old
        self._new = new
        self.found: list[LayoutViolation] = []
        self._anchor: Optional[StorageSlot] = None

    def _add(self, kind: ViolationKind, path: str, detail: str) -> None:
        anchor = self._anchor
        self.found.append(
            LayoutViolation(
                kind=kind,
                label=anchor.label if anchor else path,
                slot=anchor.slot if anchor else 0,
                offset=anchor.offset if anchor else 0,
                path=path,
                detail=detail,
            )
        )

    def compare_variable(self, old_slot: StorageSlot, new_slot: Optional[StorageSlot]) -> None:
        self._anchor = old_slot
        if new_slot is None:
            self._add(
                ViolationKind.DELETE,
                old_slot.label,
                f"no variable at slot {old_slot.slot}, offset {old_slot.offset} in the new layout",
            )
            return
        if new_slot.label != old_slot.label:
            self._add(
                ViolationKind.RENAME,
                old_slot.label,
                f"renamed to '{new_slot.label}'",
            )
        self.compare_types(old_slot.type, new_slot.type, old_slot.label, inplace=True)

    def compare_overlap(self, old_slot: StorageSlot, new_slot: StorageSlot) -> None:
        self._anchor = old_slot
        self._add(
            ViolationKind.TYPECHANGE,
            old_slot.label,
            f"new variable '{new_slot.label}' at slot {new_slot.slot}, "
            f"offset {new_slot.offset} overlaps its storage",
        )

    def compare_types(self, old_id: str, new_id: str, path: str, *, inplace: bool) -> None:
        old_t = self._old.types.get(old_id)
        new_t = self._new.types.get(new_id)
        if old_t is None or new_t is None:
            if old_id != new_id:
                self._add(ViolationKind.TYPECHANGE, path, f"type {old_id} changed to {new_id}")
            return

        if old_t.kind != new_t.kind:
            if _address_like(old_t) and _address_like(new_t):
                return
            self._add(
                ViolationKind.TYPECHANGE,
                path,
                f"{old_t.label} ({old_t.kind.value}) changed to {new_t.label} ({new_t.kind.value})",
            )
            return

        if old_t.kind == TypeKind.ELEMENTARY:
            if _address_like(old_t) and _address_like(new_t):
                return
            if old_t.label != new_t.label or old_t.encoding != new_t.encoding:
                self._add(ViolationKind.TYPECHANGE, path, f"{old_t.label} changed to {new_t.label}")
        elif old_t.kind == TypeKind.ENUM:
            self._compare_enums(old_t, new_t, path)
        elif old_t.kind == TypeKind.STRUCT:
            self._compare_structs(old_t, new_t, path, inplace=inplace)
        elif old_t.kind == TypeKind.MAPPING:
            self._compare_mappings(old_t, new_t, path)
        elif old_t.kind == TypeKind.ARRAY:
            self._compare_arrays(old_t, new_t, path, inplace=inplace)
        # CONTRACT: every contract type is stored as an address.

    def _compare_enums(self, old_t: TypeDescriptor, new_t: TypeDescriptor, path: str) -> None:
        old_members = [m for m in (old_t.members or []) if isinstance(m, str)]
        new_members = [m for m in (new_t.members or []) if isinstance(m, str)]
        if new_members[: len(old_members)] != old_members:
            self._add(
                ViolationKind.ENUM_SHRINK,
                path,
                f"enum {old_t.label} members removed, renamed or reordered",
            )
        elif len(new_members) > len(old_members):
            if new_t.number_of_bytes != old_t.number_of_bytes:
                self._add(
                    ViolationKind.TYPECHANGE,
                    path,
                    f"enum {old_t.label} grew from {old_t.number_of_bytes} "
                    f"to {new_t.number_of_bytes} bytes",
                )
            else:
                added = ", ".join(new_members[len(old_members):])
                self._add(ViolationKind.ENUM_EXTENSION, path, f"enum {old_t.label} gained {added}")

    def _compare_structs(
        self, old_t: TypeDescriptor, new_t: TypeDescriptor, path: str, *, inplace: bool
    ) -> None:
        old_members = [m for m in (old_t.members or []) if isinstance(m, StorageSlot)]
        new_members = [m for m in (new_t.members or []) if isinstance(m, StorageSlot)]

        for index, old_member in enumerate(old_members):
            member_path = f"{path}.{old_member.label}"
            if index >= len(new_members):
                self._add(ViolationKind.DELETE, member_path, f"member removed from {old_t.label}")
                continue
            new_member = new_members[index]
            if new_member.position != old_member.position:
                self._add(
                    ViolationKind.TYPECHANGE,
                    member_path,
                    f"member moved from slot {old_member.slot} offset {old_member.offset} "
                    f"to slot {new_member.slot} offset {new_member.offset}",
                )
                continue
            if new_member.label != old_member.label:
                self._add(ViolationKind.RENAME, member_path, f"member renamed to '{new_member.label}'")
            self.compare_types(old_member.type, new_member.type, member_path, inplace=inplace)

        if inplace and len(new_members) > len(old_members):
            if new_t.number_of_bytes != old_t.number_of_bytes:
                added = ", ".join(m.label for m in new_members[len(old_members):])
                self._add(
                    ViolationKind.STRUCT_GROWTH,
                    path,
                    f"in-place struct {old_t.label} gained {added} and now spans "
                    f"{new_t.number_of_bytes} bytes instead of {old_t.number_of_bytes}",
                )

    def _compare_mappings(self, old_t: TypeDescriptor, new_t: TypeDescriptor, path: str) -> None:
        old_key = self._label_of(self._old, old_t.key)
        new_key = self._label_of(self._new, new_t.key)
        if old_key != new_key:
            self._add(ViolationKind.TYPECHANGE, path, f"mapping key {old_key} changed to {new_key}")
            return
        if old_t.value and new_t.value:
            self.compare_types(old_t.value, new_t.value, f"{path}[]", inplace=False)

    def _compare_arrays(
        self, old_t: TypeDescriptor, new_t: TypeDescriptor, path: str, *, inplace: bool
    ) -> None:
        if old_t.encoding != new_t.encoding:
            self._add(ViolationKind.TYPECHANGE, path, f"{old_t.label} changed to {new_t.label}")
            return
        static = old_t.encoding == StorageEncoding.INPLACE
        if static and old_t.length != new_t.length:
            self._add(
                ViolationKind.TYPECHANGE,
                path,
                f"static array length changed from {old_t.length} to {new_t.length}",
            )
            return
        if old_t.value and new_t.value:
            self.compare_types(old_t.value, new_t.value, f"{path}[]", inplace=static and inplace)

    @staticmethod
    def _label_of(layout: StorageLayout, type_id: Optional[str]) -> Optional[str]:
        if type_id is None:
            return None
        descriptor = layout.types.get(type_id)
        return descriptor.label if descriptor else type_id


def _address_like(descriptor: TypeDescriptor) -> bool:
    if descriptor.kind == TypeKind.CONTRACT:
        return True
    return descriptor.kind == TypeKind.ELEMENTARY and descriptor.label.startswith("address")


def _byte_range(layout: StorageLayout, slot: StorageSlot) -> tuple[int, int]:
    descriptor = layout.types.get(slot.type)
    size = descriptor.number_of_bytes if descriptor else 32
    start = slot.slot * 32 + slot.offset
    return start, start + max(size, 1)


def check_compatible(
    old_layout: StorageLayout,
    new_layout: StorageLayout,
    allowed_relaxations: Iterable[Union[Relaxation, str]] = (),
    rules: Optional[Mapping[ViolationKind, Optional[Relaxation]]] = None,
) -> CompatibilityReport:
    """Compare two storage layouts position by position.

    Args:
        old_layout: Layout of the implementation being replaced.
        new_layout: Layout of the candidate implementation.
        allowed_relaxations: Violation classes the caller explicitly accepts.
        rules: Override of the ViolationKind → Relaxation table, typically
            taken from ValidationData.suppression_rules.

    Returns:
        A CompatibilityReport. Empty `violations` means compatible.
    """
    allowed = {Relaxation(r) for r in allowed_relaxations}
    table = dict(DEFAULT_SUPPRESSION_RULES)
    if rules:
        table.update(rules)

    comparator = _LayoutComparator(old_layout, new_layout)
    new_by_position = new_layout.by_position()
    old_positions = set(old_layout.by_position())

    for old_slot in old_layout.storage:
        comparator.compare_variable(old_slot, new_by_position.get(old_slot.position))

    for new_slot in new_layout.storage:
        if new_slot.position in old_positions:
            continue
        new_start, new_end = _byte_range(new_layout, new_slot)
        for old_slot in old_layout.storage:
            old_start, old_end = _byte_range(old_layout, old_slot)
            if new_start < old_end and old_start < new_end:
                comparator.compare_overlap(old_slot, new_slot)

    report = CompatibilityReport()
    for violation in comparator.found:
        relaxation = table.get(violation.kind)
        if relaxation is not None and relaxation in allowed:
            report.suppressed.append(violation)
        else:
            report.violations.append(violation)
    return report
