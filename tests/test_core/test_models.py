"""
Tests for implstore.core.models
=================================

What's Being Tested:
    - Version hash format validation
    - StorageLayout type table consistency
    - Manifest invariants (key == fingerprint) and snapshot helpers
    - Lossless JSON round-trip of records through a Manifest
"""

import pytest
from pydantic import ValidationError

from implstore.core.enums import ProxyKind, StorageEncoding, TypeKind
from implstore.core.models import (
    CompatibilityReport,
    DeployOptions,
    DeploymentRecord,
    LayoutViolation,
    Manifest,
    ProducedDeployment,
    StorageLayout,
    StorageSlot,
    TypeDescriptor,
    Version,
)
from implstore.core.enums import ViolationKind
from implstore.validation.version import compute_version

from tests.factories import BOX_V1_BYTECODE, BOX_V1_LAYOUT, BOX_V3_BYTECODE


def _record(bytecode: str = BOX_V1_BYTECODE, address: str = "0x" + "11" * 20) -> DeploymentRecord:
    return DeploymentRecord.from_produced(
        compute_version(bytecode),
        ProducedDeployment(
            address=address,
            transaction_hash="0x" + "ab" * 32,
            abi=[{"type": "function", "name": "value", "inputs": [], "outputs": []}],
            layout=BOX_V1_LAYOUT,
        ),
    )


class TestVersion:
    def test_rejects_non_hash_fingerprint(self) -> None:
        with pytest.raises(ValidationError):
            Version(
                fingerprint="0x1234",
                unlinked_bytecode_hash="0x" + "00" * 32,
                linked_bytecode_hash="0x" + "00" * 32,
                encoded_args_hash="0x" + "00" * 32,
            )

    def test_is_frozen(self) -> None:
        version = compute_version(BOX_V1_BYTECODE)
        with pytest.raises(ValidationError):
            version.fingerprint = "0x" + "00" * 32


class TestStorageLayout:
    def test_undeclared_type_rejected(self) -> None:
        with pytest.raises(ValidationError):
            StorageLayout(storage=[StorageSlot(label="x", type="t_missing", slot=0)], types={})

    def test_by_position(self) -> None:
        positions = BOX_V1_LAYOUT.by_position()
        assert positions[(0, 0)].label == "owner"
        assert positions[(1, 0)].label == "value"

    def test_struct_members_parse_as_slots_and_enum_members_as_names(self) -> None:
        struct = TypeDescriptor.model_validate(
            {
                "label": "struct Box.Info",
                "kind": "struct",
                "members": [{"label": "a", "type": "t_uint256", "slot": 0}],
            }
        )
        enum = TypeDescriptor(label="enum Box.State", kind=TypeKind.ENUM, members=["Open", "Closed"], number_of_bytes=1)

        assert isinstance(struct.members[0], StorageSlot)
        assert enum.members == ["Open", "Closed"]
        assert struct.encoding == StorageEncoding.INPLACE


class TestManifest:
    def test_empty_manifest(self) -> None:
        manifest = Manifest(network="sepolia")
        assert len(manifest) == 0
        assert manifest.get("0x" + "00" * 32) is None

    def test_with_record_returns_new_snapshot(self) -> None:
        empty = Manifest(network="sepolia")
        record = _record()

        updated = empty.with_record(record)

        assert len(empty) == 0
        assert updated.get(record.version.fingerprint) == record

    def test_with_record_keeps_other_fingerprints(self) -> None:
        r1, r3 = _record(), _record(BOX_V3_BYTECODE, "0x" + "33" * 20)
        manifest = Manifest(network="sepolia").with_record(r1).with_record(r3)

        assert set(manifest.implementations) == {r1.version.fingerprint, r3.version.fingerprint}
        assert manifest.get(r1.version.fingerprint) == r1

    def test_key_must_match_fingerprint(self) -> None:
        record = _record()
        with pytest.raises(ValidationError):
            Manifest(network="sepolia", implementations={"0x" + "00" * 32: record})

    def test_find_by_address_is_case_insensitive(self) -> None:
        record = _record(address="0x" + "aB" * 20)
        manifest = Manifest(network="sepolia").with_record(record)
        assert manifest.find_by_address("0x" + "ab" * 20) == record
        assert manifest.find_by_address("0x" + "cd" * 20) is None

    def test_json_round_trip_is_lossless(self) -> None:
        manifest = Manifest(network="sepolia").with_record(_record())
        restored = Manifest.model_validate_json(manifest.model_dump_json())
        assert restored == manifest

    def test_record_without_transaction_hash(self) -> None:
        record = DeploymentRecord(
            version=compute_version(BOX_V1_BYTECODE), address="0x" + "11" * 20
        )
        assert record.transaction_hash is None


class TestCompatibilityReport:
    def test_empty_report_is_compatible(self) -> None:
        assert CompatibilityReport().is_compatible

    def test_labels_and_explain(self) -> None:
        report = CompatibilityReport(
            violations=[
                LayoutViolation(
                    kind=ViolationKind.TYPECHANGE,
                    label="value",
                    slot=1,
                    path="value",
                    detail="uint256 changed to bool",
                )
            ]
        )
        assert not report.is_compatible
        assert report.labels() == ["value"]
        assert "[typechange]" in report.explain()


class TestDeployOptions:
    def test_defaults(self) -> None:
        options = DeployOptions()
        assert options.reuse_existing is True
        assert options.require_already_deployed is False
        assert options.kind == ProxyKind.TRANSPARENT

    def test_fetch_options_carry_reuse_policy(self) -> None:
        fetch = DeployOptions(reuse_existing=False, require_already_deployed=True).fetch_options()
        assert fetch.reuse_existing is False
        assert fetch.require_already_deployed is True
