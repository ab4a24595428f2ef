"""
Tests for implstore.validation.version
========================================

What's Being Tested:
    - compute_version is deterministic and input-sensitive
    - Library placeholders and 0x prefixes are normalized
    - Malformed hex is rejected with the offending field
    - Constructor arguments are ABI-encoded against the artifact ABI
"""

import pytest

from implstore.core.exceptions import InvalidBytecodeError
from implstore.validation.version import (
    compute_version,
    constructor_types,
    encode_constructor_args,
    hash_bytecode,
)

from tests.factories import BOX_V1_BYTECODE, BOX_V2_BYTECODE, CONSTRUCTOR_ABI


PLACEHOLDER = "__$" + "ab" * 17 + "$__"


class TestComputeVersion:
    def test_deterministic(self) -> None:
        first = compute_version(BOX_V1_BYTECODE, BOX_V1_BYTECODE, "0x01")
        second = compute_version(BOX_V1_BYTECODE, BOX_V1_BYTECODE, "0x01")
        assert first == second

    def test_fingerprint_format(self) -> None:
        version = compute_version(BOX_V1_BYTECODE)
        assert version.fingerprint.startswith("0x")
        assert len(version.fingerprint) == 66

    def test_linked_defaults_to_unlinked(self) -> None:
        assert compute_version(BOX_V1_BYTECODE) == compute_version(BOX_V1_BYTECODE, BOX_V1_BYTECODE)

    def test_empty_args_and_0x_are_equivalent(self) -> None:
        assert compute_version(BOX_V1_BYTECODE, encoded_args="") == compute_version(
            BOX_V1_BYTECODE, encoded_args="0x"
        )

    def test_prefix_and_case_do_not_matter(self) -> None:
        bare = BOX_V1_BYTECODE[2:]
        assert compute_version(bare) == compute_version(BOX_V1_BYTECODE)
        assert compute_version(BOX_V1_BYTECODE.upper().replace("0X", "0x")) == compute_version(BOX_V1_BYTECODE)

    def test_bytecode_change_changes_fingerprint(self) -> None:
        v1 = compute_version(BOX_V1_BYTECODE)
        v2 = compute_version(BOX_V2_BYTECODE)
        assert v1.fingerprint != v2.fingerprint
        assert v1.encoded_args_hash == v2.encoded_args_hash

    def test_args_change_only_changes_args_hash(self) -> None:
        a = compute_version(BOX_V1_BYTECODE, encoded_args="0x01")
        b = compute_version(BOX_V1_BYTECODE, encoded_args="0x02")

        assert a.fingerprint != b.fingerprint
        assert a.unlinked_bytecode_hash == b.unlinked_bytecode_hash
        assert a.linked_bytecode_hash == b.linked_bytecode_hash
        assert a.encoded_args_hash != b.encoded_args_hash

    def test_link_placeholders_are_normalized(self) -> None:
        unlinked = "0x6080" + PLACEHOLDER + "00"
        linked = "0x6080" + "ab" * 20 + "00"

        version = compute_version(unlinked, linked)

        assert version.unlinked_bytecode_hash == hash_bytecode("0x6080000" + "ab" * 17 + "00000")
        assert version.unlinked_bytecode_hash != version.linked_bytecode_hash


class TestInvalidInputs:
    @pytest.mark.parametrize(
        "kwargs,field",
        [
            ({"unlinked_bytecode": "0x6080zz"}, "unlinked_bytecode"),
            ({"unlinked_bytecode": "0x608"}, "unlinked_bytecode"),
            ({"unlinked_bytecode": "0x"}, "unlinked_bytecode"),
            ({"unlinked_bytecode": BOX_V1_BYTECODE, "linked_bytecode": "nothex"}, "linked_bytecode"),
            ({"unlinked_bytecode": BOX_V1_BYTECODE, "encoded_args": "0x1"}, "encoded_args"),
        ],
    )
    def test_rejected_with_field(self, kwargs, field) -> None:
        with pytest.raises(InvalidBytecodeError) as exc_info:
            compute_version(**kwargs)
        assert exc_info.value.field == field

    def test_non_string_rejected(self) -> None:
        with pytest.raises(InvalidBytecodeError):
            compute_version(b"\x60\x80")


class TestConstructorArgs:
    def test_constructor_types(self) -> None:
        assert constructor_types(CONSTRUCTOR_ABI) == ["uint256", "address"]
        assert constructor_types([]) == []

    def test_tuple_types_are_expanded(self) -> None:
        abi = [
            {
                "type": "constructor",
                "inputs": [
                    {
                        "type": "tuple[]",
                        "components": [{"type": "address"}, {"type": "uint8"}],
                    }
                ],
            }
        ]
        assert constructor_types(abi) == ["(address,uint8)[]"]

    def test_no_constructor_encodes_to_empty(self) -> None:
        assert encode_constructor_args([], []) == "0x"

    def test_encodes_arguments(self) -> None:
        encoded = encode_constructor_args(CONSTRUCTOR_ABI, [42, "0x" + "11" * 20])
        assert len(encoded) == 2 + 2 * 64
        assert encoded.endswith("11" * 20)
        assert encoded[2:66].endswith("2a")

    def test_argument_count_mismatch(self) -> None:
        with pytest.raises(InvalidBytecodeError) as exc_info:
            encode_constructor_args(CONSTRUCTOR_ABI, [42])
        assert exc_info.value.field == "encoded_args"

    def test_unencodable_value(self) -> None:
        with pytest.raises(InvalidBytecodeError):
            encode_constructor_args(CONSTRUCTOR_ABI, ["not a number", "0x" + "11" * 20])
