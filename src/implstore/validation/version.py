"""
implstore.validation.version - Version Identity Builder
=========================================================

Derives the deterministic identity (Version) of a compiled implementation
plus its constructor arguments.

How the Fingerprint Is Built:
    1. Each input is normalized (optional 0x prefix, library placeholders
       `__$<34 hex>$__` rewritten to `000<34 hex>000`) and validated as hex.
    2. Each input is hashed on its own with keccak256, so diagnostics can
       tell a bytecode change apart from a constructor argument change.
    3. The fingerprint is keccak256 over the three 32-byte digests
       concatenated in a fixed order: unlinked, linked, args.

    unlinked ──keccak──┐
    linked   ──keccak──┼── concat ──keccak──→ fingerprint
    args     ──keccak──┘

Usage:
    >>> version = compute_version("0x6080...", "0x6080...", "0x")
    >>> version.fingerprint
    '0x...'
"""

from __future__ import annotations

import re
from typing import Any, Optional, Sequence

import eth_abi
from eth_abi.exceptions import EncodingError
from eth_utils import decode_hex, encode_hex, keccak

from implstore.core.exceptions import InvalidBytecodeError
from implstore.core.models import Version


_LINK_PLACEHOLDER = re.compile(r"__\$([0-9a-fA-F]{34})\$__")
_HEX_BODY = re.compile(r"^[0-9a-fA-F]*$")


def _normalize_hex(value: str, field: str, *, allow_empty: bool) -> bytes:
    if not isinstance(value, str):
        raise InvalidBytecodeError(
            message=f"{field} must be a hex string, got {type(value).__name__}",
            field=field,
        )

    body = value[2:] if value[:2] in ("0x", "0X") else value
    body = _LINK_PLACEHOLDER.sub(lambda m: f"000{m.group(1)}000", body)

    if not _HEX_BODY.match(body):
        raise InvalidBytecodeError(
            message=f"{field} contains non-hex characters",
            field=field,
        )
    if len(body) % 2:
        raise InvalidBytecodeError(
            message=f"{field} has an odd number of hex digits",
            field=field,
            details={"length": len(body)},
        )
    if not body and not allow_empty:
        raise InvalidBytecodeError(
            message=f"{field} is empty; the contract has no creation bytecode",
            field=field,
        )
    return decode_hex(body)


def hash_bytecode(bytecode: str, field: str = "bytecode") -> str:
    """keccak256 of a normalized bytecode string, as 0x-prefixed hex."""
    return encode_hex(keccak(_normalize_hex(bytecode, field, allow_empty=False)))


def compute_version(
    unlinked_bytecode: str,
    linked_bytecode: Optional[str] = None,
    encoded_args: str = "",
) -> Version:
    """Compute the deterministic Version of a compiled implementation.

    Args:
        unlinked_bytecode: Creation bytecode as emitted by the compiler,
            possibly containing library link placeholders.
        linked_bytecode: Creation bytecode after linking. Defaults to
            `unlinked_bytecode` for contracts without libraries.
        encoded_args: ABI-encoded constructor arguments ("" or "0x" for none).

    Returns:
        The Version. Pure function: identical inputs give identical output.

    Raises:
        InvalidBytecodeError: If any input is not well-formed hex, or a
            bytecode input is empty.
    """
    if linked_bytecode is None:
        linked_bytecode = unlinked_bytecode

    unlinked_digest = keccak(_normalize_hex(unlinked_bytecode, "unlinked_bytecode", allow_empty=False))
    linked_digest = keccak(_normalize_hex(linked_bytecode, "linked_bytecode", allow_empty=False))
    args_digest = keccak(_normalize_hex(encoded_args, "encoded_args", allow_empty=True))

    return Version(
        fingerprint=encode_hex(keccak(unlinked_digest + linked_digest + args_digest)),
        unlinked_bytecode_hash=encode_hex(unlinked_digest),
        linked_bytecode_hash=encode_hex(linked_digest),
        encoded_args_hash=encode_hex(args_digest),
    )


# =============================================================================
# Constructor Argument Encoding
# =============================================================================
def _abi_type(param: dict[str, Any]) -> str:
    """Canonical type string for an ABI parameter, expanding tuples."""
    type_str = param["type"]
    if type_str.startswith("tuple"):
        inner = ",".join(_abi_type(c) for c in param.get("components", []))
        return f"({inner}){type_str[len('tuple'):]}"
    return type_str


def constructor_types(abi: Sequence[Any]) -> list[str]:
    """ABI type strings of the constructor inputs (empty if no constructor)."""
    for fragment in abi:
        if isinstance(fragment, dict) and fragment.get("type") == "constructor":
            return [_abi_type(p) for p in fragment.get("inputs", [])]
    return []


def encode_constructor_args(abi: Sequence[Any], args: Sequence[Any]) -> str:
    """ABI-encode constructor arguments against the artifact's constructor.

    Returns:
        0x-prefixed hex; "0x" when the constructor takes no arguments.

    Raises:
        InvalidBytecodeError: On argument count mismatch or values the
            constructor types cannot encode.
    """
    types = constructor_types(abi)
    if len(types) != len(args):
        raise InvalidBytecodeError(
            message=f"constructor expects {len(types)} arguments, got {len(args)}",
            field="encoded_args",
            details={"types": types},
        )
    if not types:
        return "0x"
    try:
        return encode_hex(eth_abi.encode(types, list(args)))
    except (EncodingError, TypeError, ValueError) as exc:
        raise InvalidBytecodeError(
            message=f"constructor arguments do not match {types}: {exc}",
            field="encoded_args",
            details={"types": types},
        ) from exc
