"""Hash and identity encoding shared by the registry, the tree builder and the engine.

Encoding rules:
- Identities are 20-byte EVM addresses, given as 0x-prefixed hex. Mixed-case
  input must carry a valid EIP-55 checksum.
- The hash function is keccak-256.
- A leaf is keccak256(address_bytes20), the same value Solidity produces for
  keccak256(abi.encodePacked(address)).
- Internal nodes are keccak256(min(a, b) || max(a, b)). Sorting the pair
  makes proofs position-free: a proof is just the list of sibling hashes.
- Leaf preimages are 20 bytes, internal preimages 64 bytes, so a leaf value
  can never be replayed as an internal node or vice versa.
"""
from __future__ import annotations

from typing import Any, Union

from web3 import Web3

from .exceptions import MalformedInput

HASH_WIDTH = 32
ADDRESS_WIDTH = 20
ZERO_HASH = bytes(HASH_WIDTH)
ZERO_ADDRESS = "0x" + "0" * (ADDRESS_WIDTH * 2)

HashLike = Union[bytes, str]


def keccak256(data: bytes) -> bytes:
    """Keccak-256 digest of raw bytes."""
    return bytes(Web3.keccak(data))


def to_bytes32(value: Any, field: str = "hash") -> bytes:
    """Normalize a 32-byte hash given as bytes or 0x-hex.

    Raises:
        MalformedInput: If the value is not exactly 32 bytes wide
    """
    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    elif isinstance(value, str):
        if not value.startswith(("0x", "0X")):
            raise MalformedInput(field, value, "expected 0x-prefixed hex")
        try:
            raw = bytes(Web3.to_bytes(hexstr=value))
        except ValueError as e:
            raise MalformedInput(field, value, f"invalid hex: {e}") from e
        # to_bytes left-pads odd-length hex, so check the digit count too
        if len(value) != 2 + HASH_WIDTH * 2:
            raise MalformedInput(field, value, f"expected {HASH_WIDTH * 2} hex digits")
    else:
        raise MalformedInput(field, value, f"expected bytes or hex string, got {type(value).__name__}")

    if len(raw) != HASH_WIDTH:
        raise MalformedInput(field, value, f"expected {HASH_WIDTH} bytes, got {len(raw)}")
    return raw


def to_address(value: Any, field: str = "identity") -> str:
    """Validate an address and return its EIP-55 checksummed form.

    Raises:
        MalformedInput: If the value is not a well-formed 20-byte address
    """
    if isinstance(value, (bytes, bytearray)):
        if len(value) != ADDRESS_WIDTH:
            raise MalformedInput(field, value, f"expected {ADDRESS_WIDTH} bytes, got {len(value)}")
        return Web3.to_checksum_address(Web3.to_hex(bytes(value)))
    if not isinstance(value, str) or not value.startswith("0x"):
        raise MalformedInput(field, value, "expected 0x-prefixed address")
    if not Web3.is_address(value):
        raise MalformedInput(field, value, "not a valid address (bad length, hex, or checksum)")
    return Web3.to_checksum_address(value)


def address_bytes(value: Any, field: str = "identity") -> bytes:
    """Canonical 20-byte encoding of an address."""
    return bytes(Web3.to_bytes(hexstr=to_address(value, field)))


def leaf_hash(identity: Any) -> bytes:
    """Leaf value committed for a single identity."""
    return keccak256(address_bytes(identity))


def hash_pair(a: bytes, b: bytes) -> bytes:
    """Combine two nodes in sorted order."""
    return keccak256(a + b if a <= b else b + a)


def to_hex(value: bytes) -> str:
    """0x-prefixed lowercase hex of raw bytes."""
    return Web3.to_hex(value)


__all__ = [
    "HASH_WIDTH",
    "ADDRESS_WIDTH",
    "ZERO_HASH",
    "ZERO_ADDRESS",
    "HashLike",
    "keccak256",
    "to_bytes32",
    "to_address",
    "address_bytes",
    "leaf_hash",
    "hash_pair",
    "to_hex",
]
