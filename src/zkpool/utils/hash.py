"""Keccak-256 hashing and the scalar field the circuit works in."""

from typing import Union

from Crypto.Hash import keccak

# BN254 scalar field: every commitment, root and circuit signal lives below it.
FIELD_SIZE = 21888242871839275222246405745257275088548364400416034343698204186575808495617


def keccak256(data: Union[bytes, str]) -> bytes:
    """
    Compute Keccak-256 (the Ethereum flavour, not SHA3-256) of data.

    Args:
        data: Bytes or string to hash (strings are UTF-8 encoded)

    Returns:
        bytes: 32-byte digest
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    h = keccak.new(digest_bits=256)
    h.update(data)
    return h.digest()


def function_selector(signature: str) -> bytes:
    """First four bytes of keccak256 of a function signature such as ``isSpent(bytes32)``."""
    return keccak256(signature)[:4]


def event_topic(signature: str) -> int:
    """Topic 0 of an event, as an integer."""
    return int.from_bytes(keccak256(signature), "big")
