"""Encoding and decoding between native values and the JSON-RPC hex wire format.

Encoding is total over valid native values. Decoding is strict: every
decoder first checks that it was handed a string of the exact expected
shape and raises ``MalformedWireValue`` carrying the offending value
otherwise. Nothing is silently coerced.
"""

import re
from typing import Any, Callable, Dict, Mapping, Tuple

from zkpool.exceptions import MalformedWireValue, MissingField, WrongFieldType

ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")
BYTES32_PATTERN = re.compile(r"^0x[0-9a-fA-F]{64}$")
QUANTITY_PATTERN = re.compile(r"^0x[0-9a-fA-F]{1,64}$")
HEX_PATTERN = re.compile(r"^0x[0-9a-fA-F]*$")

MAX_ADDRESS = 2**160 - 1
MAX_UINT256 = 2**256 - 1


def _check_range(value: int, maximum: int, kind: str) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{kind} must be an int, got {type(value).__name__}")
    if value < 0 or value > maximum:
        raise ValueError(f"Cannot fit {value} into a {kind}")


def encode_address(value: int) -> str:
    """Encode an address as 20-byte big-endian hex."""
    _check_range(value, MAX_ADDRESS, "20-byte address")
    return f"0x{value:040x}"


def encode_bytes32(value: int) -> str:
    """Encode a 32-byte value (hash, root, word) as full-width big-endian hex."""
    _check_range(value, MAX_UINT256, "32-byte value")
    return f"0x{value:064x}"


def encode_quantity(value: int) -> str:
    """Encode a quantity as minimal-width hex ("0x0" for zero)."""
    _check_range(value, MAX_UINT256, "quantity")
    return hex(value)


def encode_data(value: bytes) -> str:
    """Encode a byte string as full-width hex."""
    if not isinstance(value, (bytes, bytearray)):
        raise TypeError(f"data must be bytes, got {type(value).__name__}")
    return "0x" + bytes(value).hex()


def _require_string(value: Any) -> str:
    if not isinstance(value, str):
        raise MalformedWireValue(value, "a string")
    return value


def decode_address(value: Any) -> int:
    """Decode a 40-hex-digit address."""
    if not ADDRESS_PATTERN.fullmatch(_require_string(value)):
        raise MalformedWireValue(value, "a hex string encoded address")
    return int(value, 16)


def decode_bytes32(value: Any) -> int:
    """Decode a 64-hex-digit 32-byte value."""
    if not BYTES32_PATTERN.fullmatch(_require_string(value)):
        raise MalformedWireValue(value, "a hex string encoded 32 byte value")
    return int(value, 16)


def decode_quantity(value: Any) -> int:
    """Decode a hex quantity of 1 to 64 digits."""
    if not QUANTITY_PATTERN.fullmatch(_require_string(value)):
        raise MalformedWireValue(value, "a hex string encoded number")
    return int(value, 16)


def decode_data(value: Any) -> bytes:
    """Decode an even-length hex byte string."""
    text = _require_string(value)
    if not HEX_PATTERN.fullmatch(text) or len(text) % 2 != 0:
        raise MalformedWireValue(value, "an even-length hex string")
    return bytes.fromhex(text[2:])


# Shapes a field of a wire object may be required to have, checked before
# any field is interpreted.
def _is_hex(value: Any) -> bool:
    return isinstance(value, str) and HEX_PATTERN.fullmatch(value) is not None


FIELD_SHAPES: Dict[str, Tuple[Callable[[Any], bool], str]] = {
    "hex": (_is_hex, "a hex string"),
    "hex_or_null": (lambda v: v is None or _is_hex(v), "a hex string or null"),
    "hex_list": (lambda v: isinstance(v, list) and all(_is_hex(i) for i in v), "a list of hex strings"),
    "string": (lambda v: isinstance(v, str), "a string"),
    "number": (lambda v: isinstance(v, int) and not isinstance(v, bool), "a number"),
}


def expect_object(value: Any) -> Dict[str, Any]:
    """Require a JSON object."""
    if not isinstance(value, dict):
        raise MalformedWireValue(value, "an object")
    return value


def require_fields(obj: Any, shapes: Mapping[str, str]) -> Dict[str, Any]:
    """
    Check that every expected field is present with the right primitive shape.

    Args:
        obj: Decoded JSON value that should be an object
        shapes: Field name -> shape name (see FIELD_SHAPES)

    Returns:
        dict: The same object, now known to be well-shaped

    Raises:
        MalformedWireValue: If obj is not an object
        MissingField: If a field is absent
        WrongFieldType: If a field has the wrong shape
    """
    obj = expect_object(obj)
    for field, shape in shapes.items():
        if field not in obj:
            raise MissingField(field, obj)
        check, description = FIELD_SHAPES[shape]
        if not check(obj[field]):
            raise WrongFieldType(field, description, obj[field])
    return obj


def bytes_to_int(data: bytes) -> int:
    """Interpret bytes as a big-endian unsigned integer."""
    return int.from_bytes(data, "big")


def int_to_le_bytes(value: int, length: int) -> bytes:
    """Encode an unsigned integer as fixed-width little-endian bytes."""
    if value < 0 or value >= 2 ** (length * 8):
        raise ValueError(f"Cannot fit {value} into a {length}-byte unsigned integer")
    return value.to_bytes(length, "little")


def le_bytes_to_int(data: bytes) -> int:
    """Interpret bytes as a little-endian unsigned integer."""
    return int.from_bytes(data, "little")
