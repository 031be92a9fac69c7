"""Conversions between integer wei amounts and decimal strings."""

import re

_DECIMAL = re.compile(r"^\d+(?:\.\d+)?$")


def to_decimal_string(value: int, power: int) -> str:
    integer_part, fractional_part = divmod(value, 10**power)
    if fractional_part == 0:
        return str(integer_part)
    return f"{integer_part}.{str(fractional_part).rjust(power, '0').rstrip('0')}"


def from_decimal_string(value: str, power: int) -> int:
    if not _DECIMAL.match(value):
        raise ValueError(f"{value!r} is not a decimal string")
    integer_part, _, fractional_part = value.partition(".")
    if len(fractional_part) > power:
        raise ValueError(f"{value!r} has more than {power} decimal places")
    return int(integer_part + fractional_part.ljust(power, "0"))


def format_ether(wei: int) -> str:
    return to_decimal_string(wei, 18)


def format_gwei(wei: int) -> str:
    return to_decimal_string(wei, 9)


def parse_ether(value: str) -> int:
    return from_decimal_string(value, 18)


def parse_gwei(value: str) -> int:
    return from_decimal_string(value, 9)
