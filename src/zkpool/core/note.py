"""Deposit notes: the secret (nullifier, secret) pair behind one deposit."""

import re
import secrets
from dataclasses import dataclass
from typing import Protocol

from zkpool.core.pool import Denomination, get_denomination
from zkpool.exceptions import InvalidNoteError
from zkpool.utils.encoding import int_to_le_bytes, le_bytes_to_int

# Each half of the preimage is a 31-byte little-endian integer.
FIELD_BYTES = 31
MAX_NOTE_VALUE = 2 ** (FIELD_BYTES * 8) - 1

NOTE_PATTERN = re.compile(
    r"tornado-(?P<currency>\w+)-(?P<label>[\d.]+)-(?P<net_id>\d+)-0x"
    r"(?P<nullifier>[0-9a-fA-F]{62})(?P<secret>[0-9a-fA-F]{62})"
)


class NoteHasher(Protocol):
    """
    Pedersen hash over Baby Jubjub, provided by an external library.

    Must return the x coordinate of the hash point as an integer, which is
    the value the pool contract stores as a commitment.
    """

    def hash(self, data: bytes) -> int:
        ...


@dataclass(frozen=True)
class NoteDigests:
    """Public values derived from a note."""

    commitment: int
    nullifier_hash: int


@dataclass(frozen=True, repr=False)
class Note:
    """
    A deposit note.

    ``preimage = nullifier || secret`` (31 bytes each, little-endian),
    ``commitment = H(preimage)`` and ``nullifier_hash = H(nullifier)``.
    Notes are immutable; two notes with the same pair are the same deposit.
    """

    denomination_label: str
    nullifier: int
    secret: int
    currency: str = "eth"
    net_id: int = 1

    def __post_init__(self):
        get_denomination(self.denomination_label)
        for name in ("nullifier", "secret"):
            value = getattr(self, name)
            if not isinstance(value, int) or value < 0 or value > MAX_NOTE_VALUE:
                raise InvalidNoteError(f"{name} must be a {FIELD_BYTES}-byte unsigned integer")

    @classmethod
    def generate(cls, denomination_label: str, net_id: int = 1) -> "Note":
        """Create a note with fresh random nullifier and secret."""
        return cls(
            denomination_label=denomination_label,
            nullifier=le_bytes_to_int(secrets.token_bytes(FIELD_BYTES)),
            secret=le_bytes_to_int(secrets.token_bytes(FIELD_BYTES)),
            net_id=net_id,
        )

    @classmethod
    def parse(cls, text: str) -> "Note":
        """
        Parse the shareable note string.

        Raises:
            InvalidNoteError: If the text is not a note
            UnknownDenominationError: If the note's size is not supported
        """
        match = NOTE_PATTERN.search(text.strip())
        if match is None:
            raise InvalidNoteError("That doesn't look like a note.")
        return cls(
            denomination_label=match.group("label"),
            nullifier=le_bytes_to_int(bytes.fromhex(match.group("nullifier"))),
            secret=le_bytes_to_int(bytes.fromhex(match.group("secret"))),
            currency=match.group("currency"),
            net_id=int(match.group("net_id")),
        )

    @property
    def denomination(self) -> Denomination:
        return get_denomination(self.denomination_label)

    @property
    def nullifier_bytes(self) -> bytes:
        return int_to_le_bytes(self.nullifier, FIELD_BYTES)

    @property
    def preimage(self) -> bytes:
        return self.nullifier_bytes + int_to_le_bytes(self.secret, FIELD_BYTES)

    def digests(self, hasher: NoteHasher) -> NoteDigests:
        """Compute commitment and nullifier hash with the given Pedersen hasher."""
        return NoteDigests(
            commitment=hasher.hash(self.preimage),
            nullifier_hash=hasher.hash(self.nullifier_bytes),
        )

    def __str__(self) -> str:
        return f"tornado-{self.currency}-{self.denomination_label}-{self.net_id}-0x{self.preimage.hex()}"

    def __repr__(self) -> str:
        return f"Note(denomination={self.denomination_label}, currency={self.currency}, net_id={self.net_id})"
