"""MiMC sponge over the BN254 scalar field.

This is the two-to-one hash the pool contract uses for its Merkle tree
(MiMCSponge, 220 Feistel rounds with the x^5 S-box, zero key). Round
constants come from iterating keccak-256 starting at ``"mimcsponge"``; the
first and last constants are zero.
"""

from typing import List, Sequence, Tuple

from zkpool.utils.hash import FIELD_SIZE, keccak256

SEED = "mimcsponge"
ROUNDS = 220


def _round_constants(seed: str = SEED, rounds: int = ROUNDS) -> List[int]:
    constants = [0] * rounds
    digest = keccak256(seed)
    for i in range(1, rounds):
        digest = keccak256(digest)
        constants[i] = int.from_bytes(digest, "big") % FIELD_SIZE
    constants[0] = 0
    constants[-1] = 0
    return constants


ROUND_CONSTANTS = _round_constants()


def feistel(left: int, right: int, key: int = 0) -> Tuple[int, int]:
    """Run the MiMC Feistel permutation on (left, right)."""
    p = FIELD_SIZE
    last = ROUNDS - 1
    for i, c in enumerate(ROUND_CONSTANTS):
        t = (left + key + c) % p
        t5 = pow(t, 5, p)
        if i < last:
            left, right = (right + t5) % p, left
        else:
            right = (right + t5) % p
    return left, right


def multi_hash(values: Sequence[int], key: int = 0) -> int:
    """Absorb ``values`` into the sponge and squeeze a single field element."""
    r, c = 0, 0
    for value in values:
        r = (r + value) % FIELD_SIZE
        r, c = feistel(r, c, key)
    return r


def mimc_sponge_hash(left: int, right: int) -> int:
    """Hash two tree nodes into their parent."""
    return multi_hash([left, right])
