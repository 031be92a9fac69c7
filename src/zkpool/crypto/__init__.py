"""Field hashing primitives used to rebuild the deposit tree."""

from zkpool.crypto.mimc import mimc_sponge_hash, multi_hash, feistel

__all__ = [
    "mimc_sponge_hash",
    "multi_hash",
    "feistel",
]
