"""Fixed-depth Merkle tree over deposit commitments.

The tree mirrors the one the pool contract maintains: leaves are
commitments in leaf-index order, unused capacity is padded with a chain of
empty-subtree values, and nodes are combined with the MiMC sponge.
"""

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from zkpool.crypto.mimc import mimc_sponge_hash
from zkpool.exceptions import InvalidLeafIndexError, TreeCapacityExceeded
from zkpool.utils.hash import FIELD_SIZE

logger = logging.getLogger(__name__)

HashFunction = Callable[[int, int], int]

# keccak256("tornado") % FIELD_SIZE, the value of an empty leaf.
ZERO_VALUE = 21663839004416932945382355908790599225266501822907911457504978515578255421292


@lru_cache(maxsize=8)
def zero_values(hash_fn: HashFunction, zero_value: int, height: int) -> List[int]:
    """Roots of empty subtrees of height 0..height."""
    zeros = [zero_value]
    for _ in range(height):
        zeros.append(hash_fn(zeros[-1], zeros[-1]))
    return zeros


@dataclass(frozen=True)
class MerklePath:
    """Inclusion path of one leaf, in the shape the withdrawal circuit expects."""

    leaf_index: int
    siblings: List[int]  # pathElements, leaf level first
    direction_bits: List[int]  # pathIndices: 1 where the node is a right child
    root: int


class MerkleIndex:
    """
    Perfect binary tree of fixed height over field-element leaves.

    The root is a pure function of the ordered leaves. The tree is rebuilt
    from scratch for each withdrawal attempt and never persisted.
    """

    DEFAULT_HEIGHT = 20

    def __init__(
        self,
        leaves: Sequence[int] = (),
        tree_height: int = DEFAULT_HEIGHT,
        hash_fn: HashFunction = mimc_sponge_hash,
        zero_value: int = ZERO_VALUE,
    ):
        """
        Build the tree.

        Args:
            leaves: Commitments ordered by leaf index
            tree_height: Depth of the tree (default 20)
            hash_fn: Two-to-one node hash
            zero_value: Value of an empty leaf

        Raises:
            ValueError: If height or a leaf value is invalid
            TreeCapacityExceeded: If there are more leaves than 2**height
        """
        if tree_height < 1 or tree_height > 32:
            raise ValueError("Tree height must be between 1 and 32")

        self.height = tree_height
        self.max_leaves = 2**tree_height
        self.hash_fn = hash_fn

        if len(leaves) > self.max_leaves:
            raise TreeCapacityExceeded(f"Tree is full (max {self.max_leaves} commitments)")
        for leaf in leaves:
            if not isinstance(leaf, int) or leaf < 0 or leaf >= FIELD_SIZE:
                raise ValueError(f"Leaf must be a field element, got {leaf!r}")

        self.zeros = zero_values(hash_fn, zero_value, tree_height)
        self.layers: List[List[int]] = [list(leaves)]
        self._index: Optional[Dict[int, int]] = None
        self._build()

    @classmethod
    def from_events(cls, events: Iterable, **kwargs) -> "MerkleIndex":
        """Build a tree from deposit events, ordering them by leaf index first."""
        ordered = sorted(events, key=lambda e: e.leaf_index)
        return cls([e.commitment for e in ordered], **kwargs)

    def _build(self) -> None:
        for level in range(self.height):
            current = self.layers[level]
            parents = []
            for position in range(0, len(current), 2):
                left = current[position]
                right = current[position + 1] if position + 1 < len(current) else self.zeros[level]
                parents.append(self.hash_fn(left, right))
            self.layers.append(parents)
        logger.debug(f"Built tree of height {self.height} over {len(self)} leaves")

    @property
    def leaves(self) -> List[int]:
        return self.layers[0]

    @property
    def root(self) -> int:
        """The current Merkle root."""
        top = self.layers[self.height]
        return top[0] if top else self.zeros[self.height]

    def index_of(self, commitment: int) -> Optional[int]:
        """Leaf index of a commitment, or None when absent."""
        if self._index is None:
            self._index = {}
            for position, leaf in enumerate(self.leaves):
                self._index.setdefault(leaf, position)
        return self._index.get(commitment)

    def path(self, leaf_index: int) -> MerklePath:
        """
        Return the inclusion path of a leaf.

        Raises:
            InvalidLeafIndexError: If no leaf sits at this index
        """
        if leaf_index < 0 or leaf_index >= len(self.leaves):
            raise InvalidLeafIndexError(f"Invalid leaf index: {leaf_index}")

        siblings = []
        bits = []
        position = leaf_index
        for level in range(self.height):
            layer = self.layers[level]
            sibling_position = position ^ 1
            if sibling_position < len(layer):
                siblings.append(layer[sibling_position])
            else:
                siblings.append(self.zeros[level])
            bits.append(position & 1)
            position >>= 1

        return MerklePath(leaf_index=leaf_index, siblings=siblings, direction_bits=bits, root=self.root)

    def verify_path(self, leaf: int, path: MerklePath) -> bool:
        """Fold a leaf through a path and compare with the current root."""
        if len(path.siblings) != self.height or len(path.direction_bits) != self.height:
            return False
        current = leaf
        for sibling, bit in zip(path.siblings, path.direction_bits):
            current = self.hash_fn(sibling, current) if bit else self.hash_fn(current, sibling)
        return current == self.root

    def __len__(self) -> int:
        return len(self.leaves)

    def __repr__(self) -> str:
        return f"MerkleIndex(height={self.height}, leaves={len(self)}/{self.max_leaves}, root=0x{self.root:064x})"
