"""Property-based tests using Hypothesis for tree, note and sync invariants."""

import asyncio

from hypothesis import given, settings, strategies as st

from fakes import FakeNode, small_hash
from zkpool.core.events import InMemoryEventCacheStore
from zkpool.core.merkle_tree import MerkleIndex
from zkpool.core.note import MAX_NOTE_VALUE, Note
from zkpool.core.pool import Denomination
from zkpool.core.sync import EventSynchronizer
from zkpool.exceptions import DiscontinuousLeafSequence

leaf_values = st.integers(min_value=0, max_value=2**61 - 2)
note_values = st.integers(min_value=0, max_value=MAX_NOTE_VALUE)


class TestTreeProperties:
    """Property-based tests for the Merkle tree."""

    @given(st.lists(leaf_values, min_size=1, max_size=32), st.data())
    @settings(max_examples=50)
    def test_every_path_folds_to_root(self, leaves, data):
        """Property: the path of any leaf recomputes the root."""
        tree = MerkleIndex(leaves, tree_height=5, hash_fn=small_hash, zero_value=0)
        index = data.draw(st.integers(min_value=0, max_value=len(leaves) - 1))
        path = tree.path(index)
        assert tree.verify_path(leaves[index], path)
        assert path.direction_bits == [(index >> level) & 1 for level in range(5)]

    @given(st.lists(leaf_values, max_size=32))
    @settings(max_examples=50)
    def test_root_is_deterministic(self, leaves):
        """Property: the root is a pure function of the ordered leaves."""
        first = MerkleIndex(leaves, tree_height=5, hash_fn=small_hash, zero_value=0)
        second = MerkleIndex(list(leaves), tree_height=5, hash_fn=small_hash, zero_value=0)
        assert first.root == second.root


class TestNoteProperties:
    """Property-based tests for notes."""

    @given(st.sampled_from(["0.1", "1", "10", "100"]), note_values, note_values)
    def test_note_string_round_trip(self, label, nullifier, secret):
        note = Note(label, nullifier=nullifier, secret=secret)
        assert Note.parse(str(note)) == note


class TestSyncProperties:
    """Property-based tests for synchronization."""

    @given(st.lists(st.integers(min_value=0, max_value=12), min_size=1, max_size=12))
    @settings(max_examples=40)
    def test_cache_is_always_contiguous(self, leaf_indices):
        """Property: whatever the node returns, the cache holds leaf indices 0..n-1."""
        pool = Denomination(label="1", size=10**18, instance_address=0x1234, deployment_block=1000)
        node = FakeNode()
        for position, leaf_index in enumerate(leaf_indices):
            node.add_deposit(pool.instance_address, 0xC000 + position, leaf_index, 1001 + position)
        store = InMemoryEventCacheStore()

        try:
            asyncio.run(EventSynchronizer(node.client(), store).synchronize(pool))
        except DiscontinuousLeafSequence as e:
            expected = next(p for p, i in enumerate(leaf_indices) if i != p)
            assert e.expected_index == expected

        cached = store.load("1")
        assert [event.leaf_index for event in cached] == list(range(len(cached)))
