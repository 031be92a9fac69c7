"""Tests for deposit events and the event synchronizer."""

import asyncio

import pytest

from fakes import wire_deposit_log
from zkpool.core.events import DepositEvent, EventCache, InMemoryEventCacheStore
from zkpool.core.pool import DEPOSIT_EVENT_TOPIC, Denomination
from zkpool.core.sync import EventSynchronizer, first_discontinuity
from zkpool.exceptions import DiscontinuousLeafSequence, MalformedWireValue
from zkpool.rpc.models import Log

POOL = Denomination(label="1", size=10**18, instance_address=0x1234, deployment_block=1000)


def event(leaf_index, block_number=1001, commitment=None):
    return DepositEvent(
        block_number=block_number,
        transaction_hash=0xD000 + leaf_index,
        commitment=commitment if commitment is not None else 0xC000 + leaf_index,
        leaf_index=leaf_index,
        timestamp=1_600_000_000,
    )


def log_queries(node):
    return [params[0] for params in node.calls("eth_getLogs")]


class TestDepositEvent:
    """Tests for decoding Deposit logs."""

    def make_log(self, topics, data):
        return Log(block_hash=1, block_number=10, transaction_hash=2, transaction_index=0,
                   address=0x1234, topics=topics, data=data)

    def test_from_log(self):
        data = (3).to_bytes(32, "big") + (77).to_bytes(32, "big")
        decoded = DepositEvent.from_log(self.make_log([DEPOSIT_EVENT_TOPIC, 0xC0], data))
        assert decoded == DepositEvent(block_number=10, transaction_hash=2, commitment=0xC0, leaf_index=3, timestamp=77)

    def test_missing_commitment_topic(self):
        with pytest.raises(MalformedWireValue):
            DepositEvent.from_log(self.make_log([DEPOSIT_EVENT_TOPIC], b"\x00" * 64))

    def test_short_data(self):
        with pytest.raises(MalformedWireValue):
            DepositEvent.from_log(self.make_log([DEPOSIT_EVENT_TOPIC, 1], b"\x00" * 63))

    def test_leaf_index_must_fit_uint32(self):
        data = (2**32).to_bytes(32, "big") + b"\x00" * 32
        with pytest.raises(MalformedWireValue):
            DepositEvent.from_log(self.make_log([DEPOSIT_EVENT_TOPIC, 1], data))


class TestEventCache:
    """Tests for the cache watermark."""

    def test_empty_cache_starts_before_deployment(self):
        assert EventCache.from_events("1", [], start_block=1000).last_block == 999

    def test_last_block_is_last_event(self):
        cache = EventCache.from_events("1", [event(0, 1001), event(1, 1007)], start_block=1000)
        assert cache.last_block == 1007
        assert len(cache) == 2

    def test_first_discontinuity(self):
        assert first_discontinuity([event(0), event(1)]) is None
        assert first_discontinuity([event(0), event(1), event(3)]) == 2
        assert first_discontinuity([event(1)]) == 0
        assert first_discontinuity([event(0), event(0)]) == 1


class TestEventSynchronizer:
    """Tests for synchronization against a fake node."""

    def test_single_window_ends_at_latest(self, node, rpc, store):
        """A window reaching past the head is requested up to "latest" and ends the loop."""
        synchronizer = EventSynchronizer(rpc, store, batch_size=10_000)
        asyncio.run(synchronizer.synchronize(POOL))
        queries = log_queries(node)
        assert len(queries) == 1
        assert queries[0]["fromBlock"] == hex(1000)
        assert queries[0]["toBlock"] == "latest"

    def test_windows_are_bounded(self, node, rpc, store):
        node.head = 1350
        synchronizer = EventSynchronizer(rpc, store, batch_size=100)
        asyncio.run(synchronizer.synchronize(POOL))
        ranges = [(q["fromBlock"], q["toBlock"]) for q in log_queries(node)]
        assert ranges == [
            (hex(1000), hex(1099)),
            (hex(1100), hex(1199)),
            (hex(1200), hex(1299)),
            (hex(1300), "latest"),
        ]

    def test_fresh_sync_persists_events(self, node, rpc, store):
        for index in range(3):
            node.add_deposit(POOL.instance_address, 0xC000 + index, index, 1001 + index)
        events = asyncio.run(EventSynchronizer(rpc, store).synchronize(POOL))
        assert [e.leaf_index for e in events] == [0, 1, 2]
        assert store.load("1") == events

    def test_resumes_at_cached_block(self, node, rpc):
        """Fetching restarts at the block of the last cached event, skipping what is cached."""
        store = InMemoryEventCacheStore({"1": [event(0, 1001), event(1, 1002)]})
        node.add_deposit(POOL.instance_address, 0xC001, 1, 1002)
        node.add_deposit(POOL.instance_address, 0xC002, 2, 1500)
        events = asyncio.run(EventSynchronizer(rpc, store).synchronize(POOL))
        assert log_queries(node)[0]["fromBlock"] == hex(1002)
        assert [e.leaf_index for e in events] == [0, 1, 2]
        assert len(store.load("1")) == 3

    def test_other_pools_are_ignored(self, node, rpc, store):
        node.add_deposit(0x9999, 0xC000, 0, 1001)
        assert asyncio.run(EventSynchronizer(rpc, store).synchronize(POOL)) == []

    def test_gap_keeps_valid_prefix(self, node, rpc, store):
        """Leaf indices 0, 1, 3: fails expecting 2 and caches only 0 and 1."""
        for index in (0, 1, 3):
            node.add_deposit(POOL.instance_address, 0xC000 + index, index, 1001 + index)
        with pytest.raises(DiscontinuousLeafSequence) as exc_info:
            asyncio.run(EventSynchronizer(rpc, store).synchronize(POOL))
        assert exc_info.value.expected_index == 2
        assert exc_info.value.found_index == 3
        assert [e.commitment for e in store.load("1")] == [0xC000, 0xC001]

    def test_gap_inside_one_block_heals(self, node, rpc, store):
        """A leaf missing from the block of the last valid event is picked up by the next run."""
        node.add_deposit(POOL.instance_address, 0xC000, 0, 1001)
        node.add_deposit(POOL.instance_address, 0xC001, 1, 1002)
        node.add_deposit(POOL.instance_address, 0xC003, 3, 1003)
        synchronizer = EventSynchronizer(rpc, store)
        with pytest.raises(DiscontinuousLeafSequence):
            asyncio.run(synchronizer.synchronize(POOL))
        assert [e.leaf_index for e in store.load("1")] == [0, 1]

        node.logs.insert(2, wire_deposit_log(POOL.instance_address, 0xC002, 2, 1002))
        events = asyncio.run(synchronizer.synchronize(POOL))
        assert [e.leaf_index for e in events] == [0, 1, 2, 3]
        assert [e.commitment for e in store.load("1")] == [0xC000, 0xC001, 0xC002, 0xC003]

    def test_corrupt_cache_is_truncated(self, node, rpc):
        store = InMemoryEventCacheStore({"1": [event(0, 1001), event(1, 1002), event(5, 1003)]})
        with pytest.raises(DiscontinuousLeafSequence):
            asyncio.run(EventSynchronizer(rpc, store).synchronize(POOL))
        assert [e.leaf_index for e in store.load("1")] == [0, 1]

    def test_idempotent(self, node, rpc, store):
        for index in range(2):
            node.add_deposit(POOL.instance_address, 0xC000 + index, index, 1001 + index)
        synchronizer = EventSynchronizer(rpc, store)
        first = asyncio.run(synchronizer.synchronize(POOL))
        second = asyncio.run(synchronizer.synchronize(POOL))
        assert first == second
        assert len(store.load("1")) == 2

    def test_invalid_batch_size(self, rpc, store):
        with pytest.raises(ValueError):
            EventSynchronizer(rpc, store, batch_size=0)
