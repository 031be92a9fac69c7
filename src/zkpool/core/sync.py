"""Synchronization of a pool's deposit events into the local cache."""

import logging
from typing import List, Optional, Sequence

from zkpool.core.events import DepositEvent, EventCache, EventCacheStore
from zkpool.core.pool import DEPOSIT_EVENT_TOPIC, Denomination
from zkpool.exceptions import DiscontinuousLeafSequence
from zkpool.rpc.client import RpcClient

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10_000


def first_discontinuity(events: Sequence[DepositEvent]) -> Optional[int]:
    """
    Position of the first event whose leaf index breaks the 0, 1, 2, ... run.

    Returns:
        The offending position, or None when the sequence is contiguous
    """
    for position, event in enumerate(events):
        if event.leaf_index != position:
            return position
    return None


class EventSynchronizer:
    """
    Produces the complete, contiguous deposit history of one denomination.

    Already-validated history comes from the cache store; only the watermark
    block and the blocks after it are fetched, in bounded windows. The store is
    written before returning, so a retry after a later failure (for example
    in proof generation) does not fetch validated history again.
    """

    def __init__(self, rpc: RpcClient, store: EventCacheStore, batch_size: int = DEFAULT_BATCH_SIZE):
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self.rpc = rpc
        self.store = store
        self.batch_size = batch_size

    def load_cache(self, denomination: Denomination) -> EventCache:
        events = self.store.load(denomination.label)
        return EventCache.from_events(denomination.label, events, denomination.deployment_block)

    async def fetch_events(self, denomination: Denomination, start_block: int) -> List[DepositEvent]:
        """
        Fetch deposit events from ``start_block`` through the chain head.

        The last window is requested up to ``"latest"`` rather than a numeric
        bound so blocks mined during the sync are not skipped, and the loop
        stops once that request completes.
        """
        latest_block = (await self.rpc.get_latest_block()).number
        logger.info(f"Fetching {denomination.label} deposit events from block {start_block}...")

        events: List[DepositEvent] = []
        reached_head = False
        while not reached_head:
            end_block = start_block + self.batch_size - 1
            reached_head = end_block >= latest_block
            to_block = "latest" if reached_head else end_block
            logger.info(f"... up to block {to_block} ...")
            logs = await self.rpc.get_logs(
                start_block, to_block, denomination.instance_address, [DEPOSIT_EVENT_TOPIC]
            )
            events.extend(DepositEvent.from_log(log) for log in logs)
            start_block = end_block + 1

        logger.info(f"... done, {len(events)} new events.")
        return events

    async def synchronize(self, denomination: Denomination) -> List[DepositEvent]:
        """
        Bring the cache up to date and return the full validated sequence.

        Raises:
            DiscontinuousLeafSequence: If cached plus fetched events skip or
                repeat a leaf index. The cache is first cut back to the
                valid prefix.
        """
        label = denomination.label
        cache = self.load_cache(denomination)
        start_block = cache.last_block if cache.events else cache.last_block + 1
        fetched = await self.fetch_events(denomination, start_block)
        # A truncation may have split the watermark block, so it is read again
        fresh = [
            event
            for event in fetched
            if not (event.block_number == cache.last_block and event.leaf_index < len(cache))
        ]
        events = cache.events + fresh

        position = first_discontinuity(events)
        if position is not None:
            self._keep_prefix(label, len(cache.events), fresh, position)
            logger.warning(
                f"{label} deposit events are discontinuous at position {position} "
                f"(leaf index {events[position].leaf_index})"
            )
            raise DiscontinuousLeafSequence(position, events[position].leaf_index)

        self.store.append(label, fresh)
        logger.info(f"{label} pool has {len(events)} deposits")
        return events

    def _keep_prefix(self, label: str, cached_count: int, fresh: List[DepositEvent], length: int) -> None:
        if length < cached_count:
            self.store.truncate(label, length)
        else:
            self.store.append(label, fresh[: length - cached_count])
