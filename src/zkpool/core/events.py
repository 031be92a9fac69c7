"""Deposit events and the cache-store capability the synchronizer writes through."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, Sequence

from zkpool.exceptions import MalformedWireValue
from zkpool.rpc.models import Log
from zkpool.utils.encoding import bytes_to_int

MAX_LEAF_INDEX = 2**32 - 1


@dataclass(frozen=True)
class DepositEvent:
    """One successful on-chain deposit into a pool."""

    block_number: int
    transaction_hash: int
    commitment: int
    leaf_index: int
    timestamp: int

    @classmethod
    def from_log(cls, log: Log) -> "DepositEvent":
        """
        Decode a ``Deposit(bytes32 indexed commitment, uint32 leafIndex, uint256 timestamp)`` log.

        Raises:
            MalformedWireValue: If topics or data do not have the event's layout
        """
        if len(log.topics) < 2:
            raise MalformedWireValue(log.topics, "a Deposit log with an indexed commitment topic")
        if len(log.data) < 64:
            raise MalformedWireValue("0x" + log.data.hex(), "64 bytes of Deposit log data")
        leaf_index = bytes_to_int(log.data[0:32])
        if leaf_index > MAX_LEAF_INDEX:
            raise MalformedWireValue(leaf_index, "a uint32 leaf index")
        return cls(
            block_number=log.block_number,
            transaction_hash=log.transaction_hash,
            commitment=log.topics[1],
            leaf_index=leaf_index,
            timestamp=bytes_to_int(log.data[32:64]),
        )


@dataclass
class EventCache:
    """Validated events of one denomination plus the last block they cover."""

    label: str
    events: List[DepositEvent] = field(default_factory=list)
    last_block: int = -1

    @classmethod
    def from_events(cls, label: str, events: List[DepositEvent], start_block: int = 0) -> "EventCache":
        last_block = events[-1].block_number if events else start_block - 1
        return cls(label=label, events=events, last_block=last_block)

    def __len__(self) -> int:
        return len(self.events)


class EventCacheStore(Protocol):
    """Append-only persisted event sequences keyed by denomination label."""

    def load(self, label: str) -> List[DepositEvent]:
        """Return the cached events in leaf-index order."""
        ...

    def append(self, label: str, events: Sequence[DepositEvent]) -> None:
        """Add validated events after the cached ones."""
        ...

    def truncate(self, label: str, length: int) -> None:
        """Keep only the first ``length`` cached events."""
        ...


class InMemoryEventCacheStore:
    """Event cache kept in process memory."""

    def __init__(self, initial: Optional[Dict[str, List[DepositEvent]]] = None):
        self._events: Dict[str, List[DepositEvent]] = {
            label: list(events) for label, events in (initial or {}).items()
        }

    def load(self, label: str) -> List[DepositEvent]:
        return list(self._events.get(label, []))

    def append(self, label: str, events: Sequence[DepositEvent]) -> None:
        self._events.setdefault(label, []).extend(events)

    def truncate(self, label: str, length: int) -> None:
        self._events[label] = self._events.get(label, [])[:length]
