"""Main package initialization."""

__version__ = "0.1.0"
__author__ = "zkpool developers"
__description__ = "Anonymity-set sync and withdrawal-proof engine for fixed-denomination ETH pools"

from .core.merkle_tree import MerkleIndex
from .core.mixer import Mixer
from .core.note import Note
from .core.sync import EventSynchronizer
from .core.transaction import TransactionLifecycle
from .core.zkproof import ProofOrchestrator
from .relayer.client import RelayerClient
from .rpc.client import RpcClient

__all__ = [
    "MerkleIndex",
    "Mixer",
    "Note",
    "EventSynchronizer",
    "TransactionLifecycle",
    "ProofOrchestrator",
    "RelayerClient",
    "RpcClient",
]
