"""Core workflow components: sync, tree, proof, transactions and the mixer."""

from zkpool.core.events import DepositEvent, EventCache, EventCacheStore, InMemoryEventCacheStore
from zkpool.core.merkle_tree import ZERO_VALUE, MerkleIndex, MerklePath
from zkpool.core.mixer import Mixer, PreparedWithdrawal, WithdrawalOutcome
from zkpool.core.note import Note, NoteDigests, NoteHasher
from zkpool.core.pool import DENOMINATIONS, Denomination, PoolContract, get_denomination
from zkpool.core.sync import EventSynchronizer
from zkpool.core.transaction import (
    EthAccountSigner,
    FeeParameters,
    SignedTransaction,
    Signer,
    TransactionLifecycle,
    UnsignedTransaction,
)
from zkpool.core.zkproof import (
    CircuitInput,
    CommandProver,
    ProofOrchestrator,
    ProofResult,
    Prover,
    ProverOutput,
    WithdrawalParameters,
)

__all__ = [
    "DepositEvent",
    "EventCache",
    "EventCacheStore",
    "InMemoryEventCacheStore",
    "ZERO_VALUE",
    "MerkleIndex",
    "MerklePath",
    "Mixer",
    "PreparedWithdrawal",
    "WithdrawalOutcome",
    "Note",
    "NoteDigests",
    "NoteHasher",
    "DENOMINATIONS",
    "Denomination",
    "PoolContract",
    "get_denomination",
    "EventSynchronizer",
    "EthAccountSigner",
    "FeeParameters",
    "SignedTransaction",
    "Signer",
    "TransactionLifecycle",
    "UnsignedTransaction",
    "CircuitInput",
    "CommandProver",
    "ProofOrchestrator",
    "ProofResult",
    "Prover",
    "ProverOutput",
    "WithdrawalParameters",
]
