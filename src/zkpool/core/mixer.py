"""Mixer: deposit and withdrawal workflows over one RPC node.

Composes the components of a withdrawal:

    1. EventSynchronizer brings the cached deposit history up to date
    2. MerkleIndex rebuilds the tree; its root must be known on chain
    3. The note must be unspent and its commitment present in the tree
    4. ProofOrchestrator assembles the circuit input and calls the prover
    5. The withdraw call goes out directly (TransactionLifecycle) or
       through a relayer (RelayerClient)

Trees are memoized per denomination for the lifetime of a Mixer, so a
batch of notes of the same size syncs and validates only once.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import httpx

from zkpool.core.events import EventCacheStore
from zkpool.core.merkle_tree import HashFunction, MerkleIndex, ZERO_VALUE
from zkpool.core.note import Note, NoteDigests, NoteHasher
from zkpool.core.pool import Denomination, PoolContract, deposit_calldata, withdraw_calldata
from zkpool.core.sync import DEFAULT_BATCH_SIZE, EventSynchronizer
from zkpool.core.transaction import (
    DEFAULT_RECEIPT_POLL_INTERVAL,
    GWEI,
    EthAccountSigner,
    FeeParameters,
    Signer,
    TransactionLifecycle,
)
from zkpool.core.zkproof import ProofOrchestrator, ProofResult, Prover, WithdrawalParameters
from zkpool.crypto.mimc import mimc_sponge_hash
from zkpool.exceptions import (
    CommitmentNotFound,
    NoteAlreadySpent,
    RelayerFeeTooHigh,
    StaleOrCorruptTree,
    ZKPoolException,
)
from zkpool.models.schemas import RelayerJob
from zkpool.relayer.client import (
    RELAYER_GAS_LIMIT,
    RELAYER_PRIORITY_FEE,
    RelayerClient,
    build_withdraw_request,
    compute_relayer_fee,
)
from zkpool.rpc.client import RpcClient
from zkpool.rpc.models import TransactionReceipt
from zkpool.utils.encoding import decode_address, encode_address, encode_bytes32, encode_data
from zkpool.utils.units import format_ether

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreparedWithdrawal:
    """A proven withdrawal, ready to be sent directly or through a relayer."""

    note: Note
    digests: NoteDigests
    params: WithdrawalParameters
    proof: ProofResult
    leaf_index: int

    @property
    def denomination(self) -> Denomination:
        return self.note.denomination

    def calldata(self) -> bytes:
        return withdraw_calldata(
            self.proof.proof,
            self.proof.root,
            self.digests.nullifier_hash,
            self.params.recipient,
            self.params.relayer,
            self.params.fee,
            self.params.refund,
        )


@dataclass
class WithdrawalOutcome:
    """Result for one note of a multi-note withdrawal."""

    note: Note
    receipt: Optional[TransactionReceipt] = None
    job: Optional[RelayerJob] = None
    error: Optional[Exception] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


class Mixer:
    """Deposit and withdraw notes against the pool contracts."""

    def __init__(
        self,
        rpc: RpcClient,
        store: EventCacheStore,
        hasher: NoteHasher,
        prover: Prover,
        signer: Optional[Signer] = None,
        chain_id: int = 1,
        batch_size: int = DEFAULT_BATCH_SIZE,
        tree_height: int = MerkleIndex.DEFAULT_HEIGHT,
        hash_fn: HashFunction = mimc_sponge_hash,
        zero_value: int = ZERO_VALUE,
        receipt_poll_interval: float = DEFAULT_RECEIPT_POLL_INTERVAL,
        receipt_timeout: Optional[float] = None,
        default_priority_fee: int = 2 * GWEI,
        relayer_gas_limit: int = RELAYER_GAS_LIMIT,
        relayer_priority_fee: int = RELAYER_PRIORITY_FEE,
    ):
        """
        Initialize the mixer.

        Args:
            rpc: Node client used for every chain interaction
            store: Persisted event cache
            hasher: Pedersen hash used for note digests
            prover: External Groth16 prover
            signer: Transaction signer (default: eth-account)
            chain_id: Chain id put into transactions
            batch_size: Block window of each eth_getLogs request
            tree_height: Depth of the deposit tree
            hash_fn: Node hash of the deposit tree
            zero_value: Empty leaf of the deposit tree
            receipt_poll_interval: Seconds between receipt checks
            receipt_timeout: Default bound on receipt waits (None waits forever)
            default_priority_fee: Priority fee used when no fees are given
            relayer_gas_limit: Gas budgeted in the relayer fee
            relayer_priority_fee: Priority fee budgeted in the relayer fee
        """
        self.rpc = rpc
        self.hasher = hasher
        self.synchronizer = EventSynchronizer(rpc, store, batch_size)
        self.orchestrator = ProofOrchestrator(prover)
        self.lifecycle = TransactionLifecycle(
            rpc,
            signer or EthAccountSigner(),
            chain_id=chain_id,
            poll_interval=receipt_poll_interval,
            default_priority_fee=default_priority_fee,
        )
        self.tree_height = tree_height
        self.hash_fn = hash_fn
        self.zero_value = zero_value
        self.relayer_gas_limit = relayer_gas_limit
        self.relayer_priority_fee = relayer_priority_fee
        self.receipt_timeout = receipt_timeout
        self._trees: Dict[str, MerkleIndex] = {}

    @classmethod
    def from_settings(
        cls,
        hasher: NoteHasher,
        prover: Prover,
        signer: Optional[Signer] = None,
        settings=None,
    ) -> "Mixer":
        """Build a mixer from ``Settings`` with the SQL event cache."""
        from zkpool.config import get_settings
        from zkpool.storage.database import SqlEventCacheStore, get_db_manager

        settings = settings or get_settings()
        rpc = RpcClient(
            settings.rpc_url,
            headers=settings.rpc_headers,
            timeout=settings.http_timeout,
            proxy=settings.proxy_url,
        )
        return cls(
            rpc,
            SqlEventCacheStore(get_db_manager(settings.cache_database_url)),
            hasher,
            prover,
            signer=signer,
            chain_id=settings.chain_id,
            batch_size=settings.get_logs_batch_size,
            receipt_poll_interval=settings.receipt_poll_interval,
            receipt_timeout=settings.receipt_timeout,
            default_priority_fee=settings.default_priority_fee,
            relayer_gas_limit=settings.relayer_gas_limit,
            relayer_priority_fee=settings.relayer_priority_fee,
        )

    def _receipt_timeout(self, timeout: Optional[float]) -> Optional[float]:
        return timeout if timeout is not None else self.receipt_timeout

    def pool(self, denomination: Denomination) -> PoolContract:
        return PoolContract(self.rpc, denomination.instance_address)

    async def load_tree(self, denomination: Denomination) -> MerkleIndex:
        """
        Sync and rebuild the deposit tree of a denomination, once per mixer.

        Raises:
            DiscontinuousLeafSequence: If the event history has a gap
            StaleOrCorruptTree: If the contract does not know the rebuilt root
        """
        tree = self._trees.get(denomination.label)
        if tree is not None:
            return tree

        events = await self.synchronizer.synchronize(denomination)
        logger.info("Building merkle tree...")
        tree = MerkleIndex.from_events(
            events,
            tree_height=self.tree_height,
            hash_fn=self.hash_fn,
            zero_value=self.zero_value,
        )
        if not await self.pool(denomination).is_known_root(tree.root):
            logger.warning(f"Root {encode_bytes32(tree.root)} of the {denomination.label} tree is unknown on chain")
            raise StaleOrCorruptTree(tree.root)
        logger.info(f"... done, root {encode_bytes32(tree.root)}")

        self._trees[denomination.label] = tree
        return tree

    def forget_trees(self) -> None:
        """Drop memoized trees so the next withdrawal syncs again."""
        self._trees.clear()

    async def prepare_withdrawal(
        self,
        note: Note,
        recipient: int,
        relayer: int = 0,
        fee: int = 0,
        refund: int = 0,
    ) -> PreparedWithdrawal:
        """
        Validate a note against the chain and prove its withdrawal.

        Raises:
            StaleOrCorruptTree: If the rebuilt root is unknown on chain
            NoteAlreadySpent: If the nullifier hash is already spent
            CommitmentNotFound: If the note's deposit is not in the tree
            ProofGenerationFailed: If the prover fails
        """
        denomination = note.denomination
        digests = note.digests(self.hasher)
        tree = await self.load_tree(denomination)

        if await self.pool(denomination).is_spent(digests.nullifier_hash):
            raise NoteAlreadySpent(digests.nullifier_hash)
        leaf_index = tree.index_of(digests.commitment)
        if leaf_index is None:
            raise CommitmentNotFound(digests.commitment)

        params = WithdrawalParameters(recipient=recipient, relayer=relayer, fee=fee, refund=refund)
        proof = await self.orchestrator.prove(note, digests, tree.path(leaf_index), params)
        return PreparedWithdrawal(
            note=note,
            digests=digests,
            params=params,
            proof=proof,
            leaf_index=leaf_index,
        )

    async def deposit(
        self,
        note: Note,
        sender: int,
        private_key: int,
        fees: Optional[FeeParameters] = None,
        timeout: Optional[float] = None,
    ) -> Optional[TransactionReceipt]:
        """Send the note's denomination into its pool."""
        denomination = note.denomination
        digests = note.digests(self.hasher)
        logger.info(f"Depositing {format_ether(denomination.size)} ETH into the {denomination.label} pool")
        return await self.lifecycle.execute(
            sender,
            private_key,
            denomination.instance_address,
            deposit_calldata(digests.commitment),
            value=denomination.size,
            fees=fees,
            timeout=self._receipt_timeout(timeout),
        )

    async def withdraw(
        self,
        note: Note,
        sender: int,
        private_key: int,
        fees: Optional[FeeParameters] = None,
        timeout: Optional[float] = None,
    ) -> Optional[TransactionReceipt]:
        """Withdraw a note to ``sender`` without a relayer."""
        prepared = await self.prepare_withdrawal(note, recipient=sender)
        logger.info(
            f"Withdrawing {format_ether(prepared.denomination.size)} ETH without a relayer to {encode_address(sender)}"
        )
        return await self.lifecycle.execute(
            sender,
            private_key,
            prepared.denomination.instance_address,
            prepared.calldata(),
            fees=fees,
            timeout=self._receipt_timeout(timeout),
        )

    async def simulate_withdrawal(self, note: Note, sender: int = 0) -> bytes:
        """
        Dry-run a direct withdrawal with eth_call, with zero fees.

        Returns:
            The call output; empty output usually means success
        """
        prepared = await self.prepare_withdrawal(note, recipient=sender)
        transaction = await self.lifecycle.build(
            sender,
            prepared.denomination.instance_address,
            prepared.calldata(),
            fees=FeeParameters(max_fee_per_gas=0, max_priority_fee_per_gas=0),
        )
        result = await self.lifecycle.simulate(transaction)
        logger.info(f"Call Result (0x usually means success): {encode_data(result)}")
        return result

    async def withdraw_via_relayer(
        self,
        note: Note,
        recipient: int,
        relayer: RelayerClient,
        receipt_timeout: Optional[float] = None,
    ) -> Tuple[RelayerJob, Optional[TransactionReceipt]]:
        """
        Withdraw a note to ``recipient`` through a relayer, paying its fee
        from the withdrawn amount.

        Raises:
            RelayerFeeTooHigh: If the relayer fee exceeds the note's size
        """
        denomination = note.denomination
        status = await relayer.get_status()
        block = await self.rpc.get_latest_block()
        fee = compute_relayer_fee(
            block.base_fee_per_gas,
            denomination.size,
            status.tornado_service_fee,
            gas_limit=self.relayer_gas_limit,
            priority_fee=self.relayer_priority_fee,
        )
        if fee > denomination.size:
            raise RelayerFeeTooHigh(
                f"Relayer fee {format_ether(fee)} ETH exceeds the note size", fee=fee, size=denomination.size
            )

        relayer_address = decode_address(status.reward_account)
        prepared = await self.prepare_withdrawal(note, recipient, relayer=relayer_address, fee=fee)
        request = build_withdraw_request(
            denomination.instance_address,
            prepared.proof.proof,
            prepared.proof.root,
            prepared.digests.nullifier_hash,
            recipient,
            relayer_address,
            fee,
        )
        logger.info(
            f"Withdrawing {format_ether(denomination.size)} ETH via relayer to {encode_address(recipient)} "
            f"with a relayer fee of {format_ether(fee)}"
        )
        return await relayer.withdraw(request, self.lifecycle, self._receipt_timeout(receipt_timeout))

    async def withdraw_many(
        self,
        notes: Sequence[Note],
        sender: int,
        private_key: Optional[int] = None,
        fees: Optional[FeeParameters] = None,
        relayer: Optional[RelayerClient] = None,
        recipient: Optional[int] = None,
        skip_failures: bool = False,
    ) -> List[WithdrawalOutcome]:
        """
        Withdraw several notes one after another.

        With a relayer, funds go to ``recipient`` (default ``sender``);
        otherwise each note is withdrawn directly and needs ``private_key``.

        Args:
            skip_failures: Record a failing note and move on to the next one
                instead of aborting the whole batch

        Returns:
            One outcome per attempted note, in order
        """
        if relayer is None and private_key is None:
            raise ValueError("private_key is required without a relayer")

        outcomes: List[WithdrawalOutcome] = []
        for position, note in enumerate(notes):
            outcome = WithdrawalOutcome(note=note)
            try:
                if relayer is not None:
                    outcome.job, outcome.receipt = await self.withdraw_via_relayer(
                        note, recipient if recipient is not None else sender, relayer
                    )
                else:
                    outcome.receipt = await self.withdraw(note, sender, private_key, fees)
            except (ZKPoolException, httpx.HTTPError) as e:
                logger.warning(f"Failed to withdraw note #{position} ({note.denomination_label} ETH): {e}")
                if not skip_failures:
                    raise
                outcome.error = e
            outcomes.append(outcome)
        return outcomes
