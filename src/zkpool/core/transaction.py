"""Building, signing, submitting and confirming fee-market transactions."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol, Tuple

from zkpool.exceptions import PollingTimeout, TransactionReverted
from zkpool.rpc.client import RpcClient
from zkpool.rpc.models import CallRequest, TransactionReceipt
from zkpool.utils.encoding import encode_address, encode_bytes32
from zkpool.utils.polling import poll
from zkpool.utils.units import format_ether, format_gwei

logger = logging.getLogger(__name__)

GWEI = 10**9
DEFAULT_RECEIPT_POLL_INTERVAL = 0.25


@dataclass(frozen=True)
class FeeParameters:
    """EIP-1559 fee caps in wei per gas."""

    max_fee_per_gas: int
    max_priority_fee_per_gas: int


@dataclass(frozen=True)
class UnsignedTransaction:
    """A type-2 transaction ready for signing."""

    chain_id: int
    nonce: int
    max_fee_per_gas: int
    max_priority_fee_per_gas: int
    gas_limit: int
    to: int
    value: int
    data: bytes
    sender: int
    type: int = 2
    access_list: Tuple = field(default_factory=tuple)

    def to_call_request(self) -> CallRequest:
        return CallRequest(
            to=self.to,
            data=self.data,
            sender=self.sender,
            value=self.value,
            gas=self.gas_limit,
            nonce=self.nonce,
            chain_id=self.chain_id,
            max_fee_per_gas=self.max_fee_per_gas,
            max_priority_fee_per_gas=self.max_priority_fee_per_gas,
        )


@dataclass(frozen=True)
class SignedTransaction:
    """Wire-ready signed transaction, identified by its hash."""

    raw: bytes
    hash: int
    transaction: UnsignedTransaction


class Signer(Protocol):
    """External signing service: RLP serialization and secp256k1 signatures."""

    def sign(self, transaction: UnsignedTransaction, private_key: int) -> SignedTransaction:
        ...


class EthAccountSigner:
    """Signer backed by eth-account."""

    @staticmethod
    def to_dict(transaction: UnsignedTransaction) -> Dict[str, Any]:
        from eth_utils import to_checksum_address

        return {
            "type": transaction.type,
            "chainId": transaction.chain_id,
            "nonce": transaction.nonce,
            "maxFeePerGas": transaction.max_fee_per_gas,
            "maxPriorityFeePerGas": transaction.max_priority_fee_per_gas,
            "gas": transaction.gas_limit,
            "to": to_checksum_address(encode_address(transaction.to)),
            "value": transaction.value,
            "data": transaction.data,
            "accessList": list(transaction.access_list),
        }

    def sign(self, transaction: UnsignedTransaction, private_key: int) -> SignedTransaction:
        from eth_account import Account

        signed = Account.sign_transaction(self.to_dict(transaction), encode_bytes32(private_key))
        return SignedTransaction(
            raw=bytes(signed.raw_transaction),
            hash=int.from_bytes(bytes(signed.hash), "big"),
            transaction=transaction,
        )


class TransactionLifecycle:
    """
    Build, sign, submit and confirm transactions through one node.

    Reverted receipts are reported with ``TransactionReverted``; whether that
    ends the surrounding workflow is up to the caller.
    """

    def __init__(
        self,
        rpc: RpcClient,
        signer: Signer,
        chain_id: int = 1,
        poll_interval: float = DEFAULT_RECEIPT_POLL_INTERVAL,
        default_priority_fee: int = 2 * GWEI,
    ):
        self.rpc = rpc
        self.signer = signer
        self.chain_id = chain_id
        self.poll_interval = poll_interval
        self.default_priority_fee = default_priority_fee

    async def suggest_fees(self) -> FeeParameters:
        """Fees from the latest base fee: max fee covers two base-fee doublings."""
        block = await self.rpc.get_latest_block()
        priority = self.default_priority_fee
        return FeeParameters(
            max_fee_per_gas=block.base_fee_per_gas * 2 + priority,
            max_priority_fee_per_gas=priority,
        )

    async def build(
        self,
        sender: int,
        to: int,
        data: bytes = b"",
        value: int = 0,
        fees: Optional[FeeParameters] = None,
    ) -> UnsignedTransaction:
        """Fill in nonce, fees and gas limit for a transaction from ``sender``."""
        nonce = await self.rpc.get_transaction_count(sender)
        if fees is None:
            fees = await self.suggest_fees()
        gas_limit = await self.rpc.estimate_gas(
            CallRequest(
                to=to,
                data=data,
                sender=sender,
                value=value,
                nonce=nonce,
                chain_id=self.chain_id,
                max_fee_per_gas=fees.max_fee_per_gas,
                max_priority_fee_per_gas=fees.max_priority_fee_per_gas,
            )
        )
        return UnsignedTransaction(
            chain_id=self.chain_id,
            nonce=nonce,
            max_fee_per_gas=fees.max_fee_per_gas,
            max_priority_fee_per_gas=fees.max_priority_fee_per_gas,
            gas_limit=gas_limit,
            to=to,
            value=value,
            data=data,
            sender=sender,
        )

    def sign(self, transaction: UnsignedTransaction, private_key: int) -> SignedTransaction:
        return self.signer.sign(transaction, private_key)

    async def submit(self, signed: SignedTransaction) -> int:
        transaction_hash = await self.rpc.send_raw_transaction(signed.raw)
        logger.info(f"Transaction Hash: {encode_bytes32(transaction_hash)}")
        return transaction_hash

    async def simulate(self, transaction: UnsignedTransaction) -> bytes:
        """Dry-run a transaction with eth_call and return its output."""
        return await self.rpc.call(transaction.to_call_request())

    async def wait_for_receipt(
        self,
        transaction_hash: int,
        timeout: Optional[float] = None,
    ) -> Optional[TransactionReceipt]:
        """
        Poll for a receipt.

        Returns:
            The receipt, or None when ``timeout`` elapsed first
        """
        try:
            return await poll(
                lambda: self.rpc.get_transaction_receipt(transaction_hash),
                lambda receipt: receipt is not None,
                interval=self.poll_interval,
                timeout=timeout,
            )
        except PollingTimeout:
            logger.info(f"No receipt yet for {encode_bytes32(transaction_hash)} after {timeout}s")
            return None

    @staticmethod
    def ensure_success(receipt: TransactionReceipt) -> TransactionReceipt:
        """
        Raises:
            TransactionReverted: If the receipt reports failure
        """
        if not receipt.success:
            raise TransactionReverted(receipt)
        return receipt

    async def execute(
        self,
        sender: int,
        private_key: int,
        to: int,
        data: bytes = b"",
        value: int = 0,
        fees: Optional[FeeParameters] = None,
        timeout: Optional[float] = None,
    ) -> Optional[TransactionReceipt]:
        """
        Build, sign, submit and wait for one transaction.

        Returns:
            The successful receipt, or None if ``timeout`` elapsed first

        Raises:
            TransactionReverted: If the transaction was mined but failed
        """
        transaction = await self.build(sender, to, data, value, fees)
        logger.info(
            f"Sending {format_ether(value)} ETH to {encode_address(to)} with "
            f"{format_gwei(transaction.max_fee_per_gas)} max fee, "
            f"{format_gwei(transaction.max_priority_fee_per_gas)} priority fee and "
            f"{transaction.gas_limit} gas limit"
        )
        signed = self.sign(transaction, private_key)
        transaction_hash = await self.submit(signed)
        receipt = await self.wait_for_receipt(transaction_hash, timeout)
        if receipt is None:
            return None
        return self.ensure_success(receipt)
