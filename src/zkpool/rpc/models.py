"""Typed views of the JSON-RPC objects the client consumes."""

from dataclasses import dataclass, field
from typing import Any, List, Optional

from zkpool.utils.encoding import (
    decode_address,
    decode_bytes32,
    decode_data,
    decode_quantity,
    require_fields,
)

BLOCK_FIELDS = {
    "parentHash": "hex",
    "sha3Uncles": "hex",
    "miner": "hex",
    "stateRoot": "hex",
    "transactionsRoot": "hex",
    "receiptsRoot": "hex",
    "logsBloom": "hex",
    "difficulty": "hex",
    "number": "hex",
    "gasLimit": "hex",
    "gasUsed": "hex",
    "timestamp": "hex",
    "extraData": "hex",
    "mixHash": "hex",
    "nonce": "hex",
    "baseFeePerGas": "hex",
    "transactions": "hex_list",
    "uncles": "hex_list",
}

RECEIPT_FIELDS = {
    "type": "hex",
    "blockHash": "hex",
    "blockNumber": "hex",
    "transactionHash": "hex",
    "transactionIndex": "hex",
    "contractAddress": "hex_or_null",
    "cumulativeGasUsed": "hex",
    "gasUsed": "hex",
    "from": "hex",
    "to": "hex_or_null",
    "status": "hex",
}

LOG_FIELDS = {
    "blockHash": "hex",
    "blockNumber": "hex",
    "transactionHash": "hex",
    "transactionIndex": "hex",
    "address": "hex",
    "topics": "hex_list",
    "data": "hex",
}


@dataclass(frozen=True)
class Block:
    """Header fields of a block the client relies on."""

    number: int
    parent_hash: int
    timestamp: int
    gas_limit: int
    gas_used: int
    base_fee_per_gas: int

    @classmethod
    def from_wire(cls, raw: Any) -> "Block":
        obj = require_fields(raw, BLOCK_FIELDS)
        return cls(
            number=decode_quantity(obj["number"]),
            parent_hash=decode_bytes32(obj["parentHash"]),
            timestamp=decode_quantity(obj["timestamp"]),
            gas_limit=decode_quantity(obj["gasLimit"]),
            gas_used=decode_quantity(obj["gasUsed"]),
            base_fee_per_gas=decode_quantity(obj["baseFeePerGas"]),
        )


@dataclass(frozen=True)
class TransactionReceipt:
    """A mined transaction's receipt."""

    type: int
    block_hash: int
    block_number: int
    transaction_hash: int
    transaction_index: int
    contract_address: Optional[int]
    cumulative_gas_used: int
    gas_used: int
    sender: int
    to: Optional[int]
    success: bool

    @classmethod
    def from_wire(cls, raw: Any) -> Optional["TransactionReceipt"]:
        """Decode a receipt; ``null`` means the transaction is not mined yet."""
        if raw is None:
            return None
        obj = require_fields(raw, RECEIPT_FIELDS)
        return cls(
            type=decode_quantity(obj["type"]),
            block_hash=decode_bytes32(obj["blockHash"]),
            block_number=decode_quantity(obj["blockNumber"]),
            transaction_hash=decode_bytes32(obj["transactionHash"]),
            transaction_index=decode_quantity(obj["transactionIndex"]),
            contract_address=None if obj["contractAddress"] is None else decode_address(obj["contractAddress"]),
            cumulative_gas_used=decode_quantity(obj["cumulativeGasUsed"]),
            gas_used=decode_quantity(obj["gasUsed"]),
            sender=decode_address(obj["from"]),
            to=None if obj["to"] is None else decode_address(obj["to"]),
            success=decode_quantity(obj["status"]) != 0,
        )


@dataclass(frozen=True)
class Log:
    """An event log entry."""

    block_hash: int
    block_number: int
    transaction_hash: int
    transaction_index: int
    address: int
    topics: List[int] = field(default_factory=list)
    data: bytes = b""

    @classmethod
    def from_wire(cls, raw: Any) -> "Log":
        obj = require_fields(raw, LOG_FIELDS)
        return cls(
            block_hash=decode_bytes32(obj["blockHash"]),
            block_number=decode_quantity(obj["blockNumber"]),
            transaction_hash=decode_bytes32(obj["transactionHash"]),
            transaction_index=decode_quantity(obj["transactionIndex"]),
            address=decode_address(obj["address"]),
            topics=[decode_bytes32(topic) for topic in obj["topics"]],
            data=decode_data(obj["data"]),
        )


@dataclass(frozen=True)
class CallRequest:
    """Transaction-shaped parameters for ``eth_call`` and ``eth_estimateGas``."""

    to: int
    data: bytes = b""
    sender: Optional[int] = None
    value: Optional[int] = None
    gas: Optional[int] = None
    nonce: Optional[int] = None
    chain_id: Optional[int] = None
    max_fee_per_gas: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None
