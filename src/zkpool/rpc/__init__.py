"""JSON-RPC client and typed wire objects."""

from zkpool.rpc.client import RpcClient, encode_call_request
from zkpool.rpc.models import Block, CallRequest, Log, TransactionReceipt

__all__ = [
    "RpcClient",
    "encode_call_request",
    "Block",
    "CallRequest",
    "Log",
    "TransactionReceipt",
]
