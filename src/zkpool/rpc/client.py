"""Minimal asynchronous JSON-RPC client for an Ethereum node."""

import itertools
import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import httpx

from zkpool.exceptions import MalformedWireValue, RpcError, TransportError
from zkpool.rpc.models import Block, CallRequest, Log, TransactionReceipt
from zkpool.utils.encoding import (
    decode_bytes32,
    decode_data,
    decode_quantity,
    encode_address,
    encode_bytes32,
    encode_data,
    encode_quantity,
    require_fields,
)

logger = logging.getLogger(__name__)

BlockTag = Union[int, str]


def encode_call_request(request: CallRequest) -> Dict[str, Any]:
    """Build the transaction object for eth_call / eth_estimateGas."""
    params: Dict[str, Any] = {"type": "0x2"}
    if request.sender is not None:
        params["from"] = encode_address(request.sender)
    if request.chain_id is not None:
        params["chainId"] = encode_quantity(request.chain_id)
    if request.nonce is not None:
        params["nonce"] = encode_quantity(request.nonce)
    if request.max_fee_per_gas is not None:
        params["maxFeePerGas"] = encode_quantity(request.max_fee_per_gas)
    if request.max_priority_fee_per_gas is not None:
        params["maxPriorityFeePerGas"] = encode_quantity(request.max_priority_fee_per_gas)
    if request.gas is not None:
        params["gas"] = encode_quantity(request.gas)
    params["to"] = encode_address(request.to)
    if request.value:
        params["value"] = encode_quantity(request.value)
    params["data"] = encode_data(request.data)
    return params


def _encode_block_tag(block: BlockTag) -> str:
    return block if isinstance(block, str) else encode_quantity(block)


class RpcClient:
    """
    Stateless JSON-RPC client: one method per remote call.

    Each call sends exactly one request with a fresh, increasing id and
    parses the result through the wire codec. RPC error objects surface as
    ``RpcError`` and non-2xx HTTP answers as ``TransportError``; nothing is
    retried here.
    """

    def __init__(
        self,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        timeout: float = 30.0,
        proxy: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            url: Node endpoint
            headers: Extra HTTP headers sent with every request
            timeout: Per-request timeout in seconds
            proxy: Optional proxy URL (socks5://... needs httpx[socks])
            client: Pre-built httpx client, mainly for tests. When absent a
                new client is opened for every call.
        """
        self.url = url
        self.headers = dict(headers or {})
        self.timeout = timeout
        self.proxy = proxy
        self._client = client
        self._ids = itertools.count(1)

    async def _post(self, payload: Dict[str, Any]) -> httpx.Response:
        headers = {"Content-Type": "application/json", **self.headers}
        if self._client is not None:
            return await self._client.post(self.url, json=payload, headers=headers)
        async with httpx.AsyncClient(timeout=self.timeout, proxy=self.proxy) as client:
            return await client.post(self.url, json=payload, headers=headers)

    async def request(self, method: str, params: Sequence[Any]) -> Any:
        """Send one JSON-RPC request and return its ``result`` member."""
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": list(params)}
        response = await self._post(payload)
        if not response.is_success:
            raise TransportError(response.status_code, response.text)

        try:
            body = response.json()
        except json.JSONDecodeError as e:
            raise MalformedWireValue(response.text, "a JSON-RPC response") from e

        body = require_fields(body, {"jsonrpc": "string"})
        if body["jsonrpc"] != "2.0":
            raise MalformedWireValue(body["jsonrpc"], "the JSON-RPC version '2.0'")
        if "id" not in body:
            raise MalformedWireValue(body, "a JSON-RPC response with an id")
        if body["id"] != payload["id"]:
            raise MalformedWireValue(body["id"], f"the request id {payload['id']}")

        if "result" in body:
            return body["result"]
        if "error" in body:
            error = require_fields(body["error"], {"code": "number", "message": "string"})
            logger.warning(f"{method} returned error {error['code']}: {error['message']}")
            raise RpcError(error["code"], error["message"], method=method)
        raise MalformedWireValue(body, "a JSON-RPC response with either 'result' or 'error'")

    async def get_latest_block(self) -> Block:
        return Block.from_wire(await self.request("eth_getBlockByNumber", ["latest", False]))

    async def get_balance(self, address: int) -> int:
        return decode_quantity(await self.request("eth_getBalance", [encode_address(address), "latest"]))

    async def get_transaction_count(self, address: int) -> int:
        return decode_quantity(
            await self.request("eth_getTransactionCount", [encode_address(address), "latest"])
        )

    async def get_transaction_receipt(self, transaction_hash: int) -> Optional[TransactionReceipt]:
        raw = await self.request("eth_getTransactionReceipt", [encode_bytes32(transaction_hash)])
        return TransactionReceipt.from_wire(raw)

    async def call(self, request: CallRequest, block: BlockTag = "latest") -> bytes:
        raw = await self.request("eth_call", [encode_call_request(request), _encode_block_tag(block)])
        return decode_data(raw)

    async def estimate_gas(self, request: CallRequest) -> int:
        return decode_quantity(await self.request("eth_estimateGas", [encode_call_request(request)]))

    async def send_raw_transaction(self, raw_transaction: bytes) -> int:
        """Submit a signed transaction and return its hash."""
        return decode_bytes32(await self.request("eth_sendRawTransaction", [encode_data(raw_transaction)]))

    async def get_logs(
        self,
        from_block: int,
        to_block: BlockTag,
        address: int,
        topics: Sequence[int],
    ) -> List[Log]:
        """Fetch logs of one contract over an inclusive block range."""
        raw = await self.request(
            "eth_getLogs",
            [
                {
                    "fromBlock": encode_quantity(from_block),
                    "toBlock": _encode_block_tag(to_block),
                    "address": encode_address(address),
                    "topics": [encode_bytes32(topic) for topic in topics],
                }
            ],
        )
        if not isinstance(raw, list):
            raise MalformedWireValue(raw, "an array of logs")
        return [Log.from_wire(entry) for entry in raw]
