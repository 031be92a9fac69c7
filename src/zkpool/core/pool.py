"""Pool denominations and the on-chain reads/calls against a pool instance."""

import logging
from dataclasses import dataclass
from typing import Dict

from eth_abi import encode

from zkpool.exceptions import UnknownDenominationError
from zkpool.rpc.client import RpcClient
from zkpool.rpc.models import CallRequest
from zkpool.utils.encoding import bytes_to_int, encode_address
from zkpool.utils.hash import event_topic, function_selector

logger = logging.getLogger(__name__)

ETHER = 10**18

# event Deposit(bytes32 indexed commitment, uint32 leafIndex, uint256 timestamp)
DEPOSIT_EVENT_TOPIC = event_topic("Deposit(bytes32,uint32,uint256)")

IS_KNOWN_ROOT_SELECTOR = function_selector("isKnownRoot(bytes32)")
IS_SPENT_SELECTOR = function_selector("isSpent(bytes32)")
DEPOSIT_SELECTOR = function_selector("deposit(bytes32)")
WITHDRAW_SELECTOR = function_selector("withdraw(bytes,bytes32,bytes32,address,address,uint256,uint256)")

WITHDRAW_ARGUMENT_TYPES = ["bytes", "bytes32", "bytes32", "address", "address", "uint256", "uint256"]


@dataclass(frozen=True)
class Denomination:
    """One fixed-size pool instance."""

    label: str
    size: int  # wei
    instance_address: int
    deployment_block: int


DENOMINATIONS: Dict[str, Denomination] = {
    "0.1": Denomination("0.1", ETHER // 10, 0x12D66F87A04A9E220743712CE6D9BB1B5616B8FC, 9116966),
    "1": Denomination("1", ETHER, 0x47CE0C6ED5B0CE3D3A51FDB1C52DC66A7C3C2936, 9117609),
    "10": Denomination("10", 10 * ETHER, 0x910CBD523D972EB0A6F4CAE4618AD62622B39DBF, 9117720),
    "100": Denomination("100", 100 * ETHER, 0xA160CDAB225685DA1D56AA342AD8841C3B53F291, 9161895),
}


def get_denomination(label: str) -> Denomination:
    """
    Look up a pool by its label.

    Raises:
        UnknownDenominationError: If the label is not one of 0.1, 1, 10, 100
    """
    try:
        return DENOMINATIONS[label]
    except KeyError:
        raise UnknownDenominationError(
            f"Note size must be one of {', '.join(DENOMINATIONS)} (got {label!r})"
        ) from None


def deposit_calldata(commitment: int) -> bytes:
    """Calldata for ``deposit(bytes32 commitment)``."""
    return DEPOSIT_SELECTOR + commitment.to_bytes(32, "big")


def withdraw_calldata(
    proof: bytes,
    root: int,
    nullifier_hash: int,
    recipient: int,
    relayer: int,
    fee: int,
    refund: int,
) -> bytes:
    """Calldata for ``withdraw(proof, root, nullifierHash, recipient, relayer, fee, refund)``."""
    arguments = encode(
        WITHDRAW_ARGUMENT_TYPES,
        [
            proof,
            root.to_bytes(32, "big"),
            nullifier_hash.to_bytes(32, "big"),
            encode_address(recipient),
            encode_address(relayer),
            fee,
            refund,
        ],
    )
    return WITHDRAW_SELECTOR + arguments


class PoolContract:
    """Read-only view of a pool instance through ``eth_call``."""

    def __init__(self, rpc: RpcClient, address: int):
        self.rpc = rpc
        self.address = address

    async def _call_bool(self, selector: bytes, word: int) -> bool:
        result = await self.rpc.call(CallRequest(to=self.address, data=selector + word.to_bytes(32, "big")))
        return bytes_to_int(result) != 0

    async def is_known_root(self, root: int) -> bool:
        """Whether the contract's root history contains ``root``."""
        return await self._call_bool(IS_KNOWN_ROOT_SELECTOR, root)

    async def is_spent(self, nullifier_hash: int) -> bool:
        """Whether a withdrawal with this nullifier hash has already happened."""
        return await self._call_bool(IS_SPENT_SELECTOR, nullifier_hash)

    def __repr__(self) -> str:
        return f"PoolContract(address={encode_address(self.address)})"
