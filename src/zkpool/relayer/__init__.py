"""Relayer HTTP API client."""

from zkpool.relayer.client import (
    RELAYER_GAS_LIMIT,
    RELAYER_PRIORITY_FEE,
    RelayerClient,
    build_withdraw_request,
    compute_relayer_fee,
    select_relayer,
)

__all__ = [
    "RELAYER_GAS_LIMIT",
    "RELAYER_PRIORITY_FEE",
    "RelayerClient",
    "build_withdraw_request",
    "compute_relayer_fee",
    "select_relayer",
]
