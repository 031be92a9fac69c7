"""Pydantic models for relayer requests and responses."""

from zkpool.models.schemas import (
    JobStatus,
    JobStatusResponse,
    RelayerJob,
    RelayerStatus,
    WithdrawJobResponse,
    WithdrawRequest,
)

__all__ = [
    "JobStatus",
    "JobStatusResponse",
    "RelayerJob",
    "RelayerStatus",
    "WithdrawJobResponse",
    "WithdrawRequest",
]
