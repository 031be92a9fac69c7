"""Pydantic data models for the relayer HTTP API."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from zkpool.utils.encoding import ADDRESS_PATTERN, BYTES32_PATTERN, HEX_PATTERN


class JobStatus(str, Enum):
    """Relayer job status enumeration."""
    SENT = "SENT"
    ACCEPTED = "ACCEPTED"
    MINED = "MINED"
    CONFIRMED = "CONFIRMED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.CONFIRMED, JobStatus.FAILED)


class RelayerStatus(BaseModel):
    """Response model for GET /status."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    reward_account: str = Field(..., alias="rewardAccount", pattern=ADDRESS_PATTERN.pattern,
                                description="Address the relayer is paid at")
    tornado_service_fee: float = Field(..., alias="tornadoServiceFee", ge=0,
                                       description="Service fee in percent of the denomination")


class WithdrawRequest(BaseModel):
    """Request model for POST /v1/tornadoWithdraw."""
    contract: str = Field(..., pattern=ADDRESS_PATTERN.pattern, description="Pool instance address")
    proof: str = Field(..., pattern=HEX_PATTERN.pattern, description="Packed proof (hex)")
    args: List[str] = Field(..., min_length=6, max_length=6,
                            description="root, nullifierHash, recipient, relayer, fee, refund")


class WithdrawJobResponse(BaseModel):
    """Response model for POST /v1/tornadoWithdraw."""
    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1, description="Relayer job id")


class JobStatusResponse(BaseModel):
    """Response model for GET /v1/jobs/{id}."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    status: JobStatus
    tx_hash: Optional[str] = Field(default=None, alias="txHash", pattern=BYTES32_PATTERN.pattern)


class RelayerJob(BaseModel):
    """A submitted withdrawal job and its last observed status."""
    id: str
    status: JobStatus = JobStatus.SENT
    tx_hash: Optional[int] = None
