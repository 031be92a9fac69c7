"""Withdrawal submission to a third-party relayer and job status polling."""

import json
import logging
import math
import random
from decimal import Decimal
from typing import Any, Dict, Optional, Sequence, Tuple

import httpx
from pydantic import ValidationError

from zkpool.config import Settings, get_settings
from zkpool.core.transaction import TransactionLifecycle
from zkpool.exceptions import (
    PollingTimeout,
    RelayerError,
    RelayerJobFailed,
    RelayerJobTimeout,
    RelayerProtocolViolation,
    RelayerSubmissionFailed,
)
from zkpool.models.schemas import (
    JobStatus,
    JobStatusResponse,
    RelayerJob,
    RelayerStatus,
    WithdrawJobResponse,
    WithdrawRequest,
)
from zkpool.rpc.models import TransactionReceipt
from zkpool.utils.encoding import decode_bytes32, encode_address, encode_bytes32, encode_data
from zkpool.utils.polling import poll

logger = logging.getLogger(__name__)

GWEI = 10**9
RELAYER_GAS_LIMIT = 700_000
RELAYER_PRIORITY_FEE = 3 * GWEI
DEFAULT_POLL_INTERVAL = 3.0


def compute_relayer_fee(
    base_fee_per_gas: int,
    size: int,
    service_fee_percent: float,
    gas_limit: int = RELAYER_GAS_LIMIT,
    priority_fee: int = RELAYER_PRIORITY_FEE,
) -> int:
    """
    Fee the relayer deducts from the withdrawn amount.

    Gas is priced at 125% of the base fee plus a fixed priority fee. The
    service fee is a percentage of the denomination, rounded up to whole
    basis points before being applied.

    Args:
        base_fee_per_gas: Latest block base fee in wei
        size: Denomination in wei
        service_fee_percent: Relayer's advertised ``tornadoServiceFee``
        gas_limit: Gas budgeted for the relayed withdraw call
        priority_fee: Priority fee per gas in wei

    Returns:
        Fee in wei
    """
    gas_cost = (base_fee_per_gas * 125 // 100 + priority_fee) * gas_limit
    # Decimal keeps e.g. 0.3 % at exactly 30 basis points
    basis_points = math.ceil(Decimal(str(service_fee_percent)) * 100)
    service_fee = size * basis_points // 10000
    return gas_cost + service_fee


def build_withdraw_request(
    contract: int,
    proof: bytes,
    root: int,
    nullifier_hash: int,
    recipient: int,
    relayer: int,
    fee: int,
    refund: int = 0,
) -> WithdrawRequest:
    """Body of POST /v1/tornadoWithdraw; fee and refund travel as bytes32."""
    return WithdrawRequest(
        contract=encode_address(contract),
        proof=encode_data(proof),
        args=[
            encode_bytes32(root),
            encode_bytes32(nullifier_hash),
            encode_address(recipient),
            encode_address(relayer),
            encode_bytes32(fee),
            encode_bytes32(refund),
        ],
    )


class RelayerClient:
    """
    Client for one relayer's HTTP API.

    A job goes SUBMITTING, then POLLING, and ends CONFIRMED or FAILED.
    Submission problems are fatal and never retried; intermediate job
    statuses keep the poll going.
    """

    def __init__(
        self,
        base_url: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
        proxy: Optional[str] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_attempts: Optional[int] = None,
    ):
        """
        Args:
            base_url: Relayer root URL, without trailing slash
            client: Pre-built httpx client, mainly for tests
            timeout: Per-request timeout in seconds
            proxy: Optional proxy URL
            poll_interval: Seconds between job status checks
            max_attempts: Optional bound on job status checks. None polls
                until the relayer reports a terminal status.
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.proxy = proxy
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self._client = client

    @classmethod
    def from_settings(
        cls,
        base_url: str,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> "RelayerClient":
        settings = settings or get_settings()
        return cls(
            base_url,
            client=client,
            timeout=settings.http_timeout,
            proxy=settings.proxy_url,
            poll_interval=settings.relayer_poll_interval,
            max_attempts=settings.relayer_max_attempts,
        )

    async def _send(self, method: str, path: str, body: Optional[Dict[str, Any]] = None) -> httpx.Response:
        url = f"{self.base_url}{path}"
        if self._client is not None:
            return await self._client.request(method, url, json=body)
        async with httpx.AsyncClient(timeout=self.timeout, proxy=self.proxy) as client:
            return await client.request(method, url, json=body)

    @staticmethod
    def _json(response: httpx.Response, what: str) -> Any:
        try:
            return response.json()
        except json.JSONDecodeError as e:
            raise RelayerProtocolViolation(f"{what} returned non-JSON: {response.text!r}") from e

    async def get_status(self) -> RelayerStatus:
        """
        Read the relayer's reward account and service fee.

        Raises:
            RelayerSubmissionFailed: On a non-success HTTP status
            RelayerProtocolViolation: If the body is not a valid status object
        """
        response = await self._send("GET", "/status")
        if not response.is_success:
            raise RelayerSubmissionFailed(
                f"Relayer status GET failed with {response.status_code}",
                status=response.status_code,
                body=response.text,
            )
        body = self._json(response, "Relayer status")
        try:
            return RelayerStatus.model_validate(body)
        except ValidationError as e:
            raise RelayerProtocolViolation(f"Relayer status had invalid body: {body!r}") from e

    async def submit(self, request: WithdrawRequest) -> RelayerJob:
        """
        Post a withdrawal job.

        Raises:
            RelayerSubmissionFailed: On a non-success HTTP status
            RelayerProtocolViolation: If the answer carries no job id
        """
        response = await self._send("POST", "/v1/tornadoWithdraw", request.model_dump())
        if not response.is_success:
            raise RelayerSubmissionFailed(
                f"tornadoWithdraw POST failed with {response.status_code}",
                status=response.status_code,
                body=response.text,
            )
        body = self._json(response, "tornadoWithdraw")
        try:
            accepted = WithdrawJobResponse.model_validate(body)
        except ValidationError as e:
            raise RelayerProtocolViolation(f"tornadoWithdraw returned no job id: {body!r}") from e
        logger.info(f"Relayer accepted withdraw job {accepted.id}")
        return RelayerJob(id=accepted.id)

    async def poll_job(self, job_id: str) -> JobStatusResponse:
        """
        Check a job's status once.

        Raises:
            RelayerProtocolViolation: On a non-success HTTP status or an
                unknown status value
        """
        response = await self._send("GET", f"/v1/jobs/{job_id}")
        if not response.is_success:
            raise RelayerProtocolViolation(
                f"Job status check failed with {response.status_code}: {response.text}"
            )
        body = self._json(response, "Job status check")
        try:
            status = JobStatusResponse.model_validate(body)
        except ValidationError as e:
            raise RelayerProtocolViolation(f"Unexpected job status body: {body!r}") from e
        logger.info(f"Relay job status: {status.status.value}, transaction hash: {status.tx_hash}")
        return status

    async def wait_for_job(self, job: RelayerJob) -> RelayerJob:
        """
        Poll a job until CONFIRMED or FAILED.

        Returns:
            The job with status CONFIRMED and its transaction hash

        Raises:
            RelayerJobFailed: If the relayer reports FAILED
            RelayerJobTimeout: If ``max_attempts`` checks pass without a
                terminal status
            RelayerProtocolViolation: If CONFIRMED comes without a hash
        """
        try:
            final = await poll(
                lambda: self.poll_job(job.id),
                lambda status: status.status.is_terminal,
                interval=self.poll_interval,
                max_attempts=self.max_attempts,
            )
        except PollingTimeout as e:
            raise RelayerJobTimeout(job.id, e.attempts) from e

        if final.status is JobStatus.FAILED:
            raise RelayerJobFailed(job.id, final.model_dump(by_alias=True))
        if final.tx_hash is None:
            raise RelayerProtocolViolation(f"Job {job.id} confirmed without a transaction hash")
        return RelayerJob(id=job.id, status=final.status, tx_hash=decode_bytes32(final.tx_hash))

    async def withdraw(
        self,
        request: WithdrawRequest,
        lifecycle: TransactionLifecycle,
        receipt_timeout: Optional[float] = None,
    ) -> Tuple[RelayerJob, Optional[TransactionReceipt]]:
        """
        Submit a job, wait for the relayer to confirm it, then wait for the
        receipt on chain.

        Returns:
            The confirmed job and its receipt (None if ``receipt_timeout``
            elapsed first)

        Raises:
            TransactionReverted: If the relayed transaction failed on chain
        """
        job = await self.wait_for_job(await self.submit(request))
        receipt = await lifecycle.wait_for_receipt(job.tx_hash, receipt_timeout)
        if receipt is None:
            return job, None
        logger.info(
            f"Transaction with hash {encode_bytes32(receipt.transaction_hash)} mined "
            f"{'successfully' if receipt.success else 'unsuccessfully'} in block {receipt.block_number} "
            f"at index {receipt.transaction_index} using {receipt.gas_used} gas."
        )
        return job, lifecycle.ensure_success(receipt)


async def select_relayer(
    urls: Sequence[str],
    max_service_fee: Optional[float] = None,
    client: Optional[httpx.AsyncClient] = None,
    settings: Optional[Settings] = None,
    shuffle: bool = True,
) -> Tuple[RelayerClient, RelayerStatus]:
    """
    Find a responsive relayer whose service fee is acceptable.

    Candidates are tried once each, in random order unless ``shuffle`` is
    off. Relayers that fail to answer or charge more than ``max_service_fee``
    percent (default: the configured maximum) are skipped.

    Raises:
        RelayerSubmissionFailed: If no candidate qualifies
    """
    settings = settings or get_settings()
    if max_service_fee is None:
        max_service_fee = settings.max_relayer_service_fee
    candidates = list(dict.fromkeys(urls))
    if shuffle:
        random.shuffle(candidates)

    for url in candidates:
        logger.info(f"Testing relayer {url}...")
        relayer = RelayerClient.from_settings(url, settings, client=client)
        try:
            status = await relayer.get_status()
        except (RelayerError, httpx.HTTPError) as e:
            logger.info(f"Relayer {url} unusable: {e}")
            continue
        if status.tornado_service_fee > max_service_fee:
            logger.info(f"Relayer fee too high (>{max_service_fee}): {status.tornado_service_fee}")
            continue
        logger.info(f"Using relayer {url} with service fee {status.tornado_service_fee}%")
        return relayer, status

    raise RelayerSubmissionFailed(f"None of {len(candidates)} relayers is usable")
