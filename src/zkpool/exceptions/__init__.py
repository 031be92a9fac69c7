"""Custom exceptions for the shielded pool withdrawal client."""

from typing import Any, Optional


class ZKPoolException(Exception):
    """Base exception for all zkpool errors."""
    pass


# Wire Errors
class WireError(ZKPoolException):
    """Base exception for JSON-RPC wire decoding errors."""
    pass


class MalformedWireValue(WireError):
    """Raised when a wire value does not have the expected hex shape."""

    def __init__(self, value: Any, expected: str):
        self.value = value
        self.expected = expected
        super().__init__(f"Expected {expected} but got {value!r}")


class MissingField(WireError):
    """Raised when a wire object lacks a required field."""

    def __init__(self, field: str, obj: Any = None):
        self.field = field
        super().__init__(f"Expected field '{field}' in object but it wasn't present: {obj!r}")


class WrongFieldType(WireError):
    """Raised when a wire object field has the wrong primitive shape."""

    def __init__(self, field: str, expected: str, value: Any):
        self.field = field
        self.expected = expected
        self.value = value
        super().__init__(f"Field '{field}' should be {expected} but got {value!r}")


# RPC Errors
class RpcLayerError(ZKPoolException):
    """Base exception for RPC transport and protocol errors."""
    pass


class RpcError(RpcLayerError):
    """Raised when the node answers with a JSON-RPC error object."""

    def __init__(self, code: int, message: str, method: Optional[str] = None):
        self.code = code
        self.message = message
        self.method = method
        prefix = f"{method}: " if method else ""
        super().__init__(f"{prefix}JSON-RPC error {code}: {message}")


class TransportError(RpcLayerError):
    """Raised when the HTTP transport returns a non-2xx response."""

    def __init__(self, status: int, body: str):
        self.status = status
        self.body = body
        super().__init__(f"HTTP {status}: {body}")


# Synchronization Errors
class SyncError(ZKPoolException):
    """Base exception for deposit event synchronization errors."""
    pass


class DiscontinuousLeafSequence(SyncError):
    """Raised when fetched deposit events skip or repeat a leaf index."""

    def __init__(self, expected_index: int, found_index: Optional[int] = None):
        self.expected_index = expected_index
        self.found_index = found_index
        super().__init__(f"Missing leaf index {expected_index} (found {found_index})")


# Merkle Tree Errors
class MerkleTreeError(ZKPoolException):
    """Base exception for Merkle tree errors."""
    pass


class TreeCapacityExceeded(MerkleTreeError):
    """Raised when more leaves are supplied than the tree can hold."""
    pass


class InvalidLeafIndexError(MerkleTreeError):
    """Raised when leaf index is invalid."""
    pass


class TreeValidationError(MerkleTreeError):
    """Base exception for failed checks of a reconstructed tree against the chain."""
    pass


class StaleOrCorruptTree(TreeValidationError):
    """Raised when the reconstructed root is not a known root on chain."""

    def __init__(self, root: int):
        self.root = root
        super().__init__(f"Merkle tree is corrupted: root 0x{root:064x} is not known on chain")


class NoteAlreadySpent(TreeValidationError):
    """Raised when the note's nullifier hash has already been spent."""

    def __init__(self, nullifier_hash: int):
        self.nullifier_hash = nullifier_hash
        super().__init__(f"The note is already spent (nullifier hash 0x{nullifier_hash:064x})")


class CommitmentNotFound(TreeValidationError):
    """Raised when the note's commitment is not among the observed deposits."""

    def __init__(self, commitment: int):
        self.commitment = commitment
        super().__init__(f"The deposit 0x{commitment:064x} is not found in the tree")


# Proof Errors
class ProofError(ZKPoolException):
    """Base exception for proof-related errors."""
    pass


class ProofGenerationFailed(ProofError):
    """Raised when the external prover fails."""

    def __init__(self, cause: BaseException):
        self.cause = cause
        super().__init__(f"Proof generation failed: {cause}")


# Transaction Errors
class TransactionError(ZKPoolException):
    """Base exception for transaction lifecycle errors."""
    pass


class TransactionReverted(TransactionError):
    """Raised when a mined transaction's receipt reports failure."""

    def __init__(self, receipt: Any):
        self.receipt = receipt
        super().__init__(
            f"Transaction 0x{receipt.transaction_hash:064x} reverted in block {receipt.block_number}"
        )


# Relayer Errors
class RelayerError(ZKPoolException):
    """Base exception for relayer protocol errors."""
    pass


class RelayerSubmissionFailed(RelayerError):
    """Raised when the relayer rejects a request with a non-success HTTP status."""

    def __init__(self, message: str, status: Optional[int] = None, body: Optional[str] = None):
        self.status = status
        self.body = body
        super().__init__(message)


class RelayerProtocolViolation(RelayerError):
    """Raised when the relayer answers with a malformed body."""
    pass


class RelayerJobFailed(RelayerError):
    """Raised when the relayer reports the withdrawal job as FAILED."""

    def __init__(self, job_id: str, body: Any = None):
        self.job_id = job_id
        self.body = body
        super().__init__(f"Relayer says the withdraw job {job_id} failed: {body!r}")


class RelayerJobTimeout(RelayerError):
    """Raised when a relayer job did not reach a terminal state within the configured attempts."""

    def __init__(self, job_id: str, attempts: int):
        self.job_id = job_id
        self.attempts = attempts
        super().__init__(f"Relayer job {job_id} still pending after {attempts} status checks")


class RelayerFeeTooHigh(RelayerError, ValueError):
    """Raised when the relayer fee would swallow the whole note."""

    def __init__(self, message: str, fee: int, size: int):
        self.fee = fee
        self.size = size
        super().__init__(message)


# Note Errors
class NoteError(ZKPoolException):
    """Base exception for note handling errors."""
    pass


class InvalidNoteError(NoteError):
    """Raised when a note string or note value is malformed."""
    pass


class UnknownDenominationError(NoteError):
    """Raised when a denomination label is not supported."""
    pass


# Storage Errors
class StorageError(ZKPoolException):
    """Base exception for storage errors."""
    pass


class DeserializationError(StorageError):
    """Raised when a cached record cannot be read back."""
    pass


# Polling
class PollingTimeout(ZKPoolException):
    """Raised when a polling loop runs out of attempts or time."""

    def __init__(self, attempts: int, elapsed: float):
        self.attempts = attempts
        self.elapsed = elapsed
        super().__init__(f"Gave up after {attempts} attempts ({elapsed:.2f}s)")
