"""Assembly of withdrawal circuit inputs and hand-off to an external prover."""

import asyncio
import json
import logging
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

from zkpool.core.merkle_tree import MerklePath
from zkpool.core.note import Note, NoteDigests
from zkpool.exceptions import ProofGenerationFailed
from zkpool.utils.hash import FIELD_SIZE

logger = logging.getLogger(__name__)

PUBLIC_SIGNALS = ("root", "nullifierHash", "recipient", "relayer", "fee", "refund")


@dataclass(frozen=True)
class WithdrawalParameters:
    """Public arguments of a withdrawal bound into the proof."""

    recipient: int
    relayer: int = 0
    fee: int = 0
    refund: int = 0


@dataclass(frozen=True)
class CircuitInput:
    """Every signal of the withdrawal circuit, as integers."""

    # Public
    root: int
    nullifier_hash: int
    recipient: int
    relayer: int
    fee: int
    refund: int
    # Private
    nullifier: int
    secret: int
    path_elements: List[int] = field(default_factory=list)
    path_indices: List[int] = field(default_factory=list)

    def public_values(self) -> List[int]:
        return [self.root, self.nullifier_hash, self.recipient, self.relayer, self.fee, self.refund]

    def to_prover_input(self) -> Dict[str, Dict[str, Any]]:
        """Prover input object; field elements as decimal strings, path bits as ints."""
        return {
            "public": {name: str(value) for name, value in zip(PUBLIC_SIGNALS, self.public_values())},
            "private": {
                "nullifier": str(self.nullifier),
                "secret": str(self.secret),
                "pathElements": [str(element) for element in self.path_elements],
                "pathIndices": list(self.path_indices),
            },
        }


@dataclass(frozen=True)
class ProverOutput:
    """What a prover hands back: the packed proof and the public signals it proved."""

    proof: bytes
    public_signals: List[int] = field(default_factory=list)


class Prover(Protocol):
    """External Groth16 witness and proof computation."""

    async def prove(self, circuit_input: Mapping[str, Any]) -> ProverOutput:
        ...


@dataclass(frozen=True)
class ProofResult:
    """A proof for one withdrawal attempt. Never cached."""

    proof: bytes
    root: int


class ProofOrchestrator:
    """
    Builds the exact input shape the prover expects and invokes it.

    No cryptography happens here. Prover failures of any kind come back as
    ``ProofGenerationFailed`` with the original error as ``cause``.
    """

    def __init__(self, prover: Prover):
        self.prover = prover

    @staticmethod
    def assemble(
        note: Note,
        digests: NoteDigests,
        path: MerklePath,
        params: WithdrawalParameters,
    ) -> CircuitInput:
        """
        Combine note, tree path and public parameters into circuit signals.

        Raises:
            ValueError: If a public value is not a field element or the path
                is malformed
        """
        if len(path.siblings) != len(path.direction_bits):
            raise ValueError("Path siblings and direction bits must have the same length")
        if any(bit not in (0, 1) for bit in path.direction_bits):
            raise ValueError("Path direction bits must be 0 or 1")

        circuit_input = CircuitInput(
            root=path.root,
            nullifier_hash=digests.nullifier_hash,
            recipient=params.recipient,
            relayer=params.relayer,
            fee=params.fee,
            refund=params.refund,
            nullifier=note.nullifier,
            secret=note.secret,
            path_elements=list(path.siblings),
            path_indices=list(path.direction_bits),
        )
        for name, value in zip(PUBLIC_SIGNALS, circuit_input.public_values()):
            if value < 0 or value >= FIELD_SIZE:
                raise ValueError(f"{name} is not a field element: {value}")
        return circuit_input

    async def prove(
        self,
        note: Note,
        digests: NoteDigests,
        path: MerklePath,
        params: WithdrawalParameters,
    ) -> ProofResult:
        """
        Generate a withdrawal proof.

        Raises:
            ProofGenerationFailed: If the prover fails or proves different
                public signals than requested
        """
        circuit_input = self.assemble(note, digests, path, params)

        logger.info("Generating SNARK proof")
        started = time.monotonic()
        try:
            output = await self.prover.prove(circuit_input.to_prover_input())
        except Exception as e:
            raise ProofGenerationFailed(e) from e
        logger.info(f"Proof time: {time.monotonic() - started:.1f}s")

        if output.public_signals and list(output.public_signals) != circuit_input.public_values():
            raise ProofGenerationFailed(
                ValueError(f"Prover echoed unexpected public signals {output.public_signals}")
            )
        return ProofResult(proof=output.proof, root=circuit_input.root)


def _to_int(value: Any) -> int:
    text = str(value)
    return int(text, 16) if text.startswith("0x") else int(text)


def pack_solidity_proof(proof: Mapping[str, Any]) -> bytes:
    """
    Pack a snarkjs Groth16 proof into the 8-word layout the verifier contract takes.

    The G2 point coordinates are swapped pairwise as Solidity expects.
    """
    pi_a, pi_b, pi_c = proof["pi_a"], proof["pi_b"], proof["pi_c"]
    words = [
        pi_a[0], pi_a[1],
        pi_b[0][1], pi_b[0][0],
        pi_b[1][1], pi_b[1][0],
        pi_c[0], pi_c[1],
    ]
    return b"".join(_to_int(word).to_bytes(32, "big") for word in words)


def parse_prover_output(payload: Mapping[str, Any]) -> ProverOutput:
    """Read a ``{proof, publicSignals}`` object as written by snarkjs."""
    return ProverOutput(
        proof=pack_solidity_proof(payload["proof"]),
        public_signals=[_to_int(signal) for signal in payload.get("publicSignals", [])],
    )


class CommandProver:
    """
    Prover that shells out to an external proving command.

    The command gets the path of a JSON file holding the flat circuit input
    as its last argument and must print ``{"proof": ..., "publicSignals": ...}``
    on stdout.
    """

    def __init__(self, command: Sequence[str], timeout: Optional[float] = None):
        if not command:
            raise ValueError("command must not be empty")
        self.command = list(command)
        self.timeout = timeout

    async def prove(self, circuit_input: Mapping[str, Any]) -> ProverOutput:
        flat = {**circuit_input["public"], **circuit_input["private"]}
        with tempfile.TemporaryDirectory() as workdir:
            input_path = Path(workdir) / "input.json"
            input_path.write_text(json.dumps(flat), encoding="utf-8")

            process = await asyncio.create_subprocess_exec(
                *self.command,
                str(input_path),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            try:
                stdout, stderr = await asyncio.wait_for(process.communicate(), self.timeout)
            except asyncio.TimeoutError:
                process.kill()
                await process.wait()
                raise

        if process.returncode != 0:
            raise RuntimeError(
                f"{self.command[0]} exited with {process.returncode}: {stderr.decode(errors='replace').strip()}"
            )
        return parse_prover_output(json.loads(stdout))
