"""Tests for circuit input assembly and prover hand-off."""

import asyncio
import json
import sys

import pytest

from fakes import FakeHasher, FakeProver, small_hash
from zkpool.core.merkle_tree import MerkleIndex, MerklePath
from zkpool.core.note import Note
from zkpool.core.zkproof import (
    CommandProver,
    ProofOrchestrator,
    WithdrawalParameters,
    pack_solidity_proof,
    parse_prover_output,
)
from zkpool.exceptions import ProofGenerationFailed
from zkpool.utils.hash import FIELD_SIZE

SNARKJS_PROOF = {
    "pi_a": ["1", "2", "1"],
    "pi_b": [["3", "4"], ["5", "6"], ["1", "0"]],
    "pi_c": ["7", "8", "1"],
    "protocol": "groth16",
}


@pytest.fixture
def withdrawal():
    """A note, its digests and its path in a small tree."""
    note = Note("1", nullifier=11, secret=22)
    digests = note.digests(FakeHasher())
    tree = MerkleIndex([5, digests.commitment, 9], tree_height=4, hash_fn=small_hash, zero_value=0)
    return note, digests, tree.path(1)


class TestAssemble:
    """Tests for the prover input shape."""

    def test_input_shape(self, withdrawal):
        note, digests, path = withdrawal
        params = WithdrawalParameters(recipient=0xBB, relayer=0xCC, fee=5, refund=0)
        prover_input = ProofOrchestrator.assemble(note, digests, path, params).to_prover_input()

        assert prover_input["public"] == {
            "root": str(path.root),
            "nullifierHash": str(digests.nullifier_hash),
            "recipient": str(0xBB),
            "relayer": str(0xCC),
            "fee": "5",
            "refund": "0",
        }
        assert prover_input["private"] == {
            "nullifier": "11",
            "secret": "22",
            "pathElements": [str(s) for s in path.siblings],
            "pathIndices": [1, 0, 0, 0],
        }

    def test_values_are_decimal_strings(self, withdrawal):
        note, digests, path = withdrawal
        prover_input = ProofOrchestrator.assemble(note, digests, path, WithdrawalParameters(1)).to_prover_input()
        assert all(isinstance(value, str) and value.isdigit() for value in prover_input["public"].values())

    def test_public_value_outside_field(self, withdrawal):
        note, digests, path = withdrawal
        with pytest.raises(ValueError):
            ProofOrchestrator.assemble(note, digests, path, WithdrawalParameters(recipient=1, fee=FIELD_SIZE))

    def test_malformed_path(self, withdrawal):
        note, digests, _ = withdrawal
        path = MerklePath(leaf_index=0, siblings=[1, 2], direction_bits=[0], root=3)
        with pytest.raises(ValueError):
            ProofOrchestrator.assemble(note, digests, path, WithdrawalParameters(1))


class TestProve:
    """Tests for invoking the prover."""

    def test_returns_proof_and_root(self, withdrawal):
        note, digests, path = withdrawal
        prover = FakeProver()
        result = asyncio.run(ProofOrchestrator(prover).prove(note, digests, path, WithdrawalParameters(0xBB)))
        assert result.proof == prover.proof
        assert result.root == path.root
        assert len(prover.inputs) == 1

    def test_prover_failure_is_wrapped(self, withdrawal):
        note, digests, path = withdrawal
        cause = RuntimeError("witness generation failed")
        with pytest.raises(ProofGenerationFailed) as exc_info:
            asyncio.run(ProofOrchestrator(FakeProver(error=cause)).prove(note, digests, path, WithdrawalParameters(1)))
        assert exc_info.value.cause is cause

    def test_wrong_public_signals(self, withdrawal):
        note, digests, path = withdrawal

        class LyingProver(FakeProver):
            async def prove(self, circuit_input):
                output = await super().prove(circuit_input)
                output.public_signals[0] += 1
                return output

        with pytest.raises(ProofGenerationFailed):
            asyncio.run(ProofOrchestrator(LyingProver()).prove(note, digests, path, WithdrawalParameters(1)))


class TestSolidityProof:
    """Tests for the snarkjs-to-verifier proof layout."""

    def test_pack_swaps_g2_coordinates(self):
        packed = pack_solidity_proof(SNARKJS_PROOF)
        words = [int.from_bytes(packed[i : i + 32], "big") for i in range(0, 256, 32)]
        assert words == [1, 2, 4, 3, 6, 5, 7, 8]

    def test_hex_values_accepted(self):
        proof = dict(SNARKJS_PROOF, pi_a=["0x10", "0x20", "1"])
        assert pack_solidity_proof(proof)[:32] == (16).to_bytes(32, "big")

    def test_parse_prover_output(self):
        output = parse_prover_output({"proof": SNARKJS_PROOF, "publicSignals": ["9", "10"]})
        assert len(output.proof) == 256
        assert output.public_signals == [9, 10]


class TestCommandProver:
    """Tests for the subprocess prover adapter."""

    SCRIPT = (
        "import json, sys\n"
        "flat = json.load(open(sys.argv[-1]))\n"
        "proof = {'pi_a': ['1', '2'], 'pi_b': [['3', '4'], ['5', '6']], 'pi_c': ['7', '8']}\n"
        "signals = [flat[k] for k in ('root', 'nullifierHash', 'recipient', 'relayer', 'fee', 'refund')]\n"
        "print(json.dumps({'proof': proof, 'publicSignals': signals}))\n"
    )

    def test_runs_command_with_flat_input(self, withdrawal):
        note, digests, path = withdrawal
        prover = CommandProver([sys.executable, "-c", self.SCRIPT])
        result = asyncio.run(ProofOrchestrator(prover).prove(note, digests, path, WithdrawalParameters(0xBB)))
        assert result.root == path.root
        assert result.proof[:32] == (1).to_bytes(32, "big")

    def test_failing_command(self, withdrawal):
        note, digests, path = withdrawal
        prover = CommandProver([sys.executable, "-c", "import sys; sys.exit('no zkey')"])
        with pytest.raises(ProofGenerationFailed) as exc_info:
            asyncio.run(ProofOrchestrator(prover).prove(note, digests, path, WithdrawalParameters(1)))
        assert "no zkey" in str(exc_info.value.cause)

    def test_empty_command(self):
        with pytest.raises(ValueError):
            CommandProver([])


def test_prover_input_is_json_serializable(withdrawal):
    note, digests, path = withdrawal
    prover_input = ProofOrchestrator.assemble(note, digests, path, WithdrawalParameters(1)).to_prover_input()
    assert json.loads(json.dumps(prover_input)) == prover_input
