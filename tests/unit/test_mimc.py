"""Tests for the MiMC sponge and the tree's empty values."""

from zkpool.core.merkle_tree import ZERO_VALUE, zero_values
from zkpool.crypto.mimc import ROUND_CONSTANTS, ROUNDS, feistel, mimc_sponge_hash, multi_hash
from zkpool.utils.hash import FIELD_SIZE, keccak256


class TestRoundConstants:
    """Tests for constant generation."""

    def test_count_and_zero_ends(self):
        assert len(ROUND_CONSTANTS) == ROUNDS == 220
        assert ROUND_CONSTANTS[0] == 0
        assert ROUND_CONSTANTS[-1] == 0

    def test_first_constant_is_double_keccak_of_seed(self):
        expected = int.from_bytes(keccak256(keccak256("mimcsponge")), "big") % FIELD_SIZE
        assert ROUND_CONSTANTS[1] == expected

    def test_constants_are_field_elements(self):
        assert all(0 <= c < FIELD_SIZE for c in ROUND_CONSTANTS)


class TestSponge:
    """Tests for the sponge construction."""

    def test_hash_is_multi_hash_of_pair(self):
        assert mimc_sponge_hash(1, 2) == multi_hash([1, 2])

    def test_hash_is_order_sensitive(self):
        assert mimc_sponge_hash(1, 2) != mimc_sponge_hash(2, 1)

    def test_single_value_absorbs_once(self):
        left, _ = feistel(5, 0)
        assert multi_hash([5]) == left

    def test_output_in_field(self):
        assert 0 <= mimc_sponge_hash(FIELD_SIZE - 1, FIELD_SIZE - 1) < FIELD_SIZE


class TestEmptyTree:
    """Tests for the pool contract's empty-subtree values."""

    def test_zero_value_is_keccak_of_tornado(self):
        assert ZERO_VALUE == int.from_bytes(keccak256("tornado"), "big") % FIELD_SIZE
        assert ZERO_VALUE == 0x2FE54C60D3ACABF3343A35B6EBA15DB4821B340F76E741E2249685ED4899AF6C

    def test_zero_values_match_contract(self):
        """The first empty-subtree roots equal the contract's hard-coded zeros."""
        zeros = zero_values(mimc_sponge_hash, ZERO_VALUE, 2)
        assert zeros[1] == 0x256A6135777EEE2FD26F54B8B7037A25439D5235CAEE224154186D2B8A52E31D
        assert zeros[2] == 0x1151949895E82AB19924DE92C40A3D6F7BCB60D92B00504B8199613683F0C200
