"""Tests for leaf hashing and placement."""

import pytest
from eth_abi import encode
from eth_utils import keccak, to_checksum_address

from lending_strategy_sdk.strategy import (
    Collateral,
    Collection,
    InvalidLeafPlacement,
    Lien,
    Strategy,
    UniV3Collateral,
    ZERO_ADDRESS,
    compute_leaf,
    validate_leaf_order,
    with_leaf,
)


TOKEN = "0x" + "aa" * 20
BORROWER = "0x" + "bb" * 20

LIEN = Lien(
    amount=10**18,
    rate=1,
    duration=86400,
    max_potential_debt=0,
    liquidation_initial_ask=2 * 10**18,
)

STRATEGY = Strategy(delegate=BORROWER, expiration=1700000000, nonce=1)
COLLATERAL = Collateral(token=TOKEN, borrower=BORROWER, lien=LIEN, token_id=7)
COLLECTION = Collection(token=TOKEN, borrower=ZERO_ADDRESS, lien=LIEN)
UNIV3 = UniV3Collateral(
    token=TOKEN,
    borrower=BORROWER,
    lien=LIEN,
    token0="0x" + "cc" * 20,
    token1="0x" + "dd" * 20,
    fee=3000,
    tick_lower=-60,
    tick_upper=60,
    min_liquidity=1,
    amount0_min=0,
    amount1_min=0,
)


class TestComputeLeaf:
    """Tests for leaf hashing."""

    @pytest.mark.parametrize("row", [COLLATERAL, COLLECTION, UNIV3])
    def test_leaf_format(self, row):
        leaf = compute_leaf(row)
        assert leaf.startswith("0x")
        assert len(leaf) == 66

    def test_deterministic(self):
        assert compute_leaf(COLLATERAL) == compute_leaf(COLLATERAL)

    def test_collection_encoding(self):
        """Test the Collection leaf against a hand-built ABI encoding."""
        expected = keccak(
            encode(
                ["uint8", "address", "address"] + ["uint256"] * 5,
                [
                    2,
                    to_checksum_address(TOKEN),
                    ZERO_ADDRESS,
                    10**18,
                    1,
                    86400,
                    0,
                    2 * 10**18,
                ],
            )
        )
        assert compute_leaf(COLLECTION) == "0x" + expected.hex()

    def test_token_id_changes_leaf(self):
        other = Collateral(token=TOKEN, borrower=BORROWER, lien=LIEN, token_id=8)
        assert compute_leaf(COLLATERAL) != compute_leaf(other)

    def test_borrower_changes_leaf(self):
        """Test that the wildcard borrower hashes differently from a concrete one."""
        concrete = Collection(token=TOKEN, borrower=BORROWER, lien=LIEN)
        assert compute_leaf(COLLECTION) != compute_leaf(concrete)

    def test_strategy_is_not_hashed(self):
        with pytest.raises(TypeError):
            compute_leaf(STRATEGY)


class TestWithLeaf:
    """Tests for filling in leaves."""

    def test_fills_missing_leaf(self):
        row = with_leaf(COLLECTION)
        assert row.leaf == compute_leaf(COLLECTION)
        assert COLLECTION.leaf is None

    def test_existing_leaf_is_kept(self):
        """Test that a received leaf is never recomputed."""
        received = Collection(
            token=TOKEN, borrower=ZERO_ADDRESS, lien=LIEN, leaf="0x" + "11" * 32
        )
        assert with_leaf(received) is received


class TestLeafPlacement:
    """Tests for Strategy leaf placement."""

    def test_strategy_first_accepted(self):
        validate_leaf_order([STRATEGY, COLLATERAL, COLLECTION])

    def test_rows_only_accepted(self):
        validate_leaf_order([COLLATERAL, COLLECTION, UNIV3])

    def test_empty_accepted(self):
        validate_leaf_order([])

    def test_strategy_after_row_rejected(self):
        with pytest.raises(InvalidLeafPlacement, match="index 1"):
            validate_leaf_order([COLLATERAL, STRATEGY])

    def test_second_strategy_rejected(self):
        with pytest.raises(InvalidLeafPlacement, match="index 2"):
            validate_leaf_order([STRATEGY, COLLECTION, STRATEGY])
