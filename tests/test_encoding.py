"""Tests for native <-> wire conversion."""

import copy
import dataclasses

import pytest

from lending_strategy_sdk.strategy import (
    Collateral,
    Collection,
    DecodeError,
    Lien,
    MissingRequiredField,
    Strategy,
    StrategyLeafType,
    UniV3Collateral,
    ZERO_ADDRESS,
    decode_hex_value,
    encode_hex_value,
    from_wire_payload,
    lien_from_wire,
    lien_to_wire,
    parse_leaf_type,
    strategy_from_wire,
    strategy_to_wire,
    to_wire_payload,
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

COLLATERAL = Collateral(token=TOKEN, borrower=BORROWER, lien=LIEN, token_id=42)
COLLECTION = Collection(token=TOKEN, borrower=ZERO_ADDRESS, lien=LIEN)
UNIV3 = UniV3Collateral(
    token=TOKEN,
    borrower=BORROWER,
    lien=LIEN,
    token0="0x" + "cc" * 20,
    token1="0x" + "dd" * 20,
    fee=500,
    tick_lower=-887220,
    tick_upper=887220,
    min_liquidity=2**128 - 1,
    amount0_min=1,
    amount1_min=2,
    leaf="0x" + "12" * 32,
)


class TestHexValue:
    """Tests for tagged hex values."""

    def test_zero(self):
        """Test that zero encodes to a full 32-byte word and decodes back."""
        encoded = encode_hex_value(0)
        assert encoded == {"hex": "0x" + "0" * 64, "type": "uint256"}
        assert decode_hex_value(encoded) == 0

    def test_deterministic(self):
        """Test that the same value always encodes to the same hex."""
        assert encode_hex_value(10**18) == encode_hex_value(10**18)
        assert encode_hex_value(10**18)["hex"] == "0x" + format(10**18, "064x")

    def test_signed_value(self):
        """Test two's complement encoding of negative ticks."""
        encoded = encode_hex_value(-1, "int24")
        assert encoded == {"hex": "0x" + "f" * 64, "type": "int24"}
        assert decode_hex_value(encoded, "int24") == -1

    def test_max_uint256(self):
        encoded = encode_hex_value(2**256 - 1)
        assert decode_hex_value(encoded) == 2**256 - 1

    def test_overflow_for_narrow_type(self):
        """Test that a word too large for the declared type raises error."""
        data = {"hex": "0x" + format(2**24, "064x"), "type": "uint24"}
        with pytest.raises(DecodeError, match="out of range"):
            decode_hex_value(data, "uint24")

    def test_wrong_type_tag(self):
        data = encode_hex_value(5, "uint128")
        with pytest.raises(DecodeError, match="Expected hex of type uint256"):
            decode_hex_value(data)

    @pytest.mark.parametrize(
        "raw",
        ["0x" + "zz" * 32, "0x1234", "1234" + "0" * 62, "", "0x" + "0" * 65],
    )
    def test_malformed_hex(self, raw):
        with pytest.raises(DecodeError):
            decode_hex_value({"hex": raw, "type": "uint256"})

    def test_not_an_object(self):
        with pytest.raises(DecodeError):
            decode_hex_value("0x01")

    def test_legacy_bignumber(self):
        """Test that ethers BigNumber JSON is accepted."""
        assert decode_hex_value({"hex": "0x0de0b6b3a7640000", "type": "BigNumber"}) == 10**18
        assert decode_hex_value({"hex": "-0x0a", "type": "BigNumber"}, "int24") == -10

    def test_legacy_bignumber_negative_uint(self):
        """Test that a negative value for an unsigned field raises error."""
        with pytest.raises(DecodeError):
            decode_hex_value({"hex": "-0x01", "type": "BigNumber"})

    def test_legacy_bignumber_malformed(self):
        with pytest.raises(DecodeError, match="Malformed"):
            decode_hex_value({"hex": "0x", "type": "BigNumber"})


class TestLeafTypeParsing:
    """Tests for leaf type tag parsing."""

    def test_known_codes(self):
        assert parse_leaf_type(1) is StrategyLeafType.COLLATERAL
        assert parse_leaf_type("3") is StrategyLeafType.UNIV3_COLLATERAL

    @pytest.mark.parametrize("value", [4, -1, None, True, "collection", 1.0])
    def test_unknown_codes(self, value):
        with pytest.raises(DecodeError):
            parse_leaf_type(value)


class TestLien:
    """Tests for lien conversion."""

    def test_wire_keys(self):
        wire = lien_to_wire(LIEN)
        assert list(wire) == [
            "amount",
            "rate",
            "duration",
            "maxPotentialDebt",
            "liquidationInitialAsk",
        ]
        assert all(value["type"] == "uint256" for value in wire.values())

    def test_round_trip(self):
        assert lien_from_wire(lien_to_wire(LIEN)) == LIEN

    def test_missing_field(self):
        wire = lien_to_wire(LIEN)
        del wire["maxPotentialDebt"]
        with pytest.raises(MissingRequiredField, match="maxPotentialDebt"):
            lien_from_wire(wire)


class TestRows:
    """Tests for row conversion."""

    @pytest.mark.parametrize("row", [COLLATERAL, COLLECTION, UNIV3])
    def test_round_trip(self, row):
        """Test that every variant survives native -> wire -> native."""
        assert from_wire_payload(to_wire_payload(row)) == row

    @pytest.mark.parametrize("row", [COLLATERAL, COLLECTION, UNIV3])
    def test_wire_type_is_row_code(self, row):
        assert to_wire_payload(row)["type"] in (1, 2, 3)
        assert isinstance(to_wire_payload(row)["type"], int)

    def test_collection_example(self):
        """Test the documented Collection example end to end."""
        wire = to_wire_payload(COLLECTION)
        assert wire["type"] == 2
        assert wire["borrower"] == ZERO_ADDRESS
        assert "tokenId" not in wire
        assert "leaf" not in wire
        decoded = from_wire_payload(wire)
        assert decoded == COLLECTION
        assert decoded.is_any_borrower

    def test_collateral_wire(self):
        wire = to_wire_payload(COLLATERAL)
        assert wire["tokenId"] == encode_hex_value(42)

    def test_univ3_wire_types(self):
        wire = to_wire_payload(UNIV3)
        assert wire["fee"]["type"] == "uint24"
        assert wire["tickLower"]["type"] == "int24"
        assert wire["minLiquidity"]["type"] == "uint128"
        assert wire["leaf"] == UNIV3.leaf

    def test_unknown_type(self):
        wire = to_wire_payload(COLLECTION)
        wire["type"] = 7
        with pytest.raises(DecodeError, match="Unknown leaf type"):
            from_wire_payload(wire)

    def test_strategy_type_is_not_a_row(self):
        wire = to_wire_payload(COLLECTION)
        wire["type"] = 0
        with pytest.raises(DecodeError, match="STRATEGY"):
            from_wire_payload(wire)

    def test_collateral_missing_token_id(self):
        wire = to_wire_payload(COLLATERAL)
        del wire["tokenId"]
        with pytest.raises(MissingRequiredField, match="tokenId"):
            from_wire_payload(wire)

    def test_univ3_missing_field(self):
        wire = to_wire_payload(UNIV3)
        del wire["tickUpper"]
        with pytest.raises(MissingRequiredField, match="tickUpper"):
            from_wire_payload(wire)

    def test_collection_ignores_token_id(self):
        """Test that a tokenId on a Collection row is ignored."""
        wire = to_wire_payload(COLLECTION)
        wire["tokenId"] = encode_hex_value(1)
        assert from_wire_payload(wire) == COLLECTION

    def test_empty_leaf_is_absent(self):
        wire = to_wire_payload(COLLECTION)
        wire["leaf"] = ""
        row = from_wire_payload(wire)
        assert row == COLLECTION
        assert row.leaf is None

    def test_invalid_address_is_decode_error(self):
        wire = to_wire_payload(COLLECTION)
        wire["token"] = "0xnotanaddress"
        with pytest.raises(DecodeError):
            from_wire_payload(wire)

    def test_bad_tick_order_is_decode_error(self):
        wire = copy.deepcopy(to_wire_payload(UNIV3))
        wire["tickLower"], wire["tickUpper"] = wire["tickUpper"], wire["tickLower"]
        with pytest.raises(DecodeError, match="tick_lower"):
            from_wire_payload(wire)

    def test_to_wire_rejects_strategy(self):
        strategy = Strategy(delegate=BORROWER, expiration=1, nonce=1)
        with pytest.raises(TypeError):
            to_wire_payload(strategy)

    def test_wire_is_independent_of_row(self):
        """Test that mutating a wire dict leaves the row untouched."""
        wire = to_wire_payload(dataclasses.replace(COLLATERAL))
        wire["lien"]["amount"] = encode_hex_value(0)
        assert COLLATERAL.lien.amount == 10**18


class TestStrategyWire:
    """Tests for configuration leaf conversion."""

    def test_round_trip(self):
        strategy = Strategy(delegate=BORROWER, expiration=1700000000, nonce=5, vault=TOKEN)
        wire = strategy_to_wire(strategy)
        assert wire["type"] == 0
        assert wire["version"] == 0
        assert wire["nonce"] == encode_hex_value(5)
        assert strategy_from_wire(wire) == strategy

    def test_row_tag_rejected(self):
        wire = strategy_to_wire(Strategy(delegate=BORROWER, expiration=1, nonce=1))
        wire["type"] = 1
        with pytest.raises(DecodeError, match="STRATEGY"):
            strategy_from_wire(wire)

    def test_missing_nonce(self):
        wire = strategy_to_wire(Strategy(delegate=BORROWER, expiration=1, nonce=1))
        del wire["nonce"]
        with pytest.raises(MissingRequiredField, match="nonce"):
            strategy_from_wire(wire)
