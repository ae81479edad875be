"""Conversion between native leaves and their wire form.

Numbers travel as ``{"hex": ..., "type": ...}`` where ``hex`` is the 32-byte
ABI word of the value (``0x`` + 64 hex digits, two's complement for signed
types) and ``type`` is the Solidity type. Using the ABI word keeps the wire
value byte-identical to what the leaf hash commits to.

Payloads produced by ethers' ``BigNumber.toJSON`` (``type == "BigNumber"``,
minimal hex) are accepted on decode as well.
"""

import logging
from typing import Any, Callable, Dict, Mapping

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import decode_hex, is_hexstr

from .errors import DecodeError, InvalidFieldValue, MissingRequiredField
from .types import (
    LIEN_FIELDS,
    UNIV3_FIELDS,
    Collateral,
    CollateralWire,
    Collection,
    CollectionWire,
    HexValue,
    Lien,
    LienWire,
    Strategy,
    StrategyLeaf,
    StrategyLeafType,
    StrategyWire,
    UniV3Collateral,
    UniV3CollateralWire,
    WireRow,
    check_int,
)

logger = logging.getLogger(__name__)

LEGACY_HEX_TYPE = "BigNumber"


def parse_leaf_type(value: Any) -> StrategyLeafType:
    """Parse a wire ``type`` tag.

    Raises:
        DecodeError: If the value is not one of the known leaf codes
    """
    if isinstance(value, str) and value.isdigit():
        value = int(value)
    if isinstance(value, bool) or not isinstance(value, int):
        raise DecodeError(f"Invalid leaf type: {value!r}")
    try:
        return StrategyLeafType(value)
    except ValueError:
        raise DecodeError(f"Unknown leaf type: {value}") from None


def encode_hex_value(value: int, abi_type: str = "uint256") -> HexValue:
    """Encode an integer as a tagged 32-byte hex value.

    Args:
        value: Integer to encode
        abi_type: Solidity integer type, e.g. "uint256" or "int24"

    Returns:
        {"hex": "0x" + 64 hex digits, "type": abi_type}
    """
    check_int(value, "value", abi_type)
    return {"hex": "0x" + encode([abi_type], [value]).hex(), "type": abi_type}


def decode_hex_value(data: Any, abi_type: str = "uint256") -> int:
    """Decode a tagged hex value produced by ``encode_hex_value``.

    Raises:
        DecodeError: If the value is malformed, tagged with another type,
            or out of range for ``abi_type``
    """
    if not isinstance(data, Mapping) or not isinstance(data.get("hex"), str):
        raise DecodeError(f"Expected {{hex, type}} object, got {data!r}")

    raw, tag = data["hex"], data.get("type")

    if tag == LEGACY_HEX_TYPE:
        negative = raw.startswith("-")
        digits = raw[1:] if negative else raw
        if not digits.startswith("0x") or not is_hexstr(digits) or len(digits) < 3:
            raise DecodeError(f"Malformed hex: {raw!r}")
        value = -int(digits, 16) if negative else int(digits, 16)
        try:
            return check_int(value, "value", abi_type)
        except InvalidFieldValue as e:
            raise DecodeError(str(e)) from e

    if tag != abi_type:
        raise DecodeError(f"Expected hex of type {abi_type}, got {tag!r}")
    if not raw.startswith("0x") or len(raw) != 66 or not is_hexstr(raw):
        raise DecodeError(f"Malformed hex: {raw!r}")
    try:
        (value,) = decode([abi_type], decode_hex(raw))
    except DecodingError as e:
        raise DecodeError(f"Value {raw} out of range for {abi_type}") from e
    return value


def _require(data: Mapping[str, Any], key: str, leaf_type: str) -> Any:
    if key not in data or data[key] is None:
        raise MissingRequiredField(key, leaf_type)
    return data[key]


def lien_to_wire(lien: Lien) -> LienWire:
    """Convert a lien to its wire form."""
    return {
        key: encode_hex_value(getattr(lien, attr), abi_type)
        for attr, key, abi_type in LIEN_FIELDS
    }


def lien_from_wire(data: Mapping[str, Any]) -> Lien:
    """Convert a wire lien back to a ``Lien``.

    Raises:
        DecodeError: If any value is malformed or out of range
        MissingRequiredField: If a lien field is absent
    """
    if not isinstance(data, Mapping):
        raise DecodeError(f"Expected lien object, got {data!r}")
    return Lien(
        **{
            attr: decode_hex_value(_require(data, key, "Lien"), abi_type)
            for attr, key, abi_type in LIEN_FIELDS
        }
    )


def _row_base_to_wire(row: StrategyLeaf) -> Dict[str, Any]:
    wire: Dict[str, Any] = {
        "type": int(row.type),
        "token": row.token,
        "borrower": row.borrower,
        "lien": lien_to_wire(row.lien),
    }
    if row.leaf is not None:
        wire["leaf"] = row.leaf
    return wire


def _row_base_from_wire(data: Mapping[str, Any], leaf_type: str) -> Dict[str, Any]:
    return {
        "token": _require(data, "token", leaf_type),
        "borrower": _require(data, "borrower", leaf_type),
        "lien": lien_from_wire(_require(data, "lien", leaf_type)),
        "leaf": data.get("leaf") or None,
    }


def _collateral_to_wire(row: Collateral) -> CollateralWire:
    wire = _row_base_to_wire(row)
    wire["tokenId"] = encode_hex_value(row.token_id)
    return wire


def _collateral_from_wire(data: Mapping[str, Any]) -> Collateral:
    name = StrategyLeafType.COLLATERAL.name
    return Collateral(
        token_id=decode_hex_value(_require(data, "tokenId", name)),
        **_row_base_from_wire(data, name),
    )


def _collection_to_wire(row: Collection) -> CollectionWire:
    return _row_base_to_wire(row)


def _collection_from_wire(data: Mapping[str, Any]) -> Collection:
    if data.get("tokenId") is not None:
        logger.warning("Ignoring tokenId on Collection leaf for token %s", data.get("token"))
    return Collection(**_row_base_from_wire(data, StrategyLeafType.COLLECTION.name))


def _univ3_to_wire(row: UniV3Collateral) -> UniV3CollateralWire:
    wire = _row_base_to_wire(row)
    wire["token0"] = row.token0
    wire["token1"] = row.token1
    for attr, key, abi_type in UNIV3_FIELDS:
        wire[key] = encode_hex_value(getattr(row, attr), abi_type)
    return wire


def _univ3_from_wire(data: Mapping[str, Any]) -> UniV3Collateral:
    name = StrategyLeafType.UNIV3_COLLATERAL.name
    fields = _row_base_from_wire(data, name)
    fields["token0"] = _require(data, "token0", name)
    fields["token1"] = _require(data, "token1", name)
    for attr, key, abi_type in UNIV3_FIELDS:
        fields[attr] = decode_hex_value(_require(data, key, name), abi_type)
    return UniV3Collateral(**fields)


_ROW_ENCODERS: Dict[StrategyLeafType, Callable[[Any], WireRow]] = {
    StrategyLeafType.COLLATERAL: _collateral_to_wire,
    StrategyLeafType.COLLECTION: _collection_to_wire,
    StrategyLeafType.UNIV3_COLLATERAL: _univ3_to_wire,
}

_ROW_DECODERS: Dict[StrategyLeafType, Callable[[Mapping[str, Any]], StrategyLeaf]] = {
    StrategyLeafType.COLLATERAL: _collateral_from_wire,
    StrategyLeafType.COLLECTION: _collection_from_wire,
    StrategyLeafType.UNIV3_COLLATERAL: _univ3_from_wire,
}


def to_wire_payload(row: StrategyLeaf) -> WireRow:
    """Convert a collateral-bearing leaf to its wire form.

    Args:
        row: Collateral, Collection or UniV3Collateral leaf

    Returns:
        JSON-ready dict with every number as a tagged hex value
    """
    encoder = _ROW_ENCODERS.get(getattr(row, "type", None))
    if encoder is None:
        raise TypeError(f"Not a strategy row: {row!r}")
    return encoder(row)


def from_wire_payload(data: Mapping[str, Any]) -> StrategyLeaf:
    """Convert a wire leaf back to its native form.

    Args:
        data: Wire row as produced by ``to_wire_payload``

    Returns:
        The matching Collateral, Collection or UniV3Collateral leaf

    Raises:
        DecodeError: If the type tag is unknown or a value is malformed
        MissingRequiredField: If a field required by the type is absent
    """
    if not isinstance(data, Mapping):
        raise DecodeError(f"Expected leaf object, got {data!r}")
    leaf_type = parse_leaf_type(data.get("type"))
    decoder = _ROW_DECODERS.get(leaf_type)
    if decoder is None:
        raise DecodeError(f"{leaf_type.name} is not a collateral-bearing leaf")
    try:
        row = decoder(data)
    except InvalidFieldValue as e:
        raise DecodeError(str(e)) from e
    logger.debug("Decoded %s leaf for token %s", leaf_type.name, row.token)
    return row


def strategy_to_wire(strategy: Strategy) -> StrategyWire:
    """Convert the configuration leaf to its wire form."""
    return {
        "type": int(strategy.type),
        "version": strategy.version,
        "delegate": strategy.delegate,
        "expiration": encode_hex_value(strategy.expiration),
        "nonce": encode_hex_value(strategy.nonce),
        "vault": strategy.vault,
    }


def strategy_from_wire(data: Mapping[str, Any]) -> Strategy:
    """Convert a wire configuration leaf back to a ``Strategy``.

    Raises:
        DecodeError: If the tag is not STRATEGY or a value is malformed
        MissingRequiredField: If a field is absent
    """
    if not isinstance(data, Mapping):
        raise DecodeError(f"Expected strategy object, got {data!r}")
    name = StrategyLeafType.STRATEGY.name
    if parse_leaf_type(data.get("type", 0)) is not StrategyLeafType.STRATEGY:
        raise DecodeError(f"Expected a STRATEGY leaf, got type {data.get('type')!r}")
    try:
        return Strategy(
            version=_require(data, "version", name),
            delegate=_require(data, "delegate", name),
            expiration=decode_hex_value(_require(data, "expiration", name)),
            nonce=decode_hex_value(_require(data, "nonce", name)),
            vault=_require(data, "vault", name),
        )
    except InvalidFieldValue as e:
        raise DecodeError(str(e)) from e
