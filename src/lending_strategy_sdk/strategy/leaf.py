"""Leaf hashing and leaf placement.

A row received from a signed tree always carries its leaf hash. A freshly
built row does not, and the holder fills it with ``with_leaf`` before the row
is inserted into a tree. An existing leaf is never recomputed.
"""

import dataclasses
import logging
from typing import Any, Callable, Dict, List, Sequence, Tuple, Union

from eth_abi import encode
from eth_utils import keccak

from .errors import InvalidLeafPlacement
from .types import (
    LIEN_FIELDS,
    UNIV3_FIELDS,
    Collateral,
    Collection,
    Lien,
    Strategy,
    StrategyLeaf,
    StrategyLeafType,
    UniV3Collateral,
)

logger = logging.getLogger(__name__)

Encoded = Tuple[List[str], List[Any]]


def _lien_encoding(lien: Lien) -> Encoded:
    return (
        [abi_type for _, _, abi_type in LIEN_FIELDS],
        [getattr(lien, attr) for attr, _, _ in LIEN_FIELDS],
    )


def _collateral_encoding(row: Collateral) -> Encoded:
    lien_types, lien_values = _lien_encoding(row.lien)
    return (
        ["uint8", "address", "uint256", "address"] + lien_types,
        [int(row.type), row.token, row.token_id, row.borrower] + lien_values,
    )


def _collection_encoding(row: Collection) -> Encoded:
    lien_types, lien_values = _lien_encoding(row.lien)
    return (
        ["uint8", "address", "address"] + lien_types,
        [int(row.type), row.token, row.borrower] + lien_values,
    )


def _univ3_encoding(row: UniV3Collateral) -> Encoded:
    lien_types, lien_values = _lien_encoding(row.lien)
    return (
        ["uint8", "address", "address", "address", "address"]
        + [abi_type for _, _, abi_type in UNIV3_FIELDS]
        + lien_types,
        [int(row.type), row.token, row.borrower, row.token0, row.token1]
        + [getattr(row, attr) for attr, _, _ in UNIV3_FIELDS]
        + lien_values,
    )


_LEAF_ENCODINGS: Dict[StrategyLeafType, Callable[[Any], Encoded]] = {
    StrategyLeafType.COLLATERAL: _collateral_encoding,
    StrategyLeafType.COLLECTION: _collection_encoding,
    StrategyLeafType.UNIV3_COLLATERAL: _univ3_encoding,
}


def compute_leaf(row: StrategyLeaf) -> str:
    """Hash a row into its Merkle leaf.

    The leaf is keccak256 over the ABI encoding of the type tag, the
    variant's fields and the nested lien.

    Args:
        row: Collateral, Collection or UniV3Collateral leaf

    Returns:
        bytes32 hex string
    """
    encoding = _LEAF_ENCODINGS.get(getattr(row, "type", None))
    if encoding is None:
        raise TypeError(f"Not a strategy row: {row!r}")
    types, values = encoding(row)
    return "0x" + keccak(encode(types, values)).hex()


def with_leaf(row: StrategyLeaf) -> StrategyLeaf:
    """Return ``row`` with its leaf filled in.

    Rows that already carry a leaf are returned as-is.
    """
    if row.leaf is not None:
        return row
    leaf = compute_leaf(row)
    logger.debug("Computed %s leaf %s", row.type.name, leaf)
    return dataclasses.replace(row, leaf=leaf)


def validate_leaf_order(leaves: Sequence[Union[Strategy, StrategyLeaf]]) -> None:
    """Check that a Strategy leaf only appears at index 0.

    Args:
        leaves: Leaf sequence in tree order

    Raises:
        InvalidLeafPlacement: If a Strategy leaf is found at any other index
    """
    for index, leaf in enumerate(leaves):
        if index > 0 and leaf.type is StrategyLeafType.STRATEGY:
            raise InvalidLeafPlacement(
                f"Strategy leaf found at index {index}, only index 0 is allowed"
            )
