"""Strategy leaf types.

Native (in-memory) leaf values plus the TypedDict shapes of their wire form.
Native values hold plain ``int`` fields; the wire form carries the same numbers
as tagged hex strings (see ``encoding.py``).
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import ClassVar, Dict, List, Optional, Tuple, TypedDict, Union

from .errors import InvalidFieldValue, MissingRequiredField
from .utils import ZERO_ADDRESS, is_sized_hex, is_zero_address, normalize_address


class StrategyLeafType(IntEnum):
    """Leaf format tag. Codes are part of the wire format and never reassigned."""

    STRATEGY = 0
    COLLATERAL = 1
    COLLECTION = 2
    UNIV3_COLLATERAL = 3


def _int_bounds(abi_type: str) -> Tuple[int, int]:
    if abi_type.startswith("uint"):
        return 0, 2 ** int(abi_type[4:]) - 1
    bits = int(abi_type[3:])
    return -(2 ** (bits - 1)), 2 ** (bits - 1) - 1


def check_int(value: int, field: str, abi_type: str = "uint256") -> int:
    """Check that ``value`` is an int that fits ``abi_type``.

    Raises:
        InvalidFieldValue: If the value is not an int or is out of range
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidFieldValue(f"{field} must be an integer, got {value!r}")
    low, high = _int_bounds(abi_type)
    if not low <= value <= high:
        raise InvalidFieldValue(f"{field}={value} is out of range for {abi_type}")
    return value


def _check_address(obj, attr: str) -> None:
    # frozen dataclasses need object.__setattr__ to store the normalised value
    try:
        object.__setattr__(obj, attr, normalize_address(getattr(obj, attr), attr))
    except ValueError as e:
        raise InvalidFieldValue(str(e)) from e


def _check_leaf(leaf: Optional[str]) -> None:
    if leaf is None:
        return
    if not is_sized_hex(leaf):
        raise InvalidFieldValue(f"leaf must be a 32-byte hex string, got {leaf!r}")


# (attribute, wire key, abi type) for each lien field, in encoding order
LIEN_FIELDS: List[Tuple[str, str, str]] = [
    ("amount", "amount", "uint256"),
    ("rate", "rate", "uint256"),
    ("duration", "duration", "uint256"),
    ("max_potential_debt", "maxPotentialDebt", "uint256"),
    ("liquidation_initial_ask", "liquidationInitialAsk", "uint256"),
]

# (attribute, wire key, abi type) for the pool fields of a UniV3Collateral row
UNIV3_FIELDS: List[Tuple[str, str, str]] = [
    ("fee", "fee", "uint24"),
    ("tick_lower", "tickLower", "int24"),
    ("tick_upper", "tickUpper", "int24"),
    ("min_liquidity", "minLiquidity", "uint128"),
    ("amount0_min", "amount0Min", "uint256"),
    ("amount1_min", "amount1Min", "uint256"),
]


@dataclass(frozen=True)
class Lien:
    """Loan terms nested in a collateral-bearing leaf.

    A lien is never a leaf on its own, so it carries no type tag.
    """

    amount: int
    """Principal the borrower can take, scaled by 10**18."""

    rate: int
    """Interest accrued per second, scaled by 10**18."""

    duration: int
    """Maximum life of the lien before it must be refinanced, in seconds."""

    max_potential_debt: int
    """Upper bound of all more senior liens at maturity. Zero means most senior."""

    liquidation_initial_ask: int
    """Starting price of the liquidation dutch auction."""

    def __post_init__(self) -> None:
        for attr, _, abi_type in LIEN_FIELDS:
            check_int(getattr(self, attr), attr, abi_type)

    @property
    def is_most_senior(self) -> bool:
        return self.max_potential_debt == 0


@dataclass(frozen=True)
class StrategyRow:
    """Fields shared by every collateral-bearing leaf.

    Use one of the concrete variants; ``type`` selects which one.
    """

    type: ClassVar[StrategyLeafType]

    token: str
    """Address of the collection (or position manager) contract."""

    borrower: str
    """Address allowed to commit to the lien. ZERO_ADDRESS means any borrower."""

    lien: Lien
    """Loan terms."""

    def __post_init__(self) -> None:
        if not hasattr(type(self), "type"):
            raise TypeError("StrategyRow is abstract, use a concrete leaf type")
        _check_address(self, "token")
        _check_address(self, "borrower")
        if not isinstance(self.lien, Lien):
            raise InvalidFieldValue(f"lien must be a Lien, got {self.lien!r}")

    @property
    def is_any_borrower(self) -> bool:
        return is_zero_address(self.borrower)


@dataclass(frozen=True)
class Collateral(StrategyRow):
    """A lien against one specific token of a collection."""

    type: ClassVar[StrategyLeafType] = StrategyLeafType.COLLATERAL

    token_id: Optional[int] = None
    """Token ID inside the collection. Required."""

    leaf: Optional[str] = None
    """Leaf hash. Empty until first computed, never recomputed afterwards."""

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.token_id is None:
            raise MissingRequiredField("token_id", self.type.name)
        check_int(self.token_id, "token_id")
        _check_leaf(self.leaf)


@dataclass(frozen=True)
class Collection(StrategyRow):
    """A lien against any token of a collection."""

    type: ClassVar[StrategyLeafType] = StrategyLeafType.COLLECTION

    leaf: Optional[str] = None

    def __post_init__(self) -> None:
        super().__post_init__()
        _check_leaf(self.leaf)


@dataclass(frozen=True)
class UniV3Collateral(StrategyRow):
    """A lien against a Uniswap V3 liquidity position."""

    type: ClassVar[StrategyLeafType] = StrategyLeafType.UNIV3_COLLATERAL

    token0: Optional[str] = None
    token1: Optional[str] = None
    fee: Optional[int] = None
    tick_lower: Optional[int] = None
    tick_upper: Optional[int] = None
    min_liquidity: Optional[int] = None
    amount0_min: Optional[int] = None
    amount1_min: Optional[int] = None
    leaf: Optional[str] = None

    def __post_init__(self) -> None:
        super().__post_init__()
        for attr in ("token0", "token1"):
            if getattr(self, attr) is None:
                raise MissingRequiredField(attr, self.type.name)
            _check_address(self, attr)
        for attr, _, abi_type in UNIV3_FIELDS:
            if getattr(self, attr) is None:
                raise MissingRequiredField(attr, self.type.name)
            check_int(getattr(self, attr), attr, abi_type)
        if self.tick_lower >= self.tick_upper:
            raise InvalidFieldValue(
                f"tick_lower ({self.tick_lower}) must be below tick_upper ({self.tick_upper})"
            )
        _check_leaf(self.leaf)


StrategyLeaf = Union[Collateral, Collection, UniV3Collateral]
"""Closed union of collateral-bearing leaves, discriminated by ``type``."""

ROW_TYPES: Dict[StrategyLeafType, type] = {
    StrategyLeafType.COLLATERAL: Collateral,
    StrategyLeafType.COLLECTION: Collection,
    StrategyLeafType.UNIV3_COLLATERAL: UniV3Collateral,
}


@dataclass(frozen=True)
class Strategy:
    """Configuration leaf. Only valid at index 0 of a leaf sequence.

    The delegate can only be reassigned by an on-chain transaction, so the
    value is frozen like every other leaf.
    """

    type: ClassVar[StrategyLeafType] = StrategyLeafType.STRATEGY

    delegate: str
    """EOA allowed to sign new strategy roots for the vault."""

    expiration: int
    """Timestamp after which the strategy is no longer valid."""

    nonce: int
    """On-chain nonce. Strategies signed at or below the current nonce are void."""

    vault: str = ZERO_ADDRESS
    """Vault address. ZERO_ADDRESS means this tree opens a new vault."""

    version: int = 0
    """Strategy format version."""

    def __post_init__(self) -> None:
        _check_address(self, "delegate")
        _check_address(self, "vault")
        check_int(self.expiration, "expiration")
        check_int(self.nonce, "nonce")
        check_int(self.version, "version", "uint8")

    @property
    def opens_new_vault(self) -> bool:
        return is_zero_address(self.vault)


# Wire form


class HexValue(TypedDict):
    """Tagged hex number: ``{"hex": "0x...", "type": "uint256"}``."""

    hex: str
    type: str


class LienWire(TypedDict):
    amount: HexValue
    rate: HexValue
    duration: HexValue
    maxPotentialDebt: HexValue
    liquidationInitialAsk: HexValue


class _StrategyRowWireBase(TypedDict):
    type: int
    token: str
    borrower: str
    lien: LienWire


class StrategyRowWire(_StrategyRowWireBase, total=False):
    leaf: str


class CollateralWire(StrategyRowWire):
    tokenId: HexValue


class CollectionWire(StrategyRowWire):
    pass


class UniV3CollateralWire(StrategyRowWire):
    token0: str
    token1: str
    fee: HexValue
    tickLower: HexValue
    tickUpper: HexValue
    minLiquidity: HexValue
    amount0Min: HexValue
    amount1Min: HexValue


WireRow = Union[CollateralWire, CollectionWire, UniV3CollateralWire]


class StrategyWire(TypedDict):
    type: int
    version: int
    delegate: str
    expiration: HexValue
    nonce: HexValue
    vault: str
