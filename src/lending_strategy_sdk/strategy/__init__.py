"""Strategy Leaves Module.

This module provides the data model for the leaves of a lending strategy
Merkle tree and the EIP-712 envelope that authorizes its root.

Key components:
- Leaf types (Strategy, Collateral, Collection, UniV3Collateral) and Lien
- Native <-> wire conversion with tagged hex numbers
- Leaf hashing and leaf placement checks
- StrategyDetails signing and the stored JSON payload

Example usage:
    ```python
    from lending_strategy_sdk.strategy import (
        Collection,
        Lien,
        ZERO_ADDRESS,
        build_json_payload,
        create_typed_data,
        sign_strategy,
        with_leaf,
    )

    row = with_leaf(Collection(
        token="0x...",
        borrower=ZERO_ADDRESS,  # any borrower
        lien=Lien(
            amount=10**18,
            rate=1,
            duration=86400,
            max_potential_debt=0,
            liquidation_initial_ask=2 * 10**18,
        ),
    ))

    # The Merkle root over the leaves is computed elsewhere
    typed_data = create_typed_data(
        nonce=1,
        deadline=1700000000,
        root=root,
        verifying_contract="0x...",
        chain_id=1,
    )
    signature = sign_strategy("0x...", typed_data)
    payload = build_json_payload([row], signature).to_json()
    ```
"""

from .errors import (
    StrategyError,
    DecodeError,
    MissingRequiredField,
    InvalidFieldValue,
    InvalidLeafPlacement,
    SignatureInconsistency,
)
from .types import (
    StrategyLeafType,
    Lien,
    StrategyRow,
    Collateral,
    Collection,
    UniV3Collateral,
    StrategyLeaf,
    Strategy,
    HexValue,
    LienWire,
    CollateralWire,
    CollectionWire,
    UniV3CollateralWire,
    WireRow,
    StrategyWire,
)
from .encoding import (
    parse_leaf_type,
    encode_hex_value,
    decode_hex_value,
    lien_to_wire,
    lien_from_wire,
    to_wire_payload,
    from_wire_payload,
    strategy_to_wire,
    strategy_from_wire,
)
from .leaf import compute_leaf, with_leaf, validate_leaf_order
from .signing import (
    STRATEGY_DETAILS_TYPES,
    SigningConfig,
    ResolvedSigningConfig,
    resolve_signing_config,
    create_strategy,
    create_eip712_domain,
    TypedData,
    create_typed_data,
    create_strategy_typed_data,
    UserSignature,
    split_signature,
    sign_strategy,
    sign_strategy_with_signer,
    TypedDataSigner,
    JsonPayload,
    build_json_payload,
)
from .utils import (
    ZERO_ADDRESS,
    WAD,
    is_zero_address,
    format_wad,
    parse_wad,
    annual_rate_to_per_second,
    per_second_rate_to_annual,
)

__all__ = [
    # Errors
    "StrategyError",
    "DecodeError",
    "MissingRequiredField",
    "InvalidFieldValue",
    "InvalidLeafPlacement",
    "SignatureInconsistency",
    # Types
    "StrategyLeafType",
    "Lien",
    "StrategyRow",
    "Collateral",
    "Collection",
    "UniV3Collateral",
    "StrategyLeaf",
    "Strategy",
    "HexValue",
    "LienWire",
    "CollateralWire",
    "CollectionWire",
    "UniV3CollateralWire",
    "WireRow",
    "StrategyWire",
    # Encoding
    "parse_leaf_type",
    "encode_hex_value",
    "decode_hex_value",
    "lien_to_wire",
    "lien_from_wire",
    "to_wire_payload",
    "from_wire_payload",
    "strategy_to_wire",
    "strategy_from_wire",
    # Leaves
    "compute_leaf",
    "with_leaf",
    "validate_leaf_order",
    # Signing
    "STRATEGY_DETAILS_TYPES",
    "SigningConfig",
    "ResolvedSigningConfig",
    "resolve_signing_config",
    "create_strategy",
    "create_eip712_domain",
    "TypedData",
    "create_typed_data",
    "create_strategy_typed_data",
    "UserSignature",
    "split_signature",
    "sign_strategy",
    "sign_strategy_with_signer",
    "TypedDataSigner",
    "JsonPayload",
    "build_json_payload",
    # Utils
    "ZERO_ADDRESS",
    "WAD",
    "is_zero_address",
    "format_wad",
    "parse_wad",
    "annual_rate_to_per_second",
    "per_second_rate_to_annual",
]
