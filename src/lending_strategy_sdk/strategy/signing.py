"""Strategy root signing.

Builds the EIP-712 ``StrategyDetails`` request a strategist signs to authorize
a Merkle root, decomposes the returned signature, and assembles the JSON
payload that is stored next to the tree.

Signing works with various wallet types:
- eth_account (direct signing with a private key)
- any async TypedDataSigner (browser wallet, remote signer, ...)
"""

import copy
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple, TypedDict, Union

from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_utils import decode_hex

from .encoding import from_wire_payload, to_wire_payload
from .errors import DecodeError, InvalidFieldValue, MissingRequiredField, SignatureInconsistency
from .leaf import with_leaf
from .types import Strategy, StrategyLeaf, WireRow
from .utils import ZERO_ADDRESS, is_sized_hex, normalize_address

logger = logging.getLogger(__name__)

# Deadline bounds
MIN_DEADLINE_SECONDS = 60  # 1 minute

PRIMARY_TYPE = "StrategyDetails"

SECP256K1_HALF_ORDER_BIT = 1 << 255


class TypedDataField(TypedDict):
    name: str
    type: str


class StrategyDomain(TypedDict):
    """EIP-712 domain separator. The verifying contract has no ``name`` field."""

    version: str
    chainId: int
    verifyingContract: str


class StrategyDetailsMessage(TypedDict):
    nonce: str
    deadline: str
    root: str


# EIP-712 types for strategy details. Field order is part of the type hash.
STRATEGY_DETAILS_TYPES: Dict[str, List[TypedDataField]] = {
    "EIP712Domain": [
        {"name": "version", "type": "string"},
        {"name": "chainId", "type": "uint256"},
        {"name": "verifyingContract", "type": "address"},
    ],
    "StrategyDetails": [
        {"name": "nonce", "type": "uint256"},
        {"name": "deadline", "type": "uint256"},
        {"name": "root", "type": "bytes32"},
    ],
}


class SigningConfig(TypedDict, total=False):
    """Signing configuration."""

    chain_id: int
    """Chain ID. Default: 1 (Ethereum mainnet)"""

    verifying_contract: str
    """Address of the contract that verifies strategy signatures. Required."""

    version: str
    """EIP-712 domain version. Default: "0" """

    deadline_seconds: int
    """Strategy lifetime used by ``create_strategy``. Default: 3600 (1 hour)"""


@dataclass
class ResolvedSigningConfig:
    """Resolved signing configuration with all defaults applied."""

    chain_id: int
    verifying_contract: str
    version: str
    deadline_seconds: int


def resolve_signing_config(config: Optional[SigningConfig] = None) -> ResolvedSigningConfig:
    """Apply defaults to a signing configuration.

    Raises:
        ValueError: If the verifying contract is missing or invalid
    """
    config = config or {}
    if "verifying_contract" not in config:
        raise ValueError("verifying_contract is required")
    return ResolvedSigningConfig(
        chain_id=config.get("chain_id", 1),
        verifying_contract=normalize_address(
            config["verifying_contract"], "verifying_contract"
        ),
        version=config.get("version", "0"),
        deadline_seconds=config.get("deadline_seconds", 3600),
    )


def create_strategy(
    delegate: str,
    nonce: int,
    vault: str = ZERO_ADDRESS,
    deadline_seconds: int = 3600,
) -> Strategy:
    """Create a configuration leaf expiring ``deadline_seconds`` from now.

    Args:
        delegate: EOA allowed to sign strategy roots for the vault
        nonce: Current on-chain nonce of the vault (0 for a new vault)
        vault: Vault address, or ZERO_ADDRESS to open a new vault
        deadline_seconds: Seconds from now until the strategy expires

    Raises:
        ValueError: If the deadline is too short or an address is invalid
    """
    if deadline_seconds < MIN_DEADLINE_SECONDS:
        raise ValueError(
            f"Deadline too short: {deadline_seconds}s. Minimum: {MIN_DEADLINE_SECONDS}s"
        )
    return Strategy(
        delegate=delegate,
        expiration=int(time.time()) + deadline_seconds,
        nonce=nonce,
        vault=vault,
    )


def _check_hex(value: Any, name: str, size: int = 32) -> str:
    if not is_sized_hex(value, size):
        raise InvalidFieldValue(f"{name} must be a {size}-byte hex string, got {value!r}")
    return value.lower()


def create_eip712_domain(
    verifying_contract: str, chain_id: int = 1, version: str = "0"
) -> StrategyDomain:
    """Create the EIP-712 domain for the verifying contract.

    Raises:
        ValueError: If the verifying contract address is invalid
    """
    return {
        "version": version,
        "chainId": chain_id,
        "verifyingContract": normalize_address(verifying_contract, "verifying_contract"),
    }


@dataclass(frozen=True)
class TypedData:
    """EIP-712 request for a strategy root.

    Frozen but not hashable: ``domain``, ``message`` and ``types`` are dicts.
    """

    domain: StrategyDomain
    message: StrategyDetailsMessage
    primary_type: str = PRIMARY_TYPE
    types: Dict[str, List[TypedDataField]] = field(
        default_factory=lambda: copy.deepcopy(STRATEGY_DETAILS_TYPES)
    )

    @property
    def root(self) -> str:
        return self.message["root"]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "types": copy.deepcopy(self.types),
            "primaryType": self.primary_type,
            "domain": dict(self.domain),
            "message": dict(self.message),
        }

    def signable(self) -> Dict[str, Any]:
        """Full message for ``encode_typed_data`` with numbers as ints."""
        data = self.to_dict()
        data["message"]["nonce"] = int(self.message["nonce"])
        data["message"]["deadline"] = int(self.message["deadline"])
        data["message"]["root"] = decode_hex(self.message["root"])
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TypedData":
        """Parse a typed data object.

        Raises:
            DecodeError: If the declared types or primary type differ from
                the StrategyDetails declarations, or a value is malformed
        """
        if not isinstance(data, Mapping):
            raise DecodeError(f"Expected typed data object, got {data!r}")
        if data.get("types") != STRATEGY_DETAILS_TYPES:
            raise DecodeError("Typed data types do not match StrategyDetails")
        if data.get("primaryType") != PRIMARY_TYPE:
            raise DecodeError(f"Unexpected primaryType: {data.get('primaryType')!r}")
        domain, message = data.get("domain"), data.get("message")
        if not isinstance(domain, Mapping) or not isinstance(message, Mapping):
            raise DecodeError("Typed data is missing domain or message")
        try:
            return create_typed_data(
                nonce=int(message["nonce"]),
                deadline=int(message["deadline"]),
                root=message["root"],
                verifying_contract=domain["verifyingContract"],
                chain_id=int(domain["chainId"]),
                version=domain["version"],
            )
        except KeyError as e:
            raise DecodeError(f"Typed data is missing {e.args[0]}") from None
        except (TypeError, ValueError) as e:
            raise DecodeError(f"Invalid typed data: {e}") from e


def create_typed_data(
    nonce: int,
    deadline: int,
    root: str,
    verifying_contract: str,
    chain_id: int = 1,
    version: str = "0",
) -> TypedData:
    """Create the StrategyDetails request for a Merkle root.

    Args:
        nonce: Strategy nonce (must be above the vault's on-chain nonce)
        deadline: Timestamp after which the signature is void
        root: Merkle root over the wire-encoded leaves (bytes32 hex string)
        verifying_contract: Address of the verifying contract
        chain_id: Chain ID (default: 1)
        version: Domain version (default: "0")

    Returns:
        TypedData ready to be signed
    """
    if nonce < 0 or deadline < 0:
        raise InvalidFieldValue("nonce and deadline must be non-negative")
    return TypedData(
        domain=create_eip712_domain(verifying_contract, chain_id, version),
        message={
            "nonce": str(nonce),
            "deadline": str(deadline),
            "root": _check_hex(root, "root"),
        },
    )


def create_strategy_typed_data(
    strategy: Strategy, root: str, config: SigningConfig
) -> TypedData:
    """Create the StrategyDetails request for a strategy and its Merkle root.

    The strategy's nonce and expiration become the message nonce and deadline.
    """
    resolved = resolve_signing_config(config)
    return create_typed_data(
        nonce=strategy.nonce,
        deadline=strategy.expiration,
        root=root,
        verifying_contract=resolved.verifying_contract,
        chain_id=resolved.chain_id,
        version=resolved.version,
    )


def _hex32(value: int) -> str:
    return "0x" + value.to_bytes(32, "big").hex()


@dataclass(frozen=True)
class UserSignature:
    """Decomposed ECDSA signature over a TypedData request.

    ``y_parity_and_s``, ``vs`` and ``compact`` are redundant encodings of
    ``r``, ``s`` and ``v`` (EIP-2098), kept so any consumer can rebuild the
    signature form it needs.

    Not hashable, since ``typed_data`` holds dicts.
    """

    r: str
    s: str
    v: int
    y_parity_and_s: str
    vs: str
    recovery_param: int
    compact: str
    typed_data: TypedData

    @property
    def serialized(self) -> str:
        """65-byte ``r || s || v`` signature hex."""
        return self.r + self.s[2:] + format(self.v, "02x")

    def validate(self) -> "UserSignature":
        """Check that the redundant fields agree with ``r``, ``s`` and ``v``.

        Raises:
            SignatureInconsistency: On any mismatch
        """
        if self.v not in (27, 28):
            raise SignatureInconsistency(f"v must be 27 or 28, got {self.v}")
        try:
            expected = split_signature(self.serialized, self.typed_data)
        except DecodeError as e:
            raise SignatureInconsistency(str(e)) from e
        for attr in ("y_parity_and_s", "vs", "compact"):
            if getattr(self, attr).lower() != getattr(expected, attr):
                raise SignatureInconsistency(f"{attr} does not match r, s and v")
        if self.recovery_param != expected.recovery_param:
            raise SignatureInconsistency("recovery_param does not match v")
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "r": self.r,
            "s": self.s,
            "v": self.v,
            "_vs": self.vs,
            "yParityAndS": self.y_parity_and_s,
            "recoveryParam": self.recovery_param,
            "compact": self.compact,
            "typedData": self.typed_data.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "UserSignature":
        """Parse a signature object.

        Raises:
            DecodeError: If a field is malformed
            MissingRequiredField: If a field is absent
        """
        if not isinstance(data, Mapping):
            raise DecodeError(f"Expected signature object, got {data!r}")
        for key in ("r", "s", "v", "_vs", "yParityAndS", "recoveryParam", "compact", "typedData"):
            if key not in data:
                raise MissingRequiredField(key, "signature")
        try:
            return cls(
                r=_check_hex(data["r"], "r"),
                s=_check_hex(data["s"], "s"),
                v=int(data["v"]),
                y_parity_and_s=_check_hex(data["yParityAndS"], "yParityAndS"),
                vs=_check_hex(data["_vs"], "_vs"),
                recovery_param=int(data["recoveryParam"]),
                compact=_check_hex(data["compact"], "compact", 64),
                typed_data=TypedData.from_dict(data["typedData"]),
            )
        except DecodeError:
            raise
        except (TypeError, ValueError) as e:
            raise DecodeError(f"Invalid signature: {e}") from e


def split_signature(signature: Union[str, bytes], typed_data: TypedData) -> UserSignature:
    """Decompose a 65-byte or 64-byte (EIP-2098 compact) signature.

    Args:
        signature: Signature bytes or hex string
        typed_data: The request the signature was produced over

    Returns:
        UserSignature with every redundant field derived

    Raises:
        DecodeError: If the signature is not hex or its length or ``v`` is invalid
    """
    try:
        raw = decode_hex(signature) if isinstance(signature, str) else bytes(signature)
    except (TypeError, ValueError) as e:
        raise DecodeError(f"Malformed signature: {signature!r}") from e

    if len(raw) == 64:
        r = int.from_bytes(raw[:32], "big")
        y_parity_and_s = int.from_bytes(raw[32:], "big")
        recovery_param = y_parity_and_s >> 255
        s = y_parity_and_s & (SECP256K1_HALF_ORDER_BIT - 1)
        v = 27 + recovery_param
    elif len(raw) == 65:
        r = int.from_bytes(raw[:32], "big")
        s = int.from_bytes(raw[32:64], "big")
        v = raw[64]
        if v in (0, 1):
            v += 27
        if v not in (27, 28):
            raise DecodeError(f"Invalid signature v: {raw[64]}")
        if s & SECP256K1_HALF_ORDER_BIT:
            raise DecodeError("Invalid signature s: top bit set")
        recovery_param = 1 - (v % 2)
        y_parity_and_s = s | (recovery_param << 255)
    else:
        raise DecodeError(f"Invalid signature length: {len(raw)} bytes")

    vs = _hex32(y_parity_and_s)
    return UserSignature(
        r=_hex32(r),
        s=_hex32(s),
        v=v,
        y_parity_and_s=vs,
        vs=vs,
        recovery_param=recovery_param,
        compact=_hex32(r) + vs[2:],
        typed_data=typed_data,
    )


def sign_strategy(private_key: str, typed_data: TypedData) -> UserSignature:
    """Sign a StrategyDetails request with EIP-712 using a private key.

    Args:
        private_key: Private key (hex string with or without 0x prefix)
        typed_data: Request built by ``create_typed_data``

    Returns:
        UserSignature over ``typed_data``
    """
    account = Account.from_key(private_key)
    signable_message = encode_typed_data(full_message=typed_data.signable())
    signed_message = account.sign_message(signable_message)
    logger.debug("Signed strategy root %s as %s", typed_data.root, account.address)
    return split_signature(bytes(signed_message.signature), typed_data)


class TypedDataSigner(Protocol):
    """Protocol for signers that can sign EIP-712 typed data."""

    async def get_address(self) -> str:
        """Get the signer's address."""
        ...

    async def sign_typed_data(self, params: Dict[str, Any]) -> str:
        """Sign EIP-712 typed data.

        Args:
            params: Dict with domain, types, primaryType, and message

        Returns:
            Signature as hex string
        """
        ...


async def sign_strategy_with_signer(
    signer: TypedDataSigner, typed_data: TypedData
) -> UserSignature:
    """Sign a StrategyDetails request using any compatible signer.

    Use this with wallets that implement the TypedDataSigner protocol.
    """
    signature = await signer.sign_typed_data(
        {
            "domain": dict(typed_data.domain),
            "types": {PRIMARY_TYPE: copy.deepcopy(typed_data.types[PRIMARY_TYPE])},
            "primaryType": typed_data.primary_type,
            "message": dict(typed_data.message),
        }
    )
    logger.debug("Signer returned signature for root %s", typed_data.root)
    return split_signature(signature, typed_data)


@dataclass(frozen=True)
class JsonPayload:
    """Signed leaves as persisted next to the tree (e.g. on IPFS).

    Leaves stay in their wire form. Not hashable.
    """

    leaves: Tuple[WireRow, ...]
    signature: UserSignature

    def decode_leaves(self) -> List[StrategyLeaf]:
        """Convert the wire leaves back to native rows."""
        return [from_wire_payload(leaf) for leaf in self.leaves]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "data": {
                "leaves": [copy.deepcopy(leaf) for leaf in self.leaves],
                "signature": self.signature.to_dict(),
            }
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "JsonPayload":
        """Parse a stored payload.

        Every leaf is validated by decoding it, but kept exactly as stored so
        the sequence still matches the signed root.

        Raises:
            DecodeError: If the payload, a leaf or the signature is malformed
            MissingRequiredField: If a required field is absent
        """
        data = payload.get("data") if isinstance(payload, Mapping) else None
        if not isinstance(data, Mapping):
            raise DecodeError("Payload has no data object")
        leaves = data.get("leaves")
        if not isinstance(leaves, list):
            raise DecodeError("Payload data has no leaves list")
        if "signature" not in data:
            raise MissingRequiredField("signature", "payload")
        for leaf in leaves:
            from_wire_payload(leaf)
        return cls(
            leaves=tuple(copy.deepcopy(leaf) for leaf in leaves),
            signature=UserSignature.from_dict(data["signature"]),
        )

    @classmethod
    def from_json(cls, text: str) -> "JsonPayload":
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as e:
            raise DecodeError(f"Invalid JSON payload: {e}") from e
        return cls.from_dict(payload)


def build_json_payload(rows: Sequence[StrategyLeaf], signature: UserSignature) -> JsonPayload:
    """Assemble the payload for a signed tree.

    Rows without a leaf get one computed first.

    Args:
        rows: Collateral-bearing leaves in tree order
        signature: Signature over the tree's root

    Returns:
        JsonPayload with the rows in wire form
    """
    leaves = tuple(to_wire_payload(with_leaf(row)) for row in rows)
    logger.debug("Built payload with %d leaves for root %s", len(leaves), signature.typed_data.root)
    return JsonPayload(leaves=leaves, signature=signature)
