"""Errors raised by the strategy data model.

Every error is a ``ValueError`` so callers that already guard input
validation with ``except ValueError`` keep working.
"""


class StrategyError(ValueError):
    """Base class for strategy leaf errors."""


class DecodeError(StrategyError):
    """Malformed or out-of-range wire data."""


class MissingRequiredField(StrategyError):
    """A field required by the leaf's declared type is absent."""

    def __init__(self, field: str, leaf_type: str):
        super().__init__(f"Missing required field '{field}' for {leaf_type}")
        self.field = field
        self.leaf_type = leaf_type


class InvalidFieldValue(StrategyError):
    """A field is present but holds a value its type does not allow."""


class InvalidLeafPlacement(StrategyError):
    """A Strategy leaf appears outside index 0."""


class SignatureInconsistency(StrategyError):
    """Redundant signature fields disagree with r, s and v."""
