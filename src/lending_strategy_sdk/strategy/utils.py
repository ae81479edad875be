"""Utility constants and helpers for strategy leaves."""

from eth_utils import is_address, is_hexstr, to_checksum_address

# Zero address, the "any borrower" wildcard and the "open a new vault" marker
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Fixed point scale for amounts, rates and debts
WAD = 10**18

# Seconds per year, used to annualise per-second rates
SECONDS_PER_YEAR = 365 * 24 * 60 * 60


def is_zero_address(address: str) -> bool:
    """Check whether ``address`` is the zero address (case-insensitive)."""
    return is_address(address) and int(address, 16) == 0


def is_sized_hex(value, size: int = 32) -> bool:
    """Check that ``value`` is a 0x-prefixed hex string of exactly ``size`` bytes."""
    return (
        isinstance(value, str)
        and value.startswith("0x")
        and len(value) == 2 + 2 * size
        and is_hexstr(value)
    )


def normalize_address(address: str, field: str = "address") -> str:
    """Validate an address and return its checksum form.

    Raises:
        ValueError: If the address is not a valid 20-byte hex address
    """
    if not isinstance(address, str) or not is_address(address):
        raise ValueError(f"Invalid {field}: {address!r}")
    return to_checksum_address(address)


def format_wad(amount: int) -> str:
    """Format a 10**18-scaled amount as a human readable string.

    Args:
        amount: Amount scaled by 10**18 (e.g., 1500000000000000000 = 1.5)

    Returns:
        Human readable string (e.g., "1.5")
    """
    sign = "-" if amount < 0 else ""
    whole, frac = divmod(abs(amount), WAD)
    if frac == 0:
        return f"{sign}{whole}"
    return f"{sign}{whole}.{frac:018d}".rstrip("0")


def parse_wad(amount: str) -> int:
    """Parse a human readable decimal string into a 10**18-scaled integer.

    Strings are used instead of floats so that no precision is lost.

    Args:
        amount: Decimal string (e.g., "1.5")

    Returns:
        Scaled integer (e.g., 1500000000000000000)
    """
    amount = amount.strip()
    negative = amount.startswith("-")
    if negative:
        amount = amount[1:]
    whole, _, frac = amount.partition(".")
    if not (whole or frac) or not (whole or "0").isdigit() or (frac and not frac.isdigit()):
        raise ValueError(f"Invalid decimal amount: {amount!r}")
    if len(frac) > 18:
        raise ValueError(f"Too many decimals (max 18): {amount!r}")
    value = int(whole or "0") * WAD + int(frac.ljust(18, "0") or "0")
    return -value if negative else value


def annual_rate_to_per_second(annual_rate: int) -> int:
    """Convert a 10**18-scaled annual rate to the per-second rate a lien uses.

    Args:
        annual_rate: Annual interest rate scaled by 10**18 (e.g., 10**17 = 10%)

    Returns:
        Per-second rate scaled by 10**18, rounded down
    """
    return annual_rate // SECONDS_PER_YEAR


def per_second_rate_to_annual(rate: int) -> int:
    """Convert a per-second lien rate back to a 10**18-scaled annual rate."""
    return rate * SECONDS_PER_YEAR
