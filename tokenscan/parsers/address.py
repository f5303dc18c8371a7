import re

from tokenscan.parsers.exceptions import AddressValidationError

MIN_ADDRESS_LEN = 32
MAX_ADDRESS_LEN = 52

# Base58 (Bitcoin alphabet): no 0, O, I, l
_BASE58_RE = re.compile(r"[1-9A-HJ-NP-Za-km-z]+")


def is_valid_mint_address(address: object) -> bool:
    return (
        isinstance(address, str)
        and MIN_ADDRESS_LEN <= len(address) <= MAX_ADDRESS_LEN
        and _BASE58_RE.fullmatch(address) is not None
    )


def validate_mint_address(address: object) -> str:
    """Return the trimmed address or raise AddressValidationError."""
    candidate = address.strip() if isinstance(address, str) else address
    if not is_valid_mint_address(candidate):
        raise AddressValidationError(f"Invalid mint address: {address!r}")
    return candidate


def short_address(address: str | None) -> str:
    """First and last four characters, for log lines."""
    if not address:
        return "-"
    if len(address) <= 10:
        return address
    return f"{address[:4]}..{address[-4:]}"
