class ScanError(Exception):
    pass


class AddressValidationError(ScanError):
    """Malformed mint address; raised before any network call."""


class NotAMintError(ScanError):
    """Account exists (or not) but does not decode as a token mint."""

    def __init__(self, address: str, reason: str) -> None:
        super().__init__(f"{address} is not a token mint: {reason}")
        self.address = address
        self.reason = reason


class MarketUnavailableError(ScanError):
    pass
