"""Exception types raised by rent-scout."""


class RentScoutError(Exception):
    """Base class for rent-scout errors."""


class InvalidSearchUrlError(RentScoutError, ValueError):
    """Search URL cannot be parsed or points at an unsupported host."""

    def __init__(self, url: str) -> None:
        super().__init__(f"Invalid search URL: {url}")
        self.url = url


class ListingIdentityError(RentScoutError, ValueError):
    """Listing carries neither a usable link nor a title."""


class TransactionTimeoutError(RentScoutError):
    """A batch transaction exceeded its wall-clock limit."""

    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(f"Transaction exceeded {timeout_seconds:.1f}s")
        self.timeout_seconds = timeout_seconds


class PersistenceUnavailableError(RentScoutError):
    """The database rejected every write of a batch, including the per-listing retries."""
