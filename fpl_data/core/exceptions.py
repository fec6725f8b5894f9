"""
Exceptions raised by the data layer.

Hierarchy:
- FplDataError
  - RefreshError: a refresh did not complete; the cache is unchanged
    - RemoteFetchError: the FPL API could not be reached or returned bad data
    - StoreTransactionError: the write transaction was rolled back
  - SubscriptionClosedError: a value was published to a closed slot
"""


class FplDataError(Exception):
    """Base class for all data layer errors."""


class RefreshError(FplDataError):
    """A refresh failed. Nothing was written to the local cache."""


class RemoteFetchError(RefreshError):
    """Fetching or decoding a payload from the FPL API failed."""

    def __init__(self, endpoint: str, message: str):
        self.endpoint = endpoint
        super().__init__(f"{endpoint}: {message}")


class StoreTransactionError(RefreshError):
    """A store write transaction raised and was rolled back."""


class SubscriptionClosedError(FplDataError):
    """Raised when publishing to a slot that has already been closed."""
