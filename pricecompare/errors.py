"""Exception hierarchy shared by the search, compare and adapter layers."""
from __future__ import annotations


class PriceCompareError(Exception):
    """Base class for every error raised on purpose by this package."""


class UnknownRetailerError(PriceCompareError):
    def __init__(self, retailer: str) -> None:
        super().__init__(f"Unknown retailer: {retailer}")
        self.retailer = retailer


class ListTooLargeError(PriceCompareError):
    """Raised before any upstream work when a list request is too expensive."""


class MissingConfigurationError(PriceCompareError):
    pass


class UpstreamError(PriceCompareError):
    """A retailer backend answered with an error or an unusable payload."""


class PersistedQueryNotFoundError(UpstreamError):
    def __init__(self) -> None:
        super().__init__("PersistedQueryNotFound (hash expired)")
