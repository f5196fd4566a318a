# exceptions.py
from decimal import Decimal


class AuctionError(Exception):
    """Base class for errors raised by the auction services."""

    pass


class NotFound(AuctionError):
    """Raised when a listing or bid does not exist."""

    def __init__(self, entity: str, entity_id) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} with ID {entity_id} not found.")


class AuctionClosed(AuctionError):
    """Raised when a bid or buy-now is attempted on a listing that no longer takes bids."""

    def __init__(self, listing_id) -> None:
        self.listing_id = listing_id
        super().__init__(f"Auction for listing {listing_id} is closed.")


class BidTooLow(AuctionError):
    """Raised when a bid does not clear the current price plus the bid increment."""

    def __init__(self, minimum: Decimal) -> None:
        self.minimum = minimum
        super().__init__(f"Bid must be at least ${minimum:.2f}")


class SelfBidForbidden(AuctionError):
    """Raised when a seller bids on (or buys) their own listing."""

    def __init__(self) -> None:
        super().__init__("You cannot bid on your own listing.")


class ValidationError(AuctionError):
    """Raised for malformed listing, bid or payment input."""

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class PermissionDenied(AuctionError):
    """Raised when the current user may not perform an action."""

    pass


class StorageUnavailable(AuctionError):
    """Raised when a storage call keeps failing after the retry."""

    def __init__(self, action: str) -> None:
        self.action = action
        super().__init__(f"Storage unavailable while running '{action}'.")


class NotificationFailure(AuctionError):
    """Raised by mail senders; the dispatcher logs it and never propagates it."""

    pass
