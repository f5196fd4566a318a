from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Callable, List, Optional

from fastapi import Depends
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import desc, select

from app.api.dependencies import (
    get_async_session,
    get_mail_sender,
    get_session_factory,
)
from app.core.logging import get_logger
from app.core.timeutils import utc_now
from app.db.retry import with_storage_retry
from app.models.bid_model import Bid
from app.models.enums.bid_status import BidStatus
from app.models.enums.listing_status import ListingStatus
from app.models.listing_model import Listing
from app.services.auction.clock import is_expired
from app.services.auction.exceptions import (
    AuctionClosed,
    BidTooLow,
    SelfBidForbidden,
    StorageUnavailable,
    ValidationError,
)
from app.services.auction.lifecycle import AuctionLifecycle
from app.services.notifications.dispatcher import NotificationDispatcher
from app.services.notifications.mail import MailSender

logger = get_logger(__name__)

CENT = Decimal("0.01")

# every failed swap means a competing bid raised the price by at least one
# increment, so a bid is re-validated a bounded number of times
MAX_PRICE_SWAP_ATTEMPTS = 5


def minimum_bid(listing: Listing) -> Decimal:
    """Smallest amount the next bid must reach, rounded to cents."""
    current_price = Decimal(listing.current_price)
    increment = Decimal(listing.bid_increment)
    return (current_price + increment).quantize(CENT, rounding=ROUND_HALF_UP)


def parse_amount(amount) -> Decimal:
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise ValidationError("amount", "Bid amount must be a number.")
    if not value.is_finite():
        raise ValidationError("amount", "Bid amount must be a number.")
    return value


class BidService:
    """
    Accepts bids and buy-now purchases.

    The bid acceptor is the only writer of ``Listing.current_price`` for a
    regular bid. The write is a compare-and-swap keyed on the price read during
    validation, committed in the same transaction as the new bid, so two bids
    validated against the same price can never both be accepted.
    """

    def __init__(
        self,
        session: AsyncSession,
        lifecycle: AuctionLifecycle,
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        self.session = session
        self.lifecycle = lifecycle
        self.now = now

    def check_bid(
        self, listing: Listing, bidder: str, amount: Decimal, now: datetime
    ) -> Decimal:
        """
        Validate a bid against the listing as read. Checks run in a fixed
        order: closed auction, self bid, amount. Returns the minimum bid.
        """
        if listing.status != ListingStatus.ACTIVE or is_expired(listing, now):
            raise AuctionClosed(listing.id)

        if bidder == listing.created_by:
            raise SelfBidForbidden()

        minimum = minimum_bid(listing)
        if amount < minimum:
            raise BidTooLow(minimum)

        return minimum

    async def place_bid(self, listing_id: int, bidder: str, amount) -> Bid:
        amount = parse_amount(amount)

        for attempt in range(1, MAX_PRICE_SWAP_ATTEMPTS + 1):
            listing = await self.lifecycle.get_listing(listing_id)
            now = self.now()
            self.check_bid(listing, bidder, amount, now)
            seen_price = listing.current_price

            bid = await with_storage_retry(
                lambda: self._swap_price(listing_id, seen_price, bidder, amount, now),
                action="place_bid",
                session=self.session,
            )
            if bid is not None:
                logger.info(
                    "bid_placed",
                    listing_id=listing_id,
                    bid_id=bid.id,
                    amount=str(amount),
                    previous_price=str(seen_price),
                )
                return bid

            # the listing changed between validation and write, re-validate
            logger.info(
                "bid_price_conflict",
                listing_id=listing_id,
                amount=str(amount),
                seen_price=str(seen_price),
                attempt=attempt,
            )

        raise StorageUnavailable("place_bid")

    async def _swap_price(
        self,
        listing_id: int,
        seen_price: Decimal,
        bidder: str,
        amount: Decimal,
        now: datetime,
    ) -> Optional[Bid]:
        try:
            result = await self.session.execute(
                update(Listing)
                .where(
                    Listing.id == listing_id,
                    Listing.status == ListingStatus.ACTIVE,
                    Listing.end_date > now,
                    Listing.current_price == seen_price,
                )
                .values(current_price=amount, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                await self.session.rollback()
                return None

            bid = Bid(
                listing_id=listing_id,
                amount=amount,
                created_by=bidder,
                created_date=now,
                status=BidStatus.ACTIVE,
                is_auto_bid=False,
            )
            self.session.add(bid)
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise

        await self.session.refresh(bid)
        return bid

    async def buy_now(self, listing_id: int, buyer: str) -> Bid:
        listing = await self.lifecycle.get_listing(listing_id)
        now = self.now()

        if listing.buy_now_price is None:
            raise ValidationError(
                "buy_now_price", "This listing has no buy now price."
            )
        if listing.status != ListingStatus.ACTIVE or is_expired(listing, now):
            raise AuctionClosed(listing_id)
        if buyer == listing.created_by:
            raise SelfBidForbidden()
        if listing.current_price >= listing.buy_now_price:
            raise ValidationError(
                "buy_now_price", "Bidding has already reached the buy now price."
            )

        buy_now_price = listing.buy_now_price
        bid = await with_storage_retry(
            lambda: self.lifecycle.sell_now(listing_id, buyer, buy_now_price, now),
            action="buy_now",
            session=self.session,
        )
        if bid is None:
            listing = await self.lifecycle.get_listing(listing_id)
            if listing.status == ListingStatus.ACTIVE and not is_expired(listing, now):
                # a bid reached the buy now price in between
                raise ValidationError(
                    "buy_now_price", "Bidding has already reached the buy now price."
                )
            # somebody closed or bought the listing first
            raise AuctionClosed(listing_id)

        listing = await self.lifecycle.get_listing(listing_id)
        await self.lifecycle.notify_winner(listing, bid)
        return bid

    async def get_listing_bids(self, listing_id: int) -> List[Bid]:
        """Bid history of a listing, newest first."""
        await self.lifecycle.get_listing(listing_id)

        async def _query() -> List[Bid]:
            result = await self.session.execute(
                select(Bid)
                .where(Bid.listing_id == listing_id)
                .order_by(desc(Bid.created_date), desc(Bid.id))
            )
            return list(result.scalars().all())

        return await with_storage_retry(
            _query, action="get_listing_bids", session=self.session
        )

    @classmethod
    async def get_dependency(
        cls,
        session: AsyncSession = Depends(get_async_session),
        session_factory: Callable[[], AsyncSession] = Depends(get_session_factory),
        mail_sender: MailSender = Depends(get_mail_sender),
    ) -> "BidService":
        dispatcher = NotificationDispatcher(session_factory, mail_sender)
        return cls(session, AuctionLifecycle(session, dispatcher))
