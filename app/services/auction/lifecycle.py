from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable, List, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import asc, desc, select

from app.core.logging import get_logger
from app.core.timeutils import utc_now
from app.db.retry import with_storage_retry
from app.models.bid_model import Bid
from app.models.enums.bid_status import BidStatus
from app.models.enums.listing_status import ListingStatus
from app.models.listing_model import Listing
from app.services.auction.clock import is_expired
from app.services.auction.exceptions import AuctionError, NotFound
from app.services.notifications.dispatcher import NotificationDispatcher

logger = get_logger(__name__)

# status only moves forward, ended and sold are terminal
ALLOWED_TRANSITIONS = {
    ListingStatus.DRAFT: {ListingStatus.ACTIVE},
    ListingStatus.ACTIVE: {ListingStatus.ENDED, ListingStatus.SOLD},
    ListingStatus.ENDED: set(),
    ListingStatus.SOLD: set(),
}


def can_transition(current: ListingStatus, target: ListingStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


@dataclass
class CloseResult:
    listing_id: int
    # False when the call was a no-op (not expired, already closed, lost a race)
    closed: bool
    status: ListingStatus
    winning_bid: Optional[Bid] = None


class AuctionLifecycle:
    """
    Owns listing status transitions and winner determination.

    Every transition is a conditional UPDATE keyed on the current status, so
    overlapping closers (two scheduler ticks, a request path and a tick) agree
    on a single outcome and only the one that performed the transition sends
    notifications.
    """

    def __init__(
        self,
        session: AsyncSession,
        dispatcher: NotificationDispatcher,
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        self.session = session
        self.dispatcher = dispatcher
        self.now = now

    async def get_listing(self, listing_id: int) -> Listing:
        async def _get() -> Optional[Listing]:
            return await self.session.get(Listing, listing_id, populate_existing=True)

        listing = await with_storage_retry(
            _get, action="get_listing", session=self.session
        )
        if listing is None:
            raise NotFound("Listing", listing_id)
        return listing

    async def get_ranked_bids(self, listing_id: int) -> List[Bid]:
        """Bids on a listing, highest amount first, earliest bid first on ties."""
        result = await self.session.execute(
            select(Bid)
            .where(Bid.listing_id == listing_id)
            .order_by(desc(Bid.amount), asc(Bid.created_date), asc(Bid.id))
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    def settle_winner(self, winning_bid: Bid, bids: List[Bid]) -> None:
        """Mark the winning bid won and every other bid on the listing lost."""
        winning_bid.status = BidStatus.WON
        self.session.add(winning_bid)
        for bid in bids:
            if bid is winning_bid or bid.id == winning_bid.id:
                continue
            bid.status = BidStatus.LOST
            self.session.add(bid)

    async def close_auction(
        self, listing_id: int, now: Optional[datetime] = None
    ) -> CloseResult:
        """
        Close a listing whose end date has passed.

        No-op when the listing is not active or not yet expired, which makes
        repeated calls safe.
        """
        now = now or self.now()
        listing = await self.get_listing(listing_id)

        if listing.status != ListingStatus.ACTIVE or not is_expired(listing, now):
            return CloseResult(listing_id, closed=False, status=listing.status)

        closed, winning_bid = await with_storage_retry(
            lambda: self._end_listing(listing_id, now),
            action="close_auction",
            session=self.session,
        )
        listing = await self.get_listing(listing_id)

        if not closed:
            logger.info("auction_already_closed", listing_id=listing_id)
            return CloseResult(listing_id, closed=False, status=listing.status)

        logger.info(
            "auction_closed",
            listing_id=listing_id,
            winning_bid_id=winning_bid.id if winning_bid else None,
            final_price=str(listing.current_price),
        )

        if winning_bid is not None:
            await self.notify_winner(listing, winning_bid)

        return CloseResult(
            listing_id, closed=True, status=listing.status, winning_bid=winning_bid
        )

    async def _end_listing(
        self, listing_id: int, now: datetime
    ) -> Tuple[bool, Optional[Bid]]:
        try:
            result = await self.session.execute(
                update(Listing)
                .where(
                    Listing.id == listing_id,
                    Listing.status == ListingStatus.ACTIVE,
                    Listing.end_date <= now,
                )
                .values(status=ListingStatus.ENDED, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                await self.session.rollback()
                return False, None

            bids = await self.get_ranked_bids(listing_id)
            winning_bid = bids[0] if bids else None
            if winning_bid is not None:
                self.settle_winner(winning_bid, bids)

            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise

        return True, winning_bid

    async def sell_now(
        self, listing_id: int, buyer: str, buy_now_price: Decimal, now: datetime
    ) -> Optional[Bid]:
        """
        Record a buy-now purchase: listing sold at the buy-now price, the
        purchase bid won, every standing bid lost, all in one transaction.

        Returns None when the listing stopped being purchasable since it was
        read (closed, sold, bid up to the buy-now price or its buy-now
        price changed).
        """
        try:
            result = await self.session.execute(
                update(Listing)
                .where(
                    Listing.id == listing_id,
                    Listing.status == ListingStatus.ACTIVE,
                    Listing.end_date > now,
                    Listing.buy_now_price == buy_now_price,
                    Listing.current_price < buy_now_price,
                )
                .values(
                    status=ListingStatus.SOLD,
                    current_price=buy_now_price,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                await self.session.rollback()
                return None

            bid = Bid(
                listing_id=listing_id,
                amount=buy_now_price,
                created_by=buyer,
                created_date=now,
                status=BidStatus.WON,
                is_auto_bid=False,
            )
            self.session.add(bid)
            await self.session.flush()

            self.settle_winner(bid, await self.get_ranked_bids(listing_id))
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise

        await self.session.refresh(bid)
        logger.info(
            "listing_sold",
            listing_id=listing_id,
            bid_id=bid.id,
            price=str(buy_now_price),
        )
        return bid

    async def notify_winner(self, listing: Listing, winning_bid: Bid) -> None:
        # delivery is best effort, the closed state is already committed
        try:
            await self.dispatcher.notify_auction_won(listing, winning_bid)
        except (AuctionError, SQLAlchemyError) as error:
            logger.error(
                "auction_notification_failed",
                listing_id=listing.id,
                bid_id=winning_bid.id,
                error=str(error),
            )
