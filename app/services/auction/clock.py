from datetime import datetime
from typing import TYPE_CHECKING, Callable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import asc, select

from app.core.logging import get_logger
from app.core.timeutils import as_utc, utc_now
from app.db.retry import with_storage_retry
from app.models.enums.listing_status import ListingStatus
from app.models.listing_model import Listing
from app.services.auction.exceptions import AuctionError

if TYPE_CHECKING:
    from app.services.auction.lifecycle import AuctionLifecycle, CloseResult

logger = get_logger(__name__)


def is_expired(listing: Listing, now: datetime) -> bool:
    """True once the listing's end date is reached. Pure, does not look at status."""
    return as_utc(listing.end_date) <= as_utc(now)


class AuctionClock:
    """Finds active listings past their end date and closes each of them once."""

    def __init__(
        self,
        session: AsyncSession,
        lifecycle: "AuctionLifecycle",
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        self.session = session
        self.lifecycle = lifecycle
        self.now = now

    async def find_expired_listing_ids(self, now: datetime) -> List[int]:
        async def _query() -> List[int]:
            result = await self.session.execute(
                select(Listing.id)
                .where(
                    Listing.status == ListingStatus.ACTIVE,
                    Listing.end_date <= now,
                )
                .order_by(asc(Listing.end_date))
            )
            return list(result.scalars().all())

        return await with_storage_retry(
            _query, action="find_expired_listings", session=self.session
        )

    async def tick(self, now: Optional[datetime] = None) -> List["CloseResult"]:
        """
        Run one scan: close every expired active listing.

        A failure on one listing is logged and the scan moves on to the next.
        """
        now = now or self.now()
        listing_ids = await self.find_expired_listing_ids(now)
        if not listing_ids:
            return []

        logger.info("expired_auctions_found", count=len(listing_ids))

        results: List["CloseResult"] = []
        for listing_id in listing_ids:
            try:
                results.append(
                    await self.lifecycle.close_auction(listing_id, now=now)
                )
            except (AuctionError, SQLAlchemyError) as error:
                await self.session.rollback()
                logger.error(
                    "auction_close_failed",
                    listing_id=listing_id,
                    error=str(error),
                    exc_info=True,
                )

        return results
