from datetime import datetime
from decimal import Decimal
from typing import Callable, List, Optional

from fastapi import Depends
from sqlalchemy import delete, exists, func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import asc, desc, select

from app.api.dependencies import (
    get_async_session,
    get_mail_sender,
    get_session_factory,
)
from app.core.logging import get_logger
from app.core.timeutils import as_utc, utc_now
from app.db.retry import with_storage_retry
from app.models.bid_model import Bid
from app.models.enums.bid_status import BidStatus
from app.models.enums.listing_status import ListingStatus
from app.models.enums.user_role import UserRole
from app.models.listing_model import Listing
from app.models.user_model import User
from app.schemas.bid_schema import BidRead
from app.schemas.listing_schema import (
    MAX_LISTING_IMAGES,
    ListingCreate,
    ListingDetails,
    ListingQueryParameters,
    ListingRead,
    ListingUpdate,
)
from app.services.auction.bid_service import minimum_bid
from app.services.auction.clock import is_expired
from app.services.auction.exceptions import (
    AuctionClosed,
    NotFound,
    PermissionDenied,
    ValidationError,
)
from app.services.auction.lifecycle import can_transition
from app.services.notifications.dispatcher import NotificationDispatcher
from app.services.notifications.mail import MailSender

logger = get_logger(__name__)

MIN_PRICE = Decimal("0.01")

# fields that settle what a bid is worth, fixed once somebody has bid
FROZEN_ONCE_BID = ("starting_price", "bid_increment", "buy_now_price", "end_date")


def check_prices(
    starting_price: Decimal, bid_increment: Decimal, buy_now_price: Optional[Decimal]
) -> None:
    if starting_price < MIN_PRICE:
        raise ValidationError("starting_price", "Starting price must be at least $0.01.")
    if bid_increment < MIN_PRICE:
        raise ValidationError("bid_increment", "Bid increment must be at least $0.01.")
    if buy_now_price is not None and buy_now_price <= starting_price:
        raise ValidationError(
            "buy_now_price", "Buy now price must be higher than the starting price."
        )


def check_end_date(end_date: datetime, now: datetime) -> None:
    if as_utc(end_date) <= as_utc(now):
        raise ValidationError("end_date", "End date must be in the future.")


def check_images(images: List[str]) -> None:
    if len(images) > MAX_LISTING_IMAGES:
        raise ValidationError(
            "images", f"A listing can have at most {MAX_LISTING_IMAGES} images."
        )


def can_edit(listing: Listing, user: User) -> bool:
    return user.role == UserRole.ADMIN or listing.created_by == user.email


class ListingService:
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

    async def count_bids(self, listing_id: int) -> int:
        result = await self.session.execute(
            select(func.count(Bid.id)).where(Bid.listing_id == listing_id)
        )
        return result.scalar_one()

    async def get_bids(self, listing_id: int) -> List[Bid]:
        """Bid history of a listing, newest first."""
        result = await self.session.execute(
            select(Bid)
            .where(Bid.listing_id == listing_id)
            .order_by(desc(Bid.created_date), desc(Bid.id))
        )
        return list(result.scalars().all())

    def to_read(self, listing: Listing, now: Optional[datetime] = None) -> ListingRead:
        now = now or self.now()
        return ListingRead(
            id=listing.id,
            title=listing.title,
            description=listing.description,
            category=listing.category,
            condition=listing.condition,
            starting_price=listing.starting_price,
            bid_increment=listing.bid_increment,
            buy_now_price=listing.buy_now_price,
            current_price=listing.current_price,
            minimum_bid=minimum_bid(listing),
            end_date=listing.end_date,
            status=listing.status,
            is_ended=listing.status in (ListingStatus.ENDED, ListingStatus.SOLD)
            or (listing.status == ListingStatus.ACTIVE and is_expired(listing, now)),
            payment_methods=listing.payment_methods,
            images=listing.images,
            created_by=listing.created_by,
            created_at=listing.created_at,
            updated_at=listing.updated_at,
        )

    async def to_details(self, listing: Listing) -> ListingDetails:
        bids = [BidRead.model_validate(bid) for bid in await self.get_bids(listing.id)]
        winning_bid = next((bid for bid in bids if bid.status == BidStatus.WON), None)
        return ListingDetails(
            **self.to_read(listing).model_dump(),
            bids=bids,
            winning_bid=winning_bid,
        )

    async def create_listing(self, data: ListingCreate, seller: User) -> Listing:
        now = self.now()
        check_prices(data.starting_price, data.bid_increment, data.buy_now_price)
        check_end_date(data.end_date, now)
        check_images(data.images)
        if data.status not in (ListingStatus.DRAFT, ListingStatus.ACTIVE):
            raise ValidationError(
                "status", "A new listing must be a draft or active."
            )
        if not data.payment_methods:
            raise ValidationError(
                "payment_methods", "Accept at least one payment method."
            )

        listing = Listing(
            title=data.title,
            description=data.description,
            category=data.category,
            condition=data.condition,
            starting_price=data.starting_price,
            bid_increment=data.bid_increment,
            buy_now_price=data.buy_now_price,
            current_price=data.starting_price,
            status=data.status,
            end_date=as_utc(data.end_date),
            payment_methods=[method.value for method in data.payment_methods],
            images=list(data.images),
            created_by=seller.email,
        )
        self.session.add(listing)
        await self.session.commit()
        await self.session.refresh(listing)

        logger.info(
            "listing_created",
            listing_id=listing.id,
            seller=seller.email,
            status=listing.status.value,
        )

        if listing.status == ListingStatus.ACTIVE:
            await self.dispatcher.notify_listing_created(listing, seller)
        return listing

    async def update_listing(
        self, listing_id: int, data: ListingUpdate, user: User
    ) -> Listing:
        """
        Edit a listing. Ended and sold listings are read only, and once a bid
        exists the prices and the end date stay as they were.

        The write is conditional on the price and status read here, so an edit
        never overwrites a bid or a close that landed in between.
        """
        listing = await self.get_listing(listing_id)
        if not can_edit(listing, user):
            raise PermissionDenied("Only the seller or an admin can edit this listing.")
        if listing.status in (ListingStatus.ENDED, ListingStatus.SOLD):
            raise AuctionClosed(listing_id)

        now = self.now()
        changes = data.model_dump(exclude_unset=True)

        if "status" in changes:
            target = changes.pop("status")
            if target is not None and target != listing.status:
                if not can_transition(listing.status, target) or (
                    target != ListingStatus.ACTIVE
                ):
                    raise ValidationError(
                        "status", "Only a draft can be published by editing it."
                    )
                changes["status"] = target

        frozen = [field for field in FROZEN_ONCE_BID if field in changes]
        if frozen and await self.count_bids(listing_id) > 0:
            raise ValidationError(
                frozen[0], "Prices and the end date cannot change once bidding started."
            )

        required = (
            "title",
            "description",
            "starting_price",
            "bid_increment",
            "end_date",
            "images",
        )
        for field in required:
            if field in changes and changes[field] is None:
                raise ValidationError(field, "This field cannot be empty.")

        check_prices(
            changes.get("starting_price", listing.starting_price),
            changes.get("bid_increment", listing.bid_increment),
            changes.get("buy_now_price", listing.buy_now_price),
        )
        if "end_date" in changes:
            check_end_date(changes["end_date"], now)
            changes["end_date"] = as_utc(changes["end_date"])
        elif changes.get("status") == ListingStatus.ACTIVE:
            check_end_date(listing.end_date, now)
        if "images" in changes:
            check_images(changes["images"])
        if "payment_methods" in changes:
            if not changes["payment_methods"]:
                raise ValidationError(
                    "payment_methods", "Accept at least one payment method."
                )
            changes["payment_methods"] = [
                method.value for method in changes["payment_methods"]
            ]
        if "starting_price" in changes:
            # no bids yet, so the price still equals the starting price
            changes["current_price"] = changes["starting_price"]

        if not changes:
            return listing

        result = await self.session.execute(
            update(Listing)
            .where(
                Listing.id == listing_id,
                Listing.status == listing.status,
                Listing.current_price == listing.current_price,
            )
            .values(**changes, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await self.session.rollback()
            raise ValidationError(
                "listing", "The listing changed while you were editing it, reload it."
            )
        await self.session.commit()

        logger.info(
            "listing_updated",
            listing_id=listing_id,
            fields=sorted(changes),
            by=user.email,
        )
        return await self.get_listing(listing_id)

    async def delete_listing(self, listing_id: int, user: User) -> None:
        listing = await self.get_listing(listing_id)
        if not can_edit(listing, user):
            raise PermissionDenied(
                "Only the seller or an admin can delete this listing."
            )

        await self.session.delete(listing)
        await self.session.commit()
        logger.info("listing_deleted", listing_id=listing_id, by=user.email)

        await self.reconcile_orphan_bids()

    async def reconcile_orphan_bids(self) -> int:
        """Delete bids whose listing no longer exists. Returns how many went."""
        result = await self.session.execute(
            delete(Bid)
            .where(~exists().where(Listing.id == Bid.listing_id))
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        if result.rowcount:
            logger.info("orphan_bids_deleted", count=result.rowcount)
        return result.rowcount

    async def list_listings(self, params: ListingQueryParameters) -> List[Listing]:
        query = select(Listing)

        # Filtering:
        if params.status is not None:
            query = query.where(Listing.status == params.status)
        if params.category is not None:
            query = query.where(Listing.category == params.category)
        if params.created_by is not None:
            query = query.where(Listing.created_by == params.created_by)
        if params.search is not None:
            query = query.where(
                (Listing.title.ilike(f"%{params.search}%"))
                | (Listing.description.ilike(f"%{params.search}%"))
            )

        # Sorting:
        sort_columns = {
            "end_date": Listing.end_date,
            "created_at": Listing.created_at,
            "current_price": Listing.current_price,
        }
        order = asc if params.sort_order == "asc" else desc
        query = query.order_by(order(sort_columns[params.sort_by]), asc(Listing.id))

        # Pagination:
        query = query.limit(params.limit).offset(params.offset)

        async def _query() -> List[Listing]:
            result = await self.session.execute(query)
            return list(result.scalars().all())

        return await with_storage_retry(
            _query, action="list_listings", session=self.session
        )

    @classmethod
    async def get_dependency(
        cls,
        session: AsyncSession = Depends(get_async_session),
        session_factory: Callable[[], AsyncSession] = Depends(get_session_factory),
        mail_sender: MailSender = Depends(get_mail_sender),
    ) -> "ListingService":
        return cls(session, NotificationDispatcher(session_factory, mail_sender))
