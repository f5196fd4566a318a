from datetime import datetime
from typing import Callable, List, Literal, Optional

from fastapi import Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import asc, desc, select

from app.api.dependencies import get_async_session, get_user
from app.core.logging import get_logger
from app.core.timeutils import utc_now
from app.models.bid_model import Bid
from app.models.enums.bid_status import BidStatus
from app.models.enums.listing_status import ListingStatus
from app.models.enums.user_role import UserRole
from app.models.listing_model import Listing
from app.models.user_model import User
from app.schemas.bid_schema import MyBidRead
from app.services.auction.exceptions import NotFound, PermissionDenied
from app.services.user.exceptions import UserEmailNotFound

logger = get_logger(__name__)

BidFilter = Literal["active", "won", "lost", "all"]


class UserService:
    def __init__(
        self,
        session: AsyncSession,
        identity: dict,
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        self.session = session
        # verified token claims of the caller
        self.identity = identity
        self.now = now

    async def get_user_by_email(self, email: str) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.email == email))
        return result.scalars().one_or_none()

    async def get_user_by_id(self, user_id: int) -> User:
        db_user = await self.session.get(User, user_id)
        if not db_user:
            raise NotFound("User", user_id)
        return db_user

    async def get_current_user(self) -> User:
        """
        Retrieve the caller using the email in the token claims. The first
        request of a new identity creates its user row.
        """
        email = self.identity.get("email")
        if not email:
            raise UserEmailNotFound("User email not found in metadata.")

        db_user = await self.get_user_by_email(email)
        if db_user:
            return db_user

        db_user = User(
            email=email,
            full_name=self.identity.get("name"),
            role=UserRole.USER,
        )
        self.session.add(db_user)
        try:
            await self.session.commit()
        except IntegrityError:
            # a concurrent request created the same user
            await self.session.rollback()
            return await self.get_user_by_email(email)

        await self.session.refresh(db_user)
        logger.info("user_created", user_id=db_user.id, email=email)
        return db_user

    async def require_admin(self) -> User:
        current_user = await self.get_current_user()
        if current_user.role != UserRole.ADMIN:
            raise PermissionDenied("Only administrators can do this.")
        return current_user

    async def list_users(self) -> List[User]:
        await self.require_admin()
        result = await self.session.execute(select(User).order_by(asc(User.id)))
        return list(result.scalars().all())

    async def set_role(self, user_id: int, role: UserRole) -> User:
        admin = await self.require_admin()
        db_user = await self.get_user_by_id(user_id)
        db_user.role = role
        self.session.add(db_user)
        await self.session.commit()
        await self.session.refresh(db_user)
        logger.info("user_role_changed", user_id=user_id, role=role.value, by=admin.email)
        return db_user

    async def get_user_bids(self, bid_filter: BidFilter = "active") -> List[MyBidRead]:
        """
        Bids of the caller joined with their listings, newest first.

        Bids whose listing no longer exists drop out of the join.
        """
        current_user = await self.get_current_user()
        now = self.now()

        query = (
            select(Bid, Listing)
            .join(Listing, Listing.id == Bid.listing_id)
            .where(Bid.created_by == current_user.email)
            .order_by(desc(Bid.created_date), desc(Bid.id))
        )
        if bid_filter == "active":
            query = query.where(
                Listing.status == ListingStatus.ACTIVE, Listing.end_date > now
            )
        elif bid_filter == "won":
            query = query.where(Bid.status == BidStatus.WON)
        elif bid_filter == "lost":
            query = query.where(Bid.status == BidStatus.LOST)

        result = await self.session.execute(query)
        return [
            MyBidRead(
                id=bid.id,
                listing_id=bid.listing_id,
                amount=bid.amount,
                created_by=bid.created_by,
                created_date=bid.created_date,
                status=bid.status,
                is_auto_bid=bid.is_auto_bid,
                listing_title=listing.title,
                listing_status=listing.status,
                listing_current_price=listing.current_price,
                listing_end_date=listing.end_date,
            )
            for bid, listing in result.all()
        ]

    @classmethod
    async def get_dependency(
        cls,
        session: AsyncSession = Depends(get_async_session),
        identity: dict = Depends(get_user),
    ) -> "UserService":
        return cls(session, identity)
