from datetime import datetime
from typing import Callable, List, Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import asc, select

from app.api.dependencies import get_async_session
from app.core.logging import get_logger
from app.core.timeutils import utc_now
from app.models.bid_model import Bid
from app.models.enums.bid_status import BidStatus
from app.models.enums.listing_status import ListingStatus
from app.models.enums.payment_status import PaymentStatus
from app.models.listing_model import Listing
from app.models.payment_model import Payment
from app.models.payment_settings_model import PaymentSettings
from app.models.user_model import User
from app.schemas.payment_schema import (
    PaymentCreate,
    PaymentOption,
    PaymentSettingsUpdate,
)
from app.services.auction.exceptions import (
    NotFound,
    PermissionDenied,
    ValidationError,
)
from app.services.notifications.payment_instructions import (
    PAYMENT_METHOD_LABELS,
    accepted_methods,
    configured_methods,
)

logger = get_logger(__name__)


class PaymentService:
    """Payment credentials of the seller and payment requests of winners."""

    def __init__(
        self, session: AsyncSession, now: Callable[[], datetime] = utc_now
    ) -> None:
        self.session = session
        self.now = now

    async def get_settings(self) -> Optional[PaymentSettings]:
        result = await self.session.execute(
            select(PaymentSettings).order_by(asc(PaymentSettings.id)).limit(1)
        )
        return result.scalars().first()

    async def update_settings(self, data: PaymentSettingsUpdate) -> PaymentSettings:
        """Create the settings record on first save, update it afterwards."""
        settings = await self.get_settings()
        if settings is None:
            settings = PaymentSettings()

        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(settings, field, value)
        settings.updated_at = self.now()

        self.session.add(settings)
        await self.session.commit()
        await self.session.refresh(settings)
        logger.info("payment_settings_updated", settings_id=settings.id)
        return settings

    async def get_listing(self, listing_id: int) -> Listing:
        listing = await self.session.get(Listing, listing_id)
        if listing is None:
            raise NotFound("Listing", listing_id)
        return listing

    async def get_payment_options(self, listing_id: int) -> List[PaymentOption]:
        """Methods the listing accepts and the seller has credentials for."""
        listing = await self.get_listing(listing_id)
        methods = configured_methods(
            await self.get_settings(), accepted_methods(listing)
        )
        return [
            PaymentOption(method=method, label=PAYMENT_METHOD_LABELS[method])
            for method in methods
        ]

    async def get_winning_bid(self, listing_id: int) -> Optional[Bid]:
        result = await self.session.execute(
            select(Bid).where(
                Bid.listing_id == listing_id, Bid.status == BidStatus.WON
            )
        )
        return result.scalars().first()

    async def request_payment(
        self, listing_id: int, data: PaymentCreate, buyer: User
    ) -> Payment:
        """
        Record how the winner wants to pay. Submitting again replaces the
        pending request instead of adding a second one.
        """
        listing = await self.get_listing(listing_id)
        if listing.status not in (ListingStatus.ENDED, ListingStatus.SOLD):
            raise ValidationError("listing", "The auction has not ended yet.")

        winning_bid = await self.get_winning_bid(listing_id)
        if winning_bid is None or winning_bid.created_by != buyer.email:
            raise PermissionDenied("Only the winning bidder can request payment.")

        options = {option.method for option in await self.get_payment_options(listing_id)}
        if data.payment_method not in options:
            raise ValidationError(
                "payment_method", "This payment method is not available for the listing."
            )

        result = await self.session.execute(
            select(Payment).where(
                Payment.listing_id == listing_id, Payment.bid_id == winning_bid.id
            )
        )
        payment = result.scalars().first()
        if payment is not None and payment.status != PaymentStatus.PENDING:
            raise ValidationError(
                "payment", f"The payment is already {payment.status.value}."
            )
        if payment is None:
            payment = Payment(
                listing_id=listing_id,
                bid_id=winning_bid.id,
                amount=winning_bid.amount,
                created_by=buyer.email,
                status=PaymentStatus.PENDING,
                payment_method=data.payment_method,
                buyer_contact=data.buyer_contact,
            )

        payment.payment_method = data.payment_method
        payment.buyer_contact = data.buyer_contact
        payment.notes = data.notes

        self.session.add(payment)
        await self.session.commit()
        await self.session.refresh(payment)
        logger.info(
            "payment_requested",
            listing_id=listing_id,
            payment_id=payment.id,
            method=data.payment_method.value,
        )
        return payment

    @classmethod
    async def get_dependency(
        cls,
        session: AsyncSession = Depends(get_async_session),
    ) -> "PaymentService":
        return cls(session)
