from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import TIMESTAMP, Column, UniqueConstraint
from sqlmodel import Field

from app.models.enums.payment_status import PaymentStatus
from app.schemas.payment_schema import PaymentBase


# buyer contact details for a won auction, no money moves through the app
class Payment(PaymentBase, table=True):
    __tablename__ = "payments"
    id: int = Field(default=None, primary_key=True)

    listing_id: int = Field(index=True)
    bid_id: int = Field(index=True)
    amount: Decimal = Field(max_digits=10, decimal_places=2)
    status: PaymentStatus = Field(default=PaymentStatus.PENDING)
    created_by: str = Field(max_length=255)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(TIMESTAMP(timezone=True), nullable=False),
    )

    __table_args__ = (
        UniqueConstraint("listing_id", "bid_id", name="uix_payment_listing_bid"),
    )
