from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import JSON, TIMESTAMP, Column, func
from sqlmodel import Field

from app.models.enums.listing_status import ListingStatus
from app.models.enums.payment_method import PaymentMethod
from app.schemas.listing_schema import ListingBase


class Listing(ListingBase, table=True):
    __tablename__ = "listings"
    id: int = Field(default=None, primary_key=True)

    # written only by the bid acceptor and the lifecycle controller
    current_price: Decimal = Field(max_digits=10, decimal_places=2)
    status: ListingStatus = Field(default=ListingStatus.ACTIVE, index=True)

    end_date: datetime = Field(
        sa_column=Column(TIMESTAMP(timezone=True), nullable=False, index=True),
    )
    payment_methods: List[str] = Field(
        default_factory=lambda: [method.value for method in PaymentMethod],
        sa_column=Column(JSON, nullable=False),
    )
    # ordered image urls, the first one is the cover image
    images: List[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )

    # seller email
    created_by: str = Field(index=True, max_length=255)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(TIMESTAMP(timezone=True), nullable=False),
    )
    updated_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(
            TIMESTAMP(timezone=True),
            nullable=True,
            server_default=func.now(),
            onupdate=func.now(),
        ),
    )
