from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict
from sqlmodel import Field, SQLModel

from app.core.timeutils import UtcDatetime
from app.models.enums.listing_status import ListingStatus
from app.models.enums.payment_method import PaymentMethod
from app.schemas.bid_schema import BidRead

MAX_LISTING_IMAGES = 8


# Basic schema for listing data
class ListingBase(SQLModel):
    model_config = ConfigDict(extra="forbid")
    title: str = Field(min_length=1, max_length=255)
    description: str = Field(default="", max_length=5000)
    category: str | None = Field(default=None, max_length=100)
    condition: str | None = Field(default=None, max_length=50)
    starting_price: Decimal = Field(max_digits=10, decimal_places=2)
    bid_increment: Decimal = Field(max_digits=10, decimal_places=2)
    buy_now_price: Decimal | None = Field(
        default=None, max_digits=10, decimal_places=2
    )


# schema for listing creation
class ListingCreate(ListingBase):
    end_date: datetime
    # listings are published right away unless the seller saves a draft
    status: ListingStatus = ListingStatus.ACTIVE
    payment_methods: list[PaymentMethod] = Field(
        default_factory=lambda: list(PaymentMethod)
    )
    images: list[str] = Field(default_factory=list)


# schema for listing update, every field is optional
class ListingUpdate(SQLModel):
    model_config = ConfigDict(extra="forbid")
    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=5000)
    category: str | None = Field(default=None, max_length=100)
    condition: str | None = Field(default=None, max_length=50)
    starting_price: Decimal | None = Field(
        default=None, max_digits=10, decimal_places=2
    )
    bid_increment: Decimal | None = Field(
        default=None, max_digits=10, decimal_places=2
    )
    buy_now_price: Decimal | None = Field(
        default=None, max_digits=10, decimal_places=2
    )
    end_date: datetime | None = None
    status: ListingStatus | None = None
    payment_methods: list[PaymentMethod] | None = None
    images: list[str] | None = None


# Schema for displaying listing data in cards
class ListingRead(ListingBase):
    id: int
    current_price: Decimal
    minimum_bid: Decimal
    end_date: UtcDatetime
    status: ListingStatus
    # true once the listing stopped taking bids, even before the closer ran
    is_ended: bool
    payment_methods: list[PaymentMethod]
    images: list[str]
    created_by: str
    created_at: UtcDatetime
    updated_at: Optional[UtcDatetime] = None


# Schema for the listing page, includes the bid history
class ListingDetails(ListingRead):
    bids: List[BidRead]
    winning_bid: BidRead | None = None


class ListingQueryParameters(BaseModel):
    status: ListingStatus | None = ListingStatus.ACTIVE
    search: str | None = None
    category: str | None = None
    created_by: str | None = None

    # sort by options
    sort_by: Literal["end_date", "created_at", "current_price"] = "end_date"
    sort_order: Literal["asc", "desc"] = "asc"

    limit: int = Field(default=20, ge=1, le=100)
    offset: int = Field(default=0, ge=0)


class ImageUploadResponse(BaseModel):
    url: str
