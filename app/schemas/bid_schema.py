from decimal import Decimal

from pydantic import BaseModel, ConfigDict
from sqlmodel import Field, SQLModel

from app.core.timeutils import UtcDatetime
from app.models.enums.bid_status import BidStatus
from app.models.enums.listing_status import ListingStatus


class BidBase(SQLModel):
    amount: Decimal = Field(max_digits=10, decimal_places=2)


class BidCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")
    amount: Decimal = Field(max_digits=10, decimal_places=2)


class BidRead(BidBase):
    id: int
    listing_id: int
    created_by: str
    created_date: UtcDatetime
    status: BidStatus
    is_auto_bid: bool = False


# bid together with a summary of its listing, used by "my bids"
class MyBidRead(BidRead):
    listing_title: str
    listing_status: ListingStatus
    listing_current_price: Decimal
    listing_end_date: UtcDatetime
