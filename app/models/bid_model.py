from datetime import datetime, timezone

from sqlalchemy import TIMESTAMP, Column
from sqlmodel import Field

from app.models.enums.bid_status import BidStatus
from app.schemas.bid_schema import BidBase


class Bid(BidBase, table=True):
    __tablename__ = "bids"
    id: int = Field(default=None, primary_key=True)

    # no database level foreign key: bids outliving a deleted listing are
    # removed by the orphan reconciliation pass
    listing_id: int = Field(index=True)

    # bidder email
    created_by: str = Field(index=True, max_length=255)
    created_date: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(TIMESTAMP(timezone=True), nullable=False),
    )
    status: BidStatus = Field(default=BidStatus.ACTIVE)
    is_auto_bid: bool = Field(default=False)
