from typing import List

from fastapi import APIRouter, Depends, status

from app.schemas.bid_schema import BidCreate, BidRead
from app.schemas.listing_schema import ListingDetails
from app.services.auction.bid_service import BidService
from app.services.listing.listing_service import ListingService
from app.services.user.user_service import UserService

router = APIRouter()


@router.get(
    "/{listing_id}/bids",
    response_model=List[BidRead],
    summary="Bid history of a listing",
    description="Newest bid first.",
)
async def get_listing_bids(
    *,
    listing_id: int,
    bid_service: BidService = Depends(BidService.get_dependency),
):
    return await bid_service.get_listing_bids(listing_id)


@router.post(
    "/{listing_id}/bids",
    response_model=BidRead,
    status_code=status.HTTP_201_CREATED,
    summary="Place a bid",
    description="The bid must reach the current price plus the bid increment.",
)
async def place_bid(
    *,
    listing_id: int,
    bid_data: BidCreate,
    user_service: UserService = Depends(UserService.get_dependency),
    bid_service: BidService = Depends(BidService.get_dependency),
):
    current_user = await user_service.get_current_user()
    return await bid_service.place_bid(listing_id, current_user.email, bid_data.amount)


@router.post(
    "/{listing_id}/buy-now",
    response_model=BidRead,
    status_code=status.HTTP_201_CREATED,
    summary="Buy a listing now",
    description="Ends the auction at the buy now price, the buyer's bid wins.",
)
async def buy_now(
    *,
    listing_id: int,
    user_service: UserService = Depends(UserService.get_dependency),
    bid_service: BidService = Depends(BidService.get_dependency),
):
    current_user = await user_service.get_current_user()
    return await bid_service.buy_now(listing_id, current_user.email)


@router.post(
    "/{listing_id}/close",
    response_model=ListingDetails,
    summary="Close an expired auction",
    description="Closes the listing when its end date has passed, otherwise leaves it untouched. Safe to call any number of times.",
)
async def close_auction(
    *,
    listing_id: int,
    bid_service: BidService = Depends(BidService.get_dependency),
    listing_service: ListingService = Depends(ListingService.get_dependency),
):
    await bid_service.lifecycle.close_auction(listing_id)
    listing = await listing_service.get_listing(listing_id)
    return await listing_service.to_details(listing)
