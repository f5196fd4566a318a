from typing import Annotated, List

from fastapi import APIRouter, Depends, File, UploadFile, status

from app.api.dependencies import get_image_storage
from app.schemas.listing_schema import (
    ImageUploadResponse,
    ListingCreate,
    ListingDetails,
    ListingQueryParameters,
    ListingRead,
    ListingUpdate,
)
from app.services.files.file_storage import ImageStorage
from app.services.listing.listing_service import ListingService
from app.services.user.user_service import UserService

router = APIRouter()


@router.post(
    "/",
    response_model=ListingRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new listing",
    description="Creates a draft or active auction listing owned by the current user.",
)
async def create_listing(
    *,
    new_listing_data: ListingCreate,
    user_service: UserService = Depends(UserService.get_dependency),
    listing_service: ListingService = Depends(ListingService.get_dependency),
):
    current_user = await user_service.get_current_user()
    listing = await listing_service.create_listing(new_listing_data, current_user)
    return listing_service.to_read(listing)


@router.post(
    "/images",
    response_model=ImageUploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a listing image",
    description="Stores one image and returns its url, to be put in a listing's images.",
)
async def upload_listing_image(
    *,
    file: UploadFile = File(...),
    user_service: UserService = Depends(UserService.get_dependency),
    image_storage: ImageStorage = Depends(get_image_storage),
):
    await user_service.get_current_user()
    content = await file.read()
    url = await image_storage.upload(content, file.filename, file.content_type)
    return ImageUploadResponse(url=url)


@router.get(
    "/",
    response_model=List[ListingRead],
    summary="Filter and list listings",
    description="Retrieve listings by status, category, seller or search text, sorted by end date, creation date or current price.",
)
async def get_listings(
    *,
    params: Annotated[ListingQueryParameters, Depends()],
    listing_service: ListingService = Depends(ListingService.get_dependency),
):
    listings = await listing_service.list_listings(params)
    return [listing_service.to_read(listing) for listing in listings]


@router.get(
    "/{listing_id}",
    response_model=ListingDetails,
    summary="Get a listing by ID",
    description="Returns the listing together with its bid history and the winning bid, if any.",
)
async def get_listing(
    *,
    listing_id: int,
    listing_service: ListingService = Depends(ListingService.get_dependency),
):
    listing = await listing_service.get_listing(listing_id)
    return await listing_service.to_details(listing)


@router.put(
    "/{listing_id}",
    response_model=ListingRead,
    summary="Update a listing",
    description="Only the seller or an admin can edit. Prices and the end date are locked once bidding started.",
)
async def update_listing(
    *,
    listing_id: int,
    listing_data: ListingUpdate,
    user_service: UserService = Depends(UserService.get_dependency),
    listing_service: ListingService = Depends(ListingService.get_dependency),
):
    current_user = await user_service.get_current_user()
    listing = await listing_service.update_listing(
        listing_id, listing_data, current_user
    )
    return listing_service.to_read(listing)


@router.delete(
    "/{listing_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a listing",
    description="Deletes the listing and every bid left without a listing.",
)
async def delete_listing(
    *,
    listing_id: int,
    user_service: UserService = Depends(UserService.get_dependency),
    listing_service: ListingService = Depends(ListingService.get_dependency),
):
    current_user = await user_service.get_current_user()
    await listing_service.delete_listing(listing_id, current_user)
