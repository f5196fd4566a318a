from typing import List

from fastapi import APIRouter, Depends

from app.schemas.bid_schema import MyBidRead
from app.schemas.user_schema import UserGet, UserRoleUpdate
from app.services.user.user_service import BidFilter, UserService

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/", response_model=List[UserGet], summary="List users (admin)")
async def get_users(
    *, user_service: UserService = Depends(UserService.get_dependency)
):
    return await user_service.list_users()


@router.get("/me", response_model=UserGet, summary="Get the current user")
async def get_me(*, user_service: UserService = Depends(UserService.get_dependency)):
    return await user_service.get_current_user()


@router.get(
    "/me/bids",
    response_model=List[MyBidRead],
    summary="Bids of the current user",
    description="filter: active (auction still running), won, lost or all.",
)
async def get_my_bids(
    *,
    filter: BidFilter = "active",
    user_service: UserService = Depends(UserService.get_dependency),
):
    return await user_service.get_user_bids(filter)


@router.put("/{user_id}/role", response_model=UserGet, summary="Change a user's role (admin)")
async def set_user_role(
    *,
    user_id: int,
    role_data: UserRoleUpdate,
    user_service: UserService = Depends(UserService.get_dependency),
):
    return await user_service.set_role(user_id, role_data.role)
