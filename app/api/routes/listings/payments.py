from typing import List

from fastapi import APIRouter, Depends, status

from app.schemas.payment_schema import PaymentCreate, PaymentGet, PaymentOption
from app.services.payment.payment_service import PaymentService
from app.services.user.user_service import UserService

router = APIRouter()


@router.get(
    "/{listing_id}/payment-options",
    response_model=List[PaymentOption],
    summary="Payment methods for a listing",
    description="Methods the listing accepts and the seller has set up.",
)
async def get_payment_options(
    *,
    listing_id: int,
    payment_service: PaymentService = Depends(PaymentService.get_dependency),
):
    return await payment_service.get_payment_options(listing_id)


@router.post(
    "/{listing_id}/payment",
    response_model=PaymentGet,
    status_code=status.HTTP_201_CREATED,
    summary="Request payment for a won auction",
    description="Only the winning bidder can submit it. Submitting again updates the pending request.",
)
async def request_payment(
    *,
    listing_id: int,
    payment_data: PaymentCreate,
    user_service: UserService = Depends(UserService.get_dependency),
    payment_service: PaymentService = Depends(PaymentService.get_dependency),
):
    current_user = await user_service.get_current_user()
    return await payment_service.request_payment(
        listing_id, payment_data, current_user
    )
