from fastapi import APIRouter, Depends

from app.schemas.payment_schema import PaymentSettingsGet, PaymentSettingsUpdate
from app.services.payment.payment_service import PaymentService
from app.services.user.user_service import UserService

router = APIRouter(prefix="/payment-settings", tags=["Payment settings"])


@router.get("/", response_model=PaymentSettingsGet, summary="Get payment settings (admin)")
async def get_payment_settings(
    *,
    user_service: UserService = Depends(UserService.get_dependency),
    payment_service: PaymentService = Depends(PaymentService.get_dependency),
):
    # holds bank details, buyers see only their payment options
    await user_service.require_admin()
    settings = await payment_service.get_settings()
    # nothing saved yet, every credential empty
    return settings or PaymentSettingsGet()


@router.put("/", response_model=PaymentSettingsGet, summary="Update payment settings (admin)")
async def update_payment_settings(
    *,
    settings_data: PaymentSettingsUpdate,
    user_service: UserService = Depends(UserService.get_dependency),
    payment_service: PaymentService = Depends(PaymentService.get_dependency),
):
    await user_service.require_admin()
    return await payment_service.update_settings(settings_data)
