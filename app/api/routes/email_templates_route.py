from typing import List

from fastapi import APIRouter, Depends

from app.models.enums.email_template_type import EmailTemplateType
from app.schemas.email_template_schema import EmailTemplateGet, EmailTemplateUpdate
from app.services.notifications.template_service import EmailTemplateService
from app.services.user.user_service import UserService

router = APIRouter(prefix="/email-templates", tags=["Email templates"])


@router.get("/", response_model=List[EmailTemplateGet], summary="List email templates")
async def get_email_templates(
    *,
    template_service: EmailTemplateService = Depends(
        EmailTemplateService.get_dependency
    ),
):
    return await template_service.list_templates()


@router.put(
    "/{template_type}",
    response_model=EmailTemplateGet,
    summary="Update an email template (admin)",
    description="Placeholders are written as {{name}}, see the variables of each template.",
)
async def update_email_template(
    *,
    template_type: EmailTemplateType,
    template_data: EmailTemplateUpdate,
    user_service: UserService = Depends(UserService.get_dependency),
    template_service: EmailTemplateService = Depends(
        EmailTemplateService.get_dependency
    ),
):
    await user_service.require_admin()
    return await template_service.update_template(template_type, template_data)
