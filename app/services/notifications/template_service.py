from typing import List

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import asc, select

from app.api.dependencies import get_async_session
from app.core.logging import get_logger
from app.models.email_template_model import EmailTemplate
from app.models.enums.email_template_type import EmailTemplateType
from app.schemas.email_template_schema import EmailTemplateGet, EmailTemplateUpdate
from app.services.auction.exceptions import NotFound, ValidationError
from app.services.notifications.templates import TEMPLATE_VARIABLES, placeholders

logger = get_logger(__name__)


def to_get(template: EmailTemplate) -> EmailTemplateGet:
    return EmailTemplateGet(
        id=template.id,
        template_type=template.template_type,
        from_email=template.from_email,
        subject=template.subject,
        body=template.body,
        variables=list(TEMPLATE_VARIABLES[template.template_type]),
    )


class EmailTemplateService:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_templates(self) -> List[EmailTemplateGet]:
        result = await self.session.execute(
            select(EmailTemplate).order_by(asc(EmailTemplate.id))
        )
        return [to_get(template) for template in result.scalars().all()]

    async def get_template(self, template_type: EmailTemplateType) -> EmailTemplate:
        result = await self.session.execute(
            select(EmailTemplate).where(EmailTemplate.template_type == template_type)
        )
        template = result.scalars().first()
        if template is None:
            raise NotFound("EmailTemplate", template_type.value)
        return template

    async def update_template(
        self, template_type: EmailTemplateType, data: EmailTemplateUpdate
    ) -> EmailTemplateGet:
        template = await self.get_template(template_type)
        changes = data.model_dump(exclude_unset=True)
        for field, value in changes.items():
            if value is None or (isinstance(value, str) and not value.strip()):
                raise ValidationError(field, "This field cannot be empty.")
            setattr(template, field, value)

        # unknown placeholders are kept verbatim when rendering, flag them here
        unknown = (
            placeholders(template.subject) | placeholders(template.body)
        ) - set(TEMPLATE_VARIABLES[template_type])
        if unknown:
            logger.warning(
                "email_template_unknown_placeholders",
                template_type=template_type.value,
                placeholders=sorted(unknown),
            )

        self.session.add(template)
        await self.session.commit()
        await self.session.refresh(template)
        logger.info(
            "email_template_updated",
            template_type=template_type.value,
            fields=sorted(changes),
        )
        return to_get(template)

    @classmethod
    async def get_dependency(
        cls,
        session: AsyncSession = Depends(get_async_session),
    ) -> "EmailTemplateService":
        return cls(session)
