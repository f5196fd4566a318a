"""
Email templates: placeholder rendering and the default template set.

Templates use ``{{name}}`` placeholders. Rendering is a pure substitution;
placeholders without a value are left untouched so a typo in a stored
template stays visible in the delivered mail instead of disappearing.
"""

import re
from typing import Mapping

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import config
from app.core.logging import get_logger
from app.models.email_template_model import EmailTemplate
from app.models.enums.email_template_type import EmailTemplateType

logger = get_logger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([a-zA-Z_][a-zA-Z0-9_]*)\s*\}\}")

# variables each template type is rendered with
TEMPLATE_VARIABLES: dict[EmailTemplateType, tuple[str, ...]] = {
    EmailTemplateType.AUCTION_WON: (
        "item_title",
        "final_price",
        "winner_name",
        "payment_instructions",
        "transaction_details",
    ),
    EmailTemplateType.ADMIN_NOTIFICATION: (
        "item_title",
        "final_price",
        "winner_email",
        "auction_details",
    ),
    EmailTemplateType.LISTING_CREATED: (
        "seller_name",
        "item_title",
        "start_price",
        "listing_url",
    ),
}


def render(template: str, variables: Mapping[str, object]) -> str:
    def _substitute(match: re.Match) -> str:
        name = match.group(1)
        if name not in variables:
            return match.group(0)
        return str(variables[name])

    return PLACEHOLDER_PATTERN.sub(_substitute, template)


def placeholders(template: str) -> set[str]:
    return set(PLACEHOLDER_PATTERN.findall(template))


_FOOTER = """
    <div style="margin-top: 30px; font-size: 12px; color: #666; text-align: center; border-top: 1px solid #eee; padding-top: 20px;">
      <p>Thank you for using TruBid!</p>
    </div>
"""

DEFAULT_TEMPLATES: dict[EmailTemplateType, dict[str, str]] = {
    EmailTemplateType.AUCTION_WON: {
        "subject": "Congratulations! You've won the auction for {{item_title}}",
        "body": """<!DOCTYPE html>
<html>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
  <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
    <h1 style="color: #1B2841;">Congratulations, {{winner_name}}!</h1>
    <p>You've won the auction for <strong>{{item_title}}</strong> with a final bid of <strong>${{final_price}}</strong>.</p>
    {{transaction_details}}
    <h2>Payment Instructions</h2>
    <p>Please complete your payment promptly to finalize your purchase:</p>
    {{payment_instructions}}
    <p>If you have any questions about payment or your purchase, please contact the seller directly.</p>
"""
        + _FOOTER
        + """  </div>
</body>
</html>
""",
    },
    EmailTemplateType.ADMIN_NOTIFICATION: {
        "subject": "Auction Completed: {{item_title}}",
        "body": """<!DOCTYPE html>
<html>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
  <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
    <h1 style="color: #1B2841;">Auction Complete</h1>
    <p><strong>{{item_title}}</strong> sold for <strong>${{final_price}}</strong> to {{winner_email}}.</p>
    {{auction_details}}
    <p>The buyer has been notified with payment instructions.</p>
"""
        + _FOOTER
        + """  </div>
</body>
</html>
""",
    },
    EmailTemplateType.LISTING_CREATED: {
        "subject": "Your listing {{item_title}} is live",
        "body": """<!DOCTYPE html>
<html>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
  <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
    <h1 style="color: #1B2841;">Hi {{seller_name}},</h1>
    <p>Your listing <strong>{{item_title}}</strong> was created with a starting price of <strong>${{start_price}}</strong>.</p>
    <p><a href="{{listing_url}}">View your listing</a></p>
"""
        + _FOOTER
        + """  </div>
</body>
</html>
""",
    },
}


async def ensure_default_templates(session: AsyncSession) -> list[EmailTemplateType]:
    """Create every default template type that is missing. Returns the created types."""
    result = await session.execute(select(EmailTemplate.template_type))
    existing = set(result.scalars().all())

    created: list[EmailTemplateType] = []
    for template_type, template in DEFAULT_TEMPLATES.items():
        if template_type in existing:
            continue
        session.add(
            EmailTemplate(
                template_type=template_type,
                from_email=config.mail_from,
                subject=template["subject"],
                body=template["body"],
            )
        )
        created.append(template_type)

    if created:
        await session.commit()
        logger.info(
            "default_email_templates_created",
            template_types=[t.value for t in created],
        )
    return created
