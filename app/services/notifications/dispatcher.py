from datetime import datetime
from html import escape
from typing import Callable, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import asc, select

from app.core.config import config
from app.core.logging import get_logger
from app.core.timeutils import utc_now
from app.db.retry import with_storage_retry
from app.models.bid_model import Bid
from app.models.email_template_model import EmailTemplate
from app.models.enums.email_template_type import EmailTemplateType
from app.models.enums.user_role import UserRole
from app.models.listing_model import Listing
from app.models.payment_settings_model import PaymentSettings
from app.models.user_model import User
from app.services.auction.exceptions import NotificationFailure, StorageUnavailable
from app.services.notifications.mail import MailSender
from app.services.notifications.payment_instructions import (
    NO_PAYMENT_SETTINGS,
    build_auction_details,
    build_payment_instructions,
    build_transaction_details,
    format_price,
)
from app.services.notifications.templates import render

logger = get_logger(__name__)


def display_name(email: str) -> str:
    return email.split("@")[0]


class NotificationDispatcher:
    """
    Sends templated emails. Delivery is best effort: nothing in here raises to
    the caller, every failure is logged and reported as ``False``.

    Lookups run in their own short-lived sessions so a failing notification
    never touches the session that closed the auction.
    """

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        mail_sender: MailSender,
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        self.session_factory = session_factory
        self.mail_sender = mail_sender
        self.now = now

    async def get_template(
        self, session: AsyncSession, template_type: EmailTemplateType
    ) -> Optional[EmailTemplate]:
        result = await session.execute(
            select(EmailTemplate).where(EmailTemplate.template_type == template_type)
        )
        return result.scalars().first()

    async def send_templated(
        self,
        template_type: EmailTemplateType,
        recipient: str,
        variables: Mapping[str, object],
        html_fragments: Optional[Mapping[str, str]] = None,
    ) -> bool:
        """
        Render and send a stored template. Plain ``variables`` are HTML escaped
        in the body; ``html_fragments`` are prebuilt markup and go in as is.
        """
        try:
            async with self.session_factory() as session:
                template = await with_storage_retry(
                    lambda: self.get_template(session, template_type),
                    action="get_email_template",
                    session=session,
                )
        except (StorageUnavailable, SQLAlchemyError) as error:
            logger.error(
                "email_template_lookup_failed",
                template_type=template_type.value,
                error=str(error),
            )
            return False

        if template is None:
            logger.warning(
                "email_template_missing",
                template_type=template_type.value,
                recipient=recipient,
            )
            return False

        subject = render(template.subject, variables)
        body_variables = {
            name: escape(str(value)) for name, value in variables.items()
        }
        body_variables.update(html_fragments or {})
        body = render(template.body, body_variables)
        try:
            await self.mail_sender.send(recipient, template.from_email, subject, body)
        except NotificationFailure as error:
            logger.error(
                "notification_failed",
                template_type=template_type.value,
                recipient=recipient,
                error=str(error),
            )
            return False

        logger.info(
            "notification_sent",
            template_type=template_type.value,
            recipient=recipient,
        )
        return True

    async def get_payment_settings(
        self, session: AsyncSession
    ) -> Optional[PaymentSettings]:
        result = await session.execute(
            select(PaymentSettings).order_by(asc(PaymentSettings.id)).limit(1)
        )
        return result.scalars().first()

    async def get_admin_recipients(
        self, session: AsyncSession, listing: Listing
    ) -> list[str]:
        """Every admin plus the seller, without duplicates."""
        result = await session.execute(
            select(User.email).where(User.role == UserRole.ADMIN).order_by(asc(User.id))
        )
        recipients = list(result.scalars().all())
        if listing.created_by and listing.created_by not in recipients:
            recipients.append(listing.created_by)
        return recipients

    async def notify_auction_won(self, listing: Listing, winning_bid: Bid) -> None:
        now = self.now()
        final_price = winning_bid.amount
        winner_email = winning_bid.created_by

        try:
            async with self.session_factory() as session:
                settings = await self.get_payment_settings(session)
            payment_instructions = build_payment_instructions(settings, listing)
        except SQLAlchemyError as error:
            logger.error("payment_settings_lookup_failed", error=str(error))
            payment_instructions = NO_PAYMENT_SETTINGS

        await self.send_templated(
            EmailTemplateType.AUCTION_WON,
            winner_email,
            {
                "winner_name": display_name(winner_email),
                "item_title": listing.title,
                "final_price": format_price(final_price),
            },
            html_fragments={
                "payment_instructions": payment_instructions,
                "transaction_details": build_transaction_details(
                    listing, final_price, now
                ),
            },
        )

        if not config.admin_notification_enabled:
            return

        try:
            async with self.session_factory() as session:
                recipients = await self.get_admin_recipients(session, listing)
        except SQLAlchemyError as error:
            logger.error("admin_recipients_lookup_failed", error=str(error))
            recipients = [listing.created_by]

        admin_variables = {
            "item_title": listing.title,
            "final_price": format_price(final_price),
            "winner_email": winner_email,
        }
        admin_fragments = {
            "auction_details": build_auction_details(
                listing, final_price, winner_email, now
            ),
        }
        for recipient in recipients:
            await self.send_templated(
                EmailTemplateType.ADMIN_NOTIFICATION,
                recipient,
                admin_variables,
                html_fragments=admin_fragments,
            )

    async def notify_listing_created(self, listing: Listing, seller: User) -> bool:
        return await self.send_templated(
            EmailTemplateType.LISTING_CREATED,
            seller.email,
            {
                "seller_name": seller.full_name or display_name(seller.email),
                "item_title": listing.title,
                "start_price": format_price(listing.starting_price),
                "listing_url": f"{config.frontend_url.rstrip('/')}/listings/{listing.id}",
            },
        )
