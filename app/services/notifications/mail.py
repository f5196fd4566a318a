import asyncio
from typing import Protocol

from app.core.config import config
from app.core.logging import get_logger
from app.services.auction.exceptions import NotificationFailure

logger = get_logger(__name__)


class MailSender(Protocol):
    async def send(self, to: str, from_email: str, subject: str, body: str) -> None:
        ...


class SendGridMailSender:
    """Delivers HTML mail through the SendGrid API."""

    def __init__(self, api_key: str) -> None:
        self.api_key = api_key

    def _send_sync(self, to: str, from_email: str, subject: str, body: str) -> None:
        from sendgrid import SendGridAPIClient
        from sendgrid.helpers.mail import Content, Email, Mail, To

        mail = Mail(Email(from_email), To(to), subject, Content("text/html", body))
        response = SendGridAPIClient(self.api_key).send(mail)
        if response.status_code >= 400:
            raise NotificationFailure(
                f"SendGrid rejected mail to {to}: HTTP {response.status_code}"
            )

    async def send(self, to: str, from_email: str, subject: str, body: str) -> None:
        try:
            # the SendGrid client is blocking, keep it off the event loop
            await asyncio.to_thread(self._send_sync, to, from_email, subject, body)
        except NotificationFailure:
            raise
        except Exception as error:
            raise NotificationFailure(f"Sending mail to {to} failed: {error}") from error


class LogMailSender:
    """Used when no mail provider is configured: the message is only logged."""

    async def send(self, to: str, from_email: str, subject: str, body: str) -> None:
        logger.info(
            "mail_not_delivered",
            reason="no_mail_provider",
            to=to,
            from_email=from_email,
            subject=subject,
        )


def build_mail_sender() -> MailSender:
    if config.sendgrid_api_key:
        return SendGridMailSender(config.sendgrid_api_key)
    return LogMailSender()
