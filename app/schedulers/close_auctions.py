from typing import Callable, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import config
from app.core.logging import get_logger
from app.db.database import async_session
from app.services.auction.clock import AuctionClock
from app.services.auction.exceptions import StorageUnavailable
from app.services.auction.lifecycle import AuctionLifecycle, CloseResult
from app.services.notifications.dispatcher import NotificationDispatcher
from app.services.notifications.mail import MailSender, build_mail_sender

logger = get_logger(__name__)

CLOSE_AUCTIONS_JOB_ID = "close_expired_auctions"


async def close_expired_auctions(
    session_factory: Callable[[], AsyncSession] = async_session,
    mail_sender: Optional[MailSender] = None,
) -> List[CloseResult]:
    """One clock tick: close every active listing whose end date has passed."""
    dispatcher = NotificationDispatcher(
        session_factory, mail_sender or build_mail_sender()
    )
    async with session_factory() as session:
        lifecycle = AuctionLifecycle(session, dispatcher)
        clock = AuctionClock(session, lifecycle)
        try:
            return await clock.tick()
        except StorageUnavailable as error:
            # the next tick picks the listings up again
            logger.error("auction_tick_failed", error=str(error))
            return []


def register_auction_closer(scheduler: AsyncIOScheduler) -> None:
    scheduler.add_job(
        close_expired_auctions,
        "interval",
        seconds=config.auction_poll_interval_seconds,
        id=CLOSE_AUCTIONS_JOB_ID,
        # a slow tick is never overlapped by the next one
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
