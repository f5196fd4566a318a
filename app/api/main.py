from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import Depends, FastAPI

from app.api.dependencies import security
from app.api.errors import register_exception_handlers
from app.api.middleware import authenticate_request, init_firebase
from app.api.routes import (
    email_templates_router,
    listings_router,
    payment_settings_router,
    users_router,
)
from app.core.config import config
from app.core.logging import get_logger, setup_logging
from app.db.database import async_session, init_db
from app.schedulers.close_auctions import register_auction_closer
from app.services.notifications.templates import ensure_default_templates

logger = get_logger(__name__)


async def lifespan(app: FastAPI):
    # Perform startup tasks
    setup_logging(config.log_level)
    init_firebase()
    await init_db()
    async with async_session() as session:
        await ensure_default_templates(session)

    scheduler = AsyncIOScheduler()
    register_auction_closer(scheduler)
    scheduler.start()
    app.state.scheduler = scheduler  # Store the scheduler in app state for access
    logger.info(
        "auction_closer_started",
        interval_seconds=config.auction_poll_interval_seconds,
    )
    yield

    # Cleanup
    scheduler.shutdown()


app = FastAPI(
    title=config.app_name, dependencies=[Depends(security)], lifespan=lifespan
)

app.include_router(users_router)
app.include_router(listings_router)
app.include_router(email_templates_router)
app.include_router(payment_settings_router)
register_exception_handlers(app)
app.middleware("http")(authenticate_request)
