from typing import AsyncGenerator, Callable

from fastapi import HTTPException, Request, status
from fastapi.security import HTTPBearer
from sqlalchemy.ext.asyncio.session import AsyncSession

from app.services.files.file_storage import FirebaseImageStorage, ImageStorage
from app.services.notifications.mail import MailSender, build_mail_sender

from ..db.database import async_session

security = HTTPBearer()


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    async with async_session() as session:
        yield session


def get_session_factory() -> Callable[[], AsyncSession]:
    # notifications open their own sessions, apart from the request session
    return async_session


def get_mail_sender() -> MailSender:
    return build_mail_sender()


def get_image_storage() -> ImageStorage:
    return FirebaseImageStorage()


async def get_user(request: Request) -> dict:
    # the middleware puts the verified firebase token claims here
    user = getattr(request.state, "user", None)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not authenticated.",
        )
    return user
