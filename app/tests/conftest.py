import os

os.environ["TESTING"] = "1"

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import List

import pytest
import pytest_asyncio
from faker import Faker
from httpx import ASGITransport, AsyncClient
from sqlalchemy import StaticPool
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from app.api.dependencies import (
    get_async_session,
    get_image_storage,
    get_mail_sender,
    get_session_factory,
    get_user,
)
from app.api.main import app
from app.models.enums.listing_status import ListingStatus
from app.models.enums.user_role import UserRole
from app.models.listing_model import Listing
from app.models.user_model import User
from app.services.auction.bid_service import BidService
from app.services.auction.exceptions import NotificationFailure
from app.services.auction.lifecycle import AuctionLifecycle
from app.services.notifications.dispatcher import NotificationDispatcher
from app.services.notifications.templates import ensure_default_templates

DATABASE_URL = "sqlite+aiosqlite:///:memory:"

fake = Faker()

SELLER_EMAIL = "seller@example.com"
ADMIN_EMAIL = "admin@example.com"

# fixed "now" for the service level tests
NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


@dataclass
class SentMail:
    to: str
    from_email: str
    subject: str
    body: str


@dataclass
class FakeMailSender:
    sent: List[SentMail] = field(default_factory=list)
    fail: bool = False

    async def send(self, to: str, from_email: str, subject: str, body: str) -> None:
        if self.fail:
            raise NotificationFailure("mail provider is down")
        self.sent.append(SentMail(to, from_email, subject, body))

    def to(self, recipient: str) -> List[SentMail]:
        return [mail for mail in self.sent if mail.to == recipient]


class FakeImageStorage:
    def __init__(self) -> None:
        self.uploads = []

    async def upload(self, data: bytes, filename, content_type) -> str:
        self.uploads.append((data, filename, content_type))
        return f"https://storage.test/listings/{len(self.uploads)}-{filename}"


class FrozenClock:
    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


async def make_user(
    session: AsyncSession,
    email: str | None = None,
    role: UserRole = UserRole.USER,
) -> User:
    user = User(email=email or fake.unique.email(), full_name=fake.name(), role=role)
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


async def make_listing(session: AsyncSession, **overrides) -> Listing:
    """Insert a listing directly, bypassing the create checks (e.g. for past end dates)."""
    starting_price = Decimal(overrides.pop("starting_price", "100.00"))
    values = {
        "title": fake.sentence(nb_words=3),
        "description": fake.text(max_nb_chars=120),
        "category": "Collectibles",
        "condition": "Used",
        "starting_price": starting_price,
        "current_price": starting_price,
        "bid_increment": Decimal("5.00"),
        "buy_now_price": None,
        "status": ListingStatus.ACTIVE,
        "end_date": NOW + timedelta(days=1),
        "created_by": SELLER_EMAIL,
    }
    values.update(overrides)
    listing = Listing(**values)
    session.add(listing)
    await session.commit()
    await session.refresh(listing)
    return listing


@pytest_asyncio.fixture()
async def engine():
    engine = create_async_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False},
        # ensure that we are connecting to the same
        # in memory database
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
    await engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture()
async def session(session_factory) -> AsyncSession:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture()
async def templates(session_factory):
    async with session_factory() as session:
        await ensure_default_templates(session)


@pytest.fixture()
def mail_sender() -> FakeMailSender:
    return FakeMailSender()


@pytest.fixture()
def image_storage() -> FakeImageStorage:
    return FakeImageStorage()


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture()
def dispatcher(session_factory, mail_sender, clock) -> NotificationDispatcher:
    return NotificationDispatcher(session_factory, mail_sender, now=clock)


@pytest.fixture()
def lifecycle(session, dispatcher, clock) -> AuctionLifecycle:
    return AuctionLifecycle(session, dispatcher, now=clock)


@pytest.fixture()
def bid_service(session, lifecycle, clock) -> BidService:
    return BidService(session, lifecycle, now=clock)


@pytest.fixture()
def identity() -> dict:
    # token claims returned by get_user, tests switch users with login()
    return {"email": SELLER_EMAIL, "name": "Sam Seller"}


@pytest.fixture()
def login(identity):
    def _login(email: str, name: str | None = None) -> None:
        identity.clear()
        identity["email"] = email
        if name:
            identity["name"] = name

    return _login


@pytest_asyncio.fixture()
async def async_client(
    session_factory, mail_sender, image_storage, identity
) -> AsyncClient:
    async def override_get_async_session() -> AsyncSession:
        async with session_factory() as session:
            yield session

    async def override_get_user():
        return identity

    app.dependency_overrides[get_async_session] = override_get_async_session
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_mail_sender] = lambda: mail_sender
    app.dependency_overrides[get_image_storage] = lambda: image_storage
    app.dependency_overrides[get_user] = override_get_user

    headers = {"Authorization": "Bearer fake"}

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test", headers=headers
    ) as client:
        yield client

    app.dependency_overrides.clear()
