from datetime import datetime, timedelta, timezone

import pytest

from app.models.enums.listing_status import ListingStatus
from app.models.listing_model import Listing
from app.services.auction.clock import AuctionClock, is_expired
from app.services.auction.exceptions import StorageUnavailable
from app.tests.conftest import NOW, make_listing


def test_is_expired_at_and_after_end_date():
    listing = Listing(end_date=NOW)

    assert is_expired(listing, NOW)
    assert is_expired(listing, NOW + timedelta(seconds=1))
    assert not is_expired(listing, NOW - timedelta(seconds=1))


def test_is_expired_treats_naive_end_date_as_utc():
    listing = Listing(end_date=datetime(2026, 3, 2, 12, 0))
    local = timezone(timedelta(hours=2))

    # 13:59 at UTC+2 is 11:59 UTC
    assert not is_expired(listing, datetime(2026, 3, 2, 13, 59, tzinfo=local))
    assert is_expired(listing, datetime(2026, 3, 2, 14, 0, tzinfo=local))


def test_is_expired_ignores_status():
    listing = Listing(end_date=NOW, status=ListingStatus.SOLD)
    assert is_expired(listing, NOW)


@pytest.mark.asyncio
async def test_tick_closes_only_expired_active_listings(session, lifecycle, clock):
    expired = await make_listing(session, end_date=NOW - timedelta(minutes=1))
    running = await make_listing(session, end_date=NOW + timedelta(minutes=1))
    draft = await make_listing(
        session, status=ListingStatus.DRAFT, end_date=NOW - timedelta(days=1)
    )
    auction_clock = AuctionClock(session, lifecycle, now=clock)

    results = await auction_clock.tick()

    assert [result.listing_id for result in results] == [expired.id]
    for listing, status in (
        (expired, ListingStatus.ENDED),
        (running, ListingStatus.ACTIVE),
        (draft, ListingStatus.DRAFT),
    ):
        await session.refresh(listing)
        assert listing.status == status

    # nothing left to close
    assert await auction_clock.tick() == []


@pytest.mark.asyncio
async def test_tick_picks_up_listings_as_time_passes(session, lifecycle, clock):
    listing = await make_listing(session, end_date=NOW + timedelta(minutes=1))
    auction_clock = AuctionClock(session, lifecycle, now=clock)

    assert await auction_clock.tick() == []
    clock.advance(minutes=1)
    [result] = await auction_clock.tick()

    assert result.listing_id == listing.id and result.closed


@pytest.mark.asyncio
async def test_one_failing_listing_does_not_stop_the_scan(session, lifecycle, clock):
    broken = await make_listing(session, end_date=NOW - timedelta(minutes=2))
    healthy = await make_listing(session, end_date=NOW - timedelta(minutes=1))
    # the failed close rolls the session back, which expires both objects
    broken_id, healthy_id = broken.id, healthy.id

    close_auction = lifecycle.close_auction

    async def flaky_close(listing_id, now=None):
        if listing_id == broken_id:
            raise StorageUnavailable("close_auction")
        return await close_auction(listing_id, now=now)

    lifecycle.close_auction = flaky_close
    auction_clock = AuctionClock(session, lifecycle, now=clock)

    results = await auction_clock.tick()

    assert [result.listing_id for result in results] == [healthy_id]
    await session.refresh(broken)
    await session.refresh(healthy)
    assert broken.status == ListingStatus.ACTIVE
    assert healthy.status == ListingStatus.ENDED
