from datetime import timedelta
from decimal import Decimal

import pytest
from sqlmodel import select

from app.models.bid_model import Bid
from app.models.enums.bid_status import BidStatus
from app.models.enums.listing_status import ListingStatus
from app.models.listing_model import Listing
from app.services.auction.bid_service import BidService, minimum_bid
from app.services.auction.exceptions import (
    AuctionClosed,
    BidTooLow,
    NotFound,
    SelfBidForbidden,
    ValidationError,
)
from app.services.auction.lifecycle import AuctionLifecycle
from app.tests.conftest import NOW, SELLER_EMAIL, FrozenClock, make_listing

BIDDER_A = "alice@example.com"
BIDDER_B = "bob@example.com"


async def reload(session, listing_id: int) -> Listing:
    return await session.get(Listing, listing_id, populate_existing=True)


async def bids_of(session, listing_id: int) -> list[Bid]:
    result = await session.execute(
        select(Bid).where(Bid.listing_id == listing_id).order_by(Bid.id)
    )
    return list(result.scalars().all())


def test_minimum_bid_is_rounded_to_cents():
    listing = Listing(current_price=Decimal("10.005"), bid_increment=Decimal("0.01"))
    assert minimum_bid(listing) == Decimal("10.02")


@pytest.mark.asyncio
async def test_bidding_scenario_then_close(session, bid_service, lifecycle, clock):
    listing = await make_listing(session, starting_price="100.00")

    first = await bid_service.place_bid(listing.id, BIDDER_A, "105")
    assert first.status == BidStatus.ACTIVE

    with pytest.raises(BidTooLow) as error:
        await bid_service.place_bid(listing.id, BIDDER_B, "100")
    assert error.value.minimum == Decimal("110.00")
    assert str(error.value) == "Bid must be at least $110.00"

    second = await bid_service.place_bid(listing.id, BIDDER_B, "120")

    clock.advance(days=2)
    result = await lifecycle.close_auction(listing.id)

    assert result.closed
    assert result.winning_bid.id == second.id
    listing = await reload(session, listing.id)
    assert listing.status == ListingStatus.ENDED
    assert listing.current_price == Decimal("120")

    statuses = {bid.id: bid.status for bid in await bids_of(session, listing.id)}
    assert statuses == {first.id: BidStatus.LOST, second.id: BidStatus.WON}


@pytest.mark.asyncio
async def test_accepted_bids_never_lower_the_price(session, bid_service):
    listing = await make_listing(session)
    prices = []
    for amount in ("105", "110", "150", "155.50"):
        await bid_service.place_bid(listing.id, BIDDER_A, amount)
        prices.append((await reload(session, listing.id)).current_price)

    assert prices == sorted(prices)
    assert prices[-1] == Decimal("155.50")


@pytest.mark.asyncio
async def test_bid_below_minimum_changes_nothing(session, bid_service):
    listing = await make_listing(session)

    with pytest.raises(BidTooLow):
        await bid_service.place_bid(listing.id, BIDDER_A, "104.99")

    assert (await reload(session, listing.id)).current_price == Decimal("100")
    assert await bids_of(session, listing.id) == []


@pytest.mark.asyncio
async def test_seller_cannot_bid_on_own_listing(session, bid_service):
    listing = await make_listing(session)

    with pytest.raises(SelfBidForbidden):
        await bid_service.place_bid(listing.id, SELLER_EMAIL, "500")

    assert (await reload(session, listing.id)).current_price == Decimal("100")
    assert await bids_of(session, listing.id) == []


@pytest.mark.asyncio
async def test_closed_check_runs_before_self_bid_check(session, bid_service):
    listing = await make_listing(session, end_date=NOW - timedelta(minutes=1))

    # expired but not closed yet: still refused
    with pytest.raises(AuctionClosed):
        await bid_service.place_bid(listing.id, SELLER_EMAIL, "1")


@pytest.mark.asyncio
async def test_bid_at_the_deadline_is_refused(session, bid_service):
    listing = await make_listing(session, end_date=NOW)

    with pytest.raises(AuctionClosed):
        await bid_service.place_bid(listing.id, BIDDER_A, "200")


@pytest.mark.asyncio
async def test_bid_on_missing_listing(bid_service):
    with pytest.raises(NotFound):
        await bid_service.place_bid(999, BIDDER_A, "10")


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", ["abc", "NaN", "Infinity", None])
async def test_bid_amount_must_be_a_number(session, bid_service, amount):
    listing = await make_listing(session)

    with pytest.raises(ValidationError):
        await bid_service.place_bid(listing.id, BIDDER_A, amount)


@pytest.mark.asyncio
async def test_stale_price_swap_is_rejected(session, bid_service):
    listing_id = (await make_listing(session)).id
    await bid_service.place_bid(listing_id, BIDDER_A, "105")

    # a writer that still believes the price is 100
    bid = await bid_service._swap_price(
        listing_id, Decimal("100.00"), BIDDER_B, Decimal("106"), NOW
    )

    assert bid is None
    assert (await reload(session, listing_id)).current_price == Decimal("105")
    assert len(await bids_of(session, listing_id)) == 1


@pytest.mark.asyncio
async def test_bid_revalidated_after_concurrent_bid(
    session_factory, session, dispatcher, clock
):
    listing = await make_listing(session)

    async with session_factory() as session_a, session_factory() as session_b:
        service_a = BidService(
            session_a, AuctionLifecycle(session_a, dispatcher, now=clock), now=clock
        )
        service_b = BidService(
            session_b, AuctionLifecycle(session_b, dispatcher, now=clock), now=clock
        )

        read_listing = service_a.lifecycle.get_listing
        reads = []

        async def read_then_get_outbid(listing_id):
            snapshot = await read_listing(listing_id)
            reads.append(snapshot.current_price)
            if len(reads) == 1:
                # lands between the validation and the write of bidder A
                await service_b.place_bid(listing_id, BIDDER_B, "110")
            return snapshot

        service_a.lifecycle.get_listing = read_then_get_outbid

        with pytest.raises(BidTooLow) as error:
            await service_a.place_bid(listing.id, BIDDER_A, "110")

    assert reads == [Decimal("100"), Decimal("110")]
    assert error.value.minimum == Decimal("115.00")

    bids = await bids_of(session, listing.id)
    assert [(bid.created_by, bid.amount) for bid in bids] == [
        (BIDDER_B, Decimal("110"))
    ]


@pytest.mark.asyncio
async def test_buy_now_sells_listing(session, bid_service, mail_sender, templates):
    listing = await make_listing(session, buy_now_price=Decimal("300"))
    standing = await bid_service.place_bid(listing.id, BIDDER_A, "150")

    purchase = await bid_service.buy_now(listing.id, BIDDER_B)

    assert purchase.status == BidStatus.WON
    assert purchase.amount == Decimal("300")
    listing = await reload(session, listing.id)
    assert listing.status == ListingStatus.SOLD
    assert listing.current_price == Decimal("300")

    statuses = {bid.id: bid.status for bid in await bids_of(session, listing.id)}
    assert statuses == {standing.id: BidStatus.LOST, purchase.id: BidStatus.WON}

    assert len(mail_sender.to(BIDDER_B)) == 1
    assert "300.00" in mail_sender.to(BIDDER_B)[0].body


@pytest.mark.asyncio
async def test_bids_after_buy_now_are_closed(session, bid_service):
    listing = await make_listing(session, buy_now_price=Decimal("300"))
    await bid_service.buy_now(listing.id, BIDDER_B)

    with pytest.raises(AuctionClosed):
        await bid_service.place_bid(listing.id, BIDDER_A, "1000")
    with pytest.raises(AuctionClosed):
        await bid_service.buy_now(listing.id, BIDDER_A)


@pytest.mark.asyncio
async def test_buy_now_requires_price(session, bid_service):
    listing = await make_listing(session)

    with pytest.raises(ValidationError):
        await bid_service.buy_now(listing.id, BIDDER_A)


@pytest.mark.asyncio
async def test_seller_cannot_buy_own_listing(session, bid_service):
    listing = await make_listing(session, buy_now_price=Decimal("300"))

    with pytest.raises(SelfBidForbidden):
        await bid_service.buy_now(listing.id, SELLER_EMAIL)

    assert (await reload(session, listing.id)).status == ListingStatus.ACTIVE


@pytest.mark.asyncio
async def test_buy_now_after_deadline_is_refused(session, bid_service):
    listing = await make_listing(
        session,
        buy_now_price=Decimal("300"),
        end_date=NOW - timedelta(seconds=1),
    )

    with pytest.raises(AuctionClosed):
        await bid_service.buy_now(listing.id, BIDDER_A)


@pytest.mark.asyncio
async def test_listing_bids_newest_first(session, bid_service, clock):
    listing = await make_listing(session)
    await bid_service.place_bid(listing.id, BIDDER_A, "105")
    clock.advance(minutes=1)
    await bid_service.place_bid(listing.id, BIDDER_B, "110")

    bids = await bid_service.get_listing_bids(listing.id)

    assert [bid.created_by for bid in bids] == [BIDDER_B, BIDDER_A]


@pytest.mark.asyncio
async def test_bid_loses_to_close_between_validation_and_write(
    session_factory, session, dispatcher, clock
):
    listing = await make_listing(session, end_date=NOW + timedelta(minutes=1))
    closer_clock = FrozenClock(NOW + timedelta(minutes=2))

    async with session_factory() as session_a, session_factory() as session_b:
        service_a = BidService(
            session_a, AuctionLifecycle(session_a, dispatcher, now=clock), now=clock
        )
        closer = AuctionLifecycle(session_b, dispatcher, now=closer_clock)

        read_listing = service_a.lifecycle.get_listing
        reads = []

        async def read_then_auction_closes(listing_id):
            snapshot = await read_listing(listing_id)
            reads.append(snapshot.status)
            if len(reads) == 1:
                # the clock closes the auction after bidder A was validated
                result = await closer.close_auction(listing_id)
                assert result.closed
            return snapshot

        service_a.lifecycle.get_listing = read_then_auction_closes

        with pytest.raises(AuctionClosed):
            await service_a.place_bid(listing.id, BIDDER_A, "200")

    assert reads == [ListingStatus.ACTIVE, ListingStatus.ENDED]
    listing = await reload(session, listing.id)
    assert listing.status == ListingStatus.ENDED
    assert listing.current_price == Decimal("100")
    assert await bids_of(session, listing.id) == []


@pytest.mark.asyncio
async def test_buy_now_refused_once_bids_reach_its_price(session, bid_service):
    listing = await make_listing(session, buy_now_price=Decimal("150"))
    high_bid = await bid_service.place_bid(listing.id, BIDDER_A, "400")

    with pytest.raises(ValidationError) as error:
        await bid_service.buy_now(listing.id, BIDDER_B)
    assert error.value.field == "buy_now_price"

    listing = await reload(session, listing.id)
    assert listing.status == ListingStatus.ACTIVE
    assert listing.current_price == Decimal("400")
    [bid] = await bids_of(session, listing.id)
    assert (bid.id, bid.status) == (high_bid.id, BidStatus.ACTIVE)


@pytest.mark.asyncio
async def test_buy_now_loses_to_bid_reaching_its_price(
    session_factory, session, dispatcher, clock
):
    listing = await make_listing(session, buy_now_price=Decimal("150"))

    async with session_factory() as session_a, session_factory() as session_b:
        service_a = BidService(
            session_a, AuctionLifecycle(session_a, dispatcher, now=clock), now=clock
        )
        service_b = BidService(
            session_b, AuctionLifecycle(session_b, dispatcher, now=clock), now=clock
        )

        read_listing = service_a.lifecycle.get_listing
        reads = []

        async def read_then_get_outbid(listing_id):
            snapshot = await read_listing(listing_id)
            reads.append(snapshot.current_price)
            if len(reads) == 1:
                # lands between the buy-now checks and the sale
                await service_b.place_bid(listing_id, BIDDER_A, "200")
            return snapshot

        service_a.lifecycle.get_listing = read_then_get_outbid

        with pytest.raises(ValidationError):
            await service_a.buy_now(listing.id, BIDDER_B)

    listing = await reload(session, listing.id)
    assert listing.status == ListingStatus.ACTIVE
    assert listing.current_price == Decimal("200")
    bids = await bids_of(session, listing.id)
    assert [(bid.created_by, bid.status) for bid in bids] == [
        (BIDDER_A, BidStatus.ACTIVE)
    ]
