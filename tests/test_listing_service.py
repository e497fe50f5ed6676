from datetime import timedelta

import pytest

from masqani.core.errors import ConnectivityError, NotFoundError, RoleNotEligibleError
from masqani.core.settings import settings
from masqani.models.enums import UnitType
from masqani.models.utils import utcnow
from masqani.schemas.schema import (
    LandlordAccount,
    ListingOut,
    ListingPublicOut,
    ReviewCreate,
    TenantAccount,
)
from masqani.services.listing_service import ListingService, can_see_contact

from fakes import FakeCache

OWNER = LandlordAccount(id="landlord-1", name="Mama Wanjiru")
OTHER_LANDLORD = LandlordAccount(id="landlord-9")


class UnreachableRepo:
    async def get_listings(self):
        raise ConnectivityError("offline")


async def test_owner_sees_contact_without_unlocking(make_listing):
    listing = await make_listing()
    tenant = TenantAccount(id="tenant-1")
    unlocked = TenantAccount(id="tenant-2", unlocked_listings=[listing.id])

    assert can_see_contact(OWNER, listing)
    assert not can_see_contact(OTHER_LANDLORD, listing)
    assert not can_see_contact(tenant, listing)
    assert can_see_contact(unlocked, listing)
    assert not can_see_contact(None, listing)


async def test_public_projection_hides_title_and_contact(db, make_listing):
    listing = await make_listing(unit_type=UnitType.BEDSITTER)

    view = ListingService(db, cache=FakeCache()).project(listing, TenantAccount(id="t"))

    assert view.can_see_contact is False
    assert type(view.listing) is ListingPublicOut
    assert view.listing.display_title == "Bedsitter in Kimana"
    dumped = view.listing.model_dump()
    assert "title" not in dumped
    assert "landlord_phone" not in dumped


async def test_unlocked_view_carries_contact(db, make_listing):
    listing = await make_listing()
    viewer = TenantAccount(id="t", unlocked_listings=[listing.id])

    view = ListingService(db, cache=FakeCache()).project(listing, viewer)

    assert isinstance(view.listing, ListingOut)
    assert view.listing.title == "Baraka Apartments"
    assert view.listing.landlord_phone == "0712000111"


async def test_expired_airbnb_hidden_from_tenants_only(db, make_listing):
    expired = await make_listing(
        unit_type=UnitType.AIRBNB, subscription_expiry=utcnow() - timedelta(days=1)
    )
    live = await make_listing(
        unit_type=UnitType.AIRBNB, subscription_expiry=utcnow() + timedelta(days=5)
    )
    service = ListingService(db, cache=FakeCache())

    tenant_feed = await service.get_feed(TenantAccount(id="t"))
    owner_feed = await service.get_feed(OWNER)

    assert [item.listing.id for item in tenant_feed.items] == [live.id]
    assert {item.listing.id for item in owner_feed.items} == {expired.id, live.id}


async def test_feed_falls_back_to_cached_snapshot(db, make_listing):
    listing = await make_listing()
    cache = FakeCache()
    service = ListingService(db, cache=cache)
    await service.get_feed(None)

    offline_service = ListingService(db, cache=cache)
    offline_service.repo = UnreachableRepo()
    feed = await offline_service.get_feed(None)

    assert feed.offline is True
    assert [item.listing.id for item in feed.items] == [listing.id]
    assert feed.items[0].can_see_contact is False


async def test_feed_without_snapshot_is_empty_offline(db):
    service = ListingService(db, cache=FakeCache())
    service.repo = UnreachableRepo()

    feed = await service.get_feed(None)

    assert feed.offline is True
    assert feed.items == []


async def test_add_review_appends(db, make_listing):
    listing = await make_listing()
    service = ListingService(db, cache=FakeCache())

    review = await service.add_review(
        listing.id,
        TenantAccount(id="t", name="Achieng"),
        ReviewCreate(rating=5, comment=" Safi sana "),
    )
    view = await service.get_listing(listing.id, None)

    assert review.comment == "Safi sana"
    assert [r.id for r in view.listing.reviews] == [review.id]


async def test_only_owner_toggles_vacancy(db, make_listing):
    listing = await make_listing()
    service = ListingService(db, cache=FakeCache())

    with pytest.raises(RoleNotEligibleError):
        await service.set_vacancy(listing.id, OTHER_LANDLORD, False)

    view = await service.set_vacancy(listing.id, OWNER, False)
    assert view.listing.is_vacant is False


async def test_expired_listing_by_id_is_hidden_from_tenants(db, make_listing):
    expired = await make_listing(
        unit_type=UnitType.AIRBNB, subscription_expiry=utcnow() - timedelta(days=3)
    )
    service = ListingService(db, cache=FakeCache())

    with pytest.raises(NotFoundError):
        await service.get_listing(expired.id, TenantAccount(id="t"))
    with pytest.raises(NotFoundError):
        await service.get_listing(expired.id, None)

    view = await service.get_listing(expired.id, OWNER)
    assert view.can_see_contact is True


async def test_only_operators_verify_listings(db, make_listing, monkeypatch):
    listing = await make_listing()
    service = ListingService(db, cache=FakeCache())
    monkeypatch.setattr(settings, "OPERATOR_SUBJECTS_RAW", "ops-1, ops-2")

    with pytest.raises(RoleNotEligibleError):
        await service.verify_listing(listing.id, "landlord-1")

    view = await service.verify_listing(listing.id, "ops-2")
    assert view.listing.is_verified is True
    assert view.can_see_contact is False
