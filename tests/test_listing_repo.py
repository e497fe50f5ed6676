import pytest
from sqlalchemy.exc import OperationalError

from masqani.core.errors import ConnectivityError, NotFoundError, ValidationError
from masqani.models.enums import UnitType
from masqani.repos.listing_repo import ListingRepo


async def test_create_and_get_listing(db, make_listing):
    listing = await make_listing(unit_type=UnitType.TWO_BEDROOM, deposit=15000)

    fetched = await ListingRepo(db).get_listing(listing.id)

    assert fetched.unit_type == UnitType.TWO_BEDROOM
    assert fetched.deposit == 15000
    assert fetched.reviews == []
    assert fetched.display_title == "2 Bedroom in Kimana"


async def test_create_refuses_inline_photos(db):
    with pytest.raises(ValidationError):
        await ListingRepo(db).create_listing(
            {
                "landlord_id": "l1",
                "title": "Inline",
                "unit_type": UnitType.BEDSITTER,
                "price": 5000,
                "location_name": "Kimana",
                "photos": ["data:image/png;base64,AAAA"],
            }
        )


async def test_update_missing_listing(db):
    with pytest.raises(NotFoundError):
        await ListingRepo(db).update_listing("missing", {"is_vacant": False})


async def test_append_review_keeps_existing(db, make_listing):
    listing = await make_listing()
    repo = ListingRepo(db)

    await repo.append_review(listing.id, {"id": "r1", "rating": 4})
    updated = await repo.append_review(listing.id, {"id": "r2", "rating": 5})

    assert [r["id"] for r in updated.reviews] == ["r1", "r2"]


async def test_transport_failure_becomes_connectivity_error():
    class BrokenSession:
        async def execute(self, stmt):
            raise OperationalError("SELECT", {}, Exception("unable to open database"))

    with pytest.raises(ConnectivityError):
        await ListingRepo(BrokenSession()).get_listings()
