import pytest

from masqani.core.errors import NotFoundError
from masqani.models.enums import UserRole
from masqani.models.models import LandlordProfile, LegacyProfile, TenantProfile
from masqani.repos.account_repo import AccountRepo
from masqani.schemas.schema import LandlordAccount, ProfileSaveSchema, TenantAccount


async def test_lookup_prefers_landlord_partition(db):
    db.add(TenantProfile(doc_key="dup@masqani.co.ke", user_id="u1", role=UserRole.TENANT))
    db.add(
        LandlordProfile(doc_key="dup@masqani.co.ke", user_id="u1", role=UserRole.LANDLORD)
    )
    await db.commit()

    account = await AccountRepo(db).get_profile("u1")

    assert isinstance(account, LandlordAccount)


async def test_lookup_falls_back_to_legacy_store(db):
    db.add(
        LegacyProfile(
            doc_key="old@masqani.co.ke",
            user_id="old-1",
            role=UserRole.TENANT,
            email="old@masqani.co.ke",
            unlocked_listings=["l-9"],
        )
    )
    await db.commit()

    account = await AccountRepo(db).get_profile("old@masqani.co.ke")

    assert isinstance(account, TenantAccount)
    assert account.id == "old-1"
    assert account.unlocked_listings == ["l-9"]


async def test_unknown_identifier_returns_none(db):
    assert await AccountRepo(db).get_profile("nobody") is None


async def test_save_profile_merges_existing_fields(db):
    repo = AccountRepo(db)
    await repo.save_profile(
        ProfileSaveSchema(
            id="t1",
            role=UserRole.TENANT,
            name="Achieng",
            phone="0712345678",
            email="achieng@masqani.co.ke",
        )
    )

    saved = await repo.save_profile(
        ProfileSaveSchema(
            id="t1", role=UserRole.TENANT, email="achieng@masqani.co.ke", name="Achieng O."
        )
    )

    assert saved.name == "Achieng O."
    assert saved.phone == "0712345678"
    assert saved.doc_key == "achieng@masqani.co.ke"


async def test_add_unlocked_listing_is_idempotent(db, make_profile):
    await make_profile("t2")
    repo = AccountRepo(db)

    await repo.add_unlocked_listing("t2", "listing-a")
    account = await repo.add_unlocked_listing("t2", "listing-a")

    assert account.unlocked_listings == ["listing-a"]
    reread = await AccountRepo(db).get_profile("t2")
    assert reread.unlocked_listings == ["listing-a"]


async def test_add_unlocked_listing_keeps_order(db, make_profile):
    await make_profile("t3")
    repo = AccountRepo(db)

    await repo.add_unlocked_listing("t3", "b")
    account = await repo.add_unlocked_listing("t3", "a")

    assert account.unlocked_listings == ["b", "a"]


async def test_add_unlocked_listing_without_profile(db):
    with pytest.raises(NotFoundError):
        await AccountRepo(db).add_unlocked_listing("ghost", "listing-a")


async def test_lookup_follows_email_change(db):
    repo = AccountRepo(db)
    await repo.save_profile(
        ProfileSaveSchema(id="t5", role=UserRole.TENANT, email="old@masqani.co.ke")
    )
    await repo.save_profile(
        ProfileSaveSchema(id="t5", role=UserRole.TENANT, email="new@masqani.co.ke")
    )

    account = await repo.get_profile("new@masqani.co.ke")

    assert account.id == "t5"
    assert account.email == "new@masqani.co.ke"
    updated = await repo.add_unlocked_listing("new@masqani.co.ke", "listing-a")
    assert updated.unlocked_listings == ["listing-a"]


async def test_saving_legacy_account_keeps_its_lists(db):
    db.add(
        LegacyProfile(
            doc_key="tenant-9",
            user_id="tenant-9",
            role=UserRole.TENANT,
            unlocked_listings=["L1"],
            favorites=["L2"],
        )
    )
    await db.commit()
    repo = AccountRepo(db)

    saved = await repo.save_profile(
        ProfileSaveSchema(id="tenant-9", role=UserRole.TENANT, name="Wanjiku")
    )

    assert isinstance(saved, TenantAccount)
    assert saved.name == "Wanjiku"
    assert saved.unlocked_listings == ["L1"]
    assert saved.favorites == ["L2"]
    reread = await repo.get_profile("tenant-9")
    assert reread.unlocked_listings == ["L1"]
    assert reread.name == "Wanjiku"
