import logging
from typing import List, Optional

from masqani.core.cache import cache as default_cache
from masqani.core.errors import ConnectivityError, NotFoundError, RoleNotEligibleError
from masqani.core.mapper import ORMMapper
from masqani.core.settings import settings
from masqani.models.utils import as_utc, new_id, utcnow
from masqani.repos.listing_repo import ListingRepo
from masqani.schemas.schema import (
    Account,
    LandlordAccount,
    ListingFeed,
    ListingOut,
    ListingPublicOut,
    ListingView,
    Review,
    ReviewCreate,
    TenantAccount,
)

logger = logging.getLogger(__name__)


def can_see_contact(viewer: Optional[Account], listing) -> bool:
    if isinstance(viewer, TenantAccount):
        return viewer.has_unlocked(listing.id)
    if isinstance(viewer, LandlordAccount):
        return viewer.owns(listing)
    return False


def is_expired(listing, now=None) -> bool:
    expiry = as_utc(listing.subscription_expiry)
    return expiry is not None and expiry < (now or utcnow())


class ListingService:
    def __init__(self, db, cache=default_cache):
        self.repo = ListingRepo(db)
        self.cache = cache
        self.mapper = ORMMapper()

    def project(self, listing, viewer: Optional[Account]) -> ListingView:
        full = (
            listing
            if isinstance(listing, ListingOut)
            else self.mapper.one(listing, ListingOut)
        )
        if can_see_contact(viewer, full):
            return ListingView(can_see_contact=True, listing=full)
        public = ListingPublicOut.model_validate(
            full.model_dump(include=set(ListingPublicOut.model_fields))
        )
        return ListingView(can_see_contact=False, listing=public)

    def visible_in_feed(self, listing, viewer: Optional[Account], now=None) -> bool:
        if not is_expired(listing, now):
            return True
        return isinstance(viewer, LandlordAccount) and viewer.owns(listing)

    async def get_feed(self, viewer: Optional[Account] = None) -> ListingFeed:
        offline = False
        try:
            rows = await self.repo.get_listings()
            listings = self.mapper.many(rows, ListingOut)
            await self._store_snapshot(listings)
        except ConnectivityError as e:
            logger.warning("Serving listings offline: %s", e.detail)
            offline = True
            listings = await self._load_snapshot()

        now = utcnow()
        items = [
            self.project(listing, viewer)
            for listing in listings
            if self.visible_in_feed(listing, viewer, now)
        ]
        return ListingFeed(offline=offline, items=items)

    async def get_listing(self, listing_id: str, viewer: Optional[Account]) -> ListingView:
        listing = await self.repo.get_listing(listing_id)
        if listing is None or not self.visible_in_feed(listing, viewer):
            raise NotFoundError(f"Listing '{listing_id}' not found")
        return self.project(listing, viewer)

    async def add_review(
        self, listing_id: str, reviewer: Account, payload: ReviewCreate
    ) -> Review:
        review = Review(
            id=new_id(),
            user_id=reviewer.id,
            user_name=reviewer.name or "Anonymous",
            rating=payload.rating,
            comment=payload.comment,
            date=utcnow(),
        )
        await self.repo.append_review(listing_id, review.model_dump(mode="json"))
        logger.info("Review %s added to %s", review.id, listing_id)
        return review

    async def set_vacancy(
        self, listing_id: str, landlord: Account, is_vacant: bool
    ) -> ListingView:
        listing = await self.repo.get_listing(listing_id)
        if listing is None:
            raise NotFoundError(f"Listing '{listing_id}' not found")
        if not (isinstance(landlord, LandlordAccount) and landlord.owns(listing)):
            raise RoleNotEligibleError("Only the owning landlord can change vacancy")

        listing = await self.repo.update_listing(listing_id, {"is_vacant": is_vacant})
        return self.project(listing, landlord)

    async def verify_listing(self, listing_id: str, subject: str) -> ListingView:
        if subject not in settings.OPERATOR_SUBJECTS:
            raise RoleNotEligibleError("Only operators verify listings")

        listing = await self.repo.update_listing(listing_id, {"is_verified": True})
        logger.info("Listing %s verified by %s", listing_id, subject)
        return self.project(listing, None)

    async def _store_snapshot(self, listings: List[ListingOut]):
        try:
            await self.cache.set_json(
                settings.LISTINGS_CACHE_KEY,
                [item.model_dump(mode="json") for item in listings],
                ttl=settings.LISTINGS_CACHE_TTL,
            )
        except ConnectivityError as e:
            logger.warning("Listing snapshot not cached: %s", e.detail)

    async def _load_snapshot(self) -> List[ListingOut]:
        try:
            snapshot = await self.cache.get_json(settings.LISTINGS_CACHE_KEY)
        except ConnectivityError as e:
            logger.warning("Listing snapshot unavailable: %s", e.detail)
            return []
        if not snapshot:
            return []
        return [ListingOut.model_validate(item) for item in snapshot]
