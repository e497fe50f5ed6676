import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from masqani.core.errors import (
    ConnectivityError,
    NotFoundError,
    ValidationError,
    WriteError,
)
from masqani.core.url_parser import parser
from masqani.models.models import Listing

logger = logging.getLogger(__name__)


class ListingRepo:
    def __init__(self, db):
        self.db = db

    async def get_listings(self) -> List[Listing]:
        try:
            result = await self.db.execute(
                select(Listing).order_by(Listing.date_listed.desc())
            )
        except (DBAPIError, OSError) as e:
            logger.warning("Listing store unreachable: %s", e)
            raise ConnectivityError(f"Could not load listings: {e}") from e
        return list(result.scalars().all())

    async def get_listing(self, listing_id: str) -> Optional[Listing]:
        try:
            result = await self.db.execute(
                select(Listing).where(Listing.id == listing_id)
            )
        except (DBAPIError, OSError) as e:
            raise ConnectivityError(f"Could not load listing: {e}") from e
        return result.scalar_one_or_none()

    async def create_listing(self, data: dict) -> str:
        if any(not parser.is_remote_url(p) for p in data.get("photos", [])):
            raise ValidationError("Listing photos must be http(s) URLs")

        listing = Listing(**data)
        self.db.add(listing)

        try:
            await self.db.commit()
            await self.db.refresh(listing)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Listing insert failed: %s", e)
            raise WriteError(f"Could not create listing: {e}") from e

        logger.info("Listing %s created for %s", listing.id, listing.landlord_id)
        return listing.id

    async def update_listing(self, listing_id: str, fields: dict) -> Listing:
        if "photos" in fields:
            bad = [p for p in fields["photos"] if not parser.is_remote_url(p)]
            if bad:
                raise ValidationError("Listing photos must be http(s) URLs")

        listing = await self.get_listing(listing_id)
        if listing is None:
            raise NotFoundError(f"Listing '{listing_id}' not found")

        for key, value in fields.items():
            setattr(listing, key, value)

        try:
            await self.db.commit()
            await self.db.refresh(listing)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise WriteError(f"Could not update listing: {e}") from e
        return listing

    async def append_review(self, listing_id: str, review: dict) -> Listing:
        try:
            result = await self.db.execute(
                select(Listing).where(Listing.id == listing_id).with_for_update()
            )
            listing = result.scalar_one_or_none()
            if listing is None:
                raise NotFoundError(f"Listing '{listing_id}' not found")

            listing.reviews = [*(listing.reviews or []), review]
            await self.db.commit()
            await self.db.refresh(listing)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise WriteError(f"Could not add review: {e}") from e
        return listing
