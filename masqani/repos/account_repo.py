import logging
from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from masqani.core.errors import ConnectivityError, NotFoundError, WriteError
from masqani.core.mapper import ORMMapper
from masqani.models.models import (
    PROFILE_LOOKUP_ORDER,
    PROFILE_MODEL_BY_ROLE,
    LegacyProfile,
)
from masqani.schemas.schema import Account, ProfileSaveSchema

logger = logging.getLogger(__name__)

# copied forward when a legacy account is first saved into its role partition
LEGACY_CARRIED_FIELDS = (
    "name",
    "phone",
    "email",
    "unlocked_listings",
    "favorites",
    "saved_searches",
    "is_encrypted",
)


def _matches(model, *identifiers):
    clauses = []
    for identifier in filter(None, identifiers):
        clauses += [
            model.doc_key == identifier,
            model.user_id == identifier,
            model.email == identifier,
        ]
    return or_(*clauses)


class AccountRepo:
    """Profiles partitioned by role, plus the pre-split legacy store."""

    def __init__(self, db):
        self.db = db
        self.mapper = ORMMapper()

    async def _select_first(self, stmt):
        try:
            result = await self.db.execute(stmt)
        except (DBAPIError, OSError) as e:
            raise ConnectivityError(f"Profile lookup failed: {e}") from e
        return result.scalars().first()

    async def _find_row(self, identifier: str, for_update: bool = False):
        for model in PROFILE_LOOKUP_ORDER:
            stmt = select(model).where(_matches(model, identifier))
            if for_update:
                stmt = stmt.with_for_update()
            row = await self._select_first(stmt)
            if row is not None:
                return row
        return None

    async def get_profile(self, identifier: str) -> Optional[Account]:
        if not identifier:
            return None
        row = await self._find_row(identifier)
        if row is None:
            return None
        return self.mapper.account(row)

    async def save_profile(self, data: ProfileSaveSchema) -> Account:
        model = PROFILE_MODEL_BY_ROLE[data.role]
        doc_key = data.email or data.id
        fields = data.model_dump(exclude_unset=True, exclude_none=True, exclude={"id"})

        try:
            row = await self._select_first(
                select(model).where(_matches(model, data.id, data.email))
            )
            if row is None:
                row = await self._new_row(model, data, doc_key)
                self.db.add(row)
            for key, value in fields.items():
                setattr(row, key, value)
            await self.db.commit()
            await self.db.refresh(row)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Saving profile %s failed: %s", doc_key, e)
            raise WriteError(f"Could not save profile: {e}") from e

        return self.mapper.account(row)

    async def _new_row(self, model, data: ProfileSaveSchema, doc_key: str):
        legacy = await self._select_first(
            select(LegacyProfile).where(_matches(LegacyProfile, data.id, data.email))
        )
        if legacy is None:
            return model(doc_key=doc_key, user_id=data.id, role=data.role)

        logger.info(
            "Moving legacy profile %s into %s", legacy.doc_key, model.__tablename__
        )
        carried = {field: getattr(legacy, field) for field in LEGACY_CARRIED_FIELDS}
        return model(
            doc_key=legacy.doc_key,
            user_id=data.id,
            role=data.role,
            **carried,
        )

    async def add_unlocked_listing(self, identifier: str, listing_id: str) -> Account:
        try:
            row = await self._find_row(identifier, for_update=True)
            if row is None:
                raise NotFoundError(f"No profile for '{identifier}'")

            current = list(row.unlocked_listings or [])
            if listing_id not in current:
                # JSON columns only track reassignment
                row.unlocked_listings = [*current, listing_id]
            await self.db.commit()
            await self.db.refresh(row)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                "Unlock write for %s on %s failed: %s", identifier, listing_id, e
            )
            raise WriteError(f"Could not record unlock: {e}") from e

        return self.mapper.account(row)
