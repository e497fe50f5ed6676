import logging
from typing import Optional

from masqani.core.errors import (
    AlreadyUnlockedError,
    NotFoundError,
    RoleNotEligibleError,
)
from masqani.core.get_db import AsyncSessionLocal
from masqani.models.enums import TransactionKind
from masqani.repos.account_repo import AccountRepo
from masqani.repos.listing_repo import ListingRepo
from masqani.schemas.schema import TenantAccount

from .listing_service import is_expired
from .pricing import FeeTable, fee, unlock_fee_table
from .transaction_engine import TransactionEngine, TransactionHandle

logger = logging.getLogger(__name__)


class UnlockService:
    """Contact unlocks: a tenant pays once per listing to see who owns it."""

    def __init__(
        self,
        engine: TransactionEngine,
        session_factory=AsyncSessionLocal,
        fees: Optional[FeeTable] = None,
    ):
        self.engine = engine
        self.session_factory = session_factory
        self.fees = fees or unlock_fee_table()

    async def _load(self, payer_id: str, listing_id: str):
        async with self.session_factory() as db:
            payer = await AccountRepo(db).get_profile(payer_id)
            listing = await ListingRepo(db).get_listing(listing_id)
        return payer, listing

    async def _already_unlocked(self, payer_id: str, listing_id: str) -> bool:
        async with self.session_factory() as db:
            payer = await AccountRepo(db).get_profile(payer_id)
        return isinstance(payer, TenantAccount) and payer.has_unlocked(listing_id)

    async def start_unlock(self, payer_id: str, listing_id: str) -> TransactionHandle:
        payer, listing = await self._load(payer_id, listing_id)

        if payer is None:
            raise NotFoundError(f"No profile for '{payer_id}'")
        if not isinstance(payer, TenantAccount):
            raise RoleNotEligibleError("Only tenants unlock listing contacts")
        if listing is None or is_expired(listing):
            raise NotFoundError(f"Listing '{listing_id}' not found")
        if payer.has_unlocked(listing.id):
            raise AlreadyUnlockedError()

        amount = fee(listing.unit_type, self.fees)
        unlock_for = payer.id

        async def record_unlock():
            async with self.session_factory() as db:
                return await AccountRepo(db).add_unlocked_listing(
                    unlock_for, listing.id
                )

        handle = await self.engine.open(
            kind=TransactionKind.UNLOCK,
            key=f"unlock:{payer.id}:{listing.id}",
            payer_id=payer.id,
            subject_id=listing.id,
            fee_amount=amount,
            side_effect=record_unlock,
        )

        # an earlier transaction may have finished between the read and the open
        if await self._already_unlocked(payer.id, listing.id):
            await self.engine.cancel(handle.id)
            raise AlreadyUnlockedError()
        return handle

    async def submit_phone(self, handle_id: str, phone: str) -> TransactionHandle:
        return await self.engine.submit_phone(handle_id, phone)

    async def retry(self, handle_id: str) -> TransactionHandle:
        return await self.engine.retry(handle_id)

    async def cancel(self, handle_id: str) -> TransactionHandle:
        return await self.engine.cancel(handle_id)

    def get(self, handle_id: str) -> TransactionHandle:
        return self.engine.get(handle_id)
