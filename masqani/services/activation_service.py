import hashlib
import json
import logging
from datetime import datetime, timedelta
from typing import Optional

from masqani.core.errors import (
    IncompleteUploadError,
    NotFoundError,
    RoleNotEligibleError,
    ValidationError,
)
from masqani.core.get_db import AsyncSessionLocal
from masqani.core.settings import settings
from masqani.core.url_parser import parser
from masqani.models.enums import TransactionKind, UnitType
from masqani.models.utils import utcnow
from masqani.repos.account_repo import AccountRepo
from masqani.repos.listing_repo import ListingRepo
from masqani.schemas.schema import LandlordAccount, ListingDraft

from .pricing import FeeTable, fee, listing_fee_table
from .transaction_engine import TransactionEngine, TransactionHandle

logger = logging.getLogger(__name__)


def draft_identity(draft: ListingDraft) -> str:
    if draft.draft_id:
        return draft.draft_id
    canonical = json.dumps(
        draft.model_dump(mode="json", exclude={"draft_id"}), sort_keys=True
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def finalize_draft(
    draft: ListingDraft,
    landlord: LandlordAccount,
    now: Optional[datetime] = None,
) -> dict:
    """Build the listing record written once the listing fee is paid."""
    now = now or utcnow()
    is_airbnb = draft.unit_type == UnitType.AIRBNB

    data = draft.model_dump(exclude={"draft_id"})
    data.update(
        landlord_id=landlord.id,
        deposit=0 if is_airbnb else (draft.deposit or 0),
        photos=list(draft.photos),
        reviews=[],
        is_verified=False,
        date_listed=now,
        subscription_expiry=(
            now + timedelta(days=settings.AIRBNB_SUBSCRIPTION_DAYS)
            if is_airbnb
            else None
        ),
        landlord_name=landlord.name,
        landlord_phone=landlord.phone,
        landlord_email=landlord.email,
    )
    return data


class ActivationService:
    def __init__(
        self,
        engine: TransactionEngine,
        session_factory=AsyncSessionLocal,
        fees: Optional[FeeTable] = None,
        min_photos: Optional[int] = None,
    ):
        self.engine = engine
        self.session_factory = session_factory
        self.fees = fees or listing_fee_table()
        self.min_photos = settings.MIN_LISTING_PHOTOS if min_photos is None else min_photos

    async def start_activation(
        self, landlord_id: str, draft: ListingDraft
    ) -> TransactionHandle:
        async with self.session_factory() as db:
            landlord = await AccountRepo(db).get_profile(landlord_id)

        if landlord is None:
            raise NotFoundError(f"No profile for '{landlord_id}'")
        if not isinstance(landlord, LandlordAccount):
            raise RoleNotEligibleError("Only landlords can publish listings")
        if len(draft.photos) < self.min_photos:
            raise ValidationError(
                f"A listing needs at least {self.min_photos} photos, "
                f"got {len(draft.photos)}"
            )

        async def create():
            inline = [p for p in draft.photos if parser.is_inline_payload(p)]
            if inline:
                raise IncompleteUploadError(
                    f"{len(inline)} photo(s) have not finished uploading"
                )
            async with self.session_factory() as db:
                return await ListingRepo(db).create_listing(
                    finalize_draft(draft, landlord)
                )

        return await self.engine.open(
            kind=TransactionKind.ACTIVATION,
            key=f"activation:{landlord.id}:{draft_identity(draft)}",
            payer_id=landlord.id,
            subject_id=draft.draft_id or draft.title,
            fee_amount=fee(draft.unit_type, self.fees),
            side_effect=create,
        )

    async def submit_phone(self, handle_id: str, phone: str) -> TransactionHandle:
        return await self.engine.submit_phone(handle_id, phone)

    async def retry(self, handle_id: str) -> TransactionHandle:
        return await self.engine.retry(handle_id)

    async def cancel(self, handle_id: str) -> TransactionHandle:
        return await self.engine.cancel(handle_id)

    def get(self, handle_id: str) -> TransactionHandle:
        return self.engine.get(handle_id)
