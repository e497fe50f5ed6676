import logging
from typing import List, Optional

from masqani.core.cloudinary_setup import cloudinary_client
from masqani.core.errors import (
    AuthRequiredError,
    ConnectivityError,
    RoleNotEligibleError,
    UploadError,
)
from masqani.core.url_parser import parser
from masqani.schemas.schema import Account, LandlordAccount, PhotoBatchOut

logger = logging.getLogger(__name__)


class ListingImageService:
    """Moves inline photo previews to the blob store before activation."""

    def __init__(self, store=cloudinary_client):
        self.store = store

    @staticmethod
    def photo_path(landlord_id: str, listing_key: str, index: int) -> str:
        return f"listings/{landlord_id}/{listing_key}/{index}"

    def _require_landlord(self, current_user: Optional[Account]) -> LandlordAccount:
        if current_user is None:
            raise AuthRequiredError("Sign in to upload listing photos")
        if not isinstance(current_user, LandlordAccount):
            raise RoleNotEligibleError("Only landlords upload listing photos")
        return current_user

    async def upload_photo(
        self,
        current_user: Optional[Account],
        listing_key: str,
        index: int,
        payload: str | bytes,
    ) -> str:
        landlord = self._require_landlord(current_user)
        return await self.store.upload(
            self.photo_path(landlord.id, listing_key, index), payload
        )

    async def upload_pending_photos(
        self,
        current_user: Optional[Account],
        listing_key: str,
        photos: List[str],
    ) -> PhotoBatchOut:
        landlord = self._require_landlord(current_user)
        uploaded: List[str] = []
        failed: List[int] = []

        for index, photo in enumerate(photos):
            if not parser.is_inline_payload(photo):
                uploaded.append(photo)
                continue
            try:
                url = await self.store.upload(
                    self.photo_path(landlord.id, listing_key, index), photo
                )
            except (UploadError, ConnectivityError) as e:
                logger.warning(
                    "Photo %s of %s not uploaded: %s", index, listing_key, e.detail
                )
                uploaded.append(photo)
                failed.append(index)
                continue
            uploaded.append(url)

        return PhotoBatchOut(photos=uploaded, failed=failed)
