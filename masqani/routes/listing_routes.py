from typing import Optional

from fastapi import APIRouter, Depends
from fastapi_utils.cbv import cbv
from sqlalchemy.ext.asyncio import AsyncSession

from masqani.core.get_current_user import get_current_user, get_optional_user
from masqani.core.get_db import get_db_async
from masqani.core.safe_handler import safe_handler
from masqani.core.validators import jwt_protect
from masqani.schemas.schema import (
    Account,
    ListingFeed,
    ListingView,
    PhotoBatchOut,
    PhotoBatchRequest,
    PhotoUploadOut,
    PhotoUploadRequest,
    Review,
    ReviewCreate,
    VacancyUpdate,
)
from masqani.services.listing_image_service import ListingImageService
from masqani.services.listing_service import ListingService

router = APIRouter(tags=["Listings"])


@cbv(router=router)
class ListingRoutes:
    @router.get("/listings", response_model=ListingFeed)
    @safe_handler
    async def get_all(
        self,
        db: AsyncSession = Depends(get_db_async),
        viewer: Optional[Account] = Depends(get_optional_user),
    ):
        return await ListingService(db).get_feed(viewer)

    @router.post("/listings/photos", status_code=201, response_model=PhotoUploadOut)
    @safe_handler
    async def upload_photo(
        self,
        data: PhotoUploadRequest,
        current_user: Account = Depends(get_current_user),
    ):
        url = await ListingImageService().upload_photo(
            current_user, data.listing_key, data.index, data.payload
        )
        return PhotoUploadOut(url=url)

    @router.post("/listings/photos/batch", response_model=PhotoBatchOut)
    @safe_handler
    async def upload_pending(
        self,
        data: PhotoBatchRequest,
        current_user: Account = Depends(get_current_user),
    ):
        return await ListingImageService().upload_pending_photos(
            current_user, data.listing_key, data.photos
        )

    @router.get("/listings/{listing_id}", response_model=ListingView)
    @safe_handler
    async def get(
        self,
        listing_id: str,
        db: AsyncSession = Depends(get_db_async),
        viewer: Optional[Account] = Depends(get_optional_user),
    ):
        return await ListingService(db).get_listing(listing_id, viewer)

    @router.post("/listings/{listing_id}/reviews", status_code=201, response_model=Review)
    @safe_handler
    async def add_review(
        self,
        listing_id: str,
        data: ReviewCreate,
        db: AsyncSession = Depends(get_db_async),
        current_user: Account = Depends(get_current_user),
    ):
        return await ListingService(db).add_review(listing_id, current_user, data)

    @router.post("/listings/{listing_id}/vacancy", response_model=ListingView)
    @safe_handler
    async def set_vacancy(
        self,
        listing_id: str,
        data: VacancyUpdate,
        db: AsyncSession = Depends(get_db_async),
        current_user: Account = Depends(get_current_user),
    ):
        return await ListingService(db).set_vacancy(
            listing_id, current_user, data.is_vacant
        )

    @router.post("/listings/{listing_id}/verify", response_model=ListingView)
    @safe_handler
    async def verify(
        self,
        listing_id: str,
        db: AsyncSession = Depends(get_db_async),
        subject: str = Depends(jwt_protect),
    ):
        return await ListingService(db).verify_listing(listing_id, subject)
