from fastapi import APIRouter, Depends
from fastapi_utils.cbv import cbv
from sqlalchemy.ext.asyncio import AsyncSession

from masqani.core.get_db import get_db_async
from masqani.core.safe_handler import safe_handler
from masqani.core.validators import jwt_protect
from masqani.schemas.schema import Account, ProfileSaveSchema
from masqani.services.profile_service import ProfileService

router = APIRouter(tags=["Profiles"])


@cbv(router=router)
class ProfileRoutes:
    @router.get("/profile/{identifier}", response_model=Account)
    @safe_handler
    async def get(
        self,
        identifier: str,
        db: AsyncSession = Depends(get_db_async),
        subject: str = Depends(jwt_protect),
    ):
        return await ProfileService(db).get_own_profile(subject, identifier)

    @router.put("/profile", response_model=Account)
    @safe_handler
    async def save(
        self,
        data: ProfileSaveSchema,
        db: AsyncSession = Depends(get_db_async),
        subject: str = Depends(jwt_protect),
    ):
        return await ProfileService(db).save_profile(subject, data)
