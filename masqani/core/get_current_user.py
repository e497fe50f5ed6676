from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from masqani.repos.account_repo import AccountRepo
from masqani.schemas.schema import Account

from .errors import AuthRequiredError
from .get_db import get_db_async
from .validators import jwt_protect


async def get_current_user(
    subject: str = Depends(jwt_protect), db: AsyncSession = Depends(get_db_async)
) -> Account:
    account = await AccountRepo(db).get_profile(subject)

    if account is None:
        raise AuthRequiredError("No profile for this session")

    return account


async def get_optional_user(
    request: Request,
    db: AsyncSession = Depends(get_db_async),
) -> Account | None:
    try:
        subject = await jwt_protect(request)
    except AuthRequiredError:
        return None

    return await AccountRepo(db).get_profile(subject)
