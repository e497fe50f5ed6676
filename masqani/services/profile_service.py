import logging

from masqani.core.errors import AuthRequiredError, NotFoundError, ValidationError
from masqani.core.redis_idempotency import get_idempotency
from masqani.repos.account_repo import AccountRepo
from masqani.schemas.schema import Account, ProfileSaveSchema

logger = logging.getLogger(__name__)

profile_lock = get_idempotency("profile-service")


class ProfileService:
    SAVE_LOCK_KEY = "save-profile"

    def __init__(self, db, idempotency=None):
        self.repo: AccountRepo = AccountRepo(db)
        self.idempotency = idempotency or profile_lock

    async def get_profile(self, identifier: str) -> Account:
        account = await self.repo.get_profile(identifier)
        if account is None:
            raise NotFoundError(f"No profile for '{identifier}'")
        return account

    async def get_own_profile(self, subject: str, identifier: str) -> Account:
        """Profiles carry contact details, so callers only read their own."""
        account = await self.get_profile(identifier)
        if subject not in {account.id, account.email}:
            raise NotFoundError(f"No profile for '{identifier}'")
        return account

    async def save_profile(self, subject: str, data: ProfileSaveSchema) -> Account:
        if subject not in {data.id, data.email}:
            raise AuthRequiredError("You can only save your own profile")

        async def handler():
            existing = await self.repo.get_profile(data.id)
            if existing is None and data.email:
                existing = await self.repo.get_profile(data.email)

            if existing is not None and existing.role != data.role:
                raise ValidationError("An account's role cannot be changed")

            account = await self.repo.save_profile(data)
            logger.info("Profile %s saved as %s", account.id, account.role.value)
            return account

        return await self.idempotency.run_once(
            f"{self.SAVE_LOCK_KEY}:{data.email or data.id}", handler
        )
