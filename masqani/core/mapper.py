from typing import Iterable, Type, TypeVar

from pydantic import BaseModel

from masqani.schemas.schema import (
    Account,
    TransactionOut,
    account_adapter,
)

T = TypeVar("T", bound=BaseModel)

PROFILE_FIELDS = (
    "name",
    "phone",
    "email",
    "role",
    "unlocked_listings",
    "favorites",
    "saved_searches",
    "is_encrypted",
)


def _plain(value):
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    return value


class ORMMapper:
    @staticmethod
    def one(item, schema: Type[T]) -> T:
        return schema.model_validate(item)

    @staticmethod
    def many(items: Iterable, schema: Type[T]) -> list[T]:
        return [schema.model_validate(item) for item in items]

    @staticmethod
    def account(row) -> Account:
        data = {field: getattr(row, field) for field in PROFILE_FIELDS}
        data["id"] = row.user_id
        return account_adapter.validate_python(data)

    @staticmethod
    def transaction(handle) -> TransactionOut:
        return TransactionOut(
            id=handle.id,
            kind=handle.kind,
            state=handle.state,
            subject_id=handle.subject_id,
            fee_amount=handle.fee_amount,
            phone_number=handle.phone_number,
            attempts=handle.attempts,
            error=handle.error.detail if handle.error else None,
            error_code=handle.error.code if handle.error else None,
            result=_plain(handle.result),
        )
