from fastapi import APIRouter, Depends
from fastapi_utils.cbv import cbv

from masqani.core.errors import NotFoundError
from masqani.core.get_current_user import get_current_user
from masqani.core.get_provider import TransactionProvider, get_transactions
from masqani.core.mapper import ORMMapper
from masqani.core.safe_handler import safe_handler
from masqani.schemas.schema import (
    Account,
    ListingDraft,
    PhoneSubmit,
    TransactionOut,
    UnlockRequest,
)

router = APIRouter(tags=["Unlocks and Activations"])

LONG_POLL_SECONDS = 25.0


def owned_handle(transactions: TransactionProvider, handle_id: str, user: Account):
    handle = transactions.engine.get(handle_id)
    if handle.payer_id != user.id:
        raise NotFoundError(f"Transaction '{handle_id}' not found")
    return handle


@cbv(router=router)
class TransactionRoutes:
    mapper = ORMMapper()

    @router.post("/unlocks", status_code=201, response_model=TransactionOut)
    @safe_handler
    async def start_unlock(
        self,
        data: UnlockRequest,
        current_user: Account = Depends(get_current_user),
        transactions: TransactionProvider = Depends(get_transactions),
    ):
        handle = await transactions.unlocks.start_unlock(
            current_user.id, data.listing_id
        )
        return self.mapper.transaction(handle)

    @router.post("/activations", status_code=201, response_model=TransactionOut)
    @safe_handler
    async def start_activation(
        self,
        draft: ListingDraft,
        current_user: Account = Depends(get_current_user),
        transactions: TransactionProvider = Depends(get_transactions),
    ):
        handle = await transactions.activations.start_activation(
            current_user.id, draft
        )
        return self.mapper.transaction(handle)

    @router.get("/transactions/{transaction_id}", response_model=TransactionOut)
    @safe_handler
    async def get(
        self,
        transaction_id: str,
        current_user: Account = Depends(get_current_user),
        transactions: TransactionProvider = Depends(get_transactions),
    ):
        handle = owned_handle(transactions, transaction_id, current_user)
        return self.mapper.transaction(handle)

    @router.get(
        "/transactions/{transaction_id}/outcome", response_model=TransactionOut
    )
    @safe_handler
    async def wait_outcome(
        self,
        transaction_id: str,
        timeout: float = LONG_POLL_SECONDS,
        current_user: Account = Depends(get_current_user),
        transactions: TransactionProvider = Depends(get_transactions),
    ):
        handle = owned_handle(transactions, transaction_id, current_user)
        await handle.wait_settled(min(max(timeout, 0.0), LONG_POLL_SECONDS))
        return self.mapper.transaction(handle)

    @router.post("/transactions/{transaction_id}/phone", response_model=TransactionOut)
    @safe_handler
    async def submit_phone(
        self,
        transaction_id: str,
        data: PhoneSubmit,
        current_user: Account = Depends(get_current_user),
        transactions: TransactionProvider = Depends(get_transactions),
    ):
        owned_handle(transactions, transaction_id, current_user)
        handle = await transactions.engine.submit_phone(
            transaction_id, data.phone_number
        )
        return self.mapper.transaction(handle)

    @router.post("/transactions/{transaction_id}/retry", response_model=TransactionOut)
    @safe_handler
    async def retry(
        self,
        transaction_id: str,
        current_user: Account = Depends(get_current_user),
        transactions: TransactionProvider = Depends(get_transactions),
    ):
        owned_handle(transactions, transaction_id, current_user)
        handle = await transactions.engine.retry(transaction_id)
        return self.mapper.transaction(handle)

    @router.post("/transactions/{transaction_id}/cancel", response_model=TransactionOut)
    @safe_handler
    async def cancel(
        self,
        transaction_id: str,
        current_user: Account = Depends(get_current_user),
        transactions: TransactionProvider = Depends(get_transactions),
    ):
        owned_handle(transactions, transaction_id, current_user)
        handle = await transactions.engine.cancel(transaction_id)
        return self.mapper.transaction(handle)
