"""Payment-gated transaction state machine shared by unlocks and activations.

    AwaitingPaymentInput -> Processing -> Succeeded | Failed
    Failed -> AwaitingPaymentInput        (retry)
    AwaitingPaymentInput | Failed -> Abandoned   (cancel)

The gateway call runs as a background task; callers follow progress through
``TransactionHandle.outcomes()`` or ``wait_for_outcome()``. The side effect
runs at most once per confirmed payment; if it fails the payment stays
confirmed and a retry only re-applies the side effect.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

from masqani.core.breaker import breaker
from masqani.core.errors import (
    ConflictError,
    MarketplaceError,
    NotFoundError,
    PaymentGatewayError,
)
from masqani.core.settings import settings
from masqani.core.validators import normalize_phone
from masqani.fintechs.mpesa import PaymentGateway
from masqani.models.enums import TransactionKind, TransactionState
from masqani.models.utils import new_id

logger = logging.getLogger(__name__)

SideEffect = Callable[[], Awaitable[Any]]

_RESERVED = "reserved"


@dataclass(frozen=True)
class TransactionOutcome:
    transaction_id: str
    state: TransactionState
    result: Any = None
    error: Optional[MarketplaceError] = None


class TransactionHandle:
    def __init__(
        self,
        *,
        kind: TransactionKind,
        key: str,
        payer_id: str,
        subject_id: str,
        fee_amount: int,
        side_effect: SideEffect,
    ):
        self.id = new_id()
        self.kind = kind
        self.key = key
        self.payer_id = payer_id
        self.subject_id = subject_id
        self.fee_amount = fee_amount
        self.state = TransactionState.AWAITING_PAYMENT_INPUT
        self.phone_number: Optional[str] = None
        self.attempts = 0
        self.result: Any = None
        self.error: Optional[MarketplaceError] = None
        self.payment_confirmed = False
        self.payment_reference: Optional[str] = None
        self.opened_at = time.monotonic()
        self.finished_at: Optional[float] = None

        self._side_effect = side_effect
        self._outcomes: asyncio.Queue = asyncio.Queue()
        self._settled = asyncio.Event()
        self._settled.set()
        self._task: Optional[asyncio.Task] = None

    async def outcomes(self) -> AsyncIterator[TransactionOutcome]:
        """Yield outcomes as they happen until the transaction finishes.

        Each outcome is delivered to one consumer only.
        """
        while True:
            outcome = await self._outcomes.get()
            yield outcome
            if outcome.state in (
                TransactionState.SUCCEEDED,
                TransactionState.ABANDONED,
            ):
                return

    async def wait_for_outcome(
        self, timeout: Optional[float] = None
    ) -> TransactionOutcome:
        return await asyncio.wait_for(self._outcomes.get(), timeout)

    async def wait_settled(self, timeout: Optional[float] = None) -> bool:
        """Wait until the handle is not processing. False on timeout."""
        try:
            await asyncio.wait_for(self._settled.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    def _emit(self):
        if self.state in (TransactionState.SUCCEEDED, TransactionState.ABANDONED):
            self.finished_at = time.monotonic()
        self._outcomes.put_nowait(
            TransactionOutcome(
                transaction_id=self.id,
                state=self.state,
                result=self.result,
                error=self.error,
            )
        )
        self._settled.set()

    def __repr__(self):
        return f"<TransactionHandle {self.id} {self.kind.value} {self.state.value}>"


class TransactionEngine:
    def __init__(
        self,
        gateway: PaymentGateway,
        lock,
        timeout: Optional[float] = None,
        lock_ttl: Optional[int] = None,
        min_phone_length: Optional[int] = None,
        phone_region: Optional[str] = None,
        retention: Optional[int] = None,
    ):
        self.gateway = gateway
        self.lock = lock
        self.timeout = settings.PAYMENT_TIMEOUT_SECONDS if timeout is None else timeout
        self.lock_ttl = settings.TRANSACTION_LOCK_TTL if lock_ttl is None else lock_ttl
        self.retention = (
            settings.TRANSACTION_RETENTION_SECONDS if retention is None else retention
        )
        self.min_phone_length = min_phone_length
        self.phone_region = phone_region

        self._handles: dict[str, TransactionHandle] = {}
        self._active_keys: dict[str, str] = {}

    async def open(
        self,
        *,
        kind: TransactionKind,
        key: str,
        payer_id: str,
        subject_id: str,
        fee_amount: int,
        side_effect: SideEffect,
    ) -> TransactionHandle:
        self._prune()
        await self._reap_stale(key)

        if key in self._active_keys:
            raise ConflictError(f"A {kind.value} for this request is already open")
        self._active_keys[key] = _RESERVED

        try:
            acquired = await self.lock.acquire(key, self.lock_ttl)
        except BaseException:
            self._active_keys.pop(key, None)
            raise
        if not acquired:
            self._active_keys.pop(key, None)
            raise ConflictError(f"A {kind.value} for this request is already open")

        handle = TransactionHandle(
            kind=kind,
            key=key,
            payer_id=payer_id,
            subject_id=subject_id,
            fee_amount=fee_amount,
            side_effect=side_effect,
        )
        self._handles[handle.id] = handle
        self._active_keys[key] = handle.id
        logger.info(
            "Opened %s %s for %s (Ksh %s)", kind.value, handle.id, payer_id, fee_amount
        )
        return handle

    def get(self, handle_id: str) -> TransactionHandle:
        handle = self._handles.get(handle_id)
        if handle is None:
            raise NotFoundError(f"Transaction '{handle_id}' not found")
        return handle

    async def submit_phone(self, handle_id: str, phone: str) -> TransactionHandle:
        handle = self.get(handle_id)
        if handle.state != TransactionState.AWAITING_PAYMENT_INPUT:
            raise ConflictError(
                f"Transaction is {handle.state.value}, not awaiting payment input"
            )

        handle.phone_number = normalize_phone(
            phone, self.min_phone_length, self.phone_region
        )
        self._begin(handle)
        return handle

    async def retry(self, handle_id: str) -> TransactionHandle:
        handle = self.get(handle_id)
        if handle.state != TransactionState.FAILED:
            raise ConflictError("Only failed transactions can be retried")

        handle.state = TransactionState.AWAITING_PAYMENT_INPUT
        handle.error = None
        logger.info("Transaction %s back to awaiting payment input", handle.id)
        return handle

    async def cancel(self, handle_id: str) -> TransactionHandle:
        handle = self.get(handle_id)
        if handle.state == TransactionState.ABANDONED:
            return handle
        if handle.state == TransactionState.PROCESSING:
            raise ConflictError("Payment is being processed and cannot be cancelled")
        if handle.state == TransactionState.SUCCEEDED:
            raise ConflictError("Transaction already succeeded")

        handle.state = TransactionState.ABANDONED
        await self._release(handle)
        handle._emit()
        logger.info("Transaction %s abandoned", handle.id)
        return handle

    def _begin(self, handle: TransactionHandle):
        handle.state = TransactionState.PROCESSING
        handle.attempts += 1
        handle.error = None
        handle._settled.clear()
        handle._task = asyncio.create_task(self._process(handle))

    async def _process(self, handle: TransactionHandle):
        try:
            if not handle.payment_confirmed:
                confirmed = await self._charge(handle)
                if not confirmed:
                    return

            try:
                result = await handle._side_effect()
            except MarketplaceError as e:
                logger.error(
                    "Payment %s confirmed but %s failed: %s",
                    handle.payment_reference,
                    handle.id,
                    e.detail,
                )
                self._fail(handle, e)
                return

            handle.result = result
            handle.state = TransactionState.SUCCEEDED
            await self._release(handle)
            handle._emit()
            logger.info("Transaction %s succeeded", handle.id)

        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("Transaction %s crashed", handle.id)
            self._fail(handle, MarketplaceError(f"Unexpected error: {e}"))

    async def _charge(self, handle: TransactionHandle) -> bool:
        try:
            payment = await asyncio.wait_for(
                breaker.call(
                    self.gateway.request_payment,
                    phone_number=handle.phone_number,
                    amount=handle.fee_amount,
                    reference=handle.id,
                ),
                self.timeout,
            )
        except asyncio.TimeoutError:
            self._fail(handle, PaymentGatewayError("Payment confirmation timed out"))
            return False
        except MarketplaceError as e:
            self._fail(handle, e)
            return False

        if not payment.success:
            self._fail(handle, PaymentGatewayError(payment.message or None))
            return False

        handle.payment_confirmed = True
        handle.payment_reference = payment.reference
        return True

    def _fail(self, handle: TransactionHandle, error: MarketplaceError):
        handle.state = TransactionState.FAILED
        handle.error = error
        handle._emit()
        logger.info("Transaction %s failed: %s", handle.id, error.detail)

    async def _release(self, handle: TransactionHandle):
        if self._active_keys.get(handle.key) == handle.id:
            self._active_keys.pop(handle.key, None)
        try:
            await self.lock.delete(handle.key)
        except MarketplaceError as e:
            # the lock expires on its own after lock_ttl
            logger.warning("Could not release lock %s: %s", handle.key, e.detail)

    async def _reap_stale(self, key: str):
        handle_id = self._active_keys.get(key)
        if handle_id is None or handle_id == _RESERVED:
            return
        handle = self._handles.get(handle_id)
        if handle is None:
            self._active_keys.pop(key, None)
            return
        # a confirmed payment is only ever settled by retry
        if handle.payment_confirmed:
            return
        expired = time.monotonic() - handle.opened_at > self.lock_ttl
        if expired and handle.state != TransactionState.PROCESSING:
            logger.info("Abandoning stale transaction %s", handle.id)
            await self.cancel(handle.id)

    def _prune(self):
        """Forget finished handles once nobody can still be polling them."""
        now = time.monotonic()
        finished = [
            handle_id
            for handle_id, handle in self._handles.items()
            if handle.finished_at is not None
            and now - handle.finished_at >= self.retention
        ]
        for handle_id in finished:
            del self._handles[handle_id]
        if finished:
            logger.debug("Pruned %d finished transactions", len(finished))
