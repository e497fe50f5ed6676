import asyncio

import pytest

from masqani.core.errors import ConflictError, NotFoundError, WriteError
from masqani.core.redis_idempotency import LocalIdempotency
from masqani.models.enums import TransactionKind, TransactionState
from masqani.services.transaction_engine import TransactionEngine

from fakes import ScriptedGateway


class BlockingGateway(ScriptedGateway):
    def __init__(self):
        super().__init__()
        self.release = asyncio.Event()

    async def request_payment(self, **kwargs):
        await self.release.wait()
        return await super().request_payment(**kwargs)


async def open_handle(engine, side_effect, key="unlock:p:l"):
    return await engine.open(
        kind=TransactionKind.UNLOCK,
        key=key,
        payer_id="p",
        subject_id="l",
        fee_amount=50,
        side_effect=side_effect,
    )


async def test_failed_side_effect_is_retried_without_charging_again():
    gateway = ScriptedGateway()
    engine = TransactionEngine(gateway, LocalIdempotency("engine"), timeout=1.0)
    attempts = []

    async def flaky_write():
        attempts.append(1)
        if len(attempts) == 1:
            raise WriteError("disk full")
        return "done"

    handle = await open_handle(engine, flaky_write)
    await engine.submit_phone(handle.id, "0712345678")
    failed = await handle.wait_for_outcome(timeout=2)

    assert failed.state == TransactionState.FAILED
    assert isinstance(failed.error, WriteError)
    assert handle.payment_confirmed

    await engine.retry(handle.id)
    await engine.submit_phone(handle.id, "0712345678")
    done = await handle.wait_for_outcome(timeout=2)

    assert done.state == TransactionState.SUCCEEDED
    assert done.result == "done"
    assert len(gateway.calls) == 1
    assert len(attempts) == 2


async def test_cannot_cancel_while_processing():
    gateway = BlockingGateway()
    engine = TransactionEngine(gateway, LocalIdempotency("engine"), timeout=1.0)

    async def effect():
        return "ok"

    handle = await open_handle(engine, effect)
    await engine.submit_phone(handle.id, "0712345678")

    with pytest.raises(ConflictError):
        await engine.cancel(handle.id)

    gateway.release.set()
    outcome = await handle.wait_for_outcome(timeout=2)
    assert outcome.state == TransactionState.SUCCEEDED


async def test_success_is_emitted_exactly_once():
    engine = TransactionEngine(ScriptedGateway(), LocalIdempotency("engine"), timeout=1.0)
    writes = []

    async def effect():
        writes.append(1)
        return "ok"

    handle = await open_handle(engine, effect)
    await engine.submit_phone(handle.id, "0712345678")
    outcomes = [o async for o in handle.outcomes()]

    assert [o.state for o in outcomes] == [TransactionState.SUCCEEDED]
    assert writes == [1]
    with pytest.raises(ConflictError):
        await engine.submit_phone(handle.id, "0712345678")
    with pytest.raises(ConflictError):
        await engine.retry(handle.id)


async def test_shared_lock_blocks_second_engine():
    lock = LocalIdempotency("shared")
    first = TransactionEngine(ScriptedGateway(), lock)
    second = TransactionEngine(ScriptedGateway(), lock)

    async def effect():
        return None

    await open_handle(first, effect)
    with pytest.raises(ConflictError):
        await open_handle(second, effect)


async def test_unknown_handle():
    engine = TransactionEngine(ScriptedGateway(), LocalIdempotency("engine"))

    with pytest.raises(NotFoundError):
        engine.get("nope")


async def test_finished_handles_are_pruned_after_retention():
    engine = TransactionEngine(
        ScriptedGateway(), LocalIdempotency("engine"), timeout=1.0, retention=0
    )

    async def effect():
        return "ok"

    done = await open_handle(engine, effect, key="unlock:p:a")
    await engine.submit_phone(done.id, "0712345678")
    await done.wait_for_outcome(timeout=2)
    pending = await open_handle(engine, effect, key="unlock:p:b")

    with pytest.raises(NotFoundError):
        engine.get(done.id)
    assert engine.get(pending.id) is pending


async def test_confirmed_payment_is_never_reaped():
    gateway = ScriptedGateway()
    engine = TransactionEngine(
        gateway, LocalIdempotency("engine"), timeout=1.0, lock_ttl=0
    )
    writes = []

    async def flaky_write():
        writes.append(1)
        if len(writes) == 1:
            raise WriteError("disk full")
        return "done"

    handle = await open_handle(engine, flaky_write)
    await engine.submit_phone(handle.id, "0712345678")
    await handle.wait_for_outcome(timeout=2)

    with pytest.raises(ConflictError):
        await open_handle(engine, flaky_write)
    assert handle.state == TransactionState.FAILED
    assert handle.payment_confirmed

    await engine.retry(handle.id)
    await engine.submit_phone(handle.id, "0712345678")
    outcome = await handle.wait_for_outcome(timeout=2)
    assert outcome.state == TransactionState.SUCCEEDED
    assert len(gateway.calls) == 1
