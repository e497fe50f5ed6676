import asyncio
import logging
import random
import uuid
from dataclasses import dataclass
from typing import Optional, Protocol

from masqani.core.settings import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentResult:
    success: bool
    reference: str
    message: str = ""


class PaymentGateway(Protocol):
    async def request_payment(
        self, *, phone_number: str, amount: int, reference: str
    ) -> PaymentResult: ...


class SimulatedMpesaGateway:
    """Stands in for an M-Pesa STK push.

    Waits ``delay_seconds`` and confirms with probability ``success_rate``.
    """

    def __init__(
        self,
        success_rate: Optional[float] = None,
        delay_seconds: Optional[float] = None,
        rng: Optional[random.Random] = None,
    ):
        self.success_rate = (
            settings.SIMULATED_GATEWAY_SUCCESS_RATE
            if success_rate is None
            else success_rate
        )
        self.delay_seconds = (
            settings.SIMULATED_GATEWAY_DELAY_SECONDS
            if delay_seconds is None
            else delay_seconds
        )
        self.rng = rng or random.Random()

    async def request_payment(
        self, *, phone_number: str, amount: int, reference: str
    ) -> PaymentResult:
        logger.info(
            "STK push of Ksh %s to %s (ref %s)", amount, phone_number, reference
        )
        await asyncio.sleep(self.delay_seconds)

        receipt = uuid.uuid4().hex[:10].upper()
        if self.rng.random() < self.success_rate:
            return PaymentResult(success=True, reference=receipt, message="Confirmed")

        logger.info("STK push %s declined", reference)
        return PaymentResult(
            success=False, reference=receipt, message="Payment was not completed"
        )
