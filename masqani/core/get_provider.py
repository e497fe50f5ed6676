from masqani.fintechs.mpesa import PaymentGateway, SimulatedMpesaGateway
from masqani.services.activation_service import ActivationService
from masqani.services.transaction_engine import TransactionEngine
from masqani.services.unlock_service import UnlockService

from .get_db import AsyncSessionLocal
from .redis_idempotency import get_idempotency


class TransactionProvider:
    """Owns the transaction engine shared by unlocks and activations.

    Handles outlive the request that opened them, so this lives for the
    whole process.
    """

    def __init__(
        self,
        gateway: PaymentGateway | None = None,
        lock=None,
        session_factory=AsyncSessionLocal,
        **engine_options,
    ):
        self.engine = TransactionEngine(
            gateway or SimulatedMpesaGateway(),
            lock or get_idempotency("transactions"),
            **engine_options,
        )
        self.unlocks = UnlockService(self.engine, session_factory)
        self.activations = ActivationService(self.engine, session_factory)


provider = TransactionProvider()


def get_transactions() -> TransactionProvider:
    return provider
