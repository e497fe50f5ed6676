import logging
import time
from typing import Any, Awaitable, Callable

from .errors import ConnectivityError, MarketplaceError

logger = logging.getLogger(__name__)


class CircuitBreaker:
    def __init__(
        self,
        failure_threshold: int = 3,
        base_recovery_time: int = 10,
        max_recovery_time: int = 60,
    ):
        self.failure_count = 0
        self.failure_threshold = failure_threshold
        self.base_recovery_time = base_recovery_time
        self.max_recovery_time = max_recovery_time
        self.last_failure_time = 0
        self.state = "CLOSED"

    @property
    def current_recovery_time(self):
        return min(
            self.base_recovery_time
            * (2 ** max(self.failure_count - self.failure_threshold, 0)),
            self.max_recovery_time,
        )

    def _open(self):
        self.state = "OPEN"
        self.last_failure_time = time.time()
        logger.warning("Circuit opened after %s failures.", self.failure_count)

    def _half_open(self):
        self.state = "HALF_OPEN"
        logger.info("Circuit half-open: testing...")

    def _close(self):
        if self.state != "CLOSED":
            logger.info("Circuit closed: stable again.")
        self.state = "CLOSED"
        self.failure_count = 0

    async def call(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        now = time.time()

        if self.state == "OPEN":
            cooldown = self.current_recovery_time
            if now - self.last_failure_time < cooldown:
                raise ConnectivityError(
                    f"Circuit still open, retry after "
                    f"{cooldown - (now - self.last_failure_time):.1f}s"
                )
            self._half_open()

        try:
            result = await func(*args, **kwargs)
        except MarketplaceError as e:
            # business rejections say nothing about the remote's health
            if not isinstance(e, ConnectivityError):
                raise
            self._record_failure(e)
            raise
        except Exception as e:
            self._record_failure(e)
            raise

        self._close()
        return result

    def _record_failure(self, error: Exception):
        self.failure_count += 1
        logger.error("CircuitBreaker call failed (%s): %s", self.failure_count, error)

        if self.failure_count >= self.failure_threshold:
            self._open()


breaker = CircuitBreaker(
    failure_threshold=3,
    base_recovery_time=10,
)
