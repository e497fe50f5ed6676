import asyncio
import logging
import time
import urllib.parse
import uuid
from typing import Awaitable, Callable

import httpx

from .breaker import breaker
from .errors import ConflictError, ConnectivityError
from .settings import settings

logger = logging.getLogger(__name__)


class RedisIdempotency:
    def __init__(self, namespace: str = "idempotency"):
        redis_url = settings.UPSTASH_REDIS_URL
        if not redis_url:
            raise ValueError("Missing UPSTASH REDIS URL in the env variables")
        self.redis_url = redis_url.rstrip("/")
        self.redis_token = settings.UPSTASH_REDIS_TOKEN
        self.namespace = namespace

        if not self.redis_url or not self.redis_token:
            raise ValueError("Missing Upstash Redis environment variables")

        self.headers = {
            "Authorization": f"Bearer {self.redis_token}",
            "Content-Type": "application/json",
        }

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    async def acquire(self, key: str, ttl: int) -> bool:
        async def handler():
            encoded_key = urllib.parse.quote(self._key(key))
            token = uuid.uuid4().hex

            url = f"{self.redis_url}/set/{encoded_key}/{token}?EX={ttl}&NX"

            try:
                async with httpx.AsyncClient() as client:
                    res = await client.post(url, headers=self.headers)
            except httpx.RequestError as e:
                raise ConnectivityError(f"Redis SET NX failed: {e}") from e

            if res.status_code == 200 and res.json().get("result") == "OK":
                return True

            if res.status_code == 200 and res.json().get("result") is None:
                return False

            raise ConnectivityError(f"Redis SET NX failed ({res.status_code})")

        return await breaker.call(handler)

    async def delete(self, key: str) -> bool:
        async def handler():
            encoded_key = urllib.parse.quote(self._key(key))

            url = f"{self.redis_url}/del/{encoded_key}"

            try:
                async with httpx.AsyncClient() as client:
                    res = await client.post(url, headers=self.headers)
            except httpx.RequestError as e:
                raise ConnectivityError(f"Redis DEL failed: {e}") from e

            if res.status_code == 200:
                return True

            raise ConnectivityError(f"Redis DEL failed ({res.status_code})")

        return await breaker.call(handler)

    async def run_once(
        self,
        key: str,
        coro: Callable[[], Awaitable],
        ttl: int = 30,
    ):
        acquired = await self.acquire(key, ttl)
        if not acquired:
            raise ConflictError("Duplicate request in progress or already processed")
        try:
            return await coro()
        finally:
            await self.delete(key)


class LocalIdempotency:
    """Same contract as RedisIdempotency, scoped to one process."""

    def __init__(self, namespace: str = "idempotency"):
        self.namespace = namespace
        self._expiry: dict[str, float] = {}
        self._lock = asyncio.Lock()

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    async def acquire(self, key: str, ttl: int) -> bool:
        async with self._lock:
            now = time.monotonic()
            full_key = self._key(key)
            expires_at = self._expiry.get(full_key)
            if expires_at is not None and expires_at > now:
                return False
            self._expiry[full_key] = now + ttl
            return True

    async def delete(self, key: str) -> bool:
        async with self._lock:
            return self._expiry.pop(self._key(key), None) is not None

    async def run_once(
        self,
        key: str,
        coro: Callable[[], Awaitable],
        ttl: int = 30,
    ):
        acquired = await self.acquire(key, ttl)
        if not acquired:
            raise ConflictError("Duplicate request in progress or already processed")
        try:
            return await coro()
        finally:
            await self.delete(key)


def get_idempotency(namespace: str):
    if settings.upstash_configured:
        return RedisIdempotency(namespace=namespace)
    logger.info("Upstash not configured, using in-process locks for %s", namespace)
    return LocalIdempotency(namespace=namespace)
