import asyncio

from masqani.core.errors import UploadError
from masqani.fintechs.mpesa import PaymentResult

PHOTO_URLS = [f"https://res.cloudinary.com/demo/listing/{n}.jpg" for n in range(8)]


class ScriptedGateway:
    """Confirms or declines in the order given, then keeps confirming."""

    def __init__(self, script=None, delay=0.0):
        self.script = list(script or [])
        self.delay = delay
        self.calls = []

    async def request_payment(self, *, phone_number, amount, reference):
        self.calls.append((phone_number, amount, reference))
        if self.delay:
            await asyncio.sleep(self.delay)
        success = self.script.pop(0) if self.script else True
        return PaymentResult(
            success=success,
            reference=f"R{len(self.calls)}",
            message="" if success else "Declined by payer",
        )


class FakeBlobStore:
    def __init__(self, reject=()):
        self.reject = set(reject)
        self.uploads = []

    async def upload(self, path, payload):
        if payload in self.reject:
            raise UploadError("rejected")
        self.uploads.append(path)
        return f"https://cdn.test/{path}.jpg"


class FakeCache:
    def __init__(self, snapshot=None):
        self.store = {}
        if snapshot is not None:
            self.store["listings:snapshot"] = snapshot

    async def get_json(self, key):
        return self.store.get(key)

    async def set_json(self, key, value, ttl=3600):
        self.store[key] = value
