import asyncio
import logging

import cloudinary
import cloudinary.api
import cloudinary.exceptions
import cloudinary.uploader

from .breaker import breaker
from .errors import ConnectivityError, UploadError
from .settings import settings
from .url_parser import parser

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 5 * 1024 * 1024
ALLOWED_FORMATS = ["jpg", "jpeg", "png", "webp"]


class CloudinaryClient:
    def __init__(self):
        cloudinary.config(
            cloud_name=settings.CLOUDINARY_CLOUD_NAME,
            api_key=settings.CLOUDINARY_API_KEY,
            api_secret=settings.CLOUDINARY_SECRET_KEY,
            secure=True,
        )

    async def connect(self) -> bool:
        loop = asyncio.get_running_loop()
        try:
            info = await loop.run_in_executor(None, cloudinary.api.ping)
            return info.get("status") == "ok"
        except Exception as e:
            raise ConnectivityError(f"Cloudinary connection failed: {e}") from e

    async def upload(self, path: str, payload: bytes | str) -> str:
        """Store ``payload`` under ``path`` and return its https URL.

        ``payload`` is raw bytes, a ``data:`` URI or bare base64 text.
        """
        if isinstance(payload, (bytes, bytearray)):
            if len(payload) > MAX_FILE_SIZE:
                raise UploadError(f"File '{path}' exceeds maximum allowed size.")
            file = bytes(payload)
        elif isinstance(payload, str) and payload:
            file = payload if payload.startswith("data:") else (
                f"data:image/jpeg;base64,{payload}"
            )
        else:
            raise UploadError(f"Nothing to upload for '{path}'")

        async def handler():
            loop = asyncio.get_running_loop()
            try:
                result = await loop.run_in_executor(
                    None,
                    lambda: cloudinary.uploader.upload(
                        file,
                        public_id=path,
                        resource_type="image",
                        overwrite=True,
                        allowed_formats=ALLOWED_FORMATS,
                    ),
                )
            except cloudinary.exceptions.Error as e:
                raise UploadError(f"Cloudinary upload failed: {e}") from e
            except OSError as e:
                raise ConnectivityError(f"Cloudinary unreachable: {e}") from e
            return result

        result = await breaker.call(handler)
        url = result.get("secure_url") or result.get("url")
        if not url or not parser.is_remote_url(url):
            raise UploadError(f"Cloudinary returned no usable URL for '{path}'")
        logger.info("Uploaded %s to %s", path, url)
        return url


cloudinary_client = CloudinaryClient()
