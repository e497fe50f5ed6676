import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from masqani.models import models  # noqa: F401  registers tables on Base

from .cache import cache
from .cloudinary_setup import cloudinary_client
from .get_db import Base, async_engine
from .settings import settings

logger = logging.getLogger("startup")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Waiting for application startup...")

    try:
        async with async_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema ready.")
    except Exception:
        logger.exception("Database unreachable, listings will be served offline")

    if settings.CLOUDINARY_CLOUD_NAME:
        try:
            await cloudinary_client.connect()
            logger.info("Cloudinary connected.")
        except Exception:
            logger.exception("Cannot connect to Cloudinary")
    else:
        logger.info("Cloudinary not configured; photo uploads will fail.")

    try:
        await cache.connect()
    except Exception:
        logger.exception("Upstash Redis connection failed")

    logger.info("Application startup complete.")

    yield

    await async_engine.dispose()
    logger.info("Application shutdown complete.")
