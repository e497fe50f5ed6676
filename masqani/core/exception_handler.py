import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .errors import MarketplaceError

logger = logging.getLogger(__name__)


class ValidationErrorHandler:
    async def __call__(self, request: Request, exc: RequestValidationError):

        errors = []

        for err in exc.errors():
            errors.append({
                "loc": err.get("loc"),
                "msg": str(err.get("msg")),
                "type": err.get("type"),
            })

        return JSONResponse(
            status_code=422,
            content={
                "success": False,
                "error": "validation_error",
                "detail": "Validation failed",
                "details": errors,
            },
        )


class MarketplaceErrorHandler:
    async def __call__(self, request: Request, exc: MarketplaceError):
        if exc.status_code >= 500:
            logger.error("%s on %s: %s", exc.code, request.url.path, exc.detail)

        return JSONResponse(
            status_code=exc.status_code,
            content={
                "success": False,
                "error": exc.code,
                "detail": exc.detail,
            },
        )
