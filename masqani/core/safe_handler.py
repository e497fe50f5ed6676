import logging
from functools import wraps

from fastapi import HTTPException, Request

from .errors import MarketplaceError
from .friendly_msg import get_friendly_message

logger = logging.getLogger(__name__)


def _describe(request: Request) -> str:
    client_ip = request.client.host if request.client else "unknown"
    trace_id = request.headers.get("X-Request-ID", "none")
    return f"TraceID={trace_id} | {request.url.path} from {client_ip}"


def safe_handler(func):
    @wraps(func)
    async def wrapper(*args, **kwargs):
        request: Request | None = None
        for arg in list(args) + list(kwargs.values()):
            if isinstance(arg, Request):
                request = arg
                break

        try:
            return await func(*args, **kwargs)
        except MarketplaceError as e:
            if request:
                logger.warning(
                    f"[{e.code}] {_describe(request)}: {e.detail}"
                )
            raise
        except HTTPException as e:
            if request:
                logger.warning(
                    f"[HTTPException] {e.status_code} {_describe(request)}: {e.detail}"
                )
            raise
        except Exception as e:
            where = _describe(request) if request else "no request"
            logger.error(
                f"[Unhandled Error] in {func.__name__} | {where} | Error: {e}",
                exc_info=True,
            )
            raise HTTPException(status_code=500, detail=get_friendly_message(e))

    return wrapper
