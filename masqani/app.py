import logging

import uvicorn
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from masqani.core.catch_error_middleware import ErrorHandlerMiddleware
from masqani.core.errors import MarketplaceError
from masqani.core.exception_handler import MarketplaceErrorHandler, ValidationErrorHandler
from masqani.core.lifespan import lifespan
from masqani.core.settings import settings
from masqani.routes.listing_routes import router as listing_router
from masqani.routes.profile_routes import router as profile_router
from masqani.routes.transaction_routes import router as transaction_router

logging.basicConfig(level=logging.INFO)
app = FastAPI(
    lifespan=lifespan,
    title=settings.PROJECT_NAME,
    version="1.0.0",
)

app.include_router(transaction_router, prefix="/v1")
app.include_router(listing_router, prefix="/v1")
app.include_router(profile_router, prefix="/v1")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_HOSTS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["System"])
async def health_check():
    return {"status": "ok"}


app.add_exception_handler(
    RequestValidationError,
    ValidationErrorHandler(),
)
app.add_exception_handler(
    MarketplaceError,
    MarketplaceErrorHandler(),
)

app.add_middleware(ErrorHandlerMiddleware)


if __name__ == "__main__":
    uvicorn.run("masqani.app:app", host="0.0.0.0", port=8000, reload=True)
