"""HTTP rendering of storefront failures."""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from storefront.errors import StorefrontError

logger = structlog.get_logger(__name__)


async def storefront_error_handler(request: Request, exc: StorefrontError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Request failed", path=request.url.path, error=exc.kind, message=exc.message)
    else:
        logger.info("Request rejected", path=request.url.path, error=exc.kind, message=exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def register_storefront_exception_handlers(app: FastAPI) -> None:
    """Render ``StorefrontError`` as ``{"error": kind, "message": ..., **details}``.

    Protean's own handlers cover field validation (400) and missing objects (404).
    """
    register_exception_handlers(app)
    app.add_exception_handler(StorefrontError, storefront_error_handler)
