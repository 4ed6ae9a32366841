"""Exception handlers that render every error in the standard envelope.

Usage:
    from libs.common.error_handler import add_exception_handlers

    app = FastAPI()
    add_exception_handlers(app)

Responses look like ``{"success": false, "message": ..., "data": null,
"error": {"category": ..., ...}}``. Exceptions may carry ``category`` and
``context`` attributes to enrich the ``error`` object.
"""

from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from libs.common.logging import get_logger

logger = get_logger(__name__)

_CATEGORY_BY_STATUS = {
    status.HTTP_400_BAD_REQUEST: "validation",
    status.HTTP_401_UNAUTHORIZED: "authentication",
    status.HTTP_403_FORBIDDEN: "authorization",
    status.HTTP_404_NOT_FOUND: "not_found",
    status.HTTP_409_CONFLICT: "conflict",
    status.HTTP_422_UNPROCESSABLE_ENTITY: "validation",
}


def error_body(
    message: str, *, category: str, context: Optional[dict[str, Any]] = None
) -> dict[str, Any]:
    return {
        "success": False,
        "message": message,
        "data": None,
        "error": {"category": category, **(context or {})},
    }


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    category = getattr(exc, "category", None) or _CATEGORY_BY_STATUS.get(
        exc.status_code, "error"
    )
    context = getattr(exc, "context", None)
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(
            error_body(str(exc.detail), category=category, context=context)
        ),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        f"{'.'.join(str(part) for part in err['loc'] if part != 'body')}: {err['msg']}"
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=jsonable_encoder(
            error_body(
                errors[0] if errors else "Invalid request",
                category="validation",
                context={"errors": errors},
            )
        ),
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("Internal server error", category="internal"),
    )


def add_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
