import logging

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import get_settings

logger = logging.getLogger(__name__)


def error_detail(message: str, error: str) -> dict:
    detail = {"message": message}
    if get_settings().expose_error_details:
        detail["error"] = error
    return detail


def internal_error(message: str, exc: Exception) -> HTTPException:
    """500 for a failed database call, echoing the driver text when enabled."""
    logger.error("%s: %s", message, exc)
    return HTTPException(status_code=500, detail=error_detail(message, str(exc)))


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if isinstance(exc.detail, dict):
        content = exc.detail
    else:
        content = {"message": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ())[1:]) or "request"
    message = f"Invalid {field}: {first.get('msg', 'malformed input')}"
    return JSONResponse(status_code=400, content={"message": message})
