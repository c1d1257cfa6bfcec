import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.api.v1.router import v1_router
from app.core.config import get_settings
from app.core.errors import DomainError, ValidationError
from app.core.logging import configure_logging
from app.core.middleware import RequestIdMiddleware

logger = logging.getLogger(__name__)


def _request_id(request: Request):
    return getattr(request.state, "request_id", None)


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    body = {
        "detail": exc.public_message or exc.message,
        "request_id": _request_id(request),
    }
    if isinstance(exc, ValidationError):
        body["errors"] = exc.errors

    if exc.status_code >= 500:
        logger.error(
            "domain error",
            extra={"request_id": body["request_id"], "error": exc.message, "type": type(exc).__name__},
        )
    return JSONResponse(status_code=exc.status_code, content=body)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = {}
    for err in exc.errors():
        # drop the "body" / "query" / "path" location prefix
        loc = [str(p) for p in err.get("loc", ())][1:]
        errors.setdefault(".".join(loc) or "__root__", []).append(err.get("msg"))
    return JSONResponse(
        status_code=422,
        content={
            "detail": "The given data was invalid.",
            "errors": errors,
            "request_id": _request_id(request),
        },
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled error", extra={"request_id": _request_id(request)})
    return JSONResponse(
        status_code=500,
        content={"detail": "An unexpected error occurred.", "request_id": _request_id(request)},
    )


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        version="0.1.0",
    )

    # Middleware: Request ID
    app.add_middleware(RequestIdMiddleware, header_name=settings.request_id_header)

    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # API v1
    app.include_router(v1_router, prefix=settings.api_prefix)

    return app


app = create_app()
