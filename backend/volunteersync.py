import asyncio
import logging
import uuid
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import HTMLResponse
from starlette import status
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from app.api.router import api_router
from app.config import settings
from app.response import ErrorResponse, CustomHTTPException
from app.core.utils.discord import notify_error
from app.core.middlewares.process_time_middleware import ProcessingTimeMiddleware

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

RETRY_AFTER_SECONDS = 5

application = FastAPI(
    title="VolunteerSync",
    version=settings.APP_VERSION,
    default_response_class=ORJSONResponse,
)

application.include_router(router=api_router)
application.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
application.add_middleware(ProcessingTimeMiddleware)


@application.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    track_id = str(uuid.uuid4())
    logger.exception(
        "unhandled error on %s %s (track_id=%s)",
        request.method,
        request.url.path,
        track_id,
    )
    try:
        await notify_error(request, exc, track_id)
    except Exception:
        logger.exception("error while sending error notification")
    return ErrorResponse(
        message="Internal Server Error",
        errors={"error": "An error occurred while processing the request"},
        track_id=track_id,
    ).get_response(status.HTTP_500_INTERNAL_SERVER_ERROR)


async def service_unavailable_handler(request: Request, exc: Exception):
    track_id = str(uuid.uuid4())
    logger.error(
        "database unavailable on %s %s (track_id=%s): %r",
        request.method,
        request.url.path,
        track_id,
        exc,
    )
    return ErrorResponse(
        message="Service temporarily unavailable, please retry",
        error_code="SERVICE_UNAVAILABLE",
        track_id=track_id,
    ).get_response(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
    )


for error_class in (
    PoolTimeoutError,
    OperationalError,
    InterfaceError,
    asyncio.TimeoutError,
):
    application.add_exception_handler(error_class, service_unavailable_handler)


@application.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc):
    errors = {}

    for error in exc.errors():
        current = errors

        if len(error["loc"]) <= 1:
            current[error["loc"][0]] = error["msg"]
            continue

        keys = error["loc"][1:]
        for loc in keys[:-1]:
            current = current.setdefault(loc, {})
        current[keys[-1]] = error["msg"]

    return ErrorResponse(
        message="Invalid request",
        errors=errors,
    ).get_response(status.HTTP_400_BAD_REQUEST)


@application.exception_handler(CustomHTTPException)
async def http_exception_handler(request: Request, exc: CustomHTTPException):
    return exc.get_response(exc.status_code, headers=exc.headers)


@application.head("/ping")
async def ping():
    return HTMLResponse(content=None, status_code=status.HTTP_204_NO_CONTENT)
