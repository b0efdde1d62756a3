"""Main FastAPI application for the Atomic backend."""
import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from atomic.api.routes.ai import router as ai_router
from atomic.api.routes.categories import router as categories_router
from atomic.api.routes.onboarding import router as onboarding_router
from atomic.api.routes.schedule import router as schedule_router
from atomic.api.routes.tasks import router as tasks_router
from atomic.api.schemas.common import ApiError
from atomic.core.config import settings
from atomic.core.logging import configure_logging
from atomic.core.middleware import RequestIDMiddleware
from atomic.observability.client import init_opik
from atomic.observability.tracing import trace

configure_logging(log_level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name, version="0.1.0", debug=settings.debug)
app.add_middleware(RequestIDMiddleware)
app.include_router(ai_router)
app.include_router(onboarding_router)
app.include_router(tasks_router)
app.include_router(categories_router)
app.include_router(schedule_router)


def _error_response(status_code: int, error: str, details=None, headers=None) -> JSONResponse:
    body = ApiError(error=error, details=details).model_dump()
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body), headers=headers)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render HTTP errors in the failure envelope; dict details keep their extra keys."""
    detail = exc.detail
    if isinstance(detail, dict):
        extra = {key: value for key, value in detail.items() if key != "message"}
        return _error_response(exc.status_code, str(detail.get("message", "Request failed")), extra or None, exc.headers)
    return _error_response(exc.status_code, str(detail), headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _error_response(422, "Invalid request", exc.errors())


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return _error_response(500, "Database error", type(exc).__name__)


@app.on_event("startup")
async def startup_observability() -> None:
    """Initialize observability backends after the event loop starts."""
    init_opik()


@app.get("/health", tags=["health"], summary="Readiness probe")
async def health_check(request: Request) -> dict[str, str]:
    """Return a simple status payload so automation can probe the API."""
    with trace("http.health_check", metadata={"route": "/health"}, request_id=request.state.request_id):
        return {"status": "ok"}
