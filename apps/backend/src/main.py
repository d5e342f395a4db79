import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from urllib.parse import urlparse

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.v1.api import api_router
from api.websocket import ws_router
from core.background import get_background_tasks
from core.config import get_settings
from core.error_handler import (
    ExceptionNormalizationMiddleware,
    global_exception_handler,
    setup_logging,
)
from core.middleware import CorrelationIdMiddleware


logger = logging.getLogger(__name__)

SHUTDOWN_DRAIN_SECONDS = 10.0


def _is_http_origin(origin: str) -> bool:
    parsed = urlparse(origin)
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


def validate_cors_origins(origins: list[str]) -> list[str]:
    """Keep only absolute http(s) origins; log and drop the rest."""
    for rejected in (origin for origin in origins if not _is_http_origin(origin)):
        logger.warning("Ignoring invalid CORS origin %r", rejected)
    return [origin for origin in origins if _is_http_origin(origin)]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    setup_logging()
    logger.info("%s starting", get_settings().APP_NAME)
    yield
    # Let in-flight escalation emails and broadcasts finish.
    await get_background_tasks().drain(timeout=SHUTDOWN_DRAIN_SECONDS)


settings = get_settings()

app = FastAPI(
    title=f"{settings.APP_NAME} API",
    description="Chat-completion relay with support tools for voice agents",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(ExceptionNormalizationMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=validate_cors_origins(list(settings.CORS_ORIGINS)),
    allow_credentials=settings.ALLOW_CREDENTIALS,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Correlation-ID"],
)

app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(StarletteHTTPException, global_exception_handler)
app.add_exception_handler(RequestValidationError, global_exception_handler)

app.include_router(api_router, prefix="/v1")
app.include_router(ws_router)


@app.get("/ping")
def ping() -> dict[str, str]:
    return {"message": "pong"}


@app.get("/")
def read_root() -> dict[str, str]:
    return {
        "message": f"Welcome to {settings.APP_NAME}. "
        "POST /v1/chat/completion to relay a turn."
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
