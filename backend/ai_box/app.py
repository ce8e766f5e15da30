"""FastAPI application setup for AI Box."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ai_box.api.dependencies import (
    get_app_settings,
    get_chat_service,
    get_database,
    get_ingest_pipeline,
    get_query_service,
    get_settings_service,
)
from ai_box.api.routes_admin import router as admin_router
from ai_box.api.routes_chat import router as chat_router
from ai_box.api.routes_knowledge import router as knowledge_router
from ai_box.api.routes_settings import router as settings_router
from ai_box.core.errors import (
    AIBoxError,
    ApiError,
    ConfigError,
    NotFoundError,
    ParseError,
    TransportError,
    UnsupportedInputError,
)
from ai_box.core.logging import configure_logging, get_logger

_settings = get_app_settings()
configure_logging(_settings.log_level, _settings.log_json)
logger = get_logger(__name__)

app = FastAPI(
    title="AI Box",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://127.0.0.1:1420",
        "http://localhost:1420",
        "tauri://localhost",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(chat_router, prefix="", tags=["chat"])
app.include_router(settings_router, prefix="", tags=["settings"])
app.include_router(knowledge_router, prefix="", tags=["knowledge"])
app.include_router(admin_router, prefix="", tags=["admin"])

_STATUS_BY_ERROR: tuple[tuple[type[AIBoxError], int], ...] = (
    (ConfigError, 400),
    (UnsupportedInputError, 400),
    (NotFoundError, 404),
    (ApiError, 502),
    (TransportError, 502),
    (ParseError, 502),
)


def status_for(exc: AIBoxError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 500


@app.exception_handler(AIBoxError)
async def handle_aibox_error(request: Request, exc: AIBoxError) -> JSONResponse:
    status = status_for(exc)
    if status >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status, content={"detail": str(exc), "kind": exc.kind})


@app.on_event("startup")
async def startup() -> None:
    """Warm up core singletons on startup."""
    get_database()
    get_settings_service()
    get_chat_service()
    get_ingest_pipeline()
    get_query_service()
