"""FastAPI application exposing messaging, uptime and storage endpoints."""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import structlog
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, Field, ValidationError

from .config import Settings, load_settings
from .errors import FileMissingError, StorageError, UptimeError
from .messages.groups import expand_groups
from .messages.models import MessageRequest, MessageResponse
from .messages.sender import MessageSender
from .notifications import StorageNotifier
from .storage.files import FileStorage
from .storage.paths import PathRejection, PathResolver, RejectionReason, ResolvedPath
from .system.uptime import UptimeReader, UptimeReport

log = structlog.get_logger(__name__)

BANNER = """Mowa API is running! 🚀

Available endpoints:
- POST /api/messages
- GET /api/uptime
- GET/POST /api/storage (JSON payload: returns structured response with file content)
- GET /api/storage/* (URL path: returns raw file content)"""

REJECTION_STATUS: dict[RejectionReason, int] = {
    RejectionReason.INVALID_PATH: status.HTTP_400_BAD_REQUEST,
    RejectionReason.OUTSIDE_ROOT: status.HTTP_400_BAD_REQUEST,
    RejectionReason.RESOLUTION_FAILURE: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class StorageRequest(BaseModel):
    path: str = Field(default="", description="Logical path, starting with '/', relative to the storage root.")
    content: str = Field(default="", description="File content to write (POST only).")
    notify: Optional[list[str]] = Field(
        default=None,
        description="Recipients or groups to notify about the outcome.",
    )


class StorageResponse(BaseModel):
    success: bool
    content: Optional[str] = None
    error: Optional[str] = None


router = APIRouter()


# ---------------------------------------------------------------- dependencies
def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_file_storage(request: Request) -> FileStorage:
    return request.app.state.file_storage


def get_message_sender(request: Request) -> MessageSender:
    return request.app.state.message_sender


def get_notifier(request: Request) -> StorageNotifier:
    return request.app.state.notifier


def get_uptime_reader(request: Request) -> UptimeReader:
    return request.app.state.uptime_reader


# --------------------------------------------------------------------- helpers
def _storage_response(status_code: int, **fields: object) -> JSONResponse:
    body = StorageResponse(**fields).model_dump(exclude_none=True)
    return JSONResponse(status_code=status_code, content=body)


def _is_empty_logical_path(logical_path: str) -> bool:
    return logical_path.strip("/") == ""


async def _parse_body(request: Request, model: type[BaseModel]) -> BaseModel:
    raw = await request.body()
    return model.model_validate_json(raw or b"{}")


def _read_file(
    storage: FileStorage,
    notifier: StorageNotifier,
    target: ResolvedPath,
    notify: Optional[list[str]],
) -> JSONResponse:
    try:
        content = storage.read_bytes(target)
    except StorageError as exc:
        notifier.dispatch(notify, operation="GET", path=target.path, success=False, message=exc.operation)
        status_code = (
            status.HTTP_404_NOT_FOUND
            if isinstance(exc, FileMissingError)
            else status.HTTP_500_INTERNAL_SERVER_ERROR
        )
        return _storage_response(status_code, success=False, error=exc.public_message)

    notifier.dispatch(notify, operation="GET", path=target.path, success=True, message="retrieved successfully")
    return _storage_response(
        status.HTTP_200_OK,
        success=True,
        content=content.decode("utf-8", errors="replace"),
    )


def _save_file(
    storage: FileStorage,
    notifier: StorageNotifier,
    target: ResolvedPath,
    content: str,
    notify: Optional[list[str]],
) -> JSONResponse:
    try:
        storage.write_text(target, content)
    except StorageError as exc:
        notifier.dispatch(notify, operation="POST", path=target.path, success=False, message=exc.operation)
        return _storage_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            success=False,
            error=exc.public_message,
        )

    notifier.dispatch(notify, operation="POST", path=target.path, success=True, message="saved successfully")
    return _storage_response(status.HTTP_200_OK, success=True, content="File saved successfully")


# ---------------------------------------------------------------------- routes
@router.get("/", response_class=PlainTextResponse)
async def healthcheck() -> str:
    return BANNER


@router.post("/api/messages", response_model=MessageResponse, response_model_exclude_none=True)
async def send_messages(
    request: Request,
    settings: Settings = Depends(get_settings),
    sender: MessageSender = Depends(get_message_sender),
):
    try:
        payload = await _parse_body(request, MessageRequest)
    except ValidationError as exc:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid request format", "details": str(exc)},
        )

    if not payload.to:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "At least one recipient is required"},
        )
    if not payload.message:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Message content is required"},
        )

    recipients = expand_groups(payload.to, settings.messages.groups)
    results = await sender.send_messages(recipients, payload.message)
    return MessageResponse(results=results)


@router.get("/api/uptime", response_model=UptimeReport)
async def get_uptime(reader: UptimeReader = Depends(get_uptime_reader)):
    try:
        return await reader.read()
    except UptimeError as exc:
        log.error("uptime.read_failed", error=str(exc))
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Failed to get uptime", "details": str(exc)},
        )


@router.api_route("/api/storage", methods=["GET", "POST"])
async def handle_storage(
    request: Request,
    storage: FileStorage = Depends(get_file_storage),
    notifier: StorageNotifier = Depends(get_notifier),
) -> JSONResponse:
    try:
        payload = await _parse_body(request, StorageRequest)
    except ValidationError as exc:
        log.warning("storage.invalid_body", error=str(exc))
        return _storage_response(status.HTTP_400_BAD_REQUEST, success=False, error="invalid request body")

    if _is_empty_logical_path(payload.path):
        return _storage_response(status.HTTP_400_BAD_REQUEST, success=False, error="path is required")

    if payload.notify is not None and not payload.notify:
        return _storage_response(
            status.HTTP_400_BAD_REQUEST,
            success=False,
            error="notify field cannot be empty - either omit it or provide at least one recipient",
        )

    resolution = storage.resolve(payload.path)
    if isinstance(resolution, PathRejection):
        return _storage_response(REJECTION_STATUS[resolution.reason], success=False, error=resolution.message)
    if resolution.is_root:
        return _storage_response(status.HTTP_400_BAD_REQUEST, success=False, error="path is required")

    if request.method == "GET":
        return _read_file(storage, notifier, resolution, payload.notify)
    return _save_file(storage, notifier, resolution, payload.content, payload.notify)


@router.get("/api/storage/{path:path}")
async def handle_storage_with_path(path: str, storage: FileStorage = Depends(get_file_storage)) -> Response:
    logical_path = "/" + path.lstrip("/")
    if _is_empty_logical_path(logical_path):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="path is required")

    resolution = storage.resolve(logical_path)
    if isinstance(resolution, PathRejection):
        raise HTTPException(status_code=REJECTION_STATUS[resolution.reason], detail=resolution.message)
    if resolution.is_root:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="path is required")

    try:
        content = storage.read_bytes(resolution)
    except FileMissingError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="file not found") from None
    except StorageError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=exc.public_message,
        ) from None

    return Response(content=content, media_type="text/plain; charset=utf-8")


@router.api_route("/api/storage/{path:path}", methods=["POST", "PUT", "PATCH", "DELETE"])
async def storage_with_path_not_allowed(path: str) -> JSONResponse:
    return _storage_response(
        status.HTTP_405_METHOD_NOT_ALLOWED,
        success=False,
        error="method not allowed - use POST /api/storage with JSON payload for file creation",
    )


# ------------------------------------------------------------------ app factory
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    await app.state.notifier.drain()


async def _log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    log.info(
        "http.request",
        status=response.status_code,
        latency_ms=round((time.perf_counter() - started) * 1000, 2),
        remote_ip=request.client.host if request.client else None,
        method=request.method,
        path=request.url.path,
    )
    return response


def create_app(
    settings: Optional[Settings] = None,
    *,
    message_sender: Optional[MessageSender] = None,
    uptime_reader: Optional[UptimeReader] = None,
) -> FastAPI:
    """Build the application around an explicit, immutable settings value."""
    settings = settings or load_settings()
    sender = message_sender or MessageSender()

    app = FastAPI(title="Mowa", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.file_storage = FileStorage(PathResolver(settings.storage.dir))
    app.state.message_sender = sender
    app.state.notifier = StorageNotifier(sender, settings.messages.groups)
    app.state.uptime_reader = uptime_reader or UptimeReader()

    app.middleware("http")(_log_requests)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Origin", "Content-Type", "Accept", "Authorization"],
    )
    app.include_router(router)
    return app
