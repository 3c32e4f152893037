"""FastAPI surface for resizing, cropping and generating GIF derivatives."""

from __future__ import annotations

import json
import logging
import uuid
from pathlib import Path
from typing import Any, Optional

from fastapi import BackgroundTasks, FastAPI, File, Form, HTTPException, Request, Response, UploadFile
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, Field, model_validator
from pydantic import ValidationError as PydanticValidationError
from starlette.concurrency import run_in_threadpool

from .. import __version__, config
from ..core import TargetSizeSpec
from ..core.dispatch import open_editor
from ..core.errors import (
    DimensionError,
    ExtractError,
    ImageEditorError,
    LoadError,
    TransformError,
    UnsupportedOperationError,
    ValidationError,
)
from ..core.storage import BufferedChannel, DerivativeStorage
from ..utils import file_tools, validators

logger = logging.getLogger(__name__)

MEDIA_URL_PREFIX = "/media"
UPLOAD_CHUNK_BYTES = 1024 * 1024


class ResizeRequest(BaseModel):
    """Incoming options for a single resize."""

    width: Optional[int] = Field(None, ge=1)
    height: Optional[int] = Field(None, ge=1)
    crop: bool = False

    @model_validator(mode="after")
    def _require_dimension(self) -> "ResizeRequest":
        validators.validate_dimensions(self.width, self.height)
        return self


class CropRequest(BaseModel):
    """Incoming crop rectangle; with ``absolute`` width/height are far-edge coordinates."""

    x: int = Field(..., ge=0)
    y: int = Field(..., ge=0)
    width: int = Field(..., ge=1)
    height: int = Field(..., ge=1)
    dst_width: Optional[int] = Field(None, ge=1)
    dst_height: Optional[int] = Field(None, ge=1)
    absolute: bool = False


class SizeRequest(BaseModel):
    """One named derivative size."""

    width: Optional[int] = Field(None, ge=1)
    height: Optional[int] = Field(None, ge=1)
    crop: bool = False


class DerivativesRequest(BaseModel):
    """Named sizes to generate; empty means the configured defaults."""

    sizes: dict[str, SizeRequest] = Field(default_factory=dict)

    def to_specs(self) -> list[TargetSizeSpec]:
        if not self.sizes:
            return list(config.DEFAULT_SIZES)
        return [
            TargetSizeSpec(name=name, width=size.width, height=size.height, crop=size.crop)
            for name, size in self.sizes.items()
        ]


class DerivativeInfo(BaseModel):
    file: str
    width: int
    height: int
    mime_type: str
    url: str


class DerivativesResponse(BaseModel):
    """Payload returned after batch generation; failed sizes are absent."""

    source: dict[str, Any]
    sizes: dict[str, DerivativeInfo]


def _parse_settings(settings: str, model: type[BaseModel]) -> Any:
    try:
        payload = json.loads(settings) if settings else {}
    except json.JSONDecodeError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid settings JSON: {exc}") from exc
    try:
        return model.model_validate(payload)
    except PydanticValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, (ValidationError, DimensionError, LoadError, UnsupportedOperationError)):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, (ExtractError, TransformError)):
        return HTTPException(status_code=422, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


def create_app(media_dir: Optional[Path] = None, max_upload_bytes: int = config.MAX_UPLOAD_BYTES) -> FastAPI:
    app = FastAPI(title="GIF Resize", version=__version__)
    app.state.media_dir = Path(media_dir or config.MEDIA_DIR)
    app.state.max_upload_bytes = max_upload_bytes

    app.mount(MEDIA_URL_PREFIX, StaticFiles(directory=app.state.media_dir, check_dir=False), name="media")

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/resize")
    async def resize_image(
        request: Request,
        background_tasks: BackgroundTasks,
        image: UploadFile = File(...),
        settings: str = Form("{}"),
    ) -> Response:
        resize_settings = _parse_settings(settings, ResizeRequest)
        local_image = _persist_upload(request, image)
        background_tasks.add_task(_cleanup_file, local_image)
        try:
            channel = await run_in_threadpool(_run_resize, local_image, resize_settings)
        except (ValidationError, ImageEditorError) as exc:
            _cleanup_file(local_image)
            raise _http_error(exc) from exc
        return _stream_response(channel)

    @app.post("/api/crop")
    async def crop_image(
        request: Request,
        background_tasks: BackgroundTasks,
        image: UploadFile = File(...),
        settings: str = Form("{}"),
    ) -> Response:
        crop_settings = _parse_settings(settings, CropRequest)
        local_image = _persist_upload(request, image)
        background_tasks.add_task(_cleanup_file, local_image)
        try:
            channel = await run_in_threadpool(_run_crop, local_image, crop_settings)
        except (ValidationError, ImageEditorError) as exc:
            _cleanup_file(local_image)
            raise _http_error(exc) from exc
        return _stream_response(channel)

    @app.post("/api/derivatives", response_model=DerivativesResponse)
    async def generate_derivatives(
        request: Request,
        image: UploadFile = File(...),
        settings: str = Form("{}"),
    ) -> DerivativesResponse:
        derivatives_request = _parse_settings(settings, DerivativesRequest)
        local_image = _persist_upload(request, image, subdir="")
        try:
            return await run_in_threadpool(
                _run_derivatives, local_image, derivatives_request, request.app.state.media_dir
            )
        except (ValidationError, ImageEditorError) as exc:
            _cleanup_file(local_image)
            raise _http_error(exc) from exc

    return app


def _stream_response(channel: BufferedChannel) -> Response:
    return Response(
        content=channel.getvalue(),
        media_type=channel.content_type,
        headers={
            "X-Image-Width": channel.headers.get("X-Image-Width", ""),
            "X-Image-Height": channel.headers.get("X-Image-Height", ""),
        },
    )


def _persist_upload(request: Request, file: UploadFile, subdir: str = "uploads") -> Path:
    """Write the upload under the media directory, enforcing the size limit."""

    max_bytes = request.app.state.max_upload_bytes
    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit() and int(content_length) > max_bytes:
        raise HTTPException(status_code=413, detail="Upload exceeds limit")

    suffix = Path(file.filename or "upload").suffix.lower() or ".gif"
    if suffix not in validators.ALLOWED_IMAGE_EXTENSIONS:
        raise HTTPException(status_code=400, detail="Unsupported file type")

    target_dir = file_tools.ensure_directory(request.app.state.media_dir / subdir)
    stem = Path(file.filename or "upload").stem or "upload"
    target = target_dir / f"{stem}-{uuid.uuid4().hex[:8]}{suffix}"
    written = 0
    with target.open("wb") as handle:
        while True:
            chunk = file.file.read(UPLOAD_CHUNK_BYTES)
            if not chunk:
                break
            written += len(chunk)
            if written > max_bytes:
                target.unlink(missing_ok=True)
                raise HTTPException(status_code=413, detail="File too large")
            handle.write(chunk)
    logger.debug("Stored upload %s (%s bytes)", target, written)
    return target


def _cleanup_file(path: Path) -> None:
    """Remove a temporary upload if it exists."""

    try:
        path.unlink(missing_ok=True)
    except OSError:
        logger.debug("Cleanup failed for %s", path)


def _media_url(path: Path, media_dir: Path) -> str:
    try:
        rel = path.relative_to(media_dir)
        return f"{MEDIA_URL_PREFIX}/{rel.as_posix()}"
    except ValueError:
        return f"{MEDIA_URL_PREFIX}/{path.name}"


def _stream_editor(editor) -> BufferedChannel:
    channel = BufferedChannel()
    size = editor.get_size()
    channel.set_header("X-Image-Width", str(size.width))
    channel.set_header("X-Image-Height", str(size.height))
    editor.stream(channel=channel)
    return channel


def _run_resize(path: Path, request: ResizeRequest) -> BufferedChannel:
    editor = open_editor(path, resample=config.RESAMPLE)
    editor.resize(request.width, request.height, request.crop)
    return _stream_editor(editor)


def _run_crop(path: Path, request: CropRequest) -> BufferedChannel:
    editor = open_editor(path, resample=config.RESAMPLE)
    editor.crop(
        request.x,
        request.y,
        request.width,
        request.height,
        request.dst_width,
        request.dst_height,
        request.absolute,
    )
    return _stream_editor(editor)


def _run_derivatives(path: Path, request: DerivativesRequest, media_dir: Path) -> DerivativesResponse:
    editor = open_editor(path, storage=DerivativeStorage(media_dir), resample=config.RESAMPLE)
    source = editor.get_size()
    metadata = editor.multi_resize(request.to_specs())
    sizes = {
        name: DerivativeInfo(**result.as_metadata(), url=_media_url(media_dir / result.file, media_dir))
        for name, result in metadata.items()
    }
    return DerivativesResponse(
        source={
            "file": path.name,
            "width": source.width,
            "height": source.height,
            "mime_type": editor.mime_type,
            "url": _media_url(path, media_dir),
        },
        sizes=sizes,
    )


app = create_app()


if __name__ == "__main__":  # pragma: no cover
    import uvicorn

    uvicorn.run("gifresize.web.server:app", host="0.0.0.0", port=8000, reload=True)
