"""Single-frame editor used for stills, including one-frame GIFs."""

from __future__ import annotations

import io
import logging
from typing import Optional

from PIL import Image, ImageOps

from . import Frame, Geometry, ImageKind, Size, SourceImage
from . import geometry as geometry_resolver
from .editor import BaseImageEditor
from .errors import LoadError, SaveError, TransformError
from .frame_transform import TRANSFORM_ERRORS, transform_frame
from .storage import MIME_EXTENSIONS

logger = logging.getLogger(__name__)

PIL_FORMATS = {
    "image/gif": "GIF",
    "image/png": "PNG",
    "image/jpeg": "JPEG",
    "image/webp": "WEBP",
}
# Formats without an alpha channel get flattened to RGB.
OPAQUE_FORMATS = {"JPEG"}


class StaticImageEditor(BaseImageEditor):
    """Resize, crop, rotate and flip a single still image held in memory."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._original: Optional[Image.Image] = None
        self.image: Optional[Image.Image] = None

    @staticmethod
    def supports_mime_type(mime_type: Optional[str]) -> bool:
        return mime_type in MIME_EXTENSIONS

    def load(self) -> SourceImage:
        if self._source is not None:
            return self._source

        source = self.frame_source.inspect(self.path, self._source_stream())
        if not self.supports_mime_type(source.mime_type):
            raise LoadError(f"Unsupported mime type {source.mime_type!r}", self.path)
        if source.kind is not ImageKind.STATIC:
            raise LoadError("Image is animated; use the animated editor", self.path)

        try:
            stream = self._source_stream()
            with Image.open(stream if stream is not None else self.path) as handle:
                image = handle.convert("RGBA") if handle.mode in ("P", "LA", "L", "1") else handle.copy()
        except (OSError, ValueError) as exc:
            raise LoadError(f"File is not an image: {exc}", self.path) from exc

        self._source = source
        self._original = image
        self.image = image.copy()
        self.mime_type = source.mime_type
        self.size = source.size
        return source

    def _transformed(self, image: Image.Image, geometry: Geometry, operation: str) -> Image.Image:
        try:
            return transform_frame(Frame(image=image, duration=0), geometry, self.resample).image
        except TRANSFORM_ERRORS as exc:
            raise TransformError(f"Image {operation} failed: {exc}", self.path) from exc

    def _set_image(self, image: Image.Image) -> Size:
        self.image = image
        self.size = Size(*image.size)
        return self.size

    def resize(self, max_w: Optional[int], max_h: Optional[int], crop: bool = False) -> Size:
        self._require_loaded()
        if self.size.matches(max_w, max_h):
            return self.size
        geometry = geometry_resolver.resolve(
            self.size.width, self.size.height, max_w, max_h, crop, source=self.path
        )
        return self._set_image(self._transformed(self.image, geometry, "resize"))

    def crop(
        self,
        src_x: int,
        src_y: int,
        src_w: int,
        src_h: int,
        dst_w: Optional[int] = None,
        dst_h: Optional[int] = None,
        absolute: bool = False,
    ) -> Size:
        self._require_loaded()
        geometry = geometry_resolver.resolve_crop(
            src_x, src_y, src_w, src_h, dst_w, dst_h, absolute, source=self.path
        )
        return self._set_image(self._transformed(self.image, geometry, "crop"))

    def rotate(self, angle: float) -> Size:
        """Rotate counter-clockwise by ``angle`` degrees, expanding the canvas."""

        self._require_loaded()
        return self._set_image(self.image.rotate(angle, expand=True))

    def flip(self, horizontal: bool, vertical: bool) -> Size:
        self._require_loaded()
        result = self.image
        if horizontal:
            result = ImageOps.mirror(result)
        if vertical:
            result = ImageOps.flip(result)
        return self._set_image(result)

    def _encode(self, image: Image.Image, mime_type: str) -> bytes:
        image_format = PIL_FORMATS.get(mime_type)
        if image_format is None:
            raise SaveError(f"Unsupported output mime type {mime_type!r}", self.path)
        if image_format in OPAQUE_FORMATS and image.mode != "RGB":
            image = image.convert("RGB")
        buffer = io.BytesIO()
        try:
            image.save(buffer, format=image_format)
        except (OSError, ValueError) as exc:
            raise SaveError(f"Image save failed: {exc}", self.path) from exc
        return buffer.getvalue()

    def _render_derivative(self, geometry: Geometry) -> bytes:
        return self._encode(self._transformed(self._original, geometry, "resize"), self.mime_type)

    def _encoded_bytes(self, mime_type: str) -> bytes:
        return self._encode(self.image, mime_type)

    def _after_save(self) -> None:
        self._original = self.image.copy()
