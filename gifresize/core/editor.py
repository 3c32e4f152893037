"""Derivative orchestration for animated GIFs.

:class:`AnimatedGifEditor` drives the per-frame pipeline: resolve geometry,
extract frames, transform each one, reassemble, then save or stream. The
shared editor surface (size tracking, batch derivatives, save, stream) lives
in :class:`BaseImageEditor` so the single-frame delegate behaves the same way.
"""

from __future__ import annotations

import io
import logging
import sys
from abc import ABC, abstractmethod
from dataclasses import replace
from pathlib import Path
from typing import BinaryIO, Iterable, Mapping, Optional, Union

from PIL import Image

from . import DerivativeResult, EncodedAnimation, Geometry, ImageKind, Size, SourceImage, TargetSizeSpec
from . import geometry as geometry_resolver
from .errors import (
    ImageEditorError,
    LoadError,
    SaveError,
    StreamError,
    TransformError,
    UnsupportedOperationError,
)
from .frame_source import FrameSource, stream_name
from .frame_transform import DEFAULT_RESAMPLE, transform_all
from .reassembler import assemble
from .storage import DerivativeStorage, FileChannel, OutputChannel, write_to_channel

logger = logging.getLogger(__name__)

GIF_MIME_TYPE = "image/gif"

SizeSpecs = Union[Mapping[str, Mapping[str, object]], Iterable[TargetSizeSpec]]


def iter_size_specs(sizes: SizeSpecs) -> list[TargetSizeSpec]:
    """Normalise ``{name: {width, height, crop}}`` or a spec sequence, keeping order."""

    if isinstance(sizes, Mapping):
        return [TargetSizeSpec.from_mapping(name, dict(data)) for name, data in sizes.items()]
    return list(sizes)


class BaseImageEditor(ABC):
    """Size tracking, batch derivatives, save and stream shared by both editors.

    ``path`` is a filesystem path or a binary file object. A file object is
    read into memory once; ``name`` (or the object's own ``name``) then
    identifies it in errors and derivative filenames.
    """

    def __init__(
        self,
        path: Union[str, Path, BinaryIO],
        frame_source: Optional[FrameSource] = None,
        storage: Optional[DerivativeStorage] = None,
        resample: Image.Resampling = DEFAULT_RESAMPLE,
        name: Optional[Union[str, Path]] = None,
    ):
        if isinstance(path, (str, Path)):
            self.path = Path(path)
            self._data: Optional[bytes] = None
        else:
            self.path = Path(name) if name else stream_name(path)
            self._data = path.read()
        self.frame_source = frame_source or FrameSource()
        self.storage = storage or DerivativeStorage()
        self.resample = resample
        self.mime_type: Optional[str] = None
        self.size: Optional[Size] = None
        self._source: Optional[SourceImage] = None

    @staticmethod
    @abstractmethod
    def supports_mime_type(mime_type: Optional[str]) -> bool:
        ...

    @abstractmethod
    def load(self) -> SourceImage:
        ...

    @abstractmethod
    def resize(self, max_w: Optional[int], max_h: Optional[int], crop: bool = False) -> Size:
        ...

    @abstractmethod
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
        ...

    @abstractmethod
    def _render_derivative(self, geometry: Geometry) -> bytes:
        """Encode the loaded source transformed by ``geometry`` without touching editor state."""

    @abstractmethod
    def _encoded_bytes(self, mime_type: str) -> bytes:
        """Bytes of the current image in ``mime_type``."""

    def _source_stream(self) -> Optional[io.BytesIO]:
        """Fresh reader over an in-memory source; ``None`` when the source is a file."""

        return io.BytesIO(self._data) if self._data is not None else None

    def _require_loaded(self) -> SourceImage:
        if self._source is None:
            return self.load()
        return self._source

    def get_size(self) -> Size:
        self._require_loaded()
        return self.size

    def multi_resize(self, sizes: SizeSpecs) -> dict[str, DerivativeResult]:
        """Save one derivative per named size, each computed from the original source.

        Sizes without a width or height are skipped, as are sizes equal to the
        source size. A size that fails is logged and left out of the result;
        when every size fails the result is empty.
        """

        source = self._require_loaded()
        baseline = source.size
        original_size = self.size
        metadata: dict[str, DerivativeResult] = {}

        try:
            for spec in iter_size_specs(sizes):
                self.size = original_size
                if not spec.has_dimensions:
                    logger.debug("Skipping size %s without width or height", spec.name)
                    continue
                if baseline.matches(spec.width, spec.height):
                    logger.debug("Skipping size %s, same as the original %sx%s", spec.name, baseline.width, baseline.height)
                    continue

                try:
                    geometry = geometry_resolver.resolve(
                        baseline.width, baseline.height, spec.width, spec.height, spec.crop, source=self.path
                    )
                    data = self._render_derivative(geometry)
                    result = self.storage.save(data, self.path, geometry.dst_w, geometry.dst_h, self.mime_type)
                except ImageEditorError as exc:
                    logger.warning("Skipping size %s for %s: %s", spec.name, self.path, exc)
                    continue

                result.path = None
                metadata[spec.name] = result
        finally:
            self.size = original_size

        logger.info("Generated %s derivative(s) for %s", len(metadata), self.path)
        return metadata

    def save(self, filename: Optional[Union[str, Path]] = None, mime_type: Optional[str] = None) -> DerivativeResult:
        """Write the current image; the editor then points at the saved file."""

        self._require_loaded()
        target = Path(filename) if filename is not None else None
        target, extension, mime_type = self.storage.get_output_format(target, mime_type, self.mime_type, self.path)
        data = self._encoded_bytes(mime_type)
        if target is None:
            target = self.storage.generate_filename(self.path, self.size.width, self.size.height, extension)
        path = self.storage.write(data, target, self.path)

        self.path = path
        self._data = None
        self.mime_type = mime_type
        self._source = replace(self._source, path=path, width=self.size.width, height=self.size.height, mime_type=mime_type)
        self._after_save()
        return DerivativeResult(
            file=path.name, width=self.size.width, height=self.size.height, mime_type=mime_type, path=path
        )

    def _after_save(self) -> None:
        pass

    def stream(self, mime_type: Optional[str] = None, channel: Optional[OutputChannel] = None) -> None:
        """Write a Content-Type header and the current image bytes to ``channel`` (stdout by default)."""

        self._require_loaded()
        mime_type = mime_type or self.mime_type
        try:
            data = self._encoded_bytes(mime_type)
        except (SaveError, OSError) as exc:
            raise StreamError(f"Could not encode image for streaming: {exc}", self.path) from exc
        write_to_channel(channel or FileChannel(sys.stdout.buffer), data, mime_type, self.path)


class AnimatedGifEditor(BaseImageEditor):
    """Resize and crop every frame of an animated GIF, keeping frame timing."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._animation: Optional[EncodedAnimation] = None

    @staticmethod
    def supports_mime_type(mime_type: Optional[str]) -> bool:
        return mime_type == GIF_MIME_TYPE

    def load(self) -> SourceImage:
        if self._source is not None:
            return self._source

        source = self.frame_source.inspect(self.path, self._source_stream())
        if not self.supports_mime_type(source.mime_type):
            raise LoadError(f"Unsupported mime type {source.mime_type!r}", self.path)
        if source.kind is not ImageKind.ANIMATED:
            raise LoadError("Image has a single frame; use the static editor", self.path)

        self._source = source
        self.mime_type = source.mime_type
        self.size = source.size
        logger.debug("Loaded %s (%sx%s, %s frames)", self.path, source.width, source.height, source.frame_count)
        return source

    def resize(self, max_w: Optional[int], max_h: Optional[int], crop: bool = False) -> Size:
        """Resize all frames to fit ``max_w x max_h``; either side may be ``None``."""

        self._require_loaded()
        if self.size.matches(max_w, max_h):
            return self.size

        geometry = geometry_resolver.resolve(
            self.size.width, self.size.height, max_w, max_h, crop, source=self.path
        )
        self._apply(geometry, "resize")
        return self.size

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
        """Crop every frame to a source rectangle, optionally scaling to ``dst_w x dst_h``."""

        self._require_loaded()
        geometry = geometry_resolver.resolve_crop(
            src_x, src_y, src_w, src_h, dst_w, dst_h, absolute, source=self.path
        )
        self._apply(geometry, "crop")
        return self.size

    def rotate(self, angle: float) -> None:
        raise UnsupportedOperationError("Rotating animated images is not supported", self.path)

    def flip(self, horizontal: bool, vertical: bool) -> None:
        raise UnsupportedOperationError("Flipping animated images is not supported", self.path)

    def _apply(self, geometry: Geometry, operation: str) -> None:
        # Chained edits read frames from the pending animation, not the file.
        if self._animation is not None:
            stream = io.BytesIO(self._animation.data)
        else:
            stream = self._source_stream()
        self._animation = self._transform(geometry, operation, stream)
        self.size = Size(self._animation.width, self._animation.height)

    def _transform(self, geometry: Geometry, operation: str, stream: Optional[io.BytesIO] = None) -> EncodedAnimation:
        with self.frame_source.extract(self.path, stream) as frames:
            outcome = transform_all(frames, geometry, self.resample)
            decode_dropped = frames.dropped

        if not outcome:
            raise TransformError(f"Image {operation} failed", self.path)
        if decode_dropped or outcome.dropped:
            logger.info(
                "%s of %s kept %s frame(s); %s undecodable, %s failed to transform",
                operation.capitalize(),
                self.path,
                len(outcome.frames),
                decode_dropped,
                outcome.dropped,
            )
        return assemble(outcome.frames, self.path)

    def _render_derivative(self, geometry: Geometry) -> bytes:
        return self._transform(geometry, "resize", self._source_stream()).data

    def _encoded_bytes(self, mime_type: str) -> bytes:
        if not self.supports_mime_type(mime_type):
            raise SaveError(f"Animated images can only be written as {GIF_MIME_TYPE}", self.path)
        if self._animation is not None:
            return self._animation.data
        if self._data is not None:
            return self._data
        try:
            return self.path.read_bytes()
        except OSError as exc:
            raise SaveError(f"Could not read source image: {exc}", self.path) from exc

    def _after_save(self) -> None:
        if self._animation is not None:
            self._source = replace(self._source, frame_count=self._animation.frame_count)
        self._animation = None
