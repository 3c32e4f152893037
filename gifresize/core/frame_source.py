"""Frame extraction from GIF sources using Pillow (lazy, single pass)."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import BinaryIO, Callable, Iterator, Optional, Union

from PIL import Image

from . import Frame, ImageKind, SourceImage
from .errors import ExtractError, LoadError

logger = logging.getLogger(__name__)

Opener = Callable[[Union[Path, BinaryIO]], Image.Image]

# Pillow raises these for truncated or malformed frame data.
DECODE_ERRORS = (EOFError, OSError, ValueError)

# Display name for file objects without a usable ``name`` (BytesIO, stdin).
STREAM_NAME = "stream"


def stream_name(stream: BinaryIO) -> Path:
    name = getattr(stream, "name", None)
    if isinstance(name, (str, os.PathLike)):
        name = os.fspath(name)
        if name and not name.startswith("<"):
            return Path(name)
    return Path(STREAM_NAME)


def _decode_frame(handle: Image.Image, index: int) -> Frame:
    """Seek to ``index`` and copy the composited frame out as RGBA."""

    handle.seek(index)
    image = handle.convert("RGBA")
    duration = int(handle.info.get("duration", 0) or 0)
    return Frame(image=image, duration=duration, index=index)


class FrameSequence:
    """Ordered, single-pass sequence of frames that owns the decode handle.

    The first frame is decoded up front by :meth:`FrameSource.extract`; the
    rest are decoded while iterating. Frames that fail to decode are skipped
    and counted in :attr:`dropped`. The handle is closed when iteration ends,
    on error, or when the sequence is used as a context manager and exits.
    """

    def __init__(self, handle: Image.Image, source: Path, first: Frame, frame_count: int):
        self.source = source
        self.frame_count = frame_count
        self.dropped = 0
        self._handle: Optional[Image.Image] = handle
        self._first: Optional[Frame] = first
        self._consumed = False

    def __iter__(self) -> Iterator[Frame]:
        if self._consumed:
            raise ExtractError("Frame sequence has already been consumed", self.source)
        self._consumed = True
        return self._iterate()

    def _iterate(self) -> Iterator[Frame]:
        try:
            first, self._first = self._first, None
            if first is not None:
                yield first
            for index in range(1, self.frame_count):
                if self._handle is None:
                    break
                try:
                    frame = _decode_frame(self._handle, index)
                except DECODE_ERRORS as exc:
                    self.dropped += 1
                    logger.warning("Dropping undecodable frame %s of %s: %s", index, self.source, exc)
                    continue
                yield frame
        finally:
            self.close()

    def close(self) -> None:
        if self._first is not None:
            self._first.release()
            self._first = None
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def __enter__(self) -> "FrameSequence":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class FrameSource:
    """Opens GIF sources and hands out frame sequences."""

    def __init__(self, opener: Opener = Image.open):
        self._opener = opener

    def inspect(self, path: Union[str, Path], stream: Optional[BinaryIO] = None) -> SourceImage:
        """Read size, mime type and frame count without decoding pixel data.

        With ``stream`` the image is read from it and ``path`` only names it.
        """

        path = Path(path)
        if stream is None and not path.is_file():
            raise LoadError("File doesn't exist", path)
        try:
            with self._opener(stream if stream is not None else path) as handle:
                width, height = handle.size
                mime_type = Image.MIME.get(handle.format or "")
                frame_count = int(getattr(handle, "n_frames", 1) or 1)
        except DECODE_ERRORS as exc:
            raise LoadError(f"File is not an image: {exc}", path) from exc

        logger.debug("Inspected %s -> %sx%s, %s frame(s), %s", path, width, height, frame_count, mime_type)
        return SourceImage(path=path, width=width, height=height, mime_type=mime_type, frame_count=frame_count)

    def probe(self, path: Union[str, Path], stream: Optional[BinaryIO] = None) -> ImageKind:
        return self.inspect(path, stream).kind

    def is_multiframe(self, path: Union[str, Path], stream: Optional[BinaryIO] = None) -> bool:
        return self.probe(path, stream) is ImageKind.ANIMATED

    def extract(self, path: Union[str, Path], stream: Optional[BinaryIO] = None) -> FrameSequence:
        """Open ``path`` and return its frames, decoding the first one eagerly.

        When ``stream`` is given the frames are read from it instead and
        ``path`` only identifies the source in errors and logs.

        Raises:
            ExtractError: the file cannot be opened or its first frame cannot
                be decoded, so nothing at all is extractable.
        """

        path = Path(path)
        try:
            handle = self._opener(stream if stream is not None else path)
        except DECODE_ERRORS as exc:
            raise ExtractError(f"Could not open image for frame extraction: {exc}", path) from exc

        try:
            frame_count = int(getattr(handle, "n_frames", 1) or 1)
            first = _decode_frame(handle, 0)
        except DECODE_ERRORS as exc:
            handle.close()
            raise ExtractError(f"Could not decode the first frame: {exc}", path) from exc

        logger.debug("Extracting %s frame(s) from %s", frame_count, path)
        return FrameSequence(handle, path, first, frame_count)
