"""Persistence and output channels for encoded derivatives."""

from __future__ import annotations

import io
import logging
import os
import stat
from pathlib import Path
from typing import BinaryIO, Optional, Protocol

from . import DerivativeResult
from .errors import SaveError, StreamError
from ..utils import file_tools

logger = logging.getLogger(__name__)

MIME_EXTENSIONS = {
    "image/gif": "gif",
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/webp": "webp",
}
EXTENSION_MIMES = {ext: mime for mime, ext in MIME_EXTENSIONS.items()}
EXTENSION_MIMES["jpeg"] = "image/jpeg"

# Derivatives get the parent directory's read/write bits, never execute bits.
READ_WRITE_BITS = 0o666


def mime_for_extension(extension: str) -> Optional[str]:
    return EXTENSION_MIMES.get(extension.lower().lstrip("."))


class DerivativeStorage:
    """Names, writes and describes derivative files."""

    def __init__(self, dest_dir: Optional[Path] = None):
        self.dest_dir = Path(dest_dir) if dest_dir is not None else None

    def get_output_format(
        self,
        filename: Optional[Path],
        mime_type: Optional[str],
        default_mime: str,
        source: Optional[Path] = None,
    ) -> tuple[Optional[Path], str, str]:
        """Resolve ``(filename, extension, mime_type)`` for a save.

        An explicit mime type wins; otherwise the filename's extension decides,
        falling back to ``default_mime``. A filename whose extension disagrees
        with the chosen mime type gets the matching extension.
        """

        if mime_type is None and filename is not None:
            mime_type = mime_for_extension(Path(filename).suffix)
        mime_type = mime_type or default_mime

        extension = MIME_EXTENSIONS.get(mime_type)
        if extension is None:
            raise SaveError(f"Unsupported output mime type {mime_type!r}", source or filename)

        if filename is not None:
            filename = Path(filename)
            if mime_for_extension(filename.suffix) != mime_type:
                filename = filename.with_suffix(f".{extension}")
        return filename, extension, mime_type

    def generate_filename(
        self,
        source: Path,
        width: int,
        height: int,
        extension: str,
        suffix: Optional[str] = None,
        dest_dir: Optional[Path] = None,
    ) -> Path:
        """Build ``<stem>-<suffix>.<ext>``, where the default suffix is ``<w>x<h>``."""

        suffix = suffix or f"{width}x{height}"
        directory = dest_dir or self.dest_dir or source.parent
        return Path(directory) / f"{source.stem}-{suffix}.{extension}"

    def write(self, data: bytes, path: Path, source: Optional[Path] = None) -> Path:
        """Write ``data`` to ``path`` and normalise its permission bits."""

        try:
            file_tools.ensure_directory(path.parent)
            path.write_bytes(data)
        except OSError as exc:
            raise SaveError(f"Image save failed writing {path}: {exc}", source or path) from exc

        perms = stat.S_IMODE(path.parent.stat().st_mode) & READ_WRITE_BITS
        try:
            os.chmod(path, perms)
        except OSError as exc:
            logger.warning("Could not set permissions %o on %s: %s", perms, path, exc)
        logger.info("Wrote %s bytes to %s", len(data), path)
        return path

    def save(
        self,
        data: bytes,
        source: Path,
        width: int,
        height: int,
        default_mime: str,
        filename: Optional[Path] = None,
        mime_type: Optional[str] = None,
    ) -> DerivativeResult:
        filename, extension, mime_type = self.get_output_format(filename, mime_type, default_mime, source)
        if filename is None:
            filename = self.generate_filename(source, width, height, extension)
        path = self.write(data, filename, source)
        return DerivativeResult(file=path.name, width=width, height=height, mime_type=mime_type, path=path)


class OutputChannel(Protocol):
    """Destination for streamed image bytes."""

    def set_header(self, name: str, value: str) -> None:
        ...

    def write(self, data: bytes) -> None:
        ...


class BufferedChannel:
    """In-memory channel; the web surface turns it into a response."""

    def __init__(self) -> None:
        self.headers: dict[str, str] = {}
        self._buffer = io.BytesIO()

    def set_header(self, name: str, value: str) -> None:
        self.headers[name] = value

    def write(self, data: bytes) -> None:
        self._buffer.write(data)

    @property
    def content_type(self) -> Optional[str]:
        return self.headers.get("Content-Type")

    def getvalue(self) -> bytes:
        return self._buffer.getvalue()


class FileChannel:
    """Channel over a binary file object such as ``sys.stdout.buffer``."""

    def __init__(self, handle: BinaryIO):
        self.handle = handle
        self.headers: dict[str, str] = {}

    def set_header(self, name: str, value: str) -> None:
        self.headers[name] = value

    def write(self, data: bytes) -> None:
        self.handle.write(data)
        self.handle.flush()


def write_to_channel(channel: OutputChannel, data: bytes, mime_type: str, source: Optional[Path] = None) -> None:
    """Send a Content-Type header and ``data`` to ``channel``."""

    try:
        channel.set_header("Content-Type", mime_type)
        channel.write(data)
    except (OSError, ValueError) as exc:
        raise StreamError(f"Could not stream image: {exc}", source) from exc
