"""Domain-specific exceptions for the animated resize pipeline."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

PathLike = Union[str, Path]


class ImageEditorError(RuntimeError):
    """Base class for editor failures; carries the source file for diagnostics."""

    def __init__(self, message: str, source: Optional[PathLike] = None):
        self.reason = message
        self.source = Path(source) if source is not None else None
        if self.source is not None:
            message = f"{message} ({self.source})"
        super().__init__(message)


class DimensionError(ImageEditorError):
    """Raised when resize or crop dimensions cannot be satisfied."""


class LoadError(ImageEditorError):
    """Raised when the source is missing, unreadable, or not a supported image."""


class ExtractError(ImageEditorError):
    """Raised when no frame at all can be decoded from the source."""


class TransformError(ImageEditorError):
    """Raised when every frame failed its resize or crop."""


class EncodeError(ImageEditorError):
    """Raised when the transformed frames cannot be reassembled."""


class SaveError(ImageEditorError):
    """Raised when a derivative cannot be written to disk."""


class StreamError(ImageEditorError):
    """Raised when encoded bytes cannot be written to the output channel."""


class UnsupportedOperationError(ImageEditorError):
    """Raised for operations the editor does not implement for this image kind."""


class ValidationError(ValueError):
    """Raised when user-provided settings fail validation."""
