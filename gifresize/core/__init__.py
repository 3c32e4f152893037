"""Core data model for the animated resize pipeline."""

from __future__ import annotations

__all__ = [
    "ImageKind",
    "SourceImage",
    "Size",
    "Geometry",
    "Frame",
    "TargetSizeSpec",
    "TransformOutcome",
    "EncodedAnimation",
    "DerivativeResult",
]

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from PIL import Image

from .errors import DimensionError


class ImageKind(str, Enum):
    """Whether a source holds one frame or many."""

    STATIC = "static"
    ANIMATED = "animated"


@dataclass(frozen=True)
class SourceImage:
    """Identity and basic properties of a loaded source file."""

    path: Path
    width: int
    height: int
    mime_type: Optional[str]
    frame_count: int

    @property
    def kind(self) -> ImageKind:
        return ImageKind.ANIMATED if self.frame_count > 1 else ImageKind.STATIC

    @property
    def size(self) -> "Size":
        return Size(self.width, self.height)


@dataclass(frozen=True)
class Size:
    """Width and height of an image."""

    width: int
    height: int

    def matches(self, width: Optional[int], height: Optional[int]) -> bool:
        return self.width == width and self.height == height


@dataclass(frozen=True)
class Geometry:
    """Source rectangle and destination size for one transform request."""

    src_x: int
    src_y: int
    src_w: int
    src_h: int
    dst_w: int
    dst_h: int

    def __post_init__(self) -> None:
        if self.dst_w <= 0 or self.dst_h <= 0:
            raise DimensionError(f"Destination size must be positive, got {self.dst_w}x{self.dst_h}")
        if self.src_w <= 0 or self.src_h <= 0:
            raise DimensionError(f"Source rectangle must be positive, got {self.src_w}x{self.src_h}")

    @property
    def source_box(self) -> tuple[int, int, int, int]:
        return (self.src_x, self.src_y, self.src_x + self.src_w, self.src_y + self.src_h)

    @property
    def dest_size(self) -> tuple[int, int]:
        return (self.dst_w, self.dst_h)


@dataclass
class Frame:
    """One decoded frame and its display duration in milliseconds."""

    image: Image.Image
    duration: int
    index: int = 0

    @property
    def size(self) -> tuple[int, int]:
        return self.image.size

    def release(self) -> None:
        """Free the pixel buffer once a later stage no longer needs it."""

        self.image.close()


@dataclass(frozen=True)
class TargetSizeSpec:
    """Named target size for batch derivative generation."""

    name: str
    width: Optional[int] = None
    height: Optional[int] = None
    crop: bool = False

    @property
    def has_dimensions(self) -> bool:
        return bool(self.width) or bool(self.height)

    @classmethod
    def from_mapping(cls, name: str, data: dict[str, Any]) -> "TargetSizeSpec":
        return cls(
            name=name,
            width=data.get("width") or None,
            height=data.get("height") or None,
            crop=bool(data.get("crop", False)),
        )


@dataclass
class TransformOutcome:
    """Frames that survived a transform plus how many were dropped."""

    frames: list[Frame] = field(default_factory=list)
    dropped: int = 0

    @property
    def durations(self) -> list[int]:
        return [frame.duration for frame in self.frames]

    def __bool__(self) -> bool:
        return bool(self.frames)


@dataclass
class EncodedAnimation:
    """Encoded GIF bytes with their canvas size and the per-frame timing as written."""

    data: bytes
    width: int
    height: int
    durations: list[int]

    @property
    def frame_count(self) -> int:
        return len(self.durations)


@dataclass
class DerivativeResult:
    """Saved derivative metadata. ``path`` is omitted for batch entries."""

    file: str
    width: int
    height: int
    mime_type: str
    path: Optional[Path] = None

    def as_metadata(self) -> dict[str, Any]:
        return {
            "file": self.file,
            "width": self.width,
            "height": self.height,
            "mime_type": self.mime_type,
        }
