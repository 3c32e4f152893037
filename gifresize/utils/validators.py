"""Validation helpers for user inputs."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Optional

from ..core import TargetSizeSpec
from ..core.errors import LoadError, ValidationError


ALLOWED_IMAGE_EXTENSIONS = {".gif", ".png", ".jpg", ".jpeg", ".webp"}
SIZE_PATTERN = re.compile(r"^(?P<width>\d*)x(?P<height>\d*)(?P<crop>c?)$")


def validate_image_path(path: Path) -> Path:
    """Ensure the image path exists and appears to be a supported format."""

    if not path:
        raise LoadError("No path provided", Path("<unset>"))
    if not path.exists():
        raise LoadError("File not found", path)
    if path.suffix.lower() not in ALLOWED_IMAGE_EXTENSIONS:
        raise LoadError("Unsupported format", path)
    return path


def parse_optional_int(value: str | None, field: str) -> Optional[int]:
    """Parse a positive integer from a string value, if provided."""

    if value is None or value == "":
        return None
    try:
        parsed = int(value)
    except ValueError as exc:
        raise ValidationError(f"{field} must be an integer") from exc
    if parsed <= 0:
        raise ValidationError(f"{field} must be greater than zero")
    return parsed


def validate_dimensions(width: Optional[int], height: Optional[int]) -> None:
    """Require at least one of width and height; the other follows the aspect ratio."""

    if width is None and height is None:
        raise ValidationError("Provide a width, a height, or both")


def parse_size_spec(value: str) -> TargetSizeSpec:
    """Parse ``name=WIDTHxHEIGHT[c]``; either dimension may be left empty.

    ``thumb=150x150c`` crops to exactly 150x150, ``wide=800x`` fits to 800px wide.
    """

    name, sep, size = value.partition("=")
    name = name.strip()
    if not sep or not name:
        raise ValidationError(f"Size must look like name=WIDTHxHEIGHT[c], got {value!r}")
    match = SIZE_PATTERN.match(size.strip().lower())
    if not match:
        raise ValidationError(f"Size must look like name=WIDTHxHEIGHT[c], got {value!r}")
    width = parse_optional_int(match.group("width"), f"{name} width")
    height = parse_optional_int(match.group("height"), f"{name} height")
    validate_dimensions(width, height)
    return TargetSizeSpec(name=name, width=width, height=height, crop=bool(match.group("crop")))


def validate_crop_rectangle(x: int, y: int, width: int, height: int) -> None:
    """Ensure the crop origin is non-negative and the rectangle has area."""

    if x < 0 or y < 0:
        raise ValidationError("Crop origin must be zero or greater")
    if width <= 0 or height <= 0:
        raise ValidationError("Crop width and height must be greater than zero")
