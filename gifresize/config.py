"""Environment-driven settings shared by the CLI and the web surface."""

from __future__ import annotations

import os
from pathlib import Path

from PIL import Image

from .core import TargetSizeSpec

BASE_DIR = Path(__file__).resolve().parents[1]
MEDIA_DIR = Path(os.environ.get("GIFRESIZE_MEDIA_DIR", str(BASE_DIR / "artifacts" / "media")))
MAX_UPLOAD_BYTES = int(os.environ.get("GIFRESIZE_MAX_UPLOAD_MB", "50")) * 1024 * 1024
LOG_LEVEL = os.environ.get("GIFRESIZE_LOG_LEVEL", "INFO").upper()

RESAMPLE_FILTERS = {
    "nearest": Image.Resampling.NEAREST,
    "bilinear": Image.Resampling.BILINEAR,
    "bicubic": Image.Resampling.BICUBIC,
    "lanczos": Image.Resampling.LANCZOS,
}
RESAMPLE = RESAMPLE_FILTERS.get(os.environ.get("GIFRESIZE_RESAMPLE", "lanczos").lower(), Image.Resampling.LANCZOS)

DEFAULT_SIZES = (
    TargetSizeSpec("thumbnail", 150, 150, crop=True),
    TargetSizeSpec("medium", 300, 300),
    TargetSizeSpec("medium_large", 768, None),
    TargetSizeSpec("large", 1024, 1024),
)


def resample_filter(name: str | None) -> Image.Resampling:
    """Look up a resample filter by name, falling back to the configured default."""

    if not name:
        return RESAMPLE
    return RESAMPLE_FILTERS.get(name.lower(), RESAMPLE)
