"""Resize and crop geometry, resolved once per target size."""

from __future__ import annotations

import logging
import math
from typing import Optional

from . import Geometry
from .errors import DimensionError, PathLike

logger = logging.getLogger(__name__)


def _round(value: float) -> int:
    """Round half away from zero; ``round`` would use banker's rounding."""

    return int(math.floor(value + 0.5))


def _positive(value: Optional[int]) -> int:
    return value if value and value > 0 else 0


def constrain_dimensions(
    current_w: int,
    current_h: int,
    max_w: Optional[int] = None,
    max_h: Optional[int] = None,
) -> tuple[int, int]:
    """Scale ``current_w x current_h`` down to fit inside the max box, keeping aspect.

    Never scales up. A missing bound leaves that axis unconstrained.
    """

    max_w = _positive(max_w)
    max_h = _positive(max_h)
    if not max_w and not max_h:
        return current_w, current_h

    width_ratio = height_ratio = 1.0
    did_width = did_height = False

    if max_w and current_w > max_w:
        width_ratio = max_w / current_w
        did_width = True
    if max_h and current_h > max_h:
        height_ratio = max_h / current_h
        did_height = True

    smaller_ratio = min(width_ratio, height_ratio)
    larger_ratio = max(width_ratio, height_ratio)

    # An unset bound is 0 here, which always forces the smaller ratio.
    if _round(current_w * larger_ratio) > max_w or _round(current_h * larger_ratio) > max_h:
        ratio = smaller_ratio
    else:
        ratio = larger_ratio

    width = max(1, _round(current_w * ratio))
    height = max(1, _round(current_h * ratio))

    # 465x700 in a 177x177 box rounds to 117x176, one pixel short.
    if did_width and width == max_w - 1:
        width = max_w
    if did_height and height == max_h - 1:
        height = max_h

    return width, height


def resolve(
    src_w: int,
    src_h: int,
    max_w: Optional[int],
    max_h: Optional[int],
    crop: bool = False,
    source: Optional[PathLike] = None,
) -> Geometry:
    """Compute the source rectangle and destination size for a resize.

    Without ``crop`` the whole source is scaled to fit inside ``max_w x max_h``.
    With ``crop`` a centered source rectangle matching the target aspect is
    scaled to exactly the target size (capped at the source size).

    Raises:
        DimensionError: the source has no area, no target was given, or the
            result would be identical to the source size.
    """

    if src_w <= 0 or src_h <= 0:
        raise DimensionError(f"Source image has no area ({src_w}x{src_h})", source)

    max_w = _positive(max_w)
    max_h = _positive(max_h)
    if not max_w and not max_h:
        raise DimensionError("Either a width or a height is required to resize", source)

    if crop:
        aspect_ratio = src_w / src_h
        new_w = min(max_w, src_w)
        new_h = min(max_h, src_h)
        if not new_w:
            new_w = _round(new_h * aspect_ratio)
        if not new_h:
            new_h = _round(new_w / aspect_ratio)
        if new_w <= 0 or new_h <= 0:
            raise DimensionError(f"Could not calculate resized image dimensions for {max_w}x{max_h}", source)

        size_ratio = max(new_w / src_w, new_h / src_h)
        crop_w = _round(new_w / size_ratio)
        crop_h = _round(new_h / size_ratio)
        src_x = (src_w - crop_w) // 2
        src_y = (src_h - crop_h) // 2
    else:
        crop_w, crop_h = src_w, src_h
        src_x = src_y = 0
        new_w, new_h = constrain_dimensions(src_w, src_h, max_w, max_h)

    if new_w == src_w and new_h == src_h:
        raise DimensionError(f"Resized dimensions match the source size {src_w}x{src_h}", source)

    geometry = Geometry(src_x=src_x, src_y=src_y, src_w=crop_w, src_h=crop_h, dst_w=new_w, dst_h=new_h)
    logger.debug("Resolved %sx%s -> %s (crop=%s)", src_w, src_h, geometry, crop)
    return geometry


def resolve_crop(
    src_x: int,
    src_y: int,
    src_w: int,
    src_h: int,
    dst_w: Optional[int] = None,
    dst_h: Optional[int] = None,
    absolute: bool = False,
    source: Optional[PathLike] = None,
) -> Geometry:
    """Geometry for an explicit crop rectangle, optionally scaled to ``dst_w x dst_h``.

    With ``absolute`` the width and height are far-edge coordinates.
    """

    if absolute:
        src_w -= src_x
        src_h -= src_y

    if src_x < 0 or src_y < 0:
        raise DimensionError(f"Crop origin must not be negative, got ({src_x}, {src_y})", source)
    if src_w <= 0 or src_h <= 0:
        raise DimensionError(f"Crop rectangle has no area ({src_w}x{src_h})", source)
    if (dst_w is not None and dst_w < 0) or (dst_h is not None and dst_h < 0):
        raise DimensionError(f"Crop destination must not be negative, got {dst_w}x{dst_h}", source)

    return Geometry(
        src_x=src_x,
        src_y=src_y,
        src_w=src_w,
        src_h=src_h,
        dst_w=dst_w or src_w,
        dst_h=dst_h or src_h,
    )
