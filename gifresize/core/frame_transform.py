"""Per-frame resize and crop."""

from __future__ import annotations

import logging
from typing import Iterable

from PIL import Image

from . import Frame, Geometry, TransformOutcome

logger = logging.getLogger(__name__)

DEFAULT_RESAMPLE = Image.Resampling.LANCZOS

# Allocation and resample failures that only cost the current frame.
TRANSFORM_ERRORS = (ValueError, OSError, MemoryError)


def transform_frame(
    frame: Frame,
    geometry: Geometry,
    resample: Image.Resampling = DEFAULT_RESAMPLE,
) -> Frame:
    """Resample ``geometry.source_box`` of ``frame`` into a new ``dst_w x dst_h`` frame.

    Alpha is resampled per pixel alongside the colour channels; nothing is
    composited onto a background.
    """

    source = frame.image if frame.image.mode == "RGBA" else frame.image.convert("RGBA")
    resized = source.resize(geometry.dest_size, resample, box=geometry.source_box)
    return Frame(image=resized, duration=frame.duration, index=frame.index)


def transform_all(
    frames: Iterable[Frame],
    geometry: Geometry,
    resample: Image.Resampling = DEFAULT_RESAMPLE,
) -> TransformOutcome:
    """Apply ``geometry`` to every frame, dropping frames that fail.

    Each source buffer is released as soon as it has been resampled, so only
    the transformed set is held in memory.
    """

    outcome = TransformOutcome()
    for frame in frames:
        try:
            outcome.frames.append(transform_frame(frame, geometry, resample))
        except TRANSFORM_ERRORS as exc:
            outcome.dropped += 1
            logger.debug("Frame %s failed to transform: %s", frame.index, exc)
        finally:
            frame.release()

    if outcome.dropped:
        logger.info("Dropped %s frame(s) while transforming to %sx%s", outcome.dropped, geometry.dst_w, geometry.dst_h)
    return outcome
