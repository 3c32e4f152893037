"""Reassemble transformed frames into one animated GIF buffer."""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Optional, Sequence

from PIL import Image

from . import EncodedAnimation, Frame
from .errors import EncodeError

logger = logging.getLogger(__name__)

GIF_FORMAT = "GIF"
LOOP_FOREVER = 0
# Restore to background between frames so transparent areas don't accumulate.
DISPOSAL_RESTORE_BACKGROUND = 2


def _written_durations(data: bytes) -> list[int]:
    """Per-frame durations as stored in the encoded GIF."""

    with Image.open(io.BytesIO(data)) as encoded:
        durations = []
        for index in range(getattr(encoded, "n_frames", 1)):
            encoded.seek(index)
            durations.append(int(encoded.info.get("duration", 0) or 0))
    return durations


def assemble(frames: Sequence[Frame], source: Optional[Path] = None) -> EncodedAnimation:
    """Encode ``frames`` with their durations as a GIF that loops forever.

    All frames must share one size. Frame buffers are released once encoded.
    Pillow folds identical consecutive frames into one whose duration is their
    sum, so the returned timing is read back from the encoded buffer and may
    hold fewer entries than ``frames``.

    Raises:
        EncodeError: no frames were given, sizes differ, or Pillow failed to
            write the container.
    """

    if not frames:
        raise EncodeError("No frames to encode", source)

    width, height = frames[0].size
    mismatched = [frame.index for frame in frames if frame.size != (width, height)]
    if mismatched:
        raise EncodeError(f"Frames {mismatched} do not match the {width}x{height} canvas", source)

    durations = [frame.duration for frame in frames]
    buffer = io.BytesIO()
    try:
        first, *rest = [frame.image for frame in frames]
        first.save(
            buffer,
            format=GIF_FORMAT,
            save_all=True,
            append_images=rest,
            duration=durations,
            loop=LOOP_FOREVER,
            disposal=DISPOSAL_RESTORE_BACKGROUND,
        )
    except (OSError, ValueError, KeyError) as exc:
        raise EncodeError(f"GIF creation failed: {exc}", source) from exc
    finally:
        for frame in frames:
            frame.release()

    data = buffer.getvalue()
    try:
        written = _written_durations(data)
    except (EOFError, OSError, ValueError) as exc:
        raise EncodeError(f"Encoded GIF could not be read back: {exc}", source) from exc

    if len(written) != len(durations):
        logger.info(
            "Encoder merged %s identical consecutive frame(s) of %s", len(durations) - len(written), source
        )
    logger.debug("Encoded %s frame(s) at %sx%s into %s bytes", len(written), width, height, len(data))
    return EncodedAnimation(data=data, width=width, height=height, durations=written)
