"""Pick exactly one editor for a source, based on its frame count."""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import BinaryIO, Optional, Union

from PIL import Image

from . import ImageKind
from .editor import AnimatedGifEditor, BaseImageEditor
from .frame_source import FrameSource, stream_name
from .frame_transform import DEFAULT_RESAMPLE
from .static_editor import StaticImageEditor
from .storage import DerivativeStorage

logger = logging.getLogger(__name__)

EDITORS: dict[ImageKind, type[BaseImageEditor]] = {
    ImageKind.STATIC: StaticImageEditor,
    ImageKind.ANIMATED: AnimatedGifEditor,
}


def open_editor(
    path: Union[str, Path, BinaryIO],
    frame_source: Optional[FrameSource] = None,
    storage: Optional[DerivativeStorage] = None,
    resample: Image.Resampling = DEFAULT_RESAMPLE,
    name: Optional[Union[str, Path]] = None,
) -> BaseImageEditor:
    """Probe ``path`` once and return a loaded static or animated editor.

    ``path`` may also be a binary file object; it is read once and ``name``
    identifies it. The mime type alone is not trusted: a GIF with a single
    frame gets the static editor.

    Raises:
        LoadError: the file is missing, unreadable, or of an unsupported type.
    """

    frame_source = frame_source or FrameSource()
    if isinstance(path, (str, Path)):
        kind = frame_source.probe(path)
    else:
        name = Path(name) if name else stream_name(path)
        data = path.read()
        kind = frame_source.probe(name, io.BytesIO(data))
        path = io.BytesIO(data)

    editor = EDITORS[kind](path, frame_source=frame_source, storage=storage, resample=resample, name=name)
    editor.load()
    logger.debug("Opened %s with %s", editor.path, type(editor).__name__)
    return editor
