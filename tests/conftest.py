from pathlib import Path

import pytest
from PIL import Image, ImageDraw

from gifresize.core.frame_source import FrameSource

COLORS = [(220, 40, 40), (40, 200, 60), (40, 60, 220), (230, 200, 30), (150, 40, 200)]


def make_gif(path: Path, durations: list[int], size: tuple[int, int] = (100, 50)) -> Path:
    """Write an animated GIF whose frames differ in colour and marker position."""

    frames = []
    for idx, _ in enumerate(durations):
        frame = Image.new("RGB", size, COLORS[idx % len(COLORS)])
        draw = ImageDraw.Draw(frame)
        x = (idx * 7) % max(size[0] - 10, 1)
        draw.rectangle((x, 5, x + 9, 14), fill=(255, 255, 255))
        frames.append(frame)
    frames[0].save(path, save_all=True, append_images=frames[1:], duration=durations, loop=0)
    return path


def gif_timings(data_or_path) -> tuple[tuple[int, int], list[int]]:
    """Return the canvas size and per-frame durations of a GIF."""

    with Image.open(data_or_path) as img:
        durations = []
        for index in range(getattr(img, "n_frames", 1)):
            img.seek(index)
            durations.append(img.info.get("duration", 0))
        return img.size, durations


@pytest.fixture
def animated_gif(tmp_path) -> Path:
    return make_gif(tmp_path / "anim.gif", [100, 200, 150])


@pytest.fixture
def five_frame_gif(tmp_path) -> Path:
    return make_gif(tmp_path / "five.gif", [100, 100, 100, 100, 100])


@pytest.fixture
def wide_gif(tmp_path) -> Path:
    return make_gif(tmp_path / "wide.gif", [80, 120, 160], size=(120, 60))


@pytest.fixture
def single_frame_gif(tmp_path) -> Path:
    path = tmp_path / "still.gif"
    Image.new("RGB", (40, 20), (10, 120, 200)).save(path)
    return path


@pytest.fixture
def png_image(tmp_path) -> Path:
    path = tmp_path / "still.png"
    Image.new("RGBA", (80, 40), (10, 120, 200, 255)).save(path)
    return path


class FlakyImage:
    """Wraps a Pillow image and fails to decode selected frame indexes."""

    def __init__(self, image: Image.Image, bad_frames: set[int]):
        self._image = image
        self.bad_frames = bad_frames
        self.closed = False

    @property
    def n_frames(self) -> int:
        return self._image.n_frames

    @property
    def size(self):
        return self._image.size

    @property
    def format(self):
        return self._image.format

    @property
    def info(self):
        return self._image.info

    def seek(self, index: int) -> None:
        if index in self.bad_frames:
            raise OSError(f"broken data stream when reading frame {index}")
        self._image.seek(index)

    def convert(self, mode: str) -> Image.Image:
        return self._image.convert(mode)

    def close(self) -> None:
        self.closed = True
        self._image.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


class FlakyFrameSource(FrameSource):
    """FrameSource whose decoder fails on ``bad_frames``; records opened handles."""

    def __init__(self, bad_frames=()):
        self.handles: list[FlakyImage] = []
        self.extract_calls = 0
        bad = set(bad_frames)

        def opener(target):
            handle = FlakyImage(Image.open(target), bad)
            self.handles.append(handle)
            return handle

        super().__init__(opener=opener)

    def extract(self, path, stream=None):
        self.extract_calls += 1
        return super().extract(path, stream)


@pytest.fixture
def flaky_source():
    return FlakyFrameSource
