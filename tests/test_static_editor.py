import io

import pytest
from PIL import Image

from gifresize.core import Size
from gifresize.core.dispatch import open_editor
from gifresize.core.editor import AnimatedGifEditor
from gifresize.core.errors import DimensionError, LoadError, TransformError
from gifresize.core.static_editor import StaticImageEditor
from gifresize.core.storage import DerivativeStorage


def test_open_editor_dispatches_on_frame_count(animated_gif, single_frame_gif, png_image):
    assert isinstance(open_editor(animated_gif), AnimatedGifEditor)
    assert isinstance(open_editor(single_frame_gif), StaticImageEditor)
    assert isinstance(open_editor(png_image), StaticImageEditor)


def test_open_editor_returns_loaded_editor(animated_gif):
    assert open_editor(animated_gif).get_size() == Size(100, 50)


def test_open_editor_missing_file(tmp_path):
    with pytest.raises(LoadError):
        open_editor(tmp_path / "missing.gif")


def test_static_editor_rejects_animated_source(animated_gif):
    with pytest.raises(LoadError):
        StaticImageEditor(animated_gif).load()


def test_resize_rotate_flip_and_save(png_image):
    editor = open_editor(png_image)
    assert editor.resize(40, None) == Size(40, 20)
    assert editor.rotate(90) == Size(20, 40)
    assert editor.flip(True, True) == Size(20, 40)

    result = editor.save()
    assert result.file == "still-20x40.png"
    assert result.mime_type == "image/png"
    with Image.open(result.path) as saved:
        assert saved.size == (20, 40)


def test_single_frame_gif_resize(single_frame_gif):
    editor = open_editor(single_frame_gif)
    assert editor.resize(20, 20, crop=True) == Size(20, 20)
    result = editor.save()
    with Image.open(result.path) as saved:
        assert saved.format == "GIF"
        assert saved.size == (20, 20)


def test_save_as_jpeg_changes_extension(png_image, tmp_path):
    editor = open_editor(png_image)
    result = editor.save(tmp_path / "photo.png", mime_type="image/jpeg")
    assert result.file == "photo.jpg"
    with Image.open(result.path) as saved:
        assert saved.format == "JPEG"


def test_crop_outside_image_is_a_transform_error(png_image):
    editor = open_editor(png_image)
    with pytest.raises(TransformError):
        editor.crop(70, 0, 40, 40)


def test_multi_resize_uses_original_image(png_image, tmp_path):
    editor = open_editor(png_image, storage=DerivativeStorage(tmp_path / "out"))
    editor.rotate(90)
    metadata = editor.multi_resize({"thumb": {"width": 20, "height": 20, "crop": True}, "half": {"width": 40}})

    assert {name: (r.width, r.height) for name, r in metadata.items()} == {"thumb": (20, 20), "half": (40, 20)}
    assert (tmp_path / "out" / "still-40x20.png").exists()
    assert editor.get_size() == Size(40, 80)


def test_open_editor_accepts_a_file_object(png_image, animated_gif):
    editor = open_editor(io.BytesIO(png_image.read_bytes()), name="upload.png")
    assert isinstance(editor, StaticImageEditor)
    assert editor.path.name == "upload.png"
    assert editor.get_size() == Size(80, 40)

    with open(animated_gif, "rb") as handle:
        animated = open_editor(handle)
    assert isinstance(animated, AnimatedGifEditor)
    assert animated.resize(50, None) == Size(50, 25)


def test_static_dimension_errors_carry_the_source(png_image):
    editor = StaticImageEditor(png_image)
    with pytest.raises(DimensionError) as excinfo:
        editor.resize(400, None)
    assert excinfo.value.source == png_image
