import pytest

from gifresize.core import TargetSizeSpec
from gifresize.core.errors import LoadError, ValidationError
from gifresize.utils import validators


@pytest.mark.parametrize(
    "value, expected",
    [
        ("thumb=150x150c", TargetSizeSpec("thumb", 150, 150, crop=True)),
        ("wide=800x", TargetSizeSpec("wide", 800, None)),
        ("tall=x600", TargetSizeSpec("tall", None, 600)),
    ],
)
def test_parse_size_spec(value, expected):
    assert validators.parse_size_spec(value) == expected


@pytest.mark.parametrize("value", ["150x150", "=150x150", "thumb=x", "thumb=0x10", "thumb=abc"])
def test_parse_size_spec_rejects_bad_input(value):
    with pytest.raises(ValidationError):
        validators.parse_size_spec(value)


def test_validate_image_path(tmp_path, animated_gif):
    assert validators.validate_image_path(animated_gif) == animated_gif
    with pytest.raises(LoadError):
        validators.validate_image_path(tmp_path / "missing.gif")
    clip = tmp_path / "clip.mp4"
    clip.write_bytes(b"")
    with pytest.raises(LoadError):
        validators.validate_image_path(clip)


def test_parse_optional_int():
    assert validators.parse_optional_int("", "Width") is None
    assert validators.parse_optional_int("12", "Width") == 12
    with pytest.raises(ValidationError):
        validators.parse_optional_int("-3", "Width")
