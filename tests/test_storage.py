import stat
from pathlib import Path

import pytest

from gifresize.core.errors import SaveError, StreamError
from gifresize.core.storage import BufferedChannel, DerivativeStorage, write_to_channel


def test_generate_filename_defaults_to_size_suffix():
    storage = DerivativeStorage()
    assert storage.generate_filename(Path("/media/cat.gif"), 150, 75, "gif") == Path("/media/cat-150x75.gif")


def test_generate_filename_honours_destination_and_suffix(tmp_path):
    storage = DerivativeStorage(tmp_path)
    assert storage.generate_filename(Path("/media/cat.gif"), 1, 1, "gif") == tmp_path / "cat-1x1.gif"
    assert storage.generate_filename(Path("/media/cat.gif"), 1, 1, "gif", suffix="edited") == tmp_path / "cat-edited.gif"


@pytest.mark.parametrize(
    "filename, mime_type, expected",
    [
        (None, None, (None, "gif", "image/gif")),
        (Path("a.png"), None, (Path("a.png"), "png", "image/png")),
        (Path("a.png"), "image/gif", (Path("a.gif"), "gif", "image/gif")),
        (Path("a.jpeg"), None, (Path("a.jpeg"), "jpg", "image/jpeg")),
    ],
)
def test_get_output_format(filename, mime_type, expected):
    assert DerivativeStorage().get_output_format(filename, mime_type, "image/gif") == expected


def test_get_output_format_rejects_unknown_mime():
    with pytest.raises(SaveError):
        DerivativeStorage().get_output_format(None, "image/tiff", "image/gif")


def test_write_copies_directory_read_write_bits(tmp_path):
    target_dir = tmp_path / "uploads"
    target_dir.mkdir()
    target_dir.chmod(0o775)

    path = DerivativeStorage().write(b"GIF89a", target_dir / "x.gif")

    assert path.read_bytes() == b"GIF89a"
    assert stat.S_IMODE(path.stat().st_mode) == 0o664


def test_write_failure_raises_save_error(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("file, not a directory")
    with pytest.raises(SaveError):
        DerivativeStorage().write(b"data", blocker / "x.gif")


def test_buffered_channel_collects_header_and_bytes():
    channel = BufferedChannel()
    write_to_channel(channel, b"abc", "image/gif")
    assert channel.content_type == "image/gif"
    assert channel.getvalue() == b"abc"


def test_write_to_channel_wraps_errors(tmp_path):
    class Closed:
        def set_header(self, name, value):
            raise ValueError("headers already sent")

        def write(self, data):
            pass

    with pytest.raises(StreamError):
        write_to_channel(Closed(), b"abc", "image/gif", tmp_path / "a.gif")


def test_save_errors_name_the_source_image(tmp_path):
    source = tmp_path / "cat.gif"
    with pytest.raises(SaveError) as excinfo:
        DerivativeStorage().get_output_format(None, "image/tiff", "image/gif", source)
    assert excinfo.value.source == source

    blocker = tmp_path / "blocker"
    blocker.write_text("x")
    with pytest.raises(SaveError) as excinfo:
        DerivativeStorage().write(b"data", blocker / "x.gif", source)
    assert excinfo.value.source == source
