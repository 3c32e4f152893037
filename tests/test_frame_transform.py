import numpy as np
from PIL import Image

from gifresize.core import Frame, Geometry
from gifresize.core.frame_transform import transform_all, transform_frame


def _frame(color, duration, index, size=(100, 50)):
    return Frame(image=Image.new("RGBA", size, color), duration=duration, index=index)


def test_transform_all_keeps_order_and_durations():
    frames = [_frame((255, 0, 0, 255), 10, 0), _frame((0, 255, 0, 255), 20, 1), _frame((0, 0, 255, 255), 15, 2)]
    geometry = Geometry(src_x=0, src_y=0, src_w=100, src_h=50, dst_w=50, dst_h=25)

    outcome = transform_all(frames, geometry)

    assert outcome.dropped == 0
    assert [frame.index for frame in outcome.frames] == [0, 1, 2]
    assert outcome.durations == [10, 20, 15]
    assert all(frame.size == (50, 25) for frame in outcome.frames)


def test_crop_box_is_copied_into_destination():
    image = Image.new("RGBA", (100, 50), (255, 0, 0, 255))
    image.paste((0, 0, 255, 255), (25, 0, 75, 50))
    geometry = Geometry(src_x=25, src_y=0, src_w=50, src_h=50, dst_w=20, dst_h=20)

    result = transform_frame(Frame(image=image, duration=40), geometry)

    pixels = np.asarray(result.image)
    assert result.size == (20, 20)
    assert result.duration == 40
    # Edge columns may pick up filter support from outside the box.
    assert (pixels[:, 3:17, 2] == 255).all()
    assert (pixels[:, 3:17, 0] == 0).all()


def test_alpha_is_preserved_per_pixel():
    image = Image.new("RGBA", (40, 20), (0, 0, 255, 255))
    image.paste((255, 0, 0, 0), (0, 0, 20, 20))
    geometry = Geometry(src_x=0, src_y=0, src_w=40, src_h=20, dst_w=20, dst_h=10)

    result = transform_frame(Frame(image=image, duration=0), geometry)

    alpha = np.asarray(result.image)[..., 3]
    assert result.image.mode == "RGBA"
    assert (alpha[:, :7] == 0).all()
    assert (alpha[:, 13:] == 255).all()


def test_failed_frames_are_dropped_with_their_duration():
    frames = [_frame((255, 0, 0, 255), 10, 0), _frame((0, 255, 0, 255), 20, 1, size=(30, 30)), _frame((0, 0, 255, 255), 15, 2)]
    geometry = Geometry(src_x=0, src_y=0, src_w=100, src_h=50, dst_w=50, dst_h=25)

    outcome = transform_all(frames, geometry)

    assert outcome.dropped == 1
    assert [frame.index for frame in outcome.frames] == [0, 2]
    assert outcome.durations == [10, 15]


def test_box_outside_every_frame_leaves_nothing():
    frames = [_frame((255, 0, 0, 255), 10, 0), _frame((0, 255, 0, 255), 20, 1)]
    geometry = Geometry(src_x=80, src_y=0, src_w=50, src_h=50, dst_w=50, dst_h=50)

    outcome = transform_all(frames, geometry)

    assert not outcome
    assert outcome.dropped == 2
