import pytest

from harness_magick.core import geometry
from harness_magick.core.geometry import ActionKind, ActionRequest, plan_actions


def test_offsets_carry_explicit_sign() -> None:
    assert [geometry.signed(v) for v in (0, 1, -1, 100, -100)] == ["+0", "+1", "-1", "+100", "-100"]
    assert geometry.format_offset(0, -5) == "+0-5"


def test_round_half_up_rounds_away_from_zero() -> None:
    assert geometry.round_half_up(2.5) == 3
    assert geometry.round_half_up(-2.5) == -3
    assert geometry.round_half_up(-100.0) == -100
    assert geometry.round_half_up(1.49) == 1


def test_crop_anchors_top_left() -> None:
    result = plan_actions([ActionRequest(ActionKind.CROP, 100, 100, x=10, y=10)], (500, 500))
    assert result.args() == ["-gravity", "NorthWest", "-crop", "100x100+10+10!", "-flatten"]
    assert result.size == (100, 100)


def test_crop_keeps_negative_offsets() -> None:
    plan = geometry.plan_crop((500, 500), 50, 40, -5, -7)
    assert plan.args()[3] == "50x40-5-7!"
    assert plan.crop_offset == (-5, -7)
    assert plan.extent_offset is None


def test_crop_matching_size_is_bypassed() -> None:
    assert geometry.plan_crop((500, 400), 500, 400) is None
    assert geometry.plan_crop((500, 400), 500, 400, 1, 0) is not None


@pytest.mark.parametrize(
    "source,box",
    [
        ((500, 400), (250, 250)),
        ((400, 500), (250, 250)),
        ((1000, 333), (640, 480)),
        ((333, 1000), (640, 480)),
        ((1920, 1080), (100, 1000)),
        ((7, 3), (2000, 2000)),
    ],
)
def test_resize_fits_box_and_keeps_aspect(source, box) -> None:  # noqa: ANN001
    width, height = geometry.dimensions(box[0], box[1], source)
    assert width <= box[0] and height <= box[1]
    assert width == box[0] or height == box[1]
    assert abs(width * source[1] / source[0] - height) <= 1


def test_dimensions_with_one_open_side() -> None:
    assert geometry.dimensions(250, None, (500, 400)) == (250, 200)
    assert geometry.dimensions(None, 100, (500, 400)) == (125, 100)
    assert geometry.dimensions(None, None, (500, 400)) == (500, 400)


def test_resize_picks_thumbnail_filter_for_small_targets() -> None:
    small = geometry.plan_resize((1000, 500), 150, 150)
    assert small.args() == ["-thumbnail", "150x75!"]
    large = geometry.plan_resize((500, 400), 250, 250)
    assert large.args() == ["-resize", "250x200!"]


def test_resize_to_current_size_is_bypassed() -> None:
    assert geometry.plan_resize((500, 400), 1000, 400) is None


def test_thumb_always_yields_requested_size() -> None:
    for source in [(1000, 100), (100, 1000), (300, 300)]:
        result = plan_actions([ActionRequest(ActionKind.THUMB, 200, 120)], source)
        assert result.size == (200, 120)
    plan = geometry.plan_thumb((1000, 100), 200, 120)
    assert plan.args() == ["-gravity", "Center", "-resize", "200x120", "-extent", "200x120"]


def test_thumbfill_centered_has_zero_offsets() -> None:
    plan = geometry.plan_thumbfill((400, 100), 200, 100, 50, 50)
    assert plan.extent_offset == (0, 0)
    assert plan.args() == ["-gravity", "Center", "-resize", "200x100^", "-extent", "200x100+0+0"]
    assert plan.size == (200, 100)


def test_thumbfill_refits_to_height_for_wide_sources() -> None:
    # width fit gives 200x50, too short, so the height fit (400x100) is used
    leading = geometry.plan_thumbfill((400, 100), 200, 100, 0, 50)
    trailing = geometry.plan_thumbfill((400, 100), 200, 100, 100, 50)
    assert leading.extent_offset == (-100, 0)
    assert leading.args()[-1] == "200x100-100+0"
    assert trailing.extent_offset == (100, 0)
    assert trailing.args()[-1] == "200x100+100+0"


def test_thumbfill_shifts_vertically_for_tall_sources() -> None:
    top = geometry.plan_thumbfill((100, 400), 200, 100, 50, 0)
    assert top.extent_offset == (0, -350)
    assert top.args()[-1] == "200x100+0-350"


def test_thumbfill_small_target_uses_thumbnail() -> None:
    plan = geometry.plan_thumbfill((640, 480), 120, 120)
    assert plan.resize_mode is geometry.ResizeMode.THUMBNAIL


def test_plan_actions_threads_size_through_queue() -> None:
    actions = [
        ActionRequest(ActionKind.RESIZE, 250, None),
        ActionRequest(ActionKind.CROP, 100, 100, x=20, y=0),
        ActionRequest(ActionKind.THUMB, 100, 100),
    ]
    result = plan_actions(actions, (500, 400))
    assert len(result.plans) == 2
    assert result.plans[0].size == (250, 200)
    assert result.size == (100, 100)
    assert result.args() == [
        "-resize",
        "250x200!",
        "-gravity",
        "NorthWest",
        "-crop",
        "100x100+20+0!",
        "-flatten",
    ]


def test_empty_queue_is_bypassed() -> None:
    result = plan_actions([], (10, 20))
    assert result.bypassed
    assert result.size == (10, 20)
