"""Pure geometry planning for ImageMagick transform actions.

Every planner takes the current tracked size of the image and returns either
``None`` (the action is a no-op for that size) or a :class:`GeometryPlan` whose
``width``/``height`` become the tracked size for the next action.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

Size = Tuple[int, int]

# both sides at or below this use -thumbnail (fast filter, strips profiles)
THUMBNAIL_MAX_SIDE = 160


class ActionKind(str, Enum):
    CROP = "crop"
    RESIZE = "resize"
    THUMB = "thumb"
    THUMBFILL = "thumbfill"


class Gravity(str, Enum):
    CENTER = "Center"
    NORTH_WEST = "NorthWest"


class ResizeMode(str, Enum):
    RESIZE = "-resize"
    THUMBNAIL = "-thumbnail"


@dataclass(frozen=True)
class ActionRequest:
    kind: ActionKind
    width: Optional[int]
    height: Optional[int]
    x: int = 0
    y: int = 0
    center_x: float = 50
    center_y: float = 50


@dataclass(frozen=True)
class GeometryPlan:
    width: int
    height: int
    gravity: Optional[Gravity] = None
    crop_offset: Optional[Tuple[int, int]] = None
    extent_offset: Optional[Tuple[int, int]] = None
    resize_mode: Optional[ResizeMode] = None
    fill: bool = False
    flatten: bool = False
    extent: bool = False

    @property
    def size(self) -> Size:
        return (self.width, self.height)

    def args(self) -> List[str]:
        box = f"{self.width}x{self.height}"
        out: List[str] = []
        if self.gravity is not None:
            out += ["-gravity", self.gravity.value]
        if self.crop_offset is not None:
            out += ["-crop", box + format_offset(*self.crop_offset) + "!"]
        if self.resize_mode is not None:
            if self.fill:
                out += [self.resize_mode.value, box + "^"]
            elif self.extent:
                out += [self.resize_mode.value, box]
            else:
                out += [self.resize_mode.value, box + "!"]
        if self.extent:
            offset = format_offset(*self.extent_offset) if self.extent_offset is not None else ""
            out += ["-extent", box + offset]
        if self.flatten:
            out.append("-flatten")
        return out


@dataclass(frozen=True)
class PlanResult:
    size: Size
    plans: Tuple[GeometryPlan, ...]

    @property
    def bypassed(self) -> bool:
        return not self.plans

    def args(self) -> List[str]:
        out: List[str] = []
        for plan in self.plans:
            out += plan.args()
        return out


def round_half_up(value: float) -> int:
    """Round half away from zero; ``round()`` would round 0.5 to even."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def signed(value: int) -> str:
    return str(value) if value < 0 else f"+{value}"


def format_offset(x: int, y: int) -> str:
    return signed(x) + signed(y)


def dimensions(width: Optional[int], height: Optional[int], size: Size) -> Size:
    """Largest aspect-preserving size fitting in ``width`` x ``height``.

    Either bound may be ``None`` to fit the other side only.
    """
    source_width, source_height = size
    if width is None and height is None:
        return size
    if height is None:
        fitted = (width, round_half_up(source_height * width / source_width))
    elif width is None:
        fitted = (round_half_up(source_width * height / source_height), height)
    else:
        scale = min(width / source_width, height / source_height)
        fitted = (round_half_up(source_width * scale), round_half_up(source_height * scale))
    return (max(1, fitted[0]), max(1, fitted[1]))


def bypass_test(width: int, height: int, size: Size, x: int = 0, y: int = 0) -> bool:
    return (width, height) == tuple(size) and x == 0 and y == 0


def resize_mode(width: int, height: int) -> ResizeMode:
    if width <= THUMBNAIL_MAX_SIDE and height <= THUMBNAIL_MAX_SIDE:
        return ResizeMode.THUMBNAIL
    return ResizeMode.RESIZE


def plan_crop(size: Size, width: int, height: int, x: int = 0, y: int = 0) -> Optional[GeometryPlan]:
    if bypass_test(width, height, size, x, y):
        return None
    return GeometryPlan(
        width=width,
        height=height,
        gravity=Gravity.NORTH_WEST,
        crop_offset=(x, y),
        flatten=True,
    )


def plan_resize(size: Size, width: Optional[int], height: Optional[int]) -> Optional[GeometryPlan]:
    fitted_width, fitted_height = dimensions(width, height, size)
    if bypass_test(fitted_width, fitted_height, size):
        return None
    return GeometryPlan(
        width=fitted_width,
        height=fitted_height,
        resize_mode=resize_mode(fitted_width, fitted_height),
    )


def plan_thumb(size: Size, width: int, height: int) -> Optional[GeometryPlan]:
    if bypass_test(width, height, size):
        return None
    return GeometryPlan(
        width=width,
        height=height,
        gravity=Gravity.CENTER,
        resize_mode=resize_mode(width, height),
        extent=True,
    )


def plan_thumbfill(
    size: Size,
    width: int,
    height: int,
    center_x: float = 50,
    center_y: float = 50,
) -> Optional[GeometryPlan]:
    """Scale to cover ``width`` x ``height`` and crop the overflow.

    ``center_x``/``center_y`` are percentages: 50 keeps the middle, 0 keeps the
    leading edge, 100 the trailing edge.
    """
    if bypass_test(width, height, size):
        return None
    shift_x = 0.5 - center_x / 100
    shift_y = 0.5 - center_y / 100

    fitted = dimensions(width, None, size)
    if fitted[1] < height:
        fitted = dimensions(None, height, size)
        offset = (round_half_up((width - fitted[0]) * shift_x), 0)
    else:
        offset = (0, round_half_up((height - fitted[1]) * shift_y))

    return GeometryPlan(
        width=width,
        height=height,
        gravity=Gravity.CENTER,
        extent_offset=offset,
        resize_mode=resize_mode(width, height),
        fill=True,
        extent=True,
    )


def plan_action(action: ActionRequest, size: Size) -> Optional[GeometryPlan]:
    if action.kind is ActionKind.CROP:
        return plan_crop(size, action.width, action.height, action.x, action.y)
    if action.kind is ActionKind.RESIZE:
        return plan_resize(size, action.width, action.height)
    if action.kind is ActionKind.THUMB:
        return plan_thumb(size, action.width, action.height)
    if action.kind is ActionKind.THUMBFILL:
        return plan_thumbfill(size, action.width, action.height, action.center_x, action.center_y)
    raise ValueError(f"Unsupported action: {action.kind}")


def plan_actions(actions: Sequence[ActionRequest], size: Size) -> PlanResult:
    """Fold ``actions`` in order, threading the tracked size through each step."""
    current = (int(size[0]), int(size[1]))
    plans: List[GeometryPlan] = []
    for action in actions:
        plan = plan_action(action, current)
        if plan is None:
            continue
        plans.append(plan)
        current = plan.size
    return PlanResult(size=current, plans=tuple(plans))
