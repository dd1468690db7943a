from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np

from .errors import DimensionMismatch, InvalidInput, require_choice, require_positive_dims
from .rounding import round_int

RESIZE_STRATEGIES = frozenset({"cover", "contain", "stretch", "letterbox"})

LETTERBOX_FILL: Tuple[int, int, int] = (114, 114, 114)
CONTAIN_FILL: Tuple[int, int, int] = (0, 0, 0)


def _require_cv2():
    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for resampling. Install with `pip install opencv-python`.") from e
    return cv2


@dataclass(frozen=True)
class ResizePlan:
    """
    How a source rectangle lands on a target canvas.

    Sizes are (width, height). `draw_rect` is (x, y, w, h) on the canvas and
    never leaves it; `crop_offset` is the (x, y) of the visible window inside
    the scaled image (non-zero only for `cover`).
    """

    strategy: str
    source_size: Tuple[int, int]
    target_size: Tuple[int, int]
    scale: Tuple[float, float]
    scaled_size: Tuple[int, int]
    draw_rect: Tuple[int, int, int, int]
    crop_offset: Tuple[int, int]
    padding: Tuple[int, int, int, int]
    fill_color: Tuple[int, int, int]
    stride: Optional[int] = None

    @property
    def uniform_scale(self) -> float:
        if self.scale[0] != self.scale[1]:
            raise InvalidInput(f"{self.strategy} plan has independent x/y scale {self.scale}")
        return self.scale[0]

    @property
    def offset(self) -> Tuple[int, int]:
        return self.padding[0], self.padding[1]


def _align_to_stride(value: int, stride: int, limit: int) -> int:
    up = -(-value // stride) * stride
    if up <= limit:
        return up
    # Rounding up would spill past the canvas: take the largest multiple that fits.
    down = (limit // stride) * stride
    if down <= 0:
        raise InvalidInput(f"stride {stride} does not fit inside target dimension {limit}")
    return down


def _normalize_fill(fill_color: Optional[Sequence[int]], default: Tuple[int, int, int]) -> Tuple[int, int, int]:
    if fill_color is None:
        return default
    values = [int(v) for v in fill_color]
    if not values:
        return default
    # Missing trailing components take the default color
    while len(values) < 3:
        values.append(default[len(values)])
    if any(v < 0 or v > 255 for v in values[:3]):
        raise InvalidInput(f"fill_color components must be within [0, 255], got {tuple(values[:3])}")
    return values[0], values[1], values[2]


def plan_resize(
    source_w: int,
    source_h: int,
    target_w: int,
    target_h: int,
    strategy: str = "letterbox",
    scale_up: bool = True,
    stride: Optional[int] = None,
    center: bool = True,
    fill_color: Optional[Sequence[int]] = None,
) -> ResizePlan:
    """
    Compute the resize/pad plan for one of the four strategies.

    - stretch: fill the canvas, independent x/y scale.
    - cover: uniform max scale, centered, overflow cropped.
    - contain/letterbox: uniform min scale (capped at 1.0 when `scale_up` is
      False), scaled dims optionally aligned up to `stride`, remaining space
      padded evenly (`center`) or on the trailing edges.
    """

    require_positive_dims(source_w=source_w, source_h=source_h, target_w=target_w, target_h=target_h)
    strategy = require_choice(strategy, RESIZE_STRATEGIES, "resize strategy")
    if stride is not None:
        if isinstance(stride, bool) or not isinstance(stride, (int, np.integer)) or stride <= 0:
            raise InvalidInput(f"stride must be a positive integer (got {stride!r})")
        stride = int(stride)

    source_w, source_h, target_w, target_h = int(source_w), int(source_h), int(target_w), int(target_h)
    scale_x = target_w / source_w
    scale_y = target_h / source_h
    default_fill = LETTERBOX_FILL if strategy == "letterbox" else CONTAIN_FILL
    fill = _normalize_fill(fill_color, default_fill)

    if strategy == "stretch":
        return ResizePlan(
            strategy=strategy,
            source_size=(source_w, source_h),
            target_size=(target_w, target_h),
            scale=(scale_x, scale_y),
            scaled_size=(target_w, target_h),
            draw_rect=(0, 0, target_w, target_h),
            crop_offset=(0, 0),
            padding=(0, 0, 0, 0),
            fill_color=fill,
            stride=stride,
        )

    if strategy == "cover":
        r = max(scale_x, scale_y)
        scaled_w = max(target_w, round_int(source_w * r))
        scaled_h = max(target_h, round_int(source_h * r))
        if center:
            crop = ((scaled_w - target_w) // 2, (scaled_h - target_h) // 2)
        else:
            crop = (0, 0)
        return ResizePlan(
            strategy=strategy,
            source_size=(source_w, source_h),
            target_size=(target_w, target_h),
            scale=(r, r),
            scaled_size=(scaled_w, scaled_h),
            draw_rect=(0, 0, target_w, target_h),
            crop_offset=crop,
            padding=(0, 0, 0, 0),
            fill_color=fill,
            stride=stride,
        )

    # contain / letterbox
    r = min(scale_x, scale_y)
    if not scale_up:  # only scale down
        r = min(r, 1.0)

    scaled_w = max(1, round_int(source_w * r))
    scaled_h = max(1, round_int(source_h * r))
    if stride is not None:
        scaled_w = _align_to_stride(scaled_w, stride, target_w)
        scaled_h = _align_to_stride(scaled_h, stride, target_h)

    pad_w = target_w - scaled_w
    pad_h = target_h - scaled_h
    if center:
        left, top = pad_w // 2, pad_h // 2
        right, bottom = pad_w - left, pad_h - top
    else:
        left, top = 0, 0
        right, bottom = pad_w, pad_h

    return ResizePlan(
        strategy=strategy,
        source_size=(source_w, source_h),
        target_size=(target_w, target_h),
        scale=(r, r),
        scaled_size=(scaled_w, scaled_h),
        draw_rect=(left, top, scaled_w, scaled_h),
        crop_offset=(0, 0),
        padding=(left, top, right, bottom),
        fill_color=fill,
        stride=stride,
    )


def _fill_pixel(fill: Tuple[int, int, int], channels: int) -> np.ndarray:
    if channels == 1:
        return np.array([fill[0]], dtype=np.uint8)
    if channels == 3:
        return np.array(fill, dtype=np.uint8)
    if channels == 4:
        return np.array((*fill, 255), dtype=np.uint8)
    return np.full((channels,), fill[0], dtype=np.uint8)


def apply_plan(image: np.ndarray, plan: ResizePlan) -> np.ndarray:
    """
    Resample an (H, W, C) uint8 image according to `plan`.

    Channel order is not interpreted; the fill color is written in the same
    order as it is given (an RGBA source gets an opaque alpha).
    """

    cv2 = _require_cv2()

    img = np.asarray(image)
    if img.ndim == 2:
        img = img[:, :, None]
    if img.ndim != 3:
        raise InvalidInput(f"Expected image shape (H, W, C), got {img.shape}")
    if img.dtype != np.uint8:
        raise InvalidInput(f"Expected a uint8 image, got {img.dtype}")
    h, w, c = img.shape
    if (w, h) != plan.source_size:
        raise DimensionMismatch(f"Plan was computed for {plan.source_size}, image is {(w, h)}")

    scaled_w, scaled_h = plan.scaled_size
    if (w, h) != (scaled_w, scaled_h):
        resized = cv2.resize(img, (scaled_w, scaled_h), interpolation=cv2.INTER_LINEAR)
    else:
        resized = img.copy()
    if resized.ndim == 2:  # cv2 drops a trailing singleton channel axis
        resized = resized[:, :, None]

    target_w, target_h = plan.target_size
    if plan.strategy == "stretch":
        return resized
    if plan.strategy == "cover":
        cx, cy = plan.crop_offset
        return resized[cy : cy + target_h, cx : cx + target_w].copy()

    canvas = np.empty((target_h, target_w, c), dtype=np.uint8)
    canvas[:, :] = _fill_pixel(plan.fill_color, c)
    x, y, dw, dh = plan.draw_rect
    canvas[y : y + dh, x : x + dw] = resized
    return canvas
