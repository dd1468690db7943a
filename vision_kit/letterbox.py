from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

import numpy as np

from .boxes import convert_format, match_input_shape
from .errors import InvalidInput
from .geometry import LETTERBOX_FILL, ResizePlan, apply_plan, plan_resize
from .types import as_box_array, parse_box_format


@dataclass(frozen=True)
class LetterboxConfig:
    new_shape: Tuple[int, int] = (640, 640)  # (width, height)
    color: Tuple[int, int, int] = LETTERBOX_FILL
    scaleup: bool = True
    stride: Optional[int] = None
    center: bool = True


@dataclass(frozen=True)
class LetterboxRecord:
    """
    Everything needed to map letterboxed coordinates back to the source.

    Produced once by the forward letterbox call; the caller keeps it and hands
    it to `reverse_letterbox`. Sizes are (width, height).
    """

    scale: float
    offset: Tuple[int, int]
    original_size: Tuple[int, int]
    letterboxed_size: Tuple[int, int]
    padding: Tuple[int, int, int, int] = (0, 0, 0, 0)

    def __post_init__(self) -> None:
        if not self.scale > 0 or not np.isfinite(self.scale):
            raise InvalidInput(f"LetterboxRecord.scale must be finite and > 0 (got {self.scale})")
        for name in ("original_size", "letterboxed_size"):
            w, h = getattr(self, name)
            if w <= 0 or h <= 0:
                raise InvalidInput(f"LetterboxRecord.{name} must be positive (got {(w, h)})")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scale": self.scale,
            "offset": list(self.offset),
            "padding": list(self.padding),
            "originalSize": list(self.original_size),
            "letterboxedSize": list(self.letterboxed_size),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "LetterboxRecord":
        missing = [k for k in ("scale", "offset", "originalSize", "letterboxedSize") if k not in payload]
        if missing:
            raise InvalidInput(f"Letterbox record is missing keys: {missing}")
        offset = tuple(int(v) for v in payload["offset"])
        original = tuple(int(v) for v in payload["originalSize"])
        letterboxed = tuple(int(v) for v in payload["letterboxedSize"])
        padding = tuple(int(v) for v in payload.get("padding", (offset[0], offset[1], 0, 0)))
        if len(offset) != 2 or len(original) != 2 or len(letterboxed) != 2 or len(padding) != 4:
            raise InvalidInput("Letterbox record has malformed offset/size/padding entries")
        return cls(
            scale=float(payload["scale"]),
            offset=offset,  # type: ignore[arg-type]
            original_size=original,  # type: ignore[arg-type]
            letterboxed_size=letterboxed,  # type: ignore[arg-type]
            padding=padding,  # type: ignore[arg-type]
        )


def letterbox_record(plan: ResizePlan) -> LetterboxRecord:
    if plan.strategy != "letterbox":
        raise InvalidInput(f"Letterbox records come from letterbox plans, got strategy {plan.strategy!r}")
    return LetterboxRecord(
        scale=plan.uniform_scale,
        offset=plan.offset,
        original_size=plan.source_size,
        letterboxed_size=plan.target_size,
        padding=plan.padding,
    )


def letterbox(
    image: np.ndarray,
    new_shape=(640, 640),
    color: Sequence[int] = LETTERBOX_FILL,
    scaleup: bool = True,
    stride: Optional[int] = None,
    center: bool = True,
) -> Tuple[np.ndarray, LetterboxRecord]:
    """
    Resize and pad an (H, W, C) uint8 image, matching common YOLO exports.

    `new_shape` is (width, height) or a single int for a square canvas.

    Returns:
        padded: resized + padded image
        record: the LetterboxRecord needed by `reverse_letterbox`
    """

    img = np.asarray(image)
    if img.ndim not in (2, 3):
        raise InvalidInput(f"Expected image shape (H, W) or (H, W, C), got {img.shape}")
    if isinstance(new_shape, int):
        new_shape = (new_shape, new_shape)

    h, w = img.shape[:2]
    new_w, new_h = new_shape
    plan = plan_resize(w, h, new_w, new_h, "letterbox", scale_up=scaleup, stride=stride, center=center, fill_color=color)
    return apply_plan(img, plan), letterbox_record(plan)


def letterbox_with_config(image: np.ndarray, cfg: LetterboxConfig) -> Tuple[np.ndarray, LetterboxRecord]:
    return letterbox(
        image,
        new_shape=cfg.new_shape,
        color=cfg.color,
        scaleup=cfg.scaleup,
        stride=cfg.stride,
        center=cfg.center,
    )


def reverse_letterbox(boxes, record: LetterboxRecord, fmt: str = "xyxy", clip: bool = True) -> np.ndarray:
    """
    Map boxes from letterboxed space back to the original image:
    box' = (box - offset) / scale, computed in xyxy.
    """

    fmt = parse_box_format(fmt)
    xyxy = convert_format(as_box_array(boxes), fmt, "xyxy")
    dx, dy = record.offset
    xyxy[:, [0, 2]] = (xyxy[:, [0, 2]] - dx) / record.scale
    xyxy[:, [1, 3]] = (xyxy[:, [1, 3]] - dy) / record.scale

    if clip:
        orig_w, orig_h = record.original_size
        xyxy[:, [0, 2]] = np.clip(xyxy[:, [0, 2]], 0, orig_w)
        xyxy[:, [1, 3]] = np.clip(xyxy[:, [1, 3]], 0, orig_h)

    return match_input_shape(convert_format(xyxy, "xyxy", fmt), boxes)
