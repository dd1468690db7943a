from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple

import numpy as np

from .errors import InvalidInput, require_choice

BOX_FORMATS = frozenset({"xyxy", "xywh", "cxcywh"})
COLOR_FORMATS = frozenset({"rgb", "rgba", "bgr", "bgra", "grayscale", "hsv", "hsl", "lab", "yuv", "ycbcr"})
DATA_LAYOUTS = frozenset({"hwc", "chw", "nhwc", "nchw"})


def parse_box_format(fmt: str) -> str:
    return require_choice(fmt, BOX_FORMATS, "box format")


def parse_color_format(fmt: str) -> str:
    return require_choice(fmt, COLOR_FORMATS, "color format")


def parse_data_layout(layout: str) -> str:
    return require_choice(layout, DATA_LAYOUTS, "data layout")


@dataclass(frozen=True)
class PixelBuffer:
    """
    Flat pixel data plus the metadata needed to address it.

    `data` is always 1-D and interleaved (HWC); every stage that produces a
    buffer allocates a new array.
    """

    width: int
    height: int
    channels: int
    color_format: str
    data: np.ndarray = field(repr=False)

    def __post_init__(self) -> None:
        for name in ("width", "height", "channels"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value <= 0:
                raise InvalidInput(f"PixelBuffer.{name} must be a positive integer (got {value!r})")
        object.__setattr__(self, "color_format", parse_color_format(self.color_format))
        data = np.asarray(self.data)
        if data.ndim != 1:
            raise InvalidInput(f"PixelBuffer.data must be flat, got shape {data.shape}")
        expected = self.width * self.height * self.channels
        if data.size != expected:
            raise InvalidInput(
                f"PixelBuffer.data has {data.size} values, expected {expected} "
                f"({self.width}x{self.height}x{self.channels})"
            )
        object.__setattr__(self, "data", data)

    @classmethod
    def from_hwc(cls, array: np.ndarray, color_format: str) -> "PixelBuffer":
        arr = np.asarray(array)
        if arr.ndim == 2:
            arr = arr[:, :, None]
        if arr.ndim != 3:
            raise InvalidInput(f"Expected (H, W) or (H, W, C) array, got shape {arr.shape}")
        h, w, c = arr.shape
        return cls(width=w, height=h, channels=c, color_format=color_format, data=arr.reshape(-1).copy())

    def as_hwc(self) -> np.ndarray:
        return self.data.reshape(self.height, self.width, self.channels).copy()

    @property
    def pixel_count(self) -> int:
        return self.width * self.height


@dataclass(frozen=True)
class Box:
    """
    Immutable 4-number box tagged with its encoding.

    xyxy: (x1, y1, x2, y2); xywh: (x, y, w, h); cxcywh: (cx, cy, w, h).
    """

    coords: Tuple[float, float, float, float]
    fmt: str = "xyxy"
    score: Optional[float] = None
    class_id: Optional[int] = None

    def __post_init__(self) -> None:
        coords = tuple(float(v) for v in self.coords)
        if len(coords) != 4:
            raise InvalidInput(f"Box needs exactly 4 coordinates, got {len(coords)}")
        object.__setattr__(self, "coords", coords)
        object.__setattr__(self, "fmt", parse_box_format(self.fmt))

    def convert(self, fmt: str) -> "Box":
        from .boxes import convert_format

        target = parse_box_format(fmt)
        if target == self.fmt:
            return self
        out = convert_format(np.array([self.coords], dtype=np.float64), self.fmt, target)[0]
        return Box(coords=tuple(out.tolist()), fmt=target, score=self.score, class_id=self.class_id)

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        return self.convert("xyxy").coords

    @property
    def area(self) -> float:
        x1, y1, x2, y2 = self.as_xyxy()
        return max(0.0, x2 - x1) * max(0.0, y2 - y1)


@dataclass(frozen=True)
class Detection:
    """
    NMS interchange record: a box in some format, its score and class.
    """

    box: Tuple[float, float, float, float]
    score: float
    class_index: Optional[int] = None
    label: Optional[str] = None

    def __post_init__(self) -> None:
        box = tuple(float(v) for v in self.box)
        if len(box) != 4:
            raise InvalidInput(f"Detection.box needs exactly 4 coordinates, got {len(box)}")
        object.__setattr__(self, "box", box)
        object.__setattr__(self, "score", float(self.score))


def as_box_array(boxes: Sequence[Sequence[float]]) -> np.ndarray:
    """
    Coerce boxes to a float64 (N, 4) array (always a copy).
    """

    try:
        arr = np.array(boxes, dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise InvalidInput(f"Boxes must be numeric (N, 4) data: {exc}") from exc
    if arr.size == 0:
        return np.zeros((0, 4), dtype=np.float64)
    if arr.ndim == 1 and arr.shape[0] == 4:
        arr = arr[None, :]
    if arr.ndim != 2 or arr.shape[1] != 4:
        raise InvalidInput(f"Boxes must have shape (N, 4), got {arr.shape}")
    return arr
