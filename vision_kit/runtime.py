from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Protocol, Tuple

import numpy as np

from .color import channel_count, convert_color
from .errors import InvalidInput, require_choice, require_positive_dims
from .geometry import RESIZE_STRATEGIES, apply_plan, plan_resize
from .layout import convert_layout, layout_shape
from .letterbox import LetterboxRecord, letterbox_record
from .normalize import NormalizationSpec, normalize
from .tensor_ops import crop_roi
from .types import parse_color_format, parse_data_layout

logger = logging.getLogger(__name__)

SOURCE_ORDERS = frozenset({"rgba", "rgb", "bgr", "bgra", "gray"})


class PixelSource(Protocol):
    """
    What an image decoder hands to the pipeline: a width/height-addressable
    RGBA pixel source.
    """

    width: int
    height: int

    def rgba(self) -> np.ndarray:
        """Return the pixels as an (height, width, 4) uint8 RGBA array."""
        ...


@dataclass(frozen=True)
class ArrayPixelSource:
    """
    PixelSource backed by a decoded NumPy array.

    `channel_order` describes the array: rgba, rgb, bgr (OpenCV), bgra or gray.
    `key` identifies the source for result caching.
    """

    array: np.ndarray = field(repr=False)
    channel_order: str = "rgb"
    key: Optional[str] = None

    def __post_init__(self) -> None:
        order = require_choice(self.channel_order, SOURCE_ORDERS, "source channel order")
        object.__setattr__(self, "channel_order", order)
        arr = np.asarray(self.array)
        if arr.dtype != np.uint8:
            raise InvalidInput(f"Pixel sources must be uint8, got {arr.dtype}")
        expected = {"gray": 1, "rgb": 3, "bgr": 3, "rgba": 4, "bgra": 4}[order]
        if arr.ndim == 2 and expected == 1:
            arr = arr[:, :, None]
        if arr.ndim != 3 or arr.shape[2] != expected:
            raise InvalidInput(f"{order} source needs shape (H, W, {expected}), got {arr.shape}")
        if arr.shape[0] == 0 or arr.shape[1] == 0:
            raise InvalidInput(f"Pixel source has an empty extent {arr.shape[:2]}")
        object.__setattr__(self, "array", arr)

    @classmethod
    def from_bgr(cls, image_bgr: np.ndarray, key: Optional[str] = None) -> "ArrayPixelSource":
        return cls(array=image_bgr, channel_order="bgr", key=key)

    @property
    def width(self) -> int:
        return int(self.array.shape[1])

    @property
    def height(self) -> int:
        return int(self.array.shape[0])

    def rgba(self) -> np.ndarray:
        arr = self.array
        order = self.channel_order
        if order == "rgba":
            return arr.copy()
        if order == "bgra":
            return arr[:, :, [2, 1, 0, 3]].copy()
        if order == "gray":
            rgb = np.repeat(arr, 3, axis=2)
        elif order == "bgr":
            rgb = arr[:, :, ::-1]
        else:
            rgb = arr
        alpha = np.full(arr.shape[:2] + (1,), 255, dtype=np.uint8)
        return np.concatenate([rgb, alpha], axis=2)


def source_to_rgba(source: PixelSource) -> np.ndarray:
    rgba = np.asarray(source.rgba())
    expected = (source.height, source.width, 4)
    if rgba.shape != expected or rgba.dtype != np.uint8:
        raise InvalidInput(f"Pixel source returned {rgba.dtype} {rgba.shape}, expected uint8 {expected}")
    return rgba


@dataclass(frozen=True)
class Roi:
    x: int
    y: int
    width: int
    height: int

    def __post_init__(self) -> None:
        if self.x < 0 or self.y < 0:
            raise InvalidInput(f"ROI coordinates must be non-negative (got x={self.x}, y={self.y})")
        require_positive_dims(roi_width=self.width, roi_height=self.height)


@dataclass(frozen=True)
class ResizeOptions:
    width: int
    height: int
    strategy: str = "cover"
    fill_color: Optional[Tuple[int, int, int]] = None
    scale_up: bool = True
    stride: Optional[int] = None
    center: bool = True

    def __post_init__(self) -> None:
        require_positive_dims(width=self.width, height=self.height)
        object.__setattr__(self, "strategy", require_choice(self.strategy, RESIZE_STRATEGIES, "resize strategy"))
        if self.stride is not None and (isinstance(self.stride, bool) or not isinstance(self.stride, int) or self.stride <= 0):
            raise InvalidInput(f"stride must be a positive integer (got {self.stride!r})")


@dataclass(frozen=True)
class PixelDataOptions:
    color_format: str = "rgb"
    normalization: NormalizationSpec = NormalizationSpec(preset="scale")
    data_layout: str = "hwc"
    resize: Optional[ResizeOptions] = None
    roi: Optional[Roi] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "color_format", parse_color_format(self.color_format))
        object.__setattr__(self, "data_layout", parse_data_layout(self.data_layout))

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "PixelDataOptions":
        """
        Parse the camelCase interchange mapping, e.g.

            {"colorFormat": "rgb", "dataLayout": "nchw",
             "resize": {"width": 640, "height": 640, "strategy": "letterbox"},
             "normalization": {"preset": "scale"}}
        """

        allowed = {"colorFormat", "normalization", "dataLayout", "resize", "roi"}
        unknown = sorted(set(payload.keys()) - allowed)
        if unknown:
            raise InvalidInput(f"Unknown pixel data option keys: {unknown}")

        resize = None
        if payload.get("resize") is not None:
            r = dict(payload["resize"])
            resize_allowed = {"width", "height", "strategy", "padColor", "letterboxColor", "scaleUp", "stride", "center"}
            bad = sorted(set(r.keys()) - resize_allowed)
            if bad:
                raise InvalidInput(f"Unknown resize keys: {bad}")
            if "width" not in r or "height" not in r:
                raise InvalidInput("resize requires width and height")
            color = r.get("letterboxColor", r.get("padColor"))
            resize = ResizeOptions(
                width=r["width"],
                height=r["height"],
                strategy=r.get("strategy", "cover"),
                fill_color=tuple(color) if color is not None else None,  # type: ignore[arg-type]
                scale_up=bool(r.get("scaleUp", True)),
                stride=r.get("stride"),
                center=bool(r.get("center", True)),
            )

        roi = None
        if payload.get("roi") is not None:
            r = payload["roi"]
            try:
                roi = Roi(x=r["x"], y=r["y"], width=r["width"], height=r["height"])
            except KeyError as exc:
                raise InvalidInput(f"roi is missing {exc.args[0]!r}") from exc

        normalization = NormalizationSpec(preset="scale")
        if payload.get("normalization") is not None:
            normalization = NormalizationSpec.from_dict(payload["normalization"])

        return cls(
            color_format=payload.get("colorFormat", "rgb"),
            normalization=normalization,
            data_layout=payload.get("dataLayout", "hwc"),
            resize=resize,
            roi=roi,
        )


@dataclass(frozen=True)
class PixelDataResult:
    data: np.ndarray = field(repr=False)
    width: int
    height: int
    channels: int
    color_format: str
    data_layout: str
    shape: Tuple[int, ...]
    processing_time_ms: float
    letterbox: Optional[LetterboxRecord] = None

    def as_tensor(self) -> np.ndarray:
        return self.data.reshape(self.shape)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "data": self.data.tolist(),
            "width": self.width,
            "height": self.height,
            "channels": self.channels,
            "colorFormat": self.color_format,
            "dataLayout": self.data_layout,
            "shape": list(self.shape),
            "processingTimeMs": self.processing_time_ms,
        }
        if self.letterbox is not None:
            payload["letterboxInfo"] = self.letterbox.to_dict()
        return payload


def get_pixel_data(source: PixelSource, options: PixelDataOptions = PixelDataOptions()) -> PixelDataResult:
    """
    ROI -> resize -> color conversion -> normalization -> layout.
    """

    start = time.perf_counter()
    image = source_to_rgba(source)

    if options.roi is not None:
        roi = options.roi
        image = crop_roi(image, roi.x, roi.y, roi.width, roi.height)

    record: Optional[LetterboxRecord] = None
    if options.resize is not None:
        rz = options.resize
        h, w = image.shape[:2]
        plan = plan_resize(
            w,
            h,
            rz.width,
            rz.height,
            rz.strategy,
            scale_up=rz.scale_up,
            stride=rz.stride,
            center=rz.center,
            fill_color=rz.fill_color,
        )
        image = apply_plan(image, plan)
        if plan.strategy == "letterbox":
            record = letterbox_record(plan)

    height, width = image.shape[:2]
    channels = channel_count(options.color_format)
    colors = convert_color(image, options.color_format)
    normalized = normalize(colors, options.normalization, channels)
    data = convert_layout(normalized.reshape(-1), width, height, channels, "hwc", options.data_layout)

    elapsed_ms = (time.perf_counter() - start) * 1000.0
    logger.debug(
        "pixel data %dx%dx%d %s/%s in %.2fms",
        width,
        height,
        channels,
        options.color_format,
        options.data_layout,
        elapsed_ms,
    )
    return PixelDataResult(
        data=data,
        width=width,
        height=height,
        channels=channels,
        color_format=options.color_format,
        data_layout=options.data_layout,
        shape=layout_shape(width, height, channels, options.data_layout),
        processing_time_ms=elapsed_ms,
        letterbox=record,
    )
