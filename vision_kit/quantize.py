"""
Fixed-point quantization of float tensors.

    q = clamp(round(x / scale + zero_point), q_min, q_max)
    x = (q - zero_point) * scale

Per-channel parameters are looked up through `layout.channel_indices`, so the
interleaved and planar cases share one code path.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple, Union

import numpy as np

from .errors import InvalidInput, require_choice
from .layout import channel_indices
from .rounding import round_half_away
from .types import parse_data_layout

logger = logging.getLogger(__name__)

DTYPE_RANGES: Dict[str, Tuple[int, int]] = {
    "int8": (-128, 127),
    "uint8": (0, 255),
    "int16": (-32768, 32767),
}
NUMPY_DTYPES = {"int8": np.int8, "uint8": np.uint8, "int16": np.int16}
QUANT_MODES = frozenset({"per-tensor", "per-channel"})

ParamValue = Union[float, Tuple[float, ...]]


def dtype_range(dtype: str) -> Tuple[int, int]:
    return DTYPE_RANGES[require_choice(dtype, DTYPE_RANGES.keys(), "quantization dtype")]


def _as_scalar(value: Any, name: str) -> float:
    if isinstance(value, (list, tuple, np.ndarray)):
        values = list(np.asarray(value, dtype=np.float64).reshape(-1))
        if len(values) != 1:
            raise InvalidInput(f"per-tensor {name} must be a single number, got {len(values)} values")
        value = values[0]
    if isinstance(value, bool) or not isinstance(value, (int, float, np.floating, np.integer)):
        raise InvalidInput(f"{name} must be a number (got {value!r})")
    return float(value)


def _as_vector(value: Any, name: str) -> Tuple[float, ...]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        raise InvalidInput(f"per-channel {name} must be a sequence, got scalar {value!r}")
    try:
        return tuple(float(v) for v in np.asarray(value, dtype=np.float64).reshape(-1))
    except (TypeError, ValueError) as exc:
        raise InvalidInput(f"per-channel {name} must be a sequence of numbers") from exc


@dataclass(frozen=True)
class QuantizationParams:
    """
    Affine quantization parameters.

    `scale`/`zero_point` are floats in per-tensor mode and tuples with one entry
    per channel in per-channel mode. `data_layout` tells per-channel mode how
    channels are laid out in the flat tensor.
    """

    scale: ParamValue
    zero_point: ParamValue = 0.0
    dtype: str = "int8"
    mode: str = "per-tensor"
    channels: Optional[int] = None
    data_layout: str = "hwc"

    def __post_init__(self) -> None:
        object.__setattr__(self, "dtype", require_choice(self.dtype, DTYPE_RANGES.keys(), "quantization dtype"))
        object.__setattr__(self, "mode", require_choice(self.mode, QUANT_MODES, "quantization mode"))
        object.__setattr__(self, "data_layout", parse_data_layout(self.data_layout))

        if self.mode == "per-tensor":
            scales = (_as_scalar(self.scale, "scale"),)
            zero_points = (_as_scalar(self.zero_point, "zero_point"),)
            object.__setattr__(self, "scale", scales[0])
            object.__setattr__(self, "zero_point", zero_points[0])
        else:
            scales = _as_vector(self.scale, "scale")
            zero_points = _as_vector(self.zero_point, "zero_point")
            channels = self.channels if self.channels is not None else len(scales)
            if isinstance(channels, bool) or not isinstance(channels, int) or channels <= 0:
                raise InvalidInput(f"channels must be a positive integer (got {channels!r})")
            if len(scales) != channels or len(zero_points) != channels:
                raise InvalidInput(
                    f"Scale and zero_point arrays must match number of channels "
                    f"(channels={channels}, scale={len(scales)}, zero_point={len(zero_points)})"
                )
            object.__setattr__(self, "scale", scales)
            object.__setattr__(self, "zero_point", zero_points)
            object.__setattr__(self, "channels", channels)

        q_min, q_max = DTYPE_RANGES[self.dtype]
        for s in scales:
            if not math.isfinite(s) or s <= 0:
                raise InvalidInput(f"scale must be finite and > 0 (got {s})")
        for zp in zero_points:
            if not math.isfinite(zp) or zp < q_min or zp > q_max:
                raise InvalidInput(f"zero_point {zp} is outside the {self.dtype} range [{q_min}, {q_max}]")

    @property
    def q_min(self) -> int:
        return DTYPE_RANGES[self.dtype][0]

    @property
    def q_max(self) -> int:
        return DTYPE_RANGES[self.dtype][1]

    @property
    def per_channel(self) -> bool:
        return self.mode == "per-channel"

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "QuantizationParams":
        allowed = {"mode", "dtype", "scale", "zeroPoint", "channels", "dataLayout"}
        unknown = sorted(set(payload.keys()) - allowed)
        if unknown:
            raise InvalidInput(f"Unknown quantization keys: {unknown}")
        if "scale" not in payload:
            raise InvalidInput("Scale is required for quantization")
        if "zeroPoint" not in payload:
            raise InvalidInput("Zero point is required for quantization")
        return cls(
            scale=payload["scale"],
            zero_point=payload["zeroPoint"],
            dtype=payload.get("dtype", "int8"),
            mode=payload.get("mode", "per-tensor"),
            channels=payload.get("channels"),
            data_layout=payload.get("dataLayout", "hwc"),
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "mode": self.mode,
            "dtype": self.dtype,
            "scale": list(self.scale) if self.per_channel else self.scale,
            "zeroPoint": list(self.zero_point) if self.per_channel else self.zero_point,
            "dataLayout": self.data_layout,
        }
        if self.channels is not None:
            payload["channels"] = self.channels
        return payload


def _element_params(params: QuantizationParams, length: int, pixel_count: int) -> Tuple[Any, Any]:
    if not params.per_channel:
        return params.scale, params.zero_point
    channels = params.channels or len(params.scale)
    idx = channel_indices(length, channels, params.data_layout, pixel_count=pixel_count)
    scale = np.asarray(params.scale, dtype=np.float64)[idx]
    zero_point = np.asarray(params.zero_point, dtype=np.float64)[idx]
    return scale, zero_point


def quantize(data: Any, params: QuantizationParams, pixel_count: int = 0) -> np.ndarray:
    """
    Quantize float data to the integer dtype named by `params`.

    The result keeps the input shape. For planar per-channel data with a batch
    of more than one sample pass `pixel_count` (H*W) so channel blocks are
    found correctly.
    """

    arr = np.asarray(data, dtype=np.float64)
    flat = arr.reshape(-1)
    if not np.all(np.isfinite(flat)):
        raise InvalidInput("Cannot quantize non-finite values")
    scale, zero_point = _element_params(params, flat.size, pixel_count)
    q = round_half_away(flat / scale + zero_point)
    q = np.clip(q, params.q_min, params.q_max).astype(NUMPY_DTYPES[params.dtype])
    return q.reshape(arr.shape)


def dequantize(data: Any, params: QuantizationParams, pixel_count: int = 0) -> np.ndarray:
    arr = np.asarray(data, dtype=np.float64)
    flat = arr.reshape(-1)
    scale, zero_point = _element_params(params, flat.size, pixel_count)
    return ((flat - zero_point) * scale).astype(np.float32).reshape(arr.shape)


@dataclass(frozen=True)
class CalibrationResult:
    params: QuantizationParams
    min: ParamValue
    max: ParamValue
    degenerate: bool = False


def _estimate(
    min_val: float,
    max_val: float,
    q_min: int,
    q_max: int,
    symmetric: bool,
    include_zero: bool = False,
) -> Tuple[float, float, bool]:
    if symmetric:
        abs_max = max(abs(min_val), abs(max_val))
        scale = abs_max / max(abs(q_min), abs(q_max))
        zero_point = 0.0
    else:
        lo, hi = min_val, max_val
        if include_zero:
            lo, hi = min(lo, 0.0), max(hi, 0.0)
        scale = (hi - lo) / (q_max - q_min)
        zero_point = q_min - lo / scale if scale > 0 else 0.0

    if min_val == max_val or not math.isfinite(scale) or scale <= 0:
        return 1.0, 0.0, True
    zero_point = float(min(max(zero_point, q_min), q_max))
    return float(scale), zero_point, False


def calculate_params(
    data: Any,
    dtype: str = "int8",
    mode: str = "per-tensor",
    symmetric: bool = False,
    channels: int = 3,
    data_layout: str = "hwc",
    strict: bool = False,
    pixel_count: int = 0,
    include_zero: bool = False,
) -> CalibrationResult:
    """
    Estimate scale/zero_point from the observed range of `data`.

    symmetric: zero_point = 0, scale = max(|min|, |max|) / max(|q_min|, |q_max|)
    asymmetric: scale = (max - min) / (q_max - q_min), zero_point = q_min - min / scale
    zero_point is clamped to [q_min, q_max]. `include_zero=True` widens the
    asymmetric range to contain 0 first, so 0.0 quantizes exactly.

    A constant tensor (min == max) has no usable range. By default it falls
    back to scale=1, zero_point=0 (which dequantizes to the wrong magnitude
    for values outside the dtype range); `strict=True` raises instead.
    """

    q_min, q_max = dtype_range(dtype)
    mode = require_choice(mode, QUANT_MODES, "quantization mode")
    flat = np.asarray(data, dtype=np.float64).reshape(-1)
    if flat.size == 0:
        raise InvalidInput("Cannot calibrate an empty tensor")
    if not np.all(np.isfinite(flat)):
        raise InvalidInput("Cannot calibrate a tensor containing non-finite values")

    if mode == "per-tensor":
        min_val, max_val = float(flat.min()), float(flat.max())
        scale, zero_point, degenerate = _estimate(min_val, max_val, q_min, q_max, symmetric, include_zero)
        if degenerate:
            _report_degenerate(strict, f"tensor range [{min_val}, {max_val}]")
        params = QuantizationParams(scale=scale, zero_point=zero_point, dtype=dtype, mode=mode, data_layout=data_layout)
        return CalibrationResult(params=params, min=min_val, max=max_val, degenerate=degenerate)

    idx = channel_indices(flat.size, channels, data_layout, pixel_count=pixel_count)
    scales, zero_points, mins, maxs = [], [], [], []
    any_degenerate = False
    for c in range(channels):
        values = flat[idx == c]
        min_val, max_val = float(values.min()), float(values.max())
        scale, zero_point, degenerate = _estimate(min_val, max_val, q_min, q_max, symmetric, include_zero)
        if degenerate:
            _report_degenerate(strict, f"channel {c} range [{min_val}, {max_val}]")
            any_degenerate = True
        scales.append(scale)
        zero_points.append(zero_point)
        mins.append(min_val)
        maxs.append(max_val)

    params = QuantizationParams(
        scale=tuple(scales),
        zero_point=tuple(zero_points),
        dtype=dtype,
        mode=mode,
        channels=channels,
        data_layout=data_layout,
    )
    return CalibrationResult(params=params, min=tuple(mins), max=tuple(maxs), degenerate=any_degenerate)


def _report_degenerate(strict: bool, what: str) -> None:
    if strict:
        raise InvalidInput(f"Degenerate quantization range: {what}")
    logger.warning("Degenerate quantization range (%s); falling back to scale=1, zero_point=0", what)
