from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

import numpy as np

from .errors import InvalidInput, require_choice
from .layout import convert_layout
from .rounding import to_uint8

NORMALIZATION_PRESETS = frozenset({"raw", "scale", "imagenet", "tensorflow", "custom"})

IMAGENET_MEAN: Tuple[float, ...] = (0.485, 0.456, 0.406)
IMAGENET_STD: Tuple[float, ...] = (0.229, 0.224, 0.225)

_PRESETS: Dict[str, Tuple[float, Tuple[float, ...], Tuple[float, ...]]] = {
    "raw": (1.0, (0.0,), (1.0,)),
    "scale": (1.0 / 255.0, (0.0,), (1.0,)),
    # x * 2 / 255 - 1 == (x / 255 - 0.5) / 0.5
    "tensorflow": (1.0 / 255.0, (0.5,), (0.5,)),
    "imagenet": (1.0 / 255.0, IMAGENET_MEAN, IMAGENET_STD),
}


def _as_float_tuple(values: Any, name: str) -> Tuple[float, ...]:
    if isinstance(values, (int, float)) and not isinstance(values, bool):
        return (float(values),)
    try:
        out = tuple(float(v) for v in values)
    except TypeError as exc:
        raise InvalidInput(f"{name} must be a number or a sequence of numbers") from exc
    if not out:
        raise InvalidInput(f"{name} must not be empty")
    return out


@dataclass(frozen=True)
class NormalizationSpec:
    """
    Per-channel affine transform: y = (x * scale - mean[c]) / std[c].

    `mean`/`std` only apply to the `custom` preset; the other presets carry
    fixed values. Arrays shorter than the channel count broadcast their last
    entry.
    """

    preset: str = "scale"
    mean: Optional[Tuple[float, ...]] = None
    std: Optional[Tuple[float, ...]] = None
    scale: Optional[float] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "preset", require_choice(self.preset, NORMALIZATION_PRESETS, "normalization preset"))
        if self.mean is not None:
            object.__setattr__(self, "mean", _as_float_tuple(self.mean, "mean"))
        if self.std is not None:
            std = _as_float_tuple(self.std, "std")
            if any(s == 0 for s in std):
                raise InvalidInput("std values must be non-zero")
            object.__setattr__(self, "std", std)
        if self.scale is not None:
            if isinstance(self.scale, bool) or not isinstance(self.scale, (int, float)) or not self.scale > 0:
                raise InvalidInput(f"scale must be a positive number (got {self.scale!r})")
            object.__setattr__(self, "scale", float(self.scale))
        if self.preset == "custom" and (self.mean is None or self.std is None):
            raise InvalidInput("custom normalization requires both mean and std")

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "NormalizationSpec":
        allowed = {"preset", "mean", "std", "scale"}
        unknown = sorted(set(payload.keys()) - allowed)
        if unknown:
            raise InvalidInput(f"Unknown normalization keys: {unknown}")
        return cls(
            preset=payload.get("preset", "scale"),
            mean=payload.get("mean"),
            std=payload.get("std"),
            scale=payload.get("scale"),
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"preset": self.preset}
        if self.mean is not None:
            payload["mean"] = list(self.mean)
        if self.std is not None:
            payload["std"] = list(self.std)
        if self.scale is not None:
            payload["scale"] = self.scale
        return payload

    def resolve(self, channels: int) -> Tuple[float, np.ndarray, np.ndarray]:
        """
        Return (scale, mean[channels], std[channels]).
        """

        if channels <= 0:
            raise InvalidInput(f"channels must be > 0 (got {channels})")
        if self.preset == "custom":
            scale = self.scale if self.scale is not None else 1.0
            mean = self.mean or (0.0,)
            std = self.std or (1.0,)
        else:
            scale, mean, std = _PRESETS[self.preset]
            if self.scale is not None:
                scale = self.scale
        idx = [min(c, len(mean) - 1) for c in range(channels)]
        mean_arr = np.array([mean[i] for i in idx], dtype=np.float64)
        idx = [min(c, len(std) - 1) for c in range(channels)]
        std_arr = np.array([std[i] for i in idx], dtype=np.float64)
        return float(scale), mean_arr, std_arr


def _interleaved(data: np.ndarray, channels: int) -> np.ndarray:
    arr = np.asarray(data, dtype=np.float64)
    if arr.size % channels != 0:
        raise InvalidInput(f"Data length {arr.size} is not a multiple of channels={channels}")
    if arr.ndim > 1 and arr.shape[-1] != channels:
        raise InvalidInput(f"Last axis of shape {arr.shape} does not match channels={channels}")
    return arr


def normalize(data: np.ndarray, spec: NormalizationSpec, channels: int) -> np.ndarray:
    """
    Apply `spec` to interleaved data (flat or (..., C)); returns float32 of the same shape.
    """

    arr = _interleaved(data, channels)
    scale, mean, std = spec.resolve(channels)
    flat = arr.reshape(-1, channels)
    out = (flat * scale - mean) / std
    return out.reshape(arr.shape).astype(np.float32)


def denormalize(
    data: np.ndarray,
    spec: NormalizationSpec,
    channels: int,
    width: Optional[int] = None,
    height: Optional[int] = None,
    data_layout: str = "hwc",
) -> np.ndarray:
    """
    Invert `normalize` back to bytes: x = (y * std[c] + mean[c]) / scale.

    Planar input (chw/nchw) needs `width` and `height` and is returned
    interleaved. The result is flat uint8, rounded half away from zero.
    """

    arr = np.asarray(data, dtype=np.float64).reshape(-1)
    layout = data_layout.lower()
    if layout in ("chw", "nchw"):
        if width is None or height is None:
            raise InvalidInput("width and height are required to denormalize planar data")
        arr = convert_layout(arr, width, height, channels, source_layout=layout, target_layout="hwc")
    arr = _interleaved(arr, channels)
    scale, mean, std = spec.resolve(channels)
    flat = arr.reshape(-1, channels)
    restored = (flat * std + mean) / scale
    return to_uint8(restored.reshape(-1))

