from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np

from .errors import InvalidInput, OutOfBounds, require_positive_dims
from .layout import convert_layout, is_planar
from .normalize import NormalizationSpec, denormalize


def _validate_region(x: int, y: int, width: int, height: int, src_w: int, src_h: int, what: str) -> None:
    if width <= 0 or height <= 0:
        raise InvalidInput(f"{what} dimensions must be positive (got {width}x{height})")
    if x < 0 or y < 0 or x + width > src_w or y + height > src_h:
        raise OutOfBounds(
            f"{what} extends beyond image bounds (image: {src_w}x{src_h}, "
            f"{what}: x={x}, y={y}, w={width}, h={height})"
        )


def crop_roi(image: np.ndarray, x: int, y: int, width: int, height: int) -> np.ndarray:
    """
    Copy the (x, y, width, height) region out of an (H, W, C) image.
    """

    img = np.asarray(image)
    if img.ndim < 2:
        raise InvalidInput(f"Expected an image array, got shape {img.shape}")
    src_h, src_w = img.shape[:2]
    _validate_region(x, y, width, height, src_w, src_h, "ROI")
    return img[y : y + height, x : x + width].copy()


def _as_hwc(data: np.ndarray, width: int, height: int, channels: int, data_layout: str) -> np.ndarray:
    require_positive_dims(width=width, height=height, channels=channels)
    flat = np.asarray(data).reshape(-1)
    if flat.size != width * height * channels:
        raise InvalidInput(f"Data length {flat.size} does not match {width}x{height}x{channels}")
    if is_planar(data_layout):
        flat = convert_layout(flat, width, height, channels, source_layout=data_layout, target_layout="hwc")
    return flat.reshape(height, width, channels)


def extract_channel(
    data: np.ndarray,
    width: int,
    height: int,
    channels: int,
    channel_index: int,
    data_layout: str = "hwc",
) -> np.ndarray:
    if channel_index < 0 or channel_index >= channels:
        raise OutOfBounds(f"Channel index {channel_index} out of range [0, {channels})")
    hwc = _as_hwc(data, width, height, channels, data_layout)
    return hwc[:, :, channel_index].reshape(-1).copy()


def extract_patch(
    data: np.ndarray,
    width: int,
    height: int,
    channels: int,
    x: int,
    y: int,
    patch_width: int,
    patch_height: int,
    data_layout: str = "hwc",
) -> np.ndarray:
    """
    Cut a patch out of a flat tensor; the patch keeps the input layout.
    """

    _validate_region(x, y, patch_width, patch_height, width, height, "patch")
    hwc = _as_hwc(data, width, height, channels, data_layout)
    patch = hwc[y : y + patch_height, x : x + patch_width].reshape(-1)
    if is_planar(data_layout):
        return convert_layout(patch, patch_width, patch_height, channels, source_layout="hwc", target_layout="chw")
    return patch.copy()


def permute(data: np.ndarray, shape: Sequence[int], order: Sequence[int]) -> Tuple[np.ndarray, Tuple[int, ...]]:
    """
    Reorder the axes of a flat tensor of `shape`; returns (flat data, new shape).
    """

    shape = tuple(int(d) for d in shape)
    order = tuple(int(o) for o in order)
    if len(order) != len(shape):
        raise InvalidInput(f"Order length {len(order)} doesn't match shape dimensions {len(shape)}")
    if sorted(order) != list(range(len(shape))):
        raise InvalidInput(f"Order {order} is not a permutation of axes 0..{len(shape) - 1}")
    flat = np.asarray(data).reshape(-1)
    if flat.size != int(np.prod(shape)):
        raise InvalidInput(f"Data length {flat.size} does not match shape {shape}")
    out = flat.reshape(shape).transpose(order)
    return out.reshape(-1).copy(), tuple(out.shape)


def tensor_to_image(
    data: np.ndarray,
    width: int,
    height: int,
    channels: int = 3,
    data_layout: str = "hwc",
    normalization: Optional[NormalizationSpec] = None,
) -> np.ndarray:
    """
    Rebuild an (H, W, 3) or (H, W, 4) uint8 RGB(A) image from a float tensor.

    `normalization` is what the tensor was produced with; by default the
    tensor is taken to hold values in [0, 1] (the `scale` preset).
    """

    spec = normalization or NormalizationSpec(preset="scale")
    hwc = _as_hwc(data, width, height, channels, data_layout)
    restored = denormalize(hwc.reshape(-1), spec, channels).reshape(height, width, channels)
    if channels == 1:
        return np.repeat(restored, 3, axis=2)
    if channels == 2:
        return np.concatenate([restored, restored[:, :, :1]], axis=2)
    return restored[:, :, :4].copy()


@dataclass(frozen=True)
class ImageStatistics:
    """Per-channel (R, G, B) statistics scaled to [0, 1], plus 256-bin histograms."""

    mean: Tuple[float, float, float]
    std: Tuple[float, float, float]
    min: Tuple[float, float, float]
    max: Tuple[float, float, float]
    histogram: Tuple[np.ndarray, np.ndarray, np.ndarray]


def image_statistics(rgba: np.ndarray) -> ImageStatistics:
    img = np.asarray(rgba)
    if img.ndim != 3 or img.shape[2] < 3 or img.dtype != np.uint8:
        raise InvalidInput(f"Expected a uint8 (H, W, 3|4) image, got {img.dtype} {img.shape}")
    if img.shape[0] == 0 or img.shape[1] == 0:
        raise InvalidInput("Cannot compute statistics of an empty image")
    rgb = img[:, :, :3].reshape(-1, 3).astype(np.float64)
    hist = tuple(np.bincount(img[:, :, c].reshape(-1), minlength=256) for c in range(3))

    def _triple(values: np.ndarray) -> Tuple[float, float, float]:
        v = values / 255.0
        return float(v[0]), float(v[1]), float(v[2])

    return ImageStatistics(
        mean=_triple(rgb.mean(axis=0)),
        std=_triple(rgb.std(axis=0)),
        min=_triple(rgb.min(axis=0)),
        max=_triple(rgb.max(axis=0)),
        histogram=hist,  # type: ignore[arg-type]
    )
