from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np

from .errors import DimensionMismatch, InvalidInput, require_positive_dims
from .types import parse_data_layout

PLANAR_LAYOUTS = frozenset({"chw", "nchw"})
BATCHED_LAYOUTS = frozenset({"nhwc", "nchw"})


def is_planar(layout: str) -> bool:
    return parse_data_layout(layout) in PLANAR_LAYOUTS


def layout_shape(width: int, height: int, channels: int, layout: str, batch_size: int = 1) -> Tuple[int, ...]:
    layout = parse_data_layout(layout)
    if layout == "hwc":
        return (height, width, channels)
    if layout == "chw":
        return (channels, height, width)
    if layout == "nhwc":
        return (batch_size, height, width, channels)
    return (batch_size, channels, height, width)


def _batch_count(data: np.ndarray, width: int, height: int, channels: int) -> int:
    per_sample = width * height * channels
    if data.size == 0 or data.size % per_sample != 0:
        raise InvalidInput(
            f"Data length {data.size} is not a positive multiple of {width}x{height}x{channels}={per_sample}"
        )
    return data.size // per_sample


def hwc_to_chw(data: np.ndarray, width: int, height: int, channels: int) -> np.ndarray:
    """
    Interleaved -> planar. Flat in, flat out; index c*H*W + h*W + w.
    """

    require_positive_dims(width=width, height=height, channels=channels)
    arr = np.asarray(data).reshape(-1)
    n = _batch_count(arr, width, height, channels)
    return arr.reshape(n, height, width, channels).transpose(0, 3, 1, 2).reshape(-1).copy()


def chw_to_hwc(data: np.ndarray, width: int, height: int, channels: int) -> np.ndarray:
    """
    Planar -> interleaved. Flat in, flat out; index h*W*C + w*C + c.
    """

    require_positive_dims(width=width, height=height, channels=channels)
    arr = np.asarray(data).reshape(-1)
    n = _batch_count(arr, width, height, channels)
    return arr.reshape(n, channels, height, width).transpose(0, 2, 3, 1).reshape(-1).copy()


def convert_layout(
    data: np.ndarray,
    width: int,
    height: int,
    channels: int,
    source_layout: str = "hwc",
    target_layout: str = "chw",
) -> np.ndarray:
    """
    Reindex flat data between layouts. The batch axis carries no data of its
    own, so nhwc/hwc and nchw/chw share a memory order.
    """

    src_planar = is_planar(source_layout)
    dst_planar = is_planar(target_layout)
    if src_planar == dst_planar:
        require_positive_dims(width=width, height=height, channels=channels)
        arr = np.asarray(data).reshape(-1)
        _batch_count(arr, width, height, channels)
        return arr.copy()
    if dst_planar:
        return hwc_to_chw(data, width, height, channels)
    return chw_to_hwc(data, width, height, channels)


def channel_indices(length: int, channels: int, layout: str, pixel_count: int = 0) -> np.ndarray:
    """
    Channel index of every element of a flat tensor.

    Interleaved layouts step through channels with stride 1 (i % C); planar
    layouts hold each channel in a contiguous block of `pixel_count` values
    ((i // pixel_count) % C). `pixel_count` defaults to length / channels.
    """

    if channels <= 0:
        raise InvalidInput(f"channels must be > 0 (got {channels})")
    if length % channels != 0:
        raise InvalidInput(f"Data length {length} is not a multiple of channels={channels}")
    idx = np.arange(length)
    if not is_planar(layout):
        return idx % channels
    block = pixel_count or length // channels
    if block <= 0 or length % (block * channels) != 0:
        raise InvalidInput(f"Data length {length} does not split into {channels} planes of {block}")
    return (idx // block) % channels


@dataclass(frozen=True)
class BatchTensor:
    data: np.ndarray
    shape: Tuple[int, ...]
    batch_size: int
    data_layout: str


def concatenate_to_batch(
    tensors: Sequence[object],
    data_layout: str = "nchw",
) -> BatchTensor:
    """
    Stack same-shaped samples along a new leading axis.

    Each sample needs `data`, `width`, `height` and `channels` attributes
    (PixelDataResult and PixelBuffer both qualify) and must already be in the
    memory order of `data_layout`; sample i occupies block i of the output.
    """

    layout = parse_data_layout(data_layout)
    if layout not in BATCHED_LAYOUTS:
        layout = "nchw" if is_planar(layout) else "nhwc"
    if not tensors:
        raise InvalidInput("Cannot create batch from empty sequence")

    first = tensors[0]
    width, height, channels = int(first.width), int(first.height), int(first.channels)
    per_sample = width * height * channels
    blocks: List[np.ndarray] = []
    for i, t in enumerate(tensors):
        if (t.width, t.height, t.channels) != (width, height, channels):
            raise DimensionMismatch(
                f"Sample {i} is {t.width}x{t.height}x{t.channels}, expected {width}x{height}x{channels}"
            )
        block = np.asarray(t.data).reshape(-1)
        if block.size != per_sample:
            raise DimensionMismatch(f"Sample {i} holds {block.size} values, expected {per_sample}")
        blocks.append(block)

    data = np.concatenate(blocks)
    shape = layout_shape(width, height, channels, layout, batch_size=len(blocks))
    return BatchTensor(data=data, shape=shape, batch_size=len(blocks), data_layout=layout)
