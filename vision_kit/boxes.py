from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np

from .errors import InvalidInput, require_positive_dims
from .types import as_box_array, parse_box_format


def _to_xyxy(boxes: np.ndarray, fmt: str) -> np.ndarray:
    if fmt == "xyxy":
        return boxes.copy()
    out = np.empty_like(boxes)
    if fmt == "xywh":
        out[:, 0] = boxes[:, 0]
        out[:, 1] = boxes[:, 1]
        out[:, 2] = boxes[:, 0] + boxes[:, 2]
        out[:, 3] = boxes[:, 1] + boxes[:, 3]
        return out
    # cxcywh
    half_w = boxes[:, 2] / 2.0
    half_h = boxes[:, 3] / 2.0
    out[:, 0] = boxes[:, 0] - half_w
    out[:, 1] = boxes[:, 1] - half_h
    out[:, 2] = boxes[:, 0] + half_w
    out[:, 3] = boxes[:, 1] + half_h
    return out


def _from_xyxy(boxes: np.ndarray, fmt: str) -> np.ndarray:
    if fmt == "xyxy":
        return boxes.copy()
    w = boxes[:, 2] - boxes[:, 0]
    h = boxes[:, 3] - boxes[:, 1]
    out = np.empty_like(boxes)
    if fmt == "xywh":
        out[:, 0] = boxes[:, 0]
        out[:, 1] = boxes[:, 1]
    else:  # cxcywh
        out[:, 0] = boxes[:, 0] + w / 2.0
        out[:, 1] = boxes[:, 1] + h / 2.0
    out[:, 2] = w
    out[:, 3] = h
    return out


def match_input_shape(result: np.ndarray, original) -> np.ndarray:
    """Unwrap an (1, 4) result when the caller passed a single (4,) box."""

    if np.ndim(original) == 1 and np.size(original) == 4:
        return result[0]
    return result


def convert_format(boxes, source_format: str, target_format: str) -> np.ndarray:
    """
    Convert boxes between xyxy, xywh and cxcywh, always via xyxy.

    Accepts a single box (4,) or an (N, 4) array and returns the same shape.
    """

    src = parse_box_format(source_format)
    dst = parse_box_format(target_format)
    arr = as_box_array(boxes)
    out = _from_xyxy(_to_xyxy(arr, src), dst)
    return match_input_shape(out, boxes)


def _clip_xyxy(boxes: np.ndarray, width: float, height: float) -> np.ndarray:
    out = boxes.copy()
    out[:, [0, 2]] = np.clip(out[:, [0, 2]], 0.0, width)
    out[:, [1, 3]] = np.clip(out[:, [1, 3]], 0.0, height)
    return out


def scale_boxes(
    boxes,
    source_size: Tuple[float, float],
    target_size: Tuple[float, float],
    fmt: str = "xyxy",
    clip: bool = False,
) -> np.ndarray:
    """
    Map boxes from a (width, height) coordinate space to another.

    x is scaled by target_w / source_w and y by target_h / source_h, in xyxy;
    `clip` clamps the result to the target extent.
    """

    fmt = parse_box_format(fmt)
    source_w, source_h = source_size
    target_w, target_h = target_size
    require_positive_dims(source_w=source_w, source_h=source_h, target_w=target_w, target_h=target_h)

    xyxy = _to_xyxy(as_box_array(boxes), fmt)
    sx = target_w / source_w
    sy = target_h / source_h
    xyxy[:, [0, 2]] *= sx
    xyxy[:, [1, 3]] *= sy
    if clip:
        xyxy = _clip_xyxy(xyxy, float(target_w), float(target_h))
    return match_input_shape(_from_xyxy(xyxy, fmt), boxes)


@dataclass(frozen=True)
class ClipResult:
    boxes: np.ndarray
    removed_count: int = 0


def clip_boxes(
    boxes,
    width: float,
    height: float,
    fmt: str = "xyxy",
    remove_invalid: bool = False,
) -> ClipResult:
    """
    Clamp x into [0, width] and y into [0, height].

    With `remove_invalid`, boxes left with zero width or height are dropped
    and counted in `removed_count`.
    """

    fmt = parse_box_format(fmt)
    require_positive_dims(width=width, height=height)
    xyxy = _clip_xyxy(_to_xyxy(as_box_array(boxes), fmt), float(width), float(height))

    removed = 0
    if remove_invalid:
        valid = ((xyxy[:, 2] - xyxy[:, 0]) > 0) & ((xyxy[:, 3] - xyxy[:, 1]) > 0)
        removed = int((~valid).sum())
        xyxy = xyxy[valid]
    return ClipResult(boxes=_from_xyxy(xyxy, fmt), removed_count=removed)


def box_areas(boxes_xyxy: np.ndarray) -> np.ndarray:
    return (boxes_xyxy[:, 2] - boxes_xyxy[:, 0]) * (boxes_xyxy[:, 3] - boxes_xyxy[:, 1])


def box_iou_matrix(a, b, fmt: str = "xyxy") -> np.ndarray:
    """
    Pairwise IoU, shape (len(a), len(b)). Pairs with an empty union score 0.
    """

    fmt = parse_box_format(fmt)
    a_xyxy = _to_xyxy(as_box_array(a), fmt)
    b_xyxy = _to_xyxy(as_box_array(b), fmt)

    x1 = np.maximum(a_xyxy[:, None, 0], b_xyxy[None, :, 0])
    y1 = np.maximum(a_xyxy[:, None, 1], b_xyxy[None, :, 1])
    x2 = np.minimum(a_xyxy[:, None, 2], b_xyxy[None, :, 2])
    y2 = np.minimum(a_xyxy[:, None, 3], b_xyxy[None, :, 3])
    inter = np.maximum(0.0, x2 - x1) * np.maximum(0.0, y2 - y1)
    union = box_areas(a_xyxy)[:, None] + box_areas(b_xyxy)[None, :] - inter

    out = np.zeros_like(inter)
    np.divide(inter, union, out=out, where=union > 0)
    return out


def iou(a: Sequence[float], b: Sequence[float], fmt: str = "xyxy") -> float:
    a_arr = np.asarray(a, dtype=np.float64).reshape(-1)
    b_arr = np.asarray(b, dtype=np.float64).reshape(-1)
    if a_arr.size != 4 or b_arr.size != 4:
        raise InvalidInput("Boxes must have 4 elements")
    return float(box_iou_matrix(a_arr[None, :], b_arr[None, :], fmt)[0, 0])
