from __future__ import annotations

from dataclasses import dataclass, replace
from typing import List, Optional, Sequence

import numpy as np

from .boxes import box_areas, convert_format
from .errors import InvalidInput
from .types import Detection, as_box_array


@dataclass(frozen=True)
class NMSConfig:
    iou_threshold: float = 0.45
    score_threshold: float = 0.0
    max_detections: int = 100
    # If False, suppression only happens between boxes of the same class.
    class_agnostic: bool = True

    def __post_init__(self) -> None:
        if not 0.0 <= self.iou_threshold <= 1.0:
            raise InvalidInput(f"iou_threshold must be within [0, 1] (got {self.iou_threshold})")
        if isinstance(self.max_detections, bool) or not isinstance(self.max_detections, int) or self.max_detections < 0:
            raise InvalidInput(f"max_detections must be an integer >= 0 (got {self.max_detections!r})")


def nms(boxes, scores, cfg: NMSConfig = NMSConfig(), fmt: str = "xyxy") -> np.ndarray:
    """
    Greedy NumPy NMS. Expects boxes (N, 4) and scores (N,).

    Boxes scoring below `score_threshold` are dropped, the rest are visited in
    descending score order (ties keep their input order) and every remaining
    box overlapping a kept one by IoU > `iou_threshold` is suppressed.
    Returns the kept indices into the input, best first.
    """

    if not cfg.class_agnostic:
        raise InvalidInput("nms() has no class ids; use batched_nms() for per-class suppression")

    boxes_arr = convert_format(as_box_array(boxes), fmt, "xyxy")
    scores_arr = np.asarray(scores, dtype=np.float64).reshape(-1)
    if boxes_arr.shape[0] != scores_arr.shape[0]:
        raise InvalidInput(f"Boxes and scores must have same length ({boxes_arr.shape[0]} vs {scores_arr.shape[0]})")

    if boxes_arr.size == 0 or cfg.max_detections == 0:
        return np.empty((0,), dtype=np.int64)

    candidates = np.where(scores_arr >= cfg.score_threshold)[0]
    if candidates.size == 0:
        return np.empty((0,), dtype=np.int64)

    x1 = boxes_arr[:, 0]
    y1 = boxes_arr[:, 1]
    x2 = boxes_arr[:, 2]
    y2 = boxes_arr[:, 3]
    areas = box_areas(boxes_arr)

    order = candidates[np.argsort(-scores_arr[candidates], kind="stable")]
    keep: List[int] = []

    while order.size > 0 and len(keep) < cfg.max_detections:
        i = order[0]
        keep.append(int(i))

        rest = order[1:]
        xx1 = np.maximum(x1[i], x1[rest])
        yy1 = np.maximum(y1[i], y1[rest])
        xx2 = np.minimum(x2[i], x2[rest])
        yy2 = np.minimum(y2[i], y2[rest])

        w = np.maximum(0.0, xx2 - xx1)
        h = np.maximum(0.0, yy2 - yy1)
        inter = w * h
        union = areas[i] + areas[rest] - inter
        overlap = np.zeros_like(inter)
        np.divide(inter, union, out=overlap, where=union > 0)

        order = rest[overlap <= cfg.iou_threshold]

    return np.array(keep, dtype=np.int64)


def batched_nms(boxes, scores, class_ids, cfg: NMSConfig = NMSConfig(), fmt: str = "xyxy") -> np.ndarray:
    """
    Per-class NMS: suppress within each class, then merge by score.
    """

    scores_arr = np.asarray(scores, dtype=np.float64).reshape(-1)
    class_arr = np.asarray(class_ids).reshape(-1)
    boxes_arr = as_box_array(boxes)
    if class_arr.shape[0] != scores_arr.shape[0]:
        raise InvalidInput("class_ids and scores must have same length")

    per_class = replace(cfg, class_agnostic=True)
    kept: List[int] = []
    for cls in np.unique(class_arr):
        idx = np.where(class_arr == cls)[0]
        keep_local = nms(boxes_arr[idx], scores_arr[idx], per_class, fmt)
        kept.extend(idx[keep_local].tolist())

    if not kept:
        return np.empty((0,), dtype=np.int64)

    merged = np.array(kept, dtype=np.int64)
    merged = merged[np.argsort(-scores_arr[merged], kind="stable")]
    return merged[: cfg.max_detections]


@dataclass(frozen=True)
class NMSResult:
    indices: List[int]
    detections: List[Detection]
    total_before: int
    total_after: int

    @property
    def suppressed_count(self) -> int:
        return self.total_before - self.total_after


def non_max_suppression(
    detections: Sequence[Detection],
    iou_threshold: float = 0.45,
    score_threshold: float = 0.0,
    max_detections: Optional[int] = 100,
    fmt: str = "xyxy",
    class_agnostic: bool = True,
) -> NMSResult:
    """
    NMS over `Detection` records; kept records are returned unchanged.
    """

    cfg = NMSConfig(
        iou_threshold=iou_threshold,
        score_threshold=score_threshold,
        max_detections=100 if max_detections is None else max_detections,
        class_agnostic=class_agnostic,
    )
    dets = list(detections)
    if not dets:
        return NMSResult(indices=[], detections=[], total_before=0, total_after=0)

    boxes = np.array([d.box for d in dets], dtype=np.float64)
    scores = np.array([d.score for d in dets], dtype=np.float64)

    if cfg.class_agnostic:
        keep = nms(boxes, scores, cfg, fmt)
    else:
        class_ids = np.array([-1 if d.class_index is None else d.class_index for d in dets])
        keep = batched_nms(boxes, scores, class_ids, cfg, fmt)

    indices = [int(i) for i in keep]
    return NMSResult(
        indices=indices,
        detections=[dets[i] for i in indices],
        total_before=len(dets),
        total_after=len(indices),
    )

