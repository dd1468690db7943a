from __future__ import annotations

import argparse
import statistics
import time
from dataclasses import dataclass
from typing import List, Tuple

import numpy as np
from tqdm import tqdm

from vision_kit import LetterboxRecord, NMSConfig, batched_nms, nms, reverse_letterbox


@dataclass(frozen=True)
class TimingSummary:
    n: int
    mean_ms: float
    p50_ms: float
    p90_ms: float
    p95_ms: float


def _percentile(sorted_values: List[float], q: float) -> float:
    if not sorted_values:
        raise ValueError("No values provided.")
    if q < 0.0 or q > 100.0:
        raise ValueError("q must be in [0, 100].")
    if len(sorted_values) == 1:
        return float(sorted_values[0])
    # Linear interpolation between closest ranks.
    pos = (q / 100.0) * (len(sorted_values) - 1)
    lo = int(np.floor(pos))
    hi = int(np.ceil(pos))
    if lo == hi:
        return float(sorted_values[lo])
    t = pos - lo
    return float(sorted_values[lo] * (1.0 - t) + sorted_values[hi] * t)


def _summarize_ms(values_s: List[float]) -> TimingSummary:
    ms_sorted = sorted(v * 1000.0 for v in values_s)
    return TimingSummary(
        n=len(ms_sorted),
        mean_ms=float(statistics.fmean(ms_sorted)) if ms_sorted else 0.0,
        p50_ms=_percentile(ms_sorted, 50.0) if ms_sorted else 0.0,
        p90_ms=_percentile(ms_sorted, 90.0) if ms_sorted else 0.0,
        p95_ms=_percentile(ms_sorted, 95.0) if ms_sorted else 0.0,
    )


def _format_summary(label: str, s: TimingSummary) -> str:
    return (
        f"{label}: n={s.n} mean={s.mean_ms:.3f}ms p50={s.p50_ms:.3f}ms "
        f"p90={s.p90_ms:.3f}ms p95={s.p95_ms:.3f}ms"
    )


def _synthetic_boxes(n: int, n_classes: int, imgsz: int, seed: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    rng = np.random.default_rng(seed)
    x1y1 = rng.uniform(0, imgsz - 40, size=(n, 2))
    wh = rng.uniform(5, 80, size=(n, 2))
    boxes = np.concatenate([x1y1, x1y1 + wh], axis=1)
    scores = rng.uniform(0.0, 1.0, size=(n,))
    class_ids = rng.integers(0, n_classes, size=(n,))
    return boxes, scores, class_ids


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Benchmark class-agnostic vs per-class NMS (plus letterbox reversal) on synthetic boxes."
    )
    parser.add_argument("--boxes", type=int, default=1000, help="Number of synthetic candidate boxes.")
    parser.add_argument("--classes", type=int, default=1, help="Number of synthetic classes.")
    parser.add_argument("--imgsz", type=int, default=640, help="Square canvas the boxes live on.")
    parser.add_argument("--conf", type=float, default=0.25, help="Score threshold (pre-NMS).")
    parser.add_argument("--iou", type=float, default=0.45, help="IoU threshold for NMS.")
    parser.add_argument("--max-det", type=int, default=100, help="Max detections to keep after NMS.")
    parser.add_argument("--warmup", type=int, default=10, help="Iterations to run but not record.")
    parser.add_argument("--repeats", type=int, default=200, help="Recorded iterations.")
    parser.add_argument("--seed", type=int, default=0, help="RNG seed for the synthetic boxes.")
    args = parser.parse_args()

    if args.boxes < 1:
        raise ValueError("--boxes must be >= 1")
    if args.classes < 1:
        raise ValueError("--classes must be >= 1")
    if args.imgsz < 64:
        raise ValueError("--imgsz must be >= 64")
    if args.warmup < 0:
        raise ValueError("--warmup must be >= 0")
    if args.repeats < 1:
        raise ValueError("--repeats must be >= 1")

    boxes, scores, class_ids = _synthetic_boxes(int(args.boxes), int(args.classes), int(args.imgsz), int(args.seed))
    cfg = NMSConfig(
        iou_threshold=float(args.iou),
        score_threshold=float(args.conf),
        max_detections=int(args.max_det),
    )
    # Pretend the canvas was letterboxed from a 1920x1080 frame.
    record = LetterboxRecord(
        scale=int(args.imgsz) / 1920.0,
        offset=(0, (int(args.imgsz) - round(1080 * int(args.imgsz) / 1920.0)) // 2),
        original_size=(1920, 1080),
        letterboxed_size=(int(args.imgsz), int(args.imgsz)),
    )

    t_agnostic: List[float] = []
    t_per_class: List[float] = []
    t_reverse: List[float] = []
    kept_agnostic = kept_per_class = 0

    for i in tqdm(range(int(args.warmup) + int(args.repeats)), unit="iter"):
        t0 = time.perf_counter()
        keep_a = nms(boxes, scores, cfg)
        t1 = time.perf_counter()
        keep_c = batched_nms(boxes, scores, class_ids, cfg)
        t2 = time.perf_counter()
        _ = reverse_letterbox(boxes[keep_a], record)
        t3 = time.perf_counter()

        if i < int(args.warmup):
            continue
        t_agnostic.append(t1 - t0)
        t_per_class.append(t2 - t1)
        t_reverse.append(t3 - t2)
        kept_agnostic, kept_per_class = len(keep_a), len(keep_c)

    print(_format_summary("nms_class_agnostic", _summarize_ms(t_agnostic)))
    print(_format_summary("nms_per_class", _summarize_ms(t_per_class)))
    print(_format_summary("reverse_letterbox", _summarize_ms(t_reverse)))
    print(
        f"boxes={args.boxes} classes={args.classes} kept_agnostic={kept_agnostic} "
        f"kept_per_class={kept_per_class} samples_recorded={len(t_agnostic)} warmup={args.warmup}"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
