from __future__ import annotations

import argparse
import json
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import cv2
import numpy as np
from tqdm import tqdm

from vision_kit import (
    ArrayPixelSource,
    BatchItem,
    BatchItemError,
    PixelDataOptions,
    ResizeOptions,
    batch_get_pixel_data,
    load_preprocess_profile,
)


@dataclass(frozen=True)
class PreprocessConfig:
    images_dir: Path
    out_dir: Path
    profile: Optional[Path]
    imgsz: int
    layout: str
    recursive: bool
    exts: Tuple[str, ...]
    max_images: int
    batch_size: int
    workers: int


def _iter_image_paths(images_dir: Path, *, recursive: bool, exts: Sequence[str]) -> List[Path]:
    wanted = {e.lstrip(".").lower() for e in exts}
    candidates = images_dir.rglob("*") if recursive else images_dir.glob("*")
    paths = [p for p in candidates if p.is_file() and p.suffix.lower().lstrip(".") in wanted]
    return sorted({p.resolve() for p in paths})


def _options_for(cfg: PreprocessConfig) -> PixelDataOptions:
    if cfg.profile is not None:
        return load_preprocess_profile(cfg.profile)
    return PixelDataOptions(
        color_format="rgb",
        data_layout=cfg.layout,
        resize=ResizeOptions(width=cfg.imgsz, height=cfg.imgsz, strategy="letterbox"),
    )


def _chunks(paths: List[Path], size: int) -> List[List[Path]]:
    return [paths[i : i + size] for i in range(0, len(paths), size)]


def _parse_args() -> PreprocessConfig:
    parser = argparse.ArgumentParser(
        description="Turn a folder of images into model-ready .npy tensors (plus letterbox records)."
    )
    parser.add_argument("--images-dir", required=True, help="Folder with input images.")
    parser.add_argument("--out-dir", required=True, help="Where to write <stem>.npy / <stem>.letterbox.json.")
    parser.add_argument("--profile", default=None, help="Preprocess profile JSON (overrides --imgsz/--layout).")
    parser.add_argument("--imgsz", type=int, default=640, help="Square letterbox size when no profile is given.")
    parser.add_argument("--layout", default="nchw", help="Tensor layout when no profile is given (hwc/chw/nhwc/nchw).")
    parser.add_argument("--recursive", action="store_true", help="Search images recursively.")
    parser.add_argument("--exts", default="jpg,jpeg,png,bmp", help="Comma-separated image extensions.")
    parser.add_argument("--max-images", type=int, default=0, help="Stop after N images (0 = no limit).")
    parser.add_argument("--batch-size", type=int, default=16, help="Images decoded and processed per batch.")
    parser.add_argument("--workers", type=int, default=4, help="Worker threads per batch.")
    args = parser.parse_args()

    if args.imgsz < 1:
        raise ValueError("--imgsz must be >= 1")
    if args.max_images < 0:
        raise ValueError("--max-images must be >= 0")
    if args.batch_size < 1:
        raise ValueError("--batch-size must be >= 1")
    if args.workers < 1:
        raise ValueError("--workers must be >= 1")

    return PreprocessConfig(
        images_dir=Path(args.images_dir),
        out_dir=Path(args.out_dir),
        profile=Path(args.profile) if args.profile else None,
        imgsz=int(args.imgsz),
        layout=str(args.layout),
        recursive=bool(args.recursive),
        exts=tuple(e.strip() for e in str(args.exts).split(",") if e.strip()),
        max_images=int(args.max_images),
        batch_size=int(args.batch_size),
        workers=int(args.workers),
    )


def main() -> int:
    cfg = _parse_args()
    options = _options_for(cfg)

    image_paths = _iter_image_paths(cfg.images_dir, recursive=cfg.recursive, exts=cfg.exts)
    if cfg.max_images:
        image_paths = image_paths[: cfg.max_images]
    if not image_paths:
        raise FileNotFoundError(f"No images found under {cfg.images_dir} with extensions {list(cfg.exts)}.")

    cfg.out_dir.mkdir(parents=True, exist_ok=True)
    written = 0
    failed: List[Tuple[Path, BatchItemError]] = []
    total_ms = 0.0

    with tqdm(total=len(image_paths), unit="img") as bar:
        for n, chunk in enumerate(_chunks(image_paths, cfg.batch_size)):
            items: List[BatchItem] = []
            readable: List[Path] = []
            for offset, p in enumerate(chunk):
                img = cv2.imread(str(p))
                if img is None:
                    err = BatchItemError(index=n * cfg.batch_size + offset, code="UNREADABLE", message="cv2.imread returned None")
                    failed.append((p, err))
                    continue
                items.append(BatchItem(source=ArrayPixelSource.from_bgr(img, key=str(p)), options=options))
                readable.append(p)

            batch = batch_get_pixel_data(items, concurrency=cfg.workers)
            total_ms += batch.total_time_ms
            for p, outcome in zip(readable, batch.results):
                if isinstance(outcome, BatchItemError):
                    failed.append((p, outcome))
                    continue
                np.save(cfg.out_dir / f"{p.stem}.npy", outcome.as_tensor())
                if outcome.letterbox is not None:
                    record_path = cfg.out_dir / f"{p.stem}.letterbox.json"
                    record_path.write_text(json.dumps(outcome.letterbox.to_dict(), indent=2), encoding="utf-8")
                written += 1
            bar.update(len(chunk))

    for p, err in failed:
        print(f"FAILED {p}: [{err.code}] {err.message}")
    print(
        f"images={len(image_paths)} written={written} failed={len(failed)} "
        f"layout={options.data_layout} color={options.color_format} batch_time={total_ms:.1f}ms"
    )
    print(f"out_dir={cfg.out_dir.resolve()}")
    return 0 if not failed else 1


if __name__ == "__main__":
    raise SystemExit(main())
