from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Hashable, List, Optional, Sequence, Union

from .cache import PixelDataCache
from .errors import VisionKitError
from .runtime import PixelDataOptions, PixelDataResult, PixelSource, get_pixel_data

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchItem:
    source: PixelSource
    options: PixelDataOptions = PixelDataOptions()
    # Results are only cached for items that carry a key.
    cache_key: Optional[str] = None


@dataclass(frozen=True)
class BatchItemError:
    index: int
    code: str
    message: str


BatchOutcome = Union[PixelDataResult, BatchItemError]


def is_error(outcome: BatchOutcome) -> bool:
    return isinstance(outcome, BatchItemError)


@dataclass(frozen=True)
class BatchResult:
    results: List[BatchOutcome]
    total_time_ms: float

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if not is_error(r))

    @property
    def error_count(self) -> int:
        return sum(1 for r in self.results if is_error(r))

    @property
    def errors(self) -> List[BatchItemError]:
        return [r for r in self.results if isinstance(r, BatchItemError)]


def _cache_key(item: BatchItem) -> Optional[Hashable]:
    key = item.cache_key
    if key is None:
        key = getattr(item.source, "key", None)
    if key is None:
        return None
    # Options are frozen dataclasses of tuples and scalars.
    return (key, item.options)


def _run_one(item: BatchItem, cache: Optional[PixelDataCache]) -> PixelDataResult:
    key = _cache_key(item) if cache is not None else None
    if key is not None:
        hit = cache.get(key)
        if hit is not None:
            return hit  # type: ignore[return-value]
    result = get_pixel_data(item.source, item.options)
    if key is not None:
        # Hits hand the same buffer to every caller.
        result.data.flags.writeable = False
        cache.put(key, result)
    return result


def batch_get_pixel_data(
    items: Sequence[BatchItem],
    concurrency: int = 4,
    cache: Optional[PixelDataCache] = None,
) -> BatchResult:
    """
    Run the pixel pipeline over many sources on a thread pool.

    Results keep the order of `items`. A failing item becomes a
    `BatchItemError` in its slot and the rest of the batch still runs.
    """

    if isinstance(concurrency, bool) or not isinstance(concurrency, int) or concurrency <= 0:
        raise ValueError(f"concurrency must be a positive integer (got {concurrency!r})")

    start = time.perf_counter()
    items = list(items)
    results: List[Optional[BatchOutcome]] = [None] * len(items)

    if items:
        with ThreadPoolExecutor(max_workers=min(concurrency, len(items)), thread_name_prefix="vision-kit") as executor:
            futures = {executor.submit(_run_one, item, cache): i for i, item in enumerate(items)}
            for future in as_completed(futures):
                i = futures[future]
                try:
                    results[i] = future.result()
                except VisionKitError as exc:
                    logger.warning("batch item %d failed: %s", i, exc)
                    results[i] = BatchItemError(index=i, code=exc.code, message=exc.message)
                except Exception as exc:
                    logger.warning("batch item %d failed unexpectedly: %r", i, exc)
                    results[i] = BatchItemError(index=i, code="UNKNOWN", message=str(exc))

    total_ms = (time.perf_counter() - start) * 1000.0
    return BatchResult(results=results, total_time_ms=total_ms)  # type: ignore[arg-type]
