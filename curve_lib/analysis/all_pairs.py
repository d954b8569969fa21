"""Parallel pairwise scoring.

The score of every unordered pair of paths is independent of all others,
so the matrix is filled by a pool of worker threads. Workers claim rows
from a shared counter on demand; the worker owning row i computes every
(i, j > i) cell and mirrors it to (j, i), so no cell is written twice and
the matrix needs no lock. Numpy releases the GIL inside the alignment
kernels, which is where the time goes.

Cancellation is cooperative: ``is_cancelled`` is polled between pairs and
a cancelled run raises OperationCancelledError instead of returning a
partially filled matrix.

Example usage::

    import threading
    from curve_lib.analysis.all_pairs import score_matrix

    stop = threading.Event()
    matrix = score_matrix(paths, matcher, is_cancelled=stop.is_set, max_workers=4)
"""

from __future__ import annotations

import itertools
import logging
import os
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Optional, Sequence

import numpy as np

from ..domain.path import Path
from ..errors import OperationCancelledError
from .matching import Matcher

logger = logging.getLogger(__name__)


def default_workers(tasks: int, max_workers: Optional[int] = None) -> int:
    """Number of worker threads for ``tasks`` independent units of work."""
    workers = max_workers or os.cpu_count() or 1
    return max(1, min(workers, tasks))


class _RowCounter:
    """Hands out row indices to workers, each exactly once."""

    def __init__(self):
        self._lock = threading.Lock()
        self._counter = itertools.count()

    def claim(self) -> int:
        with self._lock:
            return next(self._counter)


def _run_workers(worker: Callable[[], None], workers: int, stop: threading.Event) -> None:
    """Run ``workers`` copies of ``worker`` and re-raise the first failure."""

    def guarded():
        try:
            worker()
        except BaseException:
            stop.set()
            raise

    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [executor.submit(guarded) for _ in range(workers)]
        for future in as_completed(futures):
            future.result()


def score_matrix(paths: Sequence[Path], matcher: Matcher,
                 is_cancelled: Optional[Callable[[], bool]] = None,
                 max_workers: Optional[int] = None) -> np.ndarray:
    """Symmetric matrix of best-match scores with a zero diagonal.

    Args:
        paths: Paths to compare.
        matcher: Matcher producing the score of each pair.
        is_cancelled: Polled between pairs.
        max_workers: Thread pool size; defaults to the CPU count.

    Returns:
        Array of shape (n, n).

    Raises:
        OperationCancelledError: If cancellation was requested.
    """
    n = len(paths)
    matrix = np.zeros((n, n))
    if n < 2:
        return matrix

    rows = _RowCounter()
    stop = threading.Event()

    def halted() -> bool:
        if stop.is_set():
            return True
        if is_cancelled is not None and is_cancelled():
            stop.set()
            return True
        return False

    def worker():
        while True:
            i = rows.claim()
            if i >= n - 1:
                return
            for j in range(i + 1, n):
                if halted():
                    return
                score = matcher.match(paths[i], paths[j]).score
                matrix[i, j] = score
                matrix[j, i] = score

    workers = default_workers(n - 1, max_workers)
    logger.info("Scoring %d pairs of %d paths on %d threads", n * (n - 1) // 2, n, workers)
    _run_workers(worker, workers, stop)
    if stop.is_set():
        raise OperationCancelledError("Pairwise scoring cancelled")
    return matrix


def score_against(path: Path, others: Sequence[Path], matcher: Matcher,
                  is_cancelled: Optional[Callable[[], bool]] = None,
                  max_workers: Optional[int] = None) -> np.ndarray:
    """Scores of ``path`` against each of ``others``, computed in parallel.

    Raises:
        OperationCancelledError: If cancellation was requested.
    """
    scores = np.zeros(len(others))
    if not others:
        return scores

    items = _RowCounter()
    stop = threading.Event()

    def worker():
        while True:
            k = items.claim()
            if k >= len(others):
                return
            if stop.is_set() or (is_cancelled is not None and is_cancelled()):
                stop.set()
                return
            scores[k] = matcher.match(path, others[k]).score

    _run_workers(worker, default_workers(len(others), max_workers), stop)
    if stop.is_set():
        raise OperationCancelledError("Pairwise scoring cancelled")
    return scores
