"""Alignment script: the edit operations that turn one path into another."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Iterator, List, Tuple

import numpy as np

if TYPE_CHECKING:
    from ..config import EditWeights
    from .path import Path


class EditKind(Enum):
    """Kind of an edit operation. Values are the historical codes."""
    DELETE = 1
    INSERT = 2
    MUTATE = 3


@dataclass(frozen=True)
class EditOp:
    """One step of an alignment.

    MUTATE pairs point ``i`` of the first path with point ``j`` of the
    second. DELETE consumes ``i`` alone and INSERT consumes ``j`` alone; for
    those the other index is the nearest partner point on the other path.
    """
    kind: EditKind
    i: int
    j: int
    cost: float

    @property
    def is_mutation(self) -> bool:
        return self.kind is EditKind.MUTATE


@dataclass
class AlignmentScript:
    """Edit-distance alignment of path ``a`` onto path ``b``.

    Operations are ordered from the start of both paths to their end; each
    index of ``a`` is consumed by exactly one DELETE or MUTATE and each index
    of ``b`` by exactly one INSERT or MUTATE.

    Attributes:
        a: First path, as aligned (possibly a reversed or windowed copy).
        b: Second path, as aligned.
        ops: Ordered edit operations.
        distance: Total weighted cost.
        delta: Spacing both paths share.
        weights: Edit weights used.
    """
    a: Path
    b: Path
    ops: List[EditOp]
    distance: float
    delta: float
    weights: EditWeights = field(repr=False, default=None)

    def __len__(self) -> int:
        return len(self.ops)

    def __iter__(self) -> Iterator[EditOp]:
        return iter(self.ops)

    def count(self, kind: EditKind) -> int:
        return sum(1 for op in self.ops if op.kind is kind)

    def mutations(self) -> List[EditOp]:
        return [op for op in self.ops if op.kind is EditKind.MUTATE]

    def consumed_a(self) -> List[int]:
        """Indices of ``a`` in the order the script consumes them."""
        return [op.i for op in self.ops if op.kind is not EditKind.INSERT]

    def consumed_b(self) -> List[int]:
        """Indices of ``b`` in the order the script consumes them."""
        return [op.j for op in self.ops if op.kind is not EditKind.DELETE]

    def pairs(self) -> np.ndarray:
        """Array of (i, j) index pairs, one row per operation."""
        return np.array([(op.i, op.j) for op in self.ops], dtype=np.intp).reshape(-1, 2)

    def end_window(self, skip_ends: bool, max_mutation: int, min_chunk: float) -> Tuple[int, int, bool]:
        """Operation window that leaves out uneven free ends.

        The window starts at the first run of more than ``max_mutation``
        consecutive mutations and ends with the last such run. It only
        applies when the ``a`` indices it covers are at least ``min_chunk``
        of the length of ``a``.

        Returns:
            Tuple of (first op index, last op index inclusive, applied).
        """
        full = (0, len(self.ops) - 1, False)
        if not skip_ends or not self.ops:
            return full
        start = _first_run_end(self.ops, max_mutation)
        if start is None:
            return full
        start -= max_mutation
        tail = _first_run_end(self.ops[::-1], max_mutation)
        end = len(self.ops) - 1 - (tail - max_mutation)
        if end <= start:
            return full
        chunk = self.ops[end].i - self.ops[start].i + 1
        if chunk / len(self.a) < min_chunk:
            return full
        return start, end, True

    def similarity(self, skip_ends: bool = False, max_mutation: int = 5, min_chunk: float = 0.5) -> float:
        """1 minus the share of inserted/deleted points.

        The share is relative to the longer path, or to the longer span of
        the end window when ``skip_ends`` applies.
        """
        if not self.ops:
            return 0.0
        start, end, applied = self.end_window(skip_ends, max_mutation, min_chunk)
        window = self.ops[start:end + 1]
        non_mutations = sum(1 for op in window if op.kind is not EditKind.MUTATE)
        if applied:
            span = max(window[-1].i - window[0].i + 1, window[-1].j - window[0].j + 1)
        else:
            span = max(len(self.a), len(self.b))
        return 1.0 - non_mutations / span

    def mutation_similarity(self) -> float:
        """Fraction of ``a`` points that are paired by a mutation."""
        return self.count(EditKind.MUTATE) / len(self.a)

    def pretty(self) -> str:
        """One line per operation, for logs and debugging."""
        symbols = {EditKind.MUTATE: 'M', EditKind.DELETE: 'D', EditKind.INSERT: 'I'}
        lines = [f"distance: {self.distance:.6g}  ops: {len(self.ops)}"]
        for op in self.ops:
            lines.append(f"{symbols[op.kind]} {op.i:5d} {op.j:5d} {op.cost:.4f}")
        return '\n'.join(lines)


def _first_run_end(ops, max_mutation: int):
    """Index of the op that completes the first run of more than ``max_mutation`` mutations."""
    run = 0
    for k, op in enumerate(ops):
        if op.kind is EditKind.MUTATE:
            run += 1
            if run > max_mutation:
                return k
        else:
            run = 0
    return None
