# src/fpga_arch_core/layout/crossings.py
"""
Segment-crossing counts and the greedy adjacent-swap heuristic used to order the
pins feeding a mux or crossbar.

The heuristic is a local search, not a global optimum. It starts from declaration
order, accepts a swap of two neighbouring slot assignments only when the number of
proper crossings strictly decreases, and stops after a pass with no accepted swap or
after `max_passes` passes. Touching endpoints and collinear overlaps are not counted
as crossings.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np

logger = logging.getLogger(__name__)

_EPSILON = 1e-9


@dataclass(frozen=True)
class CrossingResult:
    order: Tuple[int, ...]
    crossings: int
    passes: int
    converged: bool


def _orientation(ax, ay, bx, by, cx, cy):
    cross = (bx - ax) * (cy - ay) - (by - ay) * (cx - ax)
    return np.where(np.abs(cross) < _EPSILON, 0.0, np.sign(cross))


def _proper_intersections(p: np.ndarray, q: np.ndarray) -> np.ndarray:
    """Element-wise proper intersection test for broadcastable (..., 4) segment arrays."""
    o1 = _orientation(p[..., 0], p[..., 1], p[..., 2], p[..., 3], q[..., 0], q[..., 1])
    o2 = _orientation(p[..., 0], p[..., 1], p[..., 2], p[..., 3], q[..., 2], q[..., 3])
    o3 = _orientation(q[..., 0], q[..., 1], q[..., 2], q[..., 3], p[..., 0], p[..., 1])
    o4 = _orientation(q[..., 0], q[..., 1], q[..., 2], q[..., 3], p[..., 2], p[..., 3])
    return (o1 * o2 < 0) & (o3 * o4 < 0)


def as_segments(segments: Sequence) -> np.ndarray:
    array = np.asarray(segments, dtype=float)
    return array.reshape(-1, 4)


def count_crossings(segments: Sequence) -> int:
    """Number of unordered segment pairs that properly intersect."""
    s = as_segments(segments)
    if len(s) < 2:
        return 0
    matrix = _proper_intersections(s[:, None, :], s[None, :, :])
    return int(np.triu(matrix, k=1).sum())


def crossings_against(segment: Sequence[float], others: Sequence) -> int:
    """Number of segments in `others` that properly intersect `segment`."""
    o = as_segments(others)
    if len(o) == 0:
        return 0
    s = np.asarray(segment, dtype=float).reshape(1, 4)
    return int(_proper_intersections(s, o).sum())


def reduce_crossings(
    anchors: Sequence,
    slots: Sequence,
    fixed: Optional[Sequence] = None,
    max_passes: int = 8,
) -> CrossingResult:
    """
    Assigns `anchors[order[k]]` to `slots[k]`.

    `anchors` and `slots` are (n, 2) point arrays of equal length; `fixed` holds
    segments that do not move but still count towards crossings.
    """
    a = np.asarray(anchors, dtype=float).reshape(-1, 2)
    s = np.asarray(slots, dtype=float).reshape(-1, 2)
    if len(a) != len(s):
        raise ValueError(f"Expected as many anchors as slots, got {len(a)} and {len(s)}.")
    f = as_segments(fixed) if fixed is not None else np.empty((0, 4))
    n = len(a)
    order = list(range(n))
    segments = np.hstack([a, s]) if n else np.empty((0, 4))
    total = count_crossings(np.vstack([segments, f]))
    if n < 2:
        return CrossingResult(order=tuple(order), crossings=total, passes=0, converged=True)

    passes = 0
    converged = False
    while passes < max_passes:
        passes += 1
        improved = False
        for k in range(n - 1):
            others = np.vstack([np.delete(segments, [k, k + 1], axis=0), f])
            old_k, old_next = segments[k], segments[k + 1]
            new_k = np.concatenate([a[order[k + 1]], s[k]])
            new_next = np.concatenate([a[order[k]], s[k + 1]])
            before = (crossings_against(old_k, others) + crossings_against(old_next, others)
                      + crossings_against(old_k, old_next))
            after = (crossings_against(new_k, others) + crossings_against(new_next, others)
                     + crossings_against(new_k, new_next))
            if after < before:
                order[k], order[k + 1] = order[k + 1], order[k]
                segments[k], segments[k + 1] = new_k, new_next
                total += after - before
                improved = True
        if not improved:
            converged = True
            break

    logger.debug(f"Crossing reduction over {n} slot(s): {total} crossing(s) after {passes} pass(es), converged={converged}.")
    return CrossingResult(order=tuple(order), crossings=int(total), passes=passes, converged=converged)
