"""Order-value selection of trusted points.

The LOVO objective at ``theta`` is the sum of the ``p`` smallest squared
residuals. The trusted (active) set is chosen with an order-statistic
partition, and ties at the ``p``-th value go to the smaller row index so the
same residuals always give the same set.
"""
from __future__ import annotations

from typing import Tuple

import numpy as np


def _squared(r: np.ndarray) -> np.ndarray:
    sq = np.square(np.asarray(r, dtype=float).reshape((-1,)))
    # NaN/inf residuals are trusted last.
    sq[~np.isfinite(sq)] = np.inf
    return sq


def select_trusted(r: np.ndarray, p: int) -> np.ndarray:
    """Return the indices of the ``p`` smallest squared residuals.

    Indices are ordered by ``(r_i**2, i)``.
    """
    sq = _squared(r)
    m = int(sq.shape[0])
    p = int(p)
    if p < 0 or p > m:
        raise ValueError(f"Number of trusted points p={p} must satisfy 0 <= p <= {m}.")
    if p == 0:
        return np.empty((0,), dtype=int)

    kth = np.partition(sq, p - 1)[p - 1]
    below = np.flatnonzero(sq < kth)
    # Fill the remaining slots from the boundary value, lowest index first.
    tied = np.flatnonzero(sq == kth)[: p - below.shape[0]]
    active = np.concatenate([below, tied])

    order = np.lexsort((active, sq[active]))
    return active[order]


def lovo_value(r: np.ndarray, p: int) -> Tuple[np.ndarray, float]:
    """Return ``(active, f)`` where f is the sum of squares over the active set."""
    active = select_trusted(r, p)
    r = np.asarray(r, dtype=float).reshape((-1,))
    f = float(np.sum(np.square(r[active]))) if active.size else 0.0
    return active, f


def complement(active: np.ndarray, m: int) -> np.ndarray:
    """Ascending indices in ``0..m-1`` not in ``active``."""
    mask = np.ones(int(m), dtype=bool)
    mask[np.asarray(active, dtype=int)] = False
    return np.flatnonzero(mask)
