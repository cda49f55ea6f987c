from __future__ import annotations

import math
from typing import Any, Callable

import numpy as np


def numdiff_jacobian(
    residual: Callable[[np.ndarray], np.ndarray],
    theta: np.ndarray,
    *,
    step: float = 1e-6,
    r0: np.ndarray | None = None,
) -> np.ndarray:
    """Central-difference Jacobian of a residual vector: J_{i,j} = dr_i/dtheta_j.

    The step for parameter j is ``step * (|theta_j| + 1)``, i.e. relative for
    large parameters and absolute (``step``) near zero.
    Non-finite evaluations propagate into J; callers decide what to do with them.
    """
    theta = np.asarray(theta, dtype=float).reshape((-1,))
    npar = int(theta.shape[0])
    if r0 is None:
        r0 = np.asarray(residual(theta), dtype=float).reshape(-1)

    J = np.empty((r0.size, npar), dtype=float)
    rel = 1e-6 if not math.isfinite(step) or step <= 0.0 else float(step)

    for j in range(npar):
        eps = rel * (abs(theta[j]) + 1.0)

        t_plus = theta.copy()
        t_minus = theta.copy()
        t_plus[j] += eps
        t_minus[j] -= eps

        r_plus = np.asarray(residual(t_plus), dtype=float).reshape(-1)
        r_minus = np.asarray(residual(t_minus), dtype=float).reshape(-1)
        if r_plus.shape != r0.shape or r_minus.shape != r0.shape:
            raise ValueError("Residual function changed output size during differencing.")

        J[:, j] = (r_plus - r_minus) / (2.0 * eps)

    return J


def as_vector(theta: Any, n: int | None = None, *, name: str = "theta") -> np.ndarray:
    """Return a fresh 1D float copy of theta, optionally checking its length."""
    v = np.array(theta, dtype=float, copy=True).reshape((-1,))
    if n is not None and v.shape[0] != int(n):
        raise ValueError(f"{name} has length {v.shape[0]}, expected {int(n)}.")
    return v

