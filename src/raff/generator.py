"""Random test problems: exact model values, Gaussian noise and injected outliers."""
from __future__ import annotations

from typing import Any, Optional, Tuple

import numpy as np

from .model import as_model


def get_unique_random_points(
    npoints: int, npp: int, rng: Optional[np.random.Generator] = None
) -> np.ndarray:
    """Choose ``min(npp, npoints)`` distinct indices from ``0..npoints-1``.

    Returns them in ascending order; non-positive arguments give an empty array.
    """
    npoints = int(npoints)
    npp = int(npp)
    if npoints <= 0 or npp <= 0:
        return np.empty((0,), dtype=int)
    if rng is None:
        rng = np.random.default_rng()
    return np.sort(rng.choice(npoints, size=min(npp, npoints), replace=False))


def generate_noisy_data(
    model: Any,
    n: int,
    npoints: int,
    p: int,
    *,
    x_min: float = -10.0,
    x_max: float = 10.0,
    theta_sol: Optional[Any] = None,
    std: float = 200.0,
    out_times: float = 7.0,
    rng: Optional[np.random.Generator] = None,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Generate a one-dimensional fitting problem with ``npoints - p`` outliers.

    Points are evenly spaced on ``[x_min, x_max]``. Trusted points get
    ``N(0, std)`` noise; outliers are the exact model value shifted by
    ``±out_times * std``.

    Returns
    -------
    data : ndarray, shape (npoints, 3)
        Columns: x, observed y, injected outlier shift (0 for trusted points).
    theta_sol : ndarray, shape (n,)
        Parameters used to generate the data (``10 * N(0, 1)`` if not given).
    outliers : ndarray
        Ascending indices of the outliers.
    """
    if x_min > x_max:
        raise ValueError("Invalid interval for random number generation: x_min > x_max.")
    n = int(n)
    npoints = int(npoints)
    if npoints < 2:
        raise ValueError("At least two points are needed.")
    if rng is None:
        rng = np.random.default_rng()
    f = as_model(model)

    if theta_sol is None:
        theta_sol = 10.0 * rng.standard_normal(n)
    theta_sol = np.asarray(theta_sol, dtype=float).reshape((-1,))
    if theta_sol.shape[0] != n:
        raise ValueError(f"theta_sol has length {theta_sol.shape[0]}, expected {n}.")

    x = np.linspace(x_min, x_max, npoints)
    outliers = get_unique_random_points(npoints, npoints - int(p), rng)

    data = np.empty((npoints, 3), dtype=float)
    noise = rng.standard_normal(npoints) * std
    for k in range(npoints):
        y = f.eval(x[k : k + 1], theta_sol)
        shift = 0.0
        if k in outliers:
            shift = out_times * std * (1.0 if rng.standard_normal() >= 0.0 else -1.0)
        else:
            y += noise[k]
        data[k, 0] = x[k]
        data[k, 1] = y + shift
        data[k, 2] = shift

    return data, theta_sol, outliers
