from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np


def _readonly(a: np.ndarray) -> np.ndarray:
    a = np.array(a, dtype=float, copy=True)
    a.setflags(write=False)
    return a


@dataclass(frozen=True)
class Observations:
    """Immutable observation set: domain points ``x`` (m, d) and values ``y`` (m,).

    Row order is kept as given; it is the order used for tie-breaking when
    ranking residuals.
    """

    x: np.ndarray
    y: np.ndarray

    def __post_init__(self) -> None:
        x = np.asarray(self.x, dtype=float)
        y = np.asarray(self.y, dtype=float).reshape((-1,))
        if x.ndim == 1:
            x = x.reshape((-1, 1))
        if x.ndim != 2:
            raise ValueError(f"x must be 1D or 2D; got shape {x.shape}.")
        if x.shape[0] != y.shape[0]:
            raise ValueError(
                f"x has {x.shape[0]} rows but y has {y.shape[0]} values."
            )
        object.__setattr__(self, "x", _readonly(x))
        object.__setattr__(self, "y", _readonly(y))

    @staticmethod
    def from_table(data: Any) -> "Observations":
        """Split an ``m x (d+1)`` table: first d columns are x, last column is y."""
        arr = np.asarray(data, dtype=float)
        if arr.ndim != 2:
            raise ValueError(
                f"Data table must be 2D (m x (d+1)); got shape {arr.shape}."
            )
        if arr.shape[1] < 2:
            raise ValueError(
                "Data table needs at least two columns (domain point and value)."
            )
        return Observations(x=arr[:, :-1], y=arr[:, -1])

    @staticmethod
    def from_xy(x: Any, y: Any) -> "Observations":
        return Observations(x=x, y=y)

    @property
    def m(self) -> int:
        return int(self.y.shape[0])

    @property
    def d(self) -> int:
        return int(self.x.shape[1])

    def to_table(self) -> np.ndarray:
        return np.column_stack([self.x, self.y])

    def __len__(self) -> int:
        return self.m


def as_observations(data: Any) -> Observations:
    """Normalize user input into Observations.

    Accepts an Observations instance, an ``(x, y)`` tuple, or a 2D table whose
    last column holds the observed values.
    """
    if isinstance(data, Observations):
        return data
    if isinstance(data, tuple):
        if len(data) != 2:
            raise TypeError("Tuple data must be (x, y).")
        x, y = data
        return Observations.from_xy(x, y)
    return Observations.from_table(data)

