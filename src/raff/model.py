from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Callable, Optional, Sequence
from warnings import warn

import numpy as np

from .inputs import Observations, as_observations
from .util import numdiff_jacobian

ModelFunc = Callable[[np.ndarray, np.ndarray], float]
GradientFunc = Callable[[np.ndarray, np.ndarray], Any]


@dataclass(frozen=True)
class Model:
    """A model ``f(x, theta)`` plus an optional gradient ``g(x, theta) = d f / d theta``.

    ``x`` is a single domain point (1D array of length d) and ``theta`` the
    parameter vector. When ``gradient`` is None, Jacobians are obtained by
    finite differences (see ResidualModel).
    """

    name: str
    func: ModelFunc
    gradient: Optional[GradientFunc] = None
    n_params: Optional[int] = None

    # ---- constructor ----
    @staticmethod
    def from_function(
        func: ModelFunc,
        gradient: Optional[GradientFunc] = None,
        *,
        name: Optional[str] = None,
        n_params: Optional[int] = None,
    ) -> "Model":
        """Construct a Model from a plain ``f(x, theta)`` callable."""
        if not callable(func):
            raise TypeError("Model function must be callable.")
        if gradient is not None and not callable(gradient):
            raise TypeError("Gradient must be callable or None.")
        return Model(
            name=name or getattr(func, "__name__", "model"),
            func=func,
            gradient=gradient,
            n_params=None if n_params is None else int(n_params),
        )

    # ---- builders (pure; return new model) ----
    def with_gradient(self, gradient: Optional[GradientFunc]) -> "Model":
        """Return a new Model using ``gradient`` (None drops it)."""
        if gradient is not None and not callable(gradient):
            raise TypeError("Gradient must be callable or None.")
        return replace(self, gradient=gradient)

    def with_name(self, name: str) -> "Model":
        return replace(self, name=str(name))

    # ---- evaluation ----
    @property
    def has_gradient(self) -> bool:
        return self.gradient is not None

    def eval(self, x: Any, theta: Any) -> float:
        """Evaluate the model at a single domain point."""
        return float(self.func(np.asarray(x, dtype=float), np.asarray(theta, dtype=float)))

    def eval_many(self, x: Any, theta: Any) -> np.ndarray:
        """Evaluate the model at every row of ``x`` (m, d)."""
        x = np.asarray(x, dtype=float)
        if x.ndim == 1:
            x = x.reshape((-1, 1))
        theta = np.asarray(theta, dtype=float)
        return np.array([self.func(xi, theta) for xi in x], dtype=float)

    def grad(self, x: Any, theta: Any) -> np.ndarray:
        if self.gradient is None:
            raise TypeError(f"Model {self.name!r} has no gradient function.")
        g = np.asarray(
            self.gradient(np.asarray(x, dtype=float), np.asarray(theta, dtype=float)),
            dtype=float,
        )
        return g.reshape((-1,))


def as_model(model: Any, gradient: Optional[GradientFunc] = None) -> Model:
    """Coerce a callable (or Model) plus optional gradient into a Model."""
    if isinstance(model, Model):
        if gradient is None:
            return model
        if model.gradient is not None and model.gradient is not gradient:
            warn(
                f"Model {model.name!r} already has a gradient; the explicit "
                "gradient argument takes precedence.",
                UserWarning,
            )
        return model.with_gradient(gradient)
    return Model.from_function(model, gradient)


@dataclass(frozen=True)
class ResidualModel:
    """Residuals ``r_i(theta) = f(x_i, theta) - y_i`` over a fixed observation set.

    Jacobian rows come from the model's gradient when available; otherwise
    from central differences with per-parameter step
    ``fd_step * (|theta_j| + 1)``.
    """

    model: Model
    observations: Observations
    fd_step: float = 1e-6

    @staticmethod
    def build(
        model: Any,
        data: Any,
        gradient: Optional[GradientFunc] = None,
        *,
        fd_step: float = 1e-6,
    ) -> "ResidualModel":
        return ResidualModel(
            model=as_model(model, gradient),
            observations=as_observations(data),
            fd_step=float(fd_step),
        )

    @property
    def m(self) -> int:
        return self.observations.m

    def _rows(self, rows: Optional[Sequence[int]]) -> np.ndarray:
        if rows is None:
            return np.arange(self.m)
        return np.asarray(rows, dtype=int).reshape((-1,))

    def residuals(self, theta: Any, rows: Optional[Sequence[int]] = None) -> np.ndarray:
        idx = self._rows(rows)
        theta = np.asarray(theta, dtype=float)
        x = self.observations.x
        y = self.observations.y
        r = np.empty(idx.shape[0], dtype=float)
        for k, i in enumerate(idx):
            r[k] = self.model.func(x[i], theta) - y[i]
        return r

    def jacobian(self, theta: Any, rows: Optional[Sequence[int]] = None) -> np.ndarray:
        idx = self._rows(rows)
        theta = np.asarray(theta, dtype=float).reshape((-1,))

        if self.model.gradient is not None:
            x = self.observations.x
            J = np.empty((idx.shape[0], theta.shape[0]), dtype=float)
            for k, i in enumerate(idx):
                g = self.model.grad(x[i], theta)
                if g.shape != theta.shape:
                    raise ValueError(
                        f"Gradient of {self.model.name!r} has length {g.shape[0]}, "
                        f"expected {theta.shape[0]}."
                    )
                J[k, :] = g
            return J

        return numdiff_jacobian(
            lambda t: self.residuals(t, idx), theta, step=self.fd_step
        )
