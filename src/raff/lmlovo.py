"""Levenberg-Marquardt for the Lowest Order-Value Optimization problem.

Minimizes the sum of the ``p`` smallest squared residuals. The trusted set is
re-ranked at every trial point, so a step is accepted only if it decreases the
LOVO value under the selection at the *new* point. Rejected steps increase the
damping and are retried from the same iterate.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

import numpy as np
import scipy.linalg

from .lovo import complement, lovo_value
from .model import GradientFunc, ResidualModel
from .results import FitResult, Termination
from .util import as_vector

logger = logging.getLogger(__name__)


class InvalidInputError(ValueError):
    """Raised when LMLOVO is called with arguments violating its contract."""


def _damped_step(G: np.ndarray, g: np.ndarray, lam: float) -> Optional[np.ndarray]:
    """Solve ``(G + lam I) d = -g``; None if no finite solution is available.

    For finite ``G`` and ``lam > 0`` the matrix is positive definite and the
    Cholesky solve applies. The least-squares fallback only covers a ``G``
    whose entries overflowed to inf or nan.
    """
    A = G + lam * np.eye(G.shape[0])
    try:
        c, low = scipy.linalg.cho_factor(A, check_finite=False)
        d = scipy.linalg.cho_solve((c, low), -g, check_finite=False)
    except (np.linalg.LinAlgError, ValueError):
        try:
            d = scipy.linalg.lstsq(A, -g)[0]
        except (np.linalg.LinAlgError, ValueError):
            return None
    if not np.all(np.isfinite(d)):
        return None
    return d


def _trial(rm: ResidualModel, theta: np.ndarray, p: int):
    """Residuals, active set and LOVO value at a trial point (None if unusable)."""
    try:
        with np.errstate(over="ignore", invalid="ignore", divide="ignore"):
            r = rm.residuals(theta)
    except ArithmeticError as e:
        logger.debug("Model evaluation failed at trial point: %s", e)
        return None
    active, f = lovo_value(r, p)
    if not np.isfinite(f):
        return None
    return r, active, f


def lmlovo(
    model: Any,
    theta0: Any,
    data: Any,
    n: int,
    p: int,
    *,
    gradient: Optional[GradientFunc] = None,
    eps: float = 1e-6,
    maxiter: int = 400,
    lambda0: float = 1.0,
    lambda_up: float = 2.0,
    lambda_down: float = 2.0,
    lambda_max: float = 1e16,
    xtol: float = 1e-12,
    fd_step: float = 1e-6,
) -> FitResult:
    """Fit ``model`` to the ``p`` best-explained observations of ``data``.

    Parameters
    ----------
    model:
        ``f(x, theta)`` callable or a Model (which may carry a gradient).
    theta0:
        Initial guess, length ``n``. Never modified.
    data:
        ``m x (d+1)`` table, ``(x, y)`` tuple or Observations.
    n:
        Number of parameters.
    p:
        Number of trusted points, ``0 <= p <= m``.
    gradient:
        Optional ``g(x, theta)`` returning ``d f / d theta``. Without one, the
        Jacobian is approximated by central differences with step
        ``fd_step * (|theta_j| + 1)``.
    eps:
        Convergence tolerance on ``||J^T r||_2`` over the trusted set.
    maxiter:
        Cap on accepted steps.
    lambda0, lambda_up, lambda_down, lambda_max:
        Initial damping, growth factor on rejection, shrink factor on
        acceptance, and the damping level at which the run gives up.
    xtol:
        Relative step size regarded as negligible.

    Raises
    ------
    InvalidInputError
        If ``n <= 0``, ``len(theta0) != n``, ``theta0`` is not finite, or
        ``p`` is outside ``[0, m]``.
    """
    n = int(n)
    p = int(p)
    if n <= 0:
        raise InvalidInputError(f"Dimension n={n} should be positive.")
    try:
        theta = as_vector(theta0, n, name="theta0")
    except ValueError as e:
        raise InvalidInputError(str(e)) from e
    if not np.all(np.isfinite(theta)):
        raise InvalidInputError("theta0 must be finite.")
    if not (lambda_up > 1.0 and lambda_down >= 1.0 and lambda0 > 0.0):
        raise InvalidInputError(
            "Damping factors require lambda0 > 0, lambda_up > 1 and lambda_down >= 1."
        )
    if maxiter < 0:
        raise InvalidInputError(f"maxiter={maxiter} must be nonnegative.")

    rm = ResidualModel.build(model, data, gradient, fd_step=fd_step)
    m = rm.m
    if p < 0 or p > m:
        raise InvalidInputError(
            f"Number of trusted points p={p} must satisfy 0 <= p <= {m}."
        )

    if p == 0:
        return FitResult(
            status=1,
            solution=theta,
            iter=0,
            p=0,
            f=0.0,
            outliers=np.arange(m),
            termination=Termination.TRIVIAL,
        )

    with np.errstate(over="ignore", invalid="ignore", divide="ignore"):
        r = rm.residuals(theta)
    active, f = lovo_value(r, p)
    if not np.isfinite(f):
        logger.debug("LMLOVO p=%d: objective not finite at the initial guess", p)
        return FitResult(
            status=0,
            solution=theta,
            iter=0,
            p=p,
            f=float("inf"),
            outliers=complement(active, m),
            termination=Termination.NO_IMPROVEMENT,
        )

    lam = float(lambda0)
    k = 0
    termination = Termination.MAX_ITERATIONS

    while True:
        J = rm.jacobian(theta, active)
        ra = r[active]
        g = J.T @ ra
        ngrad = float(np.linalg.norm(g))

        logger.debug(
            "LMLOVO p=%d iter=%d f=%.6e |g|=%.3e lambda=%.3e", p, k, f, ngrad, lam
        )

        if ngrad < eps:
            termination = Termination.CONVERGED
            break
        if k >= maxiter:
            termination = Termination.MAX_ITERATIONS
            break
        if not np.all(np.isfinite(J)):
            termination = Termination.NO_IMPROVEMENT
            break

        G = J.T @ J
        accepted = None
        while lam <= lambda_max:
            d = _damped_step(G, g, lam)
            if d is not None:
                trial = _trial(rm, theta + d, p)
                if trial is not None and trial[2] < f:
                    accepted = (d, trial)
                    break
            lam *= lambda_up

        if accepted is None:
            termination = Termination.NO_IMPROVEMENT
            break

        d, (r, active, f) = accepted
        theta = theta + d
        lam /= lambda_down
        k += 1

        if np.linalg.norm(d) <= xtol * (np.linalg.norm(theta) + xtol):
            termination = Termination.CONVERGED
            break

    status = 1 if termination is Termination.CONVERGED else 0
    logger.debug(
        "LMLOVO p=%d finished: %s after %d iterations, f=%.6e",
        p,
        termination.value,
        k,
        f,
    )
    return FitResult(
        status=status,
        solution=theta,
        iter=k,
        p=p,
        f=f,
        outliers=complement(active, m),
        termination=termination,
    )
