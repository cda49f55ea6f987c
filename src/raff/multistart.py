"""RAFF: multistart LMLOVO over a range of trusted-point counts, plus voting.

Every ``(p, start)`` pair is an independent LMLOVO run over the same read-only
observations. Runs may execute on a thread pool; each gets its own random
stream (spawned from one SeedSequence by task position), so the outcome for a
given seed does not depend on scheduling. Voting starts only once every run
has finished.
"""
from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from numbers import Real
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import numpy as np

from .inputs import Observations, as_observations
from .lmlovo import InvalidInputError, lmlovo
from .model import GradientFunc, as_model
from .results import FitResult, RAFFOutput, Termination
from .util import as_vector
from .voting import vote

logger = logging.getLogger(__name__)

Sampler = Callable[[np.random.Generator, np.ndarray], np.ndarray]
FTrusted = Union[float, Tuple[float, float]]

DEFAULT_FTRUSTED_LOWER = 0.5


def perturbed_guess(rng: np.random.Generator, initguess: np.ndarray) -> np.ndarray:
    """Normal draw centred on the initial guess with scale ``1 + |initguess|``."""
    initguess = np.asarray(initguess, dtype=float)
    return rng.normal(loc=initguess, scale=1.0 + np.abs(initguess))


def trusted_range(
    m: int,
    noutliers: Optional[int] = None,
    ftrusted: Optional[FTrusted] = None,
) -> Optional[Tuple[int, int]]:
    """Closed range ``(lo, hi)`` of trusted-point counts to try.

    Returns None for an out-of-range ``noutliers``/``ftrusted``. Passing both
    is a usage error and raises ValueError.
    """
    m = int(m)
    if noutliers is not None and ftrusted is not None:
        raise ValueError("Pass at most one of noutliers= and ftrusted=.")

    if noutliers is not None:
        k = int(noutliers)
        if k < 0 or k > m:
            logger.error("Bad value for noutliers: %d (need 0 <= noutliers <= %d).", k, m)
            return None
        return m - k, m - k

    if ftrusted is None:
        return int(round(DEFAULT_FTRUSTED_LOWER * m)), m

    if isinstance(ftrusted, Real):
        c = float(ftrusted)
        if not (0.0 < c <= 1.0):
            logger.error("Bad value for ftrusted: %r (need 0 < ftrusted <= 1).", ftrusted)
            return None
        p = int(round(c * m))
        return p, p

    try:
        lo_f, hi_f = (float(v) for v in ftrusted)
    except (TypeError, ValueError) as e:
        raise TypeError(
            "ftrusted must be a fraction or a (lower, upper) pair of fractions."
        ) from e
    if not (0.0 <= lo_f <= hi_f <= 1.0):
        logger.error(
            "Bad value for ftrusted: %r (need 0 <= lower <= upper <= 1).", ftrusted
        )
        return None
    return int(round(lo_f * m)), int(round(hi_f * m))


@dataclass(frozen=True)
class _Task:
    index: int
    p: int
    start: int
    seed: np.random.SeedSequence


def _get_n_workers(n_workers: int, n_tasks: int) -> int:
    if n_workers > 0:
        workers = n_workers
    else:
        workers = os.cpu_count() or 4
    return max(1, min(workers, n_tasks))


def _run_task(
    task: _Task,
    *,
    model: Any,
    observations: Observations,
    n: int,
    initguess: np.ndarray,
    sampler: Sampler,
    options: Dict[str, Any],
) -> FitResult:
    if task.start == 0:
        theta0 = initguess
    else:
        theta0 = as_vector(sampler(np.random.default_rng(task.seed), initguess), n)
    try:
        return lmlovo(model, theta0, observations, n, task.p, **options)
    except InvalidInputError:
        raise
    except Exception as e:
        # Soft fail: a broken run is just a non-competitive candidate.
        logger.warning("LMLOVO run p=%d start=%d failed: %s", task.p, task.start, e)
        return FitResult(
            status=0,
            solution=theta0,
            iter=0,
            p=task.p,
            f=float("inf"),
            outliers=np.arange(observations.m)[task.p :],
            termination=Termination.NO_IMPROVEMENT,
        )


def _run_tasks(
    run: Callable[[_Task], FitResult], tasks: List[_Task], n_workers: int
) -> List[FitResult]:
    """Run every task; results come back in task order."""
    if n_workers == 1:
        return [run(t) for t in tasks]

    results: List[Optional[FitResult]] = [None] * len(tasks)
    with ThreadPoolExecutor(max_workers=n_workers) as executor:
        futures = {executor.submit(run, t): t.index for t in tasks}
        for future in as_completed(futures):
            results[futures[future]] = future.result()
    return [r for r in results if r is not None]


def _candidate_pool(results: List[FitResult]) -> List[FitResult]:
    """Successful runs, plus the best finite attempt for each p with no success."""
    pool: List[FitResult] = []
    fallback: Dict[int, FitResult] = {}
    succeeded = set()
    for r in results:
        if not (np.isfinite(r.f) and np.all(np.isfinite(r.solution))):
            continue
        if r.success:
            pool.append(r)
            succeeded.add(r.p)
        elif r.p not in fallback or r.f < fallback[r.p].f:
            fallback[r.p] = r
    pool.extend(r for p, r in sorted(fallback.items()) if p not in succeeded)
    return pool


def raff(
    model: Any,
    data: Any,
    n: int,
    *,
    gradient: Optional[GradientFunc] = None,
    maxms: int = 1,
    initguess: Any = None,
    eps: float = 1e-6,
    noutliers: Optional[int] = None,
    ftrusted: Optional[FTrusted] = None,
    seedms: int = 123456789,
    vtol: float = 1e-3,
    n_workers: int = 1,
    sampler: Optional[Sampler] = None,
    lmlovo_options: Optional[Dict[str, Any]] = None,
) -> RAFFOutput:
    """Robust fit of ``model`` to ``data`` when the number of outliers is unknown.

    Runs LMLOVO for every trusted-point count in the selected range and for
    ``maxms`` starting points each (the first is ``initguess``, default zeros;
    the others come from ``sampler(rng, initguess)``), then returns the
    solution chosen by consensus voting (see ``raff.voting.vote``).

    Trusted-point selection (at most one of):
    - ``noutliers=k``: exactly ``m - k`` trusted points.
    - ``ftrusted=c``: exactly ``round(c * m)`` trusted points, ``0 < c <= 1``.
    - ``ftrusted=(lo, hi)``: every count in ``round(lo*m)..round(hi*m)``.
    - neither: every count in ``round(0.5*m)..m``.

    An out-of-range ``noutliers``/``ftrusted`` gives ``RAFFOutput()`` (null
    output) instead of a fit, as does an empty candidate pool.

    ``lmlovo_options`` is forwarded to ``lmlovo`` (e.g. ``maxiter``,
    ``lambda_up``, ``fd_step``). ``n_workers`` > 1 runs the fits on a thread
    pool; 0 uses one worker per CPU.
    """
    obs = as_observations(data)
    m = obs.m
    n = int(n)
    if n <= 0:
        raise ValueError(f"Dimension n={n} should be positive.")
    maxms = int(maxms)
    if maxms < 1:
        raise ValueError(f"maxms={maxms} must be at least 1.")

    if initguess is None:
        initguess = np.zeros(n)
    else:
        initguess = as_vector(initguess, n, name="initguess")

    prange = trusted_range(m, noutliers=noutliers, ftrusted=ftrusted)
    if prange is None:
        return RAFFOutput.null()
    lo, hi = prange

    options = dict(lmlovo_options or {})
    options["eps"] = float(eps)
    fit_model = as_model(model, gradient)

    pairs = [(p, j) for p in range(lo, hi + 1) for j in range(maxms)]
    seeds = np.random.SeedSequence(seedms).spawn(len(pairs))
    tasks = [
        _Task(index=i, p=p, start=j, seed=s)
        for i, ((p, j), s) in enumerate(zip(pairs, seeds))
    ]
    workers = _get_n_workers(int(n_workers), len(tasks))
    logger.info(
        "RAFF: m=%d, trusted points %d..%d, %d start(s) each, %d task(s) on %d worker(s)",
        m,
        lo,
        hi,
        maxms,
        len(tasks),
        workers,
    )

    def run(task: _Task) -> FitResult:
        return _run_task(
            task,
            model=fit_model,
            observations=obs,
            n=n,
            initguess=initguess,
            sampler=sampler or perturbed_guess,
            options=options,
        )

    results = _run_tasks(run, tasks, workers)
    pool = _candidate_pool(results)
    if not pool:
        logger.error("RAFF: no usable LMLOVO solution was found.")
        return RAFFOutput.null()

    best = vote(pool, vtol=vtol)
    logger.info(
        "RAFF: selected p=%d with f=%.6e (%d candidates, %d successful)",
        best.p,
        best.f,
        len(pool),
        sum(1 for r in pool if r.success),
    )
    return best
