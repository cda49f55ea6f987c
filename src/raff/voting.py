"""Consensus voting over candidate LMLOVO solutions.

Trusted-point counts near the true inlier count lead to (almost) the same
parameters, while wrong counts scatter. Candidates are linked when their
relative parameter distance is at most ``vtol``; clusters are the connected
components of that graph, and the largest cluster wins.
"""
from __future__ import annotations

import logging
from typing import Sequence

import numpy as np
from scipy.sparse import csr_matrix
from scipy.sparse.csgraph import connected_components

from .results import RAFFOutput

logger = logging.getLogger(__name__)


def solution_distance(a: np.ndarray, b: np.ndarray) -> float:
    """``||a - b|| / max(1, ||a||, ||b||)``."""
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    scale = max(1.0, float(np.linalg.norm(a)), float(np.linalg.norm(b)))
    return float(np.linalg.norm(a - b)) / scale


def cluster_solutions(solutions: Sequence[np.ndarray], vtol: float = 1e-3) -> np.ndarray:
    """Label each solution with its cluster; labels follow order of first appearance."""
    S = np.asarray([np.asarray(s, dtype=float).reshape((-1,)) for s in solutions])
    k = int(S.shape[0])
    if k == 0:
        return np.empty((0,), dtype=int)

    norms = np.linalg.norm(S, axis=1)
    dist = np.linalg.norm(S[:, None, :] - S[None, :, :], axis=2)
    scale = np.maximum(1.0, np.maximum(norms[:, None], norms[None, :]))
    adjacency = csr_matrix(dist / scale <= float(vtol))

    _, raw = connected_components(adjacency, directed=False)

    # Renumber so cluster 0 holds the first candidate, 1 the next new one, ...
    remap: dict[int, int] = {}
    labels = np.empty(k, dtype=int)
    for i, lab in enumerate(raw):
        labels[i] = remap.setdefault(int(lab), len(remap))
    return labels


def vote(candidates: Sequence[RAFFOutput], vtol: float = 1e-3) -> RAFFOutput:
    """Pick the representative of the majority cluster.

    Cluster ranking: more members first, then smaller best ``f``.
    Representative: successful runs first, then the largest ``p`` (the fit
    that trusts the most observations), then the smallest ``f``.
    """
    candidates = list(candidates)
    if not candidates:
        return RAFFOutput.null()

    labels = cluster_solutions([c.solution for c in candidates], vtol)
    nclusters = int(labels.max()) + 1

    sizes = np.bincount(labels, minlength=nclusters)
    best_f = np.full(nclusters, np.inf)
    for c, lab in zip(candidates, labels):
        best_f[lab] = min(best_f[lab], c.f)

    winner = min(range(nclusters), key=lambda lab: (-int(sizes[lab]), best_f[lab], lab))
    members = [i for i, lab in enumerate(labels) if lab == winner]
    chosen = min(
        members,
        key=lambda i: (not candidates[i].success, -candidates[i].p, candidates[i].f, i),
    )

    logger.debug(
        "Voting: %d candidates in %d clusters; majority cluster has %d members",
        len(candidates),
        nclusters,
        int(sizes[winner]),
    )
    return candidates[chosen]
