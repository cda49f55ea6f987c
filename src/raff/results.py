from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import numpy as np


class Termination(str, Enum):
    """Why an LMLOVO run stopped."""

    CONVERGED = "converged"
    MAX_ITERATIONS = "max_iterations"
    NO_IMPROVEMENT = "no_improvement"
    TRIVIAL = "trivial"  # p == 0, nothing to fit
    NONE = "none"  # null output


@dataclass(frozen=True, eq=False)
class RAFFOutput:
    """Result of one LMLOVO run, or the solution RAFF selected by voting.

    The field defaults are the null output ("no solution found"):
    ``RAFFOutput()`` and ``RAFFOutput(p=k)`` are null outputs.
    ``termination`` is informational and ignored by ``==``.
    """

    status: int = 0
    solution: Any = ()
    iter: int = -1
    p: int = 0
    f: float = float("inf")
    outliers: Any = ()
    termination: Termination = field(default=Termination.NONE)

    def __post_init__(self) -> None:
        if self.status not in (0, 1):
            raise ValueError(
                f"status must be 0 or 1, got {self.status!r}; "
                "the null output with p=k is RAFFOutput(p=k)."
            )
        sol = np.array(self.solution, dtype=float, copy=True).reshape((-1,))
        out = np.array(self.outliers, dtype=int, copy=True).reshape((-1,))
        sol.setflags(write=False)
        out.setflags(write=False)
        object.__setattr__(self, "solution", sol)
        object.__setattr__(self, "outliers", out)
        object.__setattr__(self, "status", int(self.status))
        object.__setattr__(self, "iter", int(self.iter))
        object.__setattr__(self, "p", int(self.p))
        object.__setattr__(self, "f", float(self.f))
        object.__setattr__(self, "termination", Termination(self.termination))

    @classmethod
    def null(cls, p: int = 0) -> "RAFFOutput":
        """The "no valid solution" sentinel, optionally carrying ``p``."""
        return cls(p=p)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RAFFOutput):
            return NotImplemented
        return (
            self.status == other.status
            and self.iter == other.iter
            and self.p == other.p
            and self.f == other.f
            and np.array_equal(self.solution, other.solution)
            and np.array_equal(self.outliers, other.outliers)
        )

    __hash__ = None  # type: ignore[assignment]

    @property
    def success(self) -> bool:
        return self.status == 1

    @property
    def is_null(self) -> bool:
        return self == RAFFOutput.null(self.p)

    @property
    def noutliers(self) -> int:
        return int(self.outliers.shape[0])

    def trusted(self, m: int) -> np.ndarray:
        """Ascending indices of the observations not flagged as outliers."""
        mask = np.ones(int(m), dtype=bool)
        mask[self.outliers] = False
        return np.flatnonzero(mask)

    def summary(self, digits: int = 6) -> str:
        """Return a human-readable summary string."""
        lines = [
            f"RAFFOutput(status={self.status}, termination={self.termination.value!r})"
        ]
        if self.solution.size:
            sol = ", ".join(f"{float(v):.{digits}g}" for v in self.solution)
            lines.append(f"  {'solution':>9s}: [{sol}]")
        else:
            lines.append(f"  {'solution':>9s}: []")
        lines.append(f"  {'f':>9s}: {self.f:.{digits}g}")
        lines.append(f"  {'p':>9s}: {self.p}")
        lines.append(f"  {'iter':>9s}: {self.iter}")
        lines.append(f"  {'outliers':>9s}: {self.outliers.tolist()}")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"RAFFOutput(status={self.status}, solution={self.solution.tolist()}, "
            f"iter={self.iter}, p={self.p}, f={self.f!r}, "
            f"outliers={self.outliers.tolist()})"
        )


# One LMLOVO run and the voted RAFF answer share one record type.
FitResult = RAFFOutput
