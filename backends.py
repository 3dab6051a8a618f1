"""Optimisation backends for the collision-cut search: CBC, CP-SAT and MaxSAT.

Elements of the ground set are numbered 1..n; x_i = 1 selects element i. A cut
is a list of indices that cannot all be selected (the support of a relation).
Every backend maximises the number of selected elements subject to the cuts and
an optional lower bound on the selection size.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

try:
    from ortools.linear_solver import pywraplp
except ImportError as exc:  # pragma: no cover - import guard
    pywraplp = None  # type: ignore[assignment]
    _ORTOOLS_LINEAR_ERROR = exc
else:  # pragma: no cover - import guard
    _ORTOOLS_LINEAR_ERROR = None

try:
    from ortools.sat.python import cp_model
except ImportError as exc:  # pragma: no cover - import guard
    cp_model = None  # type: ignore[assignment]
    _ORTOOLS_CP_ERROR = exc
else:  # pragma: no cover - import guard
    _ORTOOLS_CP_ERROR = None

try:
    from pysat.card import CardEnc, EncType
    from pysat.examples.rc2 import RC2
    from pysat.formula import WCNF
except ImportError as exc:  # pragma: no cover - import guard
    RC2 = None  # type: ignore[assignment]
    WCNF = None  # type: ignore[assignment]
    CardEnc = None  # type: ignore[assignment]
    EncType = None  # type: ignore[assignment]
    _PYSAT_ERROR = exc
else:  # pragma: no cover - import guard
    _PYSAT_ERROR = None


ORTOOLS_LINEAR_AVAILABLE = pywraplp is not None
CPSAT_AVAILABLE = cp_model is not None
MAXSAT_AVAILABLE = RC2 is not None and CardEnc is not None


class BackendNotAvailable(RuntimeError):
    """Raised when the requested backend is missing a dependency or unavailable."""


@dataclass
class BackendSpec:
    """Selection model shared by all backends: n indices, initial cuts, minimum size."""

    n: int
    static_cuts: List[List[int]] = field(default_factory=list)
    min_size: int = 0


class BackendSession(Protocol):
    def solve(self) -> Optional[List[int]]:
        """Selected indices of an optimal selection, or None if infeasible."""

    def add_cut(self, cut: Sequence[int]) -> None:
        """Forbid selecting every index of cut at once."""

    def close(self) -> None:
        """Release resources (optional)."""


def _require(available: bool, backend: str, package: str, error: Optional[Exception]) -> None:
    if not available:
        raise BackendNotAvailable(
            f"{backend} backend requires {package}; install with `pip install {package}`."
        ) from error


def check_cut(cut: Sequence[int], n: int) -> None:
    """Reject cuts that are empty or index outside 1..n."""
    if not cut:
        raise ValueError("empty cut would make every selection infeasible")
    bad = [i for i in cut if not 1 <= i <= n]
    if bad:
        raise ValueError(f"cut indices {bad} outside 1..{n}")


def at_least_clauses(n: int, k: int) -> Tuple[List[List[int]], int]:
    """CNF for x_1 + ... + x_n >= k as a sequential counter.

    Returns (clauses, top variable id); auxiliary variables are numbered above n.
    """
    _require(CardEnc is not None, "Cardinality", "python-sat", _PYSAT_ERROR)
    if k <= 0:
        return [], n
    if k > n:
        return [[1], [-1]] if n else [[]], n
    card = CardEnc.atleast(
        lits=list(range(1, n + 1)), bound=k, top_id=n, encoding=EncType.seqcounter
    )
    return [list(cl) for cl in card.clauses], max(card.nv, n)


class CBCBackendSession:
    """Incremental MIP: one model, cuts appended as linear rows."""

    def __init__(self, spec: BackendSpec, threads: int):
        _require(pywraplp is not None, "CBC", "ortools", _ORTOOLS_LINEAR_ERROR)
        solver = pywraplp.Solver.CreateSolver("CBC")
        if solver is None:
            raise BackendNotAvailable("CBC solver unavailable")
        solver.SetNumThreads(threads)
        self._n = spec.n
        self._solver = solver
        self._x = [solver.BoolVar(f"x_{i}") for i in range(1, spec.n + 1)]
        size = solver.Sum(self._x)
        if spec.min_size > 0:
            solver.Add(size >= spec.min_size)
        solver.Maximize(size)
        for cut in spec.static_cuts:
            self.add_cut(cut)

    def add_cut(self, cut: Sequence[int]) -> None:
        check_cut(cut, self._n)
        row = self._solver.Constraint(-self._solver.infinity(), len(cut) - 1)
        for i in cut:
            row.SetCoefficient(self._x[i - 1], 1)

    def solve(self) -> Optional[List[int]]:
        status = self._solver.Solve()
        if status == pywraplp.Solver.INFEASIBLE:
            return None
        if status != pywraplp.Solver.OPTIMAL:
            raise RuntimeError(f"CBC failed with status {status}")
        return [i for i, var in enumerate(self._x, start=1) if var.solution_value() > 0.5]

    def close(self) -> None:
        return


class _RebuildingSession:
    """Keeps the cut list and rebuilds a fresh model for every solve."""

    def __init__(self, spec: BackendSpec, threads: int):
        self._spec = spec
        self._threads = threads
        self._cuts: List[List[int]] = []
        for cut in spec.static_cuts:
            self.add_cut(cut)

    def add_cut(self, cut: Sequence[int]) -> None:
        check_cut(cut, self._spec.n)
        self._cuts.append(list(cut))

    def close(self) -> None:
        return


class CPSATBackendSession(_RebuildingSession):
    def __init__(self, spec: BackendSpec, threads: int):
        _require(cp_model is not None, "CP-SAT", "ortools", _ORTOOLS_CP_ERROR)
        super().__init__(spec, threads)

    def solve(self) -> Optional[List[int]]:
        model = cp_model.CpModel()
        x: Dict[int, cp_model.IntVar] = {
            i: model.NewBoolVar(f"x_{i}") for i in range(1, self._spec.n + 1)
        }
        for cut in self._cuts:
            # At least one index of the cut stays unselected.
            model.AddBoolOr([x[i].Not() for i in cut])
        size = sum(x.values())
        if self._spec.min_size > 0:
            model.Add(size >= self._spec.min_size)
        model.Maximize(size)

        solver = cp_model.CpSolver()
        solver.parameters.num_search_workers = self._threads
        status = solver.Solve(model)
        if status == cp_model.INFEASIBLE:
            return None
        if status != cp_model.OPTIMAL:
            raise RuntimeError(f"CP-SAT failed with status {status}")
        return [i for i, var in x.items() if solver.Value(var)]


class MaxSATBackendSession(_RebuildingSession):
    """RC2 over hard cut clauses and one unit soft clause per index."""

    def __init__(self, spec: BackendSpec, threads: int):
        _require(MAXSAT_AVAILABLE, "MaxSAT", "python-sat", _PYSAT_ERROR)
        super().__init__(spec, threads)

    def solve(self) -> Optional[List[int]]:
        n = self._spec.n
        wcnf = WCNF()
        for cut in self._cuts:
            wcnf.append([-i for i in cut])
        for clause in at_least_clauses(n, self._spec.min_size)[0]:
            wcnf.append(clause)
        for i in range(1, n + 1):
            wcnf.append([i], weight=1)

        with RC2(wcnf) as rc2:
            model = rc2.compute()
        if model is None:
            return None
        return sorted(lit for lit in model if 0 < lit <= n)


_SESSIONS = {
    "cbc": CBCBackendSession,
    "cpsat": CPSATBackendSession,
    "cp-sat": CPSATBackendSession,
    "cp_sat": CPSATBackendSession,
    "maxsat": MaxSATBackendSession,
}


def create_backend_session(
    name: str, spec: BackendSpec, threads: int
) -> BackendSession:
    try:
        session_cls = _SESSIONS[name.lower()]
    except KeyError:
        raise ValueError(f"Unknown backend {name}") from None
    return session_cls(spec, threads)
