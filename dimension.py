"""Largest dissociated subset of a finite set, via collision cuts.

The dissociation dimension of S is the largest |T| over dissociated T within S,
i.e. the smallest bound d accepted by `basis.extract_basis`.

Method:
- Binary vars x_i indicate inclusion of the i-th element. Objective: maximize sum x_i.
- When a candidate T has a relation with plus-set A and minus-set B, we add the cut
  sum_{i in A u B} x_i <= |A| + |B| - 1. Every superset of A u B is non-dissociated,
  so the cut excludes that collision without removing any valid solution.
- Collision oracle: exact meet-in-the-middle over coefficients in {-1,0,1}.

Backends: CBC (default), CP-SAT, MaxSAT, a race of several, or `exhaustive`
(pure Python search in decreasing size order, no solver dependency). Every
backend returns the cuts it learned; together they rule out every selection
larger than the result, which is what `proofs.prove_bound` certifies.
"""

from __future__ import annotations

import concurrent.futures
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from backends import (
    BackendNotAvailable,
    BackendSession,
    BackendSpec,
    CPSAT_AVAILABLE,
    MAXSAT_AVAILABLE,
    ORTOOLS_LINEAR_AVAILABLE,
    check_cut,
    create_backend_session,
)
from dissociation import Relation, find_relation, make_executor
from groups import AbelianGroup, Collection, combinations_of, ordered

CollisionOracle = Callable[[Sequence[Any], AbelianGroup], Optional[Relation]]


@dataclass
class SolveResult:
    size: int
    solution: Collection
    cuts: List[List[int]] = field(default_factory=list)  # 1-based element indices
    runtime: float = 0.0
    backend: str = "exhaustive"


def default_race_backends() -> List[str]:
    """Prefer CP-SAT and MaxSAT if available, then CBC, then exhaustive search."""
    return [
        name
        for name, available in [
            ("cpsat", CPSAT_AVAILABLE),
            ("maxsat", MAXSAT_AVAILABLE),
            ("cbc", ORTOOLS_LINEAR_AVAILABLE),
            ("exhaustive", True),
        ]
        if available
    ]


def relation_cut(relation: Relation, items: Sequence[Any]) -> List[int]:
    """1-based indices of the relation's support within items."""
    index = {a: i for i, a in enumerate(items, start=1)}
    return sorted(index[a] for a in relation.support)


def _report_collision(relation: Relation) -> None:
    print(f"[dimension] collision plus={ordered(relation.plus)} minus={ordered(relation.minus)}")


def _solve_exhaustive(
    items: Sequence[Any],
    group: AbelianGroup,
    verbose: bool,
    collision_oracle: CollisionOracle,
    cuts: List[List[int]],
    min_size: int = 0,
) -> Optional[SolveResult]:
    """Scan sub-collections from largest to smallest, skipping any that contains a cut.

    Each collision found becomes a cut, so on return every skipped or rejected
    candidate is covered by `cuts`. With min_size > 0 only size min_size is
    scanned: dissociation is inherited by subsets, so that size decides feasibility.
    """
    t0 = time.perf_counter()
    index = {a: i for i, a in enumerate(items, start=1)}
    blocked = [frozenset(cut) for cut in cuts]
    sizes = [min_size] if min_size > 0 else range(len(items), -1, -1)
    for k in sizes:
        for T in combinations_of(items, k):
            chosen = frozenset(index[a] for a in T)
            if any(b <= chosen for b in blocked):
                continue
            relation = collision_oracle(ordered(T), group)
            if relation is None:
                return SolveResult(
                    size=k, solution=T, cuts=cuts, runtime=time.perf_counter() - t0
                )
            if verbose:
                _report_collision(relation)
            cut = relation_cut(relation, items)
            cuts.append(cut)
            blocked.append(frozenset(cut))
    return None


def _solve_single_backend(
    S: Iterable[Any],
    group: AbelianGroup,
    backend: str,
    threads: int,
    verbose: bool,
    collision_oracle: CollisionOracle,
    static_cuts: Optional[List[List[int]]],
    min_size: int = 0,
) -> Optional[SolveResult]:
    items = ordered(S)
    n = len(items)
    # Cuts mentioning indices beyond this set belong to a larger instance.
    cuts = [list(cut) for cut in (static_cuts or []) if all(1 <= i <= n for i in cut)]
    for cut in cuts:
        check_cut(cut, n)
    if backend == "exhaustive":
        return _solve_exhaustive(items, group, verbose, collision_oracle, cuts, min_size)

    spec = BackendSpec(n=n, static_cuts=list(cuts), min_size=min_size)
    t0 = time.perf_counter()
    session: Optional[BackendSession] = None
    try:
        session = create_backend_session(backend, spec, threads)
        while True:
            sol = session.solve()
            if sol is None:
                return None
            chosen = [items[i - 1] for i in sol]
            relation = collision_oracle(chosen, group)
            if relation is None:
                return SolveResult(
                    size=len(chosen),
                    solution=frozenset(chosen),
                    cuts=cuts,
                    runtime=time.perf_counter() - t0,
                    backend=backend,
                )
            if verbose:
                _report_collision(relation)
            cut = relation_cut(relation, items)
            session.add_cut(cut)
            cuts.append(cut)
    except BackendNotAvailable as exc:
        raise RuntimeError(str(exc)) from exc
    finally:
        if session is not None:
            session.close()


def _race_worker(backend_name: str, kwargs: Dict[str, Any]) -> Optional[SolveResult]:
    return _solve_single_backend(backend=backend_name, **kwargs)


def race_solve(
    backend_names: Sequence[str],
    runner_overrides: Optional[Dict[str, Callable[[], Optional[SolveResult]]]] = None,
    **kwargs: Any,
) -> Optional[SolveResult]:
    """First result among several backends solving the same instance.

    Backends run in a spawn process pool; runner_overrides (zero-argument
    callables keyed by backend name, usually closures) force a thread pool.
    A backend that raises drops out of the race.
    """
    names = list(backend_names)
    if not names:
        raise ValueError("race requires at least one backend")
    overrides = runner_overrides or {}

    failures: Dict[str, BaseException] = {}
    with make_executor("thread" if overrides else "process", len(names)) as ex:
        pending = {
            (
                ex.submit(overrides[name])
                if name in overrides
                else ex.submit(_race_worker, name, kwargs)
            ): name
            for name in names
        }
        while pending:
            done, _ = concurrent.futures.wait(
                pending, return_when=concurrent.futures.FIRST_COMPLETED
            )
            for fut in done:
                name = pending.pop(fut)
                exc = fut.exception()
                if exc is not None:
                    failures[name] = exc
                    continue
                for other in pending:
                    other.cancel()
                return fut.result()

    msg = "; ".join(f"{name}: {err}" for name, err in failures.items())
    raise RuntimeError(f"all race backends failed: {msg}")


def max_dissociated_subset(
    S: Iterable[Any],
    group: AbelianGroup,
    backend: str = "cbc",
    threads: int = 8,
    verbose: bool = False,
    collision_oracle: CollisionOracle = find_relation,
    static_cuts: Optional[List[List[int]]] = None,
    race_backends: Optional[Sequence[str]] = None,
    _runner_overrides: Optional[Dict[str, Callable[[], Optional[SolveResult]]]] = None,
) -> SolveResult:
    """A maximum-cardinality dissociated subset of S and the cuts that certify it.

    collision_oracle: callable returning a Relation or None on a candidate set.
    static_cuts: cuts over 1-based indices of ordered(S) applied before solving.
    backend: cbc, cpsat, maxsat, exhaustive, or race (first of race_backends to finish).
    """
    items = ordered(S)
    kwargs = dict(
        S=items,
        group=group,
        threads=threads,
        verbose=verbose,
        collision_oracle=collision_oracle,
        static_cuts=static_cuts,
    )
    if backend.lower() == "race":
        names = list(race_backends) if race_backends else default_race_backends()
        res = race_solve(names, runner_overrides=_runner_overrides, **kwargs)
    else:
        res = _solve_single_backend(backend=backend.lower(), **kwargs)
    if res is None:  # pragma: no cover - the empty set is always dissociated
        raise RuntimeError("no dissociated subset found; the empty set should qualify")
    return res


def feasible_with_min_size(
    S: Iterable[Any],
    min_size: int,
    group: AbelianGroup,
    backend: str = "exhaustive",
    threads: int = 8,
    verbose: bool = False,
    collision_oracle: CollisionOracle = find_relation,
    additional_cuts: Optional[List[List[int]]] = None,
) -> Optional[Collection]:
    """A dissociated subset of S with at least min_size elements, or None."""
    items = ordered(S)
    if min_size <= 0:
        return frozenset()
    if min_size > len(items):
        return None
    res = _solve_single_backend(
        items,
        group,
        backend=backend.lower(),
        threads=threads,
        verbose=verbose,
        collision_oracle=collision_oracle,
        static_cuts=additional_cuts,
        min_size=min_size,
    )
    return res.solution if res is not None else None


def dissociation_dimension(S: Iterable[Any], group: AbelianGroup, **kwargs: Any) -> int:
    return max_dissociated_subset(S, group, **kwargs).size
