"""Extract a small spanning subset from a finite set via a maximal dissociated subset.

Given S and d such that every dissociated subset of S has at most d elements,
produce S' within S with |S'| <= d and S within span(S').

Method (the {-1,0,1} analogue of extracting a basis from a spanning set):
- Grow a dissociated S' greedily; it ends inclusion-maximal because
  non-dissociation is inherited by supersets. It need not be of maximum size,
  the size bound comes from d.
- For a in S - S', S' u {a} is not dissociated. Its disjoint witness t, u has a
  on exactly one side, say t, so a = prod(u) / prod(t - {a}) with both parts
  inside S', and `quotient_in_span` turns that into coefficients over S'.

Example commands:
  # Dissociation check, dimension, and extraction in Q^x
  python basis.py 2 3 6 --group mul --verbose
  # Bounded extraction over Z with a JSON certificate
  python basis.py 1 2 3 --group add --bound 2 --cert basis_123.json
  # Bound proof from collision cuts (CNF/DRAT if kissat is available)
  python basis.py 1 2 3 4 5 --backend cbc --prove-bound --cert out.json
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from certificates import save_certificate
from dimension import feasible_with_min_size, max_dissociated_subset
from dissociation import Relation, dissociation_witness, is_dissociated
from groups import AbelianGroup, Collection, as_collection, group_from_name, ordered, subsets
from proofs import prove_bound
from span import quotient_in_span, signed_combination, span

WitnessFn = Callable[[Iterable[Any], AbelianGroup], Optional[Relation]]


class PreconditionViolation(ValueError):
    """A dissociated subset of S is larger than the supplied bound d."""

    def __init__(self, bound: int, witness: Collection):
        self.bound = bound
        self.witness = witness
        super().__init__(
            f"dissociated subset of size {len(witness)} exceeds bound {bound}: {ordered(witness)}"
        )


class InvariantViolation(AssertionError):
    """The exchange step met a state the algorithm rules out; signals a bug."""


@dataclass
class ExtractionResult:
    basis: Collection
    # element of S -> coefficients over the basis reaching it
    coefficients: Dict[Any, Dict[Any, int]] = field(default_factory=dict)
    # element of S outside the basis -> the relation used to express it
    witnesses: Dict[Any, Relation] = field(default_factory=dict)
    runtime: float = 0.0


def maximal_dissociated_subset(
    S: Iterable[Any],
    group: AbelianGroup,
    order: Optional[Sequence[Any]] = None,
    witness_fn: WitnessFn = dissociation_witness,
) -> Collection:
    """Greedy inclusion-maximal dissociated subset of S, scanning in `order`."""
    base = frozenset(S)
    scan = [a for a in (order or ()) if a in base]
    # Elements missing from `order` are scanned last so the result stays maximal.
    listed = set(scan)
    scan += [a for a in ordered(base) if a not in listed]
    chosen: Collection = frozenset()
    for a in scan:
        if a in chosen:
            continue
        candidate = chosen | {a}
        if witness_fn(candidate, group) is None:
            chosen = candidate
    return chosen


def is_maximal_dissociated(T: Iterable[Any], S: Iterable[Any], group: AbelianGroup) -> bool:
    """T is dissociated, inside S, and no single element of S extends it."""
    T = frozenset(T)
    base = frozenset(S)
    if not T <= base or not is_dissociated(T, group):
        return False
    return all(not is_dissociated(T | {a}, group) for a in base - T)


def maximal_dissociated_subsets(S: Iterable[Any], group: AbelianGroup) -> List[Collection]:
    """Every inclusion-maximal dissociated subset of S, largest first.

    Exhaustive over the power set; a set whose proper superset is dissociated
    is always dominated by an already kept set, since supersets come first.
    """
    dissociated = [T for T in subsets(S) if is_dissociated(T, group)]
    dissociated.sort(key=len, reverse=True)
    kept: List[Collection] = []
    for T in dissociated:
        if not any(T < M for M in kept):
            kept.append(T)
    return kept


def exchange(
    a: Any,
    basis: Collection,
    group: AbelianGroup,
    witness_fn: WitnessFn = dissociation_witness,
) -> Tuple[Dict[Any, int], Optional[Relation]]:
    """Coefficients over `basis` reaching a, and the relation they came from.

    `basis` must be dissociated and maximal with respect to a.
    """
    if a in basis:
        coeffs = {b: 0 for b in basis}
        coeffs[a] = 1
        return coeffs, None

    relation = witness_fn(basis | {a}, group)
    if relation is None:
        raise InvariantViolation(
            f"{a!r} extends the dissociated set {ordered(basis)}; it was not maximal"
        )
    if a in relation.plus:
        t, u = relation.plus, relation.minus
    elif a in relation.minus:
        t, u = relation.minus, relation.plus
    else:
        raise InvariantViolation(
            f"witness {relation} for {a!r} lies inside the dissociated set {ordered(basis)}"
        )

    # prod(t) = prod(u) with a in t gives a = prod(u) / prod(t - {a}).
    rest = t - {a}
    if not (rest <= basis and u <= basis):
        raise InvariantViolation(f"witness {relation} leaves the basis for {a!r}")
    coeffs = {b: 0 for b in basis}
    coeffs.update(quotient_in_span(u, rest))
    return coeffs, relation


def find_oversized_dissociated(S: Iterable[Any], d: int, group: AbelianGroup) -> Optional[Collection]:
    """A dissociated subset of S with d + 1 elements, or None if the bound d holds."""
    return feasible_with_min_size(S, d + 1, group, backend="exhaustive")


def check_bound(
    S: Iterable[Any],
    d: int,
    group: AbelianGroup,
    backend: str = "exhaustive",
    threads: int = 8,
    verbose: bool = False,
) -> None:
    """Raise PreconditionViolation unless every dissociated subset of S has size <= d."""
    if backend == "exhaustive":
        witness = find_oversized_dissociated(S, d, group)
    else:
        res = max_dissociated_subset(S, group, backend=backend, threads=threads, verbose=verbose)
        witness = res.solution if res.size > d else None
    if witness is not None:
        raise PreconditionViolation(d, witness)


def extract_with_witnesses(
    S: Iterable[Any],
    d: int,
    group: AbelianGroup,
    check: bool = True,
    backend: str = "exhaustive",
    threads: int = 8,
    verbose: bool = False,
    order: Optional[Sequence[Any]] = None,
    witness_fn: WitnessFn = dissociation_witness,
) -> ExtractionResult:
    """Basis of S with size <= d plus, for every element, coefficients over it.

    check: verify the bound hypothesis first (exhaustive or with `backend`).
    Without the check the hypothesis is trusted, but a basis larger than d
    is still reported as PreconditionViolation.
    """
    if d < 0:
        raise ValueError(f"bound must be non-negative, got {d}")
    S = as_collection(S, group)
    t0 = time.perf_counter()
    if check:
        check_bound(S, d, group, backend=backend, threads=threads, verbose=verbose)

    basis = maximal_dissociated_subset(S, group, order=order, witness_fn=witness_fn)
    if verbose:
        print(f"[extract] maximal dissociated subset {ordered(basis)} (bound {d})")
    if len(basis) > d:
        raise PreconditionViolation(d, basis)

    result = ExtractionResult(basis=basis)
    for a in ordered(S):
        coeffs, relation = exchange(a, basis, group, witness_fn=witness_fn)
        result.coefficients[a] = coeffs
        if relation is not None:
            result.witnesses[a] = relation
            if verbose:
                print(
                    f"[exchange] {group.format(a)}: plus={ordered(relation.plus)} "
                    f"minus={ordered(relation.minus)}"
                )
    result.runtime = time.perf_counter() - t0
    return result


def extract_basis(
    S: Iterable[Any], d: int, group: AbelianGroup, check: bool = True, **kwargs: Any
) -> Collection:
    """S' within S with |S'| <= d and S within span(S')."""
    return extract_with_witnesses(S, d, group, check=check, **kwargs).basis


def verify_extraction(
    result: ExtractionResult, S: Iterable[Any], d: int, group: AbelianGroup
) -> bool:
    """Re-derive every element of S as a signed combination over the basis."""
    base = frozenset(S)
    if not result.basis <= base or len(result.basis) > d:
        return False
    for a in base:
        coeffs = result.coefficients.get(a)
        if coeffs is None or not set(coeffs) <= result.basis:
            return False
        if any(c not in (-1, 0, 1) for c in coeffs.values()):
            return False
        if signed_combination(group, coeffs) != a:
            return False
    return True


def _format_coefficients(group: AbelianGroup, coeffs: Dict[Any, int]) -> str:
    terms = [
        f"{group.format(b)}^{c:+d}"
        for b, c in sorted(coeffs.items(), key=lambda kv: repr(kv[0]))
        if c
    ]
    return " ".join(terms) if terms else "identity"


def main() -> None:
    import argparse

    parser = argparse.ArgumentParser(
        description="Dissociation checks, signed spans and basis extraction over a finite set."
    )
    parser.add_argument("elements", nargs="*", help="Group elements of S")
    parser.add_argument(
        "--group",
        default="add",
        help="Group: add (Z), mul (nonzero rationals), mod:N, or vec:P:D (default add).",
    )
    parser.add_argument(
        "--bound",
        "-d",
        type=int,
        help="Bound d on dissociated subsets; defaults to the computed dimension.",
    )
    parser.add_argument(
        "--no-check",
        action="store_true",
        help="Trust --bound instead of verifying it before extraction.",
    )
    parser.add_argument(
        "--backend",
        choices=["exhaustive", "cbc", "cpsat", "maxsat", "race"],
        default="exhaustive",
        help="How to find the largest dissociated subset (default exhaustive).",
    )
    parser.add_argument(
        "--threads", type=int, default=8, help="Number of solver threads"
    )
    parser.add_argument(
        "--span", action="store_true", help="Print span(S) (3^|S| assignments)."
    )
    parser.add_argument(
        "--prove-bound",
        action="store_true",
        help="Certify the bound from collision cuts (CNF/DRAT if kissat is available).",
    )
    parser.add_argument(
        "--proof-dir",
        type=Path,
        default=Path("."),
        help="Directory for CNF/DRAT files written by --prove-bound.",
    )
    parser.add_argument(
        "--cert", type=Path, help="Write JSON certificate to this path."
    )
    parser.add_argument("--verbose", action="store_true", help="Print witnesses and cuts.")
    args = parser.parse_args()

    try:
        group = group_from_name(args.group)
        S = as_collection((group.parse(x) for x in args.elements), group)
    except ValueError as exc:
        parser.error(str(exc))

    relation = dissociation_witness(S, group)
    if relation is None:
        print(f"S is dissociated ({len(S)} elements)")
    else:
        print(
            f"S is not dissociated: {_format_coefficients(group, {a: 1 for a in relation.plus})}"
            f" = {_format_coefficients(group, {a: 1 for a in relation.minus})}"
        )

    if args.span:
        values = span(S, group)
        print(f"|span(S)| = {len(values)}")
        print("span:", [group.format(v) for v in ordered(values)])

    res = max_dissociated_subset(
        S, group, backend=args.backend, threads=args.threads, verbose=args.verbose
    )
    print(f"largest dissociated subset: {[group.format(a) for a in ordered(res.solution)]} (size {res.size})")
    bound = res.size if args.bound is None else args.bound

    bound_proved = None
    cnf_path = None
    proof_path = None
    if args.prove_bound:
        bound_proved, cnf_path, proof_path = prove_bound(
            len(S),
            bound,
            res.cuts,
            cnf_dir=args.proof_dir,
            fallback_bound_holds=lambda: find_oversized_dissociated(S, bound, group) is None,
            verbose=args.verbose,
        )
        print(f"no dissociated subset above {bound} (proof/fallback): {bound_proved}")

    try:
        result = extract_with_witnesses(
            S,
            bound,
            group,
            check=not args.no_check,
            backend=args.backend,
            threads=args.threads,
            verbose=args.verbose,
        )
    except PreconditionViolation as exc:
        raise SystemExit(f"precondition violated: {exc}")

    print(f"basis (size {len(result.basis)} <= {bound}):", [group.format(b) for b in ordered(result.basis)])
    for a in ordered(S):
        print(f"  {group.format(a)} = {_format_coefficients(group, result.coefficients[a])}")
    print(f"time {result.runtime:.3f}s")
    if args.cert:
        save_certificate(
            group,
            S,
            bound,
            result.basis,
            result.coefficients,
            args.cert,
            runtime=result.runtime,
            bound_proved=bound_proved,
            verify_fn=lambda: verify_extraction(result, S, bound, group),
            cnf_path=cnf_path,
            proof_path=proof_path,
        )
        print(f"wrote certificate to {args.cert}")


if __name__ == "__main__":
    main()
