"""SAT/DRAT certificates that a finite set has no dissociated subset above a bound.

Variables x_1..x_n select elements of ordered(S). Each collision cut C (the
support of a relation) becomes the clause OR_{i in C} -x_i. Every dissociated
subset satisfies all cuts, so UNSAT of "cuts and sum x_i >= d + 1" proves that
every dissociated subset of S has at most d elements. The cardinality side is
the same sequential-counter encoding the MaxSAT backend uses.
"""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from pysat.formula import CNF

from backends import at_least_clauses, check_cut

# kissat follows the SAT competition convention for exit codes.
_KISSAT_VERDICTS = {10: False, 20: True}


def build_cnf_for_min_size(n: int, min_size: int, cuts: Sequence[Sequence[int]]) -> CNF:
    """Formula satisfiable iff some selection of >= min_size of x_1..x_n avoids every cut."""
    for cut in cuts:
        check_cut(cut, n)
    card, top = at_least_clauses(n, min_size)
    formula = CNF(from_clauses=[[-i for i in cut] for cut in cuts] + card)
    formula.nv = max(formula.nv, top)
    return formula


def run_kissat_proof(cnf_path: Path, proof_path: Path) -> bool:
    """True when kissat reports UNSAT (proof written to proof_path), False when SAT."""
    proc = subprocess.run(
        ["kissat", str(cnf_path), str(proof_path)], capture_output=True, text=True
    )
    try:
        return _KISSAT_VERDICTS[proc.returncode]
    except KeyError:
        raise RuntimeError(
            f"kissat exited with {proc.returncode}: {proc.stderr or proc.stdout}"
        ) from None


def prove_bound(
    n: int,
    bound: int,
    cuts: List[List[int]],
    cnf_dir: Path,
    label: str = "S",
    kissat_runner: Callable[[Path, Path], bool] = run_kissat_proof,
    fallback_bound_holds: Optional[Callable[[], bool]] = None,
    verbose: bool = False,
) -> Tuple[Optional[bool], Optional[Path], Optional[Path]]:
    """Attempt to prove that no dissociated subset of an n-element set exceeds bound.

    Returns (proved, cnf_path, proof_path) where proved is:
      True  -> UNSAT proof for size >= bound+1 (or the fallback confirmed the bound)
      False -> the cuts admit a selection above the bound (collect more cuts)
      None  -> kissat unavailable and no fallback provided
    """
    min_size = bound + 1
    cnf_dir.mkdir(parents=True, exist_ok=True)
    cnf_path = cnf_dir / f"cnf_{label}_n{n}_ge_{min_size}.cnf"
    proof_path = cnf_path.with_suffix(".drat")
    formula = build_cnf_for_min_size(n, min_size, cuts)
    formula.to_file(str(cnf_path))
    if verbose:
        print(f"[prove] wrote {cnf_path} ({formula.nv} vars, {len(formula.clauses)} clauses)")
    try:
        unsat = kissat_runner(cnf_path, proof_path)
    except FileNotFoundError:
        if verbose:
            print("[prove] kissat not found; using fallback")
        proved = fallback_bound_holds() if fallback_bound_holds else None
        return proved, cnf_path, None
    return unsat, cnf_path, proof_path
