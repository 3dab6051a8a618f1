"""Certificate helpers for basis extraction outputs."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Mapping, Optional

from groups import AbelianGroup, group_from_name, ordered


def save_certificate(
    group: AbelianGroup,
    S: Iterable[Any],
    bound: int,
    basis: Iterable[Any],
    coefficients: Mapping[Any, Mapping[Any, int]],
    path: Path,
    runtime: Optional[float],
    bound_proved: Optional[bool],
    verify_fn: Callable[[], bool],
    cnf_path: Optional[Path] = None,
    proof_path: Optional[Path] = None,
) -> None:
    """Write a JSON certificate: every element of S as a signed combination of the basis."""
    fmt = group.format
    data = {
        "group": group.name,
        "bound": bound,
        "elements": [fmt(a) for a in ordered(S)],
        "basis": [fmt(b) for b in ordered(basis)],
        "size": len(frozenset(basis)),
        "coefficients": {
            fmt(a): {fmt(b): int(c) for b, c in coefficients[a].items() if c}
            for a in ordered(coefficients)
        },
        "verified_cover": verify_fn(),
        "runtime_seconds": runtime,
        "bound_proved": bound_proved,
        "cnf": str(cnf_path) if cnf_path else None,
        "proof": str(proof_path) if proof_path else None,
    }
    path.write_text(json.dumps(data, indent=2))


def load_certificate(path: Path) -> Dict[str, Any]:
    """Read a certificate back, parsing elements with the recorded group."""
    data = json.loads(path.read_text())
    group = group_from_name(data["group"])
    parse = group.parse
    data["group"] = group
    data["elements"] = frozenset(parse(a) for a in data["elements"])
    data["basis"] = frozenset(parse(b) for b in data["basis"])
    data["coefficients"] = {
        parse(a): {parse(b): int(c) for b, c in coeffs.items()}
        for a, coeffs in data["coefficients"].items()
    }
    return data
