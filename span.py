"""Signed spans: values reachable with coefficients in {-1, 0, 1}.

span(S) = { prod_{a in S} a^{c(a)} : c : S -> {-1, 0, 1} }

This is the {-1,0,1} analogue of a linear span. It is not closed:
span(span(S)) usually contains more than span(S).
"""

from __future__ import annotations

import itertools
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from groups import AbelianGroup, Collection, ordered, subsets


def signed_combination(group: AbelianGroup, coefficients: Mapping[Any, int]) -> Any:
    """prod a^c over a coefficient assignment."""
    return group.product(group.power(a, c) for a, c in coefficients.items())


def span(S: Iterable[Any], group: AbelianGroup) -> Collection:
    """Every value of a coefficient assignment S -> {-1,0,1}; 3^|S| assignments."""
    items = ordered(S)
    values = set()
    for coeffs in itertools.product((-1, 0, 1), repeat=len(items)):
        values.add(signed_combination(group, dict(zip(items, coeffs))))
    return frozenset(values)


def quotient_span(S: Iterable[Any], group: AbelianGroup) -> Collection:
    """{ prod(t) / prod(u) : t, u subsets of S }, equal to span(S).

    Overlapping t and u cancel on t & u, which is how a zero coefficient
    arises from a pair of sub-collections.
    """
    products = {group.product(T) for T in subsets(S)}
    return frozenset(group.quotient(x, y) for x in products for y in products)


def quotient_in_span(t: Iterable[Any], u: Iterable[Any]) -> Dict[Any, int]:
    """Coefficient assignment over t | u whose combination is prod(t) / prod(u).

    +1 on t - u, -1 on u - t and 0 on t & u. The assignment is the certificate
    that the quotient of two sub-collections of a set lies in that set's span,
    without enumerating the span.
    """
    t_set = frozenset(t)
    u_set = frozenset(u)
    coeffs: Dict[Any, int] = {}
    for a in t_set | u_set:
        coeffs[a] = (a in t_set) - (a in u_set)
    return coeffs


def express(target: Any, S: Iterable[Any], group: AbelianGroup) -> Optional[Dict[Any, int]]:
    """Find coefficients c : S -> {-1,0,1} with signed_combination == target.

    Meet in the middle: tabulate one half, then look up target / right-half.
    """
    items = ordered(S)
    mid = len(items) // 2
    left = items[:mid]
    right = items[mid:]

    table: Dict[Any, Tuple[int, ...]] = {}
    for coeffs in itertools.product((-1, 0, 1), repeat=len(left)):
        value = group.product(group.power(a, c) for a, c in zip(left, coeffs))
        table.setdefault(value, coeffs)

    for r_coeffs in itertools.product((-1, 0, 1), repeat=len(right)):
        value_r = group.product(group.power(a, c) for a, c in zip(right, r_coeffs))
        l_coeffs = table.get(group.quotient(target, value_r))
        if l_coeffs is not None:
            return dict(zip(left + right, tuple(l_coeffs) + tuple(r_coeffs)))
    return None


def in_span(target: Any, S: Iterable[Any], group: AbelianGroup) -> bool:
    return express(target, S, group) is not None
