"""Dissociation checks and witness relations for finite sets in a commutative group.

A finite set S is dissociated when distinct sub-collections of S always combine
to distinct values. Equivalently there is no non-trivial signed relation
prod_{a in plus} a = prod_{a in minus} a with plus, minus disjoint subsets of S.

Three exact deciders are provided:
- `dissociation_witness`: enumerate all 2^n sub-collection products into a
  value -> representative map, reduce the first collision to a disjoint pair.
- `find_relation`: meet-in-the-middle over coefficients in {-1,0,1}, O(3^(n/2)).
- `dissociation_witness_parallel`: the 2^n enumeration sharded over a pool.
All of them return a `Relation` (never just a boolean) so callers can consume
the witness.
"""

from __future__ import annotations

import concurrent.futures
import itertools
import multiprocessing
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from groups import AbelianGroup, Collection, ordered, subsets


@dataclass(frozen=True)
class Relation:
    """Witness pair: disjoint, distinct sub-collections with equal combined value."""

    plus: Collection
    minus: Collection

    @property
    def support(self) -> Collection:
        return self.plus | self.minus

    def holds(self, group: AbelianGroup) -> bool:
        return group.product(self.plus) == group.product(self.minus)

    def as_coefficients(self) -> Dict[Any, int]:
        coeffs = {a: 1 for a in self.plus}
        coeffs.update({a: -1 for a in self.minus})
        return coeffs


def _mask_to_subset(items: Sequence[Any], mask: int) -> Collection:
    return frozenset(a for i, a in enumerate(items) if (mask >> i) & 1)


def reduce_to_disjoint(t: Collection, u: Collection) -> Relation:
    """Cancel the common part of two colliding sub-collections.

    prod(t) = prod(u) implies prod(t - c) = prod(u - c) for c = t & u because
    group elements cancel. t != u guarantees the reduced pair stays distinct.
    """
    if t == u:
        raise ValueError("identical sub-collections are not a collision")
    common = t & u
    return Relation(plus=frozenset(t - common), minus=frozenset(u - common))


def find_collision(
    S: Iterable[Any], group: AbelianGroup
) -> Optional[Tuple[Collection, Collection]]:
    """First pair of distinct sub-collections of S with equal product, or None.

    The pair may overlap; see `reduce_to_disjoint`.
    """
    items = ordered(S)
    seen: Dict[Any, int] = {}
    # Gray-code walk: each step toggles one element, so each product costs one combine.
    value = group.identity
    mask = 0
    seen[value] = 0
    for step in range(1, 1 << len(items)):
        bit = (step & -step).bit_length() - 1
        a = items[bit]
        if (mask >> bit) & 1:
            value = group.quotient(value, a)
        else:
            value = group.combine(value, a)
        mask ^= 1 << bit
        prev = seen.get(value)
        if prev is not None:
            return _mask_to_subset(items, prev), _mask_to_subset(items, mask)
        seen[value] = mask
    return None


def dissociation_witness(S: Iterable[Any], group: AbelianGroup) -> Optional[Relation]:
    """Disjoint, distinct, equal-valued sub-collections of S, or None if dissociated."""
    collision = find_collision(S, group)
    if collision is None:
        return None
    return reduce_to_disjoint(*collision)


def is_dissociated(S: Iterable[Any], group: AbelianGroup) -> bool:
    return dissociation_witness(S, group) is None


def find_relation(S: Iterable[Any], group: AbelianGroup) -> Optional[Relation]:
    """Find a non-trivial signed relation among the elements of S.

    Exact meet-in-the-middle over coefficients in {-1,0,1}; no modular shortcuts.
    Returns disjoint plus/minus supports if found, else None.
    """
    elements = ordered(S)
    if not elements:
        return None

    mid = len(elements) // 2
    left = elements[:mid]
    right = elements[mid:]

    table: Dict[Any, Tuple[int, ...]] = {}
    for coeffs in itertools.product((-1, 0, 1), repeat=len(left)):
        total = group.product(group.power(a, c) for a, c in zip(left, coeffs))
        nonzero = any(coeffs)
        if nonzero and total == group.identity:
            return _relation_from_coefficients(left, coeffs)
        if total not in table or not nonzero:
            table[total] = coeffs

    for r_coeffs in itertools.product((-1, 0, 1), repeat=len(right)):
        total_r = group.product(group.power(a, c) for a, c in zip(right, r_coeffs))
        target = group.inverse(total_r)
        l_coeffs = table.get(target)
        if l_coeffs is None:
            continue
        coeffs_full = tuple(l_coeffs) + tuple(r_coeffs)
        if not any(coeffs_full):
            continue
        return _relation_from_coefficients(elements, coeffs_full)
    return None


def _relation_from_coefficients(
    elements: Sequence[Any], coeffs: Sequence[int]
) -> Relation:
    plus = frozenset(a for a, c in zip(elements, coeffs) if c == 1)
    minus = frozenset(a for a, c in zip(elements, coeffs) if c == -1)
    return Relation(plus=plus, minus=minus)


def verify_relation(relation: Relation, S: Iterable[Any], group: AbelianGroup) -> bool:
    """Exact check that relation certifies S is not dissociated."""
    base = frozenset(S)
    return (
        relation.plus <= base
        and relation.minus <= base
        and not (relation.plus & relation.minus)
        and relation.plus != relation.minus
        and relation.holds(group)
    )


def _shard_products(
    group: AbelianGroup, items: Sequence[Any], low_bits: int, shard: int
) -> Tuple[Dict[Any, int], Optional[Tuple[int, int]]]:
    """Products of every subset whose high bits equal `shard`.

    Returns the value -> mask table and the first collision inside the shard.
    """
    base = shard << low_bits
    prefix = group.product(
        items[low_bits + i] for i in range(len(items) - low_bits) if (shard >> i) & 1
    )
    table: Dict[Any, int] = {}
    for low in range(1 << low_bits):
        value = group.product(
            itertools.chain(
                (prefix,), (items[i] for i in range(low_bits) if (low >> i) & 1)
            )
        )
        mask = base | low
        prev = table.get(value)
        if prev is not None:
            return table, (prev, mask)
        table[value] = mask
    return table, None


def make_executor(kind: str, max_workers: int) -> concurrent.futures.Executor:
    """A thread pool, or a spawn-context process pool for kind="process"."""
    if kind == "thread":
        return concurrent.futures.ThreadPoolExecutor(max_workers=max_workers)
    if kind != "process":
        raise ValueError(f"Unknown executor {kind!r}; use thread or process")
    try:
        return concurrent.futures.ProcessPoolExecutor(
            max_workers=max_workers, mp_context=multiprocessing.get_context("spawn")
        )
    except (OSError, NotImplementedError):
        # Sandboxes without semaphores or fork/spawn support run on threads instead.
        return concurrent.futures.ThreadPoolExecutor(max_workers=max_workers)


def dissociation_witness_parallel(
    S: Iterable[Any],
    group: AbelianGroup,
    workers: int = 4,
    executor: str = "thread",
) -> Optional[Relation]:
    """Sharded variant of `dissociation_witness`.

    The 2^n sub-collections are split by their top bits across `workers`
    shards. Shards are merged through one value -> representative map, so any
    collision, inside a shard or across shards, is found regardless of
    completion order.
    """
    items = ordered(S)
    n = len(items)
    shard_bits = min(max(workers - 1, 0).bit_length(), n)
    low_bits = n - shard_bits
    shards = list(range(1 << shard_bits))

    pool = make_executor(executor, len(shards))
    merged: Dict[Any, int] = {}
    collision: Optional[Tuple[int, int]] = None
    with pool as ex:
        futures = [ex.submit(_shard_products, group, items, low_bits, s) for s in shards]
        for fut in concurrent.futures.as_completed(futures):
            table, inner = fut.result()
            if inner is not None:
                collision = inner
                break
            for value, mask in table.items():
                prev = merged.get(value)
                if prev is not None:
                    collision = (prev, mask)
                    break
                merged[value] = mask
            if collision is not None:
                break
        if collision is not None:
            for other in futures:
                other.cancel()

    if collision is None:
        return None
    t, u = (_mask_to_subset(items, m) for m in collision)
    return reduce_to_disjoint(t, u)


def dissociated_subsets(S: Iterable[Any], group: AbelianGroup) -> List[Collection]:
    """All dissociated sub-collections of S (exponential; small S only)."""
    return [T for T in subsets(S) if is_dissociated(T, group)]
