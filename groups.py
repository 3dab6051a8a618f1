"""Commutative groups and finite collections of their elements.

Every algorithm in this repository is written once against `AbelianGroup` and
used with additive or multiplicative notation alike. A group only has to supply
`combine`, `identity` and `inverse`; products, quotients and signed powers are
derived here.

Finite sets of group elements are plain `frozenset`s (`Collection`): duplicate
free, order irrelevant, hashable, with union/difference/subset built in.
"""

from __future__ import annotations

import itertools
from fractions import Fraction
from typing import Any, FrozenSet, Iterable, Iterator, List, Tuple

Collection = FrozenSet[Any]


class AbelianGroup:
    """Commutative group interface; subclasses implement the three primitives."""

    name = "abstract"

    @property
    def identity(self) -> Any:
        raise NotImplementedError

    def combine(self, a: Any, b: Any) -> Any:
        raise NotImplementedError

    def inverse(self, a: Any) -> Any:
        raise NotImplementedError

    def contains(self, a: Any) -> bool:
        return True

    def parse(self, text: str) -> Any:
        raise NotImplementedError

    def format(self, a: Any) -> str:
        return str(a)

    def product(self, elements: Iterable[Any]) -> Any:
        total = self.identity
        for a in elements:
            total = self.combine(total, a)
        return total

    def quotient(self, a: Any, b: Any) -> Any:
        return self.combine(a, self.inverse(b))

    def power(self, a: Any, k: int) -> Any:
        """a^k for a signed coefficient k in {-1, 0, 1}."""
        if k == 1:
            return a
        if k == 0:
            return self.identity
        if k == -1:
            return self.inverse(a)
        raise ValueError(f"coefficient {k} outside {{-1, 0, 1}}")

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class AdditiveIntegers(AbelianGroup):
    name = "add"

    @property
    def identity(self) -> int:
        return 0

    def combine(self, a: int, b: int) -> int:
        return a + b

    def inverse(self, a: int) -> int:
        return -a

    def contains(self, a: Any) -> bool:
        return isinstance(a, int) and not isinstance(a, bool)

    def parse(self, text: str) -> int:
        return int(text)


class MultiplicativeRationals(AbelianGroup):
    """Nonzero rationals under multiplication; elements are Fractions."""

    name = "mul"

    @property
    def identity(self) -> Fraction:
        return Fraction(1)

    def combine(self, a: Fraction, b: Fraction) -> Fraction:
        return Fraction(a) * Fraction(b)

    def inverse(self, a: Fraction) -> Fraction:
        if a == 0:
            raise ValueError("0 has no multiplicative inverse")
        return 1 / Fraction(a)

    def contains(self, a: Any) -> bool:
        return isinstance(a, (int, Fraction)) and not isinstance(a, bool) and a != 0

    def parse(self, text: str) -> Fraction:
        value = Fraction(text)
        if value == 0:
            raise ValueError("0 is not an element of the multiplicative group")
        return value


class CyclicGroup(AbelianGroup):
    """Z/nZ under addition, elements normalised to 0..n-1."""

    def __init__(self, n: int):
        if n < 1:
            raise ValueError(f"cyclic group order must be positive, got {n}")
        self.n = n
        self.name = f"mod:{n}"

    @property
    def identity(self) -> int:
        return 0

    def combine(self, a: int, b: int) -> int:
        return (a + b) % self.n

    def inverse(self, a: int) -> int:
        return (-a) % self.n

    def contains(self, a: Any) -> bool:
        return isinstance(a, int) and not isinstance(a, bool) and 0 <= a < self.n

    def parse(self, text: str) -> int:
        return int(text) % self.n

    def __repr__(self) -> str:
        return f"CyclicGroup({self.n})"


class VectorGroup(AbelianGroup):
    """(Z/pZ)^dim as tuples; with p=2 the span behaves like a GF(2) row space."""

    def __init__(self, p: int, dim: int):
        if p < 2 or dim < 1:
            raise ValueError(f"invalid vector group parameters p={p} dim={dim}")
        self.p = p
        self.dim = dim
        self.name = f"vec:{p}:{dim}"

    @property
    def identity(self) -> Tuple[int, ...]:
        return (0,) * self.dim

    def combine(self, a: Tuple[int, ...], b: Tuple[int, ...]) -> Tuple[int, ...]:
        return tuple((x + y) % self.p for x, y in zip(a, b))

    def inverse(self, a: Tuple[int, ...]) -> Tuple[int, ...]:
        return tuple((-x) % self.p for x in a)

    def contains(self, a: Any) -> bool:
        return (
            isinstance(a, tuple)
            and len(a) == self.dim
            and all(isinstance(x, int) and 0 <= x < self.p for x in a)
        )

    def parse(self, text: str) -> Tuple[int, ...]:
        parts = [int(x) % self.p for x in text.split(",") if x.strip()]
        if len(parts) != self.dim:
            raise ValueError(f"expected {self.dim} comma-separated entries, got {text!r}")
        return tuple(parts)

    def format(self, a: Tuple[int, ...]) -> str:
        return ",".join(str(x) for x in a)

    def __repr__(self) -> str:
        return f"VectorGroup({self.p}, {self.dim})"


def group_from_name(name: str) -> AbelianGroup:
    """Resolve CLI group names: add, mul, mod:N, vec:P:D."""
    key = name.strip().lower()
    if key in ("add", "int", "z"):
        return AdditiveIntegers()
    if key in ("mul", "q*", "rational"):
        return MultiplicativeRationals()
    parts = key.split(":")
    if parts[0] == "mod" and len(parts) == 2:
        return CyclicGroup(int(parts[1]))
    if parts[0] == "vec" and len(parts) == 3:
        return VectorGroup(int(parts[1]), int(parts[2]))
    raise ValueError(f"Unknown group {name!r}; use add, mul, mod:N or vec:P:D")


def as_collection(elements: Iterable[Any], group: AbelianGroup | None = None) -> Collection:
    """Freeze elements into a Collection, rejecting values outside the group."""
    out = frozenset(elements)
    if group is not None:
        bad = [a for a in out if not group.contains(a)]
        if bad:
            raise ValueError(f"elements {bad} are not in group {group.name}")
    return out


def erase(S: Collection, a: Any) -> Collection:
    return S - {a}


def ordered(S: Iterable[Any]) -> List[Any]:
    """Deterministic iteration order for a collection with no assumed ordering."""
    items = list(S)
    try:
        return sorted(items)
    except TypeError:
        return sorted(items, key=repr)


def invert_collection(group: AbelianGroup, S: Collection) -> Collection:
    return frozenset(group.inverse(a) for a in S)


def subsets(S: Iterable[Any]) -> Iterator[Collection]:
    """Every sub-collection of S, by increasing size."""
    items = ordered(S)
    for k in range(len(items) + 1):
        for combo in itertools.combinations(items, k):
            yield frozenset(combo)


def combinations_of(S: Iterable[Any], k: int) -> Iterator[Collection]:
    for combo in itertools.combinations(ordered(S), k):
        yield frozenset(combo)
