# services/cot/soql.py
"""
Typed filter predicates for the Socrata (SoQL) positions dataset.

Matching logic is built from these nodes and only rendered to a `$where`
string at the HTTP boundary. Every node can also evaluate itself against a
row dict, which keeps the strict/broad tiers testable without the network.

Text comparisons on UPPER(...) are case-insensitive; LIKE supports the SQL
wildcards `%` and `_`. A missing field behaves as NULL: it never equals or
LIKEs anything, and `not_like` treats it as "not excluded".
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Iterable, Mapping, Optional, Tuple

Row = Mapping[str, Any]


def quote(value: str) -> str:
    """SoQL string literal."""
    return "'" + str(value).replace("'", "''") + "'"


def _text(row: Row, field: str) -> Optional[str]:
    v = row.get(field)
    if v is None:
        return None
    return str(v)


@lru_cache(maxsize=512)
def _like_regex(pattern: str) -> "re.Pattern[str]":
    parts = []
    for ch in pattern:
        if ch == "%":
            parts.append(".*")
        elif ch == "_":
            parts.append(".")
        else:
            parts.append(re.escape(ch))
    return re.compile("".join(parts), re.DOTALL)


class Predicate:
    def render(self) -> str:
        raise NotImplementedError

    def matches(self, row: Row) -> bool:
        raise NotImplementedError

    def __and__(self, other: "Predicate") -> "Predicate":
        return all_of(self, other)

    def __or__(self, other: "Predicate") -> "Predicate":
        return any_of(self, other)

    def __invert__(self) -> "Predicate":
        return Not(self)

    def __str__(self) -> str:
        return self.render()


@dataclass(frozen=True)
class Eq(Predicate):
    field: str
    value: str
    case_insensitive: bool = False

    def render(self) -> str:
        if self.case_insensitive:
            return f"UPPER({self.field}) = {quote(self.value.upper())}"
        return f"{self.field} = {quote(self.value)}"

    def matches(self, row: Row) -> bool:
        v = _text(row, self.field)
        if v is None:
            return False
        if self.case_insensitive:
            return v.upper() == self.value.upper()
        return v == self.value


@dataclass(frozen=True)
class Like(Predicate):
    """UPPER(field) LIKE 'PATTERN'."""
    field: str
    pattern: str

    def render(self) -> str:
        return f"UPPER({self.field}) LIKE {quote(self.pattern.upper())}"

    def matches(self, row: Row) -> bool:
        v = _text(row, self.field)
        if v is None:
            return False
        return _like_regex(self.pattern.upper()).fullmatch(v.upper()) is not None


@dataclass(frozen=True)
class IsNull(Predicate):
    field: str

    def render(self) -> str:
        return f"{self.field} IS NULL"

    def matches(self, row: Row) -> bool:
        return row.get(self.field) is None


@dataclass(frozen=True)
class Compare(Predicate):
    """Ordered comparison on a text column (ISO timestamps sort lexically)."""
    field: str
    op: str
    value: str

    _OPS = {
        ">=": lambda a, b: a >= b,
        "<=": lambda a, b: a <= b,
        ">": lambda a, b: a > b,
        "<": lambda a, b: a < b,
    }

    def __post_init__(self) -> None:
        if self.op not in self._OPS:
            raise ValueError(f"Unsupported operator: {self.op}")

    def render(self) -> str:
        return f"{self.field} {self.op} {quote(self.value)}"

    def matches(self, row: Row) -> bool:
        v = _text(row, self.field)
        if v is None:
            return False
        return self._OPS[self.op](v, self.value)


@dataclass(frozen=True)
class In(Predicate):
    field: str
    values: Tuple[str, ...]

    def render(self) -> str:
        return f"{self.field} in ({', '.join(quote(v) for v in self.values)})"

    def matches(self, row: Row) -> bool:
        return _text(row, self.field) in self.values


@dataclass(frozen=True)
class And(Predicate):
    parts: Tuple[Predicate, ...]

    def render(self) -> str:
        return " AND ".join(_wrap(p) for p in self.parts)

    def matches(self, row: Row) -> bool:
        return all(p.matches(row) for p in self.parts)


@dataclass(frozen=True)
class Or(Predicate):
    parts: Tuple[Predicate, ...]

    def render(self) -> str:
        return "(" + " OR ".join(_wrap(p) for p in self.parts) + ")"

    def matches(self, row: Row) -> bool:
        return any(p.matches(row) for p in self.parts)


@dataclass(frozen=True)
class Not(Predicate):
    inner: Predicate

    def render(self) -> str:
        return f"NOT ({self.inner.render()})"

    def matches(self, row: Row) -> bool:
        return not self.inner.matches(row)


def _wrap(p: Predicate) -> str:
    if isinstance(p, And) and len(p.parts) > 1:
        return f"({p.render()})"
    return p.render()


def _flatten(kind: type, parts: Iterable[Optional[Predicate]]) -> Tuple[Predicate, ...]:
    out = []
    for p in parts:
        if p is None:
            continue
        if isinstance(p, kind):
            out.extend(p.parts)  # type: ignore[attr-defined]
        else:
            out.append(p)
    return tuple(out)


def all_of(*parts: Optional[Predicate]) -> Predicate:
    flat = _flatten(And, parts)
    if not flat:
        raise ValueError("all_of() needs at least one predicate")
    return flat[0] if len(flat) == 1 else And(flat)


def any_of(*parts: Optional[Predicate]) -> Predicate:
    flat = _flatten(Or, parts)
    if not flat:
        raise ValueError("any_of() needs at least one predicate")
    return flat[0] if len(flat) == 1 else Or(flat)


def not_like(field: str, pattern: str) -> Predicate:
    """Null-safe exclusion: a NULL field is never excluded."""
    return Or((IsNull(field), Not(Like(field, pattern))))
