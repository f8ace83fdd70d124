"""Membership rule expressions and their classifier JSON form.

Rules are a small tagged union of frozen dataclasses::

    Or((Equals(ROLE, "puppet/compiler"), Equals("name", "m1.example")))

``to_classifier()`` renders the array syntax the node classifier API stores
(``["or", ["=", ["trusted", "extensions", "..."], "puppet/compiler"], ...]``)
and ``rule_from_classifier()`` parses it back.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Union

Path = Union[str, tuple[str, ...]]

_MISSING = object()


def _path_to_classifier(path: Path) -> Any:
    if isinstance(path, str):
        return path
    return list(path)


def _path_from_classifier(data: Any) -> Path:
    if isinstance(data, str):
        return data
    if isinstance(data, list) and data and all(isinstance(p, str) for p in data):
        return tuple(data)
    raise ValueError(f"Invalid rule path: {data!r}")


def _lookup(node: dict[str, Any], path: Path) -> Any:
    """Resolve a path against a node document; returns _MISSING when absent."""
    keys = (path,) if isinstance(path, str) else path
    current: Any = node
    for key in keys:
        if not isinstance(current, dict) or key not in current:
            return _MISSING
        current = current[key]
    return current


@dataclass(frozen=True)
class Equals:
    path: Path
    value: str

    def to_classifier(self) -> list[Any]:
        return ["=", _path_to_classifier(self.path), self.value]

    def evaluate(self, node: dict[str, Any]) -> bool:
        actual = _lookup(node, self.path)
        return actual is not _MISSING and str(actual) == self.value


@dataclass(frozen=True)
class RegexMatch:
    path: Path
    pattern: str

    def to_classifier(self) -> list[Any]:
        return ["~", _path_to_classifier(self.path), self.pattern]

    def evaluate(self, node: dict[str, Any]) -> bool:
        actual = _lookup(node, self.path)
        return actual is not _MISSING and re.search(self.pattern, str(actual)) is not None


@dataclass(frozen=True)
class And:
    children: tuple[RuleExpr, ...]

    def to_classifier(self) -> list[Any]:
        return ["and", *(c.to_classifier() for c in self.children)]

    def evaluate(self, node: dict[str, Any]) -> bool:
        return all(c.evaluate(node) for c in self.children)


@dataclass(frozen=True)
class Or:
    children: tuple[RuleExpr, ...]

    def to_classifier(self) -> list[Any]:
        return ["or", *(c.to_classifier() for c in self.children)]

    def evaluate(self, node: dict[str, Any]) -> bool:
        return any(c.evaluate(node) for c in self.children)


RuleExpr = Union[Equals, RegexMatch, And, Or]


def rule_from_classifier(data: Any) -> RuleExpr:
    """Parse a classifier rule array into a RuleExpr.

    Raises ValueError for operators outside the supported grammar.
    """
    if not isinstance(data, list) or not data:
        raise ValueError(f"Invalid rule: {data!r}")

    op, *args = data
    if op in ("and", "or"):
        if not args:
            raise ValueError(f"'{op}' rule needs at least one child")
        children = tuple(rule_from_classifier(a) for a in args)
        return And(children) if op == "and" else Or(children)

    if op in ("=", "~"):
        if len(args) != 2 or not isinstance(args[1], str):
            raise ValueError(f"'{op}' rule needs a path and a string value: {data!r}")
        path = _path_from_classifier(args[0])
        return Equals(path, args[1]) if op == "=" else RegexMatch(path, args[1])

    raise ValueError(f"Unsupported rule operator: {op!r}")


def node_document(name: str, extensions: dict[str, str] | None = None) -> dict[str, Any]:
    """Build the node shape rules are evaluated against."""
    return {"name": name, "trusted": {"certname": name, "extensions": dict(extensions or {})}}
