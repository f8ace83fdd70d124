"""Merge semantics for class, data and variable overlays."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any


def merge_overlay(
    existing: Mapping[str, Mapping[str, Any]] | None,
    incoming: Mapping[str, Mapping[str, Any]],
) -> dict[str, dict[str, Any]]:
    """Merge ``incoming`` into ``existing`` keyed by class/profile name.

    Parameters of a class present in both are merged with ``incoming``
    winning per key. Classes only in ``existing`` are kept untouched.
    """
    merged: dict[str, dict[str, Any]] = {
        name: to_plain(params) for name, params in (existing or {}).items()
    }
    for name, params in incoming.items():
        merged.setdefault(name, {}).update(to_plain(params))
    return merged


def merge_variables(existing: Mapping[str, Any] | None, incoming: Mapping[str, Any]) -> dict[str, Any]:
    return {**to_plain(existing or {}), **to_plain(incoming)}


def to_plain(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(v) for v in value]
    return value
