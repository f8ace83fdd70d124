"""Pick a single host name out of a host reference or a 0/1-element collection."""

from __future__ import annotations

from collections.abc import Collection, Mapping
from dataclasses import dataclass

from ..exceptions import ConfigError, InvalidCardinality


@dataclass(frozen=True)
class Host:
    """A host reference as handed over by inventory tooling."""

    name: str


def _host_name(value: object) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, Mapping):
        name = value.get("name")
    else:
        name = getattr(value, "name", None)
    if not isinstance(name, str):
        raise ConfigError(f"Not a host reference: {value!r}")
    return name


def select_host(value: object) -> str | None:
    """Return the name of the single host in ``value``, or None.

    ``value`` is a host (a name string, a mapping with a ``name`` key, or
    anything with a ``name`` attribute), or a collection holding zero or one
    hosts. Larger collections raise InvalidCardinality.
    """
    if value is None:
        return None
    if isinstance(value, (str, Mapping)) or not isinstance(value, Collection):
        return _host_name(value)

    if len(value) > 1:
        raise InvalidCardinality(len(value))
    for item in value:
        return _host_name(item)
    return None
