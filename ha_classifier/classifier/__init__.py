"""Node classifier package: the store Protocol and upsert outcomes."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .groups import GroupSpec

CREATED = "created"
UPDATED = "updated"
UNCHANGED = "unchanged"


@runtime_checkable
class ClassifierStore(Protocol):
    """Protocol that every classifier backend must satisfy."""

    def upsert_group(self, spec: GroupSpec) -> str:
        """Create the group if absent, else merge the spec into it.

        Returns one of CREATED, UPDATED or UNCHANGED.
        """
        ...
