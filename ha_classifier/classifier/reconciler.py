"""Apply the classification topology against a classifier store."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

from ..exceptions import ClassifierError, GroupApplyError
from ..topology.models import resolve_topology
from ..topology.naming import TrustNaming
from . import CREATED, UNCHANGED, UPDATED, ClassifierStore
from .groups import GroupSpec, build_group_specs

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    """Group names by outcome, in apply order."""

    created: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)

    @property
    def applied(self) -> list[str]:
        return self.created + self.updated + self.unchanged

    @property
    def changed(self) -> bool:
        return bool(self.created or self.updated)


class Reconciler:
    """Upserts group specs one at a time, in order."""

    def __init__(self, store: ClassifierStore):
        self._store = store

    def apply(self, specs: list[GroupSpec]) -> ReconcileResult:
        """Upsert every spec. Stops at the first failure without rolling back.

        Raises GroupApplyError naming the failed group and the groups that
        were applied before it.
        """
        result = ReconcileResult()
        start = time.monotonic()

        for spec in specs:
            logger.debug(
                "Applying group %s", spec.name,
                extra={"group": spec.name, "lifecycle": str(spec.lifecycle)},
            )
            try:
                outcome = self._store.upsert_group(spec)
            except ClassifierError as exc:
                logger.error(
                    "Group %s failed after %d applied", spec.name, len(result.applied),
                    extra={"group": spec.name},
                )
                raise GroupApplyError(spec.name, exc, applied=result.applied) from exc

            if outcome == CREATED:
                result.created.append(spec.name)
            elif outcome == UPDATED:
                result.updated.append(spec.name)
            elif outcome == UNCHANGED:
                result.unchanged.append(spec.name)
            else:
                raise ValueError(f"Unknown upsert outcome {outcome!r} for group {spec.name}")

        logger.info(
            "Reconcile complete",
            extra={
                "elapsed_seconds": round(time.monotonic() - start, 2),
                "groups_created": len(result.created),
                "groups_updated": len(result.updated),
                "groups_unchanged": len(result.unchanged),
            },
        )
        return result


def reconcile(
    store: ClassifierStore,
    primary_host: object,
    compiler_pool_address: str,
    replica_host: object = None,
    database_host: object = None,
    database_replica_host: object = None,
    naming: TrustNaming | None = None,
) -> ReconcileResult:
    """Resolve the topology, plan its groups and apply them to ``store``.

    Raises ConfigError before touching the store when the inputs are invalid.
    """
    topology = resolve_topology(
        primary_host,
        compiler_pool_address,
        replica_host=replica_host,
        database_host=database_host,
        database_replica_host=database_replica_host,
    )
    logger.info(
        "Reconciling classification for primary %s (HA %s, external database %s)",
        topology.primary_host,
        "enabled" if topology.ha_enabled else "disabled",
        "enabled" if topology.external_database else "disabled",
    )
    specs = build_group_specs(topology, naming)
    return Reconciler(store).apply(specs)
