"""Topology value object resolved from bootstrap parameters."""

from __future__ import annotations

from dataclasses import dataclass

from ..exceptions import ConfigError
from .host_selector import select_host


@dataclass(frozen=True)
class Topology:
    """Canonical description of the control-plane hosts for one run."""

    primary_host: str
    compiler_pool_address: str
    database_host: str
    replica_host: str | None = None
    database_replica_host: str | None = None

    @property
    def ha_enabled(self) -> bool:
        return self.replica_host is not None

    @property
    def external_database(self) -> bool:
        """True when PuppetDB's database lives somewhere other than the primary."""
        return self.database_host != self.primary_host


def resolve_topology(
    primary_host: object,
    compiler_pool_address: str,
    replica_host: object = None,
    database_host: object = None,
    database_replica_host: object = None,
) -> Topology:
    """Validate the bootstrap parameters and fill in defaults.

    Host arguments accept whatever ``select_host`` accepts. The database host
    defaults to the primary and the database replica to the replica host.
    """
    primary = select_host(primary_host)
    if not primary:
        raise ConfigError("primary_host must not be empty")
    if not compiler_pool_address:
        raise ConfigError("compiler_pool_address must not be empty")

    replica = select_host(replica_host) or None
    database = select_host(database_host) or primary
    explicit_db_replica = select_host(database_replica_host) or None

    if explicit_db_replica is not None and replica is None:
        raise ConfigError(
            f"database_replica_host '{explicit_db_replica}' requires a replica_host (HA is not enabled)"
        )

    return Topology(
        primary_host=primary,
        compiler_pool_address=compiler_pool_address,
        database_host=database,
        replica_host=replica,
        database_replica_host=explicit_db_replica or replica,
    )
