"""Group specifications for the HA control-plane classification topology."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from ..topology.models import Topology
from ..topology.naming import (
    AVAILABILITY_GROUP_A,
    AVAILABILITY_GROUP_B,
    ROLE_COMPILER,
    ROLE_MASTER,
    ROLE_PUPPETDB_DATABASE,
    TrustNaming,
)
from .overlay import to_plain
from .rules import And, Equals, Or, RegexMatch, RuleExpr

logger = logging.getLogger(__name__)

ROOT_GROUP = "PE Infrastructure"
AGENT_GROUP = "PE Infrastructure Agent"
MASTER_GROUP = "PE Master"
DATABASE_GROUP = "PE Database"
MASTER_A_GROUP = "PE Master A"
MASTER_B_GROUP = "PE Master B"
COMPILER_A_GROUP = "PE Compiler Group A"
COMPILER_B_GROUP = "PE Compiler Group B"
REPLICA_GROUP = "PE HA Replica"

PROFILE_DATABASE = "puppet_enterprise::profile::database"
PROFILE_PUPPETDB = "puppet_enterprise::profile::puppetdb"
PROFILE_MASTER = "puppet_enterprise::profile::master"
PROFILE_REPLICA = "puppet_enterprise::profile::primary_master_replica"

CONDITION_HA = "ha"
CONDITION_EXTERNAL_DATABASE = "external_database"

# Attached as data to both compiler pools
COMPILER_TUNING_DATA: Mapping[str, Mapping[str, Any]] = MappingProxyType({
    PROFILE_PUPPETDB: MappingProxyType({
        "gc_interval": 0,
    }),
    "puppet_enterprise::puppetdb": MappingProxyType({
        "command_processing_threads": 2,
        "write_maximum_pool_size": 4,
        "read_maximum_pool_size": 10,
    }),
})


@dataclass(frozen=True)
class Lifecycle:
    """How a group is handled when applied.

    ``mutate`` groups already exist in the baseline topology and only have
    the supplied attributes merged in. Other groups are created if absent.
    A ``condition`` names the topology feature the group depends on; when it
    does not hold the group is left out of the plan entirely.
    """

    kind: str
    condition: str | None = None

    @property
    def enforces_parent(self) -> bool:
        return self.kind != "mutate"

    def __str__(self) -> str:
        if self.condition:
            return f"{self.kind}_if_{self.condition}"
        return self.kind


MUTATE = Lifecycle("mutate")
ENSURE_PRESENT = Lifecycle("ensure_present")


def ensure_present_if(condition: str) -> Lifecycle:
    return Lifecycle("ensure_present", condition)


@dataclass(frozen=True)
class GroupSpec:
    """Desired state of one classifier group, keyed by name.

    The HA replica group keeps the classifier's usual ``or`` wrapper around
    its single predicate: its rule is ``Or((Equals("name", replica),))``, not a
    bare ``Equals("name", replica)``. Both match exactly the same nodes.
    """

    name: str
    rule: RuleExpr
    parent_name: str | None = None
    data_overlay: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)
    class_overlay: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)
    variables: Mapping[str, Any] = field(default_factory=dict)
    lifecycle: Lifecycle = ENSURE_PRESENT

    def to_dict(self) -> dict[str, Any]:
        """Plain-JSON form, used for dry-run output."""
        return {
            "name": self.name,
            "parent": self.parent_name,
            "lifecycle": str(self.lifecycle),
            "rule": self.rule.to_classifier(),
            "config_data": to_plain(self.data_overlay),
            "classes": to_plain(self.class_overlay),
            "variables": to_plain(self.variables),
        }


def build_group_specs(topology: Topology, naming: TrustNaming | None = None) -> list[GroupSpec]:
    """Return the ordered groups to apply for ``topology``.

    Groups gated on HA or an external database are omitted when the
    topology does not call for them.
    """
    naming = naming or TrustNaming.from_config()
    enabled = {
        CONDITION_HA: topology.ha_enabled,
        CONDITION_EXTERNAL_DATABASE: topology.external_database,
    }

    specs = []
    for spec in _catalog(topology, naming):
        condition = spec.lifecycle.condition
        if condition is not None and not enabled[condition]:
            logger.debug("Skipping group %s, %s not enabled", spec.name, condition)
            continue
        specs.append(spec)
    return specs


def _role_is(naming: TrustNaming, role: str) -> Equals:
    return Equals(naming.role_path, naming.role(role))


def _in_group(naming: TrustNaming, group: str) -> Equals:
    return Equals(naming.availability_group_path, group)


def _catalog(topology: Topology, naming: TrustNaming) -> list[GroupSpec]:
    primary = topology.primary_host
    replica = topology.replica_host

    return [
        GroupSpec(
            name=AGENT_GROUP,
            parent_name=ROOT_GROUP,
            rule=RegexMatch(naming.role_path, naming.role_prefix_pattern),
            lifecycle=MUTATE,
        ),
        GroupSpec(
            name=MASTER_GROUP,
            parent_name=ROOT_GROUP,
            rule=Or((
                _role_is(naming, ROLE_COMPILER),
                Equals("name", primary),
            )),
            data_overlay={
                "pe_repo": {"compile_master_pool_address": topology.compiler_pool_address},
            },
            variables={"pe_master": True},
            lifecycle=MUTATE,
        ),
        GroupSpec(
            name=DATABASE_GROUP,
            parent_name=ROOT_GROUP,
            rule=Or((
                _role_is(naming, ROLE_PUPPETDB_DATABASE),
                Equals("name", primary),
            )),
            class_overlay={PROFILE_DATABASE: {}},
            lifecycle=ensure_present_if(CONDITION_EXTERNAL_DATABASE),
        ),
        _master_group(MASTER_A_GROUP, AVAILABILITY_GROUP_A, topology.database_host, naming, ENSURE_PRESENT),
        # Pool A trusts the replica as a PuppetDB host, pool B trusts the primary
        _compiler_group(
            COMPILER_A_GROUP, AVAILABILITY_GROUP_A, topology.database_host,
            [replica] if replica else [], naming, ENSURE_PRESENT,
        ),
        GroupSpec(
            name=REPLICA_GROUP,
            parent_name=ROOT_GROUP,
            rule=Or((Equals("name", replica or ""),)),
            class_overlay={PROFILE_REPLICA: {}},
            variables={"peadm_replica": True},
            lifecycle=ensure_present_if(CONDITION_HA),
        ),
        _master_group(
            MASTER_B_GROUP, AVAILABILITY_GROUP_B, topology.database_replica_host or "",
            naming, ensure_present_if(CONDITION_HA),
        ),
        _compiler_group(
            COMPILER_B_GROUP, AVAILABILITY_GROUP_B, topology.database_replica_host or "",
            [primary], naming, ensure_present_if(CONDITION_HA),
        ),
    ]


def _master_group(
    name: str, group: str, database_host: str, naming: TrustNaming, lifecycle: Lifecycle,
) -> GroupSpec:
    return GroupSpec(
        name=name,
        parent_name=ROOT_GROUP,
        rule=And((_role_is(naming, ROLE_MASTER), _in_group(naming, group))),
        data_overlay={
            PROFILE_REPLICA: {"database_host_puppetdb": database_host},
            PROFILE_PUPPETDB: {"database_host": database_host},
        },
        lifecycle=lifecycle,
    )


def _compiler_group(
    name: str,
    group: str,
    database_host: str,
    puppetdb_hosts: list[str],
    naming: TrustNaming,
    lifecycle: Lifecycle,
) -> GroupSpec:
    return GroupSpec(
        name=name,
        parent_name=MASTER_GROUP,
        rule=And((_role_is(naming, ROLE_COMPILER), _in_group(naming, group))),
        class_overlay={
            PROFILE_PUPPETDB: {"database_host": database_host},
            PROFILE_MASTER: {"puppetdb_host": puppetdb_hosts},
        },
        data_overlay=COMPILER_TUNING_DATA,
        lifecycle=lifecycle,
    )
