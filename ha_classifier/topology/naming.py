"""Trust-chain attribute paths and role values used by classification rules."""

from __future__ import annotations

import re
from dataclasses import dataclass

from ..config import NamingConfig

AVAILABILITY_GROUP_A = "A"
AVAILABILITY_GROUP_B = "B"

ROLE_MASTER = "master"
ROLE_COMPILER = "compiler"
ROLE_PUPPETDB_DATABASE = "puppetdb-database"


@dataclass(frozen=True)
class TrustNaming:
    """Resolves the role and availability-group paths once per run."""

    role_path: tuple[str, ...]
    availability_group_path: tuple[str, ...]
    role_namespace: str

    @classmethod
    def from_config(cls, config: NamingConfig | None = None) -> TrustNaming:
        config = config or NamingConfig()
        return cls(
            role_path=("trusted", "extensions", config.role_extension),
            availability_group_path=("trusted", "extensions", config.availability_group_extension),
            role_namespace=config.role_namespace,
        )

    def role(self, name: str) -> str:
        """Role tag value, e.g. 'puppet/compiler'."""
        return f"{self.role_namespace}/{name}"

    @property
    def role_prefix_pattern(self) -> str:
        """Regex matching every role tag in this namespace."""
        return f"^{re.escape(self.role_namespace)}/"
