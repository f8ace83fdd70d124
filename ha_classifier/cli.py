"""Argument parsing, configuration loading, and bootstrap entry point."""

from __future__ import annotations

import argparse
import json
import logging
import sys

from .classifier.client import ClassifierClient
from .classifier.groups import build_group_specs
from .classifier.reconciler import reconcile
from .classifier.rules import node_document
from .config import AppConfig, load_config
from .exceptions import ClassificationError, ConfigError
from .logging_config import configure_logging
from .topology.models import resolve_topology
from .topology.naming import TrustNaming

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ha-classifier",
        description="Bootstrap node classification groups for an HA control plane",
    )
    parser.add_argument(
        "-c", "--config",
        required=True,
        help="Path to the YAML configuration file",
    )
    parser.add_argument(
        "--validate",
        action="store_true",
        help="Validate the configuration file and exit",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the planned groups as JSON without contacting the classifier",
    )
    parser.add_argument(
        "--explain",
        metavar="CERTNAME",
        help="Print the planned groups a node would join and exit",
    )
    parser.add_argument(
        "--role",
        help="Role tag of the --explain node, e.g. 'compiler'",
    )
    parser.add_argument(
        "--availability-group",
        help="Availability group of the --explain node ('A' or 'B')",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    offline = args.dry_run or args.validate or args.explain is not None

    try:
        config = load_config(args.config, require_classifier=not offline)
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1

    configure_logging(config.logging)

    try:
        if args.validate:
            _plan(config)
            logger.info("Configuration is valid")
        elif args.explain is not None:
            _explain(config, args.explain, args.role, args.availability_group)
        elif args.dry_run:
            print(json.dumps([spec.to_dict() for spec in _plan(config)], indent=2))
        else:
            _apply(config)
    except ClassificationError as exc:
        logger.error("Fatal error: %s", exc)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 1

    return 0


def _topology(config: AppConfig):
    t = config.topology
    return resolve_topology(
        t.primary_host,
        t.compiler_pool_address,
        replica_host=t.replica_host,
        database_host=t.database_host,
        database_replica_host=t.database_replica_host,
    )


def _plan(config: AppConfig):
    return build_group_specs(_topology(config), TrustNaming.from_config(config.naming))


def _explain(config: AppConfig, certname: str, role: str | None, group: str | None) -> None:
    naming = TrustNaming.from_config(config.naming)
    extensions = {}
    if role:
        extensions[naming.role_path[-1]] = naming.role(role)
    if group:
        extensions[naming.availability_group_path[-1]] = group

    node = node_document(certname, extensions)
    for spec in _plan(config):
        if spec.rule.evaluate(node):
            print(spec.name)


def _apply(config: AppConfig) -> None:
    t = config.topology
    result = reconcile(
        ClassifierClient(config.classifier),
        t.primary_host,
        t.compiler_pool_address,
        replica_host=t.replica_host,
        database_host=t.database_host,
        database_replica_host=t.database_replica_host,
        naming=TrustNaming.from_config(config.naming),
    )
    if result.changed:
        logger.info("Applied %d groups, %d changed", len(result.applied), len(result.created) + len(result.updated))
    else:
        logger.info("All %d groups already up to date", len(result.applied))
