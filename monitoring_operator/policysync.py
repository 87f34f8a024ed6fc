"""Command-line job that converges index lifecycle policies and dashboards index patterns."""
import argparse
import json
import os
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import httpx
from loguru import logger

from .clients.search import DashboardsClient, IsmClient, IsmPolicy
from .constants import (
    ES_PASSWORD_ENV,
    ES_USER_ENV,
    INDEX_PATTERN_TIME_FIELD,
    ISM_MANAGED_DESCRIPTION,
    POLICIES_PATH,
    READINESS_POLL_INTERVAL,
)
from .eswait import parse_duration
from .utils.helpers import is_subset

# Fields of a policy document the operator sets; the cluster adds the rest
COMPARED_FIELDS = ("default_state", "description", "states", "ism_template")


@dataclass
class PolicySyncReport:
    created: List[str] = field(default_factory=list)
    updated: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)


def needs_update(document: Dict[str, Any], existing: IsmPolicy) -> bool:
    """True when the stored policy differs from `document` in a field the operator sets."""
    desired = {key: document.get(key) for key in COMPARED_FIELDS}
    stored = {key: existing.policy.get(key) for key in COMPARED_FIELDS}
    return not is_subset(desired, stored)


def claimed_by(policy_id: str, document: Dict[str, Any], stored: List[IsmPolicy]) -> Optional[str]:
    """Id of another policy that already manages one of the document's index patterns at the same priority."""
    wanted = IsmPolicy(policy=document).index_patterns()
    for other in stored:
        if other.id == policy_id:
            continue
        for pattern, priority in other.index_patterns().items():
            if wanted.get(pattern) == priority:
                return other.id
    return None


def sync_policies(client: IsmClient, documents: Dict[str, Dict[str, Any]]) -> PolicySyncReport:
    """
    Converge the cluster's ISM policies to `documents`, keyed by policy id.

    Operator-managed policies that are no longer wanted are deleted
    first; policies created by users are left alone. Missing policies
    are then created unless another policy already manages their index
    patterns. Changed policies are updated in place with the
    stored sequence number and primary term, so indices keep their
    policy. Every managed policy written is attached to the indices that
    already match its patterns.
    """
    report = PolicySyncReport()
    stored: List[IsmPolicy] = []
    for policy in client.list_policies():
        if policy.description == ISM_MANAGED_DESCRIPTION and policy.id not in documents:
            client.delete_policy(policy.id)
            report.deleted.append(policy.id)
            logger.info(f"Deleted policy {policy.id}, it is no longer configured")
        else:
            stored.append(policy)

    for policy_id, document in sorted(documents.items()):
        body = document.get("policy") or {}
        existing = client.get_policy(policy_id)
        if existing is None:
            owner = claimed_by(policy_id, body, stored)
            if owner:
                logger.warning(f"Skipping policy {policy_id}: its index patterns are managed by policy {owner}")
                report.skipped.append(policy_id)
                continue
            saved = client.put_policy(policy_id, document)
            report.created.append(policy_id)
            logger.info(f"Created policy {policy_id}")
        elif needs_update(body, existing):
            saved = client.put_policy(policy_id, document, existing)
            report.updated.append(policy_id)
            logger.info(f"Updated policy {policy_id}")
        else:
            report.unchanged.append(policy_id)
            continue

        if body.get("description") == ISM_MANAGED_DESCRIPTION:
            for pattern in IsmPolicy(policy=body).index_patterns():
                count = client.add_policy(pattern, saved.id or policy_id)
                logger.info(f"Attached policy {policy_id} to {count} existing index(es) matching {pattern}")

    return report


def ensure_index_patterns(client: DashboardsClient, patterns: List[str],
                          time_field: str = INDEX_PATTERN_TIME_FIELD) -> List[str]:
    """Create the index patterns the dashboards do not have yet; returns the ones created."""
    existing = client.index_pattern_titles()
    missing = [pattern for pattern in patterns if pattern not in existing]
    if missing:
        client.create_index_patterns(missing, time_field)
        logger.info(f"Created index patterns {', '.join(missing)}")
    return missing


def wait_for(predicate: Callable[[], bool], timeout: float,
             sleep: Callable[[float], None] = time.sleep,
             clock: Callable[[], float] = time.monotonic) -> bool:
    deadline = clock() + timeout
    while not predicate():
        if clock() >= deadline:
            return False
        sleep(READINESS_POLL_INTERVAL)
    return True


def load_documents(directory: str) -> Dict[str, Dict[str, Any]]:
    """Policy documents in `directory`, keyed by file name without the .json suffix."""
    return {path.stem: json.loads(path.read_text("utf-8")) for path in sorted(Path(directory).glob("*.json"))}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="monitoring-policysync",
        description="Apply index lifecycle policies and default dashboards index patterns.",
    )
    parser.add_argument("url", help="Base URL of the search cluster")
    parser.add_argument("--policies-dir", default=POLICIES_PATH,
                        help=f"Directory holding one JSON document per policy (default: {POLICIES_PATH})")
    parser.add_argument("--dashboards-url", help="Base URL of the search dashboards")
    parser.add_argument("--index-pattern", action="append", default=[], dest="index_patterns",
                        help="Index pattern the dashboards must have; may be repeated")
    parser.add_argument("--timeout", type=parse_duration, default=parse_duration("5m"),
                        help="How long to wait for the dashboards, e.g. 30s, 5m (default: 5m)")
    return parser


def main(argv: Optional[List[str]] = None, ism_factory: Callable[..., IsmClient] = IsmClient,
         dashboards_factory: Callable[..., DashboardsClient] = DashboardsClient,
         sleep: Callable[[float], None] = time.sleep) -> int:
    args = build_parser().parse_args(argv)
    logger.remove()
    logger.add(sys.stderr, level="INFO")

    username = os.environ.get(ES_USER_ENV) or None
    password = os.environ.get(ES_PASSWORD_ENV) or None
    try:
        documents = load_documents(args.policies_dir)
    except (OSError, ValueError) as e:
        logger.error(f"Cannot read policies from {args.policies_dir}: {e}")
        return 1
    if not documents:
        logger.error(f"No policy documents found in {args.policies_dir}")
        return 1

    try:
        with ism_factory(args.url, username=username, password=password) as client:
            report = sync_policies(client, documents)
        logger.info(f"Policies: {len(report.created)} created, {len(report.updated)} updated, "
                    f"{len(report.deleted)} deleted, {len(report.skipped)} skipped")

        if args.dashboards_url and args.index_patterns:
            with dashboards_factory(args.dashboards_url, username=username, password=password) as dashboards:
                if not wait_for(dashboards.is_available, args.timeout, sleep=sleep):
                    logger.error(f"Dashboards at {args.dashboards_url} did not become available")
                    return 1
                ensure_index_patterns(dashboards, args.index_patterns)
    except httpx.HTTPError as e:
        logger.error(f"Policy sync failed: {e}")
        return 1
    return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
