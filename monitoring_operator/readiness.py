"""Readiness gate for the managed search cluster."""
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

import httpx
from loguru import logger

from .clients.search import ClusterHealth, SearchClusterClient, SearchNode
from .constants import DATA_ROLE, READINESS_POLL_INTERVAL, RED_HEALTH
from .errors import ReadinessTimeout


def insufficiency_reason(health: Optional[ClusterHealth], nodes: Optional[List[SearchNode]],
                         version: str, required: int) -> Optional[str]:
    """Explain why the cluster does not yet satisfy the target, or None if it does."""
    if health is None:
        return "cluster health unavailable"
    if nodes is None:
        return "nodes unavailable"
    if health.status == RED_HEALTH:
        return f"cluster health is {health.status}"
    data_nodes = 0
    for node in nodes:
        if node.version != version:
            return f"node {node.name} is at version {node.version}, want {version}"
        if DATA_ROLE in node.role:
            data_nodes += 1
    if data_nodes < required:
        return f"{data_nodes} data node(s) at version {version}, want {required}"
    return None


def is_sufficient(health: Optional[ClusterHealth], nodes: Optional[List[SearchNode]],
                  version: str, required: int) -> bool:
    return insufficiency_reason(health, nodes, version, required) is None


@dataclass
class ReadinessRecord:
    """State of one gate check cycle."""

    version: str
    required: int
    health: Optional[ClusterHealth] = None
    nodes: Optional[List[SearchNode]] = None
    reason: Optional[str] = None
    attempts: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def sufficient(self) -> bool:
        return self.reason is None


class ReadinessGate:
    """
    Polls a search cluster until version, health and data-node quorum hold.

    The poll interval is fixed; the overall wait is bounded by the deadline
    passed to `wait`.
    """

    def __init__(self, client_factory: Callable[..., SearchClusterClient] = SearchClusterClient,
                 interval: float = READINESS_POLL_INTERVAL,
                 sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], float] = time.monotonic):
        self.client_factory = client_factory
        self.interval = interval
        self._sleep = sleep
        self._clock = clock

    def check(self, search: SearchClusterClient, record: ReadinessRecord) -> ReadinessRecord:
        record.attempts += 1
        try:
            record.health = search.cluster_health()
        except (httpx.HTTPError, ValueError) as e:
            record.health = None
            record.errors.append(f"health: {e}")
        try:
            record.nodes = search.cat_nodes()
        except (httpx.HTTPError, ValueError) as e:
            record.nodes = None
            record.errors.append(f"nodes: {e}")
        record.reason = insufficiency_reason(record.health, record.nodes, record.version, record.required)
        return record

    def wait(self, base_url: str, version: str, required: int, timeout: float,
             username: Optional[str] = None, password: Optional[str] = None) -> ReadinessRecord:
        """Block until the cluster is sufficient; raise ReadinessTimeout at the deadline."""
        deadline = self._clock() + timeout
        record = ReadinessRecord(version=version, required=required)
        with self.client_factory(base_url, username=username, password=password) as search:
            while True:
                self.check(search, record)
                if record.sufficient:
                    logger.info(f"Search cluster at {base_url} is ready after {record.attempts} check(s)")
                    return record
                logger.info(f"Search cluster at {base_url} not ready: {record.reason}")
                remaining = deadline - self._clock()
                if remaining <= 0:
                    raise ReadinessTimeout(
                        f"search cluster at {base_url} not ready after {timeout:g}s: {record.reason}",
                        reason=record.reason or "",
                    )
                self._sleep(min(self.interval, remaining))
