"""Converges live cluster objects to the desired resources."""
from dataclasses import dataclass, field
from typing import Iterable, List, Set, Tuple

from loguru import logger

from .. import metrics
from ..clients.cluster import ClusterClient
from ..constants import COMPONENT_LABEL, INSTANCE_LABEL, MANAGED_BY, MANAGED_BY_LABEL
from ..errors import NotFoundError, SpecError
from ..models.resources import RESOURCE_KINDS, ManagedResource, ResourceGroup
from ..models.spec import MonitoringInstance
from ..utils.helpers import label_selector

CREATED = "created"
UPDATED = "updated"
UNCHANGED = "unchanged"
DELETED = "deleted"


@dataclass
class ApplyReport:
    """What one apply pass changed, as `Kind/namespace/name` refs."""

    created: List[str] = field(default_factory=list)
    updated: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)

    @property
    def writes(self) -> int:
        return len(self.created) + len(self.updated) + len(self.deleted)

    def record(self, outcome: str, ref: str) -> None:
        getattr(self, outcome).append(ref)

    def merge(self, other: "ApplyReport") -> "ApplyReport":
        self.created.extend(other.created)
        self.updated.extend(other.updated)
        self.deleted.extend(other.deleted)
        self.unchanged.extend(other.unchanged)
        return self


class Applier:
    """
    Applies resource groups through a ClusterClient.

    Missing objects are created, drifted objects are replaced with the
    live resourceVersion (so concurrent writers surface as ConflictError),
    and objects in sync are left alone.
    """

    def __init__(self, cluster: ClusterClient):
        self.cluster = cluster

    def apply_group(self, group: ResourceGroup) -> ApplyReport:
        report = ApplyReport()
        for resource in group.resources:
            report.record(self.apply(resource), resource.ref)
        return report

    def apply(self, resource: ManagedResource) -> str:
        log = logger.bind(kind=resource.kind, resource=f"{resource.namespace}/{resource.name}")
        try:
            live = self.cluster.get(resource.kind, resource.namespace, resource.name)
        except NotFoundError:
            log.info(f"Creating {resource.kind} {resource.name}")
            self.cluster.create(resource.kind, resource.namespace, resource.create_manifest())
            metrics.resource_writes_total.labels(kind=resource.kind, operation="create").inc()
            return CREATED

        self._check_owner(resource, live)
        if resource.in_sync(live):
            return UNCHANGED

        if resource.recreate_on_change:
            log.info(f"Recreating {resource.kind} {resource.name}")
            self.cluster.delete(resource.kind, resource.namespace, resource.name)
            self.cluster.create(resource.kind, resource.namespace, resource.create_manifest())
            metrics.resource_writes_total.labels(kind=resource.kind, operation="recreate").inc()
            return UPDATED

        log.info(f"Updating {resource.kind} {resource.name}")
        self.cluster.replace(resource.kind, resource.namespace, resource.name, resource.merge_into(live))
        metrics.resource_writes_total.labels(kind=resource.kind, operation="update").inc()
        return UPDATED

    def _check_owner(self, resource: ManagedResource, live: dict) -> None:
        """Refuse to take over an object controlled by something else."""
        for ref in (live.get('metadata') or {}).get('ownerReferences') or []:
            if ref.get('controller') and ref.get('uid') != resource.owner.get('uid'):
                raise SpecError(
                    f"{resource.kind} {resource.namespace}/{resource.name} is controlled by "
                    f"{ref.get('kind')} {ref.get('name')}"
                )

    def prune(self, instance: MonitoringInstance, groups: Iterable[ResourceGroup]) -> ApplyReport:
        """
        Delete objects of the given components that the builder no longer emits.

        Only objects labelled as managed for this instance are considered.
        """
        report = ApplyReport()
        groups = list(groups)
        components: Set[str] = {group.component for group in groups}
        desired: Set[Tuple[str, str]] = {
            (resource.kind, resource.name) for group in groups for resource in group.resources
        }
        if not components:
            return report

        selector = label_selector({INSTANCE_LABEL: instance.name, MANAGED_BY_LABEL: MANAGED_BY})
        for kind in RESOURCE_KINDS:
            for live in self.cluster.list(kind, instance.namespace, selector):
                meta = live.get('metadata') or {}
                name = meta.get('name')
                component = (meta.get('labels') or {}).get(COMPONENT_LABEL)
                if component not in components or (kind, name) in desired:
                    continue
                logger.bind(kind=kind, resource=f"{instance.namespace}/{name}").info(
                    f"Deleting {kind} {name}, no longer desired"
                )
                try:
                    self.cluster.delete(kind, instance.namespace, name)
                except NotFoundError:
                    continue
                metrics.resource_writes_total.labels(kind=kind, operation="delete").inc()
                report.record(DELETED, f"{kind}/{instance.namespace}/{name}")
        return report
