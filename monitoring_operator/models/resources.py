"""Managed resource variants produced by the desired-state builder."""
import base64
import copy
from typing import Annotated, Any, Callable, ClassVar, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, Field

from ..constants import FINGERPRINT_ANNOTATION
from ..security.credentials import generate_password
from ..utils.helpers import is_subset, sha256_hex, strip_paths

Path = Tuple[str, ...]


class ManagedResource(BaseModel):
    """A cluster object owned by one MonitoringInstance."""

    api_version: ClassVar[str] = "v1"
    # Fields the cluster will not let us change after creation
    immutable_paths: ClassVar[Tuple[Path, ...]] = ()
    # Changes to the object can only be applied by deleting and recreating it
    recreate_on_change: ClassVar[bool] = False

    kind: str
    namespace: str
    name: str
    component: str
    owner: Dict[str, Any]
    labels: Dict[str, str] = Field(default_factory=dict)
    annotations: Dict[str, str] = Field(default_factory=dict)
    body: Dict[str, Any] = Field(default_factory=dict)

    @property
    def ref(self) -> str:
        return f"{self.kind}/{self.namespace}/{self.name}"

    def fingerprint(self) -> str:
        """Content hash of everything the builder owns on this object."""
        return sha256_hex({
            "labels": self.labels,
            "annotations": {k: v for k, v in self.annotations.items() if k != FINGERPRINT_ANNOTATION},
            "body": self.body,
        })

    def to_manifest(self) -> Dict[str, Any]:
        manifest = {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "metadata": {
                "name": self.name,
                "namespace": self.namespace,
                "labels": dict(self.labels),
                "annotations": {**self.annotations, FINGERPRINT_ANNOTATION: self.fingerprint()},
                "ownerReferences": [dict(self.owner)],
            },
        }
        manifest.update(copy.deepcopy(self.body))
        return manifest

    def create_manifest(self) -> Dict[str, Any]:
        """Manifest used when the object does not exist yet."""
        return self.to_manifest()

    def merge_into(self, live: Dict[str, Any]) -> Dict[str, Any]:
        """Build an update of `live` that keeps cluster-owned fields."""
        manifest = self.to_manifest()
        live_meta = live.get('metadata') or {}
        meta = manifest['metadata']
        meta['labels'] = {**(live_meta.get('labels') or {}), **meta['labels']}
        meta['annotations'] = {**(live_meta.get('annotations') or {}), **meta['annotations']}
        meta['resourceVersion'] = live_meta.get('resourceVersion')
        for path in self.immutable_paths:
            _copy_path(live, manifest, path)
        return manifest

    def _drift_view(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        meta = obj.get('metadata') or {}
        view = {k: v for k, v in obj.items() if k not in ('metadata', 'status', 'apiVersion', 'kind')}
        view['metadata'] = {
            'labels': meta.get('labels') or {},
            'annotations': meta.get('annotations') or {},
            'ownerReferences': meta.get('ownerReferences') or [],
        }
        return strip_paths(view, self.immutable_paths)

    def in_sync(self, live: Dict[str, Any]) -> bool:
        """True when `live` already carries this desired state."""
        annotations = (live.get('metadata') or {}).get('annotations') or {}
        if annotations.get(FINGERPRINT_ANNOTATION) != self.fingerprint():
            return False
        return is_subset(self._drift_view(self.to_manifest()), self._drift_view(live))


def _copy_path(source: Dict[str, Any], target: Dict[str, Any], path: Path) -> None:
    node = source
    for part in path:
        if not isinstance(node, dict) or part not in node:
            return
        node = node[part]
    dest = target
    for part in path[:-1]:
        dest = dest.setdefault(part, {})
    dest[path[-1]] = copy.deepcopy(node)


class Deployment(ManagedResource):
    api_version: ClassVar[str] = "apps/v1"
    immutable_paths: ClassVar[Tuple[Path, ...]] = (("spec", "selector"),)

    kind: Literal["Deployment"] = "Deployment"


class StatefulSet(ManagedResource):
    api_version: ClassVar[str] = "apps/v1"
    immutable_paths: ClassVar[Tuple[Path, ...]] = (
        ("spec", "selector"),
        ("spec", "serviceName"),
        ("spec", "volumeClaimTemplates"),
        ("spec", "podManagementPolicy"),
    )

    kind: Literal["StatefulSet"] = "StatefulSet"


class Service(ManagedResource):
    immutable_paths: ClassVar[Tuple[Path, ...]] = (
        ("spec", "clusterIP"),
        ("spec", "clusterIPs"),
        ("spec", "ipFamilies"),
    )

    kind: Literal["Service"] = "Service"

    def merge_into(self, live: Dict[str, Any]) -> Dict[str, Any]:
        manifest = super().merge_into(live)
        # Keep node ports the cluster allocated for ports we did not pin
        live_ports = {p.get('name'): p for p in ((live.get('spec') or {}).get('ports') or [])}
        for port in manifest.get('spec', {}).get('ports', []):
            allocated = live_ports.get(port.get('name'), {}).get('nodePort')
            if allocated and 'nodePort' not in port:
                port['nodePort'] = allocated
        return manifest


class ConfigMap(ManagedResource):
    kind: Literal["ConfigMap"] = "ConfigMap"


class Ingress(ManagedResource):
    api_version: ClassVar[str] = "networking.k8s.io/v1"

    kind: Literal["Ingress"] = "Ingress"


class Job(ManagedResource):
    api_version: ClassVar[str] = "batch/v1"
    recreate_on_change: ClassVar[bool] = True

    kind: Literal["Job"] = "Job"


def _b64(value: str) -> str:
    return base64.b64encode(value.encode("utf-8")).decode("ascii")


class Secret(ManagedResource):
    """
    A credential secret.

    Static values and generated key lengths are part of the desired state;
    generated values are drawn only when a key is missing and existing
    values are never rewritten.
    """

    kind: Literal["Secret"] = "Secret"
    static: Dict[str, str] = Field(default_factory=dict)
    generated: Dict[str, int] = Field(default_factory=dict, description="Key to generated password length")

    def fingerprint(self) -> str:
        return sha256_hex({
            "labels": self.labels,
            "annotations": {k: v for k, v in self.annotations.items() if k != FINGERPRINT_ANNOTATION},
            "static": self.static,
            "generated": self.generated,
        })

    def data_keys(self) -> List[str]:
        return sorted(set(self.static) | set(self.generated))

    def _fill(self, data: Dict[str, str], generate: Callable[[int], str]) -> Dict[str, str]:
        data = dict(data)
        for key, value in sorted(self.static.items()):
            data.setdefault(key, _b64(value))
        for key, length in sorted(self.generated.items()):
            if key not in data:
                data[key] = _b64(generate(length))
        return data

    def create_manifest(self, generate: Optional[Callable[[int], str]] = None) -> Dict[str, Any]:
        manifest = self.to_manifest()
        manifest['type'] = "Opaque"
        manifest['data'] = self._fill({}, generate or generate_password)
        return manifest

    def merge_into(self, live: Dict[str, Any], generate: Optional[Callable[[int], str]] = None) -> Dict[str, Any]:
        manifest = super().merge_into(live)
        manifest['type'] = live.get('type') or "Opaque"
        manifest['data'] = self._fill(live.get('data') or {}, generate or generate_password)
        return manifest

    def in_sync(self, live: Dict[str, Any]) -> bool:
        annotations = (live.get('metadata') or {}).get('annotations') or {}
        if annotations.get(FINGERPRINT_ANNOTATION) != self.fingerprint():
            return False
        data = live.get('data') or {}
        if any(key not in data for key in self.data_keys()):
            return False
        return is_subset(self._drift_view(self.to_manifest()), self._drift_view(live))


AnyResource = Annotated[
    Union[Deployment, StatefulSet, Service, ConfigMap, Secret, Ingress, Job],
    Field(discriminator="kind"),
]

# Kinds listed when pruning, in deletion order
RESOURCE_KINDS: Tuple[str, ...] = ("Ingress", "Job", "Deployment", "StatefulSet", "Service", "ConfigMap", "Secret")


class ResourceGroup(BaseModel):
    """The resources of one stack component."""

    component: str
    resources: List[AnyResource] = Field(default_factory=list)
    requires_ready: Optional[str] = Field(None, description="Component whose readiness gates this group")


class DesiredState(BaseModel):
    """Ordered resource groups for one instance."""

    groups: List[ResourceGroup] = Field(default_factory=list)

    def group(self, component: str) -> Optional[ResourceGroup]:
        for group in self.groups:
            if group.component == component:
                return group
        return None

    def resources(self) -> List[ManagedResource]:
        return [resource for group in self.groups for resource in group.resources]
