"""Pydantic models for MonitoringInstance specifications."""
import json
import re
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ..constants import API_VERSION, KIND
from ..utils.helpers import canonical_quantity

QUANTITY_PATTERN = re.compile(r"^[0-9]+(\.[0-9]+)?(Ki|Mi|Gi|Ti|Pi|Ei|m|k|M|G|T|P|E)?$")
DURATION_PATTERN = re.compile(r"^[0-9]+(ms|s|m|h|d)$")


def _check_quantity(value: Optional[str]) -> Optional[str]:
    if value is None or value == "":
        return None
    value = value.strip()
    if not QUANTITY_PATTERN.match(value):
        raise ValueError(f"'{value}' is not a valid quantity")
    return canonical_quantity(value)


class Resources(BaseModel):
    """Compute resources for a component's containers."""

    limitCPU: Optional[str] = None
    limitMemory: Optional[str] = None
    requestCPU: Optional[str] = None
    requestMemory: Optional[str] = None

    @field_validator('limitCPU', 'limitMemory', 'requestCPU', 'requestMemory')
    @classmethod
    def validate_quantity(cls, v):
        return _check_quantity(v)

    def to_requirements(self) -> Dict[str, Dict[str, str]]:
        """Render as a container `resources` block, omitting unset values."""
        limits = {k: v for k, v in (("cpu", self.limitCPU), ("memory", self.limitMemory)) if v}
        requests = {k: v for k, v in (("cpu", self.requestCPU), ("memory", self.requestMemory)) if v}
        requirements = {}
        if limits:
            requirements["limits"] = limits
        if requests:
            requirements["requests"] = requests
        return requirements


class Storage(BaseModel):
    """Persistent storage request for a component."""

    size: Optional[str] = Field(None, description="Volume size, e.g. 50Gi. Unset means ephemeral storage")

    @field_validator('size')
    @classmethod
    def validate_size(cls, v):
        return _check_quantity(v)


class NodeRoleSpec(BaseModel):
    """One role group of the search cluster."""

    replicas: int = Field(0, ge=0)
    javaOpts: Optional[str] = None
    resources: Resources = Field(default_factory=Resources)


class RolloverPolicy(BaseModel):
    minIndexAge: Optional[str] = None
    minDocCount: Optional[int] = Field(None, ge=1)
    minSize: Optional[str] = None

    @field_validator('minIndexAge')
    @classmethod
    def validate_age(cls, v):
        if v and not DURATION_PATTERN.match(v):
            raise ValueError(f"'{v}' is not a valid index age")
        return v


class IndexManagementPolicy(BaseModel):
    """An index lifecycle policy applied to the search cluster."""

    policyName: str = Field(..., min_length=1)
    indexPattern: str = Field(..., min_length=1)
    minIndexAge: Optional[str] = Field(None, description="Age after which indices are deleted")
    rollover: RolloverPolicy = Field(default_factory=RolloverPolicy)

    @field_validator('policyName')
    @classmethod
    def validate_policy_name(cls, v):
        if not re.match(r"^[a-z0-9][a-z0-9_.-]*$", v):
            raise ValueError('Policy name must be lowercase alphanumeric, ".", "_" or "-"')
        return v

    @field_validator('minIndexAge')
    @classmethod
    def validate_age(cls, v):
        if v and not DURATION_PATTERN.match(v):
            raise ValueError(f"'{v}' is not a valid index age")
        return v


class OpenSearchSpec(BaseModel):
    """Search cluster topology."""

    enabled: bool = False
    version: Optional[str] = Field(None, description="Overrides the operator's default search version")
    storage: Storage = Field(default_factory=Storage)
    masterNode: NodeRoleSpec = Field(default_factory=lambda: NodeRoleSpec(replicas=1))
    dataNode: NodeRoleSpec = Field(default_factory=NodeRoleSpec)
    ingestNode: NodeRoleSpec = Field(default_factory=NodeRoleSpec)
    policies: List[IndexManagementPolicy] = Field(default_factory=list)

    @field_validator('policies')
    @classmethod
    def validate_policies(cls, v):
        names = [policy.policyName for policy in v]
        if len(names) != len(set(names)):
            raise ValueError('Policy names must be unique within a MonitoringInstance')
        return v

    @model_validator(mode='after')
    def validate_topology(self):
        if self.enabled and self.masterNode.replicas < 1:
            raise ValueError('opensearch.masterNode.replicas must be at least 1')
        return self

    @property
    def masters_hold_data(self) -> bool:
        """Master nodes also hold data when no dedicated data nodes exist."""
        return self.dataNode.replicas == 0

    def required_data_nodes(self) -> int:
        if self.masters_hold_data:
            return self.masterNode.replicas
        return self.dataNode.replicas


class OpenSearchDashboardsSpec(BaseModel):
    enabled: bool = False
    replicas: int = Field(1, ge=0)
    resources: Resources = Field(default_factory=Resources)


class GrafanaSpec(BaseModel):
    enabled: bool = False
    replicas: Optional[int] = Field(None, ge=0)
    resources: Resources = Field(default_factory=Resources)


class PrometheusSpec(BaseModel):
    enabled: bool = False
    replicas: Optional[int] = Field(None, ge=0)
    retentionPeriod: int = Field(10, ge=1, description="Days of metrics retained")
    storage: Storage = Field(default_factory=Storage)
    resources: Resources = Field(default_factory=Resources)


class AlertmanagerSpec(BaseModel):
    enabled: bool = False
    replicas: Optional[int] = Field(None, ge=0)
    config: Optional[str] = Field(None, description="Complete alertmanager.yml content")
    resources: Resources = Field(default_factory=Resources)


class MonitoringInstanceSpec(BaseModel):
    """Specification for MonitoringInstance custom resource."""

    lock: bool = Field(False, description="When set, the operator does not process the instance")
    uri: Optional[str] = Field(None, description="External domain under which ingress hosts are created")
    ingressTargetDNSName: Optional[str] = None
    autoSecret: bool = Field(False, description="Request an automatically issued TLS certificate")
    serviceType: Literal["ClusterIP", "NodePort", "LoadBalancer"] = "ClusterIP"
    opensearch: OpenSearchSpec = Field(default_factory=OpenSearchSpec)
    opensearchDashboards: OpenSearchDashboardsSpec = Field(default_factory=OpenSearchDashboardsSpec)
    grafana: GrafanaSpec = Field(default_factory=GrafanaSpec)
    prometheus: PrometheusSpec = Field(default_factory=PrometheusSpec)
    alertmanager: AlertmanagerSpec = Field(default_factory=AlertmanagerSpec)

    @field_validator('uri')
    @classmethod
    def validate_uri(cls, v):
        if v is None or not v.strip():
            return None
        v = v.strip()
        if "://" in v or "/" in v:
            raise ValueError('uri must be a bare domain name')
        return v

    @model_validator(mode='after')
    def validate_dependencies(self):
        if self.opensearchDashboards.enabled and not self.opensearch.enabled:
            raise ValueError('opensearchDashboards requires opensearch to be enabled')
        return self


def fnv1a_32(data: bytes) -> int:
    """32-bit FNV-1a hash."""
    h = 0x811C9DC5
    for byte in data:
        h ^= byte
        h = (h * 0x01000193) & 0xFFFFFFFF
    return h


class MonitoringInstance(BaseModel):
    """A MonitoringInstance as read from the cluster."""

    namespace: str
    name: str
    uid: str = ""
    generation: int = 0
    deletionTimestamp: Optional[str] = None
    spec: MonitoringInstanceSpec

    @classmethod
    def from_body(cls, body: Dict[str, Any]) -> "MonitoringInstance":
        meta = body.get('metadata') or {}
        return cls(
            namespace=meta.get('namespace', ''),
            name=meta.get('name', ''),
            uid=meta.get('uid', ''),
            generation=meta.get('generation') or 0,
            deletionTimestamp=meta.get('deletionTimestamp'),
            spec=MonitoringInstanceSpec.model_validate(body.get('spec') or {}),
        )

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"

    def owner_reference(self) -> Dict[str, Any]:
        return {
            "apiVersion": API_VERSION,
            "kind": KIND,
            "name": self.name,
            "uid": self.uid,
            "controller": True,
            "blockOwnerDeletion": True,
        }

    def spec_hash(self) -> int:
        """Deterministic hash of the spec, recorded in status."""
        canonical = json.dumps(self.spec.model_dump(mode="json"), sort_keys=True, separators=(",", ":"))
        return fnv1a_32(canonical.encode("utf-8"))

