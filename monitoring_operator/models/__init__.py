"""Data models for the Monitoring Operator."""
from .resources import (
    RESOURCE_KINDS,
    ConfigMap,
    Deployment,
    DesiredState,
    Ingress,
    Job,
    ManagedResource,
    ResourceGroup,
    Secret,
    Service,
    StatefulSet,
)
from .spec import MonitoringInstance, MonitoringInstanceSpec
from .status import Condition, MonitoringInstanceStatus, Outcome, Phase, next_phase

__all__ = [
    "RESOURCE_KINDS",
    "ConfigMap",
    "Deployment",
    "DesiredState",
    "Ingress",
    "Job",
    "ManagedResource",
    "ResourceGroup",
    "Secret",
    "Service",
    "StatefulSet",
    "MonitoringInstance",
    "MonitoringInstanceSpec",
    "Condition",
    "MonitoringInstanceStatus",
    "Outcome",
    "Phase",
    "next_phase",
]
