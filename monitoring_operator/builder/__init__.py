"""Desired-state builder: renders an instance into managed resources."""
from typing import Optional

from ..errors import SpecError
from ..models.resources import DesiredState
from ..models.spec import MonitoringInstance
from ..utils.config import Images, OperatorSettings
from .common import BuildContext
from .credentials import build_credentials
from .ingress import build_ingresses
from .ism import build_index_lifecycle
from .opensearch import build_opensearch
from .prometheus import build_alertmanager, build_prometheus
from .visualization import build_dashboards, build_grafana

# Applied in this order; dependencies come before their dependents
BUILDERS = (
    build_credentials,
    build_opensearch,
    build_index_lifecycle,
    build_dashboards,
    build_grafana,
    build_prometheus,
    build_alertmanager,
    build_ingresses,
)


def build_desired_state(instance: MonitoringInstance, settings: OperatorSettings, images: Images,
                        default_search_version: Optional[str] = None) -> DesiredState:
    """
    Render an instance into ordered resource groups.

    Pure and deterministic: the same inputs always produce the same
    resources and fingerprints. Disabled components produce empty groups
    so that their leftovers get pruned.
    """
    version = instance.spec.opensearch.version or default_search_version
    if instance.spec.opensearch.enabled and not version:
        raise SpecError("no search cluster version configured")
    ctx = BuildContext(instance=instance, settings=settings, images=images, search_version=version or "")
    return DesiredState(groups=[build(ctx) for build in BUILDERS])


__all__ = ["BuildContext", "build_desired_state"]
