"""Ingress routes for the externally reachable components."""
from typing import List, Optional, Tuple

from ..constants import (
    ALERTMANAGER_PORT,
    COMPONENT_INGRESS,
    DASHBOARDS_PORT,
    EXTERNAL_DNS_TTL,
    GRAFANA_PORT,
    INGRESS_BODY_SIZE,
    OPENSEARCH_HTTP_PORT,
    PROMETHEUS_PORT,
)
from ..models.resources import Ingress, ResourceGroup
from .common import BuildContext


def _endpoints(ctx: BuildContext) -> List[Tuple[str, str, int]]:
    """(endpoint name, backing service, port) of every enabled component."""
    spec = ctx.spec
    endpoints = []
    if spec.grafana.enabled:
        endpoints.append(("grafana", ctx.name("grafana"), GRAFANA_PORT))
    if spec.prometheus.enabled:
        endpoints.append(("prometheus", ctx.name("prometheus"), PROMETHEUS_PORT))
    if spec.alertmanager.enabled:
        endpoints.append(("alertmanager", ctx.name("alertmanager"), ALERTMANAGER_PORT))
    if spec.opensearch.enabled:
        endpoints.append(("opensearch", ctx.name("os-http"), OPENSEARCH_HTTP_PORT))
    if spec.opensearchDashboards.enabled and spec.opensearch.enabled:
        endpoints.append(("osd", ctx.name("osd"), DASHBOARDS_PORT))
    return endpoints


def _target_dns_name(ctx: BuildContext) -> Optional[str]:
    return ctx.spec.ingressTargetDNSName or ctx.settings.defaultIngressTargetDNSName


def build_ingresses(ctx: BuildContext) -> ResourceGroup:
    """One ingress per endpoint, hosted at <endpoint>.<uri>."""
    if not ctx.spec.uri:
        return ResourceGroup(component=COMPONENT_INGRESS)

    annotations = {"nginx.ingress.kubernetes.io/proxy-body-size": INGRESS_BODY_SIZE}
    target = _target_dns_name(ctx)
    if target:
        annotations["external-dns.alpha.kubernetes.io/target"] = target
        annotations["external-dns.alpha.kubernetes.io/ttl"] = EXTERNAL_DNS_TTL
    if ctx.spec.autoSecret:
        annotations["kubernetes.io/tls-acme"] = "true"

    resources = []
    for endpoint, service, port in _endpoints(ctx):
        host = f"{endpoint}.{ctx.spec.uri}"
        resources.append(Ingress(
            **ctx.metadata(COMPONENT_INGRESS, ctx.name(f"{endpoint}-ingress")),
            annotations=dict(annotations),
            body={"spec": {
                "ingressClassName": "nginx",
                "tls": [{"hosts": [host], "secretName": ctx.name("tls")}],
                "rules": [{
                    "host": host,
                    "http": {"paths": [{
                        "path": "/",
                        "pathType": "Prefix",
                        "backend": {"service": {"name": service, "port": {"number": port}}},
                    }]},
                }],
            }},
        ))
    return ResourceGroup(component=COMPONENT_INGRESS, resources=resources)
