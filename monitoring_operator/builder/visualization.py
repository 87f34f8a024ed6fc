"""Visualization components: search dashboards and Grafana."""
import json
from typing import List

import yaml

from ..constants import (
    COMPONENT_DASHBOARDS,
    COMPONENT_GRAFANA,
    DASHBOARDS_HEALTH_PATH,
    DASHBOARDS_PORT,
    GRAFANA_HEALTH_PATH,
    GRAFANA_PORT,
    PROMETHEUS_PORT,
)
from ..models.resources import ConfigMap, Deployment, ManagedResource, ResourceGroup, Service
from .common import BuildContext, config_volume, container, empty_dir, env, http_probe, pod_template, service_body
from .credentials import admin_secret_name


def build_dashboards(ctx: BuildContext) -> ResourceGroup:
    spec = ctx.spec.opensearchDashboards
    if not (spec.enabled and ctx.spec.opensearch.enabled):
        return ResourceGroup(component=COMPONENT_DASHBOARDS, requires_ready="opensearch")

    labels = ctx.labels(COMPONENT_DASHBOARDS)
    resources: List[ManagedResource] = [
        Deployment(
            **ctx.metadata(COMPONENT_DASHBOARDS, ctx.name("osd")),
            body={"spec": {
                "replicas": spec.replicas,
                "selector": {"matchLabels": labels},
                "template": pod_template(labels, [container(
                    "opensearch-dashboards",
                    f"{ctx.images.dashboards}:{ctx.search_version}",
                    {"http": DASHBOARDS_PORT},
                    spec.resources,
                    env=env({
                        "OPENSEARCH_HOSTS": json.dumps([ctx.search_url()]),
                        "DISABLE_SECURITY_DASHBOARDS_PLUGIN": "true",
                    }),
                    readinessProbe=http_probe(DASHBOARDS_HEALTH_PATH, DASHBOARDS_PORT, initial_delay=15),
                )]),
            }},
        ),
        Service(
            **ctx.metadata(COMPONENT_DASHBOARDS, ctx.name("osd")),
            body=service_body(labels, {"http": DASHBOARDS_PORT}, ctx.spec.serviceType),
        ),
    ]
    return ResourceGroup(component=COMPONENT_DASHBOARDS, resources=resources, requires_ready="opensearch")


def grafana_datasources(ctx: BuildContext) -> str:
    datasources = []
    if ctx.spec.prometheus.enabled:
        datasources.append({
            "name": "Prometheus",
            "type": "prometheus",
            "access": "proxy",
            "url": f"http://{ctx.name('prometheus')}:{PROMETHEUS_PORT}",
            "isDefault": True,
        })
    return yaml.safe_dump({"apiVersion": 1, "datasources": datasources}, sort_keys=True)


def build_grafana(ctx: BuildContext) -> ResourceGroup:
    spec = ctx.spec.grafana
    if not spec.enabled:
        return ResourceGroup(component=COMPONENT_GRAFANA)

    labels = ctx.labels(COMPONENT_GRAFANA)
    replicas = spec.replicas if spec.replicas is not None else ctx.settings.defaultSimpleCompReplicas
    secret = admin_secret_name(ctx)
    datasources = ctx.name("grafana-datasources")
    resources: List[ManagedResource] = [
        ConfigMap(
            **ctx.metadata(COMPONENT_GRAFANA, datasources),
            body={"data": {"datasources.yaml": grafana_datasources(ctx)}},
        ),
        Deployment(
            **ctx.metadata(COMPONENT_GRAFANA, ctx.name("grafana")),
            body={"spec": {
                "replicas": replicas,
                "selector": {"matchLabels": labels},
                "template": pod_template(
                    labels,
                    [container(
                        "grafana",
                        ctx.images.grafana,
                        {"http": GRAFANA_PORT},
                        spec.resources,
                        env=[
                            {"name": "GF_SECURITY_ADMIN_USER",
                             "valueFrom": {"secretKeyRef": {"name": secret, "key": "username"}}},
                            {"name": "GF_SECURITY_ADMIN_PASSWORD",
                             "valueFrom": {"secretKeyRef": {"name": secret, "key": "password"}}},
                        ] + env({"GF_AUTH_ANONYMOUS_ENABLED": "false"}),
                        volumeMounts=[
                            {"name": "storage", "mountPath": "/var/lib/grafana"},
                            {"name": "datasources", "mountPath": "/etc/grafana/provisioning/datasources"},
                        ],
                        readinessProbe=http_probe(GRAFANA_HEALTH_PATH, GRAFANA_PORT),
                    )],
                    volumes=[empty_dir("storage"), config_volume("datasources", datasources)],
                ),
            }},
        ),
        Service(
            **ctx.metadata(COMPONENT_GRAFANA, ctx.name("grafana")),
            body=service_body(labels, {"http": GRAFANA_PORT}, ctx.spec.serviceType),
        ),
    ]
    return ResourceGroup(component=COMPONENT_GRAFANA, resources=resources)
