"""Metrics collection and alerting: Prometheus and Alertmanager."""
from typing import Any, Dict, List

import yaml

from ..constants import (
    ALERTMANAGER_HEALTH_PATH,
    ALERTMANAGER_PORT,
    COMPONENT_ALERTMANAGER,
    COMPONENT_PROMETHEUS,
    PROMETHEUS_LIVE_PATH,
    PROMETHEUS_PORT,
    PROMETHEUS_READY_PATH,
)
from ..models.resources import ConfigMap, Deployment, ManagedResource, ResourceGroup, Service, StatefulSet
from .common import (
    BuildContext,
    config_volume,
    container,
    empty_dir,
    http_probe,
    pod_template,
    service_body,
    volume_claim_template,
)

DEFAULT_ALERTMANAGER_CONFIG = {
    "route": {"receiver": "default", "group_by": ["alertname"]},
    "receivers": [{"name": "default"}],
}


def prometheus_config(ctx: BuildContext) -> str:
    config: Dict[str, Any] = {
        "global": {"scrape_interval": "20s", "evaluation_interval": "30s"},
        "scrape_configs": [{
            "job_name": "prometheus",
            "static_configs": [{"targets": [f"localhost:{PROMETHEUS_PORT}"]}],
        }],
    }
    if ctx.spec.alertmanager.enabled:
        target = f"{ctx.name('alertmanager')}:{ALERTMANAGER_PORT}"
        config["alerting"] = {"alertmanagers": [{"static_configs": [{"targets": [target]}]}]}
        config["scrape_configs"].append({"job_name": "alertmanager", "static_configs": [{"targets": [target]}]})
    return yaml.safe_dump(config, sort_keys=True)


def build_prometheus(ctx: BuildContext) -> ResourceGroup:
    spec = ctx.spec.prometheus
    if not spec.enabled:
        return ResourceGroup(component=COMPONENT_PROMETHEUS)

    labels = ctx.labels(COMPONENT_PROMETHEUS)
    replicas = spec.replicas if spec.replicas is not None else ctx.settings.defaultPrometheusReplicas
    config_name = ctx.name("prometheus-config")
    persistent = bool(spec.storage.size)
    volumes = [config_volume("config", config_name)]
    if not persistent:
        volumes.append(empty_dir("data"))
    statefulset_spec: Dict[str, Any] = {
        "replicas": replicas,
        "serviceName": ctx.name("prometheus"),
        "podManagementPolicy": "Parallel",
        "selector": {"matchLabels": labels},
        "template": pod_template(labels, [container(
            "prometheus",
            ctx.images.prometheus,
            {"http": PROMETHEUS_PORT},
            spec.resources,
            args=[
                "--config.file=/etc/prometheus/prometheus.yml",
                "--storage.tsdb.path=/prometheus",
                f"--storage.tsdb.retention.time={spec.retentionPeriod}d",
                "--web.enable-lifecycle",
            ],
            volumeMounts=[
                {"name": "config", "mountPath": "/etc/prometheus"},
                {"name": "data", "mountPath": "/prometheus"},
            ],
            livenessProbe=http_probe(PROMETHEUS_LIVE_PATH, PROMETHEUS_PORT, initial_delay=30),
            readinessProbe=http_probe(PROMETHEUS_READY_PATH, PROMETHEUS_PORT),
        )], volumes=volumes, securityContext={"fsGroup": 65534}),
    }
    if persistent:
        statefulset_spec["volumeClaimTemplates"] = [
            volume_claim_template("data", spec.storage.size, ctx.settings.pvcs.storageClass)
        ]

    resources: List[ManagedResource] = [
        ConfigMap(
            **ctx.metadata(COMPONENT_PROMETHEUS, config_name),
            body={"data": {"prometheus.yml": prometheus_config(ctx)}},
        ),
        StatefulSet(**ctx.metadata(COMPONENT_PROMETHEUS, ctx.name("prometheus")), body={"spec": statefulset_spec}),
        Service(
            **ctx.metadata(COMPONENT_PROMETHEUS, ctx.name("prometheus")),
            body=service_body(labels, {"http": PROMETHEUS_PORT}, ctx.spec.serviceType),
        ),
    ]
    return ResourceGroup(component=COMPONENT_PROMETHEUS, resources=resources)


def build_alertmanager(ctx: BuildContext) -> ResourceGroup:
    spec = ctx.spec.alertmanager
    if not spec.enabled:
        return ResourceGroup(component=COMPONENT_ALERTMANAGER)

    labels = ctx.labels(COMPONENT_ALERTMANAGER)
    replicas = spec.replicas if spec.replicas is not None else ctx.settings.defaultSimpleCompReplicas
    config_name = ctx.name("alertmanager-config")
    config = spec.config or yaml.safe_dump(DEFAULT_ALERTMANAGER_CONFIG, sort_keys=True)
    resources: List[ManagedResource] = [
        ConfigMap(
            **ctx.metadata(COMPONENT_ALERTMANAGER, config_name),
            body={"data": {"alertmanager.yml": config}},
        ),
        Deployment(
            **ctx.metadata(COMPONENT_ALERTMANAGER, ctx.name("alertmanager")),
            body={"spec": {
                "replicas": replicas,
                "selector": {"matchLabels": labels},
                "template": pod_template(labels, [container(
                    "alertmanager",
                    ctx.images.alertmanager,
                    {"http": ALERTMANAGER_PORT},
                    spec.resources,
                    args=[
                        "--config.file=/etc/alertmanager/alertmanager.yml",
                        "--storage.path=/alertmanager",
                    ],
                    volumeMounts=[
                        {"name": "config", "mountPath": "/etc/alertmanager"},
                        {"name": "data", "mountPath": "/alertmanager"},
                    ],
                    readinessProbe=http_probe(ALERTMANAGER_HEALTH_PATH, ALERTMANAGER_PORT),
                )], volumes=[config_volume("config", config_name), empty_dir("data")]),
            }},
        ),
        Service(
            **ctx.metadata(COMPONENT_ALERTMANAGER, ctx.name("alertmanager")),
            body=service_body(labels, {"http": ALERTMANAGER_PORT}, ctx.spec.serviceType),
        ),
    ]
    return ResourceGroup(component=COMPONENT_ALERTMANAGER, resources=resources)
