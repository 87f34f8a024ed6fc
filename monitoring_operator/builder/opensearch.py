"""Search cluster resources: role workloads and services."""
from typing import Any, Dict, List

from ..constants import (
    COMPONENT_OPENSEARCH,
    DATA_HEAP_JAVA_OPTS,
    DEV_HEAP_JAVA_OPTS,
    OPENSEARCH_HTTP_PORT,
    OPENSEARCH_TRANSPORT_PORT,
)
from ..models.resources import Deployment, ManagedResource, ResourceGroup, Service, StatefulSet
from ..models.spec import NodeRoleSpec
from .common import BuildContext, container, empty_dir, env, pod_template, service_body, volume_claim_template

DATA_PATH = "/usr/share/opensearch/data"
PORTS = {"http": OPENSEARCH_HTTP_PORT, "transport": OPENSEARCH_TRANSPORT_PORT}

ROLE_MASTER = "master"
ROLE_DATA = "data"
ROLE_INGEST = "ingest"


def _node_env(ctx: BuildContext, roles: str, java_opts: str) -> List[Dict[str, Any]]:
    spec = ctx.spec.opensearch
    values = {
        "cluster.name": ctx.instance.name,
        "node.roles": roles,
        "network.host": "0.0.0.0",
        "discovery.seed_hosts": ctx.name("os-discovery"),
        "OPENSEARCH_JAVA_OPTS": java_opts,
        "DISABLE_SECURITY_PLUGIN": "true",
        "DISABLE_INSTALL_DEMO_CONFIG": "true",
    }
    if _single_node(ctx):
        values["discovery.type"] = "single-node"
        del values["discovery.seed_hosts"]
    else:
        masters = ",".join(f"{ctx.name('os-master')}-{i}" for i in range(spec.masterNode.replicas))
        values["cluster.initial_cluster_manager_nodes"] = masters
    return [{"name": "node.name", "valueFrom": {"fieldRef": {"fieldPath": "metadata.name"}}}] + env(values)


def _single_node(ctx: BuildContext) -> bool:
    spec = ctx.spec.opensearch
    return spec.masterNode.replicas == 1 and spec.dataNode.replicas == 0 and spec.ingestNode.replicas == 0


def _node_container(ctx: BuildContext, node: NodeRoleSpec, roles: str, default_java_opts: str) -> Dict[str, Any]:
    return container(
        "opensearch",
        f"{ctx.images.opensearch}:{ctx.search_version}",
        PORTS,
        node.resources,
        env=_node_env(ctx, roles, node.javaOpts or default_java_opts),
        volumeMounts=[{"name": "data", "mountPath": DATA_PATH}],
        readinessProbe={"tcpSocket": {"port": OPENSEARCH_HTTP_PORT}, "initialDelaySeconds": 20, "periodSeconds": 10},
    )


def _statefulset(ctx: BuildContext, suffix: str, role: str, node: NodeRoleSpec, roles: str,
                 java_opts: str, persistent: bool) -> StatefulSet:
    labels = ctx.labels(COMPONENT_OPENSEARCH, role)
    size = ctx.spec.opensearch.storage.size
    spec: Dict[str, Any] = {
        "replicas": node.replicas,
        "serviceName": ctx.name("os-discovery"),
        "podManagementPolicy": "Parallel",
        "selector": {"matchLabels": labels},
        "template": pod_template(
            labels,
            [_node_container(ctx, node, roles, java_opts)],
            volumes=None if persistent and size else [empty_dir("data")],
            securityContext={"fsGroup": 1000},
        ),
    }
    if persistent and size:
        spec["volumeClaimTemplates"] = [volume_claim_template("data", size, ctx.settings.pvcs.storageClass)]
    return StatefulSet(**ctx.metadata(COMPONENT_OPENSEARCH, ctx.name(suffix), role), body={"spec": spec})


def build_opensearch(ctx: BuildContext) -> ResourceGroup:
    """Render the master, data and ingest roles and their services."""
    spec = ctx.spec.opensearch
    resources: List[ManagedResource] = []
    if not spec.enabled:
        return ResourceGroup(component=COMPONENT_OPENSEARCH)

    if spec.masters_hold_data:
        master_roles = "cluster_manager,data" if spec.ingestNode.replicas else "cluster_manager,data,ingest"
    else:
        master_roles = "cluster_manager"
    resources.append(_statefulset(ctx, "os-master", ROLE_MASTER, spec.masterNode, master_roles,
                                  DEV_HEAP_JAVA_OPTS, persistent=spec.masters_hold_data))

    if spec.dataNode.replicas > 0:
        resources.append(_statefulset(ctx, "os-data", ROLE_DATA, spec.dataNode, "data",
                                      DATA_HEAP_JAVA_OPTS, persistent=True))

    if spec.ingestNode.replicas > 0:
        labels = ctx.labels(COMPONENT_OPENSEARCH, ROLE_INGEST)
        resources.append(Deployment(
            **ctx.metadata(COMPONENT_OPENSEARCH, ctx.name("os-ingest"), ROLE_INGEST),
            body={"spec": {
                "replicas": spec.ingestNode.replicas,
                "selector": {"matchLabels": labels},
                "template": pod_template(
                    labels,
                    [_node_container(ctx, spec.ingestNode, "ingest", DEV_HEAP_JAVA_OPTS)],
                    volumes=[empty_dir("data")],
                    securityContext={"fsGroup": 1000},
                ),
            }},
        ))

    resources.append(Service(
        **ctx.metadata(COMPONENT_OPENSEARCH, ctx.name("os-discovery")),
        body=service_body(ctx.selector(COMPONENT_OPENSEARCH, ROLE_MASTER),
                          {"transport": OPENSEARCH_TRANSPORT_PORT}, headless=True),
    ))
    resources.append(Service(
        **ctx.metadata(COMPONENT_OPENSEARCH, ctx.name("os-http")),
        body=service_body(ctx.selector(COMPONENT_OPENSEARCH), {"http": OPENSEARCH_HTTP_PORT}),
    ))
    return ResourceGroup(component=COMPONENT_OPENSEARCH, resources=resources)
