"""Index lifecycle policies and the job that applies them."""
import json
from functools import lru_cache
from importlib import resources as package_resources
from typing import Any, Dict, List

from ..constants import (
    COMPONENT_INDEX_LIFECYCLE,
    ISM_DEFAULT_DELETE_AGE,
    ISM_DEFAULT_ROLLOVER_AGE,
    ISM_MANAGED_DESCRIPTION,
    POLICIES_CHECKSUM_ANNOTATION,
    POLICIES_PATH,
)
from ..models.resources import ConfigMap, Job, ResourceGroup
from ..models.spec import IndexManagementPolicy
from ..utils.helpers import sha256_hex
from .common import BuildContext, config_volume, container

EMBEDDED_POLICIES = ("system", "application")


@lru_cache(maxsize=None)
def _embedded_policy(name: str) -> str:
    return package_resources.files("monitoring_operator.policies").joinpath(f"{name}.json").read_text("utf-8")


def default_policies() -> Dict[str, Dict[str, Any]]:
    """The policies shipped with the operator, keyed by policy name."""
    return {name: json.loads(_embedded_policy(name)) for name in EMBEDDED_POLICIES}


def default_index_patterns() -> List[str]:
    """Index patterns of the shipped policies, created as dashboards index patterns."""
    patterns = set()
    for document in default_policies().values():
        for template in document["policy"].get("ism_template") or []:
            patterns.update(template.get("index_patterns") or [])
    return sorted(patterns)


def to_ism_policy(policy: IndexManagementPolicy) -> Dict[str, Any]:
    """Render a spec policy as a rollover-then-delete ISM policy document."""
    rollover: Dict[str, Any] = {"min_index_age": policy.rollover.minIndexAge or ISM_DEFAULT_ROLLOVER_AGE}
    if policy.rollover.minDocCount:
        rollover["min_doc_count"] = policy.rollover.minDocCount
    if policy.rollover.minSize:
        rollover["min_size"] = policy.rollover.minSize
    return {
        "policy": {
            "description": ISM_MANAGED_DESCRIPTION,
            "default_state": "ingest",
            "states": [
                {
                    "name": "ingest",
                    "actions": [{"rollover": rollover}],
                    "transitions": [{
                        "state_name": "delete",
                        "conditions": {"min_index_age": policy.minIndexAge or ISM_DEFAULT_DELETE_AGE},
                    }],
                },
                {"name": "delete", "actions": [{"delete": {}}], "transitions": []},
            ],
            "ism_template": [{"index_patterns": [policy.indexPattern], "priority": 1}],
        }
    }


def policy_documents(ctx: BuildContext) -> Dict[str, str]:
    policies = default_policies()
    for policy in ctx.spec.opensearch.policies:
        policies[policy.policyName] = to_ism_policy(policy)
    return {f"{name}.json": json.dumps(doc, sort_keys=True, indent=2) for name, doc in sorted(policies.items())}


def build_index_lifecycle(ctx: BuildContext) -> ResourceGroup:
    if not ctx.spec.opensearch.enabled:
        return ResourceGroup(component=COMPONENT_INDEX_LIFECYCLE, requires_ready="opensearch")

    documents = policy_documents(ctx)
    config_name = ctx.name("ism-policies")
    labels = ctx.labels(COMPONENT_INDEX_LIFECYCLE)
    url = ctx.search_url()
    required = ctx.spec.opensearch.required_data_nodes()
    sync_args = ["--policies-dir", POLICIES_PATH]
    if ctx.spec.opensearchDashboards.enabled:
        sync_args += ["--dashboards-url", ctx.dashboards_url()]
        for pattern in default_index_patterns():
            sync_args += ["--index-pattern", pattern]
    sync_args.append(url)

    job_spec = {
        "backoffLimit": 6,
        "template": {
            "metadata": {
                "labels": dict(labels),
                "annotations": {POLICIES_CHECKSUM_ANNOTATION: sha256_hex(documents)},
            },
            "spec": {
                "restartPolicy": "OnFailure",
                "initContainers": [container(
                    "eswait",
                    ctx.images.tools,
                    {},
                    command=["monitoring-eswait"],
                    args=["--number-of-data-nodes", str(required), "--timeout", "5m", url, ctx.search_version],
                )],
                "containers": [container(
                    "apply-policies",
                    ctx.images.tools,
                    {},
                    command=["monitoring-policysync"],
                    args=sync_args,
                    volumeMounts=[{"name": "policies", "mountPath": POLICIES_PATH, "readOnly": True}],
                )],
                "volumes": [config_volume("policies", config_name)],
            },
        },
    }
    resources = [
        ConfigMap(**ctx.metadata(COMPONENT_INDEX_LIFECYCLE, config_name), body={"data": documents}),
        Job(**ctx.metadata(COMPONENT_INDEX_LIFECYCLE, ctx.name("ism")), body={"spec": job_spec}),
    ]
    return ResourceGroup(component=COMPONENT_INDEX_LIFECYCLE, resources=resources, requires_ready="opensearch")
