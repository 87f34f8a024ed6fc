"""Tests for Pydantic models."""
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from monitoring_operator.constants import FINGERPRINT_ANNOTATION
from monitoring_operator.models import (
    ConfigMap,
    Deployment,
    MonitoringInstance,
    MonitoringInstanceSpec,
    MonitoringInstanceStatus,
    Outcome,
    Phase,
    Secret,
    Service,
    StatefulSet,
    next_phase,
)
from monitoring_operator.models.spec import IndexManagementPolicy, Resources, fnv1a_32

OWNER = {"apiVersion": "monitoring-operator.dev/v1", "kind": "MonitoringInstance", "name": "a",
         "uid": "uid-a", "controller": True, "blockOwnerDeletion": True}


def resource_fields(name="mi-a-x", component="grafana"):
    return {"namespace": "default", "name": name, "component": component, "owner": OWNER,
            "labels": {"app.kubernetes.io/component": component}}


class TestMonitoringInstanceSpec:
    """Tests for MonitoringInstanceSpec model."""

    def test_defaults(self):
        spec = MonitoringInstanceSpec()
        assert spec.lock is False
        assert spec.serviceType == "ClusterIP"
        assert spec.opensearch.enabled is False
        assert spec.opensearch.masterNode.replicas == 1

    def test_valid_spec(self, sample_spec):
        spec = MonitoringInstanceSpec.model_validate(sample_spec)
        assert spec.uri == "example.com"
        assert spec.opensearch.dataNode.replicas == 2
        assert spec.opensearch.policies[0].policyName == "app-logs"

    def test_negative_replicas(self):
        with pytest.raises(ValidationError):
            MonitoringInstanceSpec.model_validate({"grafana": {"enabled": True, "replicas": -1}})

    def test_master_required_when_enabled(self):
        with pytest.raises(ValidationError):
            MonitoringInstanceSpec.model_validate({"opensearch": {"enabled": True, "masterNode": {"replicas": 0}}})

    def test_dashboards_require_opensearch(self):
        with pytest.raises(ValidationError):
            MonitoringInstanceSpec.model_validate({"opensearchDashboards": {"enabled": True}})

    def test_invalid_storage_size(self):
        with pytest.raises(ValidationError):
            MonitoringInstanceSpec.model_validate({"opensearch": {"enabled": True, "storage": {"size": "lots"}}})

    def test_uri_must_be_domain(self):
        with pytest.raises(ValidationError):
            MonitoringInstanceSpec.model_validate({"uri": "https://example.com"})

    def test_duplicate_policy_names(self):
        policy = {"policyName": "logs", "indexPattern": "logs-*"}
        with pytest.raises(ValidationError):
            MonitoringInstanceSpec.model_validate({"opensearch": {"policies": [policy, policy]}})

    def test_invalid_policy_age(self):
        with pytest.raises(ValidationError):
            IndexManagementPolicy(policyName="logs", indexPattern="logs-*", minIndexAge="seven days")

    def test_required_data_nodes(self):
        spec = MonitoringInstanceSpec.model_validate({"opensearch": {"enabled": True, "masterNode": {"replicas": 3}}})
        assert spec.opensearch.masters_hold_data
        assert spec.opensearch.required_data_nodes() == 3

        spec = MonitoringInstanceSpec.model_validate(
            {"opensearch": {"enabled": True, "masterNode": {"replicas": 3}, "dataNode": {"replicas": 2}}}
        )
        assert spec.opensearch.required_data_nodes() == 2

    def test_resources_requirements(self):
        resources = Resources(limitMemory="2Gi", requestCPU="500m")
        assert resources.to_requirements() == {"limits": {"memory": "2Gi"}, "requests": {"cpu": "500m"}}
        assert Resources().to_requirements() == {}

    def test_quantities_are_canonicalized(self):
        resources = Resources(requestCPU="0.5", limitMemory="1024Mi")
        assert resources.to_requirements() == {"limits": {"memory": "1Gi"}, "requests": {"cpu": "500m"}}


class TestMonitoringInstance:
    """Tests for MonitoringInstance model."""

    def test_from_body(self, sample_body):
        instance = MonitoringInstance.from_body(sample_body)
        assert instance.key == "default/test-stack"
        assert instance.uid == "uid-test-stack"
        assert instance.generation == 1

    def test_owner_reference(self, sample_body):
        ref = MonitoringInstance.from_body(sample_body).owner_reference()
        assert ref["uid"] == "uid-test-stack"
        assert ref["controller"] is True
        assert ref["blockOwnerDeletion"] is True

    def test_spec_hash_is_deterministic(self, sample_body):
        first = MonitoringInstance.from_body(sample_body).spec_hash()
        second = MonitoringInstance.from_body(sample_body).spec_hash()
        assert first == second
        sample_body["spec"]["grafana"]["enabled"] = False
        assert MonitoringInstance.from_body(sample_body).spec_hash() != first

    def test_fnv1a_known_values(self):
        assert fnv1a_32(b"") == 0x811C9DC5
        assert fnv1a_32(b"a") == 0xE40C292C


class TestMonitoringInstanceStatus:
    """Tests for MonitoringInstanceStatus model."""

    def test_ready_condition(self):
        status = MonitoringInstanceStatus()
        assert status.get_condition("Ready") is None

        status.set_condition("Ready", True, "Reconciled")
        assert status.get_condition("Ready").status == "True"

    def test_transition_time_kept_when_status_unchanged(self):
        status = MonitoringInstanceStatus()
        first = datetime(2024, 1, 1, tzinfo=timezone.utc)
        status.set_condition("Ready", False, "Waiting", "one", now=first)
        status.set_condition("Ready", False, "Failed", "two", now=first + timedelta(hours=1))

        condition = status.get_condition("Ready")
        assert condition.lastTransitionTime == first
        assert condition.reason == "Failed"
        assert condition.message == "two"

    def test_transition_time_updated_on_flip(self):
        status = MonitoringInstanceStatus()
        first = datetime(2024, 1, 1, tzinfo=timezone.utc)
        later = first + timedelta(hours=1)
        status.set_condition("Ready", False, "Waiting", now=first)
        status.set_condition("Ready", True, "Reconciled", now=later)
        assert status.get_condition("Ready").lastTransitionTime == later
        assert len(status.conditions) == 1

    def test_round_trip_is_stable(self):
        status = MonitoringInstanceStatus(phase=Phase.READY, observedGeneration=3)
        status.set_condition("Ready", True, "Reconciled")
        patch = status.to_patch()
        assert patch["phase"] == "Ready"
        assert MonitoringInstanceStatus.from_body({"status": patch}).to_patch() == patch

    def test_remove_condition(self):
        status = MonitoringInstanceStatus()
        status.set_condition("grafana", True, "Applied")
        status.remove_condition("grafana")
        assert status.get_condition("grafana") is None


class TestNextPhase:
    """Tests for the phase state machine."""

    @pytest.mark.parametrize("previous,outcome,expected", [
        (None, Outcome.SUCCESS, Phase.READY),
        (None, Outcome.WAITING, Phase.WAITING),
        (None, Outcome.FAILED, Phase.PROVISIONING),
        (None, Outcome.SPEC_INVALID, Phase.INITIALIZING),
        (Phase.PROVISIONING, Outcome.SPEC_INVALID, Phase.PROVISIONING),
        (Phase.WAITING, Outcome.FAILED, Phase.PROVISIONING),
        (Phase.READY, Outcome.FAILED, Phase.DEGRADED),
        (Phase.READY, Outcome.WAITING, Phase.DEGRADED),
        (Phase.DEGRADED, Outcome.SUCCESS, Phase.READY),
        (Phase.READY, Outcome.TERMINATING, Phase.TERMINATING),
        (Phase.INITIALIZING, Outcome.TERMINATING, Phase.TERMINATING),
    ])
    def test_transitions(self, previous, outcome, expected):
        assert next_phase(previous, outcome) == expected


class TestManagedResources:
    """Tests for managed resource variants."""

    def test_fingerprint_is_deterministic(self):
        a = ConfigMap(**resource_fields(), body={"data": {"a": "1", "b": "2"}})
        b = ConfigMap(**resource_fields(), body={"data": {"b": "2", "a": "1"}})
        assert a.fingerprint() == b.fingerprint()
        c = ConfigMap(**resource_fields(), body={"data": {"a": "1", "b": "3"}})
        assert a.fingerprint() != c.fingerprint()

    def test_manifest_carries_owner_and_fingerprint(self):
        resource = ConfigMap(**resource_fields(), body={"data": {"a": "1"}})
        manifest = resource.to_manifest()
        assert manifest["apiVersion"] == "v1"
        assert manifest["kind"] == "ConfigMap"
        assert manifest["metadata"]["ownerReferences"] == [OWNER]
        assert manifest["metadata"]["annotations"][FINGERPRINT_ANNOTATION] == resource.fingerprint()
        assert manifest["data"] == {"a": "1"}

    def test_in_sync_ignores_live_only_fields(self):
        resource = Deployment(**resource_fields(), body={"spec": {"replicas": 2, "template": {"spec": {
            "containers": [{"name": "c", "image": "img"}]}}}})
        live = resource.to_manifest()
        live["metadata"]["resourceVersion"] = "7"
        live["spec"]["progressDeadlineSeconds"] = 600
        live["spec"]["template"]["spec"]["containers"][0]["terminationMessagePath"] = "/dev/termination-log"
        live["status"] = {"readyReplicas": 2}
        assert resource.in_sync(live)

    def test_in_sync_detects_drift(self):
        resource = Deployment(**resource_fields(), body={"spec": {"replicas": 2}})
        live = resource.to_manifest()
        live["spec"]["replicas"] = 5
        assert not resource.in_sync(live)

    def test_in_sync_requires_fingerprint(self):
        resource = ConfigMap(**resource_fields(), body={"data": {"a": "1"}})
        live = resource.to_manifest()
        live["metadata"]["annotations"][FINGERPRINT_ANNOTATION] = "stale"
        assert not resource.in_sync(live)

    def test_service_preserves_cluster_fields(self):
        resource = Service(**resource_fields(), body={"spec": {"type": "NodePort", "ports": [
            {"name": "http", "port": 80, "targetPort": 80}]}})
        live = resource.to_manifest()
        live["metadata"]["resourceVersion"] = "3"
        live["spec"]["clusterIP"] = "10.0.0.5"
        live["spec"]["ports"][0]["nodePort"] = 31000

        merged = resource.merge_into(live)
        assert merged["metadata"]["resourceVersion"] == "3"
        assert merged["spec"]["clusterIP"] == "10.0.0.5"
        assert merged["spec"]["ports"][0]["nodePort"] == 31000

    def test_statefulset_keeps_immutable_fields(self):
        resource = StatefulSet(**resource_fields(), body={"spec": {
            "replicas": 3,
            "volumeClaimTemplates": [{"metadata": {"name": "data"}, "spec": {"resources": {"requests": {"storage": "20Gi"}}}}],
        }})
        live = resource.to_manifest()
        live["spec"]["volumeClaimTemplates"][0]["spec"]["resources"]["requests"]["storage"] = "10Gi"
        assert resource.in_sync(live)

        merged = resource.merge_into(live)
        assert merged["spec"]["volumeClaimTemplates"][0]["spec"]["resources"]["requests"]["storage"] == "10Gi"

    def test_merge_keeps_foreign_labels(self):
        resource = ConfigMap(**resource_fields(), body={"data": {}})
        live = resource.to_manifest()
        live["metadata"]["labels"]["team"] = "observability"
        assert resource.merge_into(live)["metadata"]["labels"]["team"] == "observability"

    def test_secret_generates_missing_keys_only(self):
        secret = Secret(**resource_fields(name="mi-a-admin", component="credentials"),
                        static={"username": "admin"}, generated={"password": 8})
        created = secret.create_manifest(generate=lambda n: "x" * n)
        assert created["data"] == {"username": "YWRtaW4=", "password": "eHh4eHh4eHg="}

        live = dict(created, data={"username": "b3RoZXI="})
        merged = secret.merge_into(live, generate=lambda n: "y" * n)
        assert merged["data"]["username"] == "b3RoZXI="
        assert merged["data"]["password"] == "eXl5eXl5eXk="

    def test_secret_in_sync_needs_all_keys(self):
        secret = Secret(**resource_fields(name="mi-a-admin", component="credentials"),
                        static={"username": "admin"}, generated={"password": 8})
        live = secret.create_manifest(generate=lambda n: "x" * n)
        assert secret.in_sync(live)
        del live["data"]["password"]
        assert not secret.in_sync(live)
