"""Pytest configuration and fixtures for the test suite."""
import copy
import itertools
from typing import Any, Dict, List, Optional, Tuple
from unittest.mock import Mock

import pytest

from monitoring_operator.constants import API_VERSION, KIND
from monitoring_operator.errors import ConflictError, NotFoundError
from monitoring_operator.readiness import ReadinessGate
from monitoring_operator.utils.config import Config, OperatorSettings, SettingsStore

INSTANCE_KIND = "MonitoringInstance"


class FakeCluster:
    """
    In-memory stand-in for ClusterClient.

    Bumps resourceVersion on every write, rejects stale replaces with
    ConflictError, assigns a cluster IP to services and records every write.
    """

    def __init__(self):
        self.objects: Dict[Tuple[str, str, str], Dict[str, Any]] = {}
        self.writes: List[Tuple[str, str, str]] = []
        self.fail_next: Dict[Tuple[str, str, str], Exception] = {}
        self._versions = itertools.count(1)
        self._ips = itertools.count(10)
        self.crd_present = True

    # helpers for tests

    def add_instance(self, name: str, spec: Dict[str, Any], namespace: str = "default",
                     generation: int = 1, uid: Optional[str] = None) -> Dict[str, Any]:
        body = {
            "apiVersion": API_VERSION,
            "kind": KIND,
            "metadata": {
                "name": name,
                "namespace": namespace,
                "uid": uid or f"uid-{name}",
                "generation": generation,
                "resourceVersion": str(next(self._versions)),
            },
            "spec": copy.deepcopy(spec),
        }
        self.objects[(INSTANCE_KIND, namespace, name)] = body
        return body

    def update_spec(self, name: str, spec: Dict[str, Any], namespace: str = "default") -> None:
        body = self.objects[(INSTANCE_KIND, namespace, name)]
        body["spec"] = copy.deepcopy(spec)
        body["metadata"]["generation"] += 1

    def delete_instance(self, name: str, namespace: str = "default") -> None:
        """Delete an instance and garbage-collect everything it owns."""
        body = self.objects.pop((INSTANCE_KIND, namespace, name))
        uid = body["metadata"]["uid"]
        for key, obj in list(self.objects.items()):
            owners = obj["metadata"].get("ownerReferences") or []
            if any(ref.get("uid") == uid for ref in owners):
                del self.objects[key]

    def instance_status(self, name: str, namespace: str = "default") -> Dict[str, Any]:
        return self.objects[(INSTANCE_KIND, namespace, name)].get("status") or {}

    def owned_by(self, uid: str) -> List[Dict[str, Any]]:
        return [
            obj for obj in self.objects.values()
            if any(ref.get("uid") == uid for ref in obj["metadata"].get("ownerReferences") or [])
        ]

    def live(self, kind: str, name: str, namespace: str = "default") -> Dict[str, Any]:
        return self.objects[(kind, namespace, name)]

    def _maybe_fail(self, verb: str, kind: str, name: str) -> None:
        error = self.fail_next.pop((verb, kind, name), None)
        if error is not None:
            raise error

    # ClusterClient surface

    def get(self, kind: str, namespace: str, name: str) -> Dict[str, Any]:
        self._maybe_fail("get", kind, name)
        try:
            return copy.deepcopy(self.objects[(kind, namespace, name)])
        except KeyError:
            raise NotFoundError(f"get {kind} {namespace}/{name}: not found")

    def create(self, kind: str, namespace: str, manifest: Dict[str, Any]) -> Dict[str, Any]:
        name = manifest["metadata"]["name"]
        self._maybe_fail("create", kind, name)
        if (kind, namespace, name) in self.objects:
            raise ConflictError(f"create {kind} {namespace}/{name}: already exists")
        obj = copy.deepcopy(manifest)
        obj["metadata"]["resourceVersion"] = str(next(self._versions))
        obj["metadata"]["uid"] = f"uid-{kind.lower()}-{name}"
        if kind == "Service" and obj.get("spec", {}).get("clusterIP") != "None":
            obj["spec"]["clusterIP"] = f"10.96.0.{next(self._ips)}"
            obj["spec"].setdefault("type", "ClusterIP")
        obj["status"] = {}
        self.objects[(kind, namespace, name)] = obj
        self.writes.append(("create", kind, name))
        return copy.deepcopy(obj)

    def replace(self, kind: str, namespace: str, name: str, manifest: Dict[str, Any]) -> Dict[str, Any]:
        self._maybe_fail("replace", kind, name)
        current = self.objects.get((kind, namespace, name))
        if current is None:
            raise NotFoundError(f"replace {kind} {namespace}/{name}: not found")
        if manifest["metadata"].get("resourceVersion") != current["metadata"]["resourceVersion"]:
            raise ConflictError(f"replace {kind} {namespace}/{name}: conflict")
        obj = copy.deepcopy(manifest)
        obj["metadata"]["resourceVersion"] = str(next(self._versions))
        obj["metadata"]["uid"] = current["metadata"]["uid"]
        obj["status"] = current.get("status", {})
        self.objects[(kind, namespace, name)] = obj
        self.writes.append(("replace", kind, name))
        return copy.deepcopy(obj)

    def delete(self, kind: str, namespace: str, name: str) -> None:
        self._maybe_fail("delete", kind, name)
        if self.objects.pop((kind, namespace, name), None) is None:
            raise NotFoundError(f"delete {kind} {namespace}/{name}: not found")
        self.writes.append(("delete", kind, name))

    def list(self, kind: str, namespace: str, label_selector: str) -> List[Dict[str, Any]]:
        wanted = dict(part.split("=", 1) for part in label_selector.split(",") if part)
        items = []
        for (k, ns, _), obj in self.objects.items():
            if k != kind or ns != namespace:
                continue
            labels = obj["metadata"].get("labels") or {}
            if all(labels.get(key) == value for key, value in wanted.items()):
                items.append(copy.deepcopy(obj))
        return sorted(items, key=lambda item: item["metadata"]["name"])

    def get_instance(self, namespace: str, name: str) -> Dict[str, Any]:
        return self.get(INSTANCE_KIND, namespace, name)

    def patch_instance_status(self, namespace: str, name: str, status: Dict[str, Any]) -> Dict[str, Any]:
        self._maybe_fail("patch", INSTANCE_KIND, name)
        body = self.objects.get((INSTANCE_KIND, namespace, name))
        if body is None:
            raise NotFoundError(f"patch status {namespace}/{name}: not found")
        merged = dict(body.get("status") or {})
        merged.update(copy.deepcopy(status))
        body["status"] = merged
        self.writes.append(("patch", INSTANCE_KIND, name))
        return copy.deepcopy(body)

    def crd_exists(self) -> bool:
        return self.crd_present


@pytest.fixture
def cluster():
    """In-memory cluster."""
    return FakeCluster()


@pytest.fixture
def test_config():
    """Test configuration."""
    return Config(
        namespace="monitoring-system",
        settings_configmap="monitoring-operator-config",
        cert_dir="/tmp/certs",
        search_target_version="2.11.1",
        waiting_requeue_seconds=10,
        readiness_timeout_seconds=1,
    )


@pytest.fixture
def operator_settings():
    return OperatorSettings(envName="test", defaultSimpleCompReplicas=1, defaultPrometheusReplicas=2)


@pytest.fixture
def settings_store(operator_settings):
    return SettingsStore(operator_settings)


@pytest.fixture
def ready_gate():
    """Readiness gate that always reports the search cluster ready."""
    gate = Mock(spec=ReadinessGate)
    gate.wait.return_value = None
    return gate


@pytest.fixture
def sample_spec():
    """Sample MonitoringInstance specification with every component enabled."""
    return {
        "uri": "example.com",
        "serviceType": "ClusterIP",
        "opensearch": {
            "enabled": True,
            "storage": {"size": "50Gi"},
            "masterNode": {"replicas": 3},
            "dataNode": {"replicas": 2, "javaOpts": "-Xms2g -Xmx2g"},
            "ingestNode": {"replicas": 1},
            "policies": [
                {"policyName": "app-logs", "indexPattern": "app-logs-*", "minIndexAge": "14d",
                 "rollover": {"minIndexAge": "2d", "minSize": "10gb"}},
            ],
        },
        "opensearchDashboards": {"enabled": True},
        "grafana": {"enabled": True},
        "prometheus": {"enabled": True, "storage": {"size": "20Gi"}, "retentionPeriod": 7},
        "alertmanager": {"enabled": True},
    }


@pytest.fixture
def sample_body(sample_spec):
    """Complete MonitoringInstance CR."""
    return {
        "apiVersion": API_VERSION,
        "kind": KIND,
        "metadata": {
            "name": "test-stack",
            "namespace": "default",
            "uid": "uid-test-stack",
            "generation": 1,
        },
        "spec": sample_spec,
    }
