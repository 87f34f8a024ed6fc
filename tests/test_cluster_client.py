"""Tests for the rate-limited cluster client."""
from unittest.mock import Mock

import pytest
from kubernetes import client
from kubernetes.client.rest import ApiException
from urllib3.exceptions import ProtocolError

from monitoring_operator.clients.cluster import ClusterClient, TokenBucket
from monitoring_operator.errors import ClusterError, ConflictError, NotFoundError


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class TestTokenBucket:

    def test_burst_then_throttle(self):
        clock = FakeClock()
        bucket = TokenBucket(qps=2, burst=3, clock=clock, sleep=clock.sleep)
        for _ in range(3):
            bucket.acquire()
        assert clock.sleeps == []

        bucket.acquire()
        assert clock.sleeps == [pytest.approx(0.5)]

    def test_refills_over_time(self):
        clock = FakeClock()
        bucket = TokenBucket(qps=1, burst=2, clock=clock, sleep=clock.sleep)
        bucket.acquire()
        bucket.acquire()
        clock.now += 5
        bucket.acquire()
        bucket.acquire()
        assert clock.sleeps == []

    def test_unlimited(self):
        clock = FakeClock()
        bucket = TokenBucket(qps=0, burst=1, clock=clock, sleep=clock.sleep)
        for _ in range(100):
            bucket.acquire()
        assert clock.sleeps == []


@pytest.fixture
def apis():
    core = Mock(spec=client.CoreV1Api)
    apps = Mock(spec=client.AppsV1Api)
    custom = Mock(spec=client.CustomObjectsApi)
    extensions = Mock(spec=client.ApiextensionsV1Api)
    return {
        client.CoreV1Api: core,
        client.AppsV1Api: apps,
        client.CustomObjectsApi: custom,
        client.ApiextensionsV1Api: extensions,
    }


@pytest.fixture
def cluster_client(apis):
    api_client = Mock(spec=client.ApiClient)
    api_client.sanitize_for_serialization.side_effect = lambda obj: obj.to_dict()
    cluster = ClusterClient(qps=0, burst=1, timeout=7, api_client=api_client)
    cluster._apis.update(apis)
    return cluster


class TestClusterClient:
    """Verb dispatch and error translation."""

    def test_get_dispatches_by_kind(self, cluster_client, apis):
        apis[client.AppsV1Api].read_namespaced_deployment.return_value = {"metadata": {"name": "web"}}

        assert cluster_client.get("Deployment", "ns", "web") == {"metadata": {"name": "web"}}
        apis[client.AppsV1Api].read_namespaced_deployment.assert_called_once_with("web", "ns", _request_timeout=7)

    def test_model_responses_are_serialized(self, cluster_client, apis):
        apis[client.CoreV1Api].read_namespaced_config_map.return_value = client.V1ConfigMap(
            metadata=client.V1ObjectMeta(name="cfg"), data={"a": "b"})

        result = cluster_client.get("ConfigMap", "ns", "cfg")
        assert result["data"] == {"a": "b"}

    def test_not_found(self, cluster_client, apis):
        apis[client.CoreV1Api].read_namespaced_service.side_effect = ApiException(status=404, reason="Not Found")
        with pytest.raises(NotFoundError):
            cluster_client.get("Service", "ns", "svc")

    def test_conflict(self, cluster_client, apis):
        apis[client.CoreV1Api].replace_namespaced_secret.side_effect = ApiException(status=409, reason="Conflict")
        with pytest.raises(ConflictError):
            cluster_client.replace("Secret", "ns", "s", {"metadata": {"name": "s"}})

    def test_server_error(self, cluster_client, apis):
        apis[client.AppsV1Api].create_namespaced_stateful_set.side_effect = ApiException(status=500, reason="Boom")
        with pytest.raises(ClusterError) as exc_info:
            cluster_client.create("StatefulSet", "ns", {"metadata": {"name": "sts"}})
        assert exc_info.value.status == 500
        assert not isinstance(exc_info.value, (NotFoundError, ConflictError))

    def test_transport_error(self, cluster_client, apis):
        apis[client.CoreV1Api].delete_namespaced_config_map.side_effect = ProtocolError("connection reset")
        with pytest.raises(ClusterError):
            cluster_client.delete("ConfigMap", "ns", "cfg")

    def test_delete_uses_background_propagation(self, cluster_client, apis):
        cluster_client.delete("Secret", "ns", "s")
        apis[client.CoreV1Api].delete_namespaced_secret.assert_called_once_with(
            "s", "ns", _request_timeout=7, propagation_policy="Background")

    def test_list_sorted_by_name(self, cluster_client, apis):
        apis[client.CoreV1Api].list_namespaced_service.return_value = {
            "items": [{"metadata": {"name": "b"}}, {"metadata": {"name": "a"}}]
        }
        items = cluster_client.list("Service", "ns", "app=x")
        assert [item["metadata"]["name"] for item in items] == ["a", "b"]
        apis[client.CoreV1Api].list_namespaced_service.assert_called_once_with(
            "ns", _request_timeout=7, label_selector="app=x")

    def test_unsupported_kind(self, cluster_client):
        with pytest.raises(ValueError):
            cluster_client.get("Pod", "ns", "p")

    def test_patch_instance_status(self, cluster_client, apis):
        cluster_client.patch_instance_status("ns", "stack", {"phase": "Ready"})
        args = apis[client.CustomObjectsApi].patch_namespaced_custom_object_status.call_args.args
        assert args == ("monitoring-operator.dev", "v1", "ns", "monitoringinstances", "stack",
                        {"status": {"phase": "Ready"}})

    def test_crd_exists(self, cluster_client, apis):
        assert cluster_client.crd_exists()
        apis[client.ApiextensionsV1Api].read_custom_resource_definition.side_effect = ApiException(status=404)
        assert not cluster_client.crd_exists()
