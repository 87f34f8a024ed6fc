"""Rate-limited Kubernetes API client used by the reconcile loop."""
import threading
import time
from typing import Any, Callable, Dict, List, Optional

from kubernetes import client
from kubernetes.client.rest import ApiException
from loguru import logger
from urllib3.exceptions import HTTPError

from ..constants import CRD_NAME, GROUP, PLURAL, VERSION
from ..errors import ClusterError, ConflictError, NotFoundError


class TokenBucket:
    """
    Client-side QPS/burst limiter.

    Thread-safe; callers block in `acquire` until a token is available.
    """

    def __init__(self, qps: float, burst: int, clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep):
        self.qps = qps
        self.burst = max(1, burst)
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(self.burst)
        self._updated = clock()
        self._lock = threading.Lock()

    def _reserve(self) -> float:
        """Take a token and return how long the caller must wait for it."""
        with self._lock:
            now = self._clock()
            self._tokens = min(self.burst, self._tokens + (now - self._updated) * self.qps)
            self._updated = now
            self._tokens -= 1
            if self._tokens >= 0:
                return 0.0
            return -self._tokens / self.qps

    def acquire(self) -> None:
        if self.qps <= 0:
            return
        delay = self._reserve()
        if delay > 0:
            self._sleep(delay)


# kind -> (api class, method suffix)
_KIND_APIS = {
    "Deployment": (client.AppsV1Api, "deployment"),
    "StatefulSet": (client.AppsV1Api, "stateful_set"),
    "Service": (client.CoreV1Api, "service"),
    "ConfigMap": (client.CoreV1Api, "config_map"),
    "Secret": (client.CoreV1Api, "secret"),
    "Ingress": (client.NetworkingV1Api, "ingress"),
    "Job": (client.BatchV1Api, "job"),
}


class ClusterClient:
    """
    Typed access to the cluster API.

    Every call is rate limited and bounded by a request timeout. Responses
    are returned as plain dictionaries in API (camelCase) form, and
    ApiException is translated into NotFoundError, ConflictError or
    ClusterError.
    """

    def __init__(self, qps: float = 20.0, burst: int = 30, timeout: float = 30.0,
                 api_client: Optional[client.ApiClient] = None):
        self.api_client = api_client or client.ApiClient()
        self.timeout = timeout
        self.limiter = TokenBucket(qps, burst)
        self._apis: Dict[type, Any] = {}

    def _api(self, api_class):
        if api_class not in self._apis:
            self._apis[api_class] = api_class(self.api_client)
        return self._apis[api_class]

    def _call(self, description: str, fn, *args, **kwargs):
        self.limiter.acquire()
        try:
            return fn(*args, _request_timeout=self.timeout, **kwargs)
        except ApiException as e:
            if e.status == 404:
                raise NotFoundError(f"{description}: not found") from e
            if e.status == 409:
                raise ConflictError(f"{description}: conflict: {e.reason}") from e
            raise ClusterError(f"{description}: {e.status} {e.reason}", status=e.status or 0) from e
        except (OSError, HTTPError) as e:
            raise ClusterError(f"{description}: {e}") from e

    def _to_dict(self, obj) -> Dict[str, Any]:
        if isinstance(obj, dict):
            return obj
        return self.api_client.sanitize_for_serialization(obj)

    def _method(self, kind: str, verb: str):
        try:
            api_class, suffix = _KIND_APIS[kind]
        except KeyError:
            raise ValueError(f"Unsupported kind '{kind}'")
        return getattr(self._api(api_class), f"{verb}_namespaced_{suffix}")

    def get(self, kind: str, namespace: str, name: str) -> Dict[str, Any]:
        fn = self._method(kind, "read")
        return self._to_dict(self._call(f"get {kind} {namespace}/{name}", fn, name, namespace))

    def create(self, kind: str, namespace: str, manifest: Dict[str, Any]) -> Dict[str, Any]:
        name = manifest['metadata']['name']
        fn = self._method(kind, "create")
        return self._to_dict(self._call(f"create {kind} {namespace}/{name}", fn, namespace, manifest))

    def replace(self, kind: str, namespace: str, name: str, manifest: Dict[str, Any]) -> Dict[str, Any]:
        fn = self._method(kind, "replace")
        return self._to_dict(self._call(f"replace {kind} {namespace}/{name}", fn, name, namespace, manifest))

    def delete(self, kind: str, namespace: str, name: str) -> None:
        fn = self._method(kind, "delete")
        self._call(f"delete {kind} {namespace}/{name}", fn, name, namespace, propagation_policy="Background")

    def list(self, kind: str, namespace: str, label_selector: str) -> List[Dict[str, Any]]:
        fn = self._method(kind, "list")
        result = self._to_dict(self._call(f"list {kind} in {namespace}", fn, namespace, label_selector=label_selector))
        items = result.get('items') or []
        return sorted(items, key=lambda item: item['metadata']['name'])

    def get_instance(self, namespace: str, name: str) -> Dict[str, Any]:
        api = self._api(client.CustomObjectsApi)
        return self._call(f"get {PLURAL} {namespace}/{name}", api.get_namespaced_custom_object,
                          GROUP, VERSION, namespace, PLURAL, name)

    def patch_instance_status(self, namespace: str, name: str, status: Dict[str, Any]) -> Dict[str, Any]:
        api = self._api(client.CustomObjectsApi)
        logger.debug(f"Patching status of {namespace}/{name}")
        return self._call(f"patch status {PLURAL} {namespace}/{name}", api.patch_namespaced_custom_object_status,
                          GROUP, VERSION, namespace, PLURAL, name, {"status": status})

    def crd_exists(self) -> bool:
        api = self._api(client.ApiextensionsV1Api)
        try:
            self._call(f"get crd {CRD_NAME}", api.read_custom_resource_definition, CRD_NAME)
        except NotFoundError:
            return False
        return True
