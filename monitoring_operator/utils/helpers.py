"""Helper utility functions."""
import hashlib
import json
from decimal import ROUND_CEILING
from typing import Any, Dict, Iterable, Tuple

from kubernetes.utils import parse_quantity

from ..constants import (
    COMPONENT_LABEL,
    DASHBOARDS_PORT,
    INSTANCE_LABEL,
    MANAGED_BY,
    MANAGED_BY_LABEL,
    NAME_PREFIX,
)


def build_key(namespace: str, name: str) -> str:
    """Build the reconcile key of an instance."""
    return f"{namespace}/{name}"


def split_key(key: str) -> Tuple[str, str]:
    """Split a reconcile key into namespace and name."""
    namespace, sep, name = key.partition("/")
    if not sep or not namespace or not name:
        raise ValueError(f"Invalid reconcile key '{key}'")
    return namespace, name


def resource_name(instance_name: str, component: str) -> str:
    """Build the name of a managed object from its instance and component."""
    return f"{NAME_PREFIX}-{instance_name}-{component}"


def managed_labels(instance_name: str, component: str) -> Dict[str, str]:
    return {
        INSTANCE_LABEL: instance_name,
        COMPONENT_LABEL: component,
        MANAGED_BY_LABEL: MANAGED_BY,
    }


def label_selector(labels: Dict[str, str]) -> str:
    return ",".join(f"{k}={v}" for k, v in sorted(labels.items()))


def canonical_json(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"))


def sha256_hex(value: Any) -> str:
    return hashlib.sha256(canonical_json(value).encode("utf-8")).hexdigest()


def is_empty(value: Any) -> bool:
    """Values the API server may drop on round-trip."""
    if value is None or value is False or value == "":
        return True
    if isinstance(value, (dict, list)) and not value:
        return True
    return isinstance(value, int) and not isinstance(value, bool) and value == 0


def is_subset(desired: Any, live: Any) -> bool:
    """
    Check that every field set in `desired` is present and equal in `live`.

    Fields only present in `live` are ignored, and so are empty desired
    values, which the API server omits when serializing. Lists must have
    the same length and match elementwise.
    """
    if isinstance(desired, dict):
        if not isinstance(live, dict):
            return live is None and all(is_empty(v) for v in desired.values())
        for key, value in desired.items():
            if key not in live or live[key] is None:
                if not is_empty(value):
                    return False
                continue
            if not is_subset(value, live[key]):
                return False
        return True
    if isinstance(desired, list):
        if not isinstance(live, list) or len(desired) != len(live):
            return not desired and not live
        return all(is_subset(d, l) for d, l in zip(desired, live))
    if is_empty(desired) and live is None:
        return True
    return desired == live


def strip_paths(obj: Dict[str, Any], paths: Iterable[Tuple[str, ...]]) -> Dict[str, Any]:
    """Return a deep copy of `obj` without the given nested key paths."""
    result = json.loads(json.dumps(obj))
    for path in paths:
        node = result
        for part in path[:-1]:
            node = node.get(part) if isinstance(node, dict) else None
            if node is None:
                break
        if isinstance(node, dict):
            node.pop(path[-1], None)
    return result


def search_endpoint(instance_name: str, namespace: str) -> str:
    """In-cluster URL of an instance's search HTTP service."""
    return f"http://{resource_name(instance_name, 'os-http')}.{namespace}.svc:9200"


def dashboards_endpoint(instance_name: str, namespace: str) -> str:
    """In-cluster URL of an instance's search dashboards service."""
    return f"http://{resource_name(instance_name, 'osd')}.{namespace}.svc:{DASHBOARDS_PORT}"


BINARY_SUFFIXES = (("Ei", 6), ("Pi", 5), ("Ti", 4), ("Gi", 3), ("Mi", 2), ("Ki", 1))
DECIMAL_SUFFIXES = (("E", 18), ("P", 15), ("T", 12), ("G", 9), ("M", 6), ("k", 3), ("", 0),
                    ("m", -3), ("u", -6), ("n", -9))


def canonical_quantity(value: str) -> str:
    """
    Render a resource quantity the way the API server stores it.

    Binary quantities keep the largest Ki..Ei suffix that leaves a whole
    number, decimal ones the largest power-of-1000 suffix, so "1024Mi"
    becomes "1Gi" and "0.5" becomes "500m". Precision below 1n rounds up.
    """
    nanos = int((parse_quantity(value) * 10 ** 9).to_integral_value(rounding=ROUND_CEILING))
    if nanos == 0:
        return "0"
    binary = value.endswith(tuple(suffix for suffix, _ in BINARY_SUFFIXES))
    if binary and nanos % 10 ** 9 == 0 and abs(nanos) >= 1024 * 10 ** 9:
        whole = nanos // 10 ** 9
        for suffix, power in BINARY_SUFFIXES:
            if whole % 1024 ** power == 0:
                return f"{whole // 1024 ** power}{suffix}"
    for suffix, exponent in DECIMAL_SUFFIXES:
        divisor = 10 ** (exponent + 9)
        if nanos % divisor == 0:
            return f"{nanos // divisor}{suffix}"
    return value
