"""Building blocks shared by the component builders."""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..constants import ROLE_LABEL
from ..models.spec import MonitoringInstance, Resources
from ..utils.config import Images, OperatorSettings
from ..utils.helpers import dashboards_endpoint, managed_labels, resource_name, search_endpoint


@dataclass(frozen=True)
class BuildContext:
    """Inputs shared by every component builder."""

    instance: MonitoringInstance
    settings: OperatorSettings
    images: Images
    search_version: str

    @property
    def namespace(self) -> str:
        return self.instance.namespace

    @property
    def spec(self):
        return self.instance.spec

    def name(self, component: str) -> str:
        return resource_name(self.instance.name, component)

    def labels(self, component: str, role: Optional[str] = None) -> Dict[str, str]:
        labels = managed_labels(self.instance.name, component)
        if role:
            labels[ROLE_LABEL] = role
        return labels

    def selector(self, component: str, role: Optional[str] = None) -> Dict[str, str]:
        return self.labels(component, role)

    def metadata(self, component: str, name: str, role: Optional[str] = None) -> Dict[str, Any]:
        """Common fields of every managed resource model."""
        return {
            "namespace": self.namespace,
            "name": name,
            "component": component,
            "owner": self.instance.owner_reference(),
            "labels": self.labels(component, role),
        }

    def search_url(self) -> str:
        return search_endpoint(self.instance.name, self.namespace)

    def dashboards_url(self) -> str:
        return dashboards_endpoint(self.instance.name, self.namespace)


def env(values: Dict[str, str]) -> List[Dict[str, Any]]:
    return [{"name": k, "value": v} for k, v in values.items()]


def http_probe(path: str, port: int, initial_delay: int = 10, period: int = 10) -> Dict[str, Any]:
    return {
        "httpGet": {"path": path, "port": port},
        "initialDelaySeconds": initial_delay,
        "periodSeconds": period,
    }


def container(name: str, image: str, ports: Dict[str, int], resources: Optional[Resources] = None,
              **fields: Any) -> Dict[str, Any]:
    spec: Dict[str, Any] = {"name": name, "image": image, "imagePullPolicy": "IfNotPresent"}
    if ports:
        spec["ports"] = [{"name": port_name, "containerPort": port} for port_name, port in ports.items()]
    requirements = resources.to_requirements() if resources else {}
    if requirements:
        spec["resources"] = requirements
    spec.update({k: v for k, v in fields.items() if v is not None})
    return spec


def pod_template(labels: Dict[str, str], containers: List[Dict[str, Any]],
                 volumes: Optional[List[Dict[str, Any]]] = None, **fields: Any) -> Dict[str, Any]:
    spec: Dict[str, Any] = {"containers": containers}
    if volumes:
        spec["volumes"] = volumes
    spec.update({k: v for k, v in fields.items() if v is not None})
    return {"metadata": {"labels": dict(labels)}, "spec": spec}


def service_body(selector: Dict[str, str], ports: Dict[str, int], service_type: str = "ClusterIP",
                 headless: bool = False) -> Dict[str, Any]:
    spec: Dict[str, Any] = {
        "selector": dict(selector),
        "ports": [
            {"name": name, "port": port, "targetPort": port, "protocol": "TCP"}
            for name, port in ports.items()
        ],
    }
    if headless:
        spec["clusterIP"] = "None"
        spec["publishNotReadyAddresses"] = True
    else:
        spec["type"] = service_type
    return {"spec": spec}


def config_volume(name: str, configmap: str) -> Dict[str, Any]:
    return {"name": name, "configMap": {"name": configmap}}


def empty_dir(name: str) -> Dict[str, Any]:
    return {"name": name, "emptyDir": {}}


def volume_claim_template(name: str, size: str, storage_class: Optional[str]) -> Dict[str, Any]:
    spec: Dict[str, Any] = {
        "accessModes": ["ReadWriteOnce"],
        "resources": {"requests": {"storage": size}},
    }
    if storage_class:
        spec["storageClassName"] = storage_class
    return {"metadata": {"name": name}, "spec": spec}
