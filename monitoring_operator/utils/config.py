"""Configuration management for the operator."""
import threading
from typing import Optional

import yaml
from pydantic import AliasChoices, BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..constants import (
    DEFAULT_CERT_DIR,
    DEFAULT_HTTP_PORT,
    DEFAULT_METRICS_PORT,
    DEFAULT_SETTINGS_CONFIGMAP,
    DEFAULT_WEBHOOK_PORT,
    SETTINGS_CONFIGMAP_KEY,
)
from ..errors import ConfigurationError


class Images(BaseModel):
    """Container images used by the rendered stack."""

    opensearch: str
    dashboards: str
    grafana: str
    prometheus: str
    alertmanager: str
    # Operator image carrying the monitoring-eswait and monitoring-policysync programs
    tools: str


class Config(BaseSettings):
    """Process configuration, read once at startup."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Scope
    namespace: str = Field(default="default", description="Namespace the operator runs in")
    watch_namespace: Optional[str] = Field(default=None, description="Only watch instances in this namespace")
    watch_instance: Optional[str] = Field(default=None, description="Only reconcile the instance with this name")
    settings_configmap: str = DEFAULT_SETTINGS_CONFIGMAP

    # Kubernetes
    kubeconfig: Optional[str] = None
    api_qps: float = 20.0
    api_burst: int = 30
    api_timeout_seconds: float = 30.0

    # HTTP surfaces
    http_port: int = DEFAULT_HTTP_PORT
    webhook_port: int = DEFAULT_WEBHOOK_PORT
    webhook_service: str = "monitoring-operator"
    cert_dir: str = DEFAULT_CERT_DIR

    # Logging
    log_level: str = "INFO"
    log_json: bool = False
    log_file: Optional[str] = None

    # Reconcile loop
    workers: int = Field(default=1, ge=1)
    backoff_base_seconds: float = 0.5
    backoff_cap_seconds: float = 300.0
    waiting_requeue_seconds: float = 10.0
    readiness_timeout_seconds: float = 15.0
    shutdown_grace_seconds: float = 30.0

    # Search cluster
    search_target_version: str = Field(
        default="2.11.1",
        validation_alias=AliasChoices("search_target_version", "opensearch_wait_target_version"),
    )
    search_endpoint_override: Optional[str] = None

    # Images
    opensearch_image: str = "opensearchproject/opensearch"
    dashboards_image: str = "opensearchproject/opensearch-dashboards"
    grafana_image: str = "grafana/grafana:10.2.3"
    prometheus_image: str = "prom/prometheus:v2.48.1"
    alertmanager_image: str = "prom/alertmanager:v0.26.0"
    tools_image: str = "monitoring-operator:0.1.0"

    @field_validator('namespace')
    @classmethod
    def validate_namespace(cls, v):
        if not v or not v.strip():
            raise ValueError('namespace must not be empty')
        return v.strip()

    @property
    def clusterwide(self) -> bool:
        return not self.watch_namespace

    def images(self) -> Images:
        return Images(
            opensearch=self.opensearch_image,
            dashboards=self.dashboards_image,
            grafana=self.grafana_image,
            prometheus=self.prometheus_image,
            alertmanager=self.alertmanager_image,
            tools=self.tools_image,
        )


class PvcSettings(BaseModel):
    storageClass: Optional[str] = None


class OperatorSettings(BaseModel):
    """Operator-wide settings held in a ConfigMap."""

    envName: str = "default"
    defaultSimpleCompReplicas: int = Field(1, ge=0)
    defaultPrometheusReplicas: int = Field(3, ge=0)
    metricsPort: int = Field(DEFAULT_METRICS_PORT, ge=1, le=65535)
    defaultIngressTargetDNSName: Optional[str] = None
    pvcs: PvcSettings = Field(default_factory=PvcSettings)

    @classmethod
    def from_configmap(cls, configmap: dict) -> "OperatorSettings":
        """Parse the YAML document held under the `config` key of a ConfigMap."""
        data = configmap.get('data') or {}
        if SETTINGS_CONFIGMAP_KEY not in data:
            raise ConfigurationError(f"settings ConfigMap has no '{SETTINGS_CONFIGMAP_KEY}' key")
        try:
            document = yaml.safe_load(data[SETTINGS_CONFIGMAP_KEY]) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"settings ConfigMap is not valid YAML: {e}") from e
        if not isinstance(document, dict):
            raise ConfigurationError("settings ConfigMap must hold a YAML mapping")
        try:
            return cls.model_validate(document)
        except ValidationError as e:
            raise ConfigurationError(f"invalid operator settings: {e}") from e


class SettingsStore:
    """Thread-safe holder for the current operator settings."""

    def __init__(self, settings: OperatorSettings):
        self._settings = settings
        self._lock = threading.Lock()

    def get(self) -> OperatorSettings:
        with self._lock:
            return self._settings

    def set(self, settings: OperatorSettings) -> bool:
        """Replace the settings; returns whether they changed."""
        with self._lock:
            changed = settings != self._settings
            self._settings = settings
            return changed
