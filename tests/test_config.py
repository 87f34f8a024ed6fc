"""Tests for process configuration and operator settings."""
import pytest
from pydantic import ValidationError

from monitoring_operator.errors import ConfigurationError
from monitoring_operator.utils.config import Config, OperatorSettings, SettingsStore


def configmap(document):
    return {"metadata": {"name": "monitoring-operator-config"}, "data": {"config": document}}


class TestConfig:
    """Environment-driven process configuration."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("NAMESPACE", raising=False)
        monkeypatch.delenv("WATCH_NAMESPACE", raising=False)
        config = Config(_env_file=None)
        assert config.namespace == "default"
        assert config.workers == 1
        assert config.search_target_version == "2.11.1"
        assert config.clusterwide

    def test_environment(self, monkeypatch):
        monkeypatch.setenv("NAMESPACE", "monitoring-system")
        monkeypatch.setenv("WATCH_NAMESPACE", "tenants")
        monkeypatch.setenv("WORKERS", "4")
        monkeypatch.setenv("OPENSEARCH_WAIT_TARGET_VERSION", "2.12.0")
        config = Config(_env_file=None)
        assert config.namespace == "monitoring-system"
        assert not config.clusterwide
        assert config.workers == 4
        assert config.search_target_version == "2.12.0"

    def test_invalid_namespace(self):
        with pytest.raises(ValidationError):
            Config(_env_file=None, namespace="  ")

    def test_invalid_workers(self):
        with pytest.raises(ValidationError):
            Config(_env_file=None, workers=0)

    def test_images(self):
        images = Config(_env_file=None, grafana_image="grafana/grafana:11.0.0").images()
        assert images.grafana == "grafana/grafana:11.0.0"
        assert images.opensearch == "opensearchproject/opensearch"


class TestOperatorSettings:
    """Settings parsed from the operator ConfigMap."""

    def test_parse(self):
        settings = OperatorSettings.from_configmap(configmap(
            "envName: prod\n"
            "defaultPrometheusReplicas: 2\n"
            "defaultIngressTargetDNSName: lb.example.net\n"
            "pvcs:\n  storageClass: gp3\n"
        ))
        assert settings.envName == "prod"
        assert settings.defaultPrometheusReplicas == 2
        assert settings.defaultSimpleCompReplicas == 1
        assert settings.pvcs.storageClass == "gp3"

    def test_empty_document_uses_defaults(self):
        assert OperatorSettings.from_configmap(configmap("")) == OperatorSettings()

    def test_missing_key(self):
        with pytest.raises(ConfigurationError, match="no 'config' key"):
            OperatorSettings.from_configmap({"data": {}})

    def test_invalid_yaml(self):
        with pytest.raises(ConfigurationError, match="not valid YAML"):
            OperatorSettings.from_configmap(configmap("envName: [unclosed"))

    def test_not_a_mapping(self):
        with pytest.raises(ConfigurationError, match="mapping"):
            OperatorSettings.from_configmap(configmap("- a\n- b\n"))

    def test_invalid_values(self):
        with pytest.raises(ConfigurationError, match="invalid operator settings"):
            OperatorSettings.from_configmap(configmap("metricsPort: 70000\n"))


class TestSettingsStore:

    def test_set_reports_change(self):
        store = SettingsStore(OperatorSettings())
        assert not store.set(OperatorSettings())
        assert store.set(OperatorSettings(envName="prod"))
        assert store.get().envName == "prod"
