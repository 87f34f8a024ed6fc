"""Process entry point for the Monitoring Operator."""
import sys
from typing import List

import kopf
from dotenv import load_dotenv
from loguru import logger
from pydantic import ValidationError

from .clients.cluster import ClusterClient
from .engine.controller import Controller
from .engine.workqueue import ExponentialBackoff, WorkQueue
from .errors import ClusterError, ConfigurationError, StartupError
from .handlers import MonitoringInstanceReconciler, load_kubernetes_config, register_handlers
from .security.certificates import provision_certificates
from .utils.config import Config, OperatorSettings, SettingsStore


def configure_logging(app_config: Config) -> None:
    logger.remove()
    logger.add(sys.stderr, level=app_config.log_level, serialize=app_config.log_json)
    if app_config.log_file:
        logger.add(app_config.log_file, rotation="1 day", retention="7 days", level=app_config.log_level)


def load_operator_settings(cluster: ClusterClient, app_config: Config) -> OperatorSettings:
    """Read the settings ConfigMap; its absence is fatal."""
    try:
        configmap = cluster.get("ConfigMap", app_config.namespace, app_config.settings_configmap)
    except ClusterError as e:
        raise ConfigurationError(
            f"Cannot read settings ConfigMap {app_config.namespace}/{app_config.settings_configmap}: {e}"
        ) from e
    return OperatorSettings.from_configmap(configmap)


def build_memo(app_config: Config) -> kopf.Memo:
    """Provision TLS material and construct everything the handlers share."""
    provision_certificates(app_config.cert_dir, app_config.webhook_service, app_config.namespace)
    load_kubernetes_config(app_config)
    cluster = ClusterClient(qps=app_config.api_qps, burst=app_config.api_burst,
                            timeout=app_config.api_timeout_seconds)
    settings = SettingsStore(load_operator_settings(cluster, app_config))
    reconciler = MonitoringInstanceReconciler(cluster, app_config, settings)
    queue = WorkQueue(ExponentialBackoff(app_config.backoff_base_seconds, app_config.backoff_cap_seconds))
    controller = Controller(reconciler.reconcile, workers=app_config.workers, queue=queue)
    return kopf.Memo(config=app_config, cluster=cluster, settings=settings, controller=controller)


def watched_namespaces(app_config: Config) -> List[str]:
    if app_config.clusterwide:
        return []
    # The settings ConfigMap lives in the operator's own namespace
    return sorted({app_config.watch_namespace, app_config.namespace})


def main() -> int:
    load_dotenv()
    try:
        app_config = Config()
    except ValidationError as e:
        logger.error(f"Invalid operator configuration: {e}")
        return 1

    configure_logging(app_config)
    logger.info("Starting Monitoring Operator")
    try:
        memo = build_memo(app_config)
    except StartupError as e:
        logger.error(f"Startup failed: {e}")
        return 1

    register_handlers()
    kopf.run(
        standalone=True,
        clusterwide=app_config.clusterwide,
        namespaces=watched_namespaces(app_config),
        liveness_endpoint=f"http://0.0.0.0:{app_config.http_port}/health",
        memo=memo,
    )
    return 0


def run() -> None:
    sys.exit(main())
