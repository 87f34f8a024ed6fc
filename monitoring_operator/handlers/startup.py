"""Startup and cleanup configuration for the operator."""
import logging
import os

import kopf
from kubernetes import config as kube_config
from kubernetes.config.config_exception import ConfigException
from loguru import logger
from prometheus_client import start_http_server

from ..constants import GROUP
from ..errors import ConfigurationError
from ..security.certificates import CA_CERT_FILE, TLS_CERT_FILE, TLS_KEY_FILE
from ..utils.config import Config


def load_kubernetes_config(app_config: Config) -> None:
    """Load the kube config: explicit file, then in-cluster, then the local default."""
    try:
        if app_config.kubeconfig:
            kube_config.load_kube_config(config_file=app_config.kubeconfig)
            logger.info(f"Loaded Kubernetes configuration from {app_config.kubeconfig}")
            return
        try:
            kube_config.load_incluster_config()
            logger.info("Loaded in-cluster Kubernetes configuration")
        except ConfigException:
            kube_config.load_kube_config()
            logger.info("Loaded local Kubernetes configuration")
    except (ConfigException, OSError) as e:
        raise ConfigurationError(f"Failed to load Kubernetes configuration: {e}") from e


def configure_operator(settings: kopf.OperatorSettings, app_config: Config) -> None:
    """Apply kopf settings: event posting, watch timeouts and the admission server."""
    settings.posting.level = logging.INFO
    settings.watching.connect_timeout = 1 * 60
    settings.watching.server_timeout = 10 * 60
    settings.admission.server = kopf.WebhookServer(
        port=app_config.webhook_port,
        host=f"{app_config.webhook_service}.{app_config.namespace}.svc",
        certfile=os.path.join(app_config.cert_dir, TLS_CERT_FILE),
        pkeyfile=os.path.join(app_config.cert_dir, TLS_KEY_FILE),
        cafile=os.path.join(app_config.cert_dir, CA_CERT_FILE),
    )
    settings.admission.managed = f"validate.{GROUP}"


@kopf.on.startup()
async def startup(settings: kopf.OperatorSettings, memo: kopf.Memo, **kwargs):
    """Configure kopf, serve metrics and start the reconcile workers."""
    configure_operator(settings, memo.config)
    metrics_port = memo.settings.get().metricsPort
    start_http_server(metrics_port)
    logger.info(f"Serving metrics on port {metrics_port}")
    await memo.controller.start()
    logger.info(f"Operator started in namespace {memo.config.namespace} (env {memo.settings.get().envName})")


@kopf.on.cleanup()
async def cleanup(memo: kopf.Memo, **kwargs):
    """Drain in-flight reconciles within the shutdown grace period."""
    logger.info("Stopping reconcile workers")
    await memo.controller.stop(memo.config.shutdown_grace_seconds)
