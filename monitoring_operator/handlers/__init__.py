"""Handler modules for Kopf events."""
from . import probes, settings, webhook
from .instance import register_handlers
from .reconciler import MonitoringInstanceReconciler
from .startup import configure_operator, load_kubernetes_config

__all__ = [
    "probes",
    "settings",
    "webhook",
    "register_handlers",
    "MonitoringInstanceReconciler",
    "configure_operator",
    "load_kubernetes_config",
]
