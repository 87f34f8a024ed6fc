"""Kopf watch handlers that feed reconcile keys into the work queue."""
from typing import Optional

import kopf

from ..constants import GROUP, INSTANCE_LABEL, MANAGED_BY, MANAGED_BY_LABEL, PLURAL, VERSION
from ..utils.config import Config
from ..utils.helpers import build_key

# (group, version, plural) of every kind the builder emits
OWNED_RESOURCES = (
    ("apps", "v1", "deployments"),
    ("apps", "v1", "statefulsets"),
    ("", "v1", "services"),
    ("", "v1", "configmaps"),
    ("", "v1", "secrets"),
    ("networking.k8s.io", "v1", "ingresses"),
    ("batch", "v1", "jobs"),
)

OWNED_LABELS = {MANAGED_BY_LABEL: MANAGED_BY, INSTANCE_LABEL: kopf.PRESENT}


def instance_key(config: Config, namespace: Optional[str], name: Optional[str]) -> Optional[str]:
    """Reconcile key for an instance, or None if this operator does not handle it."""
    if not namespace or not name:
        return None
    if config.watch_namespace and namespace != config.watch_namespace:
        return None
    if config.watch_instance and name != config.watch_instance:
        return None
    return build_key(namespace, name)


@kopf.on.event(GROUP, VERSION, PLURAL)
async def on_instance_event(event, name, namespace, memo: kopf.Memo, logger, **kwargs):
    """Enqueue an instance on any change to it."""
    key = instance_key(memo.config, namespace, name)
    if key is None:
        return
    logger.debug(f"{event.get('type') or 'LISTED'} event for MonitoringInstance {key}")
    memo.controller.enqueue(key)


async def on_owned_event(event, name, namespace, labels, memo: kopf.Memo, logger, **kwargs):
    """Enqueue the owning instance when one of its managed objects changes."""
    key = instance_key(memo.config, namespace, labels.get(INSTANCE_LABEL))
    if key is None:
        return
    memo.controller.enqueue(key)


def register_handlers():
    """Register watches on every managed kind."""
    for group, version, plural in OWNED_RESOURCES:
        kopf.on.event(group, version, plural, labels=OWNED_LABELS, id=f"owned-{plural}")(on_owned_event)
