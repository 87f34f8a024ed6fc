"""Reloads operator settings when their ConfigMap changes."""
import kopf
from loguru import logger

from ..errors import ConfigurationError
from ..utils.config import OperatorSettings


def is_settings_configmap(name, namespace, memo: kopf.Memo, **_) -> bool:
    return name == memo.config.settings_configmap and namespace == memo.config.namespace


@kopf.on.event('', 'v1', 'configmaps', when=is_settings_configmap)
async def on_settings_event(event, body, memo: kopf.Memo, **kwargs):
    """Re-parse settings; keep the previous ones if the update is malformed."""
    if event.get('type') == 'DELETED':
        logger.warning(f"Settings ConfigMap {memo.config.settings_configmap} was deleted, keeping current settings")
        return
    try:
        settings = OperatorSettings.from_configmap(body)
    except ConfigurationError as e:
        logger.error(f"Ignoring settings update: {e}")
        return
    if memo.settings.set(settings):
        logger.info(f"Operator settings reloaded (env {settings.envName})")
        for key in list(memo.controller.states):
            memo.controller.enqueue(key)
