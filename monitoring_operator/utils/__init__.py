"""Utility modules for the operator."""
from .config import Config, Images, OperatorSettings, SettingsStore
from .helpers import build_key, managed_labels, resource_name, split_key

__all__ = [
    "Config",
    "Images",
    "OperatorSettings",
    "SettingsStore",
    "build_key",
    "managed_labels",
    "resource_name",
    "split_key",
]
