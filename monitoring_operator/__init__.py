"""Kubernetes operator for MonitoringInstance resources."""

__version__ = "0.1.0"
