"""Prometheus metrics for the Monitoring Operator."""

from prometheus_client import Counter, Gauge, Histogram

# Reconciliation metrics
reconcile_total = Counter(
    "monitoring_operator_reconcile_total",
    "Total number of reconciliations",
    ["result"],
)

reconcile_duration_seconds = Histogram(
    "monitoring_operator_reconcile_duration_seconds",
    "Duration of reconciliations in seconds",
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
)

queue_depth = Gauge(
    "monitoring_operator_queue_depth",
    "Number of reconcile keys waiting to be processed",
)

# Managed resource metrics
resource_writes_total = Counter(
    "monitoring_operator_resource_writes_total",
    "Writes issued against managed resources",
    ["kind", "operation"],
)

# Readiness gate metrics
readiness_checks_total = Counter(
    "monitoring_operator_readiness_checks_total",
    "Readiness gate outcomes",
    ["result"],
)
