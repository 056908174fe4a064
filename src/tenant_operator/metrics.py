"""Prometheus metrics for the Tenant Cluster Operator."""

from prometheus_client import Counter, Histogram

# Reconciliation pass metrics
reconcile_total = Counter(
    "tenant_operator_reconcile_total",
    "Total number of reconciliation passes",
    ["kind", "result"],
)

reconcile_duration_seconds = Histogram(
    "tenant_operator_reconcile_duration_seconds",
    "Duration of reconciliation passes in seconds",
    ["kind"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

# Handler metrics
handler_operations_total = Counter(
    "tenant_operator_handler_operations_total",
    "Total number of handler create/update/delete operations",
    ["handler", "operation", "result"],
)

handler_cancellations_total = Counter(
    "tenant_operator_handler_cancellations_total",
    "Total number of passes cancelled by a handler",
    ["handler"],
)

transient_errors_total = Counter(
    "tenant_operator_transient_errors_total",
    "Total number of passes ended by a transient error",
    ["handler"],
)

# Subnet allocation metrics
subnet_allocations_total = Counter(
    "tenant_operator_subnet_allocations_total",
    "Total number of subnet allocation attempts",
    ["kind", "result"],
)

# API call metrics
api_call_total = Counter(
    "tenant_operator_api_call_total",
    "Total number of API calls",
    ["api_type", "operation", "result"],
)

api_call_duration_seconds = Histogram(
    "tenant_operator_api_call_duration_seconds",
    "Duration of API calls in seconds",
    ["api_type", "operation"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0],
)

error_total = Counter(
    "tenant_operator_error_total",
    "Total number of fatal errors",
    ["kind", "error_type"],
)
