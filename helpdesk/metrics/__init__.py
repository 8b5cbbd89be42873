"""Process-wide metrics for the ticket workflow."""
from .base import CounterMetric, DistributionMetric
from .exporters import PrometheusExporter
from .registry import MetricsRegistry

metrics_registry = MetricsRegistry()

# (name, kind, description, label names)
TICKET_METRICS = (
    ("tickets_created_total", "counter", "Tickets created.", ()),
    ("tickets_updated_total", "counter", "Ticket updates persisted.", ()),
    ("ticket_summary_failures_total", "counter", "AI summary generations that failed.", ()),
    ("notifications_sent_total", "counter", "Email notifications delivered.", ("kind",)),
    ("notification_failures_total", "counter", "Email notifications that failed.", ("kind",)),
    ("notifications_dropped_total", "counter", "Notifications dropped on a full queue.", ()),
    ("ticket_store_operation_seconds", "distribution", "Ticket store I/O duration.", ("operation",)),
)


def register_ticket_metrics(registry: MetricsRegistry | None = None) -> None:
    """Make sure every ticket metric exists so the exporter always lists it."""

    target = registry or metrics_registry
    for name, kind, description, label_names in TICKET_METRICS:
        factory = target.counter if kind == "counter" else target.distribution
        factory(name, description=description, label_names=label_names)


register_ticket_metrics()

__all__ = [
    "CounterMetric",
    "DistributionMetric",
    "MetricsRegistry",
    "PrometheusExporter",
    "metrics_registry",
    "register_ticket_metrics",
]
