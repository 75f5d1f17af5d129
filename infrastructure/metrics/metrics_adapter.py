"""
Metrics adapter that implements MetricsPort protocol.

Wraps the Prometheus counters so application services never import
prometheus_client directly.
"""
from domain.interfaces import MetricsPort
from infrastructure.metrics.metrics import (
    invoice_previews_total,
    invoices_created_total,
    arrear_rollover_total,
    arrear_overrides_total,
    rollover_duration_seconds,
)


class MetricsAdapter(MetricsPort):
    """Increments Prometheus metrics served on /metrics."""
    
    def increment_invoice_preview(self) -> None:
        invoice_previews_total.inc()
    
    def increment_invoice_created(self, first_invoice: bool) -> None:
        """
        Increment the chitfund_invoices_created_total counter.
        
        Args:
            first_invoice: Whether this is the enrollment's first invoice
        """
        invoices_created_total.labels(first_invoice="true" if first_invoice else "false").inc()

    def increment_rollover(self, outcome: str) -> None:
        """
        Increment the chitfund_arrear_rollover_total counter.

        Args:
            outcome: One of "updated", "skipped", or "error"
        """
        arrear_rollover_total.labels(outcome=outcome).inc()

    def increment_arrear_override(self, action: str) -> None:
        arrear_overrides_total.labels(action=action).inc()

    def observe_rollover_duration(self, seconds: float) -> None:
        rollover_duration_seconds.observe(seconds)
