from typing_extensions import Protocol


class MetricsPort(Protocol):
    """Protocol for metrics operations."""
    
    def increment_invoice_preview(self) -> None:
        """Increment the chitfund_invoice_previews_total counter."""
        ...

    def increment_invoice_created(self, first_invoice: bool) -> None:
        """
        Increment the chitfund_invoices_created_total counter.
        
        Args:
            first_invoice: Whether this is the enrollment's first invoice
        """
        ...
    
    def increment_rollover(self, outcome: str) -> None:
        """
        Increment the chitfund_arrear_rollover_total counter.
        
        Args:
            outcome: One of "updated", "skipped", or "error"
        """
        ...

    def increment_arrear_override(self, action: str) -> None:
        """
        Increment the chitfund_arrear_overrides_total counter.

        Args:
            action: One of "manual", "clear", or "waive"
        """
        ...

    def observe_rollover_duration(self, seconds: float) -> None:
        """Record the wall time of a full rollover run."""
        ...
