# infrastructure/metrics/metrics.py
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

invoice_previews_total = Counter(
    "chitfund_invoice_previews",
    "Invoice previews computed"
)

invoices_created_total = Counter(
    "chitfund_invoices_created",
    "Invoices persisted",
    ["first_invoice"]  # "true"|"false"
)

arrear_rollover_total = Counter(
    "chitfund_arrear_rollover",
    "Per-enrollment outcomes of the monthly rollover",
    ["outcome"]  # updated|skipped|error
)

arrear_overrides_total = Counter(
    "chitfund_arrear_overrides",
    "Staff changes to stored arrears",
    ["action"]  # manual|clear|waive
)

rollover_duration_seconds = Histogram(
    "chitfund_rollover_duration_seconds",
    "Wall time of a full rollover run",
    buckets=[0.1, 0.5, 1, 5, 15, 60, 300]
)


def metrics_endpoint():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
