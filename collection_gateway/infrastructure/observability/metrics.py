"""Prometheus metrics for attribution diagnostics and backend health"""

from prometheus_client import Counter, Histogram

from collection_gateway.domain.diagnostics import Diagnostics

# Reconciliation metrics
reconciliation_counter = Counter(
    "collection_reconciliation_total",
    "Member reconciliation passes",
    ["view"],  # sheet | ledger
)

guard_skip_counter = Counter(
    "collection_guard_skips_total",
    "Records skipped because they were already attributed in the pass",
)

unparseable_record_counter = Counter(
    "collection_unparseable_records_total",
    "Records excluded for invalid dates or amounts",
)

over_collection_counter = Counter(
    "collection_over_collections_total",
    "Rows whose attributed payments exceeded the total amount",
)

over_collected_amount_counter = Counter(
    "collection_over_collected_amount_total",
    "Taka capped away by over-collection",
)

ambiguous_attribution_counter = Counter(
    "collection_ambiguous_attributions_total",
    "Records matched to several rows by amount only",
)

# Backend API metrics
backend_fetch_failures_counter = Counter(
    "backend_fetch_failures_total",
    "Failed backend API calls",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_reconciliation(view: str, diagnostics: Diagnostics) -> None:
    """Export one pass's diagnostic counts"""
    reconciliation_counter.labels(view=view).inc()

    if diagnostics.skipped_by_guard:
        guard_skip_counter.inc(diagnostics.skipped_by_guard)
    if diagnostics.unparseable_records:
        unparseable_record_counter.inc(diagnostics.unparseable_records)
    if diagnostics.over_collections:
        over_collection_counter.inc(diagnostics.over_collections)
        over_collected_amount_counter.inc(diagnostics.over_collected_amount)
    if diagnostics.ambiguous_attributions:
        ambiguous_attribution_counter.inc(diagnostics.ambiguous_attributions)
