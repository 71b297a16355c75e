"""
Prometheus-based metrics for production monitoring.
Provides /metrics endpoint for scraping.
"""
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Response


# Counters
webhook_events_total = Counter(
    "webhook_events_total",
    "Donation webhook deliveries by outcome",
    ["outcome"],  # applied, duplicate, unauthenticated, invalid, not_found, store_error
)

donations_extended_days_total = Counter(
    "donations_extended_days_total",
    "Total days of validity bought by donations",
)

publishes_total = Counter(
    "publishes_total",
    "Publish registrations by outcome",
    ["outcome"],  # registered, quota_daily, quota_monthly, quota_live, store_error
)

sessions_issued_total = Counter(
    "sessions_issued_total",
    "Fingerprint session tokens issued",
)

# Histograms
request_duration_seconds = Histogram(
    "request_duration_seconds",
    "HTTP request duration",
    ["path"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1, 2, 5],
)


# Metrics endpoint router
router = APIRouter()


@router.get("/metrics")
def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint for scraping."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
