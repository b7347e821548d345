"""
Prometheus-based metrics for production monitoring.
Provides /metrics endpoint for scraping.
"""
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Response


# Counters
generation_jobs_total = Counter(
    "generation_jobs_total",
    "Generation jobs by terminal state",
    ["provider", "state"],  # persisted, refunded, refund_failed
)

generation_rejected_total = Counter(
    "generation_rejected_total",
    "Requests rejected before the stream opened",
    ["reason"],  # validation, quota, insufficient_credits
)

credit_operations_total = Counter(
    "credit_operations_total",
    "Credit ledger operations",
    ["operation", "status"],  # DEDUCT/REFUND, success/failed
)

provider_polls_total = Counter(
    "provider_polls_total",
    "Provider status reads",
    ["provider", "outcome"],  # ok, error
)

provider_submissions_total = Counter(
    "provider_submissions_total",
    "Provider job submissions",
    ["provider", "status"],
)

stale_jobs_refunded_total = Counter(
    "stale_jobs_refunded_total",
    "Orphaned jobs refunded by the watchdog",
)

circuit_breaker_state = Gauge(
    "circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=open)",
    ["name"],
)

# Histograms
generation_duration_seconds = Histogram(
    "generation_duration_seconds",
    "Wall time from submission to terminal state",
    ["provider"],
    buckets=[5, 15, 30, 60, 120, 180, 300],
)

# Gauges
active_generations = Gauge(
    "active_generations",
    "Generation jobs currently running in this process",
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
