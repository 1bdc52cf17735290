"""
Prometheus-based metrics for production monitoring.
Provides /metrics endpoint for scraping.
"""
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Response


# Counters
generation_submissions_total = Counter(
    "generation_submissions_total",
    "Provider submissions by outcome (immediate, accepted, error)",
    ["provider", "kind", "outcome"],
)

generation_completions_total = Counter(
    "generation_completions_total",
    "Polling sessions by terminal state",
    ["provider", "kind", "state"],
)

generation_poll_ticks_total = Counter(
    "generation_poll_ticks_total",
    "Status queries issued by the task poller",
    ["provider", "kind"],
)

generation_errors_total = Counter(
    "generation_errors_total",
    "Classified errors returned to callers",
    ["kind", "code"],
)

provider_requests_total = Counter(
    "provider_requests_total",
    "Outbound provider HTTP requests",
    ["provider", "operation", "status"],
)

rate_limit_rejections_total = Counter(
    "rate_limit_rejections_total",
    "Inbound requests rejected by the rate limiter",
    ["scope"],
)

# Histograms
provider_request_duration_seconds = Histogram(
    "provider_request_duration_seconds",
    "Outbound provider request duration",
    ["provider", "operation"],
    buckets=[0.1, 0.5, 1, 2, 5, 10, 30, 60, 120],
)

generation_poll_ticks_to_terminal = Histogram(
    "generation_poll_ticks_to_terminal",
    "Ticks needed to reach a terminal state",
    ["kind"],
    buckets=[1, 2, 5, 10, 20, 30, 45, 60],
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
