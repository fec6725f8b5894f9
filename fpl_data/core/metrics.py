"""
Prometheus metrics for the FPL data layer.

Metrics exposed:
- Refresh outcome counters and duration histogram
- FPL API success/failure counters
- Records written per type by the last refresh
- Published collection sizes per slot
- Scheduler status gauge
"""
from prometheus_client import Counter, Gauge, Histogram

# Refresh Metrics
refresh_total = Counter(
    "fpl_refresh_total",
    "Total refresh runs",
    ["status"]
)

refresh_duration_seconds = Histogram(
    "fpl_refresh_duration_seconds",
    "Duration of refresh runs in seconds"
)

records_written = Gauge(
    "fpl_records_written",
    "Records written by the last successful refresh",
    ["record_type"]
)

fixtures_skipped = Gauge(
    "fpl_fixtures_skipped",
    "Fixtures without a kickoff time dropped by the last successful refresh"
)

# External API Metrics
fpl_api_requests_success_total = Counter(
    "fpl_api_requests_success_total",
    "Total successful FPL API requests",
    ["endpoint"]
)

fpl_api_requests_failure_total = Counter(
    "fpl_api_requests_failure_total",
    "Total failed FPL API requests",
    ["endpoint", "error_type"]
)

# Publishing Metrics
published_collection_size = Gauge(
    "fpl_published_collection_size",
    "Number of entities in the latest value published to a slot",
    ["slot"]
)

# Scheduler Metrics
scheduler_running = Gauge(
    "fpl_scheduler_running",
    "Whether the refresh scheduler is running (1=running, 0=stopped)"
)


def record_refresh(status: str, duration_seconds: float):
    """Record a finished refresh run."""
    refresh_total.labels(status=status).inc()
    refresh_duration_seconds.observe(duration_seconds)


def record_written_counts(teams: int, players: int, fixtures: int, skipped: int):
    """Record how many rows of each type the last refresh wrote."""
    records_written.labels(record_type="team").set(teams)
    records_written.labels(record_type="player").set(players)
    records_written.labels(record_type="fixture").set(fixtures)
    fixtures_skipped.set(skipped)


def record_fpl_api_request_success(endpoint: str):
    """Record a successful FPL API request."""
    fpl_api_requests_success_total.labels(endpoint=endpoint).inc()


def record_fpl_api_request_failure(endpoint: str, error_type: str = "unknown"):
    """Record a failed FPL API request."""
    fpl_api_requests_failure_total.labels(endpoint=endpoint, error_type=error_type).inc()


def record_published(slot: str, size: int):
    """Record the size of a value published to a slot."""
    published_collection_size.labels(slot=slot).set(size)
