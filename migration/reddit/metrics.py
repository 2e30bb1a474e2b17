from __future__ import annotations

from prometheus_client import Counter, Histogram

# Counters
requests_total = Counter(
    "reddit_migrate_requests_total",
    "Total Reddit API requests issued by the migration engine",
    labelnames=("endpoint",),
)

items_total = Counter(
    "reddit_migrate_items_total",
    "Items processed per operation and outcome",
    labelnames=("operation", "outcome"),
)

waves_total = Counter(
    "reddit_migrate_waves_total",
    "Request waves executed",
    labelnames=("operation",),
)

stage_errors_total = Counter(
    "reddit_migrate_stage_errors_total",
    "Fatal stage errors (auth, verification, listing, validation)",
    labelnames=("stage",),
)

# Histograms
wave_time_seconds = Histogram(
    "reddit_migrate_wave_seconds",
    "Time spent waiting for one wave of requests to resolve",
    buckets=(0.1, 0.3, 0.7, 1.5, 3.0, 6.0, 12.0, 24.0),
)


def inc_request(endpoint: str) -> None:
    try:
        requests_total.labels(endpoint=endpoint).inc()
    except Exception:
        pass


def inc_items(operation: str, outcome: str, n: int = 1) -> None:
    if n <= 0:
        return
    try:
        items_total.labels(operation=operation, outcome=outcome).inc(n)
    except Exception:
        pass


def inc_stage_error(stage: str) -> None:
    try:
        stage_errors_total.labels(stage=stage).inc()
    except Exception:
        pass


class WaveTimer:
    def __init__(self, operation: str):
        self.operation = operation

    def __enter__(self):
        self._timer = wave_time_seconds.time()
        self._timer.__enter__()
        return self

    def __exit__(self, exc_type, exc, tb):
        try:
            if hasattr(self, "_timer"):
                self._timer.__exit__(exc_type, exc, tb)
        finally:
            try:
                waves_total.labels(operation=self.operation).inc()
            except Exception:
                pass


def measure_wave(operation: str) -> WaveTimer:
    return WaveTimer(operation)
