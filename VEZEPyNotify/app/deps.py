from fastapi import Request, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    REGISTRY,
    generate_latest,
)

from .service import NotificationService


def _registered(name: str, kind: type):
    try:
        existing = REGISTRY._names_to_collectors.get(name)  # type: ignore[attr-defined]
        if isinstance(existing, kind):
            return existing
    except Exception:
        pass
    return None


def _counter(name: str, doc: str, labels: list[str]) -> Counter:
    # Counters register under both the base name and the _total suffix
    return _registered(name, Counter) or _registered(f"{name}_total", Counter) or Counter(name, doc, labels)


def _gauge(name: str, doc: str) -> Gauge:
    return _registered(name, Gauge) or Gauge(name, doc)


def _histogram(name: str, doc: str, labels: list[str], buckets: tuple[float, ...]) -> Histogram:
    return _registered(name, Histogram) or Histogram(name, doc, labels, buckets=buckets)


NOTIFICATIONS = _counter("notify_notifications", "Notifications submitted, by outcome", ["result"])
STORED = _gauge("notify_store_notifications", "Notifications currently held in memory")
REQ_LAT = _histogram(
    "notify_request_duration_seconds",
    "HTTP request duration in seconds",
    ["path", "method", "status"],
    buckets=(0.005, 0.01, 0.02, 0.05, 0.1, 0.2, 0.5, 1, 2, 5),
)


def get_service(request: Request) -> NotificationService:
    return request.app.state.service


def metrics_response() -> Response:
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


def track_store_size(service: NotificationService) -> None:
    # Read under the store lock at scrape time, so the gauge never lags a write
    STORED.set_function(lambda: len(service.store))
