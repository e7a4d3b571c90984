"""
Prometheus metrics blueprint.

Exposes /metrics with HTTP request metrics and the save-outcome counter the
item and invoice routes increment. Restrict it to the monitoring network.
"""
import os
import time

from flask import Blueprint, Response, g, request
from prometheus_client import (
    CONTENT_TYPE_LATEST, REGISTRY, CollectorRegistry, Counter, Gauge, Histogram,
    generate_latest, multiprocess
)

from invoicing.exceptions import InvoicingError

metrics_bp = Blueprint('metrics', __name__)

# Gunicorn workers write to PROMETHEUS_MULTIPROC_DIR and are merged on scrape
MULTIPROCESS_MODE = os.environ.get('PROMETHEUS_MULTIPROC_DIR') is not None
_collector_registry = None if MULTIPROCESS_MODE else REGISTRY

http_requests_total = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'http_status'],
    registry=_collector_registry
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request latency in seconds',
    ['method', 'endpoint'],
    registry=_collector_registry,
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)
)

http_requests_in_flight = Gauge(
    'http_requests_in_flight',
    'Number of HTTP requests currently being processed',
    registry=_collector_registry
)

invoice_saves_total = Counter(
    'invoice_saves_total',
    'Create/update outcomes for items and invoices',
    ['entity', 'mode', 'outcome'],
    registry=_collector_registry
)


SAVE_OUTCOMES = {
    'Conflict': 'conflict',
    'NotFound': 'not_found',
    'ValidationRejected': 'rejected',
}


def record_save(entity: str, mode: str, outcome: str) -> None:
    """Count one save attempt, e.g. ``record_save('invoice', 'update', 'conflict')``."""
    invoice_saves_total.labels(entity=entity, mode=mode, outcome=outcome).inc()


def counted_save(entity: str, mode: str, action):
    """Run ``action()`` and count its outcome; errors are re-raised unchanged."""
    try:
        result = action()
    except InvoicingError as e:
        record_save(entity, mode, SAVE_OUTCOMES.get(e.kind, 'error'))
        raise
    record_save(entity, mode, 'ok')
    return result


def setup_metrics_instrumentation(app):
    """Register request timing hooks on ``app``."""

    @app.before_request
    def before_request_metrics():
        g._metrics_started = time.time()
        http_requests_in_flight.inc()

    @app.after_request
    def after_request_metrics(response):
        started = g.pop('_metrics_started', None)
        if started is None:
            return response
        try:
            endpoint = request.endpoint or 'unknown'
            http_request_duration_seconds.labels(
                method=request.method,
                endpoint=endpoint
            ).observe(time.time() - started)
            http_requests_total.labels(
                method=request.method,
                endpoint=endpoint,
                http_status=response.status_code
            ).inc()
            http_requests_in_flight.dec()
        except Exception as e:
            app.logger.warning(f"Failed to record metrics: {e}")
        return response


@metrics_bp.route('/metrics')
def metrics():
    """Prometheus text exposition (unauthenticated)."""
    if MULTIPROCESS_MODE:
        registry = CollectorRegistry()
        multiprocess.MultiProcessCollector(registry)
        data = generate_latest(registry)
    else:
        data = generate_latest(REGISTRY)
    return Response(data, mimetype=CONTENT_TYPE_LATEST)
