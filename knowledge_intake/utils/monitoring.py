"""Monitoring utilities leveraging Prometheus client."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

sources_submitted_total = Counter(
    "knowledge_intake_sources_submitted_total",
    "Sources accepted for ingestion",
    ["kind", "executor"],
)

sources_finished_total = Counter(
    "knowledge_intake_sources_finished_total",
    "Sources that reached a terminal status",
    ["kind", "status"],
)

knowledge_fetch_failures_total = Counter(
    "knowledge_intake_knowledge_fetch_failures_total",
    "Knowledge item lookups that failed for completed sources",
)

ingestion_tasks_in_flight = Gauge(
    "knowledge_intake_tasks_in_flight",
    "Ingestion tasks currently running",
)


def observe_submission(kind: str, executor: str) -> None:
    sources_submitted_total.labels(kind=kind, executor=executor).inc()


def observe_outcome(kind: str, status: str) -> None:
    sources_finished_total.labels(kind=kind, status=status).inc()


http_requests_total = Counter(
    "knowledge_intake_http_requests_total",
    "Operator API requests",
    ["method", "route", "status"],
)

http_request_latency_seconds = Histogram(
    "knowledge_intake_http_request_latency_seconds",
    "Operator API request latency",
    ["method", "route"],
)


def observe_request(method: str, route: str, status: int, duration_seconds: float) -> None:
    http_requests_total.labels(method=method, route=route, status=str(status)).inc()
    http_request_latency_seconds.labels(method=method, route=route).observe(duration_seconds)
