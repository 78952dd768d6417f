"""OpenTelemetry initialization helpers."""

from __future__ import annotations

import logging
from typing import Dict, Optional

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from knowledge_intake.core.config import settings

logger = logging.getLogger(__name__)
_TRACING_INITIALIZED = False


def setup_tracing(app: Optional[FastAPI] = None) -> bool:
    """Export spans over OTLP when an endpoint is configured; otherwise leave the no-op provider."""

    global _TRACING_INITIALIZED
    if not settings.OTEL_EXPORTER_OTLP_ENDPOINT:
        return False

    if not _TRACING_INITIALIZED:
        resource = Resource.create(
            {
                "service.name": settings.API_TITLE.lower().replace(" ", "-"),
                "service.version": settings.API_VERSION,
                "environment": settings.ENVIRONMENT,
            }
        )
        provider = TracerProvider(resource=resource)
        exporter = OTLPSpanExporter(
            endpoint=str(settings.OTEL_EXPORTER_OTLP_ENDPOINT),
            headers=_parse_headers(settings.OTEL_EXPORTER_OTLP_HEADERS) or None,
        )
        provider.add_span_processor(BatchSpanProcessor(exporter))
        trace.set_tracer_provider(provider)
        _TRACING_INITIALIZED = True
        logger.info("OpenTelemetry tracing exporting to %s", settings.OTEL_EXPORTER_OTLP_ENDPOINT)

    if app is not None:
        FastAPIInstrumentor.instrument_app(app)
    return True


def _parse_headers(raw_headers: Optional[str]) -> Dict[str, str]:
    if not raw_headers:
        return {}
    pairs = {}
    for item in raw_headers.split(","):
        if "=" not in item:
            continue
        key, value = item.split("=", 1)
        pairs[key.strip()] = value.strip()
    return pairs


__all__ = ["setup_tracing"]
