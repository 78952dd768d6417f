"""Kafka publisher for transient operator notifications."""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from aiokafka import AIOKafkaProducer
from opentelemetry import trace

from knowledge_intake.core.config import settings
from knowledge_intake.models import Source

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class NotificationPublisher:
    """Announce terminal source outcomes; never affects source state."""

    def __init__(self, *, enabled: Optional[bool] = None, topic: Optional[str] = None) -> None:
        self.enabled = settings.ENABLE_NOTIFICATIONS if enabled is None else enabled
        self.topic = topic or settings.NOTIFICATIONS_TOPIC
        self._producer: AIOKafkaProducer | None = None
        self._lock = asyncio.Lock()

    async def _ensure_producer(self) -> AIOKafkaProducer | None:
        if self._producer is not None:
            return self._producer

        async with self._lock:
            if self._producer is not None:
                return self._producer
            producer = AIOKafkaProducer(bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS)
            try:
                await producer.start()
            except Exception as exc:  # pragma: no cover - Kafka optional
                logger.warning("Kafka producer unavailable: %s", exc)
                return None
            self._producer = producer
        return self._producer

    async def notify(self, source: Source, *, error: Optional[str] = None) -> None:
        payload = build_notification(source, error=error)
        if error:
            logger.warning("Source %s (%s) failed: %s", source.id, source.name, error)
        else:
            logger.info("Source %s (%s) finished as %s", source.id, source.name, source.status.value)
        if self.enabled:
            await self.publish(payload)

    async def publish(self, payload: Dict[str, Any]) -> None:
        producer = await self._ensure_producer()
        if producer is None:
            return
        encoded = json.dumps(payload).encode("utf-8")
        with tracer.start_as_current_span("kafka.publish") as span:
            span.set_attribute("messaging.system", "kafka")
            span.set_attribute("messaging.destination", self.topic)
            span.set_attribute("payload.bytes", len(encoded))
            try:
                await producer.send_and_wait(self.topic, encoded)
            except Exception as exc:  # pragma: no cover - Kafka optional
                span.record_exception(exc)
                logger.error("Failed to publish notification: %s", exc)

    async def close(self) -> None:
        if self._producer:
            await self._producer.stop()
            self._producer = None


def build_notification(source: Source, *, error: Optional[str] = None) -> Dict[str, Any]:
    return {
        "source_id": source.id,
        "name": source.name,
        "kind": source.kind.value,
        "status": source.status.value,
        "error": error,
        "emitted_at": datetime.utcnow().isoformat(),
    }


notification_publisher = NotificationPublisher()
