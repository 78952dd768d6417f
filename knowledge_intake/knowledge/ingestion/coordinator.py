"""Coordinates ingestion work for submitted sources."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional, Tuple

from knowledge_intake.core.exceptions import DuplicateSourceError, MissingIdentityError, UnknownSourceError
from knowledge_intake.knowledge.aggregation import KnowledgeAggregator
from knowledge_intake.knowledge.ingestion.events import IngestionEventStream, ProgressTick, UploadResult
from knowledge_intake.knowledge.ingestion.registry import SourceRegistry
from knowledge_intake.knowledge.ingestion.simulator import FallbackSimulator
from knowledge_intake.knowledge.ingestion.transport import TransportAdapter
from knowledge_intake.models import AgentIdentity, Source, SourceKind, SourceStatus
from knowledge_intake.orchestration.publisher import NotificationPublisher, notification_publisher
from knowledge_intake.utils.monitoring import ingestion_tasks_in_flight, observe_outcome, observe_submission

logger = logging.getLogger(__name__)

TRANSPORT = "transport"
SIMULATOR = "simulator"


class IngestionCoordinator:
    """Start exactly one executor per submitted source and feed its events to the registry.

    The transport adapter is used when the agent and company identities are both
    known; otherwise the fallback simulator keeps the lifecycle moving. Each
    source runs in its own task, and a source removed while its task is in
    flight simply stops receiving updates.
    """

    def __init__(
        self,
        registry: SourceRegistry,
        *,
        transport: TransportAdapter,
        simulator: FallbackSimulator,
        aggregator: KnowledgeAggregator,
        publisher: Optional[NotificationPublisher] = None,
    ) -> None:
        self.registry = registry
        self.transport = transport
        self.simulator = simulator
        self.aggregator = aggregator
        self.publisher = publisher or notification_publisher
        self._tasks: Dict[str, asyncio.Task] = {}
        self._identities: Dict[str, Optional[AgentIdentity]] = {}
        registry.set_completion_hook(self._on_completed)

    async def submit(self, source: Source, identity: Optional[AgentIdentity] = None) -> Source:
        if source.id in self._tasks:
            raise DuplicateSourceError(source.id)

        registered = self.registry.add_source(source)
        events, executor = self._select_executor(registered, identity)
        self._identities[source.id] = identity
        snapshot = await self.registry.update_status(source.id, SourceStatus.UPLOADING)

        observe_submission(source.kind.value, executor)
        task = asyncio.create_task(self._drive(source.id, source.kind, events), name=f"ingest-{source.id}")
        self._tasks[source.id] = task
        task.add_done_callback(lambda _, source_id=source.id: self._forget(source_id))
        logger.info("Started %s ingestion for source %s", executor, source.id)
        return snapshot

    def remove(self, source_id: str) -> Source:
        """Drop a source from the local view; an in-flight task keeps running."""

        return self.registry.remove_source(source_id)

    def is_active(self, source_id: str) -> bool:
        return source_id in self._tasks

    async def wait(self, source_id: str) -> None:
        task = self._tasks.get(source_id)
        if task is not None:
            await asyncio.shield(task)

    async def drain(self) -> None:
        """Wait until no ingestion task is running, including ones started meanwhile."""

        while self._tasks:
            tasks: List[asyncio.Task] = list(self._tasks.values())
            await asyncio.gather(*tasks, return_exceptions=True)

    def _select_executor(
        self, source: Source, identity: Optional[AgentIdentity]
    ) -> Tuple[IngestionEventStream, str]:
        try:
            self.transport.ensure_identity(identity)
        except MissingIdentityError as exc:
            logger.info("Simulating ingestion for source %s: %s", source.id, exc.message)
            return self.simulator.run(source), SIMULATOR
        return self.transport.upload(source, identity), TRANSPORT

    async def _drive(self, source_id: str, kind: SourceKind, events: IngestionEventStream) -> None:
        ingestion_tasks_in_flight.inc()
        try:
            async for event in events:
                try:
                    if isinstance(event, ProgressTick):
                        await self.registry.update_progress(source_id, event.percent)
                    elif isinstance(event, UploadResult):
                        await self._finish(source_id, kind, event)
                except UnknownSourceError:
                    logger.debug("Source %s was removed; dropping %s", source_id, type(event).__name__)
        except Exception:  # pragma: no cover - defensive
            logger.exception("Ingestion task for source %s failed", source_id)
        finally:
            ingestion_tasks_in_flight.dec()

    async def _finish(self, source_id: str, kind: SourceKind, result: UploadResult) -> None:
        if result.succeeded:
            snapshot = await self.registry.update_status(source_id, SourceStatus.COMPLETED, result.response)
            observe_outcome(kind.value, SourceStatus.COMPLETED.value)
            await self.publisher.notify(snapshot)
            return

        snapshot = await self.registry.update_status(source_id, SourceStatus.ERROR)
        observe_outcome(kind.value, SourceStatus.ERROR.value)
        await self.publisher.notify(snapshot, error=result.error.message)

    async def _on_completed(self, source_id: str) -> None:
        identity = self._identities.get(source_id)
        agent_id = identity.agent_id if identity else None
        await self.aggregator.attach(self.registry, source_id, agent_id)

    def _forget(self, source_id: str) -> None:
        self._tasks.pop(source_id, None)
        self._identities.pop(source_id, None)
