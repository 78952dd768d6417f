"""Configuration sessions: one registry and coordinator per agent being configured."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from knowledge_intake.core.exceptions import MissingIdentityError, NotFoundError
from knowledge_intake.knowledge.aggregation import KnowledgeAggregator
from knowledge_intake.knowledge.ingestion.coordinator import IngestionCoordinator
from knowledge_intake.knowledge.ingestion.registry import SourceRegistry
from knowledge_intake.knowledge.ingestion.simulator import FallbackSimulator
from knowledge_intake.knowledge.ingestion.transport import TransportAdapter
from knowledge_intake.models import AgentIdentity, FilePayload, Source, SourceKind
from knowledge_intake.orchestration.publisher import NotificationPublisher

logger = logging.getLogger(__name__)


@dataclass
class IngestionSession:
    session_id: str
    identity: AgentIdentity
    registry: SourceRegistry
    coordinator: IngestionCoordinator
    created_at: datetime = field(default_factory=datetime.utcnow)

    async def submit_file(
        self,
        file: FilePayload,
        *,
        kind: SourceKind = SourceKind.DOCUMENT,
        source_id: Optional[str] = None,
        name: Optional[str] = None,
    ) -> Source:
        source = Source.for_file(file, kind=kind, source_id=source_id, name=name)
        return await self.coordinator.submit(source, self.identity)

    async def submit_url(
        self,
        url: str,
        *,
        source_id: Optional[str] = None,
        name: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Source:
        source = Source.for_url(url, source_id=source_id, name=name, metadata=metadata)
        return await self.coordinator.submit(source, self.identity)

    def remove_source(self, source_id: str) -> Source:
        return self.coordinator.remove(source_id)

    async def delete_knowledge(self, source_id: str) -> int:
        """Delete a source's items from the persistent store, not just the local view."""

        if not self.identity.agent_id:
            raise MissingIdentityError("Agent identity is required to delete stored knowledge")
        deleted = await self.coordinator.aggregator.store.delete_by_source(self.identity.agent_id, source_id)
        if source_id in self.registry:
            self.registry.attach_knowledge(source_id, [])
        return deleted

    def set_identity(self, identity: AgentIdentity) -> None:
        logger.info("Session %s now targets agent %s", self.session_id, identity.agent_id)
        self.identity = identity


class SessionManager:
    """Create and look up configuration sessions sharing one set of executors."""

    def __init__(
        self,
        *,
        transport: TransportAdapter,
        simulator: FallbackSimulator,
        aggregator: KnowledgeAggregator,
        publisher: Optional[NotificationPublisher] = None,
    ) -> None:
        self.transport = transport
        self.simulator = simulator
        self.aggregator = aggregator
        self.publisher = publisher
        self._sessions: Dict[str, IngestionSession] = {}

    def create(self, identity: Optional[AgentIdentity] = None) -> IngestionSession:
        registry = SourceRegistry()
        coordinator = IngestionCoordinator(
            registry,
            transport=self.transport,
            simulator=self.simulator,
            aggregator=self.aggregator,
            publisher=self.publisher,
        )
        session = IngestionSession(
            session_id=uuid.uuid4().hex,
            identity=identity or AgentIdentity(),
            registry=registry,
            coordinator=coordinator,
        )
        self._sessions[session.session_id] = session
        logger.info("Opened ingestion session %s", session.session_id)
        return session

    def get(self, session_id: str) -> IngestionSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise NotFoundError(f"Session {session_id} not found")
        return session

    def all(self) -> List[IngestionSession]:
        return list(self._sessions.values())

    async def drain(self) -> None:
        for session in self.all():
            await session.coordinator.drain()
