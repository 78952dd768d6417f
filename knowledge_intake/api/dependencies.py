from __future__ import annotations

from fastapi import Depends, Request

from knowledge_intake.core.config import settings
from knowledge_intake.knowledge.aggregation import KnowledgeAggregator
from knowledge_intake.knowledge.ingestion.session import IngestionSession, SessionManager
from knowledge_intake.knowledge.ingestion.simulator import FallbackSimulator
from knowledge_intake.knowledge.ingestion.transport import TransportAdapter
from knowledge_intake.knowledge.store import create_knowledge_store
from knowledge_intake.orchestration.publisher import notification_publisher


def build_session_manager() -> SessionManager:
    return SessionManager(
        transport=TransportAdapter(),
        simulator=FallbackSimulator(),
        aggregator=KnowledgeAggregator(create_knowledge_store(settings.KNOWLEDGE_STORE)),
        publisher=notification_publisher,
    )


async def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.session_manager


async def get_session(session_id: str, manager: SessionManager = Depends(get_session_manager)) -> IngestionSession:
    return manager.get(session_id)
