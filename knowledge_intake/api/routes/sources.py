"""FastAPI routes for submitting and tracking knowledge sources."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status

from knowledge_intake.api.dependencies import get_session, get_session_manager
from knowledge_intake.api.schemas import (
    CategoryResponse,
    IdentityPayload,
    KnowledgeDeletionResponse,
    SessionResponse,
    SourceResponse,
    StatsResponse,
    UrlSourceRequest,
)
from knowledge_intake.core.exceptions import ValidationError
from knowledge_intake.knowledge.ingestion.session import IngestionSession, SessionManager
from knowledge_intake.models import AgentIdentity, FilePayload, SourceKind

router = APIRouter(prefix="/v1", tags=["sources"])


@router.post("/sessions", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    payload: Optional[IdentityPayload] = None,
    manager: SessionManager = Depends(get_session_manager),
) -> SessionResponse:
    """Open a configuration session, optionally bound to an existing agent."""

    payload = payload or IdentityPayload()
    session = manager.create(AgentIdentity(agent_id=payload.agent_id, company_id=payload.company_id))
    return SessionResponse.from_session(session)


@router.get("/sessions/{session_id}", response_model=SessionResponse)
async def read_session(session: IngestionSession = Depends(get_session)) -> SessionResponse:
    return SessionResponse.from_session(session)


@router.put("/sessions/{session_id}/identity", response_model=SessionResponse)
async def update_identity(
    payload: IdentityPayload,
    session: IngestionSession = Depends(get_session),
) -> SessionResponse:
    """Bind the session to a durably created agent; later submissions use the real service."""

    session.set_identity(AgentIdentity(agent_id=payload.agent_id, company_id=payload.company_id))
    return SessionResponse.from_session(session)


@router.post(
    "/sessions/{session_id}/sources/file",
    response_model=SourceResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def submit_file(
    file: UploadFile = File(...),
    kind: SourceKind = Form(SourceKind.DOCUMENT),
    source_id: Optional[str] = Form(None),
    name: Optional[str] = Form(None),
    session: IngestionSession = Depends(get_session),
) -> SourceResponse:
    """Queue an uploaded document or spreadsheet for ingestion."""

    if kind.takes_url:
        raise ValidationError(f"{kind.value} sources must be submitted as a URL")
    content = await file.read()
    payload = FilePayload(
        filename=file.filename or "upload",
        content=content,
        content_type=file.content_type or "application/octet-stream",
    )
    source = await session.submit_file(payload, kind=kind, source_id=source_id, name=name)
    return SourceResponse.from_source(source)


@router.post(
    "/sessions/{session_id}/sources/url",
    response_model=SourceResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def submit_url(
    request: UrlSourceRequest,
    session: IngestionSession = Depends(get_session),
) -> SourceResponse:
    """Queue a web page for ingestion."""

    source = await session.submit_url(
        request.url,
        source_id=request.source_id,
        name=request.name,
        metadata=request.metadata,
    )
    return SourceResponse.from_source(source)


@router.get("/sessions/{session_id}/sources", response_model=List[SourceResponse])
async def list_sources(
    kind: Optional[SourceKind] = None,
    session: IngestionSession = Depends(get_session),
) -> List[SourceResponse]:
    sources = session.registry.list_by_kind(kind) if kind else session.registry.list_all()
    return [SourceResponse.from_source(source) for source in sources]


@router.get("/sessions/{session_id}/sources/{source_id}", response_model=SourceResponse)
async def read_source(source_id: str, session: IngestionSession = Depends(get_session)) -> SourceResponse:
    return SourceResponse.from_source(session.registry.get(source_id))


@router.delete("/sessions/{session_id}/sources/{source_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_source(source_id: str, session: IngestionSession = Depends(get_session)) -> None:
    """
    Remove a source from the session.

    Note: stored knowledge items are kept; delete them with the `/knowledge` endpoint.
    """
    session.remove_source(source_id)


@router.delete(
    "/sessions/{session_id}/sources/{source_id}/knowledge",
    response_model=KnowledgeDeletionResponse,
)
async def delete_source_knowledge(
    source_id: str,
    session: IngestionSession = Depends(get_session),
) -> KnowledgeDeletionResponse:
    deleted = await session.delete_knowledge(source_id)
    return KnowledgeDeletionResponse(source_id=source_id, deleted=deleted)


@router.get("/sessions/{session_id}/stats", response_model=StatsResponse)
async def read_stats(session: IngestionSession = Depends(get_session)) -> StatsResponse:
    return StatsResponse.from_stats(session.registry.stats())


@router.get("/agents/{agent_id}/knowledge", response_model=List[CategoryResponse])
async def read_agent_knowledge(
    agent_id: str,
    manager: SessionManager = Depends(get_session_manager),
) -> List[CategoryResponse]:
    """Everything stored for an agent, grouped by category."""

    projections = await manager.aggregator.load_by_category(agent_id)
    return [
        CategoryResponse(
            category=projection.name,
            item_count=len(projection.knowledge_items),
            knowledge_items=projection.knowledge_items,
        )
        for projection in projections
    ]
