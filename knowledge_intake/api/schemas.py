"""Request and response models for the operator-facing API."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, HttpUrl, TypeAdapter, field_validator

from knowledge_intake.knowledge.ingestion.session import IngestionSession
from knowledge_intake.models import KnowledgeItem, Source, SourceKind, SourceStats, SourceStatus


class IdentityPayload(BaseModel):
    agent_id: Optional[str] = Field(None, description="Durable agent identifier")
    company_id: Optional[str] = Field(None, description="Owning organization identifier")


class SessionResponse(BaseModel):
    session_id: str
    agent_id: Optional[str] = None
    company_id: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_session(cls, session: IngestionSession) -> "SessionResponse":
        return cls(
            session_id=session.session_id,
            agent_id=session.identity.agent_id,
            company_id=session.identity.company_id,
            created_at=session.created_at,
        )


_HTTP_URL = TypeAdapter(HttpUrl)


class UrlSourceRequest(BaseModel):
    url: str = Field(..., description="Page to ingest, forwarded exactly as given")
    kind: SourceKind = Field(SourceKind.WEB_PAGE, description="Only web_page sources are submitted by URL")
    name: Optional[str] = Field(None, description="Display label; defaults to the URL")
    source_id: Optional[str] = Field(None, description="Caller-generated identifier")
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("url")
    @classmethod
    def validate_url(cls, value: str) -> str:
        """Check the URL is a valid http(s) address without normalizing it."""
        value = value.strip()
        try:
            _HTTP_URL.validate_python(value)
        except ValueError as exc:
            raise ValueError("url must be an absolute http(s) URL") from exc
        return value

    @field_validator("kind")
    @classmethod
    def validate_kind(cls, value: SourceKind) -> SourceKind:
        if not value.takes_url:
            raise ValueError(f"{value.value} sources must be uploaded as files")
        return value


class SourceResponse(BaseModel):
    id: str
    kind: SourceKind
    name: str
    status: SourceStatus
    status_label: str
    progress: int
    response: Optional[Dict[str, Any]] = None
    knowledge_items: List[KnowledgeItem] = Field(default_factory=list)
    created_at: datetime

    @classmethod
    def from_source(cls, source: Source) -> "SourceResponse":
        return cls(
            id=source.id,
            kind=source.kind,
            name=source.name,
            status=source.status,
            status_label=source.status.label,
            progress=source.progress,
            response=source.response,
            knowledge_items=source.knowledge_items,
            created_at=source.created_at,
        )


class StatsResponse(BaseModel):
    total: int
    completed: int
    by_kind: Dict[str, int]

    @classmethod
    def from_stats(cls, stats: SourceStats) -> "StatsResponse":
        return cls(
            total=stats.total,
            completed=stats.completed,
            by_kind={kind.value: count for kind, count in stats.by_kind.items()},
        )


class KnowledgeDeletionResponse(BaseModel):
    source_id: str
    deleted: int


class CategoryResponse(BaseModel):
    category: str
    item_count: int
    knowledge_items: List[KnowledgeItem]
