"""Source lifecycle and knowledge item models."""

from __future__ import annotations

import copy
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class SourceKind(str, Enum):
    """Kinds of knowledge source an operator can submit."""

    DOCUMENT = "document"
    WEB_PAGE = "web_page"
    SPREADSHEET = "spreadsheet"

    @property
    def takes_url(self) -> bool:
        return self is SourceKind.WEB_PAGE


class SourceStatus(str, Enum):
    """Lifecycle states of a source."""

    QUEUED = "queued"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (SourceStatus.COMPLETED, SourceStatus.ERROR)

    @property
    def label(self) -> str:
        return self.value.capitalize()


class KnowledgeItem(BaseModel):
    """One unit of knowledge derived from a source and stored against an agent."""

    id: str = Field(..., description="Identifier assigned by the knowledge store")
    content: str = Field(..., description="Extracted text")
    origin_source_id: Optional[str] = Field(None, description="Source that produced the item")
    category: Optional[str] = Field(None, description="Free-form classification tag")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Origin-specific metadata")
    created_at: Optional[datetime] = Field(None, description="Store creation timestamp")


@dataclass
class FilePayload:
    """An uploaded file held in memory until the transport sends it."""

    filename: str
    content: bytes
    content_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass
class AgentIdentity:
    """Durable identities the ingestion service needs to accept an upload."""

    agent_id: Optional[str] = None
    company_id: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return bool(self.agent_id) and bool(self.company_id)


@dataclass
class Source:
    """One submitted unit of ingestion tracked through its lifecycle."""

    id: str
    kind: SourceKind
    name: str
    file: Optional[FilePayload] = None
    url: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    status: SourceStatus = SourceStatus.QUEUED
    progress: int = 0
    response: Optional[Dict[str, Any]] = None
    knowledge_items: List[KnowledgeItem] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.utcnow)
    # Category projections built from stored items carry no payload.
    virtual: bool = False

    def __post_init__(self) -> None:
        if self.virtual:
            return
        if self.kind.takes_url:
            if not self.url or self.file is not None:
                raise ValueError(f"{self.kind.value} sources require a url and no file")
        elif self.file is None or self.url is not None:
            raise ValueError(f"{self.kind.value} sources require a file and no url")

    @classmethod
    def for_file(
        cls,
        file: FilePayload,
        *,
        kind: SourceKind = SourceKind.DOCUMENT,
        source_id: Optional[str] = None,
        name: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> "Source":
        return cls(
            id=source_id or new_source_id(),
            kind=kind,
            name=name or file.filename or default_name(kind),
            file=file,
            metadata=dict(metadata or {}),
        )

    @classmethod
    def for_url(
        cls,
        url: str,
        *,
        source_id: Optional[str] = None,
        name: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> "Source":
        return cls(
            id=source_id or new_source_id(),
            kind=SourceKind.WEB_PAGE,
            name=name or url or default_name(SourceKind.WEB_PAGE),
            url=url,
            metadata=dict(metadata or {}),
        )

    @classmethod
    def for_category(cls, category: str, items: List[KnowledgeItem]) -> "Source":
        return cls(
            id=f"category:{category}",
            kind=SourceKind.DOCUMENT,
            name=category,
            status=SourceStatus.COMPLETED,
            progress=100,
            knowledge_items=list(items),
            virtual=True,
        )

    def snapshot(self) -> "Source":
        """Copy safe to hand to observers; the file bytes are shared, not copied."""

        clone = copy.copy(self)
        clone.file = copy.copy(self.file)
        clone.metadata = dict(self.metadata)
        clone.response = copy.deepcopy(self.response)
        clone.knowledge_items = list(self.knowledge_items)
        return clone


@dataclass
class SourceStats:
    total: int
    completed: int
    by_kind: Dict[SourceKind, int]


def new_source_id() -> str:
    return uuid.uuid4().hex


def default_name(kind: SourceKind) -> str:
    return f"New {kind.name.replace('_', ' ')} source"
