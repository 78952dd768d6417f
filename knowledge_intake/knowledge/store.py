"""Access to persisted knowledge items.

The schema belongs to the store; this module only needs lookups by agent and
by originating source, plus deletion of a source's items on operator request.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Protocol

from knowledge_intake.core.database import DatabaseManager, database_manager
from knowledge_intake.models import KnowledgeItem

logger = logging.getLogger(__name__)


class KnowledgeStore(Protocol):
    async def list_by_source(self, agent_id: str, source_id: str) -> List[KnowledgeItem]:
        ...

    async def list_by_agent(self, agent_id: str) -> List[KnowledgeItem]:
        ...

    async def delete_by_source(self, agent_id: str, source_id: str) -> int:
        ...


class KnowledgeStoreUnavailable(RuntimeError):
    """Raised when the backing database has not been connected."""


class InMemoryKnowledgeStore:
    """Process-local store for development and tests."""

    def __init__(self, items: Optional[Iterable[Dict[str, Any]]] = None) -> None:
        self._records: List[Dict[str, Any]] = []
        for record in items or []:
            self.add(**record)

    def add(
        self,
        *,
        agent_id: str,
        content: str,
        source_id: Optional[str] = None,
        category: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        id: Optional[str] = None,
    ) -> KnowledgeItem:
        record = {
            "id": id or uuid.uuid4().hex,
            "agent_id": agent_id,
            "source_id": source_id,
            "content": content,
            "category": category,
            "metadata": dict(metadata or {}),
            "created_at": datetime.utcnow(),
        }
        self._records.append(record)
        return _to_item(record)

    async def list_by_source(self, agent_id: str, source_id: str) -> List[KnowledgeItem]:
        return [
            _to_item(record)
            for record in self._records
            if record["agent_id"] == agent_id and record["source_id"] == source_id
        ]

    async def list_by_agent(self, agent_id: str) -> List[KnowledgeItem]:
        return [_to_item(record) for record in self._records if record["agent_id"] == agent_id]

    async def delete_by_source(self, agent_id: str, source_id: str) -> int:
        before = len(self._records)
        self._records = [
            record
            for record in self._records
            if not (record["agent_id"] == agent_id and record["source_id"] == source_id)
        ]
        return before - len(self._records)


class MongoKnowledgeStore:
    """Knowledge items persisted in MongoDB, one document per item."""

    def __init__(self, manager: Optional[DatabaseManager] = None) -> None:
        self.manager = manager or database_manager

    async def list_by_source(self, agent_id: str, source_id: str) -> List[KnowledgeItem]:
        return await self._find({"agent_id": agent_id, "source_id": source_id})

    async def list_by_agent(self, agent_id: str) -> List[KnowledgeItem]:
        return await self._find({"agent_id": agent_id})

    async def delete_by_source(self, agent_id: str, source_id: str) -> int:
        result = await self._collection().delete_many({"agent_id": agent_id, "source_id": source_id})
        logger.info("Deleted %s knowledge items for source %s", result.deleted_count, source_id)
        return result.deleted_count

    async def _find(self, query: Dict[str, Any]) -> List[KnowledgeItem]:
        cursor = self._collection().find(query).sort("created_at", 1)
        items = []
        async for record in cursor:
            items.append(_to_item(record))
        return items

    def _collection(self):
        collection = self.manager.knowledge_collection()
        if collection is None:
            raise KnowledgeStoreUnavailable("MongoDB client unavailable")
        return collection


def _to_item(record: Dict[str, Any]) -> KnowledgeItem:
    return KnowledgeItem(
        id=str(record.get("id") or record.get("_id")),
        content=record.get("content") or "",
        origin_source_id=record.get("source_id"),
        category=record.get("category"),
        metadata=record.get("metadata") or {},
        created_at=record.get("created_at"),
    )


def create_knowledge_store(backend: str) -> KnowledgeStore:
    if backend == "memory":
        return InMemoryKnowledgeStore()
    return MongoKnowledgeStore()
