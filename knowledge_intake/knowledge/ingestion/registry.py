"""In-memory registry of sources and their lifecycle state."""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from knowledge_intake.core.exceptions import DuplicateSourceError, InvalidTransitionError, UnknownSourceError
from knowledge_intake.models import KnowledgeItem, Source, SourceKind, SourceStats, SourceStatus

logger = logging.getLogger(__name__)

_TRANSITIONS: Dict[SourceStatus, frozenset] = {
    SourceStatus.QUEUED: frozenset({SourceStatus.UPLOADING}),
    SourceStatus.UPLOADING: frozenset({SourceStatus.COMPLETED, SourceStatus.ERROR}),
    SourceStatus.COMPLETED: frozenset(),
    SourceStatus.ERROR: frozenset(),
}


class SourceChange(str, Enum):
    ADDED = "added"
    PROGRESS = "progress"
    STATUS = "status"
    KNOWLEDGE = "knowledge"
    REMOVED = "removed"


@dataclass(frozen=True)
class SourceEvent:
    change: SourceChange
    source: Source


SourceListener = Callable[[SourceEvent], None]
CompletionHook = Callable[[str], Awaitable[None]]


class SourceRegistry:
    """Authoritative collection of sources for one configuration session.

    Mutations of a single source are serialized by a per-source lock; updates to
    different sources never contend. Listeners receive snapshots so observers
    can never mutate registry state.
    """

    def __init__(self, *, on_completed: Optional[CompletionHook] = None) -> None:
        self._sources: Dict[str, Source] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._listeners: List[SourceListener] = []
        self._on_completed = on_completed

    def set_completion_hook(self, hook: Optional[CompletionHook]) -> None:
        self._on_completed = hook

    def subscribe(self, listener: SourceListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def add_source(self, source: Source) -> Source:
        if source.id in self._sources:
            raise DuplicateSourceError(source.id)
        record = source.snapshot()
        record.status = SourceStatus.QUEUED
        record.progress = 0
        record.response = None
        record.knowledge_items = []
        self._sources[record.id] = record
        self._locks[record.id] = asyncio.Lock()
        logger.info("Registered %s source %s (%s)", record.kind.value, record.id, record.name)
        self._emit(SourceChange.ADDED, record.snapshot())
        return record.snapshot()

    async def update_progress(self, source_id: str, progress: int) -> bool:
        """Record progress; returns False when the update was dropped."""

        progress = max(0, min(100, int(progress)))
        async with self._lock_for(source_id):
            source = self._require(source_id)
            if source.status.is_terminal:
                logger.debug("Ignoring progress %s for terminal source %s", progress, source_id)
                return False
            if progress < source.progress:
                logger.debug("Dropping progress regression %s -> %s for %s", source.progress, progress, source_id)
                return False
            if progress == source.progress:
                return False
            source.progress = progress
            snapshot = source.snapshot()
        self._emit(SourceChange.PROGRESS, snapshot)
        return True

    async def update_status(
        self,
        source_id: str,
        status: SourceStatus,
        response: Optional[Dict[str, Any]] = None,
    ) -> Source:
        async with self._lock_for(source_id):
            source = self._require(source_id)
            if status not in _TRANSITIONS[source.status]:
                raise InvalidTransitionError(source_id, source.status.value, status.value)
            source.status = status
            if status is SourceStatus.COMPLETED:
                source.progress = 100
                source.response = response if response is not None else {}
            elif status is SourceStatus.ERROR:
                source.progress = 0
                source.response = None
            snapshot = source.snapshot()
        logger.info("Source %s is now %s", source_id, status.value)
        self._emit(SourceChange.STATUS, snapshot)

        if status is SourceStatus.COMPLETED and self._on_completed is not None:
            await self._on_completed(source_id)
        return snapshot

    def attach_knowledge(self, source_id: str, items: Sequence[KnowledgeItem]) -> bool:
        source = self._sources.get(source_id)
        if source is None:
            logger.debug("Discarding %s knowledge items for removed source %s", len(items), source_id)
            return False
        source.knowledge_items = list(items)
        self._emit(SourceChange.KNOWLEDGE, source.snapshot())
        return True

    def remove_source(self, source_id: str) -> Source:
        source = self._sources.pop(source_id, None)
        if source is None:
            raise UnknownSourceError(source_id)
        self._locks.pop(source_id, None)
        source.knowledge_items = []
        logger.info("Removed source %s", source_id)
        self._emit(SourceChange.REMOVED, source.snapshot())
        return source

    def get(self, source_id: str) -> Source:
        return self._require(source_id).snapshot()

    def __contains__(self, source_id: object) -> bool:
        return source_id in self._sources

    def __len__(self) -> int:
        return len(self._sources)

    def list_all(self) -> List[Source]:
        return [source.snapshot() for source in self._sources.values()]

    def list_by_kind(self, kind: SourceKind) -> List[Source]:
        return [source.snapshot() for source in self._sources.values() if source.kind is kind]

    def stats(self) -> SourceStats:
        sources = list(self._sources.values())
        return SourceStats(
            total=len(sources),
            completed=sum(1 for source in sources if source.status is SourceStatus.COMPLETED),
            by_kind=dict(Counter(source.kind for source in sources)),
        )

    def _require(self, source_id: str) -> Source:
        source = self._sources.get(source_id)
        if source is None:
            raise UnknownSourceError(source_id)
        return source

    def _lock_for(self, source_id: str) -> asyncio.Lock:
        lock = self._locks.get(source_id)
        if lock is None:
            raise UnknownSourceError(source_id)
        return lock

    def _emit(self, change: SourceChange, source: Source) -> None:
        event = SourceEvent(change=change, source=source)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:  # pragma: no cover
                logger.exception("Source listener failed for %s", source.id)
