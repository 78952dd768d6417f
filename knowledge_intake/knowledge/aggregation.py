"""Attach stored knowledge to completed sources and group it for display."""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Dict, List, Optional

from knowledge_intake.core.exceptions import KnowledgeFetchError
from knowledge_intake.knowledge.ingestion.registry import SourceRegistry
from knowledge_intake.knowledge.store import KnowledgeStore
from knowledge_intake.models import KnowledgeItem, Source
from knowledge_intake.utils.monitoring import knowledge_fetch_failures_total

logger = logging.getLogger(__name__)

UNCATEGORIZED = "uncategorized"


class KnowledgeAggregator:
    def __init__(self, store: KnowledgeStore) -> None:
        self.store = store

    async def fetch_for_source(self, agent_id: str, source_id: str) -> List[KnowledgeItem]:
        try:
            return await self.store.list_by_source(agent_id, source_id)
        except Exception as exc:
            raise KnowledgeFetchError(source_id, str(exc)) from exc

    async def attach(self, registry: SourceRegistry, source_id: str, agent_id: Optional[str]) -> List[KnowledgeItem]:
        """Load a completed source's items into the registry.

        A failed fetch is logged and leaves the source completed with no items.
        Without an agent identity nothing has been stored, so no query is made.
        """

        if not agent_id:
            logger.debug("No agent identity for %s; skipping knowledge fetch", source_id)
            return []
        try:
            items = await self.fetch_for_source(agent_id, source_id)
        except KnowledgeFetchError as exc:
            knowledge_fetch_failures_total.inc()
            logger.error("%s", exc)
            return []
        registry.attach_knowledge(source_id, items)
        logger.info("Attached %s knowledge items to source %s", len(items), source_id)
        return items

    async def load_by_category(self, agent_id: str) -> List[Source]:
        """Project every item stored for ``agent_id`` into one virtual source per category."""

        items = await self.store.list_by_agent(agent_id)
        return [Source.for_category(category, grouped) for category, grouped in group_by_category(items).items()]


def group_by_category(items: List[KnowledgeItem]) -> Dict[str, List[KnowledgeItem]]:
    groups: Dict[str, List[KnowledgeItem]] = OrderedDict()
    for item in items:
        category = (item.category or "").strip() or UNCATEGORIZED
        groups.setdefault(category, []).append(item)
    return groups
