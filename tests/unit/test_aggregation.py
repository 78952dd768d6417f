import pytest

from knowledge_intake.core.exceptions import KnowledgeFetchError
from knowledge_intake.knowledge.aggregation import UNCATEGORIZED, KnowledgeAggregator, group_by_category
from knowledge_intake.knowledge.store import InMemoryKnowledgeStore
from knowledge_intake.models import FilePayload, KnowledgeItem, Source, SourceStatus


def _seed(store):
    store.add(agent_id="agent-1", source_id="s1", content="Reset the router", category="procedure", id="k1")
    store.add(agent_id="agent-1", source_id="s1", content="A router forwards packets", category="concept", id="k2")
    store.add(agent_id="agent-1", source_id="s2", content="Step two", category="procedure", id="k3")
    store.add(agent_id="agent-1", source_id="s3", content="Loose note", id="k4")
    store.add(agent_id="agent-2", source_id="s1", content="Other agent", category="concept", id="k5")


async def _completed(registry, source_id="s1"):
    registry.add_source(Source.for_file(FilePayload(filename="a.pdf", content=b"a"), source_id=source_id))
    await registry.update_status(source_id, SourceStatus.UPLOADING)
    await registry.update_status(source_id, SourceStatus.COMPLETED, {})


@pytest.mark.asyncio
async def test_attach_loads_only_items_from_that_source(registry, store):
    _seed(store)
    await _completed(registry)

    items = await KnowledgeAggregator(store).attach(registry, "s1", "agent-1")

    assert [item.id for item in items] == ["k1", "k2"]
    assert [item.id for item in registry.get("s1").knowledge_items] == ["k1", "k2"]
    assert all(item.origin_source_id == "s1" for item in items)
    assert store.source_queries == ["s1"]


@pytest.mark.asyncio
async def test_fetch_failure_leaves_source_completed_and_empty(registry, store):
    store.fail = True
    await _completed(registry)

    items = await KnowledgeAggregator(store).attach(registry, "s1", "agent-1")

    assert items == []
    source = registry.get("s1")
    assert source.status is SourceStatus.COMPLETED
    assert source.knowledge_items == []


@pytest.mark.asyncio
async def test_fetch_for_source_wraps_store_errors(store):
    store.fail = True
    with pytest.raises(KnowledgeFetchError):
        await KnowledgeAggregator(store).fetch_for_source("agent-1", "s1")


@pytest.mark.asyncio
async def test_attach_without_agent_skips_the_store(registry, store):
    await _completed(registry)

    assert await KnowledgeAggregator(store).attach(registry, "s1", None) == []
    assert store.source_queries == []


@pytest.mark.asyncio
async def test_attach_after_removal_is_harmless(registry, store):
    _seed(store)
    await _completed(registry)
    registry.remove_source("s1")

    items = await KnowledgeAggregator(store).attach(registry, "s1", "agent-1")

    assert len(items) == 2
    assert "s1" not in registry


@pytest.mark.asyncio
async def test_load_by_category_builds_virtual_sources():
    store = InMemoryKnowledgeStore()
    _seed(store)

    projections = await KnowledgeAggregator(store).load_by_category("agent-1")

    assert [projection.name for projection in projections] == ["procedure", "concept", UNCATEGORIZED]
    procedure = projections[0]
    assert procedure.virtual
    assert procedure.status is SourceStatus.COMPLETED
    assert procedure.progress == 100
    assert [item.id for item in procedure.knowledge_items] == ["k1", "k3"]


def test_group_by_category_treats_blank_as_uncategorized():
    items = [
        KnowledgeItem(id="1", content="a", category="  "),
        KnowledgeItem(id="2", content="b", category=None),
        KnowledgeItem(id="3", content="c", category="example"),
    ]
    groups = group_by_category(items)
    assert list(groups) == [UNCATEGORIZED, "example"]
    assert [item.id for item in groups[UNCATEGORIZED]] == ["1", "2"]
