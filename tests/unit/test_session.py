import pytest

from knowledge_intake.core.exceptions import NotFoundError
from knowledge_intake.knowledge.aggregation import KnowledgeAggregator
from knowledge_intake.knowledge.ingestion.session import SessionManager
from knowledge_intake.models import AgentIdentity, FilePayload, SourceStatus


@pytest.fixture
def manager(simulator, store, publisher, transport_factory):
    return SessionManager(
        transport=transport_factory(lambda request: None),
        simulator=simulator,
        aggregator=KnowledgeAggregator(store),
        publisher=publisher,
    )


def test_sessions_are_isolated(manager):
    first = manager.create()
    second = manager.create(AgentIdentity(agent_id="a", company_id="c"))

    assert manager.get(first.session_id) is first
    assert first.registry is not second.registry
    assert second.identity.is_complete
    with pytest.raises(NotFoundError):
        manager.get("missing")


@pytest.mark.asyncio
async def test_session_submissions_land_in_its_registry(manager):
    session = manager.create()
    other = manager.create()

    await session.submit_file(FilePayload(filename="a.pdf", content=b"a"), source_id="a")
    await session.submit_url("https://example.com", source_id="b")
    await manager.drain()

    assert {source.id for source in session.registry.list_all()} == {"a", "b"}
    assert all(source.status is SourceStatus.COMPLETED for source in session.registry.list_all())
    assert other.registry.list_all() == []
