import random
from typing import Callable, List

import httpx
import pytest

from knowledge_intake.knowledge.aggregation import KnowledgeAggregator
from knowledge_intake.knowledge.ingestion.coordinator import IngestionCoordinator
from knowledge_intake.knowledge.ingestion.registry import SourceEvent, SourceRegistry
from knowledge_intake.knowledge.ingestion.simulator import FallbackSimulator, SimulatorConfig
from knowledge_intake.knowledge.ingestion.transport import TransportAdapter
from knowledge_intake.knowledge.store import InMemoryKnowledgeStore
from knowledge_intake.models import AgentIdentity, FilePayload

INGESTION_URL = "http://ingestion.test"


class RecordingPublisher:
    def __init__(self):
        self.notifications = []

    async def notify(self, source, *, error=None):
        self.notifications.append((source.id, source.status, error))

    async def close(self):
        return None


class CountingStore(InMemoryKnowledgeStore):
    def __init__(self, *args, fail: bool = False, **kwargs):
        super().__init__(*args, **kwargs)
        self.fail = fail
        self.source_queries: List[str] = []

    async def list_by_source(self, agent_id, source_id):
        self.source_queries.append(source_id)
        if self.fail:
            raise RuntimeError("store offline")
        return await super().list_by_source(agent_id, source_id)


class EventLog:
    """Collects registry events per source id."""

    def __init__(self):
        self.events: List[SourceEvent] = []

    def __call__(self, event: SourceEvent) -> None:
        self.events.append(event)

    def statuses(self, source_id):
        seen = []
        for event in self.events:
            if event.source.id != source_id:
                continue
            if not seen or seen[-1] != event.source.status:
                seen.append(event.source.status)
        return seen

    def progress(self, source_id):
        return [event.source.progress for event in self.events if event.source.id == source_id]


async def no_sleep(_: float) -> None:
    return None


def make_transport(handler: Callable, *, chunk_size: int = 16) -> TransportAdapter:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return TransportAdapter(client, base_url=INGESTION_URL, chunk_size=chunk_size, timeout=5)


@pytest.fixture
def identity():
    return AgentIdentity(agent_id="agent-1", company_id="company-1")


@pytest.fixture
def pdf():
    return FilePayload(filename="manual.pdf", content=b"%PDF-1.7 " + b"x" * 200, content_type="application/pdf")


@pytest.fixture
def simulator():
    config = SimulatorConfig(interval=0, min_increment=25, max_increment=40, completion_delay=0)
    return FallbackSimulator(config, rng=random.Random(7), sleep=no_sleep)


@pytest.fixture
def store():
    return CountingStore()


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def registry():
    return SourceRegistry()


@pytest.fixture
def event_log(registry):
    log = EventLog()
    registry.subscribe(log)
    return log


@pytest.fixture
def build_coordinator(registry, simulator, store, publisher):
    def _build(handler: Callable = None, *, chunk_size: int = 16) -> IngestionCoordinator:
        transport = make_transport(handler or _unexpected_request, chunk_size=chunk_size)
        return IngestionCoordinator(
            registry,
            transport=transport,
            simulator=simulator,
            aggregator=KnowledgeAggregator(store),
            publisher=publisher,
        )

    return _build


def _unexpected_request(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"Unexpected network call to {request.url}")


@pytest.fixture
def transport_factory():
    return make_transport
