import asyncio

import httpx
import pytest

from knowledge_intake.models import AgentIdentity, FilePayload, Source, SourceStatus

TERMINAL_PATHS = (
    [SourceStatus.QUEUED, SourceStatus.UPLOADING, SourceStatus.COMPLETED],
    [SourceStatus.QUEUED, SourceStatus.UPLOADING, SourceStatus.ERROR],
)


def _assert_monotonic_until_terminal(event_log, source_id):
    values = [
        event.source.progress
        for event in event_log.events
        if event.source.id == source_id and not event.source.status.is_terminal
    ]
    assert values == sorted(values)


@pytest.mark.asyncio
async def test_file_source_completes_through_transport(build_coordinator, pdf, identity, event_log, store):
    coordinator = build_coordinator(lambda request: httpx.Response(200, json={"id": "k1"}))

    await coordinator.submit(Source.for_file(pdf, source_id="file-a"), identity)
    await coordinator.drain()

    assert event_log.statuses("file-a") == list(TERMINAL_PATHS[0])
    source = coordinator.registry.get("file-a")
    assert source.progress == 100
    assert source.response == {"id": "k1"}
    assert store.source_queries == ["file-a"]
    _assert_monotonic_until_terminal(event_log, "file-a")


@pytest.mark.asyncio
async def test_url_source_fails_on_server_error(build_coordinator, identity, event_log, store):
    coordinator = build_coordinator(lambda request: httpx.Response(500, json={"detail": "down"}))

    await coordinator.submit(Source.for_url("https://example.com/pricing", source_id="url-b"), identity)
    await coordinator.drain()

    assert event_log.statuses("url-b") == list(TERMINAL_PATHS[1])
    source = coordinator.registry.get("url-b")
    assert source.status is SourceStatus.ERROR
    assert source.progress == 0
    assert store.source_queries == []


@pytest.mark.asyncio
async def test_missing_agent_falls_back_to_simulation(build_coordinator, pdf, event_log):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={})

    coordinator = build_coordinator(handler)

    await coordinator.submit(Source.for_file(pdf, source_id="file-c"), AgentIdentity(company_id="company-1"))
    await coordinator.drain()

    assert calls == []
    assert event_log.statuses("file-c") == list(TERMINAL_PATHS[0])
    assert coordinator.registry.get("file-c").progress == 100
    _assert_monotonic_until_terminal(event_log, "file-c")


@pytest.mark.asyncio
async def test_concurrent_sources_finish_independently(build_coordinator, identity, event_log, publisher):
    good = FilePayload(filename="good.pdf", content=b"g" * 300)
    bad = FilePayload(filename="bad.xlsx", content=b"b" * 300)

    async def handler(request):
        await asyncio.sleep(0)
        if b"bad.xlsx" in request.content:
            return httpx.Response(422, json={"detail": "unsupported"})
        return httpx.Response(200, json={"id": "k-good"})

    coordinator = build_coordinator(handler)

    await asyncio.gather(
        coordinator.submit(Source.for_file(good, source_id="good"), identity),
        coordinator.submit(Source.for_file(bad, source_id="bad"), identity),
    )
    await coordinator.drain()

    assert coordinator.registry.get("good").status is SourceStatus.COMPLETED
    assert coordinator.registry.get("bad").status is SourceStatus.ERROR
    assert event_log.statuses("good") == list(TERMINAL_PATHS[0])
    assert event_log.statuses("bad") == list(TERMINAL_PATHS[1])
    assert sorted((source_id, status) for source_id, status, _ in publisher.notifications) == [
        ("bad", SourceStatus.ERROR),
        ("good", SourceStatus.COMPLETED),
    ]


@pytest.mark.asyncio
async def test_many_simulated_sources_have_independent_lifecycles(build_coordinator, event_log):
    coordinator = build_coordinator()
    ids = [f"sim-{index}" for index in range(8)]

    for source_id in ids:
        payload = FilePayload(filename=f"{source_id}.csv", content=b"a,b\n1,2\n")
        await coordinator.submit(Source.for_file(payload, source_id=source_id))
    await coordinator.drain()

    for source_id in ids:
        assert event_log.statuses(source_id) == list(TERMINAL_PATHS[0])
        _assert_monotonic_until_terminal(event_log, source_id)
    assert coordinator.registry.stats().completed == len(ids)
