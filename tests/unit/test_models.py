import pytest

from knowledge_intake.core.config import Settings
from knowledge_intake.models import FilePayload, Source, SourceKind, SourceStatus
from knowledge_intake.models.source import default_name
from knowledge_intake.orchestration.publisher import NotificationPublisher, build_notification


def test_file_kinds_require_a_file():
    with pytest.raises(ValueError):
        Source(id="x", kind=SourceKind.DOCUMENT, name="doc", url="https://example.com")
    with pytest.raises(ValueError):
        Source(id="x", kind=SourceKind.WEB_PAGE, name="page", file=FilePayload(filename="a", content=b""))


def test_factories_fill_ids_and_names():
    sheet = Source.for_file(FilePayload(filename="", content=b"1"), kind=SourceKind.SPREADSHEET)
    page = Source.for_url("https://example.com")

    assert sheet.id and page.id and sheet.id != page.id
    assert sheet.name == "New SPREADSHEET source"
    assert page.name == "https://example.com"
    assert default_name(SourceKind.WEB_PAGE) == "New WEB PAGE source"


def test_status_labels_and_terminality():
    assert SourceStatus.UPLOADING.label == "Uploading"
    assert SourceStatus.ERROR.is_terminal
    assert not SourceStatus.QUEUED.is_terminal


def test_simulator_settings_bounds_are_validated():
    with pytest.raises(ValueError):
        Settings(SIMULATOR_MIN_INCREMENT=20, SIMULATOR_MAX_INCREMENT=10)


def test_allowed_origins_accepts_comma_separated_values():
    assert Settings(ALLOWED_ORIGINS="http://a.test, http://b.test").ALLOWED_ORIGINS == [
        "http://a.test",
        "http://b.test",
    ]


@pytest.mark.asyncio
async def test_disabled_publisher_only_logs(caplog):
    publisher = NotificationPublisher(enabled=False)
    source = Source.for_url("https://example.com", source_id="p1")
    source.status = SourceStatus.ERROR

    await publisher.notify(source, error="HTTP 500")

    assert publisher._producer is None
    assert "p1" in caplog.text


def test_notification_payload():
    source = Source.for_url("https://example.com", source_id="p1")
    payload = build_notification(source, error="boom")
    assert payload["source_id"] == "p1"
    assert payload["kind"] == "web_page"
    assert payload["status"] == "queued"
    assert payload["error"] == "boom"
