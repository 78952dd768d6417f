"""HTTP transport to the external ingestion service."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Optional

import httpx
from opentelemetry import trace

from knowledge_intake.core.config import settings
from knowledge_intake.core.exceptions import IngestionServiceError, MissingIdentityError
from knowledge_intake.knowledge.ingestion.events import IngestionEvent, ProgressTick, UploadResult
from knowledge_intake.models import AgentIdentity, Source

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class TransportAdapter:
    """Send one source to the ingestion service and stream its progress.

    ``upload`` yields ``ProgressTick`` values computed from bytes handed to the
    connection (``sent * 100 // total``) and finishes with exactly one
    ``UploadResult``. Failures never raise out of the iterator; they arrive as
    an ``UploadResult`` carrying an ``IngestionServiceError``. The only error
    raised is ``MissingIdentityError``, before any network I/O.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        *,
        base_url: Optional[str] = None,
        file_path: Optional[str] = None,
        url_path: Optional[str] = None,
        chunk_size: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self._client = client
        self._owns_client = client is None
        self.base_url = str(base_url or settings.INGESTION_SERVICE_URL).rstrip("/")
        self.file_path = file_path or settings.INGESTION_FILE_UPLOAD_PATH
        self.url_path = url_path or settings.INGESTION_URL_UPLOAD_PATH
        self.chunk_size = chunk_size or settings.UPLOAD_CHUNK_SIZE
        self.timeout = timeout or settings.INGESTION_TIMEOUT_SECONDS

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    @staticmethod
    def ensure_identity(identity: Optional[AgentIdentity]) -> AgentIdentity:
        if identity is None or not identity.agent_id:
            raise MissingIdentityError("Agent identity is not available yet")
        if not identity.company_id:
            raise MissingIdentityError("Company identity is not available yet", agent_id=identity.agent_id)
        return identity

    async def upload(self, source: Source, identity: Optional[AgentIdentity]) -> AsyncIterator[IngestionEvent]:
        identity = self.ensure_identity(identity)
        request = self._build_request(source, identity)
        body = request.read()

        queue: asyncio.Queue = asyncio.Queue()
        sender = asyncio.create_task(self._send(source, request, body, queue))
        try:
            while True:
                event = await queue.get()
                yield event
                if isinstance(event, UploadResult):
                    break
        finally:
            if not sender.done():
                sender.cancel()

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    def _build_request(self, source: Source, identity: AgentIdentity) -> httpx.Request:
        if source.url is not None:
            return self.client.build_request(
                "POST",
                f"{self.base_url}{self.url_path}",
                json={
                    "url": source.url,
                    "agent_id": identity.agent_id,
                    "company_id": identity.company_id,
                    "metadata": source.metadata,
                },
            )

        file = source.file
        return self.client.build_request(
            "POST",
            f"{self.base_url}{self.file_path}",
            data={"agent_id": identity.agent_id, "company_id": identity.company_id},
            files={"file": (file.filename, file.content, file.content_type)},
        )

    async def _send(self, source: Source, request: httpx.Request, body: bytes, queue: asyncio.Queue) -> None:
        total = len(body)
        chunk_size = self.chunk_size

        async def stream_body():
            sent = 0
            reported = -1
            for offset in range(0, total, chunk_size):
                chunk = body[offset : offset + chunk_size]
                yield chunk
                sent += len(chunk)
                percent = sent * 100 // total
                if percent > reported:
                    reported = percent
                    queue.put_nowait(ProgressTick(percent))

        streamed = httpx.Request(
            request.method,
            request.url,
            headers=request.headers,
            content=stream_body(),
            extensions=request.extensions,
        )

        with tracer.start_as_current_span("ingestion.upload") as span:
            span.set_attribute("source.id", source.id)
            span.set_attribute("source.kind", source.kind.value)
            span.set_attribute("payload.bytes", total)
            try:
                response = await self.client.send(streamed)
            except httpx.HTTPError as exc:
                span.record_exception(exc)
                queue.put_nowait(UploadResult.failure(IngestionServiceError(f"Network failure: {exc}")))
                return
            except Exception as exc:  # pragma: no cover - unexpected transport failure
                logger.exception("Upload of source %s failed unexpectedly", source.id)
                queue.put_nowait(UploadResult.failure(IngestionServiceError(f"Upload failed: {exc}")))
                return

            span.set_attribute("http.status_code", response.status_code)
            queue.put_nowait(self._interpret(source, response))

    @staticmethod
    def _interpret(source: Source, response: httpx.Response) -> UploadResult:
        if not response.is_success:
            detail = response.text[:200] if response.text else response.reason_phrase
            logger.warning("Ingestion service rejected source %s with HTTP %s", source.id, response.status_code)
            return UploadResult.failure(
                IngestionServiceError(
                    f"Ingestion service returned HTTP {response.status_code}: {detail}",
                    status_code=response.status_code,
                )
            )
        try:
            payload: Any = response.json()
        except ValueError as exc:
            logger.warning("Ingestion service sent an unparseable body for source %s", source.id)
            return UploadResult.failure(
                IngestionServiceError(f"Unparseable response body: {exc}", status_code=response.status_code)
            )
        if not isinstance(payload, dict):
            payload = {"result": payload}
        return UploadResult.success(payload)
