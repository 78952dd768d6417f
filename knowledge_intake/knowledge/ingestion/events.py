"""Events yielded by ingestion executors.

Both the transport adapter and the fallback simulator expose the same shape:
an async iterator of zero or more ``ProgressTick`` values followed by exactly
one ``UploadResult``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, Optional, Union

from knowledge_intake.core.exceptions import IngestionServiceError


@dataclass(frozen=True)
class ProgressTick:
    percent: int


@dataclass(frozen=True)
class UploadResult:
    response: Optional[Dict[str, Any]] = None
    error: Optional[IngestionServiceError] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, response: Optional[Dict[str, Any]]) -> "UploadResult":
        return cls(response=response if response is not None else {})

    @classmethod
    def failure(cls, error: IngestionServiceError) -> "UploadResult":
        return cls(error=error)


IngestionEvent = Union[ProgressTick, UploadResult]
IngestionEventStream = AsyncIterator[IngestionEvent]
