"""Custom exception hierarchy for the knowledge intake service."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import status


class ApplicationError(Exception):
    """Base application error with HTTP semantics."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "application_error"

    def __init__(self, message: str, *, status_code: int | None = None, code: str | None = None) -> None:
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code
        self.message = message


class NotFoundError(ApplicationError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class ValidationError(ApplicationError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "validation_error"


@dataclass
class IntakeError(Exception):
    """Base class for ingestion errors with structured payloads."""

    error_code: str
    message: str
    details: Optional[Dict[str, Any]] = None

    def __str__(self) -> str:
        base = f"[{self.error_code}] {self.message}"
        if self.details:
            return f"{base} :: {self.details}"
        return base


class MissingIdentityError(IntakeError):
    """Raised before any I/O when the agent or company identity is absent."""

    def __init__(self, message: str = "Agent and company identities are required", **details: Any) -> None:
        super().__init__("missing_identity", message, details or None)


class IngestionServiceError(IntakeError):
    """Raised when the external ingestion service rejects or garbles an upload."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__("ingestion_service_error", message, {"status_code": status_code} if status_code else None)
        self.status_code = status_code


class UnknownSourceError(IntakeError):
    def __init__(self, source_id: str) -> None:
        super().__init__("unknown_source", f"Source {source_id} is not registered", {"source_id": source_id})
        self.source_id = source_id


class DuplicateSourceError(IntakeError):
    def __init__(self, source_id: str) -> None:
        super().__init__("duplicate_source", f"Source {source_id} is already registered", {"source_id": source_id})
        self.source_id = source_id


class InvalidTransitionError(IntakeError):
    """Raised when a status change is not permitted by the lifecycle."""

    def __init__(self, source_id: str, current: str, requested: str) -> None:
        super().__init__(
            "invalid_transition",
            f"Source {source_id} cannot move from {current} to {requested}",
            {"source_id": source_id, "current": current, "requested": requested},
        )


class KnowledgeFetchError(IntakeError):
    """Raised when knowledge items for a completed source cannot be loaded."""

    def __init__(self, source_id: str, cause: str) -> None:
        super().__init__("knowledge_fetch_failed", f"Could not load knowledge for {source_id}: {cause}")
        self.source_id = source_id
