from .source import (
    AgentIdentity,
    FilePayload,
    KnowledgeItem,
    Source,
    SourceKind,
    SourceStats,
    SourceStatus,
)

__all__ = [
    "AgentIdentity",
    "FilePayload",
    "KnowledgeItem",
    "Source",
    "SourceKind",
    "SourceStats",
    "SourceStatus",
]
