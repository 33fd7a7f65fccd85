"""SQLAlchemy models for the call ingestion pipeline."""

from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase

# Use JSONB on PostgreSQL, JSON on other databases (SQLite for tests)
JsonType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


from .agent import Agent
from .analysis import AnalysisResult
from .call import (
    TERMINAL_STATUSES,
    CallDirection,
    CallRecord,
    CallStatus,
    InvalidStatusTransitionError,
    check_status_transition,
)
from .company import Company
from .processing_log import LogSeverity, ProcessingLogEntry
from .transcript_embedding import EMBEDDING_DIMENSIONS, TranscriptChunkEmbedding

__all__ = [
    "Base",
    "JsonType",
    "Agent",
    "AnalysisResult",
    "CallDirection",
    "CallRecord",
    "CallStatus",
    "Company",
    "EMBEDDING_DIMENSIONS",
    "InvalidStatusTransitionError",
    "LogSeverity",
    "ProcessingLogEntry",
    "TERMINAL_STATUSES",
    "TranscriptChunkEmbedding",
    "check_status_transition",
]
