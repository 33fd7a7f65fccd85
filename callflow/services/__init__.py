"""Services for the call ingestion pipeline.

This module exports the adapters, stage logic and orchestration that turn a
recording reference into an enriched call record.
"""

from callflow.services import (
    agent_attribution,
    analysis,
    calls,
    cdr,
    completion,
    directory,
    embedding,
    jobs,
    pipeline,
    recording_source,
    storage,
    transcription,
    worker,
)

__all__ = [
    "agent_attribution",
    "analysis",
    "calls",
    "cdr",
    "completion",
    "directory",
    "embedding",
    "jobs",
    "pipeline",
    "recording_source",
    "storage",
    "transcription",
    "worker",
]
