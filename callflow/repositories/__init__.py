"""Thin persistence functions over a SQLAlchemy session."""

from .agents import find_agent_by_extension, find_agent_by_name, find_or_create_agent, list_agents
from .analyses import create_analysis, delete_analysis, get_analysis
from .calls import (
    CallNotFoundError,
    create_call,
    find_call_by_recording_ref,
    get_call,
    list_calls_by_recording_refs,
    reset_call_to_pending,
    set_call_status,
    update_call,
)
from .companies import find_company_by_external_id, find_or_create_company
from .embeddings import delete_call_embeddings, list_call_embeddings, store_chunk_embedding
from .processing_logs import append_log, list_logs

__all__ = [
    "CallNotFoundError",
    "append_log",
    "create_analysis",
    "create_call",
    "delete_analysis",
    "delete_call_embeddings",
    "find_agent_by_extension",
    "find_agent_by_name",
    "find_call_by_recording_ref",
    "find_company_by_external_id",
    "find_or_create_agent",
    "find_or_create_company",
    "get_analysis",
    "get_call",
    "list_agents",
    "list_call_embeddings",
    "list_calls_by_recording_refs",
    "list_logs",
    "reset_call_to_pending",
    "set_call_status",
    "update_call",
    "store_chunk_embedding",
]
