"""Embedding service for call transcripts.

This module provides functions for chunking transcripts into token-bounded
segments, generating embeddings through a Databricks endpoint and storing
one vector row per chunk.
"""

import logging
from dataclasses import dataclass
from functools import lru_cache

import tiktoken
from databricks_langchain import DatabricksEmbeddings
from langchain_text_splitters import RecursiveCharacterTextSplitter
from sqlalchemy.orm import Session

from callflow.config import Settings
from callflow.models import EMBEDDING_DIMENSIONS, CallRecord, LogSeverity
from callflow.repositories import append_log, delete_call_embeddings, store_chunk_embedding

logger = logging.getLogger(__name__)

TOKEN_ENCODING = "cl100k_base"


class EmbeddingError(Exception):
    """Exception raised for errors during embedding operations."""

    pass


@dataclass
class EmbeddingStageResult:
    """Outcome of embedding one transcript.

    Attributes:
        chunk_count: Number of chunks the transcript was split into.
        stored: Chunks embedded and stored.
        skipped: Chunks whose embedding came back empty.
        failed: Chunks whose embedding or storage raised.
    """

    chunk_count: int = 0
    stored: int = 0
    skipped: int = 0
    failed: int = 0


@lru_cache(maxsize=1)
def _get_encoding() -> tiktoken.Encoding:
    return tiktoken.get_encoding(TOKEN_ENCODING)


def _count_tokens(text: str) -> int:
    """Count tokens the way the embedding model's tokenizer would."""
    return len(_get_encoding().encode(text))


def chunk_transcript(
    text: str,
    chunk_size_tokens: int = 7500,
    overlap_tokens: int = 200,
) -> list[str]:
    """Split transcript text into overlapping token-bounded chunks.

    Uses LangChain's RecursiveCharacterTextSplitter with a token counting
    length function, so chunks break on paragraph, line and word boundaries
    and stay in the order they appear in the transcript.

    Args:
        text: The transcript text to chunk.
        chunk_size_tokens: Maximum size of each chunk in tokens.
        overlap_tokens: Number of overlapping tokens between chunks.

    Returns:
        A list of text chunks. Returns empty list for empty or whitespace-only text.

    Raises:
        ValueError: If chunk_size_tokens <= 0, overlap_tokens < 0, or
            overlap_tokens >= chunk_size_tokens.
    """
    if chunk_size_tokens <= 0:
        raise ValueError("chunk_size_tokens must be positive")
    if overlap_tokens < 0:
        raise ValueError("overlap_tokens must be non-negative")
    if overlap_tokens >= chunk_size_tokens:
        raise ValueError("overlap_tokens must be less than chunk_size_tokens")

    if not text or not text.strip():
        logger.debug("Empty or whitespace-only text provided to chunk_transcript")
        return []

    text_splitter = RecursiveCharacterTextSplitter(
        chunk_size=chunk_size_tokens,
        chunk_overlap=overlap_tokens,
        length_function=_count_tokens,
        is_separator_regex=False,
    )

    chunks = text_splitter.split_text(text)
    logger.debug(f"Created {len(chunks)} chunks from {len(text)} characters")
    return chunks


def _get_embeddings_model(settings: Settings) -> DatabricksEmbeddings:
    """Get configured DatabricksEmbeddings instance."""
    return DatabricksEmbeddings(endpoint=settings.EMBEDDING_ENDPOINT)


def generate_embedding(text: str, settings: Settings) -> list[float]:
    """Embed a single piece of text.

    Args:
        text: The text to embed.
        settings: Application settings with the embedding endpoint.

    Returns:
        The embedding vector, or an empty list for empty text.

    Raises:
        EmbeddingError: If the text exceeds the model's token limit or the
            endpoint call fails.
    """
    if not text or not text.strip():
        return []

    token_count = _count_tokens(text)
    if token_count > settings.EMBEDDING_MAX_TOKENS:
        raise EmbeddingError(
            f"Text has {token_count} tokens, over the limit of {settings.EMBEDDING_MAX_TOKENS}"
        )

    try:
        return _get_embeddings_model(settings).embed_query(text)
    except Exception as e:
        raise EmbeddingError(f"Embedding via {settings.EMBEDDING_ENDPOINT} failed: {e}") from e


def embed_transcript(
    session: Session,
    call: CallRecord,
    transcript: str,
    settings: Settings,
) -> EmbeddingStageResult:
    """Chunk a transcript and store one embedding row per chunk.

    Chunks are embedded one at a time, in order. A chunk that fails or
    comes back empty is logged and skipped; this function never raises
    for a single chunk. Rows left by an earlier run of the same call are
    replaced.

    Args:
        session: SQLAlchemy database session.
        call: The call the transcript belongs to.
        transcript: Transcript text.
        settings: Application settings with chunking and endpoint config.

    Returns:
        EmbeddingStageResult: Per-chunk outcome counts.
    """
    chunks = chunk_transcript(
        transcript,
        settings.EMBEDDING_CHUNK_SIZE_TOKENS,
        settings.EMBEDDING_CHUNK_OVERLAP_TOKENS,
    )
    result = EmbeddingStageResult(chunk_count=len(chunks))

    if not chunks:
        logger.warning(f"Call {call.id}: no chunks generated, skipping embeddings")
        append_log(
            session,
            call.id,
            LogSeverity.WARN,
            "No transcript chunks generated. Skipped embedding process.",
        )
        return result

    removed = delete_call_embeddings(session, call.id)
    if removed:
        logger.info(f"Call {call.id}: replaced {removed} chunks from an earlier run")

    total = len(chunks)
    for sequence, chunk in enumerate(chunks):
        position = f"{sequence + 1}/{total}"
        try:
            vector = generate_embedding(chunk, settings)
            if not vector:
                logger.warning(f"Call {call.id}: embedding for chunk {position} was empty")
                append_log(
                    session,
                    call.id,
                    LogSeverity.WARN,
                    f"Embedding for chunk {position} was empty. Skipped storage.",
                )
                result.skipped += 1
                continue
            if len(vector) != EMBEDDING_DIMENSIONS:
                raise EmbeddingError(
                    f"Expected {EMBEDDING_DIMENSIONS} dimensions, got {len(vector)}"
                )

            store_chunk_embedding(
                session,
                call_id=call.id,
                sequence=sequence,
                content=chunk,
                embedding=vector,
                model_name=settings.EMBEDDING_ENDPOINT,
            )
            append_log(
                session,
                call.id,
                LogSeverity.INFO,
                f"Embedding generated and stored for chunk {position}.",
            )
            result.stored += 1
        except Exception as e:
            session.rollback()
            logger.error(
                f"Call {call.id}: failed to embed chunk {position}: {e}", exc_info=True
            )
            append_log(
                session,
                call.id,
                LogSeverity.ERROR,
                f"Failed to generate/store embedding for chunk {position}: {e}",
            )
            result.failed += 1

    logger.info(
        f"Call {call.id}: stored {result.stored}/{total} chunk embeddings "
        f"({result.skipped} empty, {result.failed} failed)"
    )
    return result
