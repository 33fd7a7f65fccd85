"""Embedding repository: transcript chunk vectors per call."""

from sqlalchemy.orm import Session

from callflow.models import TranscriptChunkEmbedding


def store_chunk_embedding(
    session: Session,
    call_id: str,
    sequence: int,
    content: str,
    embedding: list[float],
    model_name: str,
) -> TranscriptChunkEmbedding:
    """Persist one embedded chunk.

    Args:
        session: SQLAlchemy database session.
        call_id: UUID of the call the chunk belongs to.
        sequence: 0-based position of the chunk in the transcript.
        content: The chunk text.
        embedding: The chunk's vector.
        model_name: Embedding endpoint that produced the vector.

    Returns:
        TranscriptChunkEmbedding: The persisted row.
    """
    row = TranscriptChunkEmbedding(
        call_id=call_id,
        sequence=sequence,
        content=content,
        embedding=embedding,
        model_name=model_name,
    )
    session.add(row)
    session.commit()
    return row


def delete_call_embeddings(session: Session, call_id: str) -> int:
    """Delete all chunk embeddings for a call.

    Returns:
        int: Number of rows deleted.
    """
    deleted = session.query(TranscriptChunkEmbedding).filter_by(call_id=call_id).delete()
    session.commit()
    return deleted


def list_call_embeddings(session: Session, call_id: str) -> list[TranscriptChunkEmbedding]:
    """Return a call's chunks in ascending sequence order."""
    return (
        session.query(TranscriptChunkEmbedding)
        .filter_by(call_id=call_id)
        .order_by(TranscriptChunkEmbedding.sequence)
        .all()
    )
