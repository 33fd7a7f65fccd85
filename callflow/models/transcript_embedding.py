"""TranscriptChunkEmbedding model for vector storage of call transcripts."""

from datetime import datetime
from uuid import uuid4

from pgvector.sqlalchemy import Vector
from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from . import Base

EMBEDDING_DIMENSIONS = 1024


class TranscriptChunkEmbedding(Base):
    """Model for transcript chunks with vector embeddings.

    Chunks keep their 0-based position in the transcript so the text can be
    rebuilt in order. Linked to calls with CASCADE delete.
    """

    __tablename__ = "call_transcript_embeddings"
    __table_args__ = (
        UniqueConstraint("call_id", "sequence", name="uq_call_transcript_embeddings_call_sequence"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    call_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("calls.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    embedding: Mapped[list[float]] = mapped_column(Vector(EMBEDDING_DIMENSIONS), nullable=False)
    model_name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )

    def __repr__(self) -> str:
        """Return string representation of the TranscriptChunkEmbedding."""
        return (
            f"<TranscriptChunkEmbedding(id={self.id!r}, call_id={self.call_id!r}, "
            f"sequence={self.sequence})>"
        )
