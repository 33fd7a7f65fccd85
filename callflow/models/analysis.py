"""AnalysisResult model for the structured call analysis."""

from datetime import datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from . import Base, JsonType


class AnalysisResult(Base):
    """Structured sentiment and quality analysis of one call.

    A call has at most one current result. Reprocessing deletes it rather
    than keeping history.
    """

    __tablename__ = "call_analyses"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    call_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("calls.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    company_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("companies.id", ondelete="SET NULL"), nullable=True
    )
    sentiment: Mapped[str] = mapped_column(String(20), nullable=False)
    mood: Mapped[str] = mapped_column(String(20), nullable=False)
    frustration_level: Mapped[str] = mapped_column(String(20), nullable=False)
    issue_clarity: Mapped[str] = mapped_column(String(20), nullable=False)
    agent_helpfulness: Mapped[str] = mapped_column(String(20), nullable=False)
    upsell_opportunity: Mapped[str] = mapped_column(String(20), nullable=False)
    confidence_level: Mapped[str] = mapped_column(String(20), nullable=False)
    summary: Mapped[str] = mapped_column(Text, nullable=False)
    participants: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)
    data: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)
    prompt_template_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    model_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )

    def __repr__(self) -> str:
        """Return string representation of the AnalysisResult."""
        return (
            f"<AnalysisResult(id={self.id!r}, call_id={self.call_id!r}, "
            f"sentiment={self.sentiment!r})>"
        )
