"""ProcessingLogEntry model, the per-call audit trail."""

from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from sqlalchemy import DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from . import Base


class LogSeverity(str, Enum):
    """Severity of a processing log entry."""

    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    SUCCESS = "SUCCESS"


class ProcessingLogEntry(Base):
    """Append-only record of a notable pipeline event for a call.

    Rows are never updated or deleted by the pipeline.
    """

    __tablename__ = "processing_logs"

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
    severity: Mapped[str] = mapped_column(String(10), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    # Set client side so entries written within the same second keep their order
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        """Return string representation of the ProcessingLogEntry."""
        return (
            f"<ProcessingLogEntry(call_id={self.call_id!r}, severity={self.severity!r}, "
            f"message={self.message[:40]!r})>"
        )
