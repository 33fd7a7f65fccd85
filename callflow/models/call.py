"""CallRecord model, the aggregate owned by the ingestion pipeline."""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from sqlalchemy import DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from . import Base, JsonType


class CallStatus(str, Enum):
    """Processing status of a call record."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    TRANSCRIPTION_FAILED = "TRANSCRIPTION_FAILED"
    INTERNAL_CALL_SKIPPED = "INTERNAL_CALL_SKIPPED"


class CallDirection(str, Enum):
    """Direction of a call derived from its CDR fields."""

    INBOUND = "INBOUND"
    OUTBOUND = "OUTBOUND"
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


TERMINAL_STATUSES = frozenset(
    {
        CallStatus.COMPLETED,
        CallStatus.FAILED,
        CallStatus.TRANSCRIPTION_FAILED,
        CallStatus.INTERNAL_CALL_SKIPPED,
    }
)


class InvalidStatusTransitionError(Exception):
    """Raised when a call is moved to a status its current one cannot reach."""

    pass


def check_status_transition(current: CallStatus | None, target: CallStatus) -> None:
    """Validate a pipeline status transition.

    A run moves PENDING -> PROCESSING -> terminal. A call that is not
    COMPLETED may be picked up again (resume), which re-enters PROCESSING.
    Returning to PENDING is reserved for reprocessing and is not validated
    here.

    Args:
        current: The call's current status, or None for a new call.
        target: The status the pipeline wants to set.

    Raises:
        InvalidStatusTransitionError: If the transition is not allowed.
    """
    if target == CallStatus.PENDING:
        raise InvalidStatusTransitionError(
            "Only reprocessing may reset a call to PENDING"
        )

    if target == CallStatus.PROCESSING:
        if current == CallStatus.COMPLETED:
            raise InvalidStatusTransitionError(
                "A COMPLETED call cannot re-enter PROCESSING without reprocessing"
            )
        return

    # Terminal targets
    if current != CallStatus.PROCESSING and target != CallStatus.FAILED:
        raise InvalidStatusTransitionError(
            f"Cannot move from {current.value if current else None} to {target.value}"
        )


class CallRecord(Base):
    """SQLAlchemy model for a recorded call and its enrichment state.

    The recording reference is the natural key; the unique constraint on it
    is the backstop against two workers inserting the same call.
    """

    __tablename__ = "calls"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    recording_ref: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default=CallStatus.PENDING.value, index=True
    )
    direction: Mapped[str | None] = mapped_column(String(20), nullable=True)
    start_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    end_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    duration_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    recording_blob_key: Mapped[str | None] = mapped_column(String(500), nullable=True)
    transcript_blob_key: Mapped[str | None] = mapped_column(String(500), nullable=True)
    agent_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("agents.id", ondelete="SET NULL"), nullable=True, index=True
    )
    company_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("companies.id", ondelete="SET NULL"), nullable=True, index=True
    )
    # Points at the current call_analyses row; kept without a FK so the
    # analysis can be deleted and replaced independently.
    analysis_id: Mapped[str | None] = mapped_column(String(36), nullable=True, unique=True)
    processing_metadata: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, onupdate=func.now()
    )

    @property
    def call_status(self) -> CallStatus:
        """Return the status as a CallStatus enum member."""
        return CallStatus(self.status)

    def __repr__(self) -> str:
        """Return string representation of the CallRecord."""
        return (
            f"<CallRecord(id={self.id!r}, recording_ref={self.recording_ref!r}, "
            f"status={self.status!r})>"
        )
