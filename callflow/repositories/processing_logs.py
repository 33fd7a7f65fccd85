"""Processing log repository: append-only audit trail per call."""

from sqlalchemy.orm import Session

from callflow.models import LogSeverity, ProcessingLogEntry


def append_log(
    session: Session,
    call_id: str,
    severity: LogSeverity,
    message: str,
    company_id: str | None = None,
) -> ProcessingLogEntry:
    """Append a log entry for a call and commit it.

    Args:
        session: SQLAlchemy database session.
        call_id: UUID of the call the event concerns.
        severity: INFO, WARN, ERROR or SUCCESS.
        message: Free-text description of the event.
        company_id: Optional company the call was attributed to.

    Returns:
        ProcessingLogEntry: The persisted entry.
    """
    entry = ProcessingLogEntry(
        call_id=call_id,
        company_id=company_id,
        severity=severity.value,
        message=message,
    )
    session.add(entry)
    session.commit()
    return entry


def list_logs(session: Session, call_id: str) -> list[ProcessingLogEntry]:
    """Return a call's log entries in insertion order."""
    return (
        session.query(ProcessingLogEntry)
        .filter_by(call_id=call_id)
        .order_by(ProcessingLogEntry.created_at, ProcessingLogEntry.id)
        .all()
    )
