"""Call repository: persistence for the CallRecord aggregate."""

import logging
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from callflow.models import CallRecord, CallStatus, check_status_transition

logger = logging.getLogger(__name__)


class CallNotFoundError(ValueError):
    """Raised when a call id does not resolve to a CallRecord."""

    pass


def find_call_by_recording_ref(session: Session, recording_ref: str) -> CallRecord | None:
    """Retrieve a call by its recording reference.

    Args:
        session: SQLAlchemy database session.
        recording_ref: The recording source's identifier for the call.

    Returns:
        CallRecord | None: The call if found, None otherwise.
    """
    return session.query(CallRecord).filter_by(recording_ref=recording_ref).first()


def get_call(session: Session, call_id: str) -> CallRecord:
    """Retrieve a call by id.

    Raises:
        CallNotFoundError: If no call exists with the given id.
    """
    call = session.query(CallRecord).filter_by(id=call_id).first()
    if call is None:
        raise CallNotFoundError(f"Call not found: {call_id}")
    return call


def create_call(session: Session, recording_ref: str, **fields: Any) -> CallRecord:
    """Insert a new call, falling back to the existing row on a duplicate.

    The unique constraint on recording_ref is the backstop when two workers
    race to insert the same recording. The loser rolls back and returns the
    winner's row.

    Args:
        session: SQLAlchemy database session.
        recording_ref: Natural key of the call.
        **fields: Initial column values.

    Returns:
        CallRecord: The persisted call.
    """
    call = CallRecord(recording_ref=recording_ref, **fields)
    session.add(call)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        existing = find_call_by_recording_ref(session, recording_ref)
        if existing is None:
            raise
        logger.info(f"Call for recording {recording_ref} was created concurrently, reusing it")
        return existing
    session.refresh(call)
    return call


def update_call(session: Session, call: CallRecord, **fields: Any) -> CallRecord:
    """Apply column updates to a call and commit them.

    Args:
        session: SQLAlchemy database session.
        call: The call to update.
        **fields: Column values to set.

    Returns:
        CallRecord: The refreshed call.
    """
    for name, value in fields.items():
        if not hasattr(CallRecord, name):
            raise AttributeError(f"CallRecord has no column {name!r}")
        setattr(call, name, value)
    call.updated_at = datetime.now(UTC)
    session.commit()
    session.refresh(call)
    return call


def set_call_status(
    session: Session,
    call: CallRecord,
    status: CallStatus,
    **fields: Any,
) -> CallRecord:
    """Move a call to a new pipeline status.

    Args:
        session: SQLAlchemy database session.
        call: The call to update.
        status: The target status.
        **fields: Extra columns to write in the same commit.

    Returns:
        CallRecord: The refreshed call.

    Raises:
        InvalidStatusTransitionError: If the current status cannot reach
            the target status.
    """
    current = CallStatus(call.status) if call.status else None
    check_status_transition(current, status)
    return update_call(session, call, status=status.value, **fields)


def reset_call_to_pending(session: Session, call: CallRecord) -> CallRecord:
    """Reset a call to PENDING and clear its analysis link for reprocessing."""
    return update_call(session, call, status=CallStatus.PENDING.value, analysis_id=None)


def list_calls_by_recording_refs(
    session: Session, recording_refs: list[str]
) -> dict[str, CallRecord]:
    """Map each known recording reference to its call."""
    if not recording_refs:
        return {}
    calls = session.query(CallRecord).filter(CallRecord.recording_ref.in_(recording_refs)).all()
    return {call.recording_ref: call for call in calls}
