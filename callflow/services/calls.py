"""Administrative call operations: reprocessing and date range sync."""

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from callflow.config import Settings, get_settings
from callflow.models import CallRecord, CallStatus, LogSeverity
from callflow.repositories import (
    append_log,
    delete_analysis,
    get_call,
    list_calls_by_recording_refs,
    reset_call_to_pending,
)
from callflow.services.jobs import CallJob, CallJobQueue
from callflow.services.recording_source import list_recordings

logger = logging.getLogger(__name__)

# Calls in these states are not picked up again by a range sync
SYNC_SKIP_STATUSES = frozenset({CallStatus.COMPLETED.value, CallStatus.INTERNAL_CALL_SKIPPED.value})


class MissingRecordingRefError(ValueError):
    """Raised when a call cannot be reprocessed because it has no recording reference."""

    pass


def reprocess_call(session: Session, call_id: str, queue: CallJobQueue) -> CallRecord:
    """Discard a call's analysis and queue it to run through the pipeline again.

    The previous AnalysisResult is deleted, not versioned.

    Args:
        session: SQLAlchemy database session.
        call_id: UUID of the call to reprocess.
        queue: Queue the new job is put on.

    Returns:
        CallRecord: The call, now PENDING with no analysis.

    Raises:
        CallNotFoundError: If no call exists with the given id.
        MissingRecordingRefError: If the call has no recording reference.
    """
    call = get_call(session, call_id)
    if not call.recording_ref:
        raise MissingRecordingRefError(f"Call {call_id} has no recording reference")

    previous_analysis_id = call.analysis_id
    call = reset_call_to_pending(session, call)
    if previous_analysis_id:
        delete_analysis(session, previous_analysis_id)
        logger.info(f"Call {call_id}: deleted analysis {previous_analysis_id} for reprocessing")

    append_log(
        session,
        call_id,
        LogSeverity.INFO,
        "Reprocessing requested. Previous analysis discarded."
        if previous_analysis_id
        else "Reprocessing requested.",
        company_id=call.company_id,
    )
    queue.put(CallJob(recording_ref=call.recording_ref))
    logger.info(f"Call {call_id}: queued recording {call.recording_ref} for reprocessing")
    return call


def queue_recordings_in_range(
    session: Session,
    queue: CallJobQueue,
    start: datetime,
    end: datetime,
    settings: Settings | None = None,
) -> list[str]:
    """Queue every recording made in a time range that still needs processing.

    Recordings whose call is COMPLETED or INTERNAL_CALL_SKIPPED are left
    alone; anything else (unseen, pending, failed) is queued.

    Args:
        session: SQLAlchemy database session.
        queue: Queue the jobs are put on.
        start: Range start (inclusive).
        end: Range end.
        settings: Application settings. Defaults to get_settings().

    Returns:
        list[str]: The recording references that were queued, in source order.
    """
    if end < start:
        raise ValueError("end must not be before start")
    settings = settings or get_settings()

    recordings = list_recordings(int(start.timestamp()), int(end.timestamp()), settings)
    refs = list(dict.fromkeys(str(item["uniqueid"]) for item in recordings))
    if not refs:
        logger.info("No recordings found in the specified range")
        return []

    existing = list_calls_by_recording_refs(session, refs)
    queued = []
    for ref in refs:
        call = existing.get(ref)
        if call is not None and call.status in SYNC_SKIP_STATUSES:
            logger.debug(f"Recording {ref} already {call.status}, skipping")
            continue
        queue.put(CallJob(recording_ref=ref))
        queued.append(ref)

    logger.info(f"Queued {len(queued)} of {len(refs)} recordings in range")
    return queued
