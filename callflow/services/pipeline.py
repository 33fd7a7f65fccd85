"""Call ingestion and enrichment pipeline.

Turns a recording reference into a fully enriched CallRecord: the recording
is fetched and stored, transcribed, attributed to an agent and a company,
embedded for search and analysed. Every notable event is appended to the
call's processing log, and state is committed after each step so a crashed
run can be resumed in place.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.orm import Session

from callflow.config import Settings, get_settings
from callflow.models import Agent, CallRecord, CallStatus, Company, LogSeverity
from callflow.repositories import (
    append_log,
    create_analysis,
    create_call,
    delete_analysis,
    find_agent_by_extension,
    find_call_by_recording_ref,
    find_or_create_agent,
    find_or_create_company,
    get_call,
    set_call_status,
    update_call,
)
from callflow.services.agent_attribution import identify_agent_from_transcript
from callflow.services.analysis import AnalysisOutcome, analyze_transcript, build_analysis_prompt
from callflow.services.cdr import (
    determine_call_direction,
    extract_external_phone_number,
    extract_internal_extension,
)
from callflow.services.directory import PhoneNumberRequiredError, lookup_company_by_phone
from callflow.services.embedding import EmbeddingStageResult, embed_transcript
from callflow.services.jobs import CallJob
from callflow.services.recording_source import (
    RecordingPayload,
    fetch_recording,
    get_extension_name,
)
from callflow.services.storage import (
    StorageError,
    recording_blob_key,
    transcript_blob_key,
    upload_object,
)
from callflow.services.transcription import TranscriptionMetadata, transcribe_audio

logger = logging.getLogger(__name__)

EMBEDDING_PROVIDER = "databricks"
SKIPPED = "skipped"


@dataclass
class PipelineResult:
    """Outcome of one pipeline run.

    Attributes:
        recording_ref: The processed recording reference.
        call_id: UUID of the call record, None if none was touched.
        status: The call's status when the run ended.
        message: Human-readable summary of the outcome.
        skipped: True when the call was already COMPLETED and nothing ran.
    """

    recording_ref: str
    call_id: str | None
    status: CallStatus
    message: str
    skipped: bool = False


def _best_effort(
    session: Session,
    description: str,
    func: Callable[..., Any],
    *args: Any,
    **kwargs: Any,
) -> Any:
    """Run a side effect whose failure must not mask the caller's error.

    Failures are logged and the session is rolled back so later best-effort
    writes still get a usable session.

    Returns:
        The function's return value, or None if it raised.
    """
    try:
        return func(*args, **kwargs)
    except Exception as e:
        logger.error(f"Best-effort {description} failed: {e}", exc_info=True)
        try:
            session.rollback()
        except Exception:
            logger.debug(f"Rollback after failed {description} also failed", exc_info=True)
        return None


def _mark_failed(session: Session, call_id: str, error: Exception) -> None:
    """Record a failed run on the call without raising."""
    _best_effort(session, "rollback", session.rollback)

    def set_failed() -> None:
        set_call_status(session, get_call(session, call_id), CallStatus.FAILED)

    _best_effort(session, f"status update to FAILED for call {call_id}", set_failed)
    _best_effort(
        session,
        f"failure log for call {call_id}",
        append_log,
        session,
        call_id,
        LogSeverity.ERROR,
        f"Processing FAILED: {error}",
    )


def _resolve_cdr_agent(
    session: Session,
    payload: RecordingPayload,
    settings: Settings,
) -> Agent | None:
    """Resolve the handling agent from the CDR's internal extension.

    A new extension creates an agent named after the phone's configured
    caller name, or "Extension <n>" when the name cannot be looked up.
    """
    extension = extract_internal_extension(payload.cdr, settings.EXTENSION_PREFIX)
    if extension is None:
        logger.info(f"{payload.recording_ref}: no internal extension in CDR fields")
        return None

    agent = find_agent_by_extension(session, extension)
    if agent is not None:
        logger.debug(f"{payload.recording_ref}: found agent {agent.name!r} for {extension}")
        return agent

    name = get_extension_name(extension, settings) or f"Extension {extension}"
    return find_or_create_agent(session, extension, name)


def _enter_processing(
    session: Session,
    call: CallRecord | None,
    job: CallJob,
    payload: RecordingPayload,
    agent: Agent | None,
    settings: Settings,
) -> CallRecord:
    """Create the call in PROCESSING, or move an existing call back into it."""
    fields: dict[str, Any] = {
        "start_time": _from_epoch(payload.start_epoch),
        "end_time": _from_epoch(payload.end_epoch),
        "duration_seconds": payload.duration_seconds,
        "direction": determine_call_direction(
            payload.cdr, settings.EXTENSION_PREFIX, settings.COMPANY_DID
        ).value,
    }

    if call is None:
        call = create_call(
            session,
            job.recording_ref,
            status=CallStatus.PROCESSING.value,
            agent_id=agent.id if agent else None,
            **fields,
        )
        if call.status in (CallStatus.PROCESSING.value, CallStatus.COMPLETED.value):
            logger.info(f"Using call {call.id} for recording {job.recording_ref}")
            return call
        # Another worker inserted the row first and left it unfinished

    logger.info(f"Resuming call {call.id} for recording {job.recording_ref} from {call.status}")
    if agent is not None and call.agent_id is None:
        fields["agent_id"] = agent.id
    return set_call_status(session, call, CallStatus.PROCESSING, **fields)


def _from_epoch(epoch: int | None) -> datetime | None:
    return datetime.fromtimestamp(epoch, UTC) if epoch is not None else None


def _finish_internal(
    session: Session,
    call: CallRecord,
    job: CallJob,
    reason: str,
) -> PipelineResult:
    """Mark a call as internal and report the run as successful.

    A resumed run may carry a company link or analysis from an earlier
    attempt; an internal call keeps neither.
    """
    append_log(session, call.id, LogSeverity.INFO, reason)
    stale_analysis_id = call.analysis_id
    set_call_status(
        session,
        call,
        CallStatus.INTERNAL_CALL_SKIPPED,
        company_id=None,
        analysis_id=None,
    )
    if stale_analysis_id:
        delete_analysis(session, stale_analysis_id)
    append_log(
        session,
        call.id,
        LogSeverity.SUCCESS,
        f"Processing of {job.recording_ref} completed (marked as internal).",
    )
    logger.info(f"Call {call.id}: marked INTERNAL_CALL_SKIPPED ({reason})")
    return PipelineResult(
        recording_ref=job.recording_ref,
        call_id=call.id,
        status=CallStatus.INTERNAL_CALL_SKIPPED,
        message=reason,
    )


def _build_processing_metadata(
    transcription: TranscriptionMetadata,
    outcome: AnalysisOutcome,
    embeddings: EmbeddingStageResult | None,
    settings: Settings,
) -> dict[str, Any]:
    """Describe which provider and model served each stage."""
    if transcription.refinement_provider:
        refinement = {
            "provider": transcription.refinement_provider,
            "model": transcription.refinement_model,
        }
    else:
        refinement = {"provider": SKIPPED, "model": None}

    if embeddings is None:
        embedding_meta: dict[str, Any] = {"provider": SKIPPED, "model": None}
    else:
        embedding_meta = {
            "provider": EMBEDDING_PROVIDER,
            "model": settings.EMBEDDING_ENDPOINT,
            "chunks": embeddings.chunk_count,
            "stored": embeddings.stored,
        }

    return {
        "transcription": {
            "provider": transcription.transcription_provider,
            "model": transcription.transcription_model,
        },
        "refinement": refinement,
        "analysis": {
            "provider": outcome.provider,
            "model": outcome.model,
            "prompt_template_id": outcome.prompt_template_id,
        },
        "embeddings": embedding_meta,
        "processed_at": datetime.now(UTC).isoformat(),
    }


def process_call_job(
    session: Session,
    job: CallJob,
    settings: Settings | None = None,
) -> PipelineResult:
    """Run the full ingestion pipeline for one recording.

    Processing steps:
    1. Skip recordings whose call is already COMPLETED
    2. Fetch the recording and its CDR fields
    3. Resolve the agent from the CDR internal extension
    4. Create or resume the call in PROCESSING
    5. Upload the recording and record its key
    6. Transcribe; a blank transcript ends the run as TRANSCRIPTION_FAILED
    7. Upload the transcript (soft failure)
    8. Identify the agent from the transcript if the CDR named none
    9. Chunk and embed the transcript unless SKIP_EMBEDDINGS is set
    10. Extract the external phone number; none ends the run as
        INTERNAL_CALL_SKIPPED
    11. Resolve the company through the directory
    12. Analyse the transcript and attach the result
    13. Mark the call COMPLETED with its processing metadata

    Args:
        session: SQLAlchemy database session owned by the caller.
        job: The job to process.
        settings: Application settings. Defaults to get_settings().

    Returns:
        PipelineResult: The call's final status. Business outcomes such as
            an empty transcript or an internal call are reported here, not
            raised.

    Raises:
        RecordingSourceError: If the recording cannot be fetched. No status
            is written in this case.
        Exception: Any other failure after the call exists. The call is
            marked FAILED (best effort) before re-raising.
    """
    settings = settings or get_settings()
    ref = job.recording_ref
    logger.info(f"Processing recording {ref} (attempt {job.attempt})")

    # Step 1: Idempotency guard
    call = find_call_by_recording_ref(session, ref)
    if call is not None and call.status == CallStatus.COMPLETED.value:
        logger.info(f"Recording {ref} already COMPLETED as call {call.id}, skipping")
        return PipelineResult(
            recording_ref=ref,
            call_id=call.id,
            status=CallStatus.COMPLETED,
            message="Skipped, already COMPLETED.",
            skipped=True,
        )

    # Step 2: Fetch the recording; failures propagate untouched
    payload = fetch_recording(
        ref, settings, record_group=job.record_group, record_id=job.record_id
    )

    call_id = call.id if call is not None else None
    try:
        # Step 3: CDR-based agent attribution
        agent = _resolve_cdr_agent(session, payload, settings)

        # Step 4: Enter PROCESSING
        call = _enter_processing(session, call, job, payload, agent, settings)
        call_id = call.id
        if call.status == CallStatus.COMPLETED.value:
            return PipelineResult(
                recording_ref=ref,
                call_id=call_id,
                status=CallStatus.COMPLETED,
                message="Skipped, already COMPLETED.",
                skipped=True,
            )
        append_log(
            session,
            call_id,
            LogSeverity.INFO,
            f"Processing started for recording {ref} (attempt {job.attempt}).",
        )

        # Step 5: Store the recording
        recording_key = upload_object(
            recording_blob_key(ref, payload.mime_type),
            payload.audio_bytes,
            payload.mime_type,
            settings,
        )
        call = update_call(session, call, recording_blob_key=recording_key)
        append_log(session, call_id, LogSeverity.INFO, f"Recording uploaded to {recording_key}.")

        # Step 6: Transcribe
        transcription = transcribe_audio(payload.audio_bytes, payload.mime_type, settings)
        if transcription.is_blank:
            logger.error(f"Call {call_id}: transcription returned empty text")
            append_log(
                session,
                call_id,
                LogSeverity.ERROR,
                "Transcription failed or returned empty text.",
            )
            stale_analysis_id = call.analysis_id
            call = set_call_status(
                session, call, CallStatus.TRANSCRIPTION_FAILED, analysis_id=None
            )
            if stale_analysis_id:
                delete_analysis(session, stale_analysis_id)
            append_log(
                session,
                call_id,
                LogSeverity.SUCCESS,
                f"Processing of {ref} completed (transcription failed).",
            )
            return PipelineResult(
                recording_ref=ref,
                call_id=call_id,
                status=CallStatus.TRANSCRIPTION_FAILED,
                message="Transcription failed or returned empty text.",
            )
        transcript = transcription.text
        append_log(session, call_id, LogSeverity.INFO, "Transcription successful.")

        # Step 7: Store the transcript (soft failure)
        try:
            transcript_key = upload_object(
                transcript_blob_key(ref), transcript.encode("utf-8"), "text/plain", settings
            )
        except StorageError as e:
            logger.error(f"Call {call_id}: failed to upload transcript: {e}", exc_info=True)
            append_log(
                session, call_id, LogSeverity.ERROR, f"Failed to upload transcript: {e}"
            )
        else:
            call = update_call(session, call, transcript_blob_key=transcript_key)
            append_log(
                session, call_id, LogSeverity.INFO, f"Transcript uploaded to {transcript_key}."
            )

        # Step 8: LLM agent attribution fallback
        if agent is None and call.agent_id is None:
            identification = identify_agent_from_transcript(session, transcript, ref, settings)
            if identification is not None:
                call = update_call(session, call, agent_id=identification.agent_id)
                append_log(
                    session,
                    call_id,
                    LogSeverity.INFO,
                    f"Agent identified via LLM: {identification.agent_name} "
                    f"(confidence: {identification.confidence}). "
                    f"Reason: {identification.reasoning}",
                )
            else:
                append_log(
                    session,
                    call_id,
                    LogSeverity.INFO,
                    "No agent identified from CDR or transcript (voicemail/IVR/automated).",
                )

        # Step 9: Chunk and embed
        embeddings: EmbeddingStageResult | None = None
        if settings.SKIP_EMBEDDINGS:
            logger.info(f"Call {call_id}: skipping embeddings (SKIP_EMBEDDINGS=true)")
            append_log(
                session,
                call_id,
                LogSeverity.INFO,
                "Embedding generation skipped (SKIP_EMBEDDINGS=true).",
            )
        else:
            embeddings = embed_transcript(session, call, transcript, settings)

        # Step 10: External party
        phone_number = extract_external_phone_number(
            payload.cdr, settings.COMPANY_DID, settings.EXTENSION_PREFIX
        )
        if not phone_number:
            return _finish_internal(
                session, call, job, "No external phone number found. Marked as internal call."
            )

        # Step 11: Company resolution
        company: Company | None = None
        try:
            directory_company = lookup_company_by_phone(phone_number, settings)
        except PhoneNumberRequiredError as e:
            return _finish_internal(
                session,
                call,
                job,
                f"Directory lookup failed (missing phone number). Marked as internal call. "
                f"Error: {e}",
            )

        if directory_company is not None:
            company = find_or_create_company(
                session, directory_company.external_id, directory_company.name
            )
            call = update_call(session, call, company_id=company.id)
            append_log(
                session,
                call_id,
                LogSeverity.INFO,
                f"Company identified: {company.name} (ID: {company.id})",
                company_id=company.id,
            )
        else:
            append_log(
                session,
                call_id,
                LogSeverity.INFO,
                f"No directory company found for phone {phone_number}",
            )
        company_id = company.id if company else None

        # Step 12: Analysis
        prompt = build_analysis_prompt(company.name if company else None, phone_number, transcript)
        outcome = analyze_transcript(prompt, settings)
        append_log(
            session,
            call_id,
            LogSeverity.INFO,
            "Transcript analysis successful.",
            company_id=company_id,
        )

        if call.analysis_id:
            # Left by a run that crashed before completing
            stale_analysis_id = call.analysis_id
            call = update_call(session, call, analysis_id=None)
            delete_analysis(session, stale_analysis_id)
        analysis = create_analysis(
            session,
            call_id,
            outcome.analysis.model_dump(),
            company_id=company_id,
            prompt_template_id=outcome.prompt_template_id,
            model_id=outcome.model,
        )
        call = update_call(session, call, analysis_id=analysis.id)
        append_log(
            session,
            call_id,
            LogSeverity.SUCCESS,
            f"Call analysis saved. Analysis ID: {analysis.id}",
            company_id=company_id,
        )

        # Step 13: Complete
        metadata = _build_processing_metadata(
            transcription.metadata, outcome, embeddings, settings
        )
        call = set_call_status(
            session, call, CallStatus.COMPLETED, processing_metadata=metadata
        )
        append_log(
            session,
            call_id,
            LogSeverity.SUCCESS,
            f"Processing of {ref} completed.",
            company_id=company_id,
        )
        logger.info(f"Call {call_id}: processing pipeline completed")

        return PipelineResult(
            recording_ref=ref,
            call_id=call_id,
            status=CallStatus.COMPLETED,
            message="Processing completed.",
        )

    except Exception as e:
        logger.error(
            f"Processing failed for recording {ref} (call {call_id or 'UNKNOWN'}): {e}",
            exc_info=True,
        )
        if call_id is not None:
            _mark_failed(session, call_id, e)
        raise
