"""Speech-to-text for call recordings via a Databricks serving endpoint.

The raw transcription can optionally be cleaned up by a second "refinement"
pass through a chat model when REFINEMENT_ENDPOINT is configured.
"""

import base64
import logging
from dataclasses import dataclass

from databricks.sdk import WorkspaceClient
from databricks.sdk.config import Config

from callflow.config import Settings
from callflow.services.completion import CompletionError, CompletionOptions, complete

logger = logging.getLogger(__name__)

PROVIDER = "databricks"

REFINEMENT_SYSTEM_PROMPT = """You clean up automatic transcripts of phone calls \
between a service desk and its clients.

Fix obvious speech recognition mistakes, punctuation and casing. Do not \
summarise, translate, reorder or drop content. Return only the corrected \
transcript text."""


class TranscriptionError(Exception):
    """Exception raised when the transcription endpoint fails."""

    pass


@dataclass
class TranscriptionMetadata:
    """Which provider and model served each transcription pass.

    Attributes:
        transcription_provider: Provider of the speech-to-text pass.
        transcription_model: Endpoint of the speech-to-text pass.
        refinement_provider: Provider of the refinement pass, None if skipped.
        refinement_model: Endpoint of the refinement pass, None if skipped.
    """

    transcription_provider: str
    transcription_model: str
    refinement_provider: str | None = None
    refinement_model: str | None = None


@dataclass
class TranscriptionResult:
    """Transcript text with the metadata of the passes that produced it."""

    text: str
    metadata: TranscriptionMetadata

    @property
    def is_blank(self) -> bool:
        """True when the transcript holds no usable text."""
        return not self.text or not self.text.strip()


def _query_transcription_endpoint(
    audio_bytes: bytes,
    mime_type: str,
    settings: Settings,
) -> str:
    client = WorkspaceClient(
        config=Config(http_timeout_seconds=settings.TRANSCRIPTION_TIMEOUT_SECONDS)
    )
    request_data = {
        "audio_base64": base64.b64encode(audio_bytes).decode("utf-8"),
        "mime_type": mime_type,
    }
    response = client.serving_endpoints.query(
        name=settings.TRANSCRIPTION_ENDPOINT,
        dataframe_records=[request_data],
    )

    if not response.predictions:
        raise TranscriptionError("Invalid response: no predictions returned")

    prediction = response.predictions[0]
    if isinstance(prediction, str):
        return prediction
    if not isinstance(prediction, dict):
        raise TranscriptionError(f"Invalid response: unexpected prediction {type(prediction)}")
    if prediction.get("error"):
        raise TranscriptionError(f"Endpoint error: {prediction['error']}")

    text = prediction.get("transcription")
    if text is None:
        text = prediction.get("text")
    return text or ""


def _refine_transcript(text: str, settings: Settings) -> str | None:
    """Run the refinement pass, returning None if it fails."""
    try:
        result = complete(
            REFINEMENT_SYSTEM_PROMPT,
            text,
            settings,
            CompletionOptions(temperature=0.0, endpoint=settings.REFINEMENT_ENDPOINT),
        )
    except CompletionError as e:
        logger.warning(f"Transcript refinement failed, keeping raw transcript: {e}")
        return None
    return result.text.strip() or None


def transcribe_audio(
    audio_bytes: bytes,
    mime_type: str,
    settings: Settings,
) -> TranscriptionResult:
    """Transcribe call audio to text.

    A blank transcript is returned as-is; deciding what that means for the
    call is up to the caller.

    Args:
        audio_bytes: Raw audio bytes.
        mime_type: MIME type of the audio.
        settings: Application settings with the endpoint names.

    Returns:
        TranscriptionResult: The transcript and the passes that produced it.

    Raises:
        TranscriptionError: If the transcription endpoint fails.
    """
    if not audio_bytes:
        raise TranscriptionError("Cannot transcribe empty audio")

    logger.info(
        f"Transcribing {len(audio_bytes)} bytes of {mime_type} via "
        f"{settings.TRANSCRIPTION_ENDPOINT}"
    )
    try:
        text = _query_transcription_endpoint(audio_bytes, mime_type, settings)
    except TranscriptionError:
        raise
    except Exception as e:
        raise TranscriptionError(f"Transcription endpoint call failed: {e}") from e

    metadata = TranscriptionMetadata(
        transcription_provider=PROVIDER,
        transcription_model=settings.TRANSCRIPTION_ENDPOINT,
    )

    if settings.REFINEMENT_ENDPOINT and text.strip():
        refined = _refine_transcript(text, settings)
        if refined is not None:
            text = refined
            metadata.refinement_provider = PROVIDER
            metadata.refinement_model = settings.REFINEMENT_ENDPOINT

    return TranscriptionResult(text=text, metadata=metadata)
