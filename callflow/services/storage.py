"""Object storage for call recordings and transcripts.

Blobs live in a Databricks Unity Catalog Volume. Keys are deterministic and
derived from the recording reference, so a resumed run overwrites its own
objects instead of creating new ones.
"""

import io
import logging

from databricks.sdk import WorkspaceClient

from callflow.config import Settings, get_settings

logger = logging.getLogger(__name__)

RECORDINGS_PREFIX = "call-recordings"
TRANSCRIPTS_PREFIX = "transcripts"


class StorageError(Exception):
    """Exception raised when a blob cannot be written or read."""

    pass


def recording_blob_key(recording_ref: str, mime_type: str | None) -> str:
    """Build the object key for a recording.

    The file extension is the MIME subtype ("audio/wav" -> "wav"), falling
    back to "mp3" when the MIME type has none.

    Args:
        recording_ref: The recording reference.
        mime_type: MIME type reported by the recording source.

    Returns:
        str: A key of the form "call-recordings/<ref>.<ext>".
    """
    subtype = ""
    if mime_type and "/" in mime_type:
        subtype = mime_type.split("/", 1)[1].split(";", 1)[0].strip()
    return f"{RECORDINGS_PREFIX}/{recording_ref}.{subtype or 'mp3'}"


def transcript_blob_key(recording_ref: str) -> str:
    """Build the object key for a transcript."""
    return f"{TRANSCRIPTS_PREFIX}/{recording_ref}.txt"


def _volume_path(key: str, settings: Settings) -> str:
    return f"{settings.VOLUME_PATH.rstrip('/')}/{key}"


def upload_object(
    key: str,
    data: bytes,
    content_type: str,
    settings: Settings | None = None,
) -> str:
    """Upload bytes to the object store under a key.

    Existing objects under the same key are overwritten.

    Args:
        key: Object key relative to the volume root.
        data: The bytes to store.
        content_type: MIME type of the data, recorded in the log.
        settings: Application settings. Defaults to get_settings().

    Returns:
        str: The key the object was stored under.

    Raises:
        StorageError: If the upload fails.
    """
    settings = settings or get_settings()
    path = _volume_path(key, settings)
    try:
        client = WorkspaceClient()
        client.files.upload(path, io.BytesIO(data), overwrite=True)
    except Exception as e:
        raise StorageError(f"Failed to upload {key}: {e}") from e

    logger.info(f"Uploaded {len(data)} bytes ({content_type}) to {path}")
    return key


def download_object(key: str, settings: Settings | None = None) -> bytes:
    """Download an object's bytes by key.

    Raises:
        StorageError: If the download fails.
    """
    settings = settings or get_settings()
    path = _volume_path(key, settings)
    try:
        client = WorkspaceClient()
        response = client.files.download(path)
        return response.contents.read()
    except Exception as e:
        raise StorageError(f"Failed to download {key}: {e}") from e
