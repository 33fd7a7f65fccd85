"""Recording source client for the hosted VoIP platform.

Fetches call recordings (audio plus CDR fields) and extension details from
the platform's JSON API using httpx.
"""

import base64
import binascii
import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from callflow.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "audio/mpeg"
CDR_FIELDS = ("snumber", "cnumber", "dnumber", "callerid_internal", "uniqueid", "name")


class RecordingSourceError(Exception):
    """Raised when the recording source cannot be reached or answers badly."""

    pass


class RecordingNotFoundError(RecordingSourceError):
    """Raised when a recording does not exist or carries no audio payload."""

    pass


@dataclass
class RecordingPayload:
    """A recording as returned by the source, with its decoded audio.

    Attributes:
        recording_ref: The unique id the recording was fetched by.
        start_epoch: Call start as a unix timestamp.
        end_epoch: Call end as a unix timestamp.
        mime_type: MIME type of the audio.
        audio_base64: The audio exactly as delivered by the source.
        audio_bytes: The decoded audio.
        cdr: Raw CDR number fields (snumber, cnumber, dnumber, ...).
    """

    recording_ref: str
    start_epoch: int | None
    end_epoch: int | None
    mime_type: str
    audio_base64: str
    audio_bytes: bytes
    cdr: dict[str, Any] = field(default_factory=dict)

    @property
    def duration_seconds(self) -> int | None:
        """Call duration computed from the source's start and end timestamps."""
        if self.start_epoch is None or self.end_epoch is None:
            return None
        return max(self.end_epoch - self.start_epoch, 0)


def _require_config(settings: Settings) -> tuple[str, str, str]:
    if not (settings.VOIP_BASE_URL and settings.VOIP_USERNAME and settings.VOIP_PASSWORD):
        raise RecordingSourceError(
            "VOIP_BASE_URL, VOIP_USERNAME and VOIP_PASSWORD must be set"
        )
    return (
        settings.VOIP_BASE_URL.rstrip("/"),
        settings.VOIP_USERNAME,
        settings.VOIP_PASSWORD.get_secret_value(),
    )


def _get_json(
    url: str,
    params: dict[str, Any],
    settings: Settings,
    client: httpx.Client | None,
) -> tuple[int, Any]:
    """Issue a GET request and return the status code and decoded body."""
    owns_client = client is None
    if owns_client:
        client = httpx.Client(timeout=settings.HTTP_TIMEOUT_SECONDS)
    try:
        response = client.get(url, params=params)
        if response.status_code == 404:
            return response.status_code, None
        response.raise_for_status()
        return response.status_code, response.json()
    except httpx.HTTPError as e:
        raise RecordingSourceError(f"Request to {url} failed: {e}") from e
    except ValueError as e:
        raise RecordingSourceError(f"Invalid JSON from {url}: {e}") from e
    finally:
        if owns_client:
            client.close()


def _to_epoch(value: Any) -> int | None:
    if value in (None, ""):
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        logger.warning(f"Ignoring non-numeric timestamp {value!r}")
        return None


def fetch_recording(
    recording_ref: str,
    settings: Settings,
    record_group: str | None = None,
    record_id: str | None = None,
    client: httpx.Client | None = None,
) -> RecordingPayload:
    """Fetch a recording and its CDR fields from the recording source.

    Args:
        recording_ref: The source's unique id for the call.
        settings: Application settings with the VoIP credentials.
        record_group: Optional record group hint. Defaults to
            VOIP_RECORD_GROUP.
        record_id: Optional recording variant hint. Defaults to
            VOIP_RECORD_ID.
        client: Optional httpx client, mainly for tests.

    Returns:
        RecordingPayload: Audio, MIME type, timestamps and CDR fields.

    Raises:
        RecordingNotFoundError: If the recording does not exist or has no
            audio payload.
        RecordingSourceError: If the request fails or the payload cannot be
            decoded.
    """
    base_url, username, password = _require_config(settings)
    url = f"{base_url}/api/json/recording/recordings/get"
    params = {
        "auth_username": username,
        "auth_password": password,
        "recordgroup": record_group or settings.VOIP_RECORD_GROUP,
        "uniqueid": recording_ref,
        "recordid": record_id or settings.VOIP_RECORD_ID,
        "encoding": "base64",
    }

    logger.info(f"Fetching recording {recording_ref} from {url}")
    status, body = _get_json(url, params, settings, client)

    data = body.get("data") if isinstance(body, dict) else None
    if status == 404 or not isinstance(data, dict) or not data.get("data"):
        raise RecordingNotFoundError(f"No recording data for {recording_ref}")

    audio_base64 = data["data"]
    try:
        audio_bytes = base64.b64decode(audio_base64)
    except (binascii.Error, ValueError) as e:
        raise RecordingSourceError(
            f"Recording {recording_ref} payload is not valid base64"
        ) from e

    return RecordingPayload(
        recording_ref=recording_ref,
        start_epoch=_to_epoch(data.get("start")),
        end_epoch=_to_epoch(data.get("end")),
        mime_type=data.get("mimetype") or DEFAULT_MIME_TYPE,
        audio_base64=audio_base64,
        audio_bytes=audio_bytes,
        cdr={name: data.get(name) for name in CDR_FIELDS},
    )


def get_extension_name(
    extension: str,
    settings: Settings,
    client: httpx.Client | None = None,
) -> str | None:
    """Look up the display name configured for an internal extension.

    Failures are logged and reported as None; the name is a convenience
    and must not stop a call from being processed.

    Args:
        extension: The internal extension number.
        settings: Application settings with the VoIP credentials.
        client: Optional httpx client, mainly for tests.

    Returns:
        str | None: The caller name configured on the phone, or None.
    """
    try:
        base_url, username, password = _require_config(settings)
        url = f"{base_url}/api/json/phones/get"
        params = {
            "auth_username": username,
            "auth_password": password,
            "name": extension,
            "customer": settings.VOIP_CUSTOMER_ID,
        }
        _, body = _get_json(url, params, settings, client)
    except RecordingSourceError as e:
        logger.warning(f"Extension lookup failed for {extension}: {e}")
        return None

    data = body.get("data") if isinstance(body, dict) else None
    if not isinstance(data, dict):
        return None
    name = data.get("callername_internal")
    if not isinstance(name, str) or not name.strip():
        return None
    return name.strip()


def list_recordings(
    start_epoch: int,
    end_epoch: int,
    settings: Settings,
    client: httpx.Client | None = None,
) -> list[dict[str, Any]]:
    """List the recordings made in a time range.

    Args:
        start_epoch: Range start as a unix timestamp.
        end_epoch: Range end as a unix timestamp.
        settings: Application settings with the VoIP credentials.
        client: Optional httpx client, mainly for tests.

    Returns:
        list[dict]: Recording summaries, each carrying at least "uniqueid".

    Raises:
        RecordingSourceError: If the request fails.
    """
    base_url, username, password = _require_config(settings)
    url = f"{base_url}/api/json/recording/recordings/list"
    params = {
        "auth_username": username,
        "auth_password": password,
        "recordgroup": settings.VOIP_RECORD_GROUP,
        "start": str(start_epoch),
        "end": str(end_epoch),
    }
    logger.info(f"Listing recordings between {start_epoch} and {end_epoch}")
    _, body = _get_json(url, params, settings, client)

    data = body.get("data") if isinstance(body, dict) else None
    if not data:
        return []
    return [item for item in data if isinstance(item, dict) and item.get("uniqueid")]
