"""Unit tests for the recording source client."""

import base64

import httpx
import pytest

from callflow.services.recording_source import (
    RecordingNotFoundError,
    RecordingSourceError,
    fetch_recording,
    get_extension_name,
    list_recordings,
)

AUDIO = b"ID3 fake mp3 payload"


def _client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def _recording_body(**overrides) -> dict:
    data = {
        "data": base64.b64encode(AUDIO).decode("ascii"),
        "mimetype": "audio/wav",
        "start": "1700000000",
        "end": "1700000185",
        "snumber": "01611234567",
        "cnumber": "01273806211",
        "dnumber": "5636012345",
        "callerid_internal": None,
        "uniqueid": "1700000000.1234",
        "name": "Inbound",
        "ignored": "not a CDR field",
    }
    data.update(overrides)
    return {"data": data}


class TestFetchRecording:
    """Tests for fetch_recording() function."""

    def test_fetches_and_decodes_recording(self, test_settings) -> None:
        """Test that audio, timestamps and CDR fields are returned."""
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json=_recording_body())

        payload = fetch_recording("1700000000.1234", test_settings, client=_client(handler))

        assert payload.audio_bytes == AUDIO
        assert payload.mime_type == "audio/wav"
        assert payload.start_epoch == 1_700_000_000
        assert payload.duration_seconds == 185
        assert payload.cdr["snumber"] == "01611234567"
        assert "ignored" not in payload.cdr

        request = requests[0]
        assert request.url.path == "/api/json/recording/recordings/get"
        assert request.url.params["uniqueid"] == "1700000000.1234"
        assert request.url.params["auth_username"] == "voip_user"
        assert request.url.params["auth_password"] == "voip_password"
        assert request.url.params["recordgroup"] == test_settings.VOIP_RECORD_GROUP
        assert request.url.params["encoding"] == "base64"

    def test_job_hints_override_defaults(self, test_settings) -> None:
        """Test that record group and id hints from the job are sent."""
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json=_recording_body())

        fetch_recording(
            "1700000000.1234",
            test_settings,
            record_group="9999",
            record_id="1",
            client=_client(handler),
        )

        assert requests[0].url.params["recordgroup"] == "9999"
        assert requests[0].url.params["recordid"] == "1"

    def test_missing_mimetype_defaults_to_mpeg(self, test_settings) -> None:
        """Test that a payload without MIME type is treated as MP3."""
        body = _recording_body(mimetype=None)

        payload = fetch_recording(
            "ref", test_settings, client=_client(lambda r: httpx.Response(200, json=body))
        )

        assert payload.mime_type == "audio/mpeg"

    def test_missing_audio_raises_not_found(self, test_settings) -> None:
        """Test that a response without an audio payload is a missing recording."""
        body = _recording_body(data="")

        with pytest.raises(RecordingNotFoundError):
            fetch_recording(
                "ref", test_settings, client=_client(lambda r: httpx.Response(200, json=body))
            )

    def test_http_404_raises_not_found(self, test_settings) -> None:
        """Test that a 404 from the source is a missing recording."""
        with pytest.raises(RecordingNotFoundError):
            fetch_recording(
                "ref", test_settings, client=_client(lambda r: httpx.Response(404))
            )

    def test_server_error_raises_source_error(self, test_settings) -> None:
        """Test that a 5xx response raises RecordingSourceError."""
        with pytest.raises(RecordingSourceError, match="failed"):
            fetch_recording(
                "ref", test_settings, client=_client(lambda r: httpx.Response(502))
            )

    def test_invalid_base64_raises_source_error(self, test_settings) -> None:
        """Test that an undecodable audio payload raises RecordingSourceError."""
        body = _recording_body(data="not*base64!")

        with pytest.raises(RecordingSourceError, match="base64"):
            fetch_recording(
                "ref", test_settings, client=_client(lambda r: httpx.Response(200, json=body))
            )

    def test_missing_credentials_raise(self, test_settings) -> None:
        """Test that fetching without VoIP credentials fails fast."""
        settings = test_settings.model_copy(update={"VOIP_BASE_URL": None})

        with pytest.raises(RecordingSourceError, match="VOIP_BASE_URL"):
            fetch_recording("ref", settings)


class TestGetExtensionName:
    """Tests for get_extension_name() function."""

    def test_returns_caller_name(self, test_settings) -> None:
        """Test that the phone's configured caller name is returned trimmed."""
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"data": {"callername_internal": " Alice Smith "}})

        name = get_extension_name("5636012345", test_settings, client=_client(handler))

        assert name == "Alice Smith"
        assert requests[0].url.path == "/api/json/phones/get"
        assert requests[0].url.params["name"] == "5636012345"
        assert requests[0].url.params["customer"] == "1001"

    def test_returns_none_when_name_missing(self, test_settings) -> None:
        """Test that a phone without caller name yields None."""
        client = _client(lambda r: httpx.Response(200, json={"data": {}}))

        assert get_extension_name("5636012345", test_settings, client=client) is None

    def test_returns_none_on_failure(self, test_settings) -> None:
        """Test that lookup failures are swallowed and reported as None."""
        client = _client(lambda r: httpx.Response(500))

        assert get_extension_name("5636012345", test_settings, client=client) is None


class TestListRecordings:
    """Tests for list_recordings() function."""

    def test_returns_recordings_with_uniqueid(self, test_settings) -> None:
        """Test that recordings are listed for the range and entries without id dropped."""
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(
                200,
                json={"data": [{"uniqueid": "a"}, {"uniqueid": ""}, {"uniqueid": "b"}]},
            )

        result = list_recordings(1_700_000_000, 1_700_086_400, test_settings, client=_client(handler))

        assert [item["uniqueid"] for item in result] == ["a", "b"]
        assert requests[0].url.params["start"] == "1700000000"
        assert requests[0].url.params["end"] == "1700086400"

    def test_empty_range(self, test_settings) -> None:
        """Test that a range without recordings returns an empty list."""
        client = _client(lambda r: httpx.Response(200, json={"data": None}))

        assert list_recordings(0, 1, test_settings, client=client) == []
