"""Unit tests for the CRM directory lookup."""

import base64

import httpx
import pytest

from callflow.services.directory import (
    DirectoryLookupError,
    PhoneNumberRequiredError,
    lookup_company_by_phone,
)


def _client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


class TestLookupCompanyByPhone:
    """Tests for lookup_company_by_phone() function."""

    def test_returns_company_of_first_contact(self, test_settings) -> None:
        """Test that the matching contact's company is returned."""
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(
                200,
                json=[
                    {
                        "id": 7,
                        "firstName": "Dave",
                        "lastName": "Client",
                        "company": {"id": 42, "name": "Acme Ltd"},
                    }
                ],
            )

        company = lookup_company_by_phone("01611234567", test_settings, client=_client(handler))

        assert company.external_id == "42"
        assert company.name == "Acme Ltd"

        request = requests[0]
        assert request.url.path.endswith("/company/contacts")
        assert "01611234567" in request.url.params["childConditions"]
        assert request.url.params["pageSize"] == "1"
        assert request.headers["clientId"] == "client-123"
        expected_auth = base64.b64encode(b"acme+public:private").decode("ascii")
        assert request.headers["Authorization"] == f"Basic {expected_auth}"

    def test_no_contact_returns_none(self, test_settings) -> None:
        """Test that an unknown number yields None."""
        client = _client(lambda r: httpx.Response(200, json=[]))

        assert lookup_company_by_phone("01611234567", test_settings, client=client) is None

    def test_contact_without_company_returns_none(self, test_settings) -> None:
        """Test that a contact not linked to a company yields None."""
        client = _client(lambda r: httpx.Response(200, json=[{"id": 7, "firstName": "Dave"}]))

        assert lookup_company_by_phone("01611234567", test_settings, client=client) is None

    def test_nameless_company_uses_external_id(self, test_settings) -> None:
        """Test that a company without a name falls back to its id as the name."""
        contacts = [{"id": 7, "company": {"id": 42, "name": "  "}}]
        client = _client(lambda r: httpx.Response(200, json=contacts))

        company = lookup_company_by_phone("01611234567", test_settings, client=client)

        assert company.external_id == "42"
        assert company.name == "42"

    @pytest.mark.parametrize("phone_number", ["", "   "])
    def test_empty_phone_number_raises(self, test_settings, phone_number: str) -> None:
        """Test that a lookup without phone number raises PhoneNumberRequiredError."""
        with pytest.raises(PhoneNumberRequiredError, match="Phone Number is required"):
            lookup_company_by_phone(phone_number, test_settings)

    def test_http_error_raises_lookup_error(self, test_settings) -> None:
        """Test that directory failures raise DirectoryLookupError."""
        client = _client(lambda r: httpx.Response(401, json={"message": "unauthorized"}))

        with pytest.raises(DirectoryLookupError) as exc_info:
            lookup_company_by_phone("01611234567", test_settings, client=client)

        assert not isinstance(exc_info.value, PhoneNumberRequiredError)

    def test_missing_credentials_raise(self, test_settings) -> None:
        """Test that an unconfigured directory raises DirectoryLookupError."""
        settings = test_settings.model_copy(update={"DIRECTORY_PUBLIC_KEY": None})

        with pytest.raises(DirectoryLookupError, match="DIRECTORY_PUBLIC_KEY"):
            lookup_company_by_phone("01611234567", settings)
