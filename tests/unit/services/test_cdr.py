"""Unit tests for CDR parsing: extensions, external numbers and call direction."""

import pytest

from callflow.models import CallDirection
from callflow.services.cdr import (
    determine_call_direction,
    extract_external_phone_number,
    extract_internal_extension,
    normalize_uk_number,
)

PREFIX = "56360"
DID = "01273806211"


class TestExtractInternalExtension:
    """Tests for extract_internal_extension() function."""

    def test_prefers_dnumber_for_transferred_calls(self) -> None:
        """Test that dnumber wins over snumber when both hold an extension."""
        cdr = {"snumber": "5636011111", "dnumber": "5636022222"}

        assert extract_internal_extension(cdr, PREFIX) == "5636022222"

    def test_finds_extension_embedded_in_field(self) -> None:
        """Test that an extension inside a longer SIP-style value is matched."""
        cdr = {"callerid_internal": "Alice <5636012345>"}

        assert extract_internal_extension(cdr, PREFIX) == "5636012345"

    def test_falls_back_through_field_order(self) -> None:
        """Test that snumber is used when no earlier field holds an extension."""
        cdr = {"dnumber": "01611234567", "cnumber": DID, "snumber": "5636012345"}

        assert extract_internal_extension(cdr, PREFIX) == "5636012345"

    def test_returns_none_without_extension(self) -> None:
        """Test that a CDR of external numbers yields no extension."""
        cdr = {"snumber": "01611234567", "cnumber": DID, "dnumber": None}

        assert extract_internal_extension(cdr, PREFIX) is None

    def test_rejects_extension_longer_than_fifteen_digits(self) -> None:
        """Test that an over-long digit run is not treated as an extension."""
        cdr = {"dnumber": "5636012345678901"}

        assert extract_internal_extension(cdr, PREFIX) is None

    def test_ignores_non_string_values(self) -> None:
        """Test that numeric or missing CDR values are skipped."""
        cdr = {"dnumber": 5636012345, "snumber": None}

        assert extract_internal_extension(cdr, PREFIX) is None


class TestNormalizeUkNumber:
    """Tests for normalize_uk_number() function."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("01611234567", "01611234567"),
            ("+441611234567", "01611234567"),
            ("441611234567", "01611234567"),
            ("Customer <07700900123>", "07700900123"),
        ],
    )
    def test_normalizes_to_national_format(self, raw: str, expected: str) -> None:
        """Test that national, +44 and bare 44 forms all normalize to 0-prefixed."""
        assert normalize_uk_number(raw) == expected

    def test_returns_none_for_extension(self) -> None:
        """Test that an internal extension is not a phone number."""
        assert normalize_uk_number("5636012345") is None

    def test_returns_none_for_short_code(self) -> None:
        """Test that service codes such as *78 are not phone numbers."""
        assert normalize_uk_number("*78") is None


class TestExtractExternalPhoneNumber:
    """Tests for extract_external_phone_number() function."""

    def test_skips_company_did(self) -> None:
        """Test that the company's own number is never returned."""
        cdr = {"cnumber": DID, "dnumber": "5636012345", "snumber": "01611234567"}

        assert extract_external_phone_number(cdr, DID, PREFIX) == "01611234567"

    def test_prefers_callerid_internal(self) -> None:
        """Test that callerid_internal is checked before the other fields."""
        cdr = {"callerid_internal": "+447700900123", "snumber": "01611234567"}

        assert extract_external_phone_number(cdr, DID, PREFIX) == "07700900123"

    def test_returns_none_for_internal_call(self) -> None:
        """Test that extension-to-extension calls have no external number."""
        cdr = {"snumber": "5636012345", "cnumber": "5636012399", "dnumber": "5636012399"}

        assert extract_external_phone_number(cdr, DID, PREFIX) is None

    def test_returns_none_when_only_did_present(self) -> None:
        """Test that a call showing only the DID has no external number."""
        cdr = {"cnumber": DID, "snumber": "5636012345"}

        assert extract_external_phone_number(cdr, DID, PREFIX) is None

    def test_works_without_configured_did(self) -> None:
        """Test that the first phone number is returned when no DID is configured."""
        cdr = {"cnumber": DID, "snumber": "01611234567"}

        assert extract_external_phone_number(cdr, None, PREFIX) == DID


class TestDetermineCallDirection:
    """Tests for determine_call_direction() function."""

    def test_outbound_call(self) -> None:
        """Test that an extension dialling an external number is OUTBOUND."""
        cdr = {"snumber": "5636012345", "cnumber": "01611234567"}

        assert determine_call_direction(cdr, PREFIX, DID) == CallDirection.OUTBOUND

    def test_inbound_call_to_extension(self) -> None:
        """Test that an external number reaching an extension is INBOUND."""
        cdr = {"snumber": "01611234567", "cnumber": "5636012345"}

        assert determine_call_direction(cdr, PREFIX, DID) == CallDirection.INBOUND

    def test_inbound_call_to_company_did(self) -> None:
        """Test that an external number dialling the DID is INBOUND."""
        cdr = {"snumber": "07700900123", "cnumber": DID, "dnumber": "5636012345"}

        assert determine_call_direction(cdr, PREFIX, DID) == CallDirection.INBOUND

    def test_internal_extension_to_extension(self) -> None:
        """Test that extension-to-extension calls are INTERNAL."""
        cdr = {"snumber": "5636012345", "cnumber": "5636012399"}

        assert determine_call_direction(cdr, PREFIX, DID) == CallDirection.INTERNAL

    def test_internal_voicemail_code(self) -> None:
        """Test that an extension dialling a star code is INTERNAL."""
        cdr = {"snumber": "5636012345", "cnumber": "*78"}

        assert determine_call_direction(cdr, PREFIX, DID) == CallDirection.INTERNAL

    def test_unknown_when_fields_missing(self) -> None:
        """Test that a CDR without numbers is UNKNOWN."""
        assert determine_call_direction({}, PREFIX, DID) == CallDirection.UNKNOWN
