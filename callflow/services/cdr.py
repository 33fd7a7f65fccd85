"""Call detail record (CDR) parsing.

Extracts the internal extension, the external party's phone number and the
call direction from the raw number fields the recording source attaches to
each recording.

CDR fields:
    snumber: Source number (initial answerer or outbound caller).
    cnumber: Called number (what was dialed).
    dnumber: Destination number (final handler for transferred calls).
    callerid_internal: Internal caller id.
"""

import logging
import re
from collections.abc import Mapping
from typing import Any

from callflow.models import CallDirection

logger = logging.getLogger(__name__)

# dnumber first: for transferred calls it holds the final handler
INTERNAL_EXTENSION_FIELDS = ("dnumber", "callerid_internal", "cnumber", "snumber")
EXTERNAL_NUMBER_FIELDS = ("callerid_internal", "cnumber", "dnumber", "snumber")

MIN_EXTENSION_LENGTH = 5
MAX_EXTENSION_LENGTH = 15

_UK_NATIONAL = re.compile(r"0\d{10}")
_UK_E164 = re.compile(r"\+44\d{10}")
_UK_BARE_COUNTRY_CODE = re.compile(r"44[1-9]\d{8,10}")

# Full-value patterns used to classify a field for call direction
_UK_PHONE_VALUE = (
    re.compile(r"^0[1-9]\d{8,10}$"),
    re.compile(r"^\+44\d{10}$"),
    re.compile(r"^44[1-9]\d{8,10}$"),
)


def _string_field(cdr: Mapping[str, Any], name: str) -> str | None:
    value = cdr.get(name)
    return value if isinstance(value, str) and value else None


def extract_internal_extension(cdr: Mapping[str, Any], prefix: str) -> str | None:
    """Find the internal extension that handled a call.

    Scans the CDR fields in priority order (dnumber, callerid_internal,
    cnumber, snumber) for a run of digits starting with the extension
    prefix. The first match of 5-15 digits wins.

    Args:
        cdr: Raw CDR fields from the recording source.
        prefix: Digits every internal extension starts with.

    Returns:
        str | None: The extension, or None when no field holds one.
    """
    pattern = re.compile(rf"({re.escape(prefix)}\d+)")
    for name in INTERNAL_EXTENSION_FIELDS:
        value = _string_field(cdr, name)
        if value is None:
            continue
        match = pattern.search(value)
        if match is None:
            continue
        extension = match.group(1)
        if MIN_EXTENSION_LENGTH <= len(extension) <= MAX_EXTENSION_LENGTH:
            logger.debug(f"Matched extension {extension} from field {name!r}")
            return extension
    return None


def normalize_uk_number(raw: str) -> str | None:
    """Extract a UK phone number from a raw field in national format.

    Tries the national form (0 followed by ten digits) first, then +44 and
    bare 44 forms, which are rewritten to start with 0.

    Args:
        raw: A raw CDR field value.

    Returns:
        str | None: The number in national format, or None.
    """
    match = _UK_NATIONAL.search(raw)
    if match:
        return match.group(0)
    match = _UK_E164.search(raw)
    if match:
        return "0" + match.group(0)[3:]
    match = _UK_BARE_COUNTRY_CODE.search(raw)
    if match:
        return "0" + match.group(0)[2:]
    return None


def extract_external_phone_number(
    cdr: Mapping[str, Any],
    company_did: str | None,
    prefix: str,
) -> str | None:
    """Find the customer-facing phone number of a call.

    Scans callerid_internal, cnumber, dnumber and snumber in that order.
    The company's own DID and anything that looks like an internal
    extension are skipped, since only the external party is wanted.

    Args:
        cdr: Raw CDR fields from the recording source.
        company_did: The service desk's own inbound number, if configured.
        prefix: Digits every internal extension starts with.

    Returns:
        str | None: The external number in UK national format, or None for
            internal calls.
    """
    for name in EXTERNAL_NUMBER_FIELDS:
        value = _string_field(cdr, name)
        if value is None:
            continue
        candidate = normalize_uk_number(value)
        if candidate is None:
            continue
        if company_did and candidate == company_did:
            continue
        if candidate.startswith(prefix):
            continue
        return candidate
    return None


def _is_uk_phone(value: str | None) -> bool:
    return value is not None and any(p.match(value) for p in _UK_PHONE_VALUE)


def determine_call_direction(
    cdr: Mapping[str, Any],
    prefix: str,
    company_did: str | None = None,
) -> CallDirection:
    """Classify a call as inbound, outbound or internal from its CDR fields.

    - OUTBOUND: snumber is an extension and cnumber an external phone.
    - INBOUND: snumber is an external phone reaching an extension or the
      company DID.
    - INTERNAL: extension to extension, or extension to a special code such
      as *78 (voicemail).

    Args:
        cdr: Raw CDR fields from the recording source.
        prefix: Digits every internal extension starts with.
        company_did: The service desk's own inbound number, if configured.

    Returns:
        CallDirection: The direction, UNKNOWN when the fields are ambiguous.
    """
    snumber = _string_field(cdr, "snumber")
    cnumber = _string_field(cdr, "cnumber")
    dnumber = _string_field(cdr, "dnumber")

    def is_extension(value: str | None) -> bool:
        return value is not None and value.startswith(prefix)

    def is_company_did(value: str | None) -> bool:
        return company_did is not None and value == company_did

    if is_extension(snumber) and _is_uk_phone(cnumber) and not is_company_did(cnumber):
        return CallDirection.OUTBOUND

    if _is_uk_phone(snumber) and not is_extension(snumber):
        if is_extension(cnumber) or is_extension(dnumber) or is_company_did(cnumber):
            return CallDirection.INBOUND

    if is_extension(snumber) and (is_extension(cnumber) or (cnumber or "").startswith("*")):
        return CallDirection.INTERNAL

    logger.debug(
        f"Could not determine direction for {cdr.get('uniqueid')} "
        f"(snumber={snumber}, cnumber={cnumber})"
    )
    return CallDirection.UNKNOWN
