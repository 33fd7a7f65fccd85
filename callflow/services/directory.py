"""CRM directory lookup: resolves a phone number to a client organisation.

Queries the ConnectWise Manage REST API for a contact whose phone
communication item matches the number and returns the contact's company.
"""

import logging
from dataclasses import dataclass

import httpx

from callflow.config import Settings

logger = logging.getLogger(__name__)


class DirectoryLookupError(Exception):
    """Raised when the directory cannot be queried."""

    pass


class PhoneNumberRequiredError(DirectoryLookupError):
    """Raised when a lookup is attempted without a phone number."""

    pass


@dataclass
class DirectoryCompany:
    """A company as known to the directory."""

    external_id: str
    name: str


def _auth(settings: Settings) -> tuple[str, str, dict[str, str]]:
    if not (
        settings.DIRECTORY_BASE_URL
        and settings.DIRECTORY_COMPANY_ID
        and settings.DIRECTORY_PUBLIC_KEY
        and settings.DIRECTORY_PRIVATE_KEY
    ):
        raise DirectoryLookupError(
            "DIRECTORY_BASE_URL, DIRECTORY_COMPANY_ID, DIRECTORY_PUBLIC_KEY and "
            "DIRECTORY_PRIVATE_KEY must be set"
        )
    username = f"{settings.DIRECTORY_COMPANY_ID}+{settings.DIRECTORY_PUBLIC_KEY}"
    headers = {"Accept": "application/json"}
    if settings.DIRECTORY_CLIENT_ID:
        headers["clientId"] = settings.DIRECTORY_CLIENT_ID
    return username, settings.DIRECTORY_PRIVATE_KEY.get_secret_value(), headers


def lookup_company_by_phone(
    phone_number: str,
    settings: Settings,
    client: httpx.Client | None = None,
) -> DirectoryCompany | None:
    """Find the company a phone number belongs to.

    Args:
        phone_number: The external party's number in national format.
        settings: Application settings with the directory credentials.
        client: Optional httpx client, mainly for tests.

    Returns:
        DirectoryCompany | None: The company of the first contact with a
            matching phone number, or None if there is none.

    Raises:
        PhoneNumberRequiredError: If phone_number is empty.
        DirectoryLookupError: If the request fails.
    """
    if not phone_number or not phone_number.strip():
        raise PhoneNumberRequiredError("Phone Number is required for company lookup")

    username, password, headers = _auth(settings)
    url = f"{settings.DIRECTORY_BASE_URL.rstrip('/')}/company/contacts"
    params = {
        "childConditions": (
            f'communicationItems/value like "%{phone_number}%" '
            "AND communicationItems/communicationType = 'Phone'"
        ),
        "fields": "id,firstName,lastName,company",
        "pageSize": 1,
    }

    owns_client = client is None
    if owns_client:
        client = httpx.Client(timeout=settings.HTTP_TIMEOUT_SECONDS)
    try:
        response = client.get(
            url, params=params, headers=headers, auth=httpx.BasicAuth(username, password)
        )
        response.raise_for_status()
        contacts = response.json()
    except httpx.HTTPError as e:
        raise DirectoryLookupError(
            f"Failed to retrieve company for phone number {phone_number}: {e}"
        ) from e
    except ValueError as e:
        raise DirectoryLookupError(f"Invalid JSON from directory: {e}") from e
    finally:
        if owns_client:
            client.close()

    if not isinstance(contacts, list) or not contacts:
        logger.info(f"No directory contact found for {phone_number}")
        return None

    company = contacts[0].get("company") if isinstance(contacts[0], dict) else None
    if not isinstance(company, dict) or company.get("id") is None:
        logger.info(f"Directory contact for {phone_number} has no company")
        return None

    external_id = str(company["id"])
    name = (company.get("name") or "").strip()
    if not name:
        logger.warning(f"Directory company {external_id} has no name, using its id")
        name = external_id
    return DirectoryCompany(external_id=external_id, name=name)
