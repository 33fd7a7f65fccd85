"""Company repository: find-or-create keyed on the external directory id."""

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from callflow.models import Company

logger = logging.getLogger(__name__)


def find_company_by_external_id(session: Session, external_id: str) -> Company | None:
    """Retrieve a company by its directory id."""
    return session.query(Company).filter_by(external_id=external_id).first()


def find_or_create_company(session: Session, external_id: str, name: str) -> Company:
    """Return the company with the given directory id, creating it if unseen.

    An existing company whose name changed in the directory is renamed.

    Args:
        session: SQLAlchemy database session.
        external_id: The directory's identifier for the organisation.
        name: The organisation's display name.

    Returns:
        Company: The existing or newly created company.
    """
    company = find_company_by_external_id(session, external_id)
    if company is None:
        company = Company(external_id=external_id, name=name)
        session.add(company)
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            company = find_company_by_external_id(session, external_id)
            if company is None:
                raise
        else:
            session.refresh(company)
            logger.info(f"Created company {name!r} (external id {external_id})")
            return company

    if name and company.name != name:
        company.name = name
        session.commit()
        session.refresh(company)
    return company
