"""Agent repository: lookup and create-on-demand for service desk staff."""

import logging

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from callflow.models import Agent

logger = logging.getLogger(__name__)


def find_agent_by_extension(session: Session, extension: str) -> Agent | None:
    """Retrieve an agent by phone extension."""
    return session.query(Agent).filter_by(extension=extension).first()


def find_agent_by_name(session: Session, name: str) -> Agent | None:
    """Retrieve an agent by display name, ignoring case and surrounding whitespace.

    Args:
        session: SQLAlchemy database session.
        name: Display name to match.

    Returns:
        Agent | None: The first matching agent, or None.
    """
    normalized = name.strip().lower()
    if not normalized:
        return None
    return session.query(Agent).filter(func.lower(Agent.name) == normalized).first()


def list_agents(session: Session) -> list[Agent]:
    """Return all agents ordered by name."""
    return session.query(Agent).order_by(Agent.name).all()


def find_or_create_agent(session: Session, extension: str, name: str) -> Agent:
    """Return the agent owning an extension, creating it on first sight.

    Two workers may see the same new extension at once. The unique
    constraint on extension decides the winner; the loser rolls back and
    re-reads the winner's row.

    Args:
        session: SQLAlchemy database session.
        extension: The internal extension from the CDR.
        name: Display name to use if the agent has to be created.

    Returns:
        Agent: The existing or newly created agent.
    """
    agent = find_agent_by_extension(session, extension)
    if agent is not None:
        return agent

    agent = Agent(extension=extension, name=name)
    session.add(agent)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        agent = find_agent_by_extension(session, extension)
        if agent is None:
            raise
        return agent

    session.refresh(agent)
    logger.info(f"Created agent {agent.name!r} for extension {extension}")
    return agent
