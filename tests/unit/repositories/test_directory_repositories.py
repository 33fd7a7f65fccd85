"""Unit tests for the agent and company repositories."""

from unittest.mock import patch

from sqlalchemy.orm import Session

from callflow.models import Agent, Company
from callflow.repositories import (
    find_agent_by_extension,
    find_agent_by_name,
    find_company_by_external_id,
    find_or_create_agent,
    find_or_create_company,
    list_agents,
)


class TestFindAgent:
    """Tests for agent lookups."""

    def test_find_by_extension(self, db_session: Session, sample_agent: Agent) -> None:
        """Test that an agent is found by its extension."""
        assert find_agent_by_extension(db_session, "5636012345").id == sample_agent.id
        assert find_agent_by_extension(db_session, "5636099999") is None

    def test_find_by_name_ignores_case_and_whitespace(
        self, db_session: Session, sample_agent: Agent
    ) -> None:
        """Test that name matching is case-insensitive and trims whitespace."""
        assert find_agent_by_name(db_session, "  alice SMITH ").id == sample_agent.id

    def test_find_by_blank_name_returns_none(
        self, db_session: Session, sample_agent: Agent
    ) -> None:
        """Test that a blank name never matches."""
        assert find_agent_by_name(db_session, "   ") is None

    def test_list_agents_ordered_by_name(self, db_session: Session) -> None:
        """Test that list_agents returns agents alphabetically."""
        db_session.add_all([Agent(name="Zoe Brown"), Agent(name="Adam Jones")])
        db_session.commit()

        assert [agent.name for agent in list_agents(db_session)] == ["Adam Jones", "Zoe Brown"]


class TestFindOrCreateAgent:
    """Tests for find_or_create_agent() function."""

    def test_returns_existing_agent(self, db_session: Session, sample_agent: Agent) -> None:
        """Test that a known extension returns the stored agent unchanged."""
        agent = find_or_create_agent(db_session, "5636012345", "Someone Else")

        assert agent.id == sample_agent.id
        assert agent.name == "Alice Smith"
        assert db_session.query(Agent).count() == 1

    def test_creates_agent_for_new_extension(self, db_session: Session) -> None:
        """Test that an unseen extension creates an agent with the given name."""
        agent = find_or_create_agent(db_session, "5636012399", "Extension 5636012399")

        assert agent.id is not None
        assert agent.extension == "5636012399"
        assert agent.name == "Extension 5636012399"

    def test_concurrent_insert_returns_winner(
        self, db_session: Session, sample_agent: Agent
    ) -> None:
        """Test that losing the unique-extension race returns the other worker's row."""
        with patch(
            "callflow.repositories.agents.find_agent_by_extension",
            side_effect=[None, sample_agent],
        ):
            agent = find_or_create_agent(db_session, "5636012345", "Alice Smith")

        assert agent.id == sample_agent.id
        assert db_session.query(Agent).count() == 1


class TestFindOrCreateCompany:
    """Tests for find_or_create_company() function."""

    def test_creates_company(self, db_session: Session) -> None:
        """Test that an unseen external id creates a company."""
        company = find_or_create_company(db_session, "42", "Acme Ltd")

        assert company.external_id == "42"
        assert find_company_by_external_id(db_session, "42").id == company.id

    def test_reuses_company_by_external_id(
        self, db_session: Session, sample_company: Company
    ) -> None:
        """Test that a known external id never creates a duplicate."""
        company = find_or_create_company(db_session, "42", "Acme Ltd")

        assert company.id == sample_company.id
        assert db_session.query(Company).count() == 1

    def test_renames_company_when_directory_name_changes(
        self, db_session: Session, sample_company: Company
    ) -> None:
        """Test that the stored name follows the directory."""
        company = find_or_create_company(db_session, "42", "Acme Holdings Ltd")

        assert company.id == sample_company.id
        assert company.name == "Acme Holdings Ltd"

    def test_concurrent_insert_returns_winner(
        self, db_session: Session, sample_company: Company
    ) -> None:
        """Test that losing the unique-external-id race returns the other worker's row."""
        with patch(
            "callflow.repositories.companies.find_company_by_external_id",
            side_effect=[None, sample_company],
        ):
            company = find_or_create_company(db_session, "42", "Acme Ltd")

        assert company.id == sample_company.id
        assert db_session.query(Company).count() == 1
