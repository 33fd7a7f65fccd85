"""Agent model for service desk staff."""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from . import Base


class Agent(Base):
    """A staff member calls are attributed to.

    Agents are created implicitly when a new CDR extension is seen. The
    extension is unique so concurrent workers cannot create duplicates.
    """

    __tablename__ = "agents"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    extension: Mapped[str | None] = mapped_column(String(20), nullable=True, unique=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    user_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, onupdate=func.now()
    )

    def __repr__(self) -> str:
        """Return string representation of the Agent."""
        return f"<Agent(id={self.id!r}, name={self.name!r}, extension={self.extension!r})>"
