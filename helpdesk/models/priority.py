"""
Ticket priority reference data.

WHY: Priorities are admin-managed rows rather than an enum so a helpdesk
can introduce levels ("Critical", "Low - backlog") without a release.
"""

from sqlalchemy import Column, String

from helpdesk.models.base import Base, PrimaryKeyMixin, TimestampMixin


class TicketPriority(Base, PrimaryKeyMixin, TimestampMixin):
    """A named priority level that tickets reference by id."""

    __tablename__ = "ticket_priorities"

    name = Column(String(100), unique=True, nullable=False)

    def __repr__(self) -> str:
        return f"<TicketPriority(id={self.id}, name='{self.name}')>"
