"""
Tag model.

Tags label tickets for filtering and reporting. The link rows live in
TicketTag (see models/ticket.py).
"""

from sqlalchemy import Column, String

from helpdesk.models.base import Base, PrimaryKeyMixin, TimestampMixin


class Tag(Base, PrimaryKeyMixin, TimestampMixin):
    """A free-form label attachable to many tickets."""

    __tablename__ = "tags"

    name = Column(String(100), unique=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Tag(id={self.id}, name='{self.name}')>"
