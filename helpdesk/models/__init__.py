"""
Database models package.

WHY: Centralizing model imports ensures Alembic can discover all models
for migration generation and makes it easier to import models elsewhere.
"""

from helpdesk.models.base import Base, TimestampMixin, PrimaryKeyMixin, utcnow
from helpdesk.models.user import User, UserRole
from helpdesk.models.priority import TicketPriority
from helpdesk.models.tag import Tag
from helpdesk.models.ticket import (
    Ticket,
    TicketStatus,
    TicketEventType,
    TicketComment,
    TicketAttachment,
    TicketEvent,
    TicketTag,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "PrimaryKeyMixin",
    "utcnow",
    "User",
    "UserRole",
    "TicketPriority",
    "Tag",
    "Ticket",
    "TicketStatus",
    "TicketEventType",
    "TicketComment",
    "TicketAttachment",
    "TicketEvent",
    "TicketTag",
]
