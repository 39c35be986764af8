"""
Data Access Object (DAO) package.

WHY: DAOs provide a clean separation between database operations and business logic,
making the codebase more testable and maintainable.
"""

from helpdesk.dao.base import BaseDAO
from helpdesk.dao.user import UserDAO
from helpdesk.dao.priority import PriorityDAO
from helpdesk.dao.tag import TagDAO
from helpdesk.dao.ticket import (
    TicketFilter,
    TicketListItem,
    TicketDAO,
    TicketCommentDAO,
    TicketAttachmentDAO,
    TicketTagDAO,
    TicketEventDAO,
)

__all__ = [
    "BaseDAO",
    "UserDAO",
    "PriorityDAO",
    "TagDAO",
    "TicketFilter",
    "TicketListItem",
    "TicketDAO",
    "TicketCommentDAO",
    "TicketAttachmentDAO",
    "TicketTagDAO",
    "TicketEventDAO",
]
