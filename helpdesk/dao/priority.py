"""
Ticket priority Data Access Object.
"""

from typing import List, Optional
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.dao.base import BaseDAO
from helpdesk.models.priority import TicketPriority
from helpdesk.models.ticket import Ticket


class PriorityDAO(BaseDAO[TicketPriority]):
    """Data Access Object for TicketPriority reference rows."""

    def __init__(self, session: AsyncSession):
        super().__init__(TicketPriority, session)

    async def list_all(self) -> List[TicketPriority]:
        result = await self.session.execute(select(TicketPriority).order_by(TicketPriority.id))
        return list(result.scalars().all())

    async def get_by_name(self, name: str) -> Optional[TicketPriority]:
        """Case-insensitive lookup used for duplicate-name checks."""
        result = await self.session.execute(
            select(TicketPriority).where(func.lower(TicketPriority.name) == name.lower())
        )
        return result.scalar_one_or_none()

    async def is_in_use(self, priority_id: int) -> bool:
        """True if any ticket references the priority."""
        result = await self.session.execute(
            select(Ticket.id).where(Ticket.priority_id == priority_id).limit(1)
        )
        return result.scalar_one_or_none() is not None
