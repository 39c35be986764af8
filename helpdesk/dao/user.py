"""
User Data Access Object.

WHY: UserDAO provides the lookups the ticket lifecycle needs: loading the
authenticated actor and validating assignees.
"""

from typing import Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.dao.base import BaseDAO
from helpdesk.models.user import User, UserRole


class UserDAO(BaseDAO[User]):
    """Data Access Object for User model."""

    def __init__(self, session: AsyncSession):
        super().__init__(User, session)

    async def get_agent(self, user_id: int) -> Optional[User]:
        """
        Retrieve a user only if they hold the agent role.

        WHY: Tickets may only be assigned to agents; an admin or customer
        id is treated the same as an unknown id.
        """
        result = await self.session.execute(
            select(User).where(User.id == user_id, User.role == UserRole.AGENT)
        )
        return result.scalar_one_or_none()
