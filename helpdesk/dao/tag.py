"""
Tag Data Access Object.
"""

from typing import Iterable, List, Optional
from sqlalchemy import select, delete, func
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.dao.base import BaseDAO
from helpdesk.models.tag import Tag
from helpdesk.models.ticket import TicketTag


class TagDAO(BaseDAO[Tag]):
    """Data Access Object for Tag rows."""

    def __init__(self, session: AsyncSession):
        super().__init__(Tag, session)

    async def list_all(self) -> List[Tag]:
        result = await self.session.execute(select(Tag).order_by(Tag.name))
        return list(result.scalars().all())

    async def get_by_name(self, name: str) -> Optional[Tag]:
        result = await self.session.execute(
            select(Tag).where(func.lower(Tag.name) == name.lower())
        )
        return result.scalar_one_or_none()

    async def get_by_ids(self, tag_ids: Iterable[int]) -> List[Tag]:
        """Fetch the tags among tag_ids that exist; missing ids are skipped."""
        ids = list(tag_ids)
        if not ids:
            return []
        result = await self.session.execute(select(Tag).where(Tag.id.in_(ids)))
        return list(result.scalars().all())

    async def delete_with_links(self, tag_id: int) -> bool:
        """
        Delete a tag and detach it from every ticket.

        Returns:
            True if the tag existed
        """
        await self.session.execute(delete(TicketTag).where(TicketTag.tag_id == tag_id))
        return await self.delete(tag_id)
