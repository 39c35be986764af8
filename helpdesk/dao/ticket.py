"""
Ticket Data Access Objects.

WHAT: DAOs for tickets and the rows a ticket owns (comments, attachments,
events, tag links), plus the typed filter used by list and stats queries.

WHY: Encapsulates all ticket database operations with:
1. Role-scoped filtering through one typed TicketFilter
2. Eager loading of every relation a response needs
3. An append-only event trail

HOW: Uses SQLAlchemy 2.0 async. Every load that feeds a response uses
selectinload so no relationship is lazy-loaded outside the event loop.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Tuple

from sqlalchemy import select, func, or_, delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from helpdesk.core.exceptions import TicketEventImmutableError
from helpdesk.models.ticket import (
    Ticket,
    TicketStatus,
    TicketEventType,
    TicketComment,
    TicketAttachment,
    TicketEvent,
    TicketTag,
)


def _escape_like(text: str) -> str:
    """Make LIKE wildcards in user input match literally."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


# ============================================================================
# Filtering
# ============================================================================


@dataclass(frozen=True)
class TicketFilter:
    """
    Typed query filter for ticket list and stats queries.

    Caller filters (status .. created_since) come from query parameters.
    Scope fields are set only by access_policy.scope_filter and are ANDed
    with the caller filters, so a caller filter can narrow but never widen
    what the actor may see.
    """

    status: Optional[TicketStatus] = None
    priority_id: Optional[int] = None
    assignee_id: Optional[int] = None
    created_by_id: Optional[int] = None
    search: Optional[str] = None
    created_since: Optional[datetime] = None
    scope_assignee_id: Optional[int] = None
    scope_created_by_id: Optional[int] = None

    def narrowed(self, **changes: Any) -> "TicketFilter":
        return replace(self, **changes)

    def clauses(self) -> list:
        """Translate the filter into SQLAlchemy WHERE clauses."""
        clauses = []

        if self.scope_assignee_id is not None:
            clauses.append(Ticket.assignee_id == self.scope_assignee_id)
        if self.scope_created_by_id is not None:
            clauses.append(Ticket.created_by_id == self.scope_created_by_id)

        if self.status is not None:
            clauses.append(Ticket.status == self.status)
        if self.priority_id is not None:
            clauses.append(Ticket.priority_id == self.priority_id)
        if self.assignee_id is not None:
            clauses.append(Ticket.assignee_id == self.assignee_id)
        if self.created_by_id is not None:
            clauses.append(Ticket.created_by_id == self.created_by_id)
        if self.created_since is not None:
            clauses.append(Ticket.created_at >= self.created_since)

        if self.search:
            pattern = f"%{_escape_like(self.search)}%"
            clauses.append(
                or_(
                    Ticket.ticket_code.ilike(pattern, escape="\\"),
                    Ticket.subject.ilike(pattern, escape="\\"),
                    Ticket.description.ilike(pattern, escape="\\"),
                    Ticket.requester_name.ilike(pattern, escape="\\"),
                    Ticket.requester_email.ilike(pattern, escape="\\"),
                )
            )

        return clauses


SORTABLE_COLUMNS = {
    "created_at": Ticket.created_at,
    "updated_at": Ticket.updated_at,
    "status": Ticket.status,
    "priority_id": Ticket.priority_id,
    "ticket_code": Ticket.ticket_code,
    "subject": Ticket.subject,
}


class TicketListItem(NamedTuple):
    """A ticket row from a list query with its child counts."""

    ticket: Ticket
    comment_count: int
    attachment_count: int


def _summary_options() -> list:
    return [
        selectinload(Ticket.priority),
        selectinload(Ticket.assignee),
        selectinload(Ticket.created_by),
        selectinload(Ticket.tag_links).selectinload(TicketTag.tag),
    ]


def _detail_options() -> list:
    return _summary_options() + [
        selectinload(Ticket.comments).selectinload(TicketComment.author),
        selectinload(Ticket.attachments).selectinload(TicketAttachment.uploaded_by),
        selectinload(Ticket.events).selectinload(TicketEvent.user),
    ]


# ============================================================================
# Ticket DAO
# ============================================================================


class TicketDAO:
    """
    Data Access Object for Ticket operations.

    HOW: All methods are async and share the request session, so every
    write joins the request's transaction.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize TicketDAO with database session.

        Args:
            session: AsyncSession for database operations
        """
        self.session = session

    async def create(self, **fields: Any) -> Ticket:
        """
        Insert a ticket row.

        Args:
            **fields: Column values (ticket_code, subject, status, ...)

        Returns:
            Created Ticket with its id populated
        """
        ticket = Ticket(**fields)
        self.session.add(ticket)
        await self.session.flush()
        return ticket

    async def get_by_id(self, ticket_id: int) -> Optional[Ticket]:
        """Get a ticket without relations (for access checks and updates)."""
        result = await self.session.execute(select(Ticket).where(Ticket.id == ticket_id))
        return result.scalar_one_or_none()

    async def get_by_ids(self, ticket_ids: Iterable[int]) -> List[Ticket]:
        ids = list(ticket_ids)
        if not ids:
            return []
        result = await self.session.execute(
            select(Ticket).where(Ticket.id.in_(ids)).order_by(Ticket.id)
        )
        return list(result.scalars().all())

    async def get_with_relations(self, ticket_id: int) -> Optional[Ticket]:
        """
        Get ticket by ID with every relation the detail view shows.

        WHY: populate_existing refreshes a ticket already in the session,
        so a re-fetch after a write reflects the new comments, attachments,
        events and tag links.
        """
        query = (
            select(Ticket)
            .options(*_detail_options())
            .where(Ticket.id == ticket_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def list_with_summary(self, ticket_ids: Iterable[int]) -> List[Ticket]:
        """Reload tickets with summary relations, ordered by id."""
        ids = list(ticket_ids)
        if not ids:
            return []
        query = (
            select(Ticket)
            .options(*_summary_options())
            .where(Ticket.id.in_(ids))
            .order_by(Ticket.id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def code_exists(self, ticket_code: str) -> bool:
        result = await self.session.execute(
            select(Ticket.id).where(Ticket.ticket_code == ticket_code).limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def list(
        self,
        ticket_filter: TicketFilter,
        skip: int = 0,
        limit: int = 10,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> Tuple[List[TicketListItem], int]:
        """
        List tickets with filtering, sorting and pagination.

        Args:
            ticket_filter: Scoped filter (see access_policy.scope_filter)
            skip: Number of records to skip
            limit: Maximum records to return
            sort_by: One of SORTABLE_COLUMNS
            sort_order: "asc" or "desc"

        Returns:
            Tuple of (list items with comment/attachment counts, total count)
        """
        clauses = ticket_filter.clauses()

        count_query = select(func.count(Ticket.id)).where(*clauses)
        total = (await self.session.execute(count_query)).scalar_one()

        comment_count = (
            select(func.count(TicketComment.id))
            .where(TicketComment.ticket_id == Ticket.id)
            .correlate(Ticket)
            .scalar_subquery()
        )
        attachment_count = (
            select(func.count(TicketAttachment.id))
            .where(TicketAttachment.ticket_id == Ticket.id)
            .correlate(Ticket)
            .scalar_subquery()
        )

        column = SORTABLE_COLUMNS.get(sort_by, Ticket.created_at)
        ordering = column.asc() if sort_order == "asc" else column.desc()

        list_query = (
            select(Ticket, comment_count.label("comment_count"), attachment_count.label("attachment_count"))
            .options(*_summary_options())
            .where(*clauses)
            .order_by(ordering, Ticket.id.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.session.execute(list_query)
        items = [TicketListItem(row[0], row[1], row[2]) for row in result.all()]

        return items, total

    async def get_stats(self, ticket_filter: TicketFilter, recent_since: datetime) -> Dict[str, Any]:
        """
        Get ticket counts under a scoped filter.

        Returns:
            Dictionary with by_status, by_priority (keyed by priority id),
            recent (by status, created on or after recent_since) and total
        """
        clauses = ticket_filter.clauses()

        status_query = (
            select(Ticket.status, func.count(Ticket.id)).where(*clauses).group_by(Ticket.status)
        )
        status_result = await self.session.execute(status_query)
        by_status = {row[0].value: row[1] for row in status_result}

        priority_query = (
            select(Ticket.priority_id, func.count(Ticket.id))
            .where(*clauses)
            .group_by(Ticket.priority_id)
        )
        priority_result = await self.session.execute(priority_query)
        by_priority = {row[0]: row[1] for row in priority_result}

        recent_clauses = ticket_filter.narrowed(created_since=recent_since).clauses()
        recent_query = (
            select(Ticket.status, func.count(Ticket.id))
            .where(*recent_clauses)
            .group_by(Ticket.status)
        )
        recent_result = await self.session.execute(recent_query)
        recent = {row[0].value: row[1] for row in recent_result}

        total = (await self.session.execute(select(func.count(Ticket.id)).where(*clauses))).scalar_one()

        return {
            "by_status": by_status,
            "by_priority": by_priority,
            "recent": recent,
            "total": total,
        }


# ============================================================================
# Child row DAOs
# ============================================================================


class TicketCommentDAO:
    """
    Data Access Object for TicketComment operations.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        ticket_id: int,
        author_id: int,
        content: str,
        is_internal: bool = False,
    ) -> TicketComment:
        """
        Create a new comment on a ticket.

        Returns:
            Created TicketComment with its author loaded
        """
        comment = TicketComment(
            ticket_id=ticket_id,
            author_id=author_id,
            content=content,
            is_internal=is_internal,
        )
        self.session.add(comment)
        await self.session.flush()

        result = await self.session.execute(
            select(TicketComment)
            .options(selectinload(TicketComment.author))
            .where(TicketComment.id == comment.id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def exists_for_ticket(self, ticket_id: int) -> bool:
        result = await self.session.execute(
            select(TicketComment.id).where(TicketComment.ticket_id == ticket_id).limit(1)
        )
        return result.scalar_one_or_none() is not None


class TicketAttachmentDAO:
    """
    Data Access Object for TicketAttachment operations.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_many(self, rows: List[Dict[str, Any]]) -> List[TicketAttachment]:
        """
        Insert attachment rows in one flush.

        Args:
            rows: Column values per attachment

        Returns:
            Created attachments with uploader loaded, in input order
        """
        attachments = [TicketAttachment(**row) for row in rows]
        if not attachments:
            return []
        self.session.add_all(attachments)
        await self.session.flush()

        ids = [attachment.id for attachment in attachments]
        result = await self.session.execute(
            select(TicketAttachment)
            .options(selectinload(TicketAttachment.uploaded_by))
            .where(TicketAttachment.id.in_(ids))
            .execution_options(populate_existing=True)
        )
        by_id = {attachment.id: attachment for attachment in result.scalars().all()}
        return [by_id[attachment_id] for attachment_id in ids]

    async def get_for_ticket(self, attachment_id: int, ticket_id: int) -> Optional[TicketAttachment]:
        """Get an attachment only if it belongs to the given ticket."""
        result = await self.session.execute(
            select(TicketAttachment).where(
                TicketAttachment.id == attachment_id,
                TicketAttachment.ticket_id == ticket_id,
            )
        )
        return result.scalar_one_or_none()

    async def delete(self, attachment: TicketAttachment) -> None:
        await self.session.delete(attachment)
        await self.session.flush()


class TicketTagDAO:
    """
    Data Access Object for ticket/tag links.

    Links have set semantics: callers pass de-duplicated tag ids and the
    unique (ticket_id, tag_id) constraint backs it up.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, ticket_id: int, tag_ids: Iterable[int]) -> None:
        links = [TicketTag(ticket_id=ticket_id, tag_id=tag_id) for tag_id in tag_ids]
        if links:
            self.session.add_all(links)
            await self.session.flush()

    async def replace(self, ticket_id: int, tag_ids: Iterable[int]) -> None:
        """
        Replace a ticket's whole tag set.

        An empty tag_ids clears every tag.
        """
        await self.session.execute(delete(TicketTag).where(TicketTag.ticket_id == ticket_id))
        await self.add(ticket_id, tag_ids)


class TicketEventDAO:
    """
    Data Access Object for the ticket event trail.

    WHAT: Append-only access to ticket events.

    WHY: Events are the audit history of a ticket. This DAO only ever
    inserts; update and delete are blocked the same way for every caller.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(
        self,
        ticket_id: int,
        user_id: int,
        change_type: TicketEventType,
        old_value: Optional[str] = None,
        new_value: Optional[str] = None,
    ) -> TicketEvent:
        """
        Append one event to a ticket's trail.

        Returns:
            The created TicketEvent
        """
        event = TicketEvent(
            ticket_id=ticket_id,
            user_id=user_id,
            change_type=change_type,
            old_value=old_value,
            new_value=new_value,
        )
        self.session.add(event)
        await self.session.flush()
        return event

    async def list_for_ticket(self, ticket_id: int) -> List[TicketEvent]:
        """Events of a ticket, newest first."""
        result = await self.session.execute(
            select(TicketEvent)
            .where(TicketEvent.ticket_id == ticket_id)
            .order_by(TicketEvent.created_at.desc(), TicketEvent.id.desc())
        )
        return list(result.scalars().all())

    async def update(self, event_id: int, **kwargs: Any) -> None:
        """
        Attempt to update a ticket event (BLOCKED).

        Raises:
            TicketEventImmutableError: Always raised - updates not allowed
        """
        raise TicketEventImmutableError(
            "Ticket events are immutable and cannot be updated.",
            event_id=event_id,
        )

    async def delete(self, event_id: int) -> None:
        """
        Attempt to delete a ticket event (BLOCKED).

        Raises:
            TicketEventImmutableError: Always raised - deletions not allowed
        """
        raise TicketEventImmutableError(
            "Ticket events cannot be deleted.",
            event_id=event_id,
        )
