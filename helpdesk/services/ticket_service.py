"""
Ticket lifecycle service.

WHAT: Business logic for tickets: create, read, list, update, comment,
attach and detach images, statistics and the admin bulk actions.

WHY: Routes stay thin and every rule about tickets lives here:
1. Access checks (services/access_policy.py) before any write
2. Reference validation (priority, agent assignee, tags) before any write
3. resolved_at/closed_at side effects of status changes
4. One audit event per field that actually changed

HOW: Each public method validates every precondition first, then writes
through the DAOs on the request session. get_db commits once the route
returns and rolls back if anything raised, so an operation either lands
completely or not at all. Image bytes go to blob storage before any row
is written; only metadata and events are part of the transaction.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.core.config import Settings, settings as default_settings
from helpdesk.core.exceptions import (
    AttachmentNotFoundError,
    AuthorizationError,
    BusinessRuleViolation,
    InvalidReferenceError,
    StorageError,
    TicketCodeConflictError,
    TicketNotFoundError,
)
from helpdesk.dao.priority import PriorityDAO
from helpdesk.dao.tag import TagDAO
from helpdesk.dao.ticket import (
    TicketAttachmentDAO,
    TicketCommentDAO,
    TicketDAO,
    TicketEventDAO,
    TicketFilter,
    TicketListItem,
    TicketTagDAO,
)
from helpdesk.dao.user import UserDAO
from helpdesk.models.base import utcnow
from helpdesk.models.ticket import (
    Ticket,
    TicketAttachment,
    TicketComment,
    TicketStatus,
)
from helpdesk.models.user import User
from helpdesk.schemas.ticket import CommentCreate, TicketCreate, TicketUpdate
from helpdesk.services import access_policy
from helpdesk.services.attachment_manager import (
    AttachmentManager,
    IncomingFile,
    dedupe_urls,
    filename_from_url,
)
from helpdesk.services.storage import BlobStorage
from helpdesk.services.ticket_code import TicketCodeGenerator
from helpdesk.services.ticket_events import TicketEventDraft


logger = logging.getLogger(__name__)

PRE_UPLOADED_MIME_TYPE = "image"

# Fields copied verbatim from an update request
PLAIN_UPDATE_FIELDS = ("subject", "description", "requester_email", "requester_name")


def status_timestamp_changes(
    previous: TicketStatus, new: TicketStatus, now: datetime
) -> Dict[str, Optional[datetime]]:
    """
    Timestamp columns to change when status moves from previous to new.

    Entering resolved stamps resolved_at, leaving resolved clears it; the
    same applies to closed/closed_at. The two rules are independent, and
    staying in the same status changes nothing.
    """
    changes: Dict[str, Optional[datetime]] = {}
    for state, column in ((TicketStatus.RESOLVED, "resolved_at"), (TicketStatus.CLOSED, "closed_at")):
        if new == state and previous != state:
            changes[column] = now
        elif previous == state and new != state:
            changes[column] = None
    return changes


def _unique(ids: Iterable[int]) -> List[int]:
    return list(dict.fromkeys(ids))


class TicketService:
    """
    Service for the ticket lifecycle.

    Args:
        session: Request database session
        storage: Blob storage client, required for upload operations
        code_generator: Ticket code generator (injectable for tests)
        config: Settings (upload limits, storage folders, lifecycle knobs)
    """

    def __init__(
        self,
        session: AsyncSession,
        storage: Optional[BlobStorage] = None,
        code_generator: Optional[TicketCodeGenerator] = None,
        config: Settings = default_settings,
    ):
        self.session = session
        self.config = config
        self.ticket_dao = TicketDAO(session)
        self.comment_dao = TicketCommentDAO(session)
        self.attachment_dao = TicketAttachmentDAO(session)
        self.tag_link_dao = TicketTagDAO(session)
        self.event_dao = TicketEventDAO(session)
        self.user_dao = UserDAO(session)
        self.priority_dao = PriorityDAO(session)
        self.tag_dao = TagDAO(session)
        self.code_generator = code_generator or TicketCodeGenerator(config.TICKET_CODE_PREFIX)
        self.attachments = (
            AttachmentManager(storage, config.MAX_UPLOAD_SIZE_BYTES, config.MAX_BATCH_UPLOAD_FILES)
            if storage is not None
            else None
        )

    # =========================================================================
    # Queries
    # =========================================================================

    async def list_tickets(
        self,
        actor: User,
        ticket_filter: TicketFilter,
        page: int = 1,
        limit: int = 10,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> Tuple[List[TicketListItem], int]:
        """
        List the tickets the actor may see.

        Returns:
            Tuple of (list items with counts, total matching tickets)
        """
        scoped = access_policy.scope_filter(actor, ticket_filter)
        return await self.ticket_dao.list(
            scoped,
            skip=(page - 1) * limit,
            limit=limit,
            sort_by=sort_by,
            sort_order=sort_order,
        )

    async def get_ticket(self, actor: User, ticket_id: int) -> Ticket:
        """
        Get one ticket with comments, attachments and events.

        Existence is checked before access, so a missing ticket is
        NotFound for everyone.

        Raises:
            TicketNotFoundError: If the ticket does not exist
            AuthorizationError: If the actor may not read it
        """
        ticket = await self.ticket_dao.get_with_relations(ticket_id)
        if ticket is None:
            raise TicketNotFoundError(ticket_id=ticket_id)
        access_policy.ensure_can_read(actor, ticket)
        return ticket

    async def get_stats(self, actor: User) -> Dict[str, Any]:
        """
        Counts by status, by priority and for recent tickets, scoped the
        same way as list_tickets.
        """
        scoped = access_policy.scope_filter(actor, TicketFilter())
        recent_since = utcnow() - timedelta(days=self.config.RECENT_STATS_DAYS)
        return await self.ticket_dao.get_stats(scoped, recent_since)

    # =========================================================================
    # Create / Update
    # =========================================================================

    async def create_ticket(self, actor: User, data: TicketCreate) -> Ticket:
        """
        Create a ticket with its first event, tags and pre-uploaded images.

        Raises:
            InvalidReferenceError: Unknown priority or tag, or an assignee
                who is not an agent
            TicketCodeConflictError: If no unused ticket code was found
        """
        await self._ensure_priority_exists(data.priority_id)
        if data.assignee_id is not None:
            await self._ensure_agent(data.assignee_id)
        tag_ids = _unique(data.tag_ids)
        await self._ensure_tags_exist(tag_ids)

        status = TicketStatus.OPEN if data.assignee_id is not None else TicketStatus.NEW
        ticket_code = await self._allocate_ticket_code()
        now = utcnow()

        ticket = await self.ticket_dao.create(
            ticket_code=ticket_code,
            subject=data.subject,
            description=data.description,
            requester_email=str(data.requester_email),
            requester_name=data.requester_name,
            status=status,
            priority_id=data.priority_id,
            assignee_id=data.assignee_id,
            created_by_id=actor.id,
            created_at=now,
            updated_at=now,
        )
        await self._record(ticket.id, actor, TicketEventDraft.ticket_created(ticket.subject, status))
        await self.tag_link_dao.add(ticket.id, tag_ids)

        image_urls = dedupe_urls(data.image_urls)
        if image_urls:
            await self.attachment_dao.create_many(
                [
                    {
                        "ticket_id": ticket.id,
                        "original_filename": filename_from_url(url),
                        "stored_filename": url,
                        "mime_type": PRE_UPLOADED_MIME_TYPE,
                        "size": 0,
                        "uploaded_by_id": actor.id,
                    }
                    for url in image_urls
                ]
            )

        logger.info("Ticket %s created by user %s (status=%s)", ticket_code, actor.id, status.value)
        return await self.ticket_dao.get_with_relations(ticket.id)

    async def update_ticket(self, actor: User, ticket_id: int, data: TicketUpdate) -> Ticket:
        """
        Apply a partial update.

        Raises:
            TicketNotFoundError: If the ticket does not exist
            AuthorizationError: If the actor may not change the ticket, or
                assignee_id is present and the actor is not an admin
            InvalidReferenceError: Unknown priority or tag, or a non-agent
                assignee
            BusinessRuleViolation: Closing without any comment while
                REQUIRE_COMMENT_TO_CLOSE is enabled
        """
        ticket = await self.ticket_dao.get_by_id(ticket_id)
        if ticket is None:
            raise TicketNotFoundError(ticket_id=ticket_id)
        access_policy.ensure_can_mutate(actor, ticket)

        tracked: Dict[str, Any] = {}
        if data.provided("priority_id"):
            await self._ensure_priority_exists(data.priority_id)
            tracked["priority_id"] = data.priority_id
        if data.provided("assignee_id"):
            access_policy.ensure_can_reassign(actor)
            if data.assignee_id is not None:
                await self._ensure_agent(data.assignee_id)
            tracked["assignee_id"] = data.assignee_id
        if data.provided("status"):
            await self._ensure_can_close(ticket, data.status)
            tracked["status"] = data.status

        tag_ids: Optional[List[int]] = None
        if data.provided("tag_ids"):
            tag_ids = _unique(data.tag_ids)
            await self._ensure_tags_exist(tag_ids)

        for field in PLAIN_UPDATE_FIELDS:
            if data.provided(field):
                value = getattr(data, field)
                setattr(ticket, field, str(value) if field == "requester_email" else value)

        await self._apply_tracked_changes(actor, ticket, tracked)

        if tag_ids is not None:
            await self.tag_link_dao.replace(ticket.id, tag_ids)

        logger.info("Ticket %s updated by user %s (%s)", ticket.ticket_code, actor.id, ", ".join(sorted(data.model_fields_set)) or "no fields")
        return await self.ticket_dao.get_with_relations(ticket.id)

    # =========================================================================
    # Comments
    # =========================================================================

    async def add_comment(self, actor: User, ticket_id: int, data: CommentCreate) -> TicketComment:
        """
        Add a comment to a ticket.

        Raises:
            TicketNotFoundError: If the ticket does not exist
            AuthorizationError: If a customer posts an internal note, or the
                actor may not change the ticket
        """
        ticket = await self.ticket_dao.get_by_id(ticket_id)
        if ticket is None:
            raise TicketNotFoundError(ticket_id=ticket_id)
        if data.is_internal and not access_policy.can_post_internal_note(actor):
            raise AuthorizationError(
                "Customers cannot create internal notes",
                user_id=actor.id,
                ticket_id=ticket_id,
            )
        access_policy.ensure_can_mutate(actor, ticket)

        comment = await self.comment_dao.create(
            ticket_id=ticket.id,
            author_id=actor.id,
            content=data.content,
            is_internal=data.is_internal,
        )
        await self._record(ticket.id, actor, TicketEventDraft.comment_added(data.content))

        logger.info("Comment %s added to ticket %s by user %s", comment.id, ticket.ticket_code, actor.id)
        return comment

    # =========================================================================
    # Attachments
    # =========================================================================

    async def upload_attachments(
        self, actor: User, ticket_id: int, files: Sequence[IncomingFile]
    ) -> List[TicketAttachment]:
        """
        Upload images and attach them to a ticket.

        Used for both the single and the batch upload route.

        Raises:
            TicketNotFoundError: If the ticket does not exist
            AuthorizationError: If the actor may not change the ticket
            UploadRejectedError: If a file is not an image, is too large, or
                the batch has too many files
            StorageError: If the storage service fails
        """
        manager = self._require_attachment_manager()
        ticket = await self.ticket_dao.get_by_id(ticket_id)
        if ticket is None:
            raise TicketNotFoundError(ticket_id=ticket_id)
        access_policy.ensure_can_mutate(actor, ticket)

        uploaded = await manager.upload_images(files, self.config.STORAGE_FOLDER)

        try:
            attachments = await self.attachment_dao.create_many(
                [
                    {
                        "ticket_id": ticket.id,
                        "original_filename": image.original_filename,
                        "stored_filename": image.url,
                        "mime_type": image.mime_type,
                        "size": image.size,
                        "uploaded_by_id": actor.id,
                    }
                    for image in uploaded
                ]
            )
            for image in uploaded:
                await self._record(ticket.id, actor, TicketEventDraft.attachment_added(image.url))
        except Exception:
            # Rows were not written; do not leave orphaned objects behind
            await manager.discard_all(image.url for image in uploaded)
            raise

        logger.info("%d attachment(s) added to ticket %s by user %s", len(attachments), ticket.ticket_code, actor.id)
        return attachments

    async def delete_attachment(self, actor: User, ticket_id: int, attachment_id: int) -> str:
        """
        Delete an attachment row and record the event.

        The stored object is left in place. The caller removes it with
        discard_stored_file once the transaction has committed, so a
        rolled-back delete never loses the image.

        Returns:
            The stored URL of the removed attachment

        Raises:
            TicketNotFoundError: If the ticket does not exist
            AuthorizationError: If the actor may not change the ticket
            AttachmentNotFoundError: If the attachment does not exist or
                belongs to another ticket
        """
        ticket = await self.ticket_dao.get_by_id(ticket_id)
        if ticket is None:
            raise TicketNotFoundError(ticket_id=ticket_id)
        access_policy.ensure_can_mutate(actor, ticket)

        attachment = await self.attachment_dao.get_for_ticket(attachment_id, ticket.id)
        if attachment is None:
            raise AttachmentNotFoundError(ticket_id=ticket_id, attachment_id=attachment_id)

        url = attachment.stored_filename
        await self.attachment_dao.delete(attachment)
        await self._record(ticket.id, actor, TicketEventDraft.attachment_deleted(url))
        logger.info("Attachment %s removed from ticket %s by user %s", attachment_id, ticket.ticket_code, actor.id)
        return url

    async def discard_stored_file(self, url: str) -> None:
        """Best-effort removal of a stored object. Never raises."""
        if self.attachments is not None:
            await self.attachments.discard(url)

    async def upload_temporary_images(self, actor: User, files: Sequence[IncomingFile]) -> List[str]:
        """
        Upload images before their ticket exists.

        No rows are written; the caller passes the returned URLs as
        image_urls when creating the ticket.
        """
        manager = self._require_attachment_manager()
        uploaded = await manager.upload_images(files, self.config.TEMP_STORAGE_FOLDER)
        logger.info("%d temporary image(s) uploaded by user %s", len(uploaded), actor.id)
        return dedupe_urls(image.url for image in uploaded)

    # =========================================================================
    # Bulk actions (admin)
    # =========================================================================

    async def bulk_assign(self, actor: User, ticket_ids: Sequence[int], assignee_id: int) -> List[Ticket]:
        """
        Assign many tickets to one agent.

        Each ticket gets the same assignee_changed event a single update
        would produce. Status is left alone.

        Raises:
            AuthorizationError: If the actor is not an admin
            InvalidReferenceError: If the assignee is not an agent
            TicketNotFoundError: If any ticket id does not exist
        """
        access_policy.ensure_can_reassign(actor)
        await self._ensure_agent(assignee_id)
        tickets = await self._get_all_or_raise(ticket_ids)

        for ticket in tickets:
            await self._apply_tracked_changes(actor, ticket, {"assignee_id": assignee_id})

        logger.info("User %s assigned %d ticket(s) to user %s", actor.id, len(tickets), assignee_id)
        return await self.ticket_dao.list_with_summary(ticket.id for ticket in tickets)

    async def bulk_update_status(
        self, actor: User, ticket_ids: Sequence[int], status: TicketStatus
    ) -> List[Ticket]:
        """
        Set the status of many tickets.

        Raises:
            AuthorizationError: If the actor is not an admin
            TicketNotFoundError: If any ticket id does not exist
            BusinessRuleViolation: Closing a ticket without comments while
                REQUIRE_COMMENT_TO_CLOSE is enabled
        """
        access_policy.ensure_admin(actor)
        tickets = await self._get_all_or_raise(ticket_ids)
        for ticket in tickets:
            await self._ensure_can_close(ticket, status)

        for ticket in tickets:
            await self._apply_tracked_changes(actor, ticket, {"status": status})

        logger.info("User %s set %d ticket(s) to %s", actor.id, len(tickets), status.value)
        return await self.ticket_dao.list_with_summary(ticket.id for ticket in tickets)

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _apply_tracked_changes(self, actor: User, ticket: Ticket, tracked: Dict[str, Any]) -> None:
        """
        Apply status/assignee/priority changes with their side effects.

        Emits one event per dimension whose value actually changed, stamps
        updated_at and flushes.
        """
        now = utcnow()
        drafts: List[TicketEventDraft] = []

        if "status" in tracked:
            previous, new = ticket.status, tracked["status"]
            for column, value in status_timestamp_changes(previous, new, now).items():
                setattr(ticket, column, value)
            if new != previous:
                drafts.append(TicketEventDraft.status_changed(previous, new))

        if "assignee_id" in tracked and tracked["assignee_id"] != ticket.assignee_id:
            drafts.append(TicketEventDraft.assignee_changed(ticket.assignee_id, tracked["assignee_id"]))

        if "priority_id" in tracked and tracked["priority_id"] != ticket.priority_id:
            drafts.append(TicketEventDraft.priority_changed(ticket.priority_id, tracked["priority_id"]))

        for field, value in tracked.items():
            setattr(ticket, field, value)
        ticket.updated_at = now
        await self.session.flush()

        for draft in drafts:
            await self._record(ticket.id, actor, draft)

    async def _record(self, ticket_id: int, actor: User, draft: TicketEventDraft) -> None:
        await self.event_dao.append(
            ticket_id=ticket_id,
            user_id=actor.id,
            change_type=draft.change_type,
            old_value=draft.old_value,
            new_value=draft.new_value,
        )

    async def _allocate_ticket_code(self) -> str:
        attempts = self.config.TICKET_CODE_MAX_ATTEMPTS
        for _ in range(attempts):
            code = self.code_generator.generate()
            if not await self.ticket_dao.code_exists(code):
                return code
            logger.warning("Ticket code %s already taken, regenerating", code)
        raise TicketCodeConflictError(attempts=attempts)

    async def _ensure_priority_exists(self, priority_id: int) -> None:
        if await self.priority_dao.get_by_id(priority_id) is None:
            raise InvalidReferenceError("Invalid priority", priority_id=priority_id)

    async def _ensure_agent(self, user_id: int) -> None:
        if await self.user_dao.get_agent(user_id) is None:
            raise InvalidReferenceError("Assignee must be an existing agent", assignee_id=user_id)

    async def _ensure_tags_exist(self, tag_ids: List[int]) -> None:
        if not tag_ids:
            return
        found = {tag.id for tag in await self.tag_dao.get_by_ids(tag_ids)}
        missing = [tag_id for tag_id in tag_ids if tag_id not in found]
        if missing:
            raise InvalidReferenceError("One or more tags do not exist", tag_ids=missing)

    async def _ensure_can_close(self, ticket: Ticket, new_status: TicketStatus) -> None:
        if not self.config.REQUIRE_COMMENT_TO_CLOSE:
            return
        if new_status != TicketStatus.CLOSED or ticket.status == TicketStatus.CLOSED:
            return
        if not await self.comment_dao.exists_for_ticket(ticket.id):
            raise BusinessRuleViolation(
                "Add a comment before closing the ticket",
                ticket_id=ticket.id,
            )

    async def _get_all_or_raise(self, ticket_ids: Sequence[int]) -> List[Ticket]:
        ids = _unique(ticket_ids)
        tickets = await self.ticket_dao.get_by_ids(ids)
        found = {ticket.id for ticket in tickets}
        missing = [ticket_id for ticket_id in ids if ticket_id not in found]
        if missing:
            raise TicketNotFoundError("One or more tickets were not found", ticket_ids=missing)
        return tickets

    def _require_attachment_manager(self) -> AttachmentManager:
        if self.attachments is None:
            raise StorageError("File storage is not configured")
        return self.attachments
