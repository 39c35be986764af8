"""
Typed ticket event payloads.

WHAT: One constructor per change type, each producing the old/new value
strings stored on a TicketEvent row.

WHY: The event table stores opaque strings so the trail stays readable in
any SQL client. Building them in one place keeps the format of each
change type consistent across create, update, bulk actions and uploads.
"""

import json
from dataclasses import dataclass
from typing import Optional

from helpdesk.models.ticket import TicketEventType, TicketStatus

COMMENT_PREVIEW_LENGTH = 50


def _id_or_none(value: Optional[int]) -> Optional[str]:
    return str(value) if value is not None else None


@dataclass(frozen=True)
class TicketEventDraft:
    """An event not yet written to the trail."""

    change_type: TicketEventType
    old_value: Optional[str] = None
    new_value: Optional[str] = None

    @classmethod
    def ticket_created(cls, subject: str, status: TicketStatus) -> "TicketEventDraft":
        return cls(
            TicketEventType.TICKET_CREATED,
            new_value=json.dumps({"subject": subject, "status": status.value}),
        )

    @classmethod
    def status_changed(cls, old: TicketStatus, new: TicketStatus) -> "TicketEventDraft":
        return cls(TicketEventType.STATUS_CHANGED, old.value, new.value)

    @classmethod
    def assignee_changed(cls, old: Optional[int], new: Optional[int]) -> "TicketEventDraft":
        return cls(TicketEventType.ASSIGNEE_CHANGED, _id_or_none(old), _id_or_none(new))

    @classmethod
    def priority_changed(cls, old: int, new: int) -> "TicketEventDraft":
        return cls(TicketEventType.PRIORITY_CHANGED, str(old), str(new))

    @classmethod
    def comment_added(cls, content: str) -> "TicketEventDraft":
        """The new value is a preview only; the comment row holds the full text."""
        return cls(
            TicketEventType.COMMENT_ADDED,
            new_value=f"Comment: {content[:COMMENT_PREVIEW_LENGTH]}...",
        )

    @classmethod
    def attachment_added(cls, url: str) -> "TicketEventDraft":
        return cls(TicketEventType.ATTACHMENT_ADDED, new_value=url)

    @classmethod
    def attachment_deleted(cls, url: str) -> "TicketEventDraft":
        return cls(TicketEventType.ATTACHMENT_DELETED, old_value=url)
