"""
Ticket models for the helpdesk.

WHAT: SQLAlchemy models for tickets and everything a ticket owns:
comments, attachments, the audit event trail and tag links.

WHY: Ticket is the aggregate root. Comments, attachments, events and tag
links only exist in the context of one ticket and are removed with it.

HOW: Uses SQLAlchemy 2.0 with:
- Enums for status and event type
- Foreign keys to users, priorities and tags
- Python-side timestamps so values are readable right after flush
- Indexes for the list filters (status, priority, assignee, creator)
"""

from datetime import datetime
from enum import Enum
from typing import Optional, List, TYPE_CHECKING

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    desc,
)
from sqlalchemy.orm import relationship, Mapped, mapped_column

from helpdesk.models.base import Base, utcnow

if TYPE_CHECKING:
    from helpdesk.models.priority import TicketPriority
    from helpdesk.models.tag import Tag
    from helpdesk.models.user import User


def _enum_values(enum_class):
    return [member.value for member in enum_class]


# ============================================================================
# Enums
# ============================================================================


class TicketStatus(str, Enum):
    """
    Ticket status values.

    There is no enforced transition graph: any actor with mutate access may
    move a ticket to any status, and closed tickets can be re-opened. Only
    the resolved_at/closed_at side effects depend on the transition.
    """

    NEW = "new"
    OPEN = "open"
    RESOLVED = "resolved"
    CLOSED = "closed"


class TicketEventType(str, Enum):
    """Kinds of change recorded in the ticket event trail."""

    TICKET_CREATED = "ticket_created"
    STATUS_CHANGED = "status_changed"
    ASSIGNEE_CHANGED = "assignee_changed"
    PRIORITY_CHANGED = "priority_changed"
    COMMENT_ADDED = "comment_added"
    ATTACHMENT_ADDED = "attachment_added"
    ATTACHMENT_DELETED = "attachment_deleted"


# ============================================================================
# Ticket Model
# ============================================================================


class Ticket(Base):
    """
    Support ticket.

    WHAT: A support request raised on behalf of a requester and tracked
    through the new/open/resolved/closed lifecycle.

    Security: customers see tickets they created, agents see tickets
    assigned to them, admins see everything (see services/access_policy.py).
    """

    __tablename__ = "tickets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticket_code: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)

    # Ticket details
    subject: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    requester_email: Mapped[str] = mapped_column(String(255), nullable=False)
    requester_name: Mapped[str] = mapped_column(String(255), nullable=False)

    status: Mapped[TicketStatus] = mapped_column(
        SQLEnum(TicketStatus, name="ticketstatus", values_callable=_enum_values),
        default=TicketStatus.NEW,
        nullable=False,
    )
    priority_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("ticket_priorities.id"), nullable=False
    )
    assignee_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=True
    )
    created_by_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Relationships
    priority: Mapped["TicketPriority"] = relationship("TicketPriority")
    assignee: Mapped[Optional["User"]] = relationship("User", foreign_keys=[assignee_id])
    created_by: Mapped["User"] = relationship("User", foreign_keys=[created_by_id])
    comments: Mapped[List["TicketComment"]] = relationship(
        "TicketComment",
        back_populates="ticket",
        cascade="all, delete-orphan",
        order_by=lambda: [TicketComment.created_at, TicketComment.id],
    )
    attachments: Mapped[List["TicketAttachment"]] = relationship(
        "TicketAttachment",
        back_populates="ticket",
        cascade="all, delete-orphan",
        order_by=lambda: [desc(TicketAttachment.uploaded_at), desc(TicketAttachment.id)],
    )
    events: Mapped[List["TicketEvent"]] = relationship(
        "TicketEvent",
        back_populates="ticket",
        cascade="all, delete-orphan",
        order_by=lambda: [desc(TicketEvent.created_at), desc(TicketEvent.id)],
    )
    tag_links: Mapped[List["TicketTag"]] = relationship(
        "TicketTag", back_populates="ticket", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_tickets_status", "status"),
        Index("ix_tickets_priority_id", "priority_id"),
        Index("ix_tickets_assignee_id", "assignee_id"),
        Index("ix_tickets_created_by_id", "created_by_id"),
        Index("ix_tickets_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Ticket(id={self.id}, code='{self.ticket_code}', status={self.status.value})>"

    @property
    def tags(self) -> List["Tag"]:
        """Tags flattened from the join rows, ordered by name."""
        return sorted((link.tag for link in self.tag_links), key=lambda tag: tag.name)


# ============================================================================
# Ticket Comment Model
# ============================================================================


class TicketComment(Base):
    """
    Comment on a ticket.

    Security: internal notes (is_internal=True) are never authored by
    customers.
    """

    __tablename__ = "comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticket_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False
    )
    author_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False
    )

    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_internal: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    ticket: Mapped["Ticket"] = relationship("Ticket", back_populates="comments")
    author: Mapped["User"] = relationship("User")

    __table_args__ = (
        Index("ix_comments_ticket_id", "ticket_id"),
    )

    def __repr__(self) -> str:
        return f"<TicketComment(id={self.id}, ticket_id={self.ticket_id}, is_internal={self.is_internal})>"


# ============================================================================
# Ticket Attachment Model
# ============================================================================


class TicketAttachment(Base):
    """
    File attached to a ticket.

    WHAT: Metadata for an image held in blob storage. stored_filename is
    the public URL; the object key is derived from it for cleanup.
    """

    __tablename__ = "attachments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticket_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False
    )
    uploaded_by_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False
    )

    original_filename: Mapped[str] = mapped_column(String(255), nullable=False)
    stored_filename: Mapped[str] = mapped_column(String(1024), nullable=False)
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    size: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)

    uploaded_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    ticket: Mapped["Ticket"] = relationship("Ticket", back_populates="attachments")
    uploaded_by: Mapped["User"] = relationship("User")

    __table_args__ = (
        CheckConstraint("size >= 0", name="ck_attachments_size_non_negative"),
        Index("ix_attachments_ticket_id", "ticket_id"),
    )

    def __repr__(self) -> str:
        return f"<TicketAttachment(id={self.id}, filename='{self.original_filename}')>"


# ============================================================================
# Ticket Event Model
# ============================================================================


class TicketEvent(Base):
    """
    Immutable audit record of one change to a ticket.

    old_value/new_value are opaque strings built by TicketEventDraft
    (services/ticket_events.py). Rows are only ever inserted.
    """

    __tablename__ = "ticket_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticket_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False
    )

    change_type: Mapped[TicketEventType] = mapped_column(
        SQLEnum(TicketEventType, name="ticketeventtype", values_callable=_enum_values),
        nullable=False,
    )
    old_value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    new_value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    ticket: Mapped["Ticket"] = relationship("Ticket", back_populates="events")
    user: Mapped["User"] = relationship("User")

    __table_args__ = (
        Index("ix_ticket_events_ticket_id", "ticket_id"),
    )

    def __repr__(self) -> str:
        return f"<TicketEvent(id={self.id}, ticket_id={self.ticket_id}, type={self.change_type.value})>"


# ============================================================================
# Ticket Tag Link Model
# ============================================================================


class TicketTag(Base):
    """Join row between a ticket and a tag; one row per (ticket, tag)."""

    __tablename__ = "ticket_tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticket_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False
    )
    tag_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tags.id", ondelete="CASCADE"), nullable=False
    )

    ticket: Mapped["Ticket"] = relationship("Ticket", back_populates="tag_links")
    tag: Mapped["Tag"] = relationship("Tag")

    __table_args__ = (
        UniqueConstraint("ticket_id", "tag_id", name="uq_ticket_tags_ticket_tag"),
    )
