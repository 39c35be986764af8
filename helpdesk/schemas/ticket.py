"""
Pydantic schemas for ticket endpoints.

WHAT: Request/response schemas for the ticket API.

WHY: Schemas define API contracts for ticket operations:
1. Validate incoming request data
2. Document API for OpenAPI/Swagger
3. Distinguish "field omitted" from "field set to null" on updates
4. Control which user fields are exposed (id, name, email only)

HOW: Uses Pydantic v2 with from_attributes so responses are built
directly from eagerly loaded SQLAlchemy models.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from helpdesk.models.ticket import TicketEventType, TicketStatus
from helpdesk.schemas.common import Pagination
from helpdesk.schemas.priority import PriorityResponse
from helpdesk.schemas.tag import TagResponse


# ============================================================================
# Reference Schemas
# ============================================================================


class UserReference(BaseModel):
    """
    Minimal user info for ticket references.

    WHY: Avoids exposing full user details while providing
    necessary info for display (name, email).
    """

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="User ID")
    first_name: str = Field("", description="First name")
    last_name: str = Field("", description="Last name")
    email: str = Field(..., description="User email")


# ============================================================================
# Comment / Attachment / Event Schemas
# ============================================================================


class CommentCreate(BaseModel):
    """
    Comment creation request.
    """

    content: str = Field(
        ...,
        min_length=1,
        max_length=50000,
        description="Comment content",
    )
    is_internal: bool = Field(
        default=False,
        description="True for internal notes (not allowed for customers)",
    )

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Comment cannot be blank")
        return v

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "content": "Reset the customer's password and confirmed login works.",
                "is_internal": False,
            }
        }
    )


class CommentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    ticket_id: int
    content: str
    is_internal: bool
    created_at: datetime
    author: Optional[UserReference] = None


class AttachmentResponse(BaseModel):
    """
    Attachment response schema.

    stored_filename is the public URL of the image.
    """

    model_config = ConfigDict(from_attributes=True)

    id: int
    ticket_id: int
    original_filename: str
    stored_filename: str
    mime_type: str
    size: int
    uploaded_at: datetime
    uploaded_by: Optional[UserReference] = None


class TicketEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    change_type: TicketEventType
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    created_at: datetime
    user: Optional[UserReference] = None


# ============================================================================
# Ticket Requests
# ============================================================================


def _strip_required_text(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("Field cannot be blank")
    return v


class TicketCreate(BaseModel):
    """
    Ticket creation request.

    WHAT: Data for creating a new support ticket.

    Status is derived: "open" when an assignee is given, otherwise "new".
    image_urls are URLs returned by the temporary upload endpoint.
    """

    subject: str = Field(..., min_length=1, max_length=500, description="Ticket subject")
    description: str = Field(default="", max_length=50000, description="Issue description")
    requester_email: EmailStr = Field(..., description="Email of the person who raised the issue")
    requester_name: str = Field(..., min_length=1, max_length=255, description="Requester name")
    priority_id: int = Field(..., gt=0, description="Priority ID")
    assignee_id: Optional[int] = Field(default=None, gt=0, description="Agent to assign")
    tag_ids: List[int] = Field(default_factory=list, description="Tag IDs")
    image_urls: List[str] = Field(default_factory=list, description="Pre-uploaded image URLs")

    @field_validator("subject", "requester_name")
    @classmethod
    def strip_required_text(cls, v: str) -> str:
        return _strip_required_text(v)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "subject": "Cannot log in to the customer portal",
                "description": "Password reset email never arrives.",
                "requester_email": "jane@example.com",
                "requester_name": "Jane Doe",
                "priority_id": 2,
                "tag_ids": [1],
                "image_urls": [],
            }
        }
    )


class TicketUpdate(BaseModel):
    """
    Ticket update request.

    WHAT: Partial update; only fields present in the body are applied.

    WHY: Presence matters. "assignee_id": null unassigns the ticket (and
    requires admin), while omitting assignee_id leaves it untouched.
    "tag_ids": [] clears every tag.
    """

    subject: Optional[str] = Field(default=None, min_length=1, max_length=500)
    description: Optional[str] = Field(default=None, max_length=50000)
    requester_email: Optional[EmailStr] = None
    requester_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    status: Optional[TicketStatus] = None
    priority_id: Optional[int] = Field(default=None, gt=0)
    assignee_id: Optional[int] = Field(default=None, gt=0)
    tag_ids: Optional[List[int]] = None

    @field_validator("subject", "requester_name")
    @classmethod
    def strip_required_text(cls, v: Optional[str]) -> Optional[str]:
        return v if v is None else _strip_required_text(v)

    @model_validator(mode="after")
    def reject_null_for_required_columns(self) -> "TicketUpdate":
        """Only assignee_id may be explicitly null."""
        required = (
            "subject",
            "description",
            "requester_email",
            "requester_name",
            "status",
            "priority_id",
            "tag_ids",
        )
        for field in required:
            if field in self.model_fields_set and getattr(self, field) is None:
                raise ValueError(f"{field} cannot be null")
        return self

    def provided(self, field: str) -> bool:
        """True if the field was present in the request body."""
        return field in self.model_fields_set


class BulkAssignRequest(BaseModel):
    ticket_ids: List[int] = Field(..., min_length=1, description="Tickets to assign")
    assignee_id: int = Field(..., gt=0, description="Agent to assign")


class BulkStatusRequest(BaseModel):
    ticket_ids: List[int] = Field(..., min_length=1, description="Tickets to update")
    status: TicketStatus = Field(..., description="New status")


# ============================================================================
# Ticket Responses
# ============================================================================


class TicketResponse(BaseModel):
    """
    Ticket response schema.

    WHAT: Ticket fields plus priority, assignee, creator and tags.
    """

    model_config = ConfigDict(from_attributes=True)

    id: int
    ticket_code: str
    subject: str
    description: str
    requester_email: str
    requester_name: str
    status: TicketStatus
    priority_id: int
    priority: Optional[PriorityResponse] = None
    assignee_id: Optional[int] = None
    assignee: Optional[UserReference] = None
    created_by_id: int
    created_by: Optional[UserReference] = None
    tags: List[TagResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None


class TicketListItemResponse(TicketResponse):
    comment_count: int = Field(default=0, description="Number of comments")
    attachment_count: int = Field(default=0, description="Number of attachments")


class TicketDetailResponse(TicketResponse):
    """
    Full ticket with comments (oldest first), attachments and events
    (newest first).
    """

    comments: List[CommentResponse] = Field(default_factory=list)
    attachments: List[AttachmentResponse] = Field(default_factory=list)
    events: List[TicketEventResponse] = Field(default_factory=list)


class TicketListData(BaseModel):
    tickets: List[TicketListItemResponse]
    pagination: Pagination


class TicketStats(BaseModel):
    """
    Ticket statistics under the caller's visibility scope.
    """

    by_status: Dict[str, int] = Field(..., description="Count by status")
    by_priority: Dict[int, int] = Field(..., description="Count by priority id")
    recent: Dict[str, int] = Field(..., description="Count by status for recently created tickets")
    total: int = Field(..., description="Total tickets")


class TemporaryUploadData(BaseModel):
    urls: List[str] = Field(..., description="Uploaded image URLs, de-duplicated")
