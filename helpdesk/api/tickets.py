"""
Ticket API endpoints.

WHAT: RESTful API for the helpdesk ticket lifecycle.

WHY: Agents and admins work tickets from the dashboard; customers raise
tickets and follow their progress. The routes expose:
1. Role-scoped listing, statistics and detail views
2. Creation with tags and pre-uploaded images
3. Partial updates with an audit event per changed field
4. Comments, including internal notes for staff
5. Image attachments (single, batch and pre-ticket temporary uploads)

HOW: Routes are thin. Each one resolves the actor, builds a TicketService
on the request session and converts the result into the success envelope.
Access rules and validation live in the service.
"""

from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.core.deps import get_blob_storage, get_current_user, require_admin, require_roles
from helpdesk.db.session import get_db
from helpdesk.dao.ticket import SORTABLE_COLUMNS, TicketFilter, TicketListItem
from helpdesk.models.ticket import TicketStatus
from helpdesk.models.user import User, UserRole
from helpdesk.schemas.common import ApiResponse, Pagination, ok
from helpdesk.schemas.ticket import (
    AttachmentResponse,
    BulkAssignRequest,
    BulkStatusRequest,
    CommentCreate,
    CommentResponse,
    TemporaryUploadData,
    TicketCreate,
    TicketDetailResponse,
    TicketListData,
    TicketListItemResponse,
    TicketResponse,
    TicketStats,
    TicketUpdate,
)
from helpdesk.services.attachment_manager import IncomingFile
from helpdesk.services.storage import BlobStorage
from helpdesk.services.ticket_service import TicketService


router = APIRouter(prefix="/tickets", tags=["tickets"])
admin_router = APIRouter(prefix="/admin/tickets", tags=["admin"])

TICKET_CREATORS = (UserRole.ADMIN, UserRole.AGENT, UserRole.CUSTOMER)


def _list_item_to_response(item: TicketListItem) -> TicketListItemResponse:
    """
    Convert a list row into its response schema.

    Counts come from the list query, not from loaded relationships.
    """
    response = TicketListItemResponse.model_validate(item.ticket)
    response.comment_count = item.comment_count
    response.attachment_count = item.attachment_count
    return response


async def _read_uploads(files: List[UploadFile]) -> List[IncomingFile]:
    incoming = []
    for upload in files:
        incoming.append(
            IncomingFile(
                filename=upload.filename,
                content_type=upload.content_type,
                data=await upload.read(),
            )
        )
    return incoming


# ============================================================================
# Ticket Endpoints
# ============================================================================


@router.get(
    "",
    response_model=ApiResponse[TicketListData],
    status_code=status.HTTP_200_OK,
    summary="List tickets",
    description="Get a paginated, filtered list of the tickets the caller can see",
)
async def list_tickets(
    page: int = Query(default=1, ge=1, description="Page number"),
    limit: int = Query(default=10, ge=1, le=100, description="Items per page"),
    status_filter: Optional[TicketStatus] = Query(default=None, alias="status", description="Filter by status"),
    priority_id: Optional[int] = Query(default=None, description="Filter by priority"),
    assignee_id: Optional[int] = Query(default=None, description="Filter by assignee"),
    created_by_id: Optional[int] = Query(default=None, description="Filter by creator"),
    search: Optional[str] = Query(default=None, max_length=200, description="Search code, subject, description and requester"),
    sort_by: str = Query(default="created_at", description="Sort column"),
    sort_order: str = Query(default="desc", pattern="^(asc|desc)$", description="asc or desc"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """
    List tickets with filters.

    WHY: Listing narrows instead of rejecting. Agents only ever see their
    assigned tickets and customers the tickets they created, whatever
    filters they pass.
    """
    ticket_filter = TicketFilter(
        status=status_filter,
        priority_id=priority_id,
        assignee_id=assignee_id,
        created_by_id=created_by_id,
        search=search.strip() if search and search.strip() else None,
    )
    items, total = await TicketService(db).list_tickets(
        current_user,
        ticket_filter,
        page=page,
        limit=limit,
        sort_by=sort_by if sort_by in SORTABLE_COLUMNS else "created_at",
        sort_order=sort_order,
    )

    data = TicketListData(
        tickets=[_list_item_to_response(item) for item in items],
        pagination=Pagination.build(page, limit, total),
    )
    return ok(data, "Tickets retrieved successfully")


@router.get(
    "/stats",
    response_model=ApiResponse[TicketStats],
    status_code=status.HTTP_200_OK,
    summary="Get ticket statistics",
    description="Counts by status, priority and recent activity for the tickets the caller can see",
)
async def get_ticket_stats(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    stats = await TicketService(db).get_stats(current_user)
    return ok(TicketStats(**stats), "Ticket statistics retrieved successfully")


@router.post(
    "",
    response_model=ApiResponse[TicketDetailResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create ticket",
    description="Create a support ticket with optional assignee, tags and pre-uploaded images",
)
async def create_ticket(
    data: TicketCreate,
    current_user: User = Depends(require_roles(*TICKET_CREATORS)),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """
    Create a new support ticket.

    Raises:
        InvalidReferenceError (400): Unknown priority or tag, or a
            non-agent assignee
    """
    ticket = await TicketService(db).create_ticket(current_user, data)
    return ok(TicketDetailResponse.model_validate(ticket), "Ticket created successfully")


@router.post(
    "/attachments/temp/images",
    response_model=ApiResponse[TemporaryUploadData],
    status_code=status.HTTP_201_CREATED,
    summary="Upload temporary images",
    description="Upload images before the ticket exists; pass the URLs as image_urls on create",
)
async def upload_temporary_images(
    images: List[UploadFile] = File(..., description="Image files"),
    current_user: User = Depends(require_roles(*TICKET_CREATORS)),
    storage: Optional[BlobStorage] = Depends(get_blob_storage),
    db: AsyncSession = Depends(get_db),
) -> dict:
    files = await _read_uploads(images)
    urls = await TicketService(db, storage=storage).upload_temporary_images(current_user, files)
    return ok(TemporaryUploadData(urls=urls), "Images uploaded successfully")


@router.get(
    "/{ticket_id}",
    response_model=ApiResponse[TicketDetailResponse],
    status_code=status.HTTP_200_OK,
    summary="Get ticket",
    description="Get a ticket with comments, attachments and its event history",
)
async def get_ticket(
    ticket_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """
    Get ticket details.

    Raises:
        TicketNotFoundError (404): If the ticket doesn't exist
        AuthorizationError (403): If the caller can't see the ticket
    """
    ticket = await TicketService(db).get_ticket(current_user, ticket_id)
    return ok(TicketDetailResponse.model_validate(ticket), "Ticket retrieved successfully")


@router.put(
    "/{ticket_id}",
    response_model=ApiResponse[TicketDetailResponse],
    status_code=status.HTTP_200_OK,
    summary="Update ticket",
    description="Partially update a ticket; only fields present in the body change",
)
async def update_ticket(
    ticket_id: int,
    data: TicketUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """
    Update a ticket.

    WHY: Sending "assignee_id": null unassigns the ticket and, like any
    assignee change, is admin-only.
    """
    ticket = await TicketService(db).update_ticket(current_user, ticket_id, data)
    return ok(TicketDetailResponse.model_validate(ticket), "Ticket updated successfully")


# ============================================================================
# Comment Endpoints
# ============================================================================


@router.post(
    "/{ticket_id}/comments",
    response_model=ApiResponse[CommentResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Add comment",
    description="Add a comment or internal note to a ticket",
)
async def add_comment(
    ticket_id: int,
    data: CommentCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    comment = await TicketService(db).add_comment(current_user, ticket_id, data)
    return ok(CommentResponse.model_validate(comment), "Comment added successfully")


# ============================================================================
# Attachment Endpoints
# ============================================================================


@router.post(
    "/{ticket_id}/attachments/image",
    response_model=ApiResponse[AttachmentResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Upload image",
    description="Attach one image to a ticket",
)
async def upload_image(
    ticket_id: int,
    image: UploadFile = File(..., description="Image file"),
    current_user: User = Depends(get_current_user),
    storage: Optional[BlobStorage] = Depends(get_blob_storage),
    db: AsyncSession = Depends(get_db),
) -> dict:
    files = await _read_uploads([image])
    attachments = await TicketService(db, storage=storage).upload_attachments(current_user, ticket_id, files)
    return ok(AttachmentResponse.model_validate(attachments[0]), "Image uploaded successfully")


@router.post(
    "/{ticket_id}/attachments/images",
    response_model=ApiResponse[List[AttachmentResponse]],
    status_code=status.HTTP_201_CREATED,
    summary="Upload images",
    description="Attach several images to a ticket in one request",
)
async def upload_images(
    ticket_id: int,
    images: List[UploadFile] = File(..., description="Image files"),
    current_user: User = Depends(get_current_user),
    storage: Optional[BlobStorage] = Depends(get_blob_storage),
    db: AsyncSession = Depends(get_db),
) -> dict:
    files = await _read_uploads(images)
    attachments = await TicketService(db, storage=storage).upload_attachments(current_user, ticket_id, files)
    return ok(
        [AttachmentResponse.model_validate(attachment) for attachment in attachments],
        f"{len(attachments)} image(s) uploaded successfully",
    )


@router.delete(
    "/{ticket_id}/attachments/{attachment_id}",
    response_model=ApiResponse[None],
    status_code=status.HTTP_200_OK,
    summary="Delete attachment",
    description="Remove an attachment from a ticket",
)
async def delete_attachment(
    ticket_id: int,
    attachment_id: int,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    storage: Optional[BlobStorage] = Depends(get_blob_storage),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """
    Delete an attachment.

    The row and its event are committed first; the stored object is
    removed afterwards in a background task.

    Raises:
        AttachmentNotFoundError (404): If the attachment doesn't exist or
            belongs to another ticket
    """
    service = TicketService(db, storage=storage)
    url = await service.delete_attachment(current_user, ticket_id, attachment_id)
    await db.commit()
    background_tasks.add_task(service.discard_stored_file, url)
    return ok(None, "Attachment deleted successfully")


# ============================================================================
# Admin Bulk Endpoints
# ============================================================================


@admin_router.post(
    "/bulk-assign",
    response_model=ApiResponse[List[TicketResponse]],
    status_code=status.HTTP_200_OK,
    summary="Bulk assign tickets",
    description="Assign several tickets to one agent",
)
async def bulk_assign(
    data: BulkAssignRequest,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict:
    tickets = await TicketService(db).bulk_assign(current_user, data.ticket_ids, data.assignee_id)
    return ok(
        [TicketResponse.model_validate(ticket) for ticket in tickets],
        f"{len(tickets)} ticket(s) assigned",
    )


@admin_router.post(
    "/bulk-status",
    response_model=ApiResponse[List[TicketResponse]],
    status_code=status.HTTP_200_OK,
    summary="Bulk update status",
    description="Set the status of several tickets",
)
async def bulk_update_status(
    data: BulkStatusRequest,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict:
    tickets = await TicketService(db).bulk_update_status(current_user, data.ticket_ids, data.status)
    return ok(
        [TicketResponse.model_validate(ticket) for ticket in tickets],
        f"{len(tickets)} ticket(s) updated",
    )
