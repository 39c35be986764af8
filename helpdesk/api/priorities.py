"""
Ticket priority API endpoints.

WHAT: CRUD for the priority reference list tickets point at.

WHY: Everyone needs the list to fill the ticket form; only admins curate
it. A priority still used by a ticket cannot be deleted, since tickets
require one.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.core.deps import get_current_user, require_admin
from helpdesk.core.exceptions import (
    PriorityNotFoundError,
    ResourceAlreadyExistsError,
    ResourceInUseError,
)
from helpdesk.db.session import get_db
from helpdesk.dao.priority import PriorityDAO
from helpdesk.models.user import User
from helpdesk.schemas.common import ApiResponse, ok
from helpdesk.schemas.priority import PriorityCreate, PriorityResponse, PriorityUpdate


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tickets/priorities", tags=["priorities"])


async def _ensure_name_free(dao: PriorityDAO, name: str, current_id: Optional[int] = None) -> None:
    existing = await dao.get_by_name(name)
    if existing is not None and existing.id != current_id:
        raise ResourceAlreadyExistsError("A priority with this name already exists", name=name)


@router.get(
    "",
    response_model=ApiResponse[List[PriorityResponse]],
    status_code=status.HTTP_200_OK,
    summary="List priorities",
)
async def list_priorities(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    priorities = await PriorityDAO(db).list_all()
    return ok(
        [PriorityResponse.model_validate(priority) for priority in priorities],
        "Priorities retrieved successfully",
    )


@router.post(
    "",
    response_model=ApiResponse[PriorityResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create priority",
)
async def create_priority(
    data: PriorityCreate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """
    Create a priority.

    Raises:
        ResourceAlreadyExistsError (409): If the name is taken
    """
    dao = PriorityDAO(db)
    await _ensure_name_free(dao, data.name)
    priority = await dao.create(name=data.name)
    logger.info("Priority %s (%s) created by user %s", priority.id, priority.name, current_user.id)
    return ok(PriorityResponse.model_validate(priority), "Priority created successfully")


@router.put(
    "/{priority_id}",
    response_model=ApiResponse[PriorityResponse],
    status_code=status.HTTP_200_OK,
    summary="Rename priority",
)
async def update_priority(
    priority_id: int,
    data: PriorityUpdate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict:
    dao = PriorityDAO(db)
    if await dao.get_by_id(priority_id) is None:
        raise PriorityNotFoundError(priority_id=priority_id)
    await _ensure_name_free(dao, data.name, current_id=priority_id)

    priority = await dao.update(priority_id, name=data.name)
    return ok(PriorityResponse.model_validate(priority), "Priority updated successfully")


@router.delete(
    "/{priority_id}",
    response_model=ApiResponse[None],
    status_code=status.HTTP_200_OK,
    summary="Delete priority",
)
async def delete_priority(
    priority_id: int,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """
    Delete a priority.

    Raises:
        PriorityNotFoundError (404): If the priority doesn't exist
        ResourceInUseError (409): If any ticket still uses it
    """
    dao = PriorityDAO(db)
    if await dao.get_by_id(priority_id) is None:
        raise PriorityNotFoundError(priority_id=priority_id)
    if await dao.is_in_use(priority_id):
        raise ResourceInUseError("Priority is used by existing tickets", priority_id=priority_id)

    await dao.delete(priority_id)
    logger.info("Priority %s deleted by user %s", priority_id, current_user.id)
    return ok(None, "Priority deleted successfully")
