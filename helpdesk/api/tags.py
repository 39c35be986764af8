"""
Tag API endpoints.

WHAT: CRUD for the labels tickets are grouped by.

WHY: Tags are a shared vocabulary, so only admins create, rename or
delete them. Deleting a tag detaches it from every ticket.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.core.deps import get_current_user, require_admin
from helpdesk.core.exceptions import ResourceAlreadyExistsError, TagNotFoundError
from helpdesk.db.session import get_db
from helpdesk.dao.tag import TagDAO
from helpdesk.models.user import User
from helpdesk.schemas.common import ApiResponse, ok
from helpdesk.schemas.tag import TagCreate, TagResponse, TagUpdate


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tags", tags=["tags"])


async def _ensure_name_free(dao: TagDAO, name: str, current_id: Optional[int] = None) -> None:
    existing = await dao.get_by_name(name)
    if existing is not None and existing.id != current_id:
        raise ResourceAlreadyExistsError("A tag with this name already exists", name=name)


@router.get(
    "",
    response_model=ApiResponse[List[TagResponse]],
    status_code=status.HTTP_200_OK,
    summary="List tags",
)
async def list_tags(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    tags = await TagDAO(db).list_all()
    return ok([TagResponse.model_validate(tag) for tag in tags], "Tags retrieved successfully")


@router.post(
    "",
    response_model=ApiResponse[TagResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create tag",
)
async def create_tag(
    data: TagCreate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict:
    dao = TagDAO(db)
    await _ensure_name_free(dao, data.name)
    tag = await dao.create(name=data.name)
    logger.info("Tag %s (%s) created by user %s", tag.id, tag.name, current_user.id)
    return ok(TagResponse.model_validate(tag), "Tag created successfully")


@router.put(
    "/{tag_id}",
    response_model=ApiResponse[TagResponse],
    status_code=status.HTTP_200_OK,
    summary="Rename tag",
)
async def update_tag(
    tag_id: int,
    data: TagUpdate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict:
    dao = TagDAO(db)
    if await dao.get_by_id(tag_id) is None:
        raise TagNotFoundError(tag_id=tag_id)
    await _ensure_name_free(dao, data.name, current_id=tag_id)

    tag = await dao.update(tag_id, name=data.name)
    return ok(TagResponse.model_validate(tag), "Tag updated successfully")


@router.delete(
    "/{tag_id}",
    response_model=ApiResponse[None],
    status_code=status.HTTP_200_OK,
    summary="Delete tag",
)
async def delete_tag(
    tag_id: int,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """
    Delete a tag and remove it from every ticket.

    Raises:
        TagNotFoundError (404): If the tag doesn't exist
    """
    if not await TagDAO(db).delete_with_links(tag_id):
        raise TagNotFoundError(tag_id=tag_id)
    logger.info("Tag %s deleted by user %s", tag_id, current_user.id)
    return ok(None, "Tag deleted successfully")
