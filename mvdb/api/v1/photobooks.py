"""Photobook endpoints: CRUD, search and linking to groups/generations/lineups/members."""

from fastapi import APIRouter, Body, Depends, Query

from mvdb.api.deps import get_photobook_service
from mvdb.core.auth import allow_read_access, require_write_access
from mvdb.db.schemas import (
    DeleteResponse,
    ErrorResponse,
    LinkRequest,
    Photobook,
    PhotobookPayload,
    UnlinkRequest,
)
from mvdb.services.photobook_service import PhotobookService

router = APIRouter()


# ==================== Read Endpoints ====================

@router.get(
    "",
    response_model=list[Photobook],
    response_model_exclude_none=True,
    dependencies=[Depends(allow_read_access)],
)
async def list_photobooks(service: PhotobookService = Depends(get_photobook_service)):
    return await service.list_all()


@router.get(
    "/search",
    response_model=list[Photobook],
    response_model_exclude_none=True,
    dependencies=[Depends(allow_read_access)],
)
async def search_photobooks(
    q: str | None = Query(default=None, description="Substring of a title or actress name"),
    service: PhotobookService = Depends(get_photobook_service),
):
    return await service.search(q)


@router.get(
    "/available-for-linking",
    response_model=list[Photobook],
    response_model_exclude_none=True,
    dependencies=[Depends(allow_read_access)],
)
async def get_available_photobooks(service: PhotobookService = Depends(get_photobook_service)):
    return await service.available_for_linking()


@router.get(
    "/by-actress/{name}",
    response_model=list[Photobook],
    response_model_exclude_none=True,
    dependencies=[Depends(allow_read_access)],
)
async def get_photobooks_by_actress(
    name: str,
    service: PhotobookService = Depends(get_photobook_service),
):
    """Photobooks featuring the actress, by exact name."""
    return await service.by_actress(name)


@router.get(
    "/by-{target_type}/{target_id}",
    response_model=list[Photobook],
    response_model_exclude_none=True,
    dependencies=[Depends(allow_read_access)],
)
async def get_photobooks_by_target(
    target_type: str,
    target_id: str,
    service: PhotobookService = Depends(get_photobook_service),
):
    """Photobooks linked to a group, generation, lineup or member."""
    return await service.by_target(target_type, target_id)


@router.get(
    "/{photobook_id}",
    response_model=Photobook,
    response_model_exclude_none=True,
    responses={404: {"model": ErrorResponse}},
    dependencies=[Depends(allow_read_access)],
)
async def get_photobook(
    photobook_id: str,
    service: PhotobookService = Depends(get_photobook_service),
):
    return await service.get(photobook_id)


# ==================== Write Endpoints ====================

@router.post(
    "",
    response_model=Photobook,
    response_model_exclude_none=True,
    responses={400: {"model": ErrorResponse}},
    dependencies=[Depends(require_write_access)],
)
async def create_photobook(
    payload: PhotobookPayload = Body(...),
    service: PhotobookService = Depends(get_photobook_service),
):
    return await service.create(payload.model_dump(exclude_unset=True))


@router.put(
    "/{photobook_id}",
    response_model=Photobook,
    response_model_exclude_none=True,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    dependencies=[Depends(require_write_access)],
)
async def update_photobook(
    photobook_id: str,
    payload: PhotobookPayload = Body(...),
    service: PhotobookService = Depends(get_photobook_service),
):
    """Merge the given fields into the photobook; omitted fields are kept."""
    return await service.update(photobook_id, payload.model_dump(exclude_unset=True))


@router.delete(
    "/{photobook_id}",
    response_model=DeleteResponse,
    responses={404: {"model": ErrorResponse}},
    dependencies=[Depends(require_write_access)],
)
async def delete_photobook(
    photobook_id: str,
    service: PhotobookService = Depends(get_photobook_service),
):
    deleted = await service.delete(photobook_id)
    return {"message": "Photobook deleted successfully", "data": deleted}


@router.post(
    "/{photobook_id}/link",
    response_model=Photobook,
    response_model_exclude_none=True,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    dependencies=[Depends(require_write_access)],
)
async def link_photobook(
    photobook_id: str,
    body: LinkRequest = Body(...),
    service: PhotobookService = Depends(get_photobook_service),
):
    """Set linkedTo[<targetType>Id]. The target record is not required to exist."""
    return await service.link(photobook_id, body.targetType, body.targetId)


@router.delete(
    "/{photobook_id}/unlink",
    response_model=Photobook,
    response_model_exclude_none=True,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    dependencies=[Depends(require_write_access)],
)
async def unlink_photobook(
    photobook_id: str,
    body: UnlinkRequest | None = Body(default=None),
    target_type: str | None = Query(default=None, alias="targetType"),
    service: PhotobookService = Depends(get_photobook_service),
):
    """Clear one link. targetType comes from the JSON body or the query string."""
    if body is not None and body.targetType:
        target_type = body.targetType
    return await service.unlink(photobook_id, target_type)
