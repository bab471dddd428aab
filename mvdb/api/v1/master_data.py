"""Master data endpoints: actors, actresses, directors, studios, series, labels,
groups, generations, lineups, types and tags.

Every route takes the entity type as the first path segment; unknown types
come back as 400 with the list of valid ones.
"""

import logging

from fastapi import APIRouter, Body, Depends, Query

from mvdb.api.deps import get_master_data_service
from mvdb.core.auth import allow_read_access, require_write_access
from mvdb.db.schemas import (
    ConflictResponse,
    DeleteResponse,
    ErrorResponse,
    MasterDataListResponse,
    MasterDataPayload,
    MasterDataResponse,
    MasterDataUpdateResponse,
)
from mvdb.services.master_data_service import MasterDataService

logger = logging.getLogger(__name__)

router = APIRouter()

WRITE_RESPONSES = {
    400: {"model": ConflictResponse, "description": "Validation error or duplicate name"},
    401: {"model": ErrorResponse},
}


# ==================== Read Endpoints ====================

@router.get(
    "/{entity_type}",
    response_model=MasterDataListResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(allow_read_access)],
)
async def list_master_data(
    entity_type: str,
    service: MasterDataService = Depends(get_master_data_service),
):
    """List every record of a type, ordered by key."""
    return {"data": await service.list_records(entity_type)}


@router.get(
    "/{entity_type}/search",
    response_model=MasterDataListResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(allow_read_access)],
)
async def search_master_data(
    entity_type: str,
    q: str | None = Query(default=None, description="Substring of a name, Japanese name or alias"),
    service: MasterDataService = Depends(get_master_data_service),
):
    return {"data": await service.search(entity_type, q)}


@router.get(
    "/{entity_type}/{item_id}",
    response_model=MasterDataResponse,
    response_model_exclude_none=True,
    responses={404: {"model": ErrorResponse}},
    dependencies=[Depends(allow_read_access)],
)
async def get_master_data(
    entity_type: str,
    item_id: str,
    service: MasterDataService = Depends(get_master_data_service),
):
    return {"data": await service.get(entity_type, item_id)}


# ==================== Write Endpoints ====================

@router.post(
    "/{entity_type}",
    response_model=MasterDataResponse,
    response_model_exclude_none=True,
    responses=WRITE_RESPONSES,
    dependencies=[Depends(require_write_access)],
)
async def create_master_data(
    entity_type: str,
    payload: MasterDataPayload = Body(...),
    service: MasterDataService = Depends(get_master_data_service),
):
    """
    Create a record.

    A record of the same type with the same name (case-insensitive, trimmed)
    yields 400 with ``code="conflict"`` and the existing record; nothing is
    written in that case.
    """
    record = await service.create(entity_type, payload.model_dump(exclude_unset=True))
    return {"data": record}


async def _update(
    entity_type: str,
    item_id: str,
    payload: MasterDataPayload,
    sync: bool,
    service: MasterDataService,
) -> dict:
    changes = payload.model_dump(exclude_unset=True)
    if not sync:
        return {"data": await service.update(entity_type, item_id, changes)}

    record, result = await service.update_with_sync(entity_type, item_id, changes)
    return {"data": record, "sync": result.to_dict()}


@router.put(
    "/{entity_type}/{item_id}",
    response_model=MasterDataUpdateResponse,
    response_model_exclude_none=True,
    responses={**WRITE_RESPONSES, 404: {"model": ErrorResponse}},
    dependencies=[Depends(require_write_access)],
)
async def replace_master_data(
    entity_type: str,
    item_id: str,
    payload: MasterDataPayload = Body(...),
    sync: bool = Query(default=False, description="Rewrite the old name in movie records"),
    service: MasterDataService = Depends(get_master_data_service),
):
    """
    Update a record. Same merge rule as PATCH: fields missing from the body
    are kept, explicit nulls clear.
    """
    return await _update(entity_type, item_id, payload, sync, service)


@router.patch(
    "/{entity_type}/{item_id}",
    response_model=MasterDataUpdateResponse,
    response_model_exclude_none=True,
    responses={**WRITE_RESPONSES, 404: {"model": ErrorResponse}},
    dependencies=[Depends(require_write_access)],
)
async def patch_master_data(
    entity_type: str,
    item_id: str,
    payload: MasterDataPayload = Body(...),
    sync: bool = Query(default=False, description="Rewrite the old name in movie records"),
    service: MasterDataService = Depends(get_master_data_service),
):
    return await _update(entity_type, item_id, payload, sync, service)


@router.delete(
    "/{entity_type}/{item_id}",
    response_model=DeleteResponse,
    responses={404: {"model": ErrorResponse}},
    dependencies=[Depends(require_write_access)],
)
async def delete_master_data(
    entity_type: str,
    item_id: str,
    service: MasterDataService = Depends(get_master_data_service),
):
    """Delete a record. Records referencing it are left as they are."""
    deleted = await service.delete(entity_type, item_id)
    return {"message": f"{entity_type} deleted successfully", "data": deleted}
