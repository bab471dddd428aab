"""Group hierarchy endpoints: generations, lineups and actress membership."""

from fastapi import APIRouter, Body, Depends

from mvdb.api.deps import get_hierarchy_service
from mvdb.core.auth import allow_read_access, require_write_access
from mvdb.db.schemas import (
    ErrorResponse,
    MasterDataListResponse,
    MasterDataResponse,
    MemberOverrideRequest,
)
from mvdb.services.hierarchy_service import HierarchyService

router = APIRouter()


@router.get(
    "/groups/{group_id}/generations",
    response_model=MasterDataListResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(allow_read_access)],
)
async def get_group_generations(
    group_id: str,
    service: HierarchyService = Depends(get_hierarchy_service),
):
    return {"data": await service.generations_of_group(group_id)}


@router.get(
    "/generations/{generation_id}/lineups",
    response_model=MasterDataListResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(allow_read_access)],
)
async def get_generation_lineups(
    generation_id: str,
    service: HierarchyService = Depends(get_hierarchy_service),
):
    """Lineups of a generation, ordered by lineupOrder."""
    return {"data": await service.lineups_of_generation(generation_id)}


@router.get(
    "/{level}/{node_id}/members",
    response_model=MasterDataListResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(allow_read_access)],
)
async def get_node_members(
    level: str,
    node_id: str,
    service: HierarchyService = Depends(get_hierarchy_service),
):
    return {"data": await service.members_of_node(level, node_id)}


@router.put(
    "/{level}/{node_id}/members/{actress_id}",
    response_model=MasterDataResponse,
    response_model_exclude_none=True,
    responses={404: {"model": ErrorResponse}},
    dependencies=[Depends(require_write_access)],
)
async def set_member_override(
    level: str,
    node_id: str,
    actress_id: str,
    body: MemberOverrideRequest | None = Body(default=None),
    service: HierarchyService = Depends(get_hierarchy_service),
):
    """Add the actress to the node with an optional node-specific alias and photos."""
    body = body or MemberOverrideRequest()
    actress = await service.set_member_override(
        actress_id,
        level,
        node_id,
        alias=body.alias,
        photos=body.photos,
        profile_picture=body.profilePicture,
    )
    return {"data": actress}


@router.delete(
    "/{level}/{node_id}/members/{actress_id}",
    response_model=MasterDataResponse,
    response_model_exclude_none=True,
    responses={404: {"model": ErrorResponse}},
    dependencies=[Depends(require_write_access)],
)
async def remove_member_override(
    level: str,
    node_id: str,
    actress_id: str,
    service: HierarchyService = Depends(get_hierarchy_service),
):
    return {"data": await service.remove_member_override(actress_id, level, node_id)}
