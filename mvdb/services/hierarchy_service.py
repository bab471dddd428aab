"""Group -> generation -> lineup queries and per-node member overrides."""

import logging
from typing import Any

from mvdb.core.errors import NotFoundError, ValidationError
from mvdb.services.kv_store import KVStore
from mvdb.services.master_data_service import master_key, master_prefix, utc_now_iso

logger = logging.getLogger(__name__)

LEVELS = ("group", "generation", "lineup")

# Override map on the actress record for each hierarchy level
OVERRIDE_MAP_BY_LEVEL = {
    "group": "groupData",
    "generation": "generationData",
    "lineup": "lineupData",
}


def validate_level(level: str) -> str:
    if level not in LEVELS:
        raise ValidationError(f"Invalid level: {level}. Valid levels are: {', '.join(LEVELS)}")
    return level


def _lineup_order(lineup: dict[str, Any]) -> int:
    try:
        return int(lineup.get("lineupOrder", 1))
    except (TypeError, ValueError):
        return 1


def is_member(actress: dict[str, Any], level: str, node_id: str) -> bool:
    """Whether the actress belongs to the node at the given level."""
    if level == "group":
        selected = actress.get("selectedGroups") or []
        if node_id in selected or actress.get("groupId") == node_id:
            return True
    overrides = actress.get(OVERRIDE_MAP_BY_LEVEL[level]) or {}
    return node_id in overrides


class HierarchyService:
    """Read the group tree and manage actress membership in it."""

    def __init__(self, store: KVStore):
        self.store = store

    async def generations_of_group(self, group_id: str) -> list[dict[str, Any]]:
        generations = await self.store.get_by_prefix(master_prefix("generation"))
        return [g for g in generations if g.get("groupId") == group_id]

    async def lineups_of_generation(self, generation_id: str) -> list[dict[str, Any]]:
        """Lineups of a generation, ordered by lineupOrder."""
        lineups = await self.store.get_by_prefix(master_prefix("lineup"))
        matching = [l for l in lineups if l.get("generationId") == generation_id]
        return sorted(matching, key=_lineup_order)

    async def members_of_node(self, level: str, node_id: str) -> list[dict[str, Any]]:
        validate_level(level)
        actresses = await self.store.get_by_prefix(master_prefix("actress"))
        return [a for a in actresses if is_member(a, level, node_id)]

    async def set_member_override(
        self,
        actress_id: str,
        level: str,
        node_id: str,
        alias: str | None = None,
        photos: list[str] | None = None,
        profile_picture: str | None = None,
    ) -> dict[str, Any]:
        """
        Write the actress's alias/photos for one node.

        For the group level the group id also joins selectedGroups. Both
        changes land in a single record write.
        """
        validate_level(level)
        if not node_id:
            raise ValidationError("Node ID is required")

        key = master_key("actress", actress_id)
        actress = await self.store.get(key)
        if actress is None:
            raise NotFoundError("actress not found")

        node_data: dict[str, Any] = {}
        if alias and alias.strip():
            node_data["alias"] = alias.strip()
        cleaned_photos = [p.strip() for p in photos or [] if p and p.strip()]
        if cleaned_photos:
            node_data["photos"] = cleaned_photos
        if profile_picture and profile_picture.strip():
            node_data["profilePicture"] = profile_picture.strip()

        map_name = OVERRIDE_MAP_BY_LEVEL[level]
        overrides = dict(actress.get(map_name) or {})
        overrides[node_id] = node_data
        actress[map_name] = overrides

        if level == "group":
            selected = list(actress.get("selectedGroups") or [])
            if node_id not in selected:
                selected.append(node_id)
            actress["selectedGroups"] = selected

        actress["updatedAt"] = utc_now_iso()
        await self.store.set(key, actress)
        logger.info(f"Set {level} override {node_id} on actress {actress_id}")
        return actress

    async def remove_member_override(self, actress_id: str, level: str, node_id: str) -> dict[str, Any]:
        """Drop the node from the actress's override map (and membership for groups)."""
        validate_level(level)
        key = master_key("actress", actress_id)
        actress = await self.store.get(key)
        if actress is None:
            raise NotFoundError("actress not found")

        map_name = OVERRIDE_MAP_BY_LEVEL[level]
        overrides = dict(actress.get(map_name) or {})
        overrides.pop(node_id, None)
        if overrides:
            actress[map_name] = overrides
        else:
            actress.pop(map_name, None)

        if level == "group":
            selected = [g for g in actress.get("selectedGroups") or [] if g != node_id]
            if selected:
                actress["selectedGroups"] = selected
            else:
                actress.pop("selectedGroups", None)
            if actress.get("groupId") == node_id:
                actress.pop("groupId", None)

        actress["updatedAt"] = utc_now_iso()
        await self.store.set(key, actress)
        logger.info(f"Removed {level} override {node_id} from actress {actress_id}")
        return actress
