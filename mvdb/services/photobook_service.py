"""Photobook CRUD, search and linking to the group hierarchy."""

import logging
from typing import Any

from mvdb.core.errors import NotFoundError, ValidationError
from mvdb.services.kv_store import KVStore
from mvdb.services.master_data_service import generate_id, utc_now_iso

logger = logging.getLogger(__name__)

PHOTOBOOK_PREFIX = "photobook_"
LINK_TARGETS = ("group", "generation", "lineup", "member")
TEXT_FIELDS = ("titleEn", "titleJp", "link", "cover", "releaseDate", "actress", "imageLinks")


def photobook_key(photobook_id: str) -> str:
    return f"{PHOTOBOOK_PREFIX}{photobook_id}"


def validate_target_type(target_type: str | None) -> str:
    if not target_type:
        raise ValidationError("targetType is required")
    if target_type not in LINK_TARGETS:
        raise ValidationError(
            f"Invalid targetType: {target_type}. Valid targets are: {', '.join(LINK_TARGETS)}"
        )
    return target_type


def _clean_image_tags(tags: Any) -> list[dict[str, Any]]:
    cleaned = []
    for tag in tags or []:
        if not isinstance(tag, dict) or not tag.get("url"):
            continue
        entry: dict[str, Any] = {
            "url": str(tag["url"]).strip(),
            "actresses": [a.strip() for a in tag.get("actresses") or [] if isinstance(a, str) and a.strip()],
        }
        if tag.get("imageIndex") is not None:
            entry["imageIndex"] = tag["imageIndex"]
        cleaned.append(entry)
    return cleaned


def _clean_linked_to(linked_to: Any) -> dict[str, str] | None:
    if not isinstance(linked_to, dict):
        return None
    cleaned = {
        f"{target}Id": linked_to[f"{target}Id"]
        for target in LINK_TARGETS
        if linked_to.get(f"{target}Id")
    }
    return cleaned or None


def _apply(photobook: dict[str, Any], payload: dict[str, Any]) -> dict[str, Any]:
    """Merge payload into photobook: absent keeps, null/empty clears."""
    merged = dict(photobook)
    for field, raw in payload.items():
        if field in TEXT_FIELDS:
            value = raw.strip() if isinstance(raw, str) else raw
        elif field == "imageTags":
            value = _clean_image_tags(raw)
        elif field == "linkedTo":
            value = _clean_linked_to(raw)
        else:
            continue
        if value in (None, "", []):
            merged.pop(field, None)
        else:
            merged[field] = value
    return merged


def image_tag_actresses(photobook: dict[str, Any]) -> list[str]:
    return [name for tag in photobook.get("imageTags") or [] for name in tag.get("actresses") or []]


def matches_query(photobook: dict[str, Any], query: str) -> bool:
    """Case-insensitive substring over titles, actress and image-tag actresses."""
    fields = [photobook.get("titleEn"), photobook.get("titleJp"), photobook.get("actress")]
    fields.extend(image_tag_actresses(photobook))
    haystack = " ".join(f for f in fields if f).lower()
    return query.strip().lower() in haystack


def contains_actress(photobook: dict[str, Any], name: str) -> bool:
    """Exact name match in the actress field or in any image tag."""
    actresses = [a.strip() for a in (photobook.get("actress") or "").split(",")]
    return name in actresses or name in image_tag_actresses(photobook)


def is_linked_to(photobook: dict[str, Any], target_type: str, target_id: str) -> bool:
    linked_to = photobook.get("linkedTo") or {}
    return linked_to.get(f"{target_type}Id") == target_id


class PhotobookService:
    def __init__(self, store: KVStore):
        self.store = store

    async def list_all(self) -> list[dict[str, Any]]:
        return await self.store.get_by_prefix(PHOTOBOOK_PREFIX)

    async def available_for_linking(self) -> list[dict[str, Any]]:
        # Every photobook can be linked; a photobook may carry several links at once
        return await self.list_all()

    async def get(self, photobook_id: str) -> dict[str, Any]:
        photobook = await self.store.get(photobook_key(photobook_id))
        if photobook is None:
            raise NotFoundError("Photobook not found")
        return photobook

    async def search(self, query: str | None) -> list[dict[str, Any]]:
        if not query or not query.strip():
            return []
        return [pb for pb in await self.list_all() if matches_query(pb, query)]

    async def by_actress(self, name: str) -> list[dict[str, Any]]:
        if not name:
            return []
        return [pb for pb in await self.list_all() if contains_actress(pb, name)]

    async def by_target(self, target_type: str, target_id: str) -> list[dict[str, Any]]:
        validate_target_type(target_type)
        if not target_id:
            return []
        return [pb for pb in await self.list_all() if is_linked_to(pb, target_type, target_id)]

    async def create(self, payload: dict[str, Any]) -> dict[str, Any]:
        title = payload.get("titleEn")
        if not isinstance(title, str) or not title.strip():
            raise ValidationError("English title is required")

        photobook = _apply({}, payload)
        now = utc_now_iso()
        photobook.update({"id": generate_id("pb"), "createdAt": now, "updatedAt": now})
        while not await self.store.set_if_absent(photobook_key(photobook["id"]), photobook):
            photobook["id"] = generate_id("pb")

        logger.info(f"Created photobook {photobook['id']}")
        return photobook

    async def update(self, photobook_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        existing = await self.get(photobook_id)
        if "titleEn" in payload and not (
            isinstance(payload["titleEn"], str) and payload["titleEn"].strip()
        ):
            raise ValidationError("English title is required")

        photobook = _apply(existing, payload)
        photobook["id"] = photobook_id
        photobook["createdAt"] = existing.get("createdAt") or utc_now_iso()
        photobook["updatedAt"] = utc_now_iso()
        await self.store.set(photobook_key(photobook_id), photobook)
        logger.info(f"Updated photobook {photobook_id}")
        return photobook

    async def delete(self, photobook_id: str) -> dict[str, Any]:
        existing = await self.get(photobook_id)
        await self.store.delete(photobook_key(photobook_id))
        logger.info(f"Deleted photobook {photobook_id}")
        return existing

    async def link(self, photobook_id: str, target_type: str, target_id: str) -> dict[str, Any]:
        """Point linkedTo[<target>Id] at target_id. The target itself is not checked."""
        validate_target_type(target_type)
        if not target_id:
            raise ValidationError("targetType and targetId are required")

        photobook = await self.get(photobook_id)
        linked_to = dict(photobook.get("linkedTo") or {})
        linked_to[f"{target_type}Id"] = target_id
        photobook["linkedTo"] = linked_to
        photobook["updatedAt"] = utc_now_iso()
        await self.store.set(photobook_key(photobook_id), photobook)
        logger.info(f"Linked photobook {photobook_id} to {target_type} {target_id}")
        return photobook

    async def unlink(self, photobook_id: str, target_type: str) -> dict[str, Any]:
        validate_target_type(target_type)
        photobook = await self.get(photobook_id)
        linked_to = dict(photobook.get("linkedTo") or {})
        linked_to.pop(f"{target_type}Id", None)
        if linked_to:
            photobook["linkedTo"] = linked_to
        else:
            photobook.pop("linkedTo", None)
        photobook["updatedAt"] = utc_now_iso()
        await self.store.set(photobook_key(photobook_id), photobook)
        logger.info(f"Unlinked photobook {photobook_id} from {target_type}")
        return photobook
