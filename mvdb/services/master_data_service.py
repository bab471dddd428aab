"""
Master data service: CRUD for catalog entities stored in the key-value table.

Entity kinds share one storage layout (``master_{type}_{id}``) and one set of
rules:

- create: validate required fields, normalize Japanese names, reject a name
  that already exists within the same type (case-insensitive, trimmed), then
  write once.
- update: PATCH merge. A key absent from the payload leaves the stored value
  unchanged; an explicit null / empty string / empty list clears it; anything
  else is trimmed and replaces it. ``id``, ``type`` and ``createdAt`` never
  change, ``updatedAt`` always does.
- delete: remove the record only. References held by other records
  (``groupId``, ``linkedTo`` ...) are left dangling.

The duplicate check and the write that follows are serialized per entity type
with an asyncio.Lock. That closes the check-then-act window inside one
process; separate worker processes can still race.
"""

import asyncio
import logging
import secrets
import string
import time
import weakref
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from mvdb.core.errors import ConflictError, NotFoundError, ValidationError
from mvdb.services.japanese_names import normalize_japanese_names
from mvdb.services.aliases import record_matches_query
from mvdb.services.kv_store import KVStore

logger = logging.getLogger(__name__)

CAST_TYPES = ("actor", "actress", "director")
HIERARCHY_TYPES = ("group", "generation", "lineup")
SIMPLE_TYPES = ("type", "tag")
MASTER_TYPES = CAST_TYPES + ("studio", "series", "label") + HIERARCHY_TYPES + SIMPLE_TYPES

# Field kinds drive how payload values are cleaned
TEXT, LIST, LINKS, OVERRIDES, INT = "text", "list", "links", "overrides", "int"

_JAPANESE_FIELDS = {"jpname": TEXT, "kanjiName": TEXT, "kanaName": TEXT}
_CAST_FIELDS = {
    "name": TEXT,
    **_JAPANESE_FIELDS,
    "birthdate": TEXT,
    "alias": TEXT,
    "tags": TEXT,
    "links": LINKS,
    "profilePicture": TEXT,
    "photo": LIST,
}
_MEMBERSHIP_FIELDS = {
    "groupId": TEXT,
    "groupName": TEXT,
    "selectedGroups": LIST,
    "groupData": OVERRIDES,
    "generationData": OVERRIDES,
    "lineupData": OVERRIDES,
}

TYPE_FIELDS: dict[str, dict[str, str]] = {
    "actor": {**_CAST_FIELDS, **_MEMBERSHIP_FIELDS},
    "actress": {**_CAST_FIELDS, **_MEMBERSHIP_FIELDS, "takulinks": TEXT},
    # Directors never carry group membership or takulinks
    "director": dict(_CAST_FIELDS),
    "studio": {"name": TEXT, **_JAPANESE_FIELDS, "alias": TEXT, "studioLinks": TEXT},
    "label": {"name": TEXT, **_JAPANESE_FIELDS, "labelLinks": TEXT},
    "series": {"titleEn": TEXT, "titleJp": TEXT, "seriesLinks": TEXT},
    "group": {
        "name": TEXT,
        "jpname": TEXT,
        "profilePicture": TEXT,
        "website": TEXT,
        "description": TEXT,
        "category": TEXT,
        "gallery": LIST,
    },
    "generation": {
        "name": TEXT,
        "groupId": TEXT,
        "groupName": TEXT,
        "estimatedYears": TEXT,
        "startDate": TEXT,
        "endDate": TEXT,
        "description": TEXT,
        "profilePicture": TEXT,
    },
    "lineup": {
        "name": TEXT,
        "generationId": TEXT,
        "generationName": TEXT,
        "lineupType": TEXT,
        "lineupOrder": INT,
        "description": TEXT,
    },
    "type": {"name": TEXT},
    "tag": {"name": TEXT},
}

CREATE_DEFAULTS: dict[str, dict[str, Any]] = {
    "lineup": {"lineupType": "Main", "lineupOrder": 1},
}

# Fields the duplicate check looks at; an update touching none of them skips it
IDENTITY_FIELDS = ("name", "titleEn", "titleJp", "groupId", "generationId")

# Movie fields rewritten when a cast/type name changes
MOVIE_SYNC_FIELDS = {
    "actress": ("actress", True),
    "actor": ("actors", True),
    "director": ("director", False),
    "type": ("type", False),
}
SC_MOVIE_SYNC_FIELDS = {
    "actress": ("cast", True),
    "actor": ("cast", True),
    "director": ("cast", True),
    "type": ("type", False),
}

_ID_ALPHABET = string.ascii_lowercase + string.digits

# One lock table per event loop; asyncio locks must not cross loops
_type_locks: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, dict[str, asyncio.Lock]]" = (
    weakref.WeakKeyDictionary()
)


def _type_lock(entity_type: str) -> asyncio.Lock:
    loop = asyncio.get_running_loop()
    locks = _type_locks.setdefault(loop, {})
    if entity_type not in locks:
        locks[entity_type] = asyncio.Lock()
    return locks[entity_type]


def utc_now_iso() -> str:
    """Current time as an ISO-8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def generate_id(prefix: str) -> str:
    """Generate an id like ``actress_1718000000000_k3x9qa``."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(6))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"


def master_key(entity_type: str, item_id: str) -> str:
    return f"master_{entity_type}_{item_id}"


def master_prefix(entity_type: str) -> str:
    return f"master_{entity_type}_"


def validate_type(entity_type: str) -> str:
    if not entity_type:
        raise ValidationError("Type parameter is required")
    if entity_type not in MASTER_TYPES:
        raise ValidationError(
            f"Invalid type parameter: {entity_type}. Valid types are: {', '.join(MASTER_TYPES)}"
        )
    return entity_type


def _type_label(entity_type: str) -> str:
    return entity_type[:1].upper() + entity_type[1:]


def _folded(value: Any) -> str:
    return value.strip().lower() if isinstance(value, str) else ""


# ==================== Field cleaning ====================

def _clean_text(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        value = str(value)
    return value.strip() or None


def _clean_list(value: Any) -> list[str] | None:
    if value is None:
        return None
    if isinstance(value, str):
        value = [value]
    cleaned: list[str] = []
    for item in value:
        if isinstance(item, str) and item.strip() and item.strip() not in cleaned:
            cleaned.append(item.strip())
    return cleaned or None


def _clean_links(value: Any, existing: Any = None) -> list[dict[str, str]] | None:
    """Normalize labeled links; a bare string becomes one "Website" link.

    A link whose label and url are already stored keeps its stored id.
    """
    if value is None:
        return None
    known = {
        (link.get("label"), link.get("url")): link["id"]
        for link in existing or []
        if isinstance(link, dict) and link.get("id")
    }

    def link_id(label: str, url: str, given: Any = None) -> str:
        return given or known.get((label, url)) or generate_id("link")

    if isinstance(value, str):
        url = value.strip()
        return [{"id": link_id("Website", url), "label": "Website", "url": url}] if url else None

    links = []
    for link in value:
        if not isinstance(link, dict):
            continue
        label = _clean_text(link.get("label"))
        url = _clean_text(link.get("url"))
        if label and url:
            links.append({"id": link_id(label, url, link.get("id")), "label": label, "url": url})
    return links or None


def _clean_override(node_data: Any) -> dict[str, Any] | None:
    if not isinstance(node_data, dict):
        return None
    cleaned: dict[str, Any] = {}
    alias = _clean_text(node_data.get("alias"))
    if alias:
        cleaned["alias"] = alias
    picture = _clean_text(node_data.get("profilePicture"))
    if picture:
        cleaned["profilePicture"] = picture
    photos = _clean_list(node_data.get("photos"))
    if photos:
        cleaned["photos"] = photos
    return cleaned


def _merge_overrides(existing: Any, incoming: Any) -> dict[str, Any] | None:
    """Merge per-node override maps; a node mapped to null is removed."""
    if incoming is None:
        return None
    if not isinstance(incoming, dict):
        raise ValidationError("Override data must be an object keyed by node id")

    merged = dict(existing) if isinstance(existing, dict) else {}
    for node_id, node_data in incoming.items():
        if node_data is None:
            merged.pop(node_id, None)
        else:
            merged[node_id] = _clean_override(node_data)
    return merged or None


def _clean_int(field: str, value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer")


def _clean_value(kind: str, field: str, value: Any, existing: Any = None) -> Any:
    if kind == TEXT:
        return _clean_text(value)
    if kind == LIST:
        return _clean_list(value)
    if kind == LINKS:
        return _clean_links(value, existing)
    if kind == OVERRIDES:
        return _merge_overrides(existing, value)
    if kind == INT:
        return _clean_int(field, value)
    raise ValueError(f"Unknown field kind: {kind}")


def apply_payload(entity_type: str, record: dict[str, Any], payload: dict[str, Any]) -> dict[str, Any]:
    """Merge payload into record following the PATCH rule. Returns a new dict."""
    fields = TYPE_FIELDS[entity_type]
    merged = dict(record)
    for field, raw in payload.items():
        kind = fields.get(field)
        if kind is None:
            continue
        value = _clean_value(kind, field, raw, merged.get(field))
        if value is None:
            merged.pop(field, None)
        else:
            merged[field] = value
    return merged


def arrange_photos(record: dict[str, Any]) -> dict[str, Any]:
    """
    Keep profilePicture as the canonical image and photo as the rest.

    Duplicates are dropped; with no profilePicture the first photo is
    promoted.
    """
    photos = list(record.get("photo") or [])
    picture = record.get("profilePicture")
    if not picture and photos:
        picture = photos.pop(0)
    photos = [p for i, p in enumerate(photos) if p != picture and p not in photos[:i]]

    if picture:
        record["profilePicture"] = picture
    else:
        record.pop("profilePicture", None)
    if photos:
        record["photo"] = photos
    else:
        record.pop("photo", None)
    return record


def validate_required(entity_type: str, record: dict[str, Any]) -> None:
    if entity_type == "series":
        if not record.get("titleEn") and not record.get("titleJp"):
            raise ValidationError("At least one title (EN or JP) is required")
        return

    if not record.get("name"):
        if entity_type in ("studio", "label", "group", "generation", "lineup"):
            raise ValidationError(f"{_type_label(entity_type)} name is required")
        raise ValidationError("Name is required")

    if entity_type == "generation" and not record.get("groupId"):
        raise ValidationError("Group ID is required")
    if entity_type == "lineup" and not record.get("generationId"):
        raise ValidationError("Generation ID is required")


def is_duplicate(entity_type: str, existing: dict[str, Any], candidate: dict[str, Any]) -> bool:
    """Whether existing and candidate collide under the type's uniqueness rule."""
    if entity_type == "series":
        en, jp = _folded(candidate.get("titleEn")), _folded(candidate.get("titleJp"))
        return bool(
            (en and _folded(existing.get("titleEn")) == en)
            or (jp and _folded(existing.get("titleJp")) == jp)
        )

    name = _folded(candidate.get("name"))
    if not name or _folded(existing.get("name")) != name:
        return False
    if entity_type == "generation":
        return existing.get("groupId") == candidate.get("groupId")
    if entity_type == "lineup":
        return existing.get("generationId") == candidate.get("generationId")
    return True


def conflict_for(entity_type: str, candidate: dict[str, Any], existing: dict[str, Any]) -> ConflictError:
    if entity_type == "series":
        message = "Series with this title already exists"
        details = f"A series with this title already exists with ID: {existing.get('id')}"
    elif entity_type == "generation":
        message = "Generation with this name already exists in this group"
        details = (
            f'A generation named "{candidate.get("name")}" already exists in this group '
            f"with ID: {existing.get('id')}"
        )
    elif entity_type == "lineup":
        message = "Lineup with this name already exists in this generation"
        details = (
            f'A lineup named "{candidate.get("name")}" already exists in this generation '
            f"with ID: {existing.get('id')}"
        )
    else:
        message = f"{_type_label(entity_type)} with this name already exists"
        details = (
            f'A {entity_type} named "{candidate.get("name")}" already exists '
            f"with ID: {existing.get('id')}"
        )
    return ConflictError(message, existing=existing, details=details)


def _rename_in_field(value: Any, old_name: str, new_name: str, comma_list: bool) -> Any:
    if not isinstance(value, str):
        return value
    if not comma_list:
        return new_name if value == old_name else value
    names = [name.strip() for name in value.split(",")]
    if old_name not in names:
        return value
    return ", ".join(new_name if name == old_name else name for name in names)


@dataclass
class SyncResult:
    """How many movie records a rename touched."""

    movies_updated: int = 0
    sc_movies_updated: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"moviesUpdated": self.movies_updated, "scMoviesUpdated": self.sc_movies_updated}


class MasterDataService:
    """CRUD and duplicate handling for master data records."""

    def __init__(self, store: KVStore):
        self.store = store

    async def list_records(self, entity_type: str) -> list[dict[str, Any]]:
        validate_type(entity_type)
        return await self.store.get_by_prefix(master_prefix(entity_type))

    async def get(self, entity_type: str, item_id: str) -> dict[str, Any]:
        validate_type(entity_type)
        record = await self.store.get(master_key(entity_type, item_id))
        if record is None:
            raise NotFoundError(f"{entity_type} not found")
        return record

    async def search(self, entity_type: str, query: str | None) -> list[dict[str, Any]]:
        if not query or not query.strip():
            return []
        records = await self.list_records(entity_type)
        return [record for record in records if record_matches_query(record, query)]

    async def find_duplicate(
        self,
        entity_type: str,
        candidate: dict[str, Any],
        exclude_id: str | None = None,
    ) -> dict[str, Any] | None:
        """Full prefix scan for a record that collides with candidate."""
        for existing in await self.store.get_by_prefix(master_prefix(entity_type)):
            if exclude_id is not None and existing.get("id") == exclude_id:
                continue
            if is_duplicate(entity_type, existing, candidate):
                return existing
        return None

    def _prepare(self, entity_type: str, record: dict[str, Any]) -> dict[str, Any]:
        if "jpname" in TYPE_FIELDS[entity_type]:
            normalize_japanese_names(record)
        if "photo" in TYPE_FIELDS[entity_type]:
            arrange_photos(record)
        validate_required(entity_type, record)
        return record

    async def create(self, entity_type: str, payload: dict[str, Any]) -> dict[str, Any]:
        """
        Create a record unless one with the same name exists.

        Raises ConflictError carrying the existing record instead of writing a
        duplicate. Nothing is written on conflict or validation failure.
        """
        validate_type(entity_type)
        logger.info(f"Creating {entity_type}")

        record = apply_payload(entity_type, dict(CREATE_DEFAULTS.get(entity_type, {})), payload)
        record = self._prepare(entity_type, record)

        async with _type_lock(entity_type):
            existing = await self.find_duplicate(entity_type, record)
            if existing is not None:
                logger.info(f"Duplicate {entity_type} rejected (existing ID: {existing.get('id')})")
                raise conflict_for(entity_type, record, existing)

            now = utc_now_iso()
            record.update(
                {
                    "id": generate_id(entity_type),
                    "type": entity_type,
                    "createdAt": now,
                    "updatedAt": now,
                }
            )
            # Fresh ids never overwrite an existing record
            while not await self.store.set_if_absent(master_key(entity_type, record["id"]), record):
                record["id"] = generate_id(entity_type)

        logger.info(f"Created {entity_type} {record['id']}")
        return record

    async def update(self, entity_type: str, item_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Merge payload into the stored record (PATCH rule, see module docstring)."""
        record, _ = await self._update(entity_type, item_id, payload)
        return record

    async def update_with_sync(
        self,
        entity_type: str,
        item_id: str,
        payload: dict[str, Any],
    ) -> tuple[dict[str, Any], SyncResult]:
        """Update, then rewrite the old name in movie records if it changed."""
        record, old_name = await self._update(entity_type, item_id, payload)
        result = SyncResult()
        new_name = record.get("name")
        if old_name and new_name and old_name != new_name and entity_type in MOVIE_SYNC_FIELDS:
            try:
                result = await self.sync_renamed(entity_type, old_name, new_name)
            except Exception as e:
                # The update itself already succeeded; a failed sync is reported, not raised
                logger.error(f"Rename sync failed for {entity_type} {item_id}: {e}")
        return record, result

    async def _update(
        self,
        entity_type: str,
        item_id: str,
        payload: dict[str, Any],
    ) -> tuple[dict[str, Any], str | None]:
        validate_type(entity_type)
        key = master_key(entity_type, item_id)

        async with _type_lock(entity_type):
            existing = await self.store.get(key)
            if existing is None:
                raise NotFoundError(f"{entity_type} not found")

            record = apply_payload(entity_type, existing, payload)
            record = self._prepare(entity_type, record)

            if any(record.get(f) != existing.get(f) for f in IDENTITY_FIELDS):
                duplicate = await self.find_duplicate(entity_type, record, exclude_id=existing.get("id", item_id))
                if duplicate is not None:
                    raise conflict_for(entity_type, record, duplicate)

            record["id"] = existing.get("id", item_id)
            record["type"] = existing.get("type", entity_type)
            record["createdAt"] = existing.get("createdAt") or utc_now_iso()
            record["updatedAt"] = utc_now_iso()
            await self.store.set(key, record)

        logger.info(f"Updated {entity_type} {item_id}")
        return record, existing.get("name")

    async def delete(self, entity_type: str, item_id: str) -> dict[str, Any]:
        """Delete a record and return it. No cascade to referencing records."""
        validate_type(entity_type)
        key = master_key(entity_type, item_id)
        existing = await self.store.get(key)
        if existing is None:
            raise NotFoundError(f"{entity_type} not found")
        await self.store.delete(key)
        logger.info(f"Deleted {entity_type} {item_id}")
        return existing

    async def sync_renamed(self, entity_type: str, old_name: str, new_name: str) -> SyncResult:
        """Rewrite old_name to new_name in movie and SC movie records."""
        result = SyncResult()
        result.movies_updated = await self._sync_prefix(
            "movie:", MOVIE_SYNC_FIELDS.get(entity_type), old_name, new_name
        )
        result.sc_movies_updated = await self._sync_prefix(
            "scmovie:", SC_MOVIE_SYNC_FIELDS.get(entity_type), old_name, new_name
        )
        logger.info(
            f"Rename sync {entity_type} '{old_name}' -> '{new_name}': "
            f"{result.movies_updated} movies, {result.sc_movies_updated} SC movies"
        )
        return result

    async def _sync_prefix(
        self,
        prefix: str,
        field_spec: tuple[str, bool] | None,
        old_name: str,
        new_name: str,
    ) -> int:
        if field_spec is None:
            return 0
        field, comma_list = field_spec
        updated = 0
        for key, movie in await self.store.get_items_by_prefix(prefix):
            try:
                renamed = _rename_in_field(movie.get(field), old_name, new_name, comma_list)
                if renamed == movie.get(field):
                    continue
                movie[field] = renamed
                movie["updatedAt"] = utc_now_iso()
                await self.store.set(key, movie)
                updated += 1
            except Exception as e:
                # One bad movie record must not stop the rest of the sync
                logger.error(f"Failed to sync {key}: {e}")
                await self.store.session.rollback()
        return updated
