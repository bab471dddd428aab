"""Key-value store adapter over the kv_store table.

Everything else in the service layer is built on these few operations.
Values are JSON documents (dicts); keys are namespaced strings.
"""

import copy
import json
import logging
from typing import Any

from sqlalchemy import select, insert, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import flag_modified

from mvdb.db.models import KVEntry

logger = logging.getLogger(__name__)


def _escape_like(value: str) -> str:
    """Escape SQL LIKE wildcard characters in a key prefix."""
    return value.replace("\\", "\\\\").replace("%", r"\%").replace("_", r"\_")


def _as_document(key: str, value: Any) -> dict[str, Any] | None:
    """Return value as a dict; rows imported from the old store hold JSON strings."""
    if isinstance(value, dict):
        return value
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except ValueError as e:
            logger.error(f"Skipping unparseable value under {key}: {e}")
            return None
        if isinstance(parsed, dict):
            return parsed
    logger.warning(f"Skipping non-document value under {key}")
    return None


class KVStore:
    """Async key-value operations bound to one database session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, key: str) -> dict[str, Any] | None:
        """Get the value stored under key, or None."""
        result = await self.session.execute(
            select(KVEntry.value).where(KVEntry.key == key)
        )
        value = result.scalar_one_or_none()
        return None if value is None else _as_document(key, value)

    async def mget(self, keys: list[str]) -> list[dict[str, Any] | None]:
        """Get several values at once, in the order of keys."""
        if not keys:
            return []
        result = await self.session.execute(
            select(KVEntry.key, KVEntry.value).where(KVEntry.key.in_(keys))
        )
        found = {row[0]: row[1] for row in result.all()}
        return [
            _as_document(key, found[key]) if key in found else None
            for key in keys
        ]

    async def set(self, key: str, value: dict[str, Any]) -> None:
        """Insert or replace the value under key."""
        # Stored documents must not alias caller dicts, or later in-place edits
        # would be invisible to change tracking.
        value = copy.deepcopy(value)
        entry = await self.session.get(KVEntry, key)
        if entry is None:
            self.session.add(KVEntry(key=key, value=value))
        else:
            entry.value = value
            flag_modified(entry, "value")
        await self.session.commit()

    async def set_if_absent(self, key: str, value: dict[str, Any]) -> bool:
        """Insert value only if key is not taken yet. Returns False on collision."""
        try:
            await self.session.execute(
                insert(KVEntry).values(key=key, value=copy.deepcopy(value))
            )
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            logger.info(f"Key already present, not overwritten: {key}")
            return False
        return True

    async def delete(self, key: str) -> bool:
        """Delete key. Returns True if something was removed."""
        entry = await self.session.get(KVEntry, key)
        if entry is None:
            return False
        await self.session.delete(entry)
        await self.session.commit()
        return True

    async def get_by_prefix(self, prefix: str) -> list[dict[str, Any]]:
        """Return every value whose key starts with prefix, ordered by key."""
        return [value for _, value in await self.get_items_by_prefix(prefix)]

    async def get_items_by_prefix(self, prefix: str) -> list[tuple[str, dict[str, Any]]]:
        """Like get_by_prefix but keeps the keys."""
        result = await self.session.execute(
            select(KVEntry.key, KVEntry.value)
            .where(KVEntry.key.like(f"{_escape_like(prefix)}%", escape="\\"))
            .order_by(KVEntry.key)
        )
        items = []
        for key, raw in result.all():
            value = _as_document(key, raw)
            if value is not None:
                items.append((key, value))
        return items

    async def count_by_prefix(self, prefix: str) -> int:
        """Count keys starting with prefix."""
        result = await self.session.execute(
            select(func.count())
            .select_from(KVEntry)
            .where(KVEntry.key.like(f"{_escape_like(prefix)}%", escape="\\"))
        )
        return result.scalar_one_or_none() or 0
