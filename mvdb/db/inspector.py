"""Store state inspection utilities.

Answers "is there anything in the catalog, and how much of each kind?"
without going through the API. Counts are per key prefix, so they reflect
what is physically stored, including records the API would skip as
malformed.
"""

import logging

from sqlalchemy import text

from mvdb.db.database import async_session_maker
from mvdb.services.kv_store import KVStore
from mvdb.services.master_data_service import MASTER_TYPES, master_prefix
from mvdb.services.photobook_service import PHOTOBOOK_PREFIX

logger = logging.getLogger(__name__)

# (label, key prefix) for every entity kind kept in the store
ENTITY_PREFIXES = [
    *[(entity_type, master_prefix(entity_type)) for entity_type in MASTER_TYPES],
    ("photobook", PHOTOBOOK_PREFIX),
    ("movie", "movie:"),
    ("scmovie", "scmovie:"),
]


async def get_store_status(session_factory=async_session_maker) -> dict:
    """Get entry counts per entity kind plus the schema revision.

    Returns:
        dict with keys:
        - has_data: bool - True if any entity kind has entries
        - total: int - Sum of all counts
        - counts: dict - Entries per entity kind
        - schema_version: str - Current Alembic revision (if available)
    """
    try:
        async with session_factory() as session:
            store = KVStore(session)
            counts = {}
            for name, prefix in ENTITY_PREFIXES:
                counts[name] = await store.count_by_prefix(prefix)

            result = {
                "counts": counts,
                "total": sum(counts.values()),
                "has_data": any(counts.values()),
            }

            try:
                rev_result = await session.execute(
                    text("SELECT version_num FROM alembic_version LIMIT 1")
                )
                row = rev_result.first()
                result["schema_version"] = row[0] if row else "none"
            except Exception:
                # No alembic_version table when the schema came from init_db()
                result["schema_version"] = "unknown"

            return result

    except Exception as e:
        logger.error(f"Failed to get store status: {e}")
        return {
            "has_data": False,
            "total": 0,
            "counts": {},
            "schema_version": "error",
            "error": str(e),
        }


def print_status_report(status: dict) -> None:
    """Print a formatted status report to console."""
    print("=" * 60)
    print("CATALOG STORE STATUS REPORT")
    print("=" * 60)
    print()

    if status.get("error"):
        print(f"ERROR: {status['error']}")
        return

    print(f"Has Data:       {'Yes' if status['has_data'] else 'NO - EMPTY'}")
    print(f"Total Entries:  {status['total']:,}")
    print(f"Schema Version: {status.get('schema_version', 'Unknown')}")
    print()

    print("Entry Counts:")
    for name, count in status["counts"].items():
        print(f"  {name:20} {count:>10,}")
    print()
    print("=" * 60)
