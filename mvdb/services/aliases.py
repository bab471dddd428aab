"""Comma-joined alias list helpers."""

from typing import Any

OVERRIDE_MAPS = ("groupData", "generationData", "lineupData")


def split_aliases(alias: str | None) -> list[str]:
    if not alias:
        return []
    return [part.strip() for part in alias.split(",") if part.strip()]


def merge_alias(existing: str | None, new: str | None) -> str:
    """Merge two comma-joined alias strings, dropping case-insensitive repeats."""
    merged: list[str] = []
    seen: set[str] = set()
    for alias in split_aliases(existing) + split_aliases(new):
        folded = alias.lower()
        if folded not in seen:
            seen.add(folded)
            merged.append(alias)
    return ", ".join(merged)


def alias_exists(existing: str | None, alias: str) -> bool:
    folded = alias.strip().lower()
    return any(a.lower() == folded for a in split_aliases(existing))


def remove_alias(existing: str | None, alias: str) -> str:
    folded = alias.strip().lower()
    return ", ".join(a for a in split_aliases(existing) if a.lower() != folded)


def all_aliases(record: dict[str, Any]) -> list[str]:
    """Main alias plus every per-group/generation/lineup alias of a record."""
    aliases = []
    main = (record.get("alias") or "").strip()
    if main:
        aliases.append(main)
    for map_name in OVERRIDE_MAPS:
        overrides = record.get(map_name) or {}
        for node_data in overrides.values():
            if isinstance(node_data, dict):
                node_alias = (node_data.get("alias") or "").strip()
                if node_alias:
                    aliases.append(node_alias)
    return aliases


def record_matches_query(record: dict[str, Any], query: str | None) -> bool:
    """Case-insensitive substring match over names, titles and aliases."""
    if not query or not query.strip():
        return True
    needle = query.strip().lower()

    for field in ("name", "titleEn", "titleJp", "jpname", "kanjiName", "kanaName"):
        value = record.get(field)
        if isinstance(value, str) and needle in value.lower():
            return True

    return any(needle in alias.lower() for alias in all_aliases(record))
