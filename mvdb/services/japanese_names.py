"""Japanese-name helpers: script detection and jpname/kanjiName normalization."""

import re
from typing import Any, Literal

KANJI_RE = re.compile(r"[\u4e00-\u9faf]")
HIRAGANA_RE = re.compile(r"[\u3040-\u309f]")
KATAKANA_RE = re.compile(r"[\u30a0-\u30ff]")
LATIN_ONLY_RE = re.compile(r"^[A-Za-z\s]+$")

# Captures "(alias)" and full-width "（alias）" groups
ALIAS_GROUP_RE = re.compile(r"[（(]([^）)]+)[）)]")

JAPANESE_NAME_FIELDS = ("jpname", "kanjiName", "kanaName")

CharacterType = Literal["kanji", "kana", "romaji", "mixed", "unknown"]


def contains_kanji(text: str | None) -> bool:
    return bool(text) and KANJI_RE.search(text) is not None


def contains_hiragana(text: str | None) -> bool:
    return bool(text) and HIRAGANA_RE.search(text) is not None


def contains_katakana(text: str | None) -> bool:
    return bool(text) and KATAKANA_RE.search(text) is not None


def contains_kana(text: str | None) -> bool:
    return contains_hiragana(text) or contains_katakana(text)


def contains_japanese(text: str | None) -> bool:
    return contains_kanji(text) or contains_kana(text)


def is_latin_only(text: str | None) -> bool:
    return bool(text) and LATIN_ONLY_RE.match(text) is not None


def detect_character_type(text: str | None) -> CharacterType:
    """Classify text by the scripts it contains; kanji wins over kana over romaji."""
    if not text or not text.strip():
        return "unknown"

    has_kanji = contains_kanji(text)
    has_kana = contains_kana(text)
    has_latin = is_latin_only(text)

    if has_kanji:
        return "kanji"
    if has_kana:
        return "kana"
    if has_latin:
        return "romaji"
    return "mixed"


def parse_name_with_aliases(name: str | None) -> tuple[str, list[str]]:
    """
    Split a display name into its main part and bracketed aliases.

    "めぐり（ふじうらめぐ）" -> ("めぐり", ["ふじうらめぐ"])
    "Name (a1)(a2)"          -> ("Name", ["a1", "a2"])
    """
    if not name or not name.strip():
        return "", []
    aliases = [match.strip() for match in ALIAS_GROUP_RE.findall(name)]
    main_name = ALIAS_GROUP_RE.sub("", name).strip()
    return main_name, aliases


def normalize_japanese_names(record: dict[str, Any]) -> dict[str, Any]:
    """
    Trim the Japanese-name fields and drop redundant jpname.

    When jpname and kanjiName hold the same text, only kanjiName is kept.
    Empty values are removed. The record is modified in place and returned.
    """
    for field in JAPANESE_NAME_FIELDS:
        value = record.get(field)
        if isinstance(value, str):
            value = value.strip()
        if value:
            record[field] = value
        else:
            record.pop(field, None)

    jpname = record.get("jpname")
    if jpname and jpname == record.get("kanjiName"):
        record.pop("jpname", None)

    return record


def split_japanese_name(text: str | None) -> dict[str, str]:
    """
    Route a scraped Japanese name into the field that matches its script.

    Kanji text goes to kanjiName, pure kana to kanaName; anything else is
    kept as jpname.
    """
    if not text or not text.strip():
        return {}
    text = text.strip()
    kind = detect_character_type(text)
    if kind == "kanji":
        return {"kanjiName": text}
    if kind == "kana":
        return {"kanaName": text}
    return {"jpname": text}
