from mvdb.services.aliases import (
    alias_exists,
    all_aliases,
    merge_alias,
    record_matches_query,
    remove_alias,
)
from mvdb.services.japanese_names import (
    detect_character_type,
    normalize_japanese_names,
    parse_name_with_aliases,
    split_japanese_name,
)


def test_jpname_equal_to_kanji_name_is_dropped():
    record = {"name": "Yui Hatano", "jpname": " 波多野結衣 ", "kanjiName": "波多野結衣"}
    normalize_japanese_names(record)
    assert "jpname" not in record
    assert record["kanjiName"] == "波多野結衣"


def test_distinct_japanese_names_are_kept_and_trimmed():
    record = {"jpname": " はたの ゆい", "kanjiName": "波多野結衣 ", "kanaName": ""}
    normalize_japanese_names(record)
    assert record == {"jpname": "はたの ゆい", "kanjiName": "波多野結衣"}


def test_detect_character_type():
    assert detect_character_type("波多野結衣") == "kanji"
    assert detect_character_type("はたのゆい") == "kana"
    assert detect_character_type("ハタノユイ") == "kana"
    assert detect_character_type("Yui Hatano") == "romaji"
    assert detect_character_type("Yui 2") == "mixed"
    assert detect_character_type("  ") == "unknown"


def test_split_japanese_name_routes_by_script():
    assert split_japanese_name("波多野結衣") == {"kanjiName": "波多野結衣"}
    assert split_japanese_name("はたのゆい") == {"kanaName": "はたのゆい"}
    assert split_japanese_name("Yui") == {"jpname": "Yui"}
    assert split_japanese_name("") == {}


def test_parse_name_with_aliases_handles_both_bracket_widths():
    assert parse_name_with_aliases("めぐり（ふじうらめぐ）") == ("めぐり", ["ふじうらめぐ"])
    assert parse_name_with_aliases("Name (a1)(a2)") == ("Name", ["a1", "a2"])
    assert parse_name_with_aliases(None) == ("", [])


def test_merge_alias_drops_case_insensitive_repeats():
    assert merge_alias("Yui, Yuichan", "yui, YH") == "Yui, Yuichan, YH"
    assert merge_alias(None, "A") == "A"
    assert merge_alias("", "") == ""


def test_alias_exists_and_remove_alias():
    assert alias_exists("Yui, Yuichan", "YUICHAN")
    assert not alias_exists("Yui", "Hatano")
    assert remove_alias("Yui, Yuichan, YH", "yuichan") == "Yui, YH"


def test_all_aliases_includes_per_node_aliases():
    record = {
        "alias": "Yui",
        "groupData": {"group_1": {"alias": "Yuipon"}, "group_2": {}},
        "lineupData": {"lineup_1": {"alias": " Center "}},
    }
    assert all_aliases(record) == ["Yui", "Yuipon", "Center"]


def test_record_matches_query_over_names_and_aliases():
    record = {
        "name": "Yui Hatano",
        "kanjiName": "波多野結衣",
        "generationData": {"gen_1": {"alias": "Hatachan"}},
    }
    assert record_matches_query(record, "hatano")
    assert record_matches_query(record, "波多野")
    assert record_matches_query(record, "HATACHAN")
    assert not record_matches_query(record, "tsubasa")
