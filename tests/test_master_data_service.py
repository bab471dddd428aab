import asyncio
import itertools
import re

import pytest

from mvdb.core.errors import ConflictError, NotFoundError, ValidationError
from mvdb.services import master_data_service
from mvdb.services.master_data_service import MasterDataService, generate_id

pytestmark = pytest.mark.anyio


@pytest.fixture
def service(store):
    return MasterDataService(store)


@pytest.fixture
def ticking_clock(monkeypatch):
    """Every call to utc_now_iso returns a later timestamp."""
    counter = itertools.count(1)
    monkeypatch.setattr(
        master_data_service,
        "utc_now_iso",
        lambda: f"2024-01-01T00:00:{next(counter):02d}.000Z",
    )


def test_generate_id_format():
    assert re.fullmatch(r"actress_\d{13}_[a-z0-9]{6}", generate_id("actress"))


async def test_create_stamps_id_type_and_timestamps(service, store):
    record = await service.create("actress", {"name": "  Yui Hatano "})

    assert record["name"] == "Yui Hatano"
    assert record["type"] == "actress"
    assert record["id"].startswith("actress_")
    assert record["createdAt"] == record["updatedAt"]
    assert await store.get(f"master_actress_{record['id']}") == record


async def test_duplicate_name_is_case_insensitive_and_writes_nothing(service, store):
    first = await service.create("actress", {"name": "Yui Hatano"})

    with pytest.raises(ConflictError) as exc_info:
        await service.create("actress", {"name": "  yui hatano "})

    assert "already exists" in exc_info.value.message
    assert exc_info.value.existing["id"] == first["id"]
    assert first["id"] in exc_info.value.details
    assert await store.count_by_prefix("master_actress_") == 1


async def test_same_name_in_another_type_is_not_a_conflict(service):
    await service.create("actor", {"name": "Ken"})
    await service.create("director", {"name": "Ken"})


async def test_create_requires_name(service, store):
    with pytest.raises(ValidationError):
        await service.create("studio", {"name": "   "})
    with pytest.raises(ValidationError):
        await service.create("series", {"seriesLinks": "x"})
    assert await store.count_by_prefix("master_") == 0


async def test_unknown_type_lists_valid_types(service):
    with pytest.raises(ValidationError) as exc_info:
        await service.list_records("movie")
    assert "actress" in exc_info.value.message


async def test_jpname_matching_kanji_name_is_cleared(service):
    record = await service.create(
        "actress", {"name": "Yui Hatano", "jpname": "波多野結衣", "kanjiName": " 波多野結衣"}
    )
    assert "jpname" not in record
    assert record["kanjiName"] == "波多野結衣"


async def test_series_conflicts_on_either_title(service):
    await service.create("series", {"titleEn": "Summer", "titleJp": "夏"})

    with pytest.raises(ConflictError):
        await service.create("series", {"titleJp": "夏"})
    with pytest.raises(ConflictError):
        await service.create("series", {"titleEn": "SUMMER", "titleJp": "なつ"})

    await service.create("series", {"titleEn": "Winter"})


async def test_generation_duplicates_are_scoped_to_group(service):
    with pytest.raises(ValidationError):
        await service.create("generation", {"name": "1st"})

    await service.create("generation", {"name": "1st", "groupId": "group_a"})
    await service.create("generation", {"name": "1st", "groupId": "group_b"})
    with pytest.raises(ConflictError):
        await service.create("generation", {"name": "1ST", "groupId": "group_a"})


async def test_lineup_defaults_and_scope(service):
    lineup = await service.create("lineup", {"name": "Team A", "generationId": "gen_1"})
    assert lineup["lineupType"] == "Main"
    assert lineup["lineupOrder"] == 1

    await service.create("lineup", {"name": "Team A", "generationId": "gen_2", "lineupOrder": "3"})
    with pytest.raises(ConflictError):
        await service.create("lineup", {"name": "team a", "generationId": "gen_1"})


async def test_photos_are_deduplicated_behind_profile_picture(service):
    record = await service.create(
        "actress",
        {"name": "A", "photo": ["p1.jpg", "p2.jpg", "p1.jpg", " ", "p3.jpg"], "profilePicture": "p2.jpg"},
    )
    assert record["profilePicture"] == "p2.jpg"
    assert record["photo"] == ["p1.jpg", "p3.jpg"]

    promoted = await service.create("actress", {"name": "B", "photo": ["x.jpg", "y.jpg"]})
    assert promoted["profilePicture"] == "x.jpg"
    assert promoted["photo"] == ["y.jpg"]


async def test_links_are_cleaned_and_legacy_string_becomes_website(service):
    record = await service.create(
        "actor",
        {
            "name": "A",
            "links": [
                {"label": "Twitter", "url": " https://x.com/a "},
                {"label": "", "url": "https://nolabel"},
                {"label": "No url"},
            ],
        },
    )
    assert len(record["links"]) == 1
    assert record["links"][0]["label"] == "Twitter"
    assert record["links"][0]["url"] == "https://x.com/a"
    assert record["links"][0]["id"]

    legacy = await service.create("actor", {"name": "B", "links": "https://b.example"})
    assert legacy["links"][0]["label"] == "Website"
    assert legacy["links"][0]["url"] == "https://b.example"


async def test_director_drops_group_fields_and_takulinks(service):
    record = await service.create(
        "director",
        {"name": "D", "groupId": "group_1", "selectedGroups": ["group_1"], "takulinks": "https://t"},
    )
    assert "groupId" not in record
    assert "selectedGroups" not in record
    assert "takulinks" not in record

    actor = await service.create("actor", {"name": "A", "takulinks": "https://t"})
    assert "takulinks" not in actor
    actress = await service.create("actress", {"name": "B", "takulinks": "https://t"})
    assert actress["takulinks"] == "https://t"


async def test_update_keeps_id_and_created_at(service, ticking_clock):
    created = await service.create("actor", {"name": "Ken", "birthdate": "1990-01-01"})
    updated = await service.update("actor", created["id"], {"name": "Ken Tanaka", "id": "hijack", "createdAt": "x"})

    assert updated["id"] == created["id"]
    assert updated["createdAt"] == created["createdAt"]
    assert updated["updatedAt"] > created["updatedAt"]
    assert updated["birthdate"] == "1990-01-01"


async def test_same_update_twice_differs_only_in_updated_at(service, ticking_clock):
    created = await service.create("actress", {"name": "A"})
    changes = {"alias": "Ace", "tags": "idol", "links": [{"label": "Twitter", "url": "https://x.com/a"}]}
    first = await service.update("actress", created["id"], changes)
    second = await service.update("actress", created["id"], changes)

    assert first["updatedAt"] != second["updatedAt"]
    first.pop("updatedAt")
    second.pop("updatedAt")
    assert first == second


async def test_jpname_only_update_leaves_other_fields(service, store, ticking_clock):
    studio = await service.create("studio", {"name": "S1", "studioLinks": "https://s1"})
    updated = await service.update("studio", studio["id"], {"jpname": "エスワン"})

    assert updated["name"] == "S1"
    assert updated["studioLinks"] == "https://s1"
    assert updated["jpname"] == "エスワン"
    assert updated["updatedAt"] > studio["updatedAt"]
    assert await store.get(f"master_studio_{studio['id']}") == updated


async def test_patch_null_or_empty_clears_and_absent_keeps(service):
    created = await service.create(
        "actress", {"name": "A", "alias": "x", "tags": "t", "photo": ["p1", "p2"], "birthdate": "2000"}
    )
    updated = await service.update("actress", created["id"], {"alias": None, "tags": "", "photo": []})

    assert "alias" not in updated
    assert "tags" not in updated
    # p1 was promoted to profilePicture on create, so only the extra photo is cleared
    assert "photo" not in updated
    assert updated["profilePicture"] == "p1"
    assert updated["birthdate"] == "2000"


async def test_update_cannot_clear_required_name(service):
    created = await service.create("label", {"name": "L"})
    with pytest.raises(ValidationError):
        await service.update("label", created["id"], {"name": None})


async def test_rename_onto_another_record_conflicts(service):
    await service.create("actress", {"name": "A"})
    b = await service.create("actress", {"name": "B"})

    with pytest.raises(ConflictError):
        await service.update("actress", b["id"], {"name": " a "})

    # Renaming a record to its own name (different case) is fine
    renamed = await service.update("actress", b["id"], {"name": "b"})
    assert renamed["name"] == "b"


async def test_update_missing_record_is_not_found(service):
    with pytest.raises(NotFoundError):
        await service.update("actor", "actor_0_zzzzzz", {"name": "X"})


async def test_override_maps_merge_per_node(service):
    created = await service.create(
        "actress",
        {"name": "A", "groupData": {"g1": {"alias": "A1"}, "g2": {"alias": "A2"}}},
    )
    updated = await service.update(
        "actress",
        created["id"],
        {"groupData": {"g2": None, "g3": {"alias": "A3", "photos": ["x.jpg"]}}},
    )
    assert updated["groupData"] == {
        "g1": {"alias": "A1"},
        "g3": {"alias": "A3", "photos": ["x.jpg"]},
    }


async def test_search_matches_per_node_alias(service):
    await service.create("actress", {"name": "A", "lineupData": {"l1": {"alias": "Center"}}})
    await service.create("actress", {"name": "B"})

    assert [r["name"] for r in await service.search("actress", "center")] == ["A"]
    assert await service.search("actress", "  ") == []


async def test_delete_returns_record_and_then_404(service, store):
    group = await service.create("group", {"name": "G"})
    generation = await service.create("generation", {"name": "1st", "groupId": group["id"]})

    deleted = await service.delete("group", group["id"])
    assert deleted["id"] == group["id"]
    with pytest.raises(NotFoundError):
        await service.get("group", group["id"])
    with pytest.raises(NotFoundError):
        await service.delete("group", group["id"])

    # No cascade: the generation keeps its dangling groupId
    assert (await service.get("generation", generation["id"]))["groupId"] == group["id"]


async def test_rename_sync_rewrites_movie_cast_fields(service, store):
    actress = await service.create("actress", {"name": "Yui"})
    await store.set("movie:1", {"id": "1", "actress": "Yui, Mei", "actors": "Ken"})
    await store.set("movie:2", {"id": "2", "actress": "Yuika"})
    await store.set("scmovie:1", {"id": "s1", "cast": "Mei, Yui"})

    record, result = await service.update_with_sync("actress", actress["id"], {"name": "Yui Hatano"})

    assert record["name"] == "Yui Hatano"
    assert result.to_dict() == {"moviesUpdated": 1, "scMoviesUpdated": 1}
    assert (await store.get("movie:1"))["actress"] == "Yui Hatano, Mei"
    assert (await store.get("movie:2"))["actress"] == "Yuika"
    assert (await store.get("scmovie:1"))["cast"] == "Mei, Yui Hatano"


async def test_rename_sync_without_name_change_touches_nothing(service, store):
    director = await service.create("director", {"name": "Dir"})
    await store.set("movie:1", {"id": "1", "director": "Dir"})

    _, result = await service.update_with_sync("director", director["id"], {"birthdate": "1970"})
    assert result.to_dict() == {"moviesUpdated": 0, "scMoviesUpdated": 0}


async def test_legacy_string_link_update_is_repeatable(service, ticking_clock):
    created = await service.create("actor", {"name": "Ken"})
    first = await service.update("actor", created["id"], {"links": "https://b.example"})
    second = await service.update("actor", created["id"], {"links": "https://b.example"})

    assert first["links"] == second["links"]

    # A new link gets its own id; the known one keeps its id
    third = await service.update(
        "actor",
        created["id"],
        {"links": [{"label": "Website", "url": "https://b.example"}, {"label": "Blog", "url": "https://blog"}]},
    )
    assert third["links"][0]["id"] == first["links"][0]["id"]
    assert third["links"][1]["id"] != first["links"][0]["id"]


async def test_concurrent_creates_of_one_name_store_one_record(service, store):
    results = await asyncio.gather(
        service.create("actress", {"name": "Yui"}),
        service.create("actress", {"name": "yui"}),
        return_exceptions=True,
    )

    conflicts = [r for r in results if isinstance(r, ConflictError)]
    assert len(conflicts) == 1
    assert await store.count_by_prefix("master_actress_") == 1


async def test_update_without_name_change_ignores_existing_twins(service, store):
    # Two same-name records can exist when two processes created them at once
    for item_id in ("actress_1_aaaaaa", "actress_2_bbbbbb"):
        await store.set(
            f"master_actress_{item_id}",
            {"id": item_id, "type": "actress", "name": "Yui Hatano", "createdAt": "2024-01-01T00:00:00.000Z"},
        )

    updated = await service.update("actress", "actress_2_bbbbbb", {"jpname": "はたのゆい"})
    assert updated["jpname"] == "はたのゆい"

    with pytest.raises(ConflictError):
        await service.update("actress", "actress_2_bbbbbb", {"name": "YUI HATANO "})


async def test_rename_sync_continues_after_a_failed_write(service, store, monkeypatch):
    await store.set("movie:1", {"id": "1", "actress": "Yui"})
    await store.set("movie:2", {"id": "2", "actress": "Yui"})

    original_set = store.set
    rollbacks = []
    original_rollback = type(store.session).rollback

    async def failing_set(key, value):
        if key == "movie:1":
            raise RuntimeError("write failed")
        await original_set(key, value)

    async def counting_rollback(session):
        rollbacks.append(True)
        await original_rollback(session)

    monkeypatch.setattr(store, "set", failing_set)
    monkeypatch.setattr(type(store.session), "rollback", counting_rollback)

    result = await service.sync_renamed("actress", "Yui", "Yui Hatano")

    assert result.movies_updated == 1
    assert rollbacks == [True]
    assert (await store.get("movie:2"))["actress"] == "Yui Hatano"
    assert (await store.get("movie:1"))["actress"] == "Yui"
