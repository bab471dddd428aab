import asyncio

import pytest

from mvdb.client.config import ProjectConfig, ProjectConfigStore
from mvdb.client.forms import MasterDataForm
from mvdb.core.errors import ConflictError, NotFoundError, ValidationError, error_from_response
from mvdb.services.translation_service import TranslationResult


class FakeTranslator:
    def __init__(self, text="Yui Hatano", method="ai"):
        self.text = text
        self.method = method
        self.calls = []

    async def translate(self, text, context="general", movie_context=None):
        self.calls.append((text, context))
        return TranslationResult(self.text, self.method)


class SlowTranslator:
    """Lets the test change the form while a translation is in flight."""

    def __init__(self):
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def translate(self, text, context="general", movie_context=None):
        self.started.set()
        await self.release.wait()
        return TranslationResult(f"EN({text})", "ai")


# ==================== Config store ====================

def test_config_store_update_notifies_and_unsubscribes():
    store = ProjectConfigStore(ProjectConfig(project_id="p1", anon_key="k1"))
    seen = []
    unsubscribe = store.subscribe(seen.append)

    store.update(project_id="p2")
    assert store.get().project_id == "p2"
    assert store.get().anon_key == "k1"
    assert [c.project_id for c in seen] == ["p2"]
    assert store.storage_key("mvdb_cached_data") == "mvdb_cached_data_p2"

    unsubscribe()
    store.reset()
    assert store.get().project_id == "p1"
    assert len(seen) == 1


def test_config_store_from_env(monkeypatch):
    monkeypatch.setenv("MVDB_PROJECT_ID", "envproj")
    monkeypatch.setenv("MVDB_ANON_KEY", "envkey")
    monkeypatch.setenv("MVDB_FUNCTION_URL", "https://api.example/api/v1")

    config = ProjectConfigStore.from_env().get()
    assert config == ProjectConfig("envproj", "envkey", "https://api.example/api/v1")
    assert config.is_valid()


# ==================== Error mapping ====================

def test_error_mapping_uses_code_not_message():
    conflict = error_from_response(400, {"error": "whatever", "code": "conflict", "existing": {"id": "x"}})
    assert isinstance(conflict, ConflictError)
    assert conflict.existing == {"id": "x"}

    # A validation message that happens to say "already exists" is still validation
    validation = error_from_response(400, {"error": "already exists", "code": "validation_error"})
    assert type(validation) is ValidationError

    assert isinstance(error_from_response(404, "gone"), NotFoundError)


# ==================== Catalog client against the app ====================

@pytest.mark.anyio
async def test_client_create_conflict_and_update(catalog_client):
    created = await catalog_client.create_master("actress", {"name": "Yui Hatano"})

    with pytest.raises(ConflictError) as exc_info:
        await catalog_client.create_master("actress", {"name": "YUI HATANO"})
    assert exc_info.value.existing["id"] == created["id"]

    updated = await catalog_client.update_master("actress", created["id"], {"jpname": "はたの"})
    assert updated["jpname"] == "はたの"
    assert updated["name"] == "Yui Hatano"

    with pytest.raises(NotFoundError):
        await catalog_client.get_master("actress", "actress_0_missing")


@pytest.mark.anyio
async def test_client_photobook_link_roundtrip(catalog_client):
    book = await catalog_client.create_photobook({"titleEn": "Sunny"})
    await catalog_client.link_photobook(book["id"], "group", "g1")
    assert [b["id"] for b in await catalog_client.photobooks_by_target("group", "g1")] == [book["id"]]

    unlinked = await catalog_client.unlink_photobook(book["id"], "group")
    assert "linkedTo" not in unlinked

    with pytest.raises(NotFoundError):
        await catalog_client.link_photobook("pb_1", "member", "actress_42")


# ==================== Master data form ====================

@pytest.mark.anyio
async def test_form_fills_name_from_kanji_and_records_method(catalog_client):
    translator = FakeTranslator()
    form = MasterDataForm(catalog_client, "actress", {"kanjiName": "波多野結衣"})

    assert await form.fill_translations(translator) == {"name": "ai"}
    assert form.values["name"] == "Yui Hatano"
    assert translator.calls == [("波多野結衣", "actress_name")]

    outcome = await form.submit()
    assert outcome.ok
    assert form.item_id == outcome.record["id"]


@pytest.mark.anyio
async def test_form_does_not_overwrite_a_filled_name(catalog_client):
    translator = FakeTranslator()
    form = MasterDataForm(catalog_client, "actress", {"name": "Yui", "kanjiName": "波多野結衣"})
    assert await form.fill_translations(translator) == {}
    assert translator.calls == []


@pytest.mark.anyio
async def test_form_series_translates_title():
    form = MasterDataForm(None, "series", {"titleJp": "夏"})
    assert await form.fill_translations(FakeTranslator("Summer", "fallback")) == {"titleEn": "fallback"}
    assert form.values["titleEn"] == "Summer"


@pytest.mark.anyio
async def test_stale_translation_is_discarded():
    translator = SlowTranslator()
    form = MasterDataForm(None, "actress", {"kanjiName": "波多野結衣"})

    task = asyncio.create_task(form.fill_translations(translator))
    await translator.started.wait()
    form.set_field("kanjiName", "三上悠亜")
    translator.release.set()

    assert await task == {}
    assert "name" not in form.values


@pytest.mark.anyio
async def test_form_conflict_use_existing_and_merge_japanese_name(catalog_client):
    first = await catalog_client.create_master("actress", {"name": "Yui Hatano"})

    form = MasterDataForm(catalog_client, "actress", {"name": "yui hatano", "jpname": "はたのゆい"})
    outcome = await form.submit()

    assert outcome.conflict
    assert not outcome.ok
    assert outcome.existing["id"] == first["id"]

    assert form.use_existing()["id"] == first["id"]

    merged = await form.merge_japanese_name()
    assert merged["id"] == first["id"]
    assert merged["jpname"] == "はたのゆい"
    assert merged["name"] == "Yui Hatano"
    assert len(await catalog_client.list_master("actress")) == 1


@pytest.mark.anyio
async def test_resolving_without_conflict_is_rejected(catalog_client):
    form = MasterDataForm(catalog_client, "studio", {"name": "S1"})
    with pytest.raises(ValidationError):
        form.use_existing()
