"""Master data form workflow: translation auto-fill, submit, conflict handling.

Typical flow:

    form = MasterDataForm(client, "actress", {"kanjiName": "波多野結衣"})
    await form.fill_translations(client)
    outcome = await form.submit()
    if outcome.conflict:
        # Either adopt the existing record as-is...
        record = form.use_existing()
        # ...or add this form's Japanese name to it
        record = await form.merge_japanese_name()
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from mvdb.core.errors import ConflictError, ValidationError
from mvdb.services.translation_service import TranslationResult

logger = logging.getLogger(__name__)

# Source fields tried in order when the English name is empty
NAME_SOURCES = ("kanjiName", "jpname", "kanaName")

TRANSLATION_CONTEXTS = {
    "actor": "actor_name",
    "actress": "actress_name",
    "director": "actor_name",
    "studio": "studio_name",
    "series": "series_name",
}


class Translator(Protocol):
    async def translate(
        self,
        text: str,
        context: str = "general",
        movie_context: dict | None = None,
    ) -> TranslationResult: ...


@dataclass
class SubmitOutcome:
    """Result of MasterDataForm.submit()."""

    record: dict[str, Any] | None = None
    conflict: bool = False
    existing: dict[str, Any] | None = None
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.record is not None


@dataclass
class _PendingTranslation:
    target: str
    source: str
    text: str


@dataclass
class MasterDataForm:
    """Editable values for one master data record plus its submit workflow."""

    client: Any
    entity_type: str
    values: dict[str, Any] = field(default_factory=dict)
    item_id: str | None = None
    translation_methods: dict[str, str] = field(default_factory=dict)
    last_outcome: SubmitOutcome | None = None

    def set_field(self, name: str, value: Any) -> None:
        self.values[name] = value

    def _pending_translations(self) -> list[_PendingTranslation]:
        if self.entity_type == "series":
            title_jp = (self.values.get("titleJp") or "").strip()
            if not (self.values.get("titleEn") or "").strip() and title_jp:
                return [_PendingTranslation("titleEn", "titleJp", title_jp)]
            return []

        if (self.values.get("name") or "").strip():
            return []
        for source in NAME_SOURCES:
            text = (self.values.get(source) or "").strip()
            if text:
                return [_PendingTranslation("name", source, text)]
        return []

    async def fill_translations(self, translator: Translator) -> dict[str, str]:
        """
        Fill the English name (series: titleEn) from the Japanese fields.

        Only empty targets are filled. A result whose source field changed
        while the translation was in flight is dropped. Returns the
        translation method per filled field.
        """
        pending = self._pending_translations()
        if not pending:
            return {}

        context = TRANSLATION_CONTEXTS.get(self.entity_type, "general")
        results = await asyncio.gather(
            *(translator.translate(p.text, context) for p in pending)
        )

        filled = {}
        for item, result in zip(pending, results):
            current = (self.values.get(item.source) or "").strip()
            if current != item.text:
                logger.info(f"Discarding stale translation of {item.source} for {self.entity_type}")
                continue
            if (self.values.get(item.target) or "").strip():
                # Filled by hand while the translation was running
                continue
            if result.translated_text:
                self.values[item.target] = result.translated_text
                self.translation_methods[item.target] = result.method
                filled[item.target] = result.method
        return filled

    async def submit(self) -> SubmitOutcome:
        """Create (or update, when item_id is set). A duplicate name becomes a conflict outcome."""
        try:
            if self.item_id:
                record = await self.client.update_master(self.entity_type, self.item_id, self.values)
            else:
                record = await self.client.create_master(self.entity_type, self.values)
        except ConflictError as e:
            logger.info(f"Submit of {self.entity_type} hit an existing record")
            self.last_outcome = SubmitOutcome(conflict=True, existing=e.existing, message=e.message)
            return self.last_outcome

        self.item_id = record.get("id")
        self.last_outcome = SubmitOutcome(record=record)
        return self.last_outcome

    def _existing(self) -> dict[str, Any]:
        if not self.last_outcome or not self.last_outcome.conflict or not self.last_outcome.existing:
            raise ValidationError("No conflicting record to resolve")
        return self.last_outcome.existing

    def use_existing(self) -> dict[str, Any]:
        """Adopt the conflicting record without writing anything."""
        existing = self._existing()
        self.item_id = existing.get("id")
        return existing

    async def merge_japanese_name(self) -> dict[str, Any]:
        """Write this form's jpname onto the conflicting record; nothing else changes."""
        existing = self._existing()
        jpname = (self.values.get("jpname") or "").strip()
        if not jpname:
            raise ValidationError("Japanese name is required to merge")

        record = await self.client.update_master(self.entity_type, existing["id"], {"jpname": jpname})
        self.item_id = record.get("id")
        self.last_outcome = SubmitOutcome(record=record)
        return record
