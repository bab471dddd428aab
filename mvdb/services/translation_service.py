"""
Japanese -> English translation for form auto-fill.

Two tiers, tried once each, in order:
1. AI chat-completions endpoint (OpenAI-compatible, configured via settings)
2. MyMemory public API (ja|en)
If both fail the original text comes back with method "original".
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Literal

import httpx

from mvdb.config import Settings, get_settings

logger = logging.getLogger(__name__)

TranslationContext = Literal[
    "movie_title", "actor_name", "actress_name", "studio_name", "series_name", "general"
]
TranslationMethod = Literal["ai", "fallback", "original"]

CONTEXT_DESCRIPTIONS = {
    "movie_title": "movie title",
    "actor_name": "actor name",
    "actress_name": "actress name",
    "studio_name": "studio name",
    "series_name": "series name",
    "general": "general text",
}

SYSTEM_PROMPT = """You are a professional Japanese-to-English translator specializing in entertainment industry content.

TRANSLATION RULES:
- Translate Japanese text to natural English
- For movie titles: Keep the meaning but make it sound natural in English
- For names: Use standard romanization (Hepburn) or common English names
- For series/studio names: Translate to English equivalents when appropriate
- Return ONLY the translated text, no explanations or notes
- Do not add commentary, analysis, or rationale

CONTEXT: {context}{movie_context}

Translate this Japanese text to English:"""

_SURROUNDING_QUOTES_RE = re.compile(r"^[\"']|[\"']$")


@dataclass
class TranslationResult:
    translated_text: str
    method: TranslationMethod

    def to_dict(self) -> dict[str, str]:
        return {"translatedText": self.translated_text, "translationMethod": self.method}


def build_movie_context(movie_context: dict[str, Any] | None) -> str:
    """Render cast/studio/series/code hints appended to the system prompt."""
    if not movie_context:
        return ""

    parts = []
    for key, label in (("actresses", "Actresses"), ("actors", "Actors"), ("directors", "Directors")):
        names = movie_context.get(key) or []
        if names:
            parts.append(f"{label}: {', '.join(names)}")
    for key, label in (("studio", "Studio"), ("series", "Series"), ("dmcode", "Code")):
        if movie_context.get(key):
            parts.append(f"{label}: {movie_context[key]}")

    if not parts:
        return ""
    return (
        f"\n\nContext: {', '.join(parts)}"
        "\n\nNote: Do not translate person names, only translate descriptive words."
    )


def strip_quotes(text: str) -> str:
    return _SURROUNDING_QUOTES_RE.sub("", text.strip())


class TranslationService:
    """AI translation with a single public-API fallback. No retries."""

    def __init__(self, settings: Settings | None = None, client: httpx.AsyncClient | None = None):
        self.settings = settings or get_settings()
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=float(self.settings.http_request_timeout))
        return self._client

    async def close(self):
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def translate(
        self,
        text: str,
        context: TranslationContext = "general",
        movie_context: dict[str, Any] | None = None,
    ) -> TranslationResult:
        if not text or not text.strip():
            return TranslationResult("", "original")

        translated = await self._translate_with_ai(text, context, movie_context)
        if translated:
            return TranslationResult(translated, "ai")

        translated = await self._translate_with_fallback(text)
        if translated:
            return TranslationResult(translated, "fallback")

        return TranslationResult(text, "original")

    async def _translate_with_ai(
        self,
        text: str,
        context: str,
        movie_context: dict[str, Any] | None,
    ) -> str | None:
        if not self.settings.translation_api_key:
            logger.info("AI translation not configured, using fallback")
            return None

        system_prompt = SYSTEM_PROMPT.format(
            context=CONTEXT_DESCRIPTIONS.get(context, "general text"),
            movie_context=build_movie_context(movie_context),
        )
        client = await self._get_client()
        try:
            response = await client.post(
                f"{self.settings.translation_api_url.rstrip('/')}/chat/completions",
                headers={"Authorization": f"Bearer {self.settings.translation_api_key}"},
                json={
                    "model": self.settings.translation_model,
                    "messages": [
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": text},
                    ],
                    "temperature": self.settings.translation_temperature,
                },
            )
            response.raise_for_status()
            data = response.json()
            content = data["choices"][0]["message"]["content"] or ""
        except httpx.HTTPStatusError as e:
            logger.warning(
                f"AI translation error: {e.response.status_code} - {e.response.text[:200]}"
            )
            return None
        except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as e:
            logger.warning(f"AI translation failed: {e}")
            return None

        return strip_quotes(content) or None

    async def _translate_with_fallback(self, text: str) -> str | None:
        client = await self._get_client()
        try:
            response = await client.get(
                self.settings.fallback_translation_url,
                params={"q": text, "langpair": "ja|en"},
            )
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Fallback translation failed: {e}")
            return None

        if not isinstance(data, dict) or data.get("responseStatus") != 200:
            return None
        response_data = data.get("responseData") or {}
        return response_data.get("translatedText") or None
