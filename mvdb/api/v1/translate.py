"""Translation helper used by the form auto-fill."""

import logging

from fastapi import APIRouter, Depends, Request

from mvdb.api.deps import get_translation_service
from mvdb.config import get_settings
from mvdb.core.auth import require_write_access
from mvdb.core.rate_limit import limiter
from mvdb.db.schemas import TranslationRequest, TranslationResponse
from mvdb.services.translation_service import TranslationService

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter()


@router.post(
    "",
    response_model=TranslationResponse,
    dependencies=[Depends(require_write_access)],
)
@limiter.limit(settings.rate_limit_translate)
async def translate_text(
    request: Request,
    body: TranslationRequest,
    service: TranslationService = Depends(get_translation_service),
):
    """
    Translate Japanese text to English.

    Tries the AI endpoint, then the public fallback, then returns the input
    unchanged; translationMethod says which one produced the text.
    """
    movie_context = body.movieContext.model_dump(exclude_none=True) if body.movieContext else None
    result = await service.translate(body.text, body.context, movie_context)
    logger.info(f"Translated {body.context} text via {result.method}")
    return result.to_dict()
