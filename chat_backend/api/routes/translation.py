"""Translation endpoint."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException

from chat_backend.api.deps import TranslationServiceDep, UserIdDep
from chat_backend.schemas.translation import TranslateRequest, TranslateResponse
from chat_backend.services.translation import TranslationError

router = APIRouter(prefix="/api", tags=["translation"])


@router.post("/translate", response_model=TranslateResponse)
async def translate_text(
    payload: TranslateRequest, service: TranslationServiceDep, _: UserIdDep
) -> TranslateResponse:
    try:
        translated = await service.translate(payload.text, payload.target_lang, payload.source_lang)
    except TranslationError as err:
        raise HTTPException(
            status_code=502,
            detail="Translation failed. Check if the language codes are supported.",
        ) from err
    return TranslateResponse(
        original_text=payload.text,
        translated_text=translated,
        source_lang=payload.source_lang,
        target_lang=payload.target_lang,
    )
