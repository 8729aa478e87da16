"""Schemas for the translation endpoint."""
from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


class TranslateRequest(BaseModel):
    """Input schema for translating text (ISO 639-1 codes)."""
    text: str = Field(min_length=1, max_length=5000)
    target_lang: str = Field(min_length=2, max_length=2)
    source_lang: str = "auto"

    @field_validator("source_lang")
    @classmethod
    def _source_code(cls, value: str) -> str:
        if value != "auto" and len(value) != 2:
            raise ValueError("use a 2-letter ISO 639-1 code or 'auto'")
        return value


class TranslateResponse(BaseModel):
    original_text: str
    translated_text: str
    source_lang: str
    target_lang: str
