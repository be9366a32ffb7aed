# app/schemas/i18n_schemas.py
from __future__ import annotations

from typing import Dict, Optional

from pydantic import BaseModel, Field, field_validator

SUPPORTED_LANGUAGES: dict[str, str] = {
    "ar": "Arabic",
    "zh-CN": "Chinese (Simplified)",
    "hr": "Croatian",
    "en": "English",
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "es": "Spanish",
    "sv": "Swedish",
}

DEFAULT_LANGUAGE = "en"


def language_name(code: str) -> str:
    """Code → English language name used in prompts. Unknown codes raise KeyError."""
    return SUPPORTED_LANGUAGES[code]


def check_language_code(v: str) -> str:
    if v not in SUPPORTED_LANGUAGES:
        raise ValueError(f"unsupported language: {v}")
    return v


class LanguageInfo(BaseModel):
    code: str
    name: str


class TranslateRequest(BaseModel):
    targetLanguage: str
    currentLanguage: str = DEFAULT_LANGUAGE
    strings: Dict[str, str] = Field(..., min_length=1)

    @field_validator("targetLanguage", "currentLanguage")
    @classmethod
    def _supported(cls, v: str) -> str:
        return check_language_code(v)


class TranslateResponse(BaseModel):
    language: str
    strings: Optional[Dict[str, str]] = None
    fallback: bool = False
