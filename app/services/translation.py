# app/services/translation.py
from __future__ import annotations

from typing import Protocol

from core.logs import json_log, summarize_exc
from app.schemas.i18n_schemas import DEFAULT_LANGUAGE, TranslateResponse, language_name
from app.services.errors import TranslationError


class StringTranslator(Protocol):
    async def translate_strings(self, target_language: str, strings: dict[str, str]) -> dict[str, str]: ...


async def switch_language(
        translator: StringTranslator,
        current: str,
        target: str,
        strings: dict[str, str],
) -> TranslateResponse:
    """
    Translate the English UI table into ``target``.

    A failed translation is not an error for the user: the response keeps
    ``current`` as the active language and flags ``fallback``.
    """
    if target == DEFAULT_LANGUAGE:
        return TranslateResponse(language=target, strings=dict(strings))

    try:
        translated = await translator.translate_strings(language_name(target), strings)
    except TranslationError as e:
        json_log("warn", event="ui_translation_fallback", target=target, current=current, detail=summarize_exc(e))
        return TranslateResponse(language=current, strings=None, fallback=True)

    return TranslateResponse(language=target, strings=translated)
