from fastapi import APIRouter, Depends

from core.dependencies import get_gemini_service
from app.schemas.i18n_schemas import SUPPORTED_LANGUAGES, LanguageInfo, TranslateRequest, TranslateResponse
from app.services.llm_service import GeminiService
from app.services.translation import switch_language

router = APIRouter(prefix="/api/i18n", tags=["i18n"])


@router.get("/languages", response_model=list[LanguageInfo])
async def list_languages():
    return [LanguageInfo(code=code, name=name) for code, name in SUPPORTED_LANGUAGES.items()]


@router.post("/translate", response_model=TranslateResponse)
async def translate_ui(body: TranslateRequest, service: GeminiService = Depends(get_gemini_service)):
    return await switch_language(service, body.currentLanguage, body.targetLanguage, body.strings)
