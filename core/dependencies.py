# core/dependencies.py
from fastapi import Depends, Request

from core.config import Settings, get_settings
from app.services.llm_service import GeminiService
from app.services.pipeline import RecipeBatchPipeline


def get_gemini_service(request: Request) -> GeminiService:
    """The single service handle built in the startup hook."""
    return request.app.state.gemini


def get_pipeline(
    service: GeminiService = Depends(get_gemini_service),
    settings: Settings = Depends(get_settings),
) -> RecipeBatchPipeline:
    # one pipeline per request; batches never share state
    return RecipeBatchPipeline(service, pacing_seconds=settings.IMAGE_PACING_SECONDS)
