import base64
import binascii

from fastapi import APIRouter, Depends, HTTPException

from core.dependencies import get_gemini_service
from app.schemas.i18n_schemas import DEFAULT_LANGUAGE, language_name
from app.schemas.recipe_schemas import IdentifyRequest, IdentifyResponse
from app.services.llm_service import GeminiService

router = APIRouter(prefix="/api/ingredients", tags=["ingredients"])


@router.post("/identify", response_model=IdentifyResponse)
async def identify_ingredients(body: IdentifyRequest, service: GeminiService = Depends(get_gemini_service)):
    images = []
    for img in body.images:
        try:
            images.append((base64.b64decode(img.data, validate=True), img.mimeType))
        except (binascii.Error, ValueError):
            raise HTTPException(422, "Image data must be base64 encoded")

    ingredients = await service.identify_ingredients(images)
    if body.language != DEFAULT_LANGUAGE:
        ingredients = await service.translate_ingredient_list(ingredients, language_name(body.language))
    return IdentifyResponse(ingredients=ingredients)
