from __future__ import annotations

import asyncio
import base64
import json
import re
import traceback
from typing import Any, List, Optional, Sequence

from async_lru import alru_cache
from google import genai                               # ✅ new SDK entrypoint
from google.genai import errors as genai_errors        # ✅ error classes
from google.genai import types                         # ✅ GenerateContentConfig, etc.
from pydantic import TypeAdapter, ValidationError

from core.config import Settings, get_settings
from core.logs import json_log, summarize_exc
from app.schemas.recipe_schemas import (
    AvailableIngredient,
    MealType,
    RecipeDraft,
    INGREDIENT_LIST_SCHEMA,
    RECIPE_LIST_SCHEMA,
)
from app.services.errors import (
    AIServiceError,
    GenerationError,
    NoIngredientsError,
    ParseError,
    ServiceNotConfiguredError,
    TranslationError,
)

# ─── 1. Prompts ────────────────────────────────────────────────

IDENTIFY_PROMPT = (
    "Analyze these images of a refrigerator's contents. Identify all usable food items and estimate "
    "their quantities. Return the response as a JSON array of objects, where each object has 'name', "
    "'quantity', and 'unit'. For example: "
    '[{"name": "eggs", "quantity": 6, "unit": "unit"}, {"name": "milk", "quantity": 0.5, "unit": "l"}]. '
    "Be as accurate as possible with estimations."
)

CREATIVITY_RULES: dict[int, str] = {
    1: "Stick to classic, familiar home-cooking dishes that most people already know.",
    2: "Prefer well-known dishes, with at most small twists on the classics.",
    3: "Balance familiar dishes with a few creative ideas.",
    4: "Be inventive: unexpected flavour pairings and techniques are welcome.",
    5: "Be bold and experimental. Surprise the user with adventurous, unusual dishes.",
}


def temperature_for(creativity: int) -> float:
    """Creativity 1..5 → sampling temperature 0.4..1.2."""
    level = min(max(creativity, 1), 5)
    return round(0.4 + 0.2 * (level - 1), 2)


def _meal_type_rule(meal_type: MealType) -> str:
    if meal_type.hot and not meal_type.cold:
        return "Only suggest HOT dishes (cooked and served warm)."
    if meal_type.cold and not meal_type.hot:
        return "Only suggest COLD dishes (salads, cold plates, no-cook or chilled dishes)."
    return "Dishes may be served hot or cold."


def RECIPES_PROMPT(
        pantry: Sequence[AvailableIngredient],
        language: str,
        creativity: int,
        meal_type: MealType,
        count: int,
        exclude_names: Optional[Sequence[str]] = None,
) -> str:
    ingredients_string = json.dumps([i.model_dump() for i in pantry], ensure_ascii=False)

    if exclude_names:
        names_to_avoid = '"' + "; ".join(exclude_names) + '"'
        variety = (
            f"The user has already seen these recipes: {names_to_avoid}. "
            "Do NOT suggest any of them again, and do not suggest near-duplicates with a different name."
        )
    else:
        variety = "No previous recipes to avoid. Generate freely, but keep the recipes diverse."

    return f"""
You are an expert chef AI for an app called "Fridge-to-Feast". Your primary and most critical function is to create delicious recipes using ONLY the ingredients a user already has. The entire purpose of the app is to avoid a trip to the grocery store.

Here is the list of available ingredients and their quantities: {ingredients_string}.

**ABSOLUTE CRITICAL RULE:** You must generate up to {count} diverse recipes. Every single ingredient in each recipe **must** be from the list provided above. The ONLY exception is that you may assume the user has common pantry staples like salt, pepper, and oil, but do not list more than 2-3 of these. If you cannot create any meaningful recipes from the given ingredients, you MUST return an empty JSON array: []. **DO NOT, under any circumstances, invent or add ingredients that are not on the list.** For example, if the user has eggs but not milk, you cannot suggest a recipe that requires milk.

### Style
- Creativity: {CREATIVITY_RULES[min(max(creativity, 1), 5)]}
- Temperature of the dish: {_meal_type_rule(meal_type)}
- Variety: {variety}

For each recipe, provide the following details in {language}:
- A catchy name ('recipeName').
- A short description ('description').
- A list of ingredients with the exact quantities and units for a single serving ('ingredients'). Use the same ingredient names and units as the list above. Make sure the quantities are reasonable for a single serving.
- Detailed, step-by-step instructions for a beginner cook ('instructions').
- An estimate of the calories for a single serving ('calories').

Ensure all text fields in the final JSON response ('recipeName', 'description', and 'instructions') are fully written in {language}.

Return the response as a valid JSON array of recipe objects. If no recipes can be made, return an empty array [].
""".strip()


def IMAGE_PROMPT(recipe_name: str, description: str) -> str:
    return (
        f'A delicious-looking, professional photograph of a finished dish: "{recipe_name}". '
        f'Description: "{description}". The image should be appetizing, well-lit, with a shallow depth of '
        "field, styled like a modern food blog photo. Crucially, do not include any text, letters, or words "
        "in the image. The image should only be of the food."
    )


def INGREDIENT_TRANSLATE_PROMPT(names: list[str], language: str) -> str:
    return (
        f"Translate the following list of food ingredient names into {language}. Return the response as a "
        "JSON array of strings, in the same order as the input. For example, if the input is "
        '["egg", "milk"], the output for Spanish should be ["huevo", "leche"]. Do not include any other '
        f"text, explanations, or markdown formatting. Input: {json.dumps(names, ensure_ascii=False)}"
    )


def UI_TRANSLATE_PROMPT(language: str, payload: str) -> str:
    return (
        f'Translate the string values in the following JSON object to the language "{language}". Return only '
        "a single, valid JSON object with the exact same keys as the input. Keep placeholders such as {count} "
        "unchanged. Do not add any extra text, explanations, or markdown formatting. The response MUST be only "
        f"the JSON object. JSON to translate: {payload}"
    )


# ─── 2. Response cleanup ───────────────────────────────────────

# Strip ```json fences defensively
_fence = re.compile(r"^```(\w+)?\s*\n?(.*?)\n?```$", re.S)
_inner_fence = re.compile(r"```(?:json)?\n([\s\S]*?)\n```")


def _strip_fence(raw: str) -> str:
    raw = (raw or "").strip()
    m = _fence.match(raw)
    if m:
        raw = m.group(2).strip()
    return raw


def _extract_json_object(raw: str) -> str:
    """Best effort: pull the outermost {...} out of chatty or fenced model output."""
    text = (raw or "").strip()
    m = _inner_fence.search(text)
    if m and m.group(1):
        text = m.group(1).strip()
    first, last = text.find("{"), text.rfind("}")
    if first == -1 or last <= first:
        raise TranslationError("Response was not in the expected JSON format.")
    return text[first:last + 1]


_recipes_adapter = TypeAdapter(RECIPE_LIST_SCHEMA)
_ingredients_adapter = TypeAdapter(INGREDIENT_LIST_SCHEMA)
_names_adapter = TypeAdapter(list[str])

settings = get_settings()


# ─── 3. Service handle ─────────────────────────────────────────
class GeminiService:
    """
    The four AI operations the app needs, on top of one ``genai.Client``.

    Built once at startup and handed to routes and the batch pipeline. The SDK
    is synchronous, so each call runs in a worker thread to keep the event
    loop free. ``client`` may be None when no API key is configured; every
    call then raises ServiceNotConfiguredError.
    """

    def __init__(self, client: Any, settings: Settings):
        self._client = client
        self.settings = settings

    @property
    def configured(self) -> bool:
        return self._client is not None

    # ---- low-level calls ------------------------------------------------
    def _require_client(self) -> None:
        if self._client is None:
            json_log("error", event="gemini_not_configured", detail="Gemini client not initialized (check GEMINI_API_KEY)")
            raise ServiceNotConfiguredError()

    async def _generate_content(self, *, model: str, contents: Any, config: types.GenerateContentConfig) -> str:
        self._require_client()
        try:
            response = await asyncio.to_thread(
                self._client.models.generate_content,
                model=model,
                contents=contents,
                config=config,
            )
        except genai_errors.APIError as e:
            json_log("error", event="gemini_api_error", model=model, detail=summarize_exc(e))
            raise GenerationError() from e
        except Exception as e:
            json_log("error", event="gemini_unclassified_error", model=model, detail=summarize_exc(e))
            traceback.print_exc()
            raise GenerationError() from e
        return (getattr(response, "text", None) or "").strip()

    # ---- identifyIngredients -----------------------------------------------
    async def identify_ingredients(self, images: Sequence[tuple[bytes, str]]) -> List[AvailableIngredient]:
        """``images`` are (raw bytes, mime type) pairs."""
        parts = [types.Part.from_bytes(data=data, mime_type=mime) for data, mime in images]
        cfg = types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=INGREDIENT_LIST_SCHEMA,
            temperature=self.settings.GEMINI_TEMP,
        )
        raw = await self._generate_content(
            model=self.settings.GEMINI_VISION_MODEL,
            contents=[IDENTIFY_PROMPT, *parts],
            config=cfg,
        )

        try:
            found = _ingredients_adapter.validate_json(_strip_fence(raw))
        except ValidationError as e:
            json_log("warn", event="ingredients_parse_failed", raw=raw[:2000], errors=e.error_count())
            raise ParseError(message_key="errorIdentifyIngredients") from e

        # same rule as the ingredient editor's confirm step
        found = [i for i in found if i.name.strip() and i.quantity > 0]
        if not found:
            raise NoIngredientsError()
        return found

    async def translate_ingredient_list(
            self, ingredients: List[AvailableIngredient], language: str
    ) -> List[AvailableIngredient]:
        """Rename pantry items into ``language``. Never raises: any failure keeps the originals."""
        if not ingredients or language == "English":
            return ingredients

        names = [ing.name for ing in ingredients]
        cfg = types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=list[str],
            temperature=self.settings.GEMINI_TEMP,
        )
        try:
            raw = await self._generate_content(
                model=self.settings.GEMINI_TRANSLATE_MODEL,
                contents=INGREDIENT_TRANSLATE_PROMPT(names, language),
                config=cfg,
            )
            translated = _names_adapter.validate_json(_strip_fence(raw))
        except (AIServiceError, ValidationError) as e:
            json_log("warn", event="ingredient_translation_failed", language=language, detail=summarize_exc(e))
            return ingredients

        if len(translated) != len(ingredients):
            json_log("warn", event="ingredient_translation_failed", language=language,
                     detail=f"length mismatch {len(translated)} != {len(ingredients)}")
            return ingredients
        return [ing.model_copy(update={"name": name}) for ing, name in zip(ingredients, translated)]

    # ---- generateRecipes ----------------------------------------------------
    async def generate_recipes(
            self,
            pantry: Sequence[AvailableIngredient],
            language: str,
            creativity: int,
            exclude_names: Optional[Sequence[str]],
            meal_type: MealType,
            count: Optional[int] = None,
    ) -> List[RecipeDraft]:
        count = count or self.settings.RECIPE_BATCH_SIZE
        prompt = RECIPES_PROMPT(pantry, language, creativity, meal_type, count, exclude_names)
        cfg = types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=RECIPE_LIST_SCHEMA,
            temperature=temperature_for(creativity),
        )
        raw = await self._generate_content(model=self.settings.GEMINI_RECIPE_MODEL, contents=prompt, config=cfg)

        try:
            recipes = _recipes_adapter.validate_json(_strip_fence(raw))
        except ValidationError as e:
            json_log("warn", event="recipes_parse_failed", raw=raw[:2000], errors=e.error_count())
            raise ParseError(message_key="errorGenerateRecipes") from e

        json_log("info", event="recipes_generated", count=len(recipes), creativity=creativity, language=language)
        return recipes

    # ---- generateDishImage --------------------------------------------------
    async def generate_dish_image(self, recipe_name: str, description: str) -> str:
        """JPEG as a data URI. Any failure becomes GenerationError."""
        self._require_client()
        cfg = types.GenerateImagesConfig(
            number_of_images=1,
            output_mime_type="image/jpeg",
            aspect_ratio="4:3",
        )
        try:
            response = await asyncio.to_thread(
                self._client.models.generate_images,
                model=self.settings.GEMINI_IMAGE_MODEL,
                prompt=IMAGE_PROMPT(recipe_name, description),
                config=cfg,
            )
            image_bytes = response.generated_images[0].image.image_bytes
        except Exception as e:
            json_log("warn", event="image_generation_failed", recipe=recipe_name, detail=summarize_exc(e))
            raise GenerationError(f"Could not generate an image for {recipe_name}.") from e

        if not image_bytes:
            raise GenerationError(f"Could not generate an image for {recipe_name}.")
        return "data:image/jpeg;base64," + base64.b64encode(image_bytes).decode("ascii")

    # ---- translateStrings ---------------------------------------------------
    async def translate_strings(self, target_language: str, strings: dict[str, str]) -> dict[str, str]:
        payload = json.dumps(strings, ensure_ascii=False, sort_keys=True)
        try:
            translated = await self._cached_translate(target_language, payload)
        except TranslationError:
            raise
        except AIServiceError as e:
            raise TranslationError() from e
        return dict(translated)

    @alru_cache(maxsize=settings.GEMINI_CACHE_MAXSIZE, ttl=settings.GEMINI_CACHE_TTL)
    async def _cached_translate(self, target_language: str, payload: str) -> dict[str, str]:
        """Only successful translations are cached; exceptions propagate uncached."""
        cfg = types.GenerateContentConfig(
            response_mime_type="application/json",
            temperature=self.settings.GEMINI_TEMP,
        )
        raw = await self._generate_content(
            model=self.settings.GEMINI_TRANSLATE_MODEL,
            contents=UI_TRANSLATE_PROMPT(target_language, payload),
            config=cfg,
        )

        try:
            parsed = json.loads(_extract_json_object(raw))
        except json.JSONDecodeError as e:
            json_log("warn", event="ui_translation_parse_failed", language=target_language, raw=raw[:2000])
            raise TranslationError("Response was not in the expected JSON format.") from e

        source = json.loads(payload)
        if not isinstance(parsed, dict) or set(parsed) != set(source) or not all(
                isinstance(v, str) for v in parsed.values()
        ):
            json_log("warn", event="ui_translation_shape_mismatch", language=target_language)
            raise TranslationError("Translated keys do not match the source strings.")
        return parsed


# ─── 4. Client init (new SDK) ───────────────────────────────────
def create_gemini_service(settings: Settings) -> GeminiService:
    client: genai.Client | None = None
    if not settings.GEMINI_API_KEY:
        json_log("warn", event="gemini_client_skipped", reason="GEMINI_API_KEY missing")
        return GeminiService(None, settings)
    try:
        client = genai.Client(api_key=settings.GEMINI_API_KEY)
        json_log("info", event="gemini_client_initialized")
    except Exception as e:
        json_log("error", event="gemini_client_init_failed", detail=summarize_exc(e))
        client = None
    return GeminiService(client, settings)
