import json
from typing import AsyncIterator

from fastapi import APIRouter, Depends, HTTPException
from sse_starlette.sse import EventSourceResponse

from core.config import Settings, get_settings
from core.dependencies import get_pipeline
from core.logs import json_log
from app.schemas.i18n_schemas import language_name
from app.schemas.recipe_schemas import (
    ExportRequest,
    ExportResponse,
    FeasibilityRequest,
    FeasibilityResponse,
    GenerateMoreRequest,
    GenerateRequest,
)
from app.services.errors import AIServiceError
from app.services.feasibility import feasibility_report, format_recipe_text
from app.services.pipeline import BatchEvent, BatchState, RecipeBatchPipeline

router = APIRouter(prefix="/api/recipes", tags=["recipes"])


# ─── SSE framing ──────────────────────────────────────────────
def event_name(ev: BatchEvent) -> str:
    if ev.state is BatchState.GENERATING_IMAGES:
        return "recipes" if ev.index is None else "image"
    return ev.state.value


def event_payload(ev: BatchEvent) -> dict:
    return {
        "event": event_name(ev),
        "data": json.dumps({
            "state": ev.state.value,
            "index": ev.index,
            "recipes": [r.model_dump() for r in ev.recipes],
            "rejected": list(ev.rejected),
            "failedImages": list(ev.failed_images),
            "messageKey": ev.message_key,
        }, ensure_ascii=False),
    }


async def sse_batch_events(events: AsyncIterator[BatchEvent]):
    try:
        async for ev in events:
            yield event_payload(ev)
    except AIServiceError as e:
        # the pipeline already emitted its terminal "error" event
        json_log("info", event="batch_stream_closed_on_error", messageKey=e.message_key)


def _check_pantry_size(body: GenerateRequest, settings: Settings) -> None:
    if len(body.ingredients) > settings.MAX_INGREDIENTS:
        raise HTTPException(422, f"At most {settings.MAX_INGREDIENTS} ingredients are allowed")


# ─── 1. batch generation (SSE) ───────────────────────────────
@router.post("/generate")
async def generate_recipes(
    body: GenerateRequest,
    pipeline: RecipeBatchPipeline = Depends(get_pipeline),
    settings: Settings = Depends(get_settings),
):
    _check_pantry_size(body, settings)
    events = pipeline.stream(
        body.ingredients,
        creativity=body.creativity,
        meal_type=body.mealType,
        language=language_name(body.language),
        count=body.count,
    )
    return EventSourceResponse(sse_batch_events(events))


@router.post("/generate-more")
async def generate_more_recipes(
    body: GenerateMoreRequest,
    pipeline: RecipeBatchPipeline = Depends(get_pipeline),
    settings: Settings = Depends(get_settings),
):
    _check_pantry_size(body, settings)
    events = pipeline.stream_more(
        body.existingRecipes,
        body.ingredients,
        creativity=body.creativity,
        meal_type=body.mealType,
        language=language_name(body.language),
        count=body.count,
    )
    return EventSourceResponse(sse_batch_events(events))


# ─── 2. feasibility / shopping list ──────────────────────────
@router.post("/feasibility", response_model=FeasibilityResponse)
async def recipe_feasibility(body: FeasibilityRequest, settings: Settings = Depends(get_settings)):
    report = feasibility_report(body.recipe, body.ingredients, body.servings, settings.MAX_SERVINGS_FALLBACK)
    return FeasibilityResponse(**report)


@router.post("/export", response_model=ExportResponse)
async def export_recipe(body: ExportRequest):
    return ExportResponse(text=format_recipe_text(body.recipe, max(1, body.servings), body.labels))
