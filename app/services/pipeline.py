# app/services/pipeline.py
"""
Batch recipe generation: one text call, a compliance filter, then one image
call per surviving recipe, strictly one after another.

Consumers see progress as a sequence of ``BatchEvent`` values. Each event
carries its own tuple snapshot of the recipe list, so nothing a consumer holds
is ever mutated by the pipeline afterwards.

    idle → generating_text → filtering → generating_images → complete
                  ↘ error              ↘ no_feasible_recipes

A failed image never leaves ``generating_images``; the recipe just stays
without ``imageUrl``.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable, Optional, Protocol, Sequence

from core.logs import json_log, summarize_exc
from app.schemas.recipe_schemas import AvailableIngredient, MealType, Recipe, RecipeDraft
from app.services.errors import AIServiceError
from app.services.feasibility import uses_only_available

IMAGE_PACING_SECONDS = 1.5

Delay = Callable[[float], Awaitable[None]]
SnapshotCallback = Callable[["BatchEvent"], None]


class RecipeService(Protocol):
    async def generate_recipes(
            self,
            pantry: Sequence[AvailableIngredient],
            language: str,
            creativity: int,
            exclude_names: Optional[Sequence[str]],
            meal_type: MealType,
            count: Optional[int] = None,
    ) -> list[RecipeDraft]: ...

    async def generate_dish_image(self, recipe_name: str, description: str) -> str: ...


class BatchState(str, Enum):
    IDLE = "idle"
    GENERATING_TEXT = "generating_text"
    FILTERING = "filtering"
    GENERATING_IMAGES = "generating_images"
    COMPLETE = "complete"
    NO_FEASIBLE_RECIPES = "no_feasible_recipes"
    ERROR = "error"


TERMINAL_STATES = frozenset({BatchState.COMPLETE, BatchState.NO_FEASIBLE_RECIPES, BatchState.ERROR})


@dataclass(frozen=True)
class BatchEvent:
    state: BatchState
    recipes: tuple[Recipe, ...] = ()
    index: Optional[int] = None  # recipe just imaged, if any
    rejected: tuple[str, ...] = ()
    failed_images: tuple[int, ...] = ()
    message_key: Optional[str] = None

    @property
    def terminal(self) -> bool:
        return self.state in TERMINAL_STATES


@dataclass
class BatchResult:
    state: BatchState
    recipes: tuple[Recipe, ...] = ()
    rejected: tuple[str, ...] = ()
    failed_images: tuple[int, ...] = ()

    @property
    def no_feasible_recipes(self) -> bool:
        return self.state is BatchState.NO_FEASIBLE_RECIPES


@dataclass
class _Batch:
    """Mutable working state of one run; only snapshots leave this object."""

    recipes: list[Recipe] = field(default_factory=list)
    rejected: list[str] = field(default_factory=list)
    failed_images: list[int] = field(default_factory=list)

    def event(self, state: BatchState, **kw) -> BatchEvent:
        return BatchEvent(
            state=state,
            recipes=tuple(self.recipes),
            rejected=tuple(self.rejected),
            failed_images=tuple(self.failed_images),
            **kw,
        )


def filter_feasible(
        candidates: Sequence[RecipeDraft], pantry: Sequence[AvailableIngredient]
) -> tuple[list[RecipeDraft], list[str]]:
    """Split candidates into (kept, rejected names). Order of kept recipes is preserved."""
    kept, rejected = [], []
    for recipe in candidates:
        if uses_only_available(recipe, pantry):
            kept.append(recipe)
        else:
            rejected.append(recipe.recipeName)
    return kept, rejected


class RecipeBatchPipeline:
    def __init__(
            self,
            service: RecipeService,
            *,
            pacing_seconds: float = IMAGE_PACING_SECONDS,
            delay: Delay = asyncio.sleep,
    ):
        self.service = service
        self.pacing_seconds = pacing_seconds
        self._delay = delay
        self.state = BatchState.IDLE

    # ---- event streams ----------------------------------------------------
    async def stream(
            self,
            pantry: Sequence[AvailableIngredient],
            *,
            creativity: int,
            meal_type: MealType,
            language: str = "English",
            count: Optional[int] = None,
    ) -> AsyncIterator[BatchEvent]:
        """Fresh batch. Text-generation failures are raised after the ``error`` event."""
        async for ev in self._run_batch([], pantry, creativity, meal_type, language, count):
            yield ev

    async def stream_more(
            self,
            existing: Sequence[Recipe],
            pantry: Sequence[AvailableIngredient],
            *,
            creativity: int,
            meal_type: MealType,
            language: str = "English",
            count: Optional[int] = None,
    ) -> AsyncIterator[BatchEvent]:
        """Append new recipes to ``existing``; only the appended ones get images."""
        async for ev in self._run_batch(list(existing), pantry, creativity, meal_type, language, count):
            yield ev

    async def _run_batch(
            self,
            existing: list[Recipe],
            pantry: Sequence[AvailableIngredient],
            creativity: int,
            meal_type: MealType,
            language: str,
            count: Optional[int],
    ) -> AsyncIterator[BatchEvent]:
        batch = _Batch(recipes=list(existing))
        exclude = [r.recipeName for r in existing]

        self.state = BatchState.GENERATING_TEXT
        try:
            candidates = await self.service.generate_recipes(
                pantry, language, creativity, exclude or None, meal_type, count
            )
        except AIServiceError as e:
            self.state = BatchState.ERROR
            json_log("error", event="batch_text_failed", detail=summarize_exc(e))
            yield batch.event(BatchState.ERROR, message_key=e.message_key)
            raise

        self.state = BatchState.FILTERING
        if existing:
            seen = {r.recipeName.casefold() for r in existing}
            dupes = [c for c in candidates if c.recipeName.casefold() in seen]
            candidates = [c for c in candidates if c.recipeName.casefold() not in seen]
            batch.rejected.extend(c.recipeName for c in dupes)

        kept, rejected = filter_feasible(candidates, pantry)
        batch.rejected.extend(rejected)
        if rejected:
            json_log("info", event="batch_recipes_rejected", names=rejected)

        if not kept:
            self.state = BatchState.NO_FEASIBLE_RECIPES
            yield batch.event(BatchState.NO_FEASIBLE_RECIPES, message_key="errorNoRecipes")
            return

        start = len(batch.recipes)
        batch.recipes.extend(Recipe(**draft.model_dump()) for draft in kept)

        self.state = BatchState.GENERATING_IMAGES
        # text-only snapshot first
        yield batch.event(BatchState.GENERATING_IMAGES)

        last = len(batch.recipes) - 1
        for i in range(start, last + 1):
            recipe = batch.recipes[i]
            try:
                image_url = await self.service.generate_dish_image(recipe.recipeName, recipe.description)
            except Exception as e:
                batch.failed_images.append(i)
                json_log("warn", event="batch_image_failed", index=i, recipe=recipe.recipeName,
                         detail=summarize_exc(e))
            else:
                batch.recipes[i] = recipe.model_copy(update={"imageUrl": image_url})

            if i < last:
                yield batch.event(BatchState.GENERATING_IMAGES, index=i)
                await self._delay(self.pacing_seconds)

        self.state = BatchState.COMPLETE
        json_log("info", event="batch_complete", recipes=len(batch.recipes), failed_images=len(batch.failed_images))
        yield batch.event(BatchState.COMPLETE, index=last)

    # ---- convenience drivers ------------------------------------------------
    async def run(
            self,
            pantry: Sequence[AvailableIngredient],
            *,
            creativity: int,
            meal_type: MealType,
            language: str = "English",
            count: Optional[int] = None,
            on_update: Optional[SnapshotCallback] = None,
    ) -> BatchResult:
        return await _drain(
            self.stream(pantry, creativity=creativity, meal_type=meal_type, language=language, count=count),
            on_update,
        )

    async def generate_more(
            self,
            existing: Sequence[Recipe],
            pantry: Sequence[AvailableIngredient],
            *,
            creativity: int,
            meal_type: MealType,
            language: str = "English",
            count: Optional[int] = None,
            on_update: Optional[SnapshotCallback] = None,
    ) -> BatchResult:
        return await _drain(
            self.stream_more(
                existing, pantry, creativity=creativity, meal_type=meal_type, language=language, count=count
            ),
            on_update,
        )


async def _drain(events: AsyncIterator[BatchEvent], on_update: Optional[SnapshotCallback]) -> BatchResult:
    last: Optional[BatchEvent] = None
    async for ev in events:
        last = ev
        if on_update is not None:
            on_update(ev)
    if last is None:
        raise RuntimeError("batch stream ended without an event")
    return BatchResult(state=last.state, recipes=last.recipes, rejected=last.rejected,
                       failed_images=last.failed_images)
