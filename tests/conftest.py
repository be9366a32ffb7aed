"""
Pytest configuration and shared fixtures.

Fixtures are reusable test setup that can be injected into tests.
Nothing here touches the network: the Gemini client and the recipe service
are replaced by small in-memory fakes.
"""

from types import SimpleNamespace

import pytest

from core.config import Settings
from app.schemas.recipe_schemas import AvailableIngredient, Ingredient, RecipeDraft
from app.services.errors import GenerationError
from app.services.llm_service import GeminiService


# ─── Domain samples ─────────────────────────────────────────
@pytest.fixture
def pantry():
    """A small fridge: eggs, tomatoes, cheese."""
    return [
        AvailableIngredient(name="egg", quantity=6, unit="unit"),
        AvailableIngredient(name="Tomatoes", quantity=3, unit="piece"),
        AvailableIngredient(name="cheddar", quantity=200, unit="g"),
    ]


def make_recipe(name, ingredients, description="Tasty.", calories=None):
    return RecipeDraft(
        recipeName=name,
        description=description,
        ingredients=[Ingredient(name=n, quantity=q, unit=u) for n, q, u in ingredients],
        instructions=["Prepare.", "Cook.", "Serve."],
        calories=calories,
    )


@pytest.fixture
def omelette():
    return make_recipe(
        "Cheesy Omelette",
        [("eggs", 2, "unit"), ("cheddar", 30, "g"), ("salt", 1, "pinch")],
        calories=320,
    )


@pytest.fixture
def milk_pudding():
    """Needs milk, which the sample pantry does not have."""
    return make_recipe("Milk Pudding", [("milk", 1, "l"), ("eggs", 1, "unit")])


@pytest.fixture
def tomato_salad():
    return make_recipe("Tomato Salad", [("tomatoes", 1, "unit"), ("olive oil", 10, "ml")])


# ─── Fakes ──────────────────────────────────────────────────
class FakeRecipeService:
    """
    Stands in for GeminiService inside the batch pipeline.

    ``image_failures`` is a set of recipe names whose image call fails.
    """

    def __init__(self, recipes=None, text_error=None, image_failures=()):
        self.recipes = list(recipes or [])
        self.text_error = text_error
        self.image_failures = set(image_failures)
        self.text_calls = []
        self.image_calls = []

    async def generate_recipes(self, pantry, language, creativity, exclude_names, meal_type, count=None):
        self.text_calls.append({
            "pantry": list(pantry),
            "language": language,
            "creativity": creativity,
            "exclude_names": exclude_names,
            "meal_type": meal_type,
            "count": count,
        })
        if self.text_error is not None:
            raise self.text_error
        return list(self.recipes)

    async def generate_dish_image(self, recipe_name, description):
        self.image_calls.append(recipe_name)
        if recipe_name in self.image_failures:
            raise GenerationError(f"Could not generate an image for {recipe_name}.")
        return f"data:image/jpeg;base64,{recipe_name}"


class RecordingDelay:
    """Zero-cost replacement for asyncio.sleep that remembers what was asked."""

    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


class FakeModels:
    """Mimics ``genai.Client().models`` for the two methods the service uses."""

    def __init__(self, texts=(), image_bytes=b"\xff\xd8jpeg", error=None, image_error=None):
        self.texts = list(texts)
        self.image_bytes = image_bytes
        self.error = error
        self.image_error = image_error
        self.content_calls = []
        self.image_calls = []

    def generate_content(self, *, model, contents, config):
        self.content_calls.append({"model": model, "contents": contents, "config": config})
        if self.error is not None:
            raise self.error
        return SimpleNamespace(text=self.texts.pop(0))

    def generate_images(self, *, model, prompt, config):
        self.image_calls.append({"model": model, "prompt": prompt, "config": config})
        if self.image_error is not None:
            raise self.image_error
        images = [] if self.image_bytes is None else [
            SimpleNamespace(image=SimpleNamespace(image_bytes=self.image_bytes))
        ]
        return SimpleNamespace(generated_images=images)


@pytest.fixture
def settings():
    return Settings(GEMINI_API_KEY="test-key")


@pytest.fixture
def make_service(settings):
    """Build a GeminiService around FakeModels: ``make_service(texts=[...])``."""

    def _make(**kw):
        models = FakeModels(**kw)
        return GeminiService(SimpleNamespace(models=models), settings), models

    return _make
