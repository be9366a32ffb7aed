# app/schemas/recipe_schemas.py
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.schemas.i18n_schemas import DEFAULT_LANGUAGE, check_language_code


# ─── Pydantic models ─────────────────────────────────────────
class AvailableIngredient(BaseModel):
    """One pantry item as confirmed by the user."""

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    name: str
    quantity: float = Field(..., ge=0)
    unit: str


class Ingredient(BaseModel):
    """A recipe ingredient; quantity is for a single serving."""

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    name: str
    quantity: float
    unit: str


class RecipeDraft(BaseModel):
    """Recipe as returned by the text model, before any image exists."""

    model_config = ConfigDict(frozen=True)

    recipeName: str
    description: str
    ingredients: List[Ingredient]
    instructions: List[str]
    calories: Optional[float] = None


class Recipe(RecipeDraft):
    imageUrl: Optional[str] = None


class ShoppingListItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    amountToBuy: float
    unit: str


class MealType(BaseModel):
    hot: bool = True
    cold: bool = True

    @model_validator(mode="after")
    def _at_least_one(self):
        if not (self.hot or self.cold):
            raise ValueError("mealType must allow hot or cold dishes")
        return self


# Passed to Gemini as response_schema
RECIPE_LIST_SCHEMA = list[RecipeDraft]
INGREDIENT_LIST_SCHEMA = list[AvailableIngredient]


# ─── HTTP bodies ─────────────────────────────────────────────
class ImagePayload(BaseModel):
    data: str  # base64, no data-URI prefix
    mimeType: str = "image/jpeg"


class IdentifyRequest(BaseModel):
    images: List[ImagePayload] = Field(..., min_length=1)
    language: str = DEFAULT_LANGUAGE

    @field_validator("language")
    @classmethod
    def _supported(cls, v: str) -> str:
        return check_language_code(v)


class IdentifyResponse(BaseModel):
    ingredients: List[AvailableIngredient]


class GenerateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    ingredients: List[AvailableIngredient] = Field(..., min_length=1)
    language: str = DEFAULT_LANGUAGE
    creativity: int = Field(default=3, ge=1, le=5)
    mealType: MealType = Field(default_factory=MealType)
    count: Optional[int] = Field(default=None, ge=1, le=10)

    @field_validator("language")
    @classmethod
    def _supported(cls, v: str) -> str:
        return check_language_code(v)


class GenerateMoreRequest(GenerateRequest):
    existingRecipes: List[Recipe] = Field(default_factory=list)


class FeasibilityRequest(BaseModel):
    recipe: Recipe
    ingredients: List[AvailableIngredient]
    servings: int = 1


class FeasibilityResponse(BaseModel):
    maxServings: int
    canMake: bool
    shoppingList: List[ShoppingListItem]
    totalCalories: Optional[float] = None


class ExportRequest(BaseModel):
    recipe: Recipe
    servings: int = 1
    labels: dict[str, str] = Field(default_factory=dict)


class ExportResponse(BaseModel):
    text: str
