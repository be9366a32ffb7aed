# app/services/feasibility.py
"""
Serving-count and shopping-list math for a recipe against the user's pantry.

Matching is deliberately crude: names and units are lower-cased and lose one
trailing "s" ("Eggs" == "egg", and also "gas" == "ga"). Staples are detected
by substring, so "olive oil" and "brown sugar" count as staples too. There is
no unit conversion; units either match after normalisation or both belong to
the discrete "count" family.

Every function here is pure: same inputs, same outputs.
"""
from __future__ import annotations

import math
from typing import Iterable, Optional, Sequence

from app.schemas.recipe_schemas import AvailableIngredient, Ingredient, Recipe, RecipeDraft, ShoppingListItem

MAX_SERVINGS_FALLBACK = 20

# Pantry staples in the languages the app ships with; ignored in all feasibility math.
PANTRY_STAPLES: tuple[str, ...] = (
    "salt", "pepper", "oil", "water", "sugar",  # en
    "socker", "peppar", "olja", "vatten",  # sv
    "salz", "pfeffer", "öl", "wasser", "zucker",  # de
    "sel", "poivre", "huile", "eau", "sucre",  # fr
    "sal", "pimienta", "aceite", "agua", "azúcar",  # es
    "sale", "pepe", "olio", "acqua", "zucchero",  # it
    "sol", "papar", "ulje", "voda", "šećer",  # hr
)

# "Each"-type units, interchangeable with one another.
DISCRETE_UNITS: frozenset[str] = frozenset({"unit", "st", "styck", "piece", "item"})


def normalize_name(s: str) -> str:
    s = s.lower()
    return s[:-1] if s.endswith("s") else s


def is_pantry_staple(name: str) -> bool:
    normalized = normalize_name(name)
    return any(staple in normalized for staple in PANTRY_STAPLES)


def units_compatible(a: str, b: str) -> bool:
    na, nb = normalize_name(a), normalize_name(b)
    return na == nb or (na in DISCRETE_UNITS and nb in DISCRETE_UNITS)


def find_pantry_match(name: str, pantry: Iterable[AvailableIngredient]) -> Optional[AvailableIngredient]:
    """First pantry entry whose normalised name equals ``name``'s. Duplicates: first wins."""
    target = normalize_name(name)
    for item in pantry:
        if normalize_name(item.name) == target:
            return item
    return None


def _compatible_match(ing: Ingredient, pantry: Sequence[AvailableIngredient]) -> Optional[AvailableIngredient]:
    match = find_pantry_match(ing.name, pantry)
    if match is not None and units_compatible(match.unit, ing.unit):
        return match
    return None


def calculate_max_servings(
        recipe: RecipeDraft,
        pantry: Sequence[AvailableIngredient],
        fallback: int = MAX_SERVINGS_FALLBACK,
) -> int:
    """
    Whole servings the pantry supports.

    0 as soon as a non-staple ingredient is missing or has an incompatible
    unit. ``fallback`` when the recipe is nothing but staples.
    """
    max_possible: Optional[int] = None

    for ing in recipe.ingredients:
        if is_pantry_staple(ing.name):
            continue

        available = find_pantry_match(ing.name, pantry)
        if available is None:
            return 0
        if not units_compatible(available.unit, ing.unit):
            return 0
        if ing.quantity <= 0:
            # present but needs nothing; does not bound the count
            continue

        ratio = available.quantity / ing.quantity
        # a vanishingly small per-serving amount overflows to inf
        possible = math.floor(ratio) if math.isfinite(ratio) else fallback
        if max_possible is None or possible < max_possible:
            max_possible = possible

    if max_possible is None:
        return fallback
    return max(0, max_possible)


def calculate_shopping_list(
        recipe: RecipeDraft,
        pantry: Sequence[AvailableIngredient],
        servings: int,
) -> list[ShoppingListItem]:
    """What to buy to cook ``servings`` portions, in recipe order. Staples never appear."""
    items: list[ShoppingListItem] = []
    for ing in recipe.ingredients:
        if is_pantry_staple(ing.name):
            continue

        needed = ing.quantity * servings
        match = _compatible_match(ing, pantry)
        available = match.quantity if match is not None else 0.0

        if needed > available:
            items.append(ShoppingListItem(name=ing.name, amountToBuy=round(needed - available, 2), unit=ing.unit))
    return items


def uses_only_available(recipe: RecipeDraft, pantry: Sequence[AvailableIngredient]) -> bool:
    """Presence check only: every ingredient is a staple or has a unit-compatible pantry entry."""
    return all(
        is_pantry_staple(ing.name) or _compatible_match(ing, pantry) is not None
        for ing in recipe.ingredients
    )


def total_calories(recipe: RecipeDraft, servings: int) -> Optional[float]:
    if recipe.calories is None:
        return None
    return round(recipe.calories * servings, 2)


def feasibility_report(
        recipe: RecipeDraft,
        pantry: Sequence[AvailableIngredient],
        servings: int,
        fallback: int = MAX_SERVINGS_FALLBACK,
) -> dict:
    servings = max(1, servings)
    max_servings = calculate_max_servings(recipe, pantry, fallback)
    return {
        "maxServings": max_servings,
        "canMake": servings <= max_servings,
        "shoppingList": calculate_shopping_list(recipe, pantry, servings),
        "totalCalories": total_calories(recipe, servings),
    }


# ─── Plain-text export ─────────────────────────────────────────
DEFAULT_EXPORT_LABELS = {"ingredients": "Ingredients", "instructions": "Instructions"}


def _fmt_qty(x: float) -> str:
    """2 decimals at most, no trailing zeros, never exponent notation."""
    return f"{x:.2f}".rstrip("0").rstrip(".")


def format_recipe_text(recipe: Recipe | RecipeDraft, servings: int, labels: Optional[dict[str, str]] = None) -> str:
    lab = {**DEFAULT_EXPORT_LABELS, **(labels or {})}
    ingredient_lines = "\n".join(
        f"- {_fmt_qty(ing.quantity * servings)} {ing.unit} {ing.name}" for ing in recipe.ingredients
    )
    instruction_lines = "\n".join(f"{i}. {step}" for i, step in enumerate(recipe.instructions, start=1))
    return (
        f"{recipe.recipeName}\n\n"
        f"{lab['ingredients']}:\n{ingredient_lines}\n\n"
        f"{lab['instructions']}:\n{instruction_lines}"
    )
