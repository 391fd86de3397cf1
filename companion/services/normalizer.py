"""Response normalizer - raw endpoint JSON to validated domain models.

Each endpoint response is parsed into its payload model (companion.models.payloads),
then mapped to the domain:

- extract  -> Recipe (missing title defaults, missing steps -> incomplete recipe)
- caption  -> Caption (caption key required, tags cleaned)
- mealplan -> MealPlan (always 7 days; duplicates collapse to last occurrence)
- scan     -> ScanResult (entries without a title are dropped)

Every failure raises ValidationError naming the first offending field as a dotted
path, e.g. "days.2.meals.0.servings".
"""

import uuid
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from companion.models.errors import ValidationError
from companion.models.models import (
    UNTITLED_RECIPE,
    WEEK,
    Caption,
    Ingredient,
    MealDay,
    MealPlan,
    PlannedMeal,
    Recipe,
    ScanResult,
    ScanSuggestion,
    Weekday,
)
from companion.models.payloads import (
    PAYLOAD_MODELS,
    CaptionPayload,
    Endpoint,
    ExtractPayload,
    IngredientItem,
    MealPlanPayload,
    ScanPayload,
)
from companion.services.ingredient_parser import parse_ingredient_line
from companion.services.shopping import consolidate, consolidate_recipes
from companion.utils.logger import logger


NormalizedResponse = Union[Recipe, Caption, MealPlan, ScanResult]

NUTRIENT_ALIASES = {
    "kcal": "calories",
    "energy": "calories",
    "calorie": "calories",
    "protein": "protein_g",
    "carbs": "carbs_g",
    "carbohydrates": "carbs_g",
    "carbohydrate": "carbs_g",
    "fat": "fat_g",
    "fats": "fat_g",
    "fiber": "fiber_g",
    "fibre": "fiber_g",
    "sugar": "sugar_g",
    "sodium": "sodium_mg",
}

# Appliance keywords looked up in step text when a payload does not list appliances.
# Longer names first so "pressure cooker" is not also counted as a plain "cooker".
APPLIANCE_KEYWORDS = (
    "air fryer",
    "food processor",
    "slow cooker",
    "pressure cooker",
    "stand mixer",
    "microwave",
    "blender",
    "oven",
    "grill",
)


def _field_path(loc: Iterable[Any]) -> str:
    return ".".join(str(part) for part in loc) or "<root>"


def parse_payload(endpoint: Endpoint, payload: Any) -> BaseModel:
    """Validate raw JSON against the endpoint's payload model.

    Raises:
        ValidationError: Naming the first offending field.
    """
    if not isinstance(payload, dict):
        raise ValidationError("<root>", f"expected a JSON object, got {type(payload).__name__}")
    try:
        return PAYLOAD_MODELS[endpoint].model_validate(payload)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = _field_path(first["loc"])
        logger.debug(f"{endpoint.value} payload rejected at {field}: {first['msg']}")
        raise ValidationError(field, first["msg"]) from e


def _to_ingredients(items: Iterable[IngredientItem]) -> List[Ingredient]:
    ingredients = []
    for item in items:
        if item.raw is not None:
            ingredient = parse_ingredient_line(item.raw)
        elif item.name and item.name.strip():
            ingredient = Ingredient(name=item.name, quantity=item.quantity, unit=item.unit)
        else:
            ingredient = None
        if ingredient is not None:
            ingredients.append(ingredient)
    return ingredients


def _canonical_nutrients(nutrition: Optional[Dict[str, Optional[float]]]) -> Optional[Dict[str, float]]:
    if nutrition is None:
        return None
    nutrients: Dict[str, float] = {}
    for key, value in nutrition.items():
        if value is None:
            # Unparseable: unknown, not zero
            continue
        name = key.strip().lower().replace(" ", "_")
        nutrients[NUTRIENT_ALIASES.get(name, name)] = value
    return nutrients or None


def infer_appliances(steps: Iterable[str]) -> List[str]:
    """Appliances mentioned in step text, in first-mention order."""
    found: List[str] = []
    for step in steps:
        text = step.lower()
        for keyword in APPLIANCE_KEYWORDS:
            if keyword in text and keyword not in found:
                found.append(keyword)
    return found


def normalize_extract(payload: Any, source_url: Optional[str] = None) -> Recipe:
    """Normalize an /extract response into a Recipe.

    A missing title becomes "Untitled Recipe". Missing or empty steps produce an
    incomplete Recipe; callers must check is_complete_recipe before cook mode.

    Args:
        payload: Decoded JSON body.
        source_url: URL the extraction was requested for (used when the body has none).
    """
    data: ExtractPayload = parse_payload(Endpoint.EXTRACT, payload)

    title = (data.title or "").strip() or UNTITLED_RECIPE
    steps = [step.strip() for step in data.steps if step.strip()]
    appliances = data.appliances if data.appliances is not None else infer_appliances(steps)

    recipe = Recipe(
        id=(data.id or "").strip() or uuid.uuid4().hex,
        title=title,
        ingredients=_to_ingredients(data.shopping_list),
        steps=steps,
        time_estimate_minutes=data.time_estimate,
        nutrients=_canonical_nutrients(data.nutrition),
        source_url=data.source_url or source_url,
        appliances=appliances,
    )
    if not recipe.is_complete:
        logger.warning(f"Extracted recipe '{recipe.title}' has no steps; marked incomplete")
    return recipe


def clean_tags(tags: Iterable[str]) -> List[str]:
    """Strip '#' and whitespace, drop blanks and case-insensitive duplicates."""
    cleaned: List[str] = []
    seen = set()
    for tag in tags:
        text = tag.strip().lstrip("#").strip()
        if text and text.lower() not in seen:
            seen.add(text.lower())
            cleaned.append(text)
    return cleaned


def normalize_caption(payload: Any) -> Caption:
    """Normalize a /caption response. An empty caption is valid; an absent one is not."""
    data: CaptionPayload = parse_payload(Endpoint.CAPTION, payload)
    return Caption(caption=data.caption.strip(), tags=clean_tags(data.tags))


def _resolve_title(title: str, pool_index: Dict[str, Recipe], field: str) -> Recipe:
    recipe = pool_index.get(title.strip().lower())
    if recipe is None:
        raise ValidationError(field, f"recipe {title!r} is not in the recipe pool")
    return recipe


def normalize_mealplan(payload: Any, pool: Optional[Iterable[Recipe]] = None) -> MealPlan:
    """Normalize a /mealplan response into a 7-day MealPlan.

    Fewer than 7 days are padded with empty days. Duplicate weekdays collapse to
    the last occurrence and a warning is attached to the plan.

    With a recipe pool, meal titles (or ids) must resolve to pool recipes and the
    shopping list is recomputed from the days. Without one, meals keep whatever
    recipe id the server sent (possibly none) and the server's shopping list
    lines are consolidated as given.
    """
    data: MealPlanPayload = parse_payload(Endpoint.MEALPLAN, payload)

    pool_list = list(pool) if pool is not None else None
    by_title: Dict[str, Recipe] = {}
    by_id: Dict[str, Recipe] = {}
    if pool_list is not None:
        for recipe in pool_list:
            by_title.setdefault(recipe.title.strip().lower(), recipe)
            by_id.setdefault(recipe.id, recipe)

    warnings: List[str] = []
    days: Dict[Weekday, MealDay] = {}
    resolved: Dict[Weekday, List[Tuple[Recipe, int]]] = {}

    for day_index, day in enumerate(data.days):
        meals = []
        day_recipes = []
        for meal_index, meal in enumerate(day.meals):
            servings = int(meal.servings) if meal.servings is not None else 1
            if pool_list is None:
                meals.append(PlannedMeal(recipe_id=meal.recipe_id, title=meal.title, servings=servings))
                continue
            recipe = by_id.get(meal.recipe_id) if meal.recipe_id else None
            if recipe is None:
                recipe = _resolve_title(meal.title, by_title, f"days.{day_index}.meals.{meal_index}.title")
            meals.append(PlannedMeal(recipe_id=recipe.id, title=recipe.title, servings=servings))
            day_recipes.append((recipe, servings))

        if day.day in days:
            message = f"duplicate day {day.day.value}: kept last occurrence"
            warnings.append(message)
            logger.warning(f"Meal plan normalization: {message}")
        days[day.day] = MealDay(day=day.day, meals=meals)
        resolved[day.day] = day_recipes

    missing = [weekday for weekday in WEEK if weekday not in days]
    if missing:
        message = f"plan covered {7 - len(missing)} day(s); padded {', '.join(d.value for d in missing)} with no meals"
        warnings.append(message)
        logger.info(f"Meal plan normalization: {message}")

    ordered_days = [days.get(weekday, MealDay(day=weekday)) for weekday in WEEK]

    if pool_list is not None:
        shopping_list = consolidate_recipes(
            pair for weekday in WEEK for pair in resolved.get(weekday, [])
        )
    else:
        shopping_list = consolidate((ingredient, 1) for ingredient in _to_ingredients(data.shopping_list))

    return MealPlan(days=ordered_days, shopping_list=shopping_list, warnings=warnings)


def normalize_scan(payload: Any) -> ScanResult:
    """Normalize a /scan response. Suggestions with an empty title are dropped silently."""
    data: ScanPayload = parse_payload(Endpoint.SCAN, payload)
    suggestions = [
        ScanSuggestion(
            title=item.title.strip(),
            matched_ingredients=[name.strip() for name in item.matched_ingredients if name.strip()],
        )
        for item in data.recipes
        if item.title and item.title.strip()
    ]
    detected = [name.strip() for name in data.ingredients if name.strip()]
    return ScanResult(suggestions=suggestions, detected_ingredients=detected)


def normalize(
    endpoint: Union[Endpoint, str],
    payload: Any,
    *,
    pool: Optional[Iterable[Recipe]] = None,
    source_url: Optional[str] = None,
) -> NormalizedResponse:
    """Normalize a raw endpoint payload into its domain type.

    Args:
        endpoint: Endpoint (or its name) the payload came from.
        payload: Decoded JSON body.
        pool: Recipe pool the plan was requested for (mealplan only).
        source_url: URL the recipe was extracted from (extract only).

    Raises:
        ValidationError: If the payload is structurally wrong or a domain model
            rejects a mapped value.
        ValueError: If endpoint is not one of the four endpoints.
    """
    endpoint = Endpoint(endpoint)
    try:
        if endpoint == Endpoint.EXTRACT:
            return normalize_extract(payload, source_url=source_url)
        if endpoint == Endpoint.CAPTION:
            return normalize_caption(payload)
        if endpoint == Endpoint.MEALPLAN:
            return normalize_mealplan(payload, pool=pool)
        return normalize_scan(payload)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = _field_path(first["loc"])
        logger.debug(f"{endpoint.value} domain mapping rejected at {field}: {first['msg']}")
        raise ValidationError(field, first["msg"]) from e
