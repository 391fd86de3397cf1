"""Meal plan assembler - greedy constraint satisfaction over a recipe pool.

Deterministic and explainable rather than exact-optimal:

1. Filter: drop recipes with an avoided ingredient (case-insensitive substring
   of the ingredient name) and incomplete recipes.
2. Score: absolute distance between the recipe's calories and the per-meal
   target (daily target / meals per day). Recipes without calories get a fixed
   penalty above the worst scored distance.
3. Demote: recipes needing an appliance the kitchen lacks get an extra fixed
   penalty (soft demotion, never exclusion). It is added after step 2, so a
   far-off scored recipe that is also demoted can land behind a calorie-less
   recipe the kitchen can cook.
4. Pick: each day takes the lowest-penalty unused recipe; once every usable
   recipe is used the week starts repeating in rank order, so no day is empty.
5. Shopping list: consolidated from the seven picks.
"""

from typing import Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from companion.models.errors import EmptyPoolError, ValidationError
from companion.models.models import (
    WEEK,
    MealDay,
    MealPlan,
    PlannedMeal,
    PlanPreferences,
    Recipe,
    Weekday,
    ingredient_key,
    is_complete_recipe,
)
from companion.services.shopping import consolidate_recipes
from companion.utils.config import config
from companion.utils.logger import logger


class RankedRecipe(BaseModel):
    """A usable recipe with the penalty breakdown that placed it."""

    model_config = ConfigDict(frozen=True)

    recipe: Recipe
    penalty: float
    calorie_distance: Optional[float]
    missing_appliances: List[str]
    pool_index: int


def avoided_terms(recipe: Recipe, avoid: Iterable[str]) -> List[str]:
    """Avoid terms found in any of the recipe's ingredient names."""
    names = [ingredient_key(ingredient) for ingredient in recipe.ingredients]
    return [term for term in avoid if term and any(term in name for name in names)]


def filter_pool(pool: Iterable[Recipe], preferences: PlanPreferences) -> List[Tuple[int, Recipe]]:
    """Usable recipes with their original pool position."""
    usable = []
    for index, recipe in enumerate(pool):
        if not is_complete_recipe(recipe):
            logger.debug(f"Planner: skipping incomplete recipe '{recipe.title}'")
            continue
        hits = avoided_terms(recipe, preferences.avoid)
        if hits:
            logger.debug(f"Planner: skipping '{recipe.title}' (avoid: {', '.join(hits)})")
            continue
        usable.append((index, recipe))
    return usable


def rank_recipes(
    pool: Iterable[Recipe],
    preferences: PlanPreferences,
    meals_per_day: Optional[int] = None,
) -> List[RankedRecipe]:
    """Score and order the usable recipes of a pool, lowest penalty first.

    Ties keep pool order.

    Args:
        pool: Candidate recipes.
        preferences: Calorie target, avoid list and kitchen profile.
        meals_per_day: Divisor for the per-meal calorie target. Defaults to MEALS_PER_DAY (3).
    """
    meals_per_day = meals_per_day or config.MEALS_PER_DAY
    if meals_per_day < 1:
        raise ValueError(f"meals_per_day must be at least 1, got: {meals_per_day}")
    per_meal_target = preferences.calories_target / meals_per_day

    usable = filter_pool(pool, preferences)
    distances = {
        index: abs(recipe.calories - per_meal_target)
        for index, recipe in usable
        if recipe.calories is not None
    }
    worst = max(distances.values(), default=0.0)
    unscored_penalty = max(config.MISSING_CALORIES_PENALTY, worst + 1)

    ranked = []
    for index, recipe in usable:
        distance = distances.get(index)
        penalty = distance if distance is not None else unscored_penalty
        missing = [name for name in recipe.appliances if not preferences.kitchen.has_appliance(name)]
        if missing:
            penalty += config.APPLIANCE_PENALTY
        ranked.append(
            RankedRecipe(
                recipe=recipe,
                penalty=penalty,
                calorie_distance=distance,
                missing_appliances=missing,
                pool_index=index,
            )
        )

    ranked.sort(key=lambda item: (item.penalty, item.pool_index))
    return ranked


def assemble(
    pool: Iterable[Recipe],
    preferences: PlanPreferences,
    *,
    meals_per_day: Optional[int] = None,
) -> MealPlan:
    """Build a 7-day MealPlan from a recipe pool.

    Raises:
        EmptyPoolError: If no recipe survives filtering. No partial plan is returned.
    """
    pool = list(pool)
    ranked = rank_recipes(pool, preferences, meals_per_day)
    if not ranked:
        logger.warning(f"Planner: no usable recipes in a pool of {len(pool)}")
        raise EmptyPoolError(len(pool))

    # Cycling through the ranking is the same as "lowest-penalty unused recipe"
    # with the used set reset once everything has been used.
    picks = [ranked[day_index % len(ranked)].recipe for day_index in range(len(WEEK))]
    days = [
        MealDay(
            day=weekday,
            meals=[PlannedMeal(recipe_id=recipe.id, title=recipe.title, servings=preferences.servings)],
        )
        for weekday, recipe in zip(WEEK, picks)
    ]

    warnings = []
    if len(ranked) < len(WEEK):
        warnings.append(f"only {len(ranked)} usable recipe(s); some days repeat")
    shopping_list = consolidate_recipes((recipe, preferences.servings) for recipe in picks)

    logger.info(
        f"Planner: assembled week from {len(ranked)}/{len(pool)} usable recipes, "
        f"{len(shopping_list)} shopping list item(s)"
    )
    return MealPlan(days=days, shopping_list=shopping_list, warnings=warnings)


def rebuild_shopping_list(plan: MealPlan, pool: Iterable[Recipe]) -> MealPlan:
    """Recompute a plan's shopping list from its days.

    Raises:
        ValidationError: If the plan references a recipe that is not in the pool.
    """
    by_id = {recipe.id: recipe for recipe in pool}
    pairs = []
    for day_index, day in enumerate(plan.days):
        for meal_index, meal in enumerate(day.meals):
            recipe = by_id.get(meal.recipe_id) if meal.recipe_id else None
            if recipe is None:
                raise ValidationError(
                    f"days.{day_index}.meals.{meal_index}.recipe_id",
                    f"recipe {meal.title!r} is not in the recipe pool",
                )
            pairs.append((recipe, meal.servings))
    return plan.model_copy(update={"shopping_list": consolidate_recipes(pairs)})


def replace_meal(
    plan: MealPlan,
    day: Weekday,
    recipe: Recipe,
    pool: Iterable[Recipe],
    servings: int = 1,
) -> MealPlan:
    """Return a new plan with one day's meals replaced by a single recipe.

    The shopping list is recomputed; the original plan is left untouched.

    Raises:
        ValidationError: If the recipe is not in the pool or is incomplete,
            or servings is below 1.
    """
    pool = list(pool)
    if recipe.id not in {candidate.id for candidate in pool}:
        raise ValidationError("recipe", f"recipe {recipe.title!r} is not in the recipe pool")
    if not is_complete_recipe(recipe):
        raise ValidationError("recipe", f"recipe {recipe.title!r} has no steps")
    if servings < 1:
        raise ValidationError("servings", f"servings must be at least 1, got {servings}")

    day = Weekday(day)
    days = [
        MealDay(day=meal_day.day, meals=[PlannedMeal(recipe_id=recipe.id, title=recipe.title, servings=servings)])
        if meal_day.day == day
        else meal_day
        for meal_day in plan.days
    ]
    logger.info(f"Planner: {day.value} now '{recipe.title}'")
    return rebuild_shopping_list(MealPlan(days=days, warnings=plan.warnings), pool)
