"""Unit tests for the meal plan assembler."""

import pytest

from companion.models.errors import EmptyPoolError, ValidationError
from companion.models.models import WEEK, KitchenProfile, PlanPreferences, Weekday
from companion.services.planner import assemble, rank_recipes, rebuild_shopping_list, replace_meal


@pytest.fixture
def preferences():
    # 1800 kcal/day over 3 meals -> 600 kcal per meal
    return PlanPreferences(calories_target=1800, kitchen=KitchenProfile.default())


class TestRankRecipes:
    """Test scoring and ordering of the pool."""

    def test_closest_to_per_meal_target_first(self, make_recipe, preferences):
        pool = [
            make_recipe("Big", calories=1200),
            make_recipe("Close", calories=620),
            make_recipe("Small", calories=300),
        ]
        ranked = rank_recipes(pool, preferences)
        assert [item.recipe.title for item in ranked] == ["Close", "Small", "Big"]
        assert ranked[0].calorie_distance == 20

    def test_recipes_without_calories_rank_last(self, make_recipe, preferences):
        pool = [make_recipe("Unknown"), make_recipe("Far", calories=5000)]
        ranked = rank_recipes(pool, preferences)
        assert [item.recipe.title for item in ranked] == ["Far", "Unknown"]
        assert ranked[1].calorie_distance is None

    def test_unscored_penalty_exceeds_worst_scored(self, make_recipe, preferences):
        pool = [make_recipe("Huge", calories=50000), make_recipe("Unknown")]
        ranked = rank_recipes(pool, preferences)
        assert ranked[-1].recipe.title == "Unknown"
        assert ranked[-1].penalty > ranked[0].penalty

    def test_missing_appliance_demotes_but_keeps(self, make_recipe, preferences):
        pool = [
            make_recipe("Blended", calories=600, appliances=["blender"]),
            make_recipe("Baked", calories=700, appliances=["oven"]),
        ]
        ranked = rank_recipes(pool, preferences)
        assert [item.recipe.title for item in ranked] == ["Baked", "Blended"]
        assert ranked[1].missing_appliances == ["blender"]

    def test_demotion_applies_after_calorie_ordering(self, make_recipe, preferences):
        # 9800 kcal off target plus the appliance penalty passes the 10000 unscored penalty
        pool = [
            make_recipe("Far Blended", calories=10400, appliances=["blender"]),
            make_recipe("Unknown"),
        ]
        ranked = rank_recipes(pool, preferences)
        assert [item.recipe.title for item in ranked] == ["Unknown", "Far Blended"]
        assert ranked[0].penalty == 10000
        assert ranked[1].penalty == 9800 + 500

    def test_close_demoted_recipe_still_before_unscored(self, make_recipe, preferences):
        pool = [make_recipe("Unknown"), make_recipe("Blended", calories=650, appliances=["blender"])]
        ranked = rank_recipes(pool, preferences)
        assert [item.recipe.title for item in ranked] == ["Blended", "Unknown"]

    def test_avoided_and_incomplete_recipes_filtered(self, make_recipe):
        preferences = PlanPreferences(calories_target=1800, avoid=["Peanut"])
        pool = [
            make_recipe("Satay", calories=600, ingredients=[("peanut butter", 2, "tbsp")]),
            make_recipe("Draft", calories=600, steps=()),
            make_recipe("Soup", calories=600),
        ]
        assert [item.recipe.title for item in rank_recipes(pool, preferences)] == ["Soup"]

    def test_ties_keep_pool_order(self, make_recipe, preferences):
        pool = [make_recipe("A", calories=500), make_recipe("B", calories=700)]
        assert [item.recipe.title for item in rank_recipes(pool, preferences)] == ["A", "B"]

    def test_meals_per_day_changes_target(self, make_recipe, preferences):
        pool = [make_recipe("Light", calories=600), make_recipe("Heavy", calories=1800)]
        ranked = rank_recipes(pool, preferences, meals_per_day=1)
        assert ranked[0].recipe.title == "Heavy"


class TestAssemble:
    """Test seven-day plan assembly."""

    def test_plan_always_has_seven_days(self, make_recipe, preferences):
        pool = [make_recipe(f"Recipe {i}", calories=600 + i * 10) for i in range(10)]
        plan = assemble(pool, preferences)
        assert [meal_day.day for meal_day in plan.days] == WEEK
        assert all(len(meal_day.meals) == 1 for meal_day in plan.days)
        # Best seven, no repeats
        assert [meal_day.meals[0].title for meal_day in plan.days] == [f"Recipe {i}" for i in range(7)]
        assert plan.warnings == []

    def test_small_pool_repeats_in_rank_order(self, make_recipe, preferences):
        pool = [make_recipe("Second", calories=700), make_recipe("First", calories=600)]
        plan = assemble(pool, preferences)
        titles = [meal_day.meals[0].title for meal_day in plan.days]
        assert titles == ["First", "Second", "First", "Second", "First", "Second", "First"]
        assert plan.warnings == ["only 2 usable recipe(s); some days repeat"]

    def test_shopping_list_follows_picks(self, make_recipe, preferences):
        pool = [make_recipe("Omelette", calories=600, ingredients=[("egg", 2, None), ("salt", None, None)])]
        plan = assemble(pool, preferences)
        assert plan.shopping_list[0].name == "egg"
        assert plan.shopping_list[0].total_quantity == 14
        assert plan.shopping_list[0].source_count == 7
        assert plan.shopping_list[1].total_quantity is None

    def test_servings_from_preferences(self, make_recipe):
        preferences = PlanPreferences(calories_target=1800, servings=2)
        plan = assemble([make_recipe("Omelette", calories=600, ingredients=[("egg", 2, None)])], preferences)
        assert plan.days[0].meals[0].servings == 2
        assert plan.shopping_list[0].total_quantity == 28

    def test_empty_pool_raises(self, preferences):
        with pytest.raises(EmptyPoolError) as exc:
            assemble([], preferences)
        assert exc.value.pool_size == 0

    def test_everything_avoided_raises(self, make_recipe):
        preferences = PlanPreferences(calories_target=1800, avoid={"egg"})
        with pytest.raises(EmptyPoolError):
            assemble([make_recipe("Omelette", ingredients=[("Eggs", 2, None)])], preferences)

    def test_deterministic(self, make_recipe, preferences):
        pool = [make_recipe("A", calories=650), make_recipe("B"), make_recipe("C", calories=580)]
        assert assemble(pool, preferences) == assemble(pool, preferences)


class TestEditing:
    """Test replacing meals and rebuilding the shopping list."""

    def test_replace_meal_recomputes_shopping_list(self, make_recipe, preferences):
        omelette = make_recipe("Omelette", calories=600, ingredients=[("egg", 2, None)])
        salad = make_recipe("Salad", calories=400, ingredients=[("lettuce", 1, None)])
        plan = assemble([omelette], preferences)

        edited = replace_meal(plan, Weekday.WED, salad, [omelette, salad], servings=3)

        assert edited.day(Weekday.WED).meals[0].title == "Salad"
        assert edited.day(Weekday.WED).meals[0].servings == 3
        assert [(entry.name, entry.total_quantity) for entry in edited.shopping_list] == [
            ("egg", 12),
            ("lettuce", 3),
        ]
        # Original plan untouched
        assert plan.day(Weekday.WED).meals[0].title == "Omelette"

    def test_replace_meal_accepts_day_value(self, make_recipe, preferences):
        omelette = make_recipe("Omelette", calories=600)
        salad = make_recipe("Salad", calories=400)
        plan = assemble([omelette], preferences)
        assert replace_meal(plan, "Sun", salad, [omelette, salad]).days[6].meals[0].title == "Salad"

    def test_replace_with_recipe_outside_pool_rejected(self, make_recipe, preferences):
        omelette = make_recipe("Omelette", calories=600)
        plan = assemble([omelette], preferences)
        with pytest.raises(ValidationError) as exc:
            replace_meal(plan, Weekday.MON, make_recipe("Stranger"), [omelette])
        assert exc.value.field == "recipe"

    def test_replace_with_zero_servings_rejected(self, make_recipe, preferences):
        omelette = make_recipe("Omelette", calories=600)
        plan = assemble([omelette], preferences)
        with pytest.raises(ValidationError) as exc:
            replace_meal(plan, Weekday.MON, omelette, [omelette], servings=0)
        assert exc.value.field == "servings"

    def test_rebuild_requires_pool_recipes(self, make_recipe, preferences):
        omelette = make_recipe("Omelette", calories=600)
        plan = assemble([omelette], preferences)
        with pytest.raises(ValidationError) as exc:
            rebuild_shopping_list(plan, [])
        assert exc.value.field == "days.0.meals.0.recipe_id"
