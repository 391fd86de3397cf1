"""Unit tests for domain models and the error taxonomy."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from companion.models.errors import (
    CompanionError,
    EmptyPoolError,
    OutOfRangeError,
    RequestError,
    RequestErrorKind,
    ValidationError,
)
from companion.models.models import (
    WEEK,
    Ingredient,
    KitchenProfile,
    MealDay,
    MealPlan,
    PlannedMeal,
    PlanPreferences,
    Recipe,
    ShoppingListEntry,
    Weekday,
    ingredient_key,
    is_complete_recipe,
)


def week(**meals_by_day):
    return [MealDay(day=day, meals=meals_by_day.get(day.value, [])) for day in WEEK]


class TestWeekday:
    """Test weekday parsing and ordering."""

    @pytest.mark.parametrize("text", ["Mon", "mon", "MONDAY", " Monday ", "mond"])
    def test_parse_accepts_short_and_long_names(self, text):
        assert Weekday.parse(text) == Weekday.MON

    @pytest.mark.parametrize("text", ["", "mo", "Funday", "Mondays"])
    def test_parse_rejects_unknown_names(self, text):
        with pytest.raises(ValueError, match="Unknown weekday"):
            Weekday.parse(text)

    def test_week_order_is_mon_to_sun(self):
        assert [day.value for day in WEEK] == ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
        assert Weekday.THU.long_name == "Thursday"


class TestIngredient:
    """Test Ingredient validation."""

    def test_blank_unit_becomes_none(self):
        assert Ingredient(name="salt", unit="  ").unit is None

    def test_name_is_stripped_and_required(self):
        assert Ingredient(name="  Egg ").name == "Egg"
        with pytest.raises(PydanticValidationError):
            Ingredient(name="   ")

    def test_negative_quantity_rejected(self):
        with pytest.raises(PydanticValidationError):
            Ingredient(name="egg", quantity=-1)

    def test_ingredient_key_is_case_insensitive(self):
        assert ingredient_key(Ingredient(name="Egg")) == ingredient_key(Ingredient(name="egg"))


class TestRecipe:
    """Test Recipe validation and completeness."""

    def test_recipe_without_steps_is_incomplete(self):
        recipe = Recipe(id="r1", title="Draft")
        assert recipe.steps == []
        assert recipe.is_complete is False
        assert is_complete_recipe(recipe) is False

    def test_blank_steps_are_dropped(self):
        recipe = Recipe(id="r1", title="Toast", steps=["", "  ", "Toast the bread."])
        assert recipe.steps == ["Toast the bread."]
        assert recipe.is_complete is True

    def test_negative_nutrient_rejected(self):
        with pytest.raises(PydanticValidationError):
            Recipe(id="r1", title="Bad", steps=["x"], nutrients={"calories": -5})

    def test_calories_property(self):
        assert Recipe(id="r1", title="A", nutrients={"calories": 420}).calories == 420
        assert Recipe(id="r2", title="B", nutrients={"protein_g": 12}).calories is None
        assert Recipe(id="r3", title="C").calories is None

    def test_appliances_are_lower_cased_and_deduplicated(self):
        recipe = Recipe(id="r1", title="Bake", appliances=["Oven", "oven ", "Blender", ""])
        assert recipe.appliances == ["oven", "blender"]

    def test_recipe_is_frozen(self):
        recipe = Recipe(id="r1", title="A", steps=["x"])
        with pytest.raises(PydanticValidationError):
            recipe.title = "B"

    def test_to_request_dict(self):
        recipe = Recipe(
            id="r1",
            title="Omelette",
            ingredients=[Ingredient(name="egg", quantity=2)],
            steps=["Whisk."],
            nutrients={"calories": 300},
        )
        assert recipe.to_request_dict() == {
            "id": "r1",
            "title": "Omelette",
            "ingredients": [{"name": "egg", "quantity": 2.0, "unit": None}],
            "nutrients": {"calories": 300.0},
        }


class TestMealPlan:
    """Test the seven-day invariant of MealPlan."""

    def test_valid_week(self):
        plan = MealPlan(days=week(Mon=[PlannedMeal(recipe_id="r1", title="Omelette")]))
        assert len(plan.days) == 7
        assert plan.day(Weekday.MON).meals[0].title == "Omelette"
        assert plan.recipe_ids() == ["r1"]

    def test_missing_day_rejected(self):
        with pytest.raises(PydanticValidationError, match="exactly one entry per weekday"):
            MealPlan(days=week()[:6])

    def test_out_of_order_days_rejected(self):
        days = week()
        days[0], days[1] = days[1], days[0]
        with pytest.raises(PydanticValidationError):
            MealPlan(days=days)

    def test_servings_must_be_positive(self):
        with pytest.raises(PydanticValidationError):
            PlannedMeal(title="Omelette", servings=0)


class TestShoppingListEntry:
    """Test display labels."""

    def test_label_with_quantity_and_unit(self):
        assert ShoppingListEntry(name="flour", total_quantity=2.5, unit="cup", source_count=2).label() == "2.5 cup flour"

    def test_label_without_unit(self):
        assert ShoppingListEntry(name="Egg", total_quantity=7, source_count=3).label() == "7 Egg"

    def test_label_when_quantity_varies(self):
        entry = ShoppingListEntry(name="salt", source_count=2)
        assert entry.quantity_varies is True
        assert entry.label() == "salt (quantity varies, check recipe)"

    def test_single_unknown_quantity_is_plain_name(self):
        assert ShoppingListEntry(name="salt", source_count=1).label() == "salt"


class TestKitchenAndPreferences:
    """Test kitchen profile and plan preferences normalization."""

    def test_default_kitchen_profile(self):
        kitchen = KitchenProfile.default()
        assert kitchen.appliances == frozenset({"pan", "oven"})
        assert kitchen.utensils == frozenset({"knife", "cutting board"})
        assert kitchen.has_appliance("Oven")
        assert not kitchen.has_appliance("blender")

    def test_comma_separated_names(self):
        kitchen = KitchenProfile(appliances="Oven, Air Fryer,")
        assert kitchen.appliances == frozenset({"oven", "air fryer"})

    def test_avoid_terms_lower_cased(self):
        preferences = PlanPreferences(calories_target=2000, avoid=["Peanut", " shrimp ", ""])
        assert preferences.avoid == frozenset({"peanut", "shrimp"})

    def test_calories_target_must_be_positive(self):
        with pytest.raises(PydanticValidationError):
            PlanPreferences(calories_target=0)


class TestErrors:
    """Test the error taxonomy."""

    def test_validation_error_names_field(self):
        error = ValidationError("days.2.meals.0.servings", "must be at least 1")
        assert error.field == "days.2.meals.0.servings"
        assert str(error) == "days.2.meals.0.servings: must be at least 1"
        assert isinstance(error, CompanionError)
        assert isinstance(error, ValueError)

    def test_request_error_fields(self):
        error = RequestError(RequestErrorKind.TIMEOUT, 3, endpoint="extract")
        assert error.kind == RequestErrorKind.TIMEOUT
        assert error.attempts == 3
        assert "extract failed (timeout)" in str(error)
        assert "attempts=3" in str(error)

    @pytest.mark.parametrize(
        "kind,status,retryable",
        [
            (RequestErrorKind.TIMEOUT, None, True),
            (RequestErrorKind.NETWORK_ERROR, None, True),
            (RequestErrorKind.SERVER_ERROR, 503, True),
            (RequestErrorKind.SERVER_ERROR, 404, False),
            (RequestErrorKind.VALIDATION_ERROR, None, False),
        ],
    )
    def test_retryable(self, kind, status, retryable):
        assert RequestError(kind, 1, status=status).retryable is retryable

    def test_empty_pool_error(self):
        error = EmptyPoolError(4)
        assert error.pool_size == 4
        assert "pool of 4" in str(error)

    def test_out_of_range_error_is_index_error(self):
        error = OutOfRangeError(9, 3)
        assert isinstance(error, IndexError)
        assert (error.index, error.size) == (9, 3)
