"""Domain models for the cooking companion core.

Canonical types shared by the normalizer, the meal plan assembler, the shopping
list consolidator and the cook session. All models use Pydantic v2 and are
frozen: instances are replaced wholesale, never patched in place.
"""

from enum import Enum
from typing import Annotated, Any, Dict, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


NutrientProfile = Dict[str, Annotated[float, Field(ge=0)]]
"""Nutrient name -> non-negative amount. Missing keys mean unknown, not zero."""

UNTITLED_RECIPE = "Untitled Recipe"


class Weekday(str, Enum):
    """Days of the planning week, in plan order."""

    MON = "Mon"
    TUE = "Tue"
    WED = "Wed"
    THU = "Thu"
    FRI = "Fri"
    SAT = "Sat"
    SUN = "Sun"

    @classmethod
    def parse(cls, value: str) -> "Weekday":
        """Parse short or long English day names, case-insensitive."""
        text = str(value).strip().lower()
        for day in cls:
            if text[:3] == day.value.lower() and day.long_name.lower().startswith(text):
                return day
        raise ValueError(f"Unknown weekday: {value!r}")

    @property
    def long_name(self) -> str:
        return {
            "Mon": "Monday",
            "Tue": "Tuesday",
            "Wed": "Wednesday",
            "Thu": "Thursday",
            "Fri": "Friday",
            "Sat": "Saturday",
            "Sun": "Sunday",
        }[self.value]


WEEK: List[Weekday] = list(Weekday)


class Ingredient(BaseModel):
    """A recipe ingredient. Equality for shopping purposes is by ingredient_key."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    name: Annotated[str, Field(min_length=1, description="Ingredient name (case-insensitive key)")]
    quantity: Annotated[Optional[float], Field(None, ge=0, description="Amount, or None if unspecified")]
    unit: Annotated[Optional[str], Field(None, description="Measurement unit, or None")]

    @field_validator("unit", mode="before")
    @classmethod
    def blank_unit_is_none(cls, unit: Any) -> Optional[str]:
        if unit is None:
            return None
        unit = str(unit).strip()
        return unit or None


def ingredient_key(ingredient: Ingredient) -> str:
    """Normalized identity of an ingredient: lower-cased, trimmed name."""
    return ingredient.name.strip().lower()


class Recipe(BaseModel):
    """Domain model for a recipe.

    A recipe with zero steps may exist transiently (e.g. a partial extraction)
    but is not complete and must never start a cook session.
    """

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: Annotated[str, Field(min_length=1, description="Identifier, unique within a user session")]
    title: Annotated[str, Field(min_length=1, description="Recipe title")]
    ingredients: Annotated[List[Ingredient], Field(default_factory=list)]
    steps: Annotated[List[str], Field(default_factory=list, description="Ordered cooking steps")]
    time_estimate_minutes: Annotated[Optional[float], Field(None, ge=0)]
    nutrients: Annotated[Optional[NutrientProfile], Field(None)]
    source_url: Annotated[Optional[str], Field(None)]
    appliances: Annotated[
        List[str], Field(default_factory=list, description="Appliances the recipe needs (lower-cased)")
    ]

    @field_validator("steps", mode="before")
    @classmethod
    def drop_blank_steps(cls, steps: Any) -> Any:
        if isinstance(steps, list):
            return [step for step in steps if not isinstance(step, str) or step.strip()]
        return steps

    @field_validator("appliances", mode="before")
    @classmethod
    def normalize_appliances(cls, appliances: Any) -> Any:
        if isinstance(appliances, (list, tuple, set, frozenset)):
            seen = []
            for appliance in appliances:
                name = str(appliance).strip().lower()
                if name and name not in seen:
                    seen.append(name)
            return seen
        return appliances

    @property
    def is_complete(self) -> bool:
        return is_complete_recipe(self)

    @property
    def calories(self) -> Optional[float]:
        if not self.nutrients:
            return None
        return self.nutrients.get("calories")

    def to_request_dict(self) -> dict:
        """Recipe-like body used in /mealplan requests."""
        return {
            "id": self.id,
            "title": self.title,
            "ingredients": [ingredient.model_dump() for ingredient in self.ingredients],
            "nutrients": dict(self.nutrients) if self.nutrients else None,
        }


def is_complete_recipe(recipe: Recipe) -> bool:
    """True iff the recipe has a non-empty title and at least one step."""
    return len(recipe.steps) >= 1 and bool(recipe.title.strip())


class PlannedMeal(BaseModel):
    """A recipe reference with servings inside a MealDay.

    recipe_id is None only for server plans normalized without a recipe pool.
    """

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    recipe_id: Optional[str] = None
    title: Annotated[str, Field(min_length=1)]
    servings: Annotated[int, Field(1, ge=1)]


class MealDay(BaseModel):
    model_config = ConfigDict(frozen=True)

    day: Weekday
    meals: Annotated[List[PlannedMeal], Field(default_factory=list)]


class ShoppingListEntry(BaseModel):
    """One consolidated shopping list line.

    total_quantity and unit are both None when contributions could not be summed
    (unit mismatch or unknown quantity); the entry is still listed.
    """

    model_config = ConfigDict(frozen=True)

    name: Annotated[str, Field(min_length=1)]
    total_quantity: Optional[float] = None
    unit: Optional[str] = None
    source_count: Annotated[int, Field(ge=1, description="Number of (ingredient, servings) contributions")]

    @property
    def quantity_varies(self) -> bool:
        return self.total_quantity is None

    def label(self) -> str:
        """Human-readable line for display."""
        if self.total_quantity is None:
            if self.source_count > 1:
                return f"{self.name} (quantity varies, check recipe)"
            return self.name
        quantity = f"{self.total_quantity:g}"
        if self.unit:
            return f"{quantity} {self.unit} {self.name}"
        return f"{quantity} {self.name}"


class MealPlan(BaseModel):
    """A 7-day plan, one MealDay per weekday in Mon..Sun order.

    shopping_list is always derived from days by the consolidator; build a new
    plan to change it.
    """

    model_config = ConfigDict(frozen=True)

    days: List[MealDay]
    shopping_list: Annotated[List[ShoppingListEntry], Field(default_factory=list)]
    warnings: Annotated[List[str], Field(default_factory=list)]

    @model_validator(mode="after")
    def validate_week(self) -> "MealPlan":
        """Ensure exactly one entry per weekday, in week order."""
        days = [meal_day.day for meal_day in self.days]
        if days != WEEK:
            raise ValueError(f"MealPlan needs exactly one entry per weekday in order Mon..Sun, got {days}")
        return self

    def day(self, weekday: Weekday) -> MealDay:
        return self.days[WEEK.index(weekday)]

    def recipe_ids(self) -> List[str]:
        """Referenced recipe ids in plan order (repeats included)."""
        return [meal.recipe_id for day in self.days for meal in day.meals if meal.recipe_id]


class KitchenProfile(BaseModel):
    """Appliances and utensils available to the user. Names are lower-cased."""

    model_config = ConfigDict(frozen=True)

    appliances: FrozenSet[str] = frozenset()
    utensils: FrozenSet[str] = frozenset()

    @field_validator("appliances", "utensils", mode="before")
    @classmethod
    def normalize_names(cls, names: Any) -> Any:
        if names is None:
            return frozenset()
        if isinstance(names, str):
            names = names.split(",")
        if isinstance(names, (list, tuple, set, frozenset)):
            return frozenset(str(name).strip().lower() for name in names if str(name).strip())
        return names

    @classmethod
    def default(cls) -> "KitchenProfile":
        """Starter profile offered to new users."""
        return cls(appliances={"pan", "oven"}, utensils={"knife", "cutting board"})

    def has_appliance(self, name: str) -> bool:
        return name.strip().lower() in self.appliances


class PlanPreferences(BaseModel):
    """Constraints for the meal plan assembler."""

    model_config = ConfigDict(frozen=True)

    calories_target: Annotated[float, Field(gt=0, description="Daily calorie target")]
    avoid: FrozenSet[str] = frozenset()
    kitchen: KitchenProfile = Field(default_factory=KitchenProfile)
    servings: Annotated[int, Field(1, ge=1, description="Servings per planned meal")]

    @field_validator("avoid", mode="before")
    @classmethod
    def normalize_avoid(cls, avoid: Any) -> Any:
        if avoid is None:
            return frozenset()
        if isinstance(avoid, str):
            avoid = avoid.split(",")
        if isinstance(avoid, (list, tuple, set, frozenset)):
            return frozenset(str(term).strip().lower() for term in avoid if str(term).strip())
        return avoid


class Caption(BaseModel):
    """Normalized /caption response."""

    model_config = ConfigDict(frozen=True)

    caption: str
    tags: Annotated[List[str], Field(default_factory=list)]


class ScanSuggestion(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    title: Annotated[str, Field(min_length=1)]
    matched_ingredients: Annotated[List[str], Field(default_factory=list)]


class ScanResult(BaseModel):
    """Normalized /scan response: recipe suggestions in server order."""

    model_config = ConfigDict(frozen=True)

    suggestions: Annotated[List[ScanSuggestion], Field(default_factory=list)]
    detected_ingredients: Annotated[List[str], Field(default_factory=list)]
