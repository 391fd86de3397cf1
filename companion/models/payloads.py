"""Raw response shapes of the four AI edge endpoints.

One Pydantic model per endpoint (extract, caption, mealplan, scan). These models
only check structure and coerce plausible scalars; domain rules (defaults,
padding, duplicate collapsing, title resolution) live in the normalizer.

Numeric coercion rule shared by every endpoint: a field that is present but is
an object or array is rejected; plausible scalars are coerced.
"""

import re
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field, field_validator, model_validator

from companion.models.models import Weekday


class Endpoint(str, Enum):
    """The four AI-backed endpoints."""

    EXTRACT = "extract"
    CAPTION = "caption"
    MEALPLAN = "mealplan"
    SCAN = "scan"

    @property
    def path(self) -> str:
        return f"/{self.value}"


_LEADING_NUMBER = re.compile(r"^\s*(\d+(?:[.,]\d+)?)")


def _reject_structures(value: Any) -> None:
    if isinstance(value, (dict, list, tuple)):
        raise ValueError(f"expected a scalar, got {type(value).__name__}")


def coerce_number(value: Any) -> Optional[float]:
    """Leniently coerce a scalar to float.

    Strings are parsed by their leading number ("25 min" -> 25.0). Unparseable
    strings and booleans become None. Objects and arrays raise ValueError.
    """
    _reject_structures(value)
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        match = _LEADING_NUMBER.match(value)
        if not match:
            return None
        return float(match.group(1).replace(",", "."))
    return None


def coerce_text(value: Any) -> Any:
    """Turn numeric scalars into strings; leave everything else for type checking."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    return value


def coerce_text_list(value: Any) -> Any:
    """None -> [], comma-separated string -> list, numeric items -> strings."""
    if value is None:
        return []
    if isinstance(value, str):
        return [part for part in value.split(",") if part.strip()]
    if isinstance(value, list):
        return [coerce_text(item) for item in value]
    return value


NonNegative = Annotated[float, Field(ge=0)]
LenientAmount = Annotated[Optional[NonNegative], BeforeValidator(coerce_number)]
LenientServings = Annotated[Optional[Annotated[float, Field(ge=1)]], BeforeValidator(coerce_number)]
Text = Annotated[str, BeforeValidator(coerce_text)]
OptionalText = Annotated[Optional[str], BeforeValidator(coerce_text)]
TextList = Annotated[List[Text], BeforeValidator(coerce_text_list)]


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class IngredientItem(_Payload):
    """A shopping-list item: either a free-text line or a structured object."""

    raw: Optional[str] = None
    name: Annotated[OptionalText, Field(None, validation_alias=AliasChoices("name", "ingredient", "item"))]
    quantity: Annotated[LenientAmount, Field(None, validation_alias=AliasChoices("quantity", "amount", "qty"))]
    unit: OptionalText = None

    @model_validator(mode="before")
    @classmethod
    def from_line(cls, data: Any) -> Any:
        """Accept plain strings as raw ingredient lines."""
        if isinstance(data, str):
            return {"raw": data}
        return data


class ExtractPayload(_Payload):
    """Body of a successful /extract response."""

    id: OptionalText = None
    title: OptionalText = None
    shopping_list: Annotated[
        List[IngredientItem],
        Field(default_factory=list, validation_alias=AliasChoices("shopping_list", "ingredients")),
    ]
    steps: Annotated[List[Text], Field(default_factory=list)]
    time_estimate: Annotated[
        LenientAmount,
        Field(None, validation_alias=AliasChoices("time_estimate", "time_estimate_minutes", "total_time")),
    ]
    nutrition: Annotated[
        Optional[Dict[str, LenientAmount]],
        Field(None, validation_alias=AliasChoices("nutrition", "nutrients")),
    ]
    appliances: Optional[TextList] = None
    source_url: Annotated[
        OptionalText, Field(None, validation_alias=AliasChoices("source_url", "sourceUrl", "url"))
    ]

    @field_validator("title", mode="before")
    @classmethod
    def reject_structured_title(cls, title: Any) -> Any:
        _reject_structures(title)
        return title

    @field_validator("shopping_list", mode="before")
    @classmethod
    def default_shopping_list(cls, items: Any) -> Any:
        return [] if items is None else items

    @field_validator("steps", mode="before")
    @classmethod
    def split_steps(cls, steps: Any) -> Any:
        """None -> [], a single block of text -> one step per line."""
        if steps is None:
            return []
        if isinstance(steps, str):
            return [line for line in steps.splitlines() if line.strip()]
        if isinstance(steps, list):
            return [_step_text(step) for step in steps]
        return steps

    @field_validator("nutrition", mode="before")
    @classmethod
    def scalar_nutrition_is_unknown(cls, nutrition: Any) -> Any:
        if isinstance(nutrition, (list, tuple)):
            raise ValueError("expected an object of nutrient values")
        if not isinstance(nutrition, dict):
            return None
        return nutrition


def _step_text(step: Any) -> Any:
    """Steps sometimes arrive as {"text": ...} objects."""
    if isinstance(step, dict):
        for key in ("text", "step", "instruction"):
            if isinstance(step.get(key), str):
                return step[key]
    return coerce_text(step)


class CaptionPayload(_Payload):
    """Body of a successful /caption response. The caption key is required."""

    caption: Text
    tags: Annotated[TextList, Field(default_factory=list)]


class MealPayload(_Payload):
    title: Annotated[Text, Field(min_length=1, validation_alias=AliasChoices("title", "name", "recipe"))]
    recipe_id: Annotated[OptionalText, Field(None, validation_alias=AliasChoices("recipe_id", "recipeId", "id"))]
    servings: LenientServings = None

    @field_validator("title", mode="after")
    @classmethod
    def strip_title(cls, title: str) -> str:
        title = title.strip()
        if not title:
            raise ValueError("meal title must not be blank")
        return title


class DayPayload(_Payload):
    day: Weekday
    meals: Annotated[List[MealPayload], Field(default_factory=list)]

    @field_validator("day", mode="before")
    @classmethod
    def parse_day(cls, day: Any) -> Weekday:
        _reject_structures(day)
        if day is None:
            raise ValueError("day is required")
        return Weekday.parse(str(day))

    @field_validator("meals", mode="before")
    @classmethod
    def default_meals(cls, meals: Any) -> Any:
        return [] if meals is None else meals


class MealPlanPayload(_Payload):
    """Body of a successful /mealplan response."""

    days: Annotated[List[DayPayload], Field(default_factory=list)]
    shopping_list: Annotated[List[IngredientItem], Field(default_factory=list)]

    @field_validator("days", "shopping_list", mode="before")
    @classmethod
    def default_lists(cls, items: Any) -> Any:
        return [] if items is None else items


class ScanItem(_Payload):
    title: OptionalText = None
    matched_ingredients: Annotated[
        TextList,
        Field(default_factory=list, validation_alias=AliasChoices("matchedIngredients", "matched_ingredients")),
    ]


class ScanPayload(_Payload):
    """Body of a successful /scan response."""

    recipes: Annotated[List[ScanItem], Field(default_factory=list)]
    ingredients: Annotated[
        TextList, Field(default_factory=list, validation_alias=AliasChoices("ingredients", "detected_ingredients"))
    ]

    @field_validator("recipes", mode="before")
    @classmethod
    def default_recipes(cls, recipes: Any) -> Any:
        return [] if recipes is None else recipes


PAYLOAD_MODELS: Dict[Endpoint, type] = {
    Endpoint.EXTRACT: ExtractPayload,
    Endpoint.CAPTION: CaptionPayload,
    Endpoint.MEALPLAN: MealPlanPayload,
    Endpoint.SCAN: ScanPayload,
}
