"""Shared fixtures for unit tests."""

import pytest

from companion.models.models import Ingredient, Recipe


@pytest.fixture
def make_recipe():
    """Factory for complete recipes: make_recipe("Omelette", calories=350, ingredients=[("egg", 2, None)])."""

    def _make(
        title,
        *,
        calories=None,
        ingredients=(),
        steps=("Cook it.",),
        appliances=(),
        recipe_id=None,
    ):
        return Recipe(
            id=recipe_id or title.lower().replace(" ", "-"),
            title=title,
            ingredients=[Ingredient(name=name, quantity=quantity, unit=unit) for name, quantity, unit in ingredients],
            steps=list(steps),
            nutrients={"calories": calories} if calories is not None else None,
            appliances=list(appliances),
        )

    return _make
