"""Shopping list consolidation.

Merges (ingredient, servings) contributions from one or more recipes into a
deduplicated list:

- Items are grouped by ingredient_key (lower-cased, trimmed name)
- Same unit everywhere (case-insensitive) -> quantities are summed as quantity * servings
- Any unit mismatch or unknown quantity -> total_quantity and unit are None
  (the entry is still listed; the UI shows "quantity varies, check recipe")
- Output follows first-seen order of each key, not alphabetical
- source_count is the number of merged contributions

Cross-unit conversion (cups vs grams) is intentionally not attempted.
"""

from typing import Dict, Iterable, List, Optional, Tuple

from companion.models.models import Ingredient, Recipe, ShoppingListEntry, ingredient_key
from companion.utils.logger import logger


class _Group:
    """Running merge state for one ingredient key."""

    __slots__ = ("name", "total", "unit_key", "unit", "summable", "count")

    def __init__(self, ingredient: Ingredient) -> None:
        self.name = ingredient.name
        self.total = 0.0
        self.unit_key = _unit_key(ingredient.unit)
        self.unit = ingredient.unit.strip() if ingredient.unit else None
        self.summable = True
        self.count = 0

    def add(self, ingredient: Ingredient, servings: int) -> None:
        self.count += 1
        if not self.summable:
            return
        if ingredient.quantity is None or _unit_key(ingredient.unit) != self.unit_key:
            self.summable = False
            return
        self.total += ingredient.quantity * servings

    def entry(self) -> ShoppingListEntry:
        if not self.summable:
            return ShoppingListEntry(name=self.name, total_quantity=None, unit=None, source_count=self.count)
        return ShoppingListEntry(
            name=self.name, total_quantity=self.total, unit=self.unit, source_count=self.count
        )


def _unit_key(unit: Optional[str]) -> Optional[str]:
    if unit is None:
        return None
    return unit.strip().lower() or None


def consolidate(entries: Iterable[Tuple[Ingredient, int]]) -> List[ShoppingListEntry]:
    """Merge (ingredient, servings) contributions into shopping list entries.

    Args:
        entries: Ingredient and servings pairs, in recipe order.

    Returns:
        One ShoppingListEntry per distinct ingredient key, in first-seen order.
        Running it twice on the same input yields identical output.

    Raises:
        ValueError: If a servings value is less than 1.
    """
    groups: Dict[str, _Group] = {}
    for ingredient, servings in entries:
        if servings < 1:
            raise ValueError(f"servings must be a positive integer, got {servings} for {ingredient.name!r}")
        key = ingredient_key(ingredient)
        group = groups.get(key)
        if group is None:
            group = groups[key] = _Group(ingredient)
        group.add(ingredient, servings)

    consolidated = [group.entry() for group in groups.values()]
    varies = sum(1 for entry in consolidated if entry.quantity_varies and entry.source_count > 1)
    if varies:
        logger.debug(f"Shopping list: {varies} merged item(s) with mixed units or unknown quantities")
    return consolidated


def consolidate_recipes(recipes: Iterable[Tuple[Recipe, int]]) -> List[ShoppingListEntry]:
    """Consolidate every ingredient of each (recipe, servings) pair."""
    return consolidate(
        (ingredient, servings) for recipe, servings in recipes for ingredient in recipe.ingredients
    )


def format_shopping_list(entries: Iterable[ShoppingListEntry]) -> List[str]:
    """Render entries as display lines ("- 7 pcs Egg")."""
    return [f"- {entry.label()}" for entry in entries]
