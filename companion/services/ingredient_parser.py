"""Ingredient line parser - free-text shopping-list lines to Ingredient.

The /extract and /mealplan endpoints return shopping lists as plain strings
("2 1/2 cups flour, sifted"). This module pulls out a leading quantity and a
known unit so the consolidator can sum like with like:

- Integers, decimals, fractions and mixed numbers ("1 1/2", "1.5", "3/4")
- Unicode vulgar fractions ("½ cup", "1½ cups")
- Ranges ("2-3 cloves") take the lower bound
- Units are folded to one spelling ("Tablespoons", "tbsp." -> "tbsp")
- Preparation notes after a comma or in parentheses are dropped from the name

Lines without a leading quantity ("salt to taste") keep quantity and unit None.
"""

import re
from typing import Iterable, List, Optional, Tuple

from companion.models.models import Ingredient


UNICODE_FRACTIONS = {
    "½": 0.5,
    "⅓": 1 / 3,
    "⅔": 2 / 3,
    "¼": 0.25,
    "¾": 0.75,
    "⅛": 0.125,
}

# Canonical unit -> spellings seen in the wild (matched lower-cased, trailing "." removed)
UNIT_ALIASES = {
    "tsp": ("tsp", "tsps", "teaspoon", "teaspoons", "t"),
    "tbsp": ("tbsp", "tbsps", "tbs", "tablespoon", "tablespoons", "tbl"),
    "cup": ("cup", "cups", "c"),
    "ml": ("ml", "milliliter", "milliliters", "millilitre", "millilitres"),
    "l": ("l", "liter", "liters", "litre", "litres"),
    "fl oz": ("fl oz", "fluid ounce", "fluid ounces"),
    "g": ("g", "gram", "grams", "gr"),
    "kg": ("kg", "kilogram", "kilograms", "kilo", "kilos"),
    "oz": ("oz", "ounce", "ounces"),
    "lb": ("lb", "lbs", "pound", "pounds"),
    "pinch": ("pinch", "pinches"),
    "clove": ("clove", "cloves"),
    "can": ("can", "cans", "tin", "tins"),
    "slice": ("slice", "slices"),
    "bunch": ("bunch", "bunches"),
    "pcs": ("pc", "pcs", "piece", "pieces"),
}

_ALIAS_TO_UNIT = {alias: unit for unit, aliases in UNIT_ALIASES.items() for alias in aliases}
# Longest first so "fl oz" wins over "fl"
_ALIASES_BY_LENGTH = sorted(_ALIAS_TO_UNIT, key=len, reverse=True)

# Mixed numbers and fractions before plain numbers, so "3/4" is not read as "3"
_NUMBER = rf"(?:\d*\s?[{''.join(UNICODE_FRACTIONS)}]|\d+\s+\d+/\d+|\d+/\d+|\d+(?:[.,]\d+)?)"
_QUANTITY = re.compile(rf"^\s*(?P<amount>{_NUMBER})(?:\s*(?:-|–|to)\s*{_NUMBER})?\s*")


def parse_amount(text: str) -> Optional[float]:
    """Parse "1", "1.5", "1,5", "3/4", "1 1/2", "½" or "1½" to a float."""
    text = text.strip()
    if not text:
        return None

    total = 0.0
    if text[-1] in UNICODE_FRACTIONS:
        total += UNICODE_FRACTIONS[text[-1]]
        text = text[:-1].strip()
        if not text:
            return total

    for part in text.split():
        if "/" in part:
            numerator, denominator = part.split("/", 1)
            if float(denominator) == 0:
                return None
            total += float(numerator) / float(denominator)
        else:
            total += float(part.replace(",", "."))
    return total


def _split_unit(rest: str) -> Tuple[Optional[str], str]:
    """Return (canonical unit, remaining text) if rest starts with a known unit."""
    lowered = rest.lower()
    for alias in _ALIASES_BY_LENGTH:
        if not lowered.startswith(alias):
            continue
        tail = rest[len(alias):]
        if tail.startswith("."):
            tail = tail[1:]
        # Unit must be a whole word ("cup" not "cupcake", "g" not "garlic")
        if tail and not tail[0].isspace():
            continue
        remaining = tail.strip()
        if remaining.lower().startswith("of "):
            remaining = remaining[3:]
        return _ALIAS_TO_UNIT[alias], remaining
    return None, rest


def _clean_name(name: str) -> str:
    name = re.sub(r"\([^)]*\)", "", name)
    name = name.split(",", 1)[0]
    return " ".join(name.split())


def parse_ingredient_line(line: str) -> Optional[Ingredient]:
    """Parse one free-text line.

    Returns None for blank lines and for lines that are only a note
    ("(optional)", ", to taste").

    Example:
        >>> parse_ingredient_line("2 1/2 cups flour, sifted")
        Ingredient(name='flour', quantity=2.5, unit='cup')
    """
    text = " ".join(line.split()).lstrip("-•* ").strip()
    if not text:
        return None

    quantity = None
    unit = None
    rest = text

    match = _QUANTITY.match(text)
    if match:
        quantity = parse_amount(match.group("amount"))
        rest = text[match.end():]
        unit, rest = _split_unit(rest)

    name = _clean_name(rest)
    if not name:
        # "2 eggs," style lines that were all quantity: keep the whole text as the name
        name = _clean_name(text)
        quantity = None
        unit = None
        if not name:
            return None

    return Ingredient(name=name, quantity=quantity, unit=unit)


def parse_ingredient_lines(lines: Iterable[str]) -> List[Ingredient]:
    """Parse many lines, skipping blanks. Order is preserved."""
    parsed = []
    for line in lines:
        ingredient = parse_ingredient_line(line)
        if ingredient is not None:
            parsed.append(ingredient)
    return parsed
