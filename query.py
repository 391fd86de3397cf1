#!/usr/bin/env python3
"""Ad hoc runner for the AI Cooking Companion core.

Call the AI edge endpoints (or the local meal plan assembler) directly from a
terminal, without the app.

Usage:
    python query.py extract "https://www.youtube.com/watch?v=..."
    python query.py caption images/pasta.png
    python query.py scan images/fridge.jpg
    python query.py plan recipes.json --calories 1800 --avoid peanut,shrimp
    python query.py --debug extract "https://..."  # Show full JSON result

Features:
- extract / caption / scan go through the RequestOrchestrator (retries, timeouts)
- plan runs the local assembler on a JSON file of recipes (no network)
- Debug mode to display the full normalized result as JSON
"""

import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

import aiohttp
from rich.console import Console
from rich.table import Table

from companion.models.errors import CompanionError, ValidationError
from companion.models.models import KitchenProfile, MealPlan, PlanPreferences, Recipe
from companion.services.normalizer import normalize_extract
from companion.services.orchestrator import CallResult, RequestOrchestrator
from companion.services.planner import assemble
from companion.services.shopping import format_shopping_list
from companion.utils.config import config
from companion.utils.logger import logger

console = Console()

USAGE = (
    "Usage: python query.py [--debug] <command> <argument> [options]\n"
    "\n"
    "Commands:\n"
    "  extract <url>                         Extract a recipe from a video/page link\n"
    "  caption <image path|url>              Caption a food photo\n"
    "  scan <image path|url>                 Suggest recipes from a fridge photo\n"
    "  plan <recipes.json> [--calories N] [--avoid a,b]\n"
    "                                        Assemble a 7-day plan locally"
)


def image_source(argument: str):
    """Local paths are read by the image helpers; anything else is sent as given."""
    path = Path(argument)
    if path.exists():
        return path
    return argument


def load_recipes(path: str) -> List[Recipe]:
    """Load a recipe pool from a JSON file.

    The file holds a list of /extract-style bodies (or {"recipes": [...]}), so a
    saved extract response can be reused as is.
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("recipes", [])
    if not isinstance(data, list):
        raise ValidationError("recipes", f"expected a list of recipes in {path}")
    return [normalize_extract(item) for item in data]


def print_recipe(recipe: Recipe) -> None:
    console.print(f"[bold green]{recipe.title}[/bold green]")
    if recipe.time_estimate_minutes is not None:
        console.print(f"[dim]~{recipe.time_estimate_minutes:g} min[/dim]")
    if recipe.calories is not None:
        console.print(f"[dim]{recipe.calories:g} kcal[/dim]")
    console.print()
    console.print("[bold]Ingredients[/bold]")
    for ingredient in recipe.ingredients:
        amount = f"{ingredient.quantity:g} " if ingredient.quantity is not None else ""
        unit = f"{ingredient.unit} " if ingredient.unit else ""
        console.print(f"  - {amount}{unit}{ingredient.name}")
    console.print()
    console.print("[bold]Steps[/bold]")
    for number, step in enumerate(recipe.steps, start=1):
        console.print(f"  {number}. {step}")
    if not recipe.is_complete:
        console.print("[yellow]Recipe has no steps; cook mode is unavailable.[/yellow]")


def print_plan(plan: MealPlan) -> None:
    table = Table(title="Meal plan")
    table.add_column("Day", style="cyan")
    table.add_column("Meals")
    for meal_day in plan.days:
        meals = ", ".join(f"{meal.title} (x{meal.servings})" for meal in meal_day.meals) or "-"
        table.add_row(meal_day.day.long_name, meals)
    console.print(table)

    console.print("[bold]Shopping list[/bold]")
    for line in format_shopping_list(plan.shopping_list):
        console.print(f"  {line}")
    for warning in plan.warnings:
        console.print(f"[yellow]⚠ {warning}[/yellow]")


def print_result(command: str, result: CallResult, debug: bool) -> None:
    if debug:
        console.print("[bold cyan]Debug Mode: Full Result[/bold cyan]")
        console.print("[dim]" + "=" * 60 + "[/dim]")
        if result.ok:
            console.print_json(data=result.value.model_dump(mode="json"))
        else:
            console.print_json(
                data={
                    "kind": result.error.kind.value,
                    "field": result.error.field,
                    "status": result.error.status,
                    "attempts": result.error.attempts,
                    "message": result.error.message,
                }
            )
        console.print("[dim]" + "=" * 60 + "[/dim]")
        console.print()

    if not result.ok:
        retry_hint = " (retry may help)" if result.error.retryable else ""
        console.print(f"[red]✗ {result.error}{retry_hint}[/red]")
        return

    value = result.value
    if command == "extract":
        print_recipe(value)
    elif command == "caption":
        console.print(f"[bold green]{value.caption}[/bold green]")
        if value.tags:
            console.print(" ".join(f"#{tag}" for tag in value.tags))
    elif command == "scan":
        if value.detected_ingredients:
            console.print(f"[dim]Detected: {', '.join(value.detected_ingredients)}[/dim]")
        if not value.suggestions:
            console.print("[yellow]No recipe suggestions[/yellow]")
        for suggestion in value.suggestions:
            matched = ", ".join(suggestion.matched_ingredients)
            console.print(f"  - [bold]{suggestion.title}[/bold]" + (f" [dim]({matched})[/dim]" if matched else ""))


async def call_endpoint(command: str, argument: str) -> CallResult:
    """Run one endpoint call with a short-lived session."""
    async with aiohttp.ClientSession() as session:
        orchestrator = RequestOrchestrator(session)
        if command == "extract":
            return await orchestrator.extract(argument)
        if command == "caption":
            return await orchestrator.caption(image_source(argument))
        return await orchestrator.scan(image_source(argument))


def run_plan(recipes_path: str, calories: Optional[float], avoid: Optional[str], debug: bool) -> None:
    pool = load_recipes(recipes_path)
    preferences = PlanPreferences(
        calories_target=calories or config.CALORIES_TARGET,
        avoid=avoid or [],
        kitchen=KitchenProfile.default(),
    )
    logger.info(f"Assembling plan from {len(pool)} recipe(s), target {preferences.calories_target:g} kcal/day")
    plan = assemble(pool, preferences)
    if debug:
        console.print_json(data=plan.model_dump(mode="json"))
        console.print()
    print_plan(plan)


def run_query(command: str, argument: str, debug: bool = False, options: Optional[dict] = None) -> None:
    """Execute a single command and print the result.

    Args:
        command: extract, caption, scan or plan.
        argument: URL, image path/URL, or recipes JSON path.
        debug: If True, display the full normalized result as JSON.
        options: plan options (calories, avoid).
    """
    options = options or {}
    try:
        if command == "plan":
            run_plan(argument, options.get("calories"), options.get("avoid"), debug)
            return

        logger.info(f"Running {command}: {argument}")
        result = asyncio.run(call_endpoint(command, argument))
        console.print()
        print_result(command, result, debug)
        if not result.ok:
            sys.exit(1)

    except KeyboardInterrupt:
        logger.info("\nQuery interrupted by user.")
        sys.exit(0)
    except (CompanionError, ValueError, OSError) as e:
        logger.error(f"{command} failed: {e}", exc_info=debug)
        console.print(f"[red]✗ Error: {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    debug_mode = False
    args = sys.argv[1:]

    while args and args[0].startswith("--"):
        if args[0] == "--debug":
            debug_mode = True
            args = args[1:]
        else:
            print(f"Unknown flag: {args[0]}")
            sys.exit(1)

    if len(args) < 2 or args[0] not in ("extract", "caption", "scan", "plan"):
        print(USAGE)
        sys.exit(1)

    command, argument, rest = args[0], args[1], args[2:]
    plan_options = {}
    while rest:
        flag = rest[0]
        if flag not in ("--calories", "--avoid") or command != "plan":
            print(f"Unknown option for {command}: {flag}")
            sys.exit(1)
        if len(rest) < 2:
            print(f"Error: {flag} flag requires a value")
            sys.exit(1)
        if flag == "--calories":
            try:
                plan_options["calories"] = float(rest[1])
            except ValueError:
                print(f"Error: --calories expects a number, got {rest[1]!r}")
                sys.exit(1)
        else:
            plan_options["avoid"] = rest[1]
        rest = rest[2:]

    run_query(command, argument, debug=debug_mode, options=plan_options)
