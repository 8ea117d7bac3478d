import argparse
import asyncio
from pathlib import Path

from databases import Database
from rich.console import Console
from rich.markdown import Markdown
from rich.table import Table

from misoto import descriptions, detector, text_parser, text_processor
from misoto.config import Config, configure_logging
from misoto.db import create_tables
from misoto.extraction import RecipeExtractor
from misoto.llm_service import LLMService
from misoto.models import ExtractedRecipe
from misoto.services import RecipeService


console = Console()


def recipe_table(recipe: ExtractedRecipe) -> Table:
    table = Table(title=recipe.title or "Untitled", show_lines=False)
    table.add_column("Section")
    table.add_column("Amount", justify="right")
    table.add_column("Unit")
    table.add_column("Name")
    for category, items in recipe.ingredient_groups().items():
        for item in items:
            table.add_row(category.value, item.amount, item.unit, item.name)
    return table


def print_recipe(recipe: ExtractedRecipe) -> None:
    if recipe.description:
        console.print(recipe.description)
    console.print(recipe_table(recipe))
    for step in recipe.instructions:
        console.print(f"  {step}")
    for tip in recipe.tips:
        console.print(f"  [italic]Tip:[/italic] {tip}")


def llm_service(config: Config) -> LLMService:
    return LLMService(
        api_key=config.openai_api_key,
        model=config.core_model,
        base_url=config.openai_base_url,
        timeout=config.openai_timeout,
    )


async def init_db(config: Config) -> None:
    db = Database(config.db_url)
    await db.connect()
    try:
        await create_tables(db)
    finally:
        await db.disconnect()
    console.print(f"Tables ready in {config.db_url}")


def parse(path: Path) -> None:
    text = text_processor.process(path.read_text())
    recipe = text_parser.parse(text)
    if not recipe.description:
        recipe.description = descriptions.generate_description(
            recipe.title,
            dish=recipe.dish_ingredients,
            marinade=recipe.marinade_ingredients,
            seasoning=recipe.seasoning_ingredients,
        )
    print_recipe(recipe)


def detect(path: Path) -> None:
    text = path.read_text()
    score = detector.recipe_score(text)
    verdict = "recipe" if detector.detect_recipe_in_text(text) else "not a recipe"
    console.print(f"score {score}: {verdict}")


async def extract_url(config: Config, url: str) -> None:
    llm = llm_service(config)
    try:
        print_recipe(await llm.extract_recipe_from_url(url))
    finally:
        await llm.aclose()


async def extract_images(config: Config, paths: list[Path]) -> None:
    llm = llm_service(config)
    extractor = RecipeExtractor(
        llm,
        use_cost_optimized=config.use_cost_optimized_extraction,
        use_ai_refinement=config.use_ai_refinement,
    )
    try:
        form = await extractor.from_images([p.read_bytes() for p in paths])
    finally:
        await llm.aclose()
    console.print_json(data=form.to_json())


async def show(config: Config, id: str) -> None:
    db = Database(config.db_url)
    await db.connect()
    try:
        recipe = await RecipeService(db).fetch_recipe(id)
    finally:
        await db.disconnect()
    if recipe is None:
        console.print(f"[red]No recipe {id}[/red]")
        return
    console.print(Markdown(recipe.markdown))


def main() -> None:
    parser = argparse.ArgumentParser(prog="misoto", description="Misoto recipe tools")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="create the database tables")
    p = commands.add_parser("parse", help="parse a recipe text file offline")
    p.add_argument("file", type=Path)
    p = commands.add_parser("detect", help="check whether a text file holds a recipe")
    p.add_argument("file", type=Path)
    p = commands.add_parser("extract-url", help="extract a recipe from a web page")
    p.add_argument("url")
    p = commands.add_parser("extract-images", help="extract a recipe from photos")
    p.add_argument("files", type=Path, nargs="+")
    p = commands.add_parser("show", help="print a stored recipe")
    p.add_argument("id")

    args = parser.parse_args()
    config = Config()
    configure_logging(config)

    match args.command:
        case "init-db":
            asyncio.run(init_db(config))
        case "parse":
            parse(args.file)
        case "detect":
            detect(args.file)
        case "extract-url":
            asyncio.run(extract_url(config, args.url))
        case "extract-images":
            asyncio.run(extract_images(config, args.files))
        case "show":
            asyncio.run(show(config, args.id))
        case _:
            parser.error(f"Unknown command {args.command}")


if __name__ == "__main__":
    main()
