"""Turning photos, links, pages and pasted text into recipe forms.

Two ways exist to read photos. The cost optimised path transcribes the
photos, translates and cleans the text and parses it offline, optionally
asking the model to refine the result from text only. The direct path sends
the photos themselves to the vision model.
"""

import logging
import re

import httpx

from misoto import data, descriptions, text_parser, text_processor
from misoto.aopenai import NoRecipeDetected, OpenAIError
from misoto.detector import detect_recipe_in_text
from misoto.forms import RecipeForm
from misoto.llm_service import LLMService
from misoto.models import ExtractedRecipe, IngredientItem


logger = logging.getLogger(__name__)


SERVING_PATTERNS = [
    re.compile(r"serves\s+(\d+)"),
    re.compile(r"(\d+)\s+servings"),
    re.compile(r"serves\s+(\d+)\s*-\s*(\d+)"),
    re.compile(r"makes\s+(\d+)"),
]

PREP_PATTERNS = [
    re.compile(r"prep\s+time[:\s]+(\d+)\s*(?:min|minute|mins)"),
    re.compile(r"preparation\s+time[:\s]+(\d+)\s*(?:min|minute|mins)"),
    re.compile(r"prep[:\s]+(\d+)\s*(?:min|minute|mins)"),
]

COOK_PATTERNS = [
    re.compile(r"cook\s+time[:\s]+(\d+)\s*(?:min|minute|mins)"),
    re.compile(r"cooking\s+time[:\s]+(\d+)\s*(?:min|minute|mins)"),
    re.compile(r"cook[:\s]+(\d+)\s*(?:min|minute|mins)"),
]


class ExtractionError(Exception):
    message = "Recipe extraction failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(self.message if message is None else message)


class NoImages(ExtractionError):
    message = "No images provided"


class NoTextExtracted(ExtractionError):
    message = "No text could be extracted from images"


class ParsingFailed(ExtractionError):
    message = "Failed to parse recipe from extracted text"


class NoContentFound(ExtractionError):
    message = "No content found on the webpage. Please navigate to a recipe page."


def _named(items: list[IngredientItem]) -> list[IngredientItem]:
    return [i for i in items if not i.is_blank]


def _first_number(patterns: list[re.Pattern[str]], text: str) -> int:
    for pattern in patterns:
        if m := pattern.search(text):
            return int(m.group(1))
    return 0


def extract_metadata(parsed: ExtractedRecipe) -> tuple[int, int, int]:
    """Servings, prep and cook minutes mentioned in the parsed text, 0 if absent."""
    ingredients = " ".join(
        f"{i.amount} {i.unit} {i.name}"
        for i in parsed.dish_ingredients + parsed.marinade_ingredients + parsed.seasoning_ingredients
    )
    text = " ".join(
        [parsed.title, parsed.description, " ".join(parsed.instructions), ingredients]
    ).lower()
    return (
        _first_number(SERVING_PATTERNS, text),
        _first_number(PREP_PATTERNS, text),
        _first_number(COOK_PATTERNS, text),
    )


def merge(original: ExtractedRecipe, refined: ExtractedRecipe) -> ExtractedRecipe:
    """Prefer what the model refined, keeping parsed values it left empty."""
    return ExtractedRecipe(
        title=refined.title or original.title,
        description=refined.description or original.description,
        servings=refined.servings if refined.servings > 0 else original.servings,
        prep_time=refined.prep_time if refined.prep_time > 0 else original.prep_time,
        cook_time=refined.cook_time if refined.cook_time > 0 else original.cook_time,
        dish_ingredients=refined.dish_ingredients or original.dish_ingredients,
        marinade_ingredients=refined.marinade_ingredients or original.marinade_ingredients,
        seasoning_ingredients=refined.seasoning_ingredients or original.seasoning_ingredients,
        # The offline parser never fills these.
        batter_ingredients=refined.batter_ingredients,
        sauce_ingredients=refined.sauce_ingredients,
        base_ingredients=refined.base_ingredients,
        dough_ingredients=refined.dough_ingredients,
        topping_ingredients=refined.topping_ingredients,
        instructions=refined.instructions or original.instructions,
        tips=refined.tips,
    )


class CostOptimizedExtractor:
    def __init__(self, llm: LLMService, *, use_ai_refinement: bool = False) -> None:
        self.llm = llm
        self.use_ai_refinement = use_ai_refinement

    async def recognise_text(self, images: list[bytes]) -> str:
        pages = [await self.llm.image_text(image) for image in images]
        return text_processor.filter_ocr_lines("\n".join(pages))

    async def translate(self, text: str) -> str:
        try:
            return await self.llm.translate_to_english(text)
        except OpenAIError as e:
            logger.warning("Translation failed, using the original text: %s", e)
            return text

    async def extract(self, images: list[bytes]) -> ExtractedRecipe:
        if not images:
            raise NoImages()

        text = await self.recognise_text(images)
        if not text.strip():
            raise NoTextExtracted()
        text = text_processor.process(await self.translate(text))

        parsed = text_parser.parse(text)
        servings, prep_time, cook_time = extract_metadata(parsed)
        result = parsed.model_copy(
            update={"servings": servings, "prep_time": prep_time, "cook_time": cook_time}
        )

        if self.use_ai_refinement:
            try:
                refined = await self.llm.extract_recipe_from_text(text)
            except OpenAIError as e:
                logger.warning("Refinement failed, keeping the parsed recipe: %s", e)
            else:
                result = merge(result, refined)

        if result.is_empty:
            raise ParsingFailed()
        return result


class RecipeExtractor:
    def __init__(
        self,
        llm: LLMService,
        *,
        cost_optimized: CostOptimizedExtractor | None = None,
        use_cost_optimized: bool = True,
        use_ai_refinement: bool = False,
        web_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.llm = llm
        self.cost_optimized = (
            CostOptimizedExtractor(llm, use_ai_refinement=use_ai_refinement)
            if cost_optimized is None
            else cost_optimized
        )
        self.use_cost_optimized = use_cost_optimized
        self.web_client = web_client

    async def from_images(self, images: list[bytes]) -> RecipeForm:
        if not images:
            raise NoImages()
        if self.use_cost_optimized:
            extracted = await self.cost_optimized.extract(images)
        else:
            extracted = await self.llm.extract_recipe_from_images(images)

        form = RecipeForm.from_extracted(extracted, source_images=images)
        found_times = extracted.prep_time > 0 or extracted.cook_time > 0
        return await self.enrich(form, extract_times=not found_times)

    async def from_link(self, url: str) -> RecipeForm:
        html = await self.llm.fetch_page(url)
        extracted = await self.llm.extract_recipe_from_text(data.html_to_text(html))
        form = RecipeForm.from_extracted(extracted)

        image_url = data.recipe_image_url(html, url)
        if image_url is not None:
            image = await data.download_image(image_url, client=self.web_client)
            if image is not None:
                form.new_images.insert(0, image)
        return await self.enrich(form)

    async def from_webpage(self, html: str, url: str) -> RecipeForm:
        try:
            text = data.main_content_text(html)
        except data.NoContentFound as e:
            raise NoContentFound() from e
        if not detect_recipe_in_text(text):
            raise NoRecipeDetected()
        logger.info("Recipe detected on %s", url)
        return await self.from_text(text)

    async def from_text(self, text: str) -> RecipeForm:
        extracted = await self.llm.extract_recipe_from_text(text)
        return await self.enrich(RecipeForm.from_extracted(extracted))

    async def enrich(self, form: RecipeForm, *, extract_times: bool = True) -> RecipeForm:
        """Fill in what the extraction could not, one optional step at a time."""
        ingredients = form.ingredient_strings()
        instructions = form.instruction_texts()

        try:
            description = await self.llm.generate_description(
                form.title, ingredients, instructions
            )
            if description:
                form.description = description
        except (OpenAIError, httpx.HTTPError) as e:
            logger.warning("Description generation failed: %s", e)
        if not form.description:
            form.description = descriptions.generate_description(
                form.title,
                dish=_named(form.dish_ingredients),
                marinade=_named(form.marinade_ingredients),
                seasoning=_named(form.seasoning_ingredients),
            )

        if not form.cuisine:
            try:
                form.cuisine = await self.llm.detect_cuisine(form.title, ingredients)
            except (OpenAIError, httpx.HTTPError) as e:
                logger.warning("Cuisine detection failed: %s", e)

        if extract_times:
            try:
                form.prep_time, form.cook_time = await self.llm.extract_time(
                    form.title, instructions
                )
            except (OpenAIError, httpx.HTTPError) as e:
                logger.warning("Time extraction failed: %s", e)

        try:
            form.difficulty = await self.llm.detect_difficulty(
                form.title, ingredients, instructions
            )
        except (OpenAIError, httpx.HTTPError) as e:
            logger.warning("Difficulty detection failed: %s", e)

        return form
