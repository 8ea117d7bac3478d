import base64
import logging
import os
from typing import Any
from urllib.parse import urlparse

import httpx
import openai

from misoto import data, images
from misoto.aopenai import (
    DEFAULT_MODEL,
    OPENAI_BASE_URL,
    TIMEOUT,
    ApiError,
    ApiKeyNotConfigured,
    ImageConversionFailed,
    InvalidResponse,
    InvalidURL,
    JsonParsingFailed,
    NoRecipeDetected,
    chat_completion,
    loads_object,
    openai_client_factory,
    quick_chat,
)
from misoto.cuisines import ALL_CUISINES, match_cuisine
from misoto.models import Difficulty, ExtractedRecipe, IngredientCategory, IngredientItem
from misoto import prompts


logger = logging.getLogger(__name__)


DEFAULT_PREP_TIME = 15
DEFAULT_COOK_TIME = 30


def _system(content: str) -> dict[str, Any]:
    return {"role": "system", "content": content}


def _user(content: str | list[dict[str, Any]]) -> dict[str, Any]:
    return {"role": "user", "content": content}


def _image_part(jpeg: bytes) -> dict[str, Any]:
    encoded = base64.b64encode(jpeg).decode("utf-8")
    return {"type": "image_url", "image_url": {"url": f"data:image/jpeg;base64,{encoded}"}}


def _int(value: Any, default: int = 0) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return default


def _strings(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, str)]  # pyright: ignore[reportUnknownVariableType]


def _ingredients(value: Any) -> list[IngredientItem]:
    if not isinstance(value, list):
        return []
    items: list[IngredientItem] = []
    for entry in value:  # pyright: ignore[reportUnknownVariableType]
        if not isinstance(entry, dict):
            continue
        name = entry.get("name")  # pyright: ignore[reportUnknownMemberType, reportUnknownVariableType]
        if not isinstance(name, str):
            continue
        amount = entry.get("amount")  # pyright: ignore[reportUnknownMemberType, reportUnknownVariableType]
        unit = entry.get("unit")  # pyright: ignore[reportUnknownMemberType, reportUnknownVariableType]
        items.append(
            IngredientItem(
                amount=amount if isinstance(amount, (str, int, float)) else "",
                unit=unit if isinstance(unit, str) else "",
                name=name,
            )
        )
    return items


def parse_recipe_response(body: dict[str, Any]) -> ExtractedRecipe:
    """Build a recipe from the model's JSON, skipping anything malformed."""
    title = body.get("title")
    description = body.get("description")
    fields: dict[str, Any] = {
        "title": title if isinstance(title, str) else "",
        "description": description if isinstance(description, str) else "",
        "servings": _int(body.get("servings")),
        "prep_time": _int(body.get("prepTime")),
        "cook_time": _int(body.get("cookTime")),
        "instructions": _strings(body.get("instructions")),
        "tips": _strings(body.get("tips")),
    }
    for category in IngredientCategory:
        fields[f"{category.value}_ingredients"] = _ingredients(
            body.get(f"{category.value}Ingredients")
        )

    recipe = ExtractedRecipe(**fields)
    if recipe.is_empty:
        raise NoRecipeDetected()
    return recipe


def is_valid_url(url: str) -> bool:
    parsed = urlparse(url.strip())
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class LLMService:
    def __init__(
        self,
        openai_client: openai.AsyncClient | None = None,
        http_client: httpx.AsyncClient | None = None,
        *,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        base_url: str = OPENAI_BASE_URL,
        timeout: float = TIMEOUT,
        web_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_key = os.environ.get("OPENAI_API_KEY", "") if api_key is None else api_key
        self.model = model
        self.base_url = base_url
        self.http_client = (
            openai_client_factory(self.api_key, base_url=base_url, timeout=timeout)
            if http_client is None
            else http_client
        )
        self._openai_client = openai_client
        self.web_client = web_client

    @property
    def openai_client(self) -> openai.AsyncClient:
        # Created on first use so a missing key only fails the calls that need it.
        if self._openai_client is None:
            self._openai_client = openai.AsyncClient(
                api_key=self.api_key, base_url=self.base_url
            )
        return self._openai_client

    async def aclose(self) -> None:
        await self.http_client.aclose()
        if self._openai_client is not None:
            await self._openai_client.close()

    def _require_key(self) -> None:
        if not self.api_key:
            raise ApiKeyNotConfigured()

    async def _complete(
        self,
        messages: list[dict[str, Any]],
        *,
        max_tokens: int,
        temperature: float,
        json_mode: bool = False,
    ) -> str:
        self._require_key()
        return await chat_completion(
            self.http_client,
            messages,
            model=self.model,
            max_tokens=max_tokens,
            temperature=temperature,
            json_mode=json_mode,
        )

    async def qa(self, q: str) -> str:
        self._require_key()
        try:
            return await quick_chat(q, openai_client=self.openai_client, model=self.model)
        except openai.APIStatusError as e:
            raise ApiError(e.message) from e
        except openai.APIError as e:
            raise InvalidResponse(str(e)) from e

    async def _vision_parts(self, image_data: list[bytes]) -> list[dict[str, Any]]:
        parts: list[dict[str, Any]] = []
        for raw in image_data:
            try:
                jpeg = await images.aprepare_for_vision(raw)
            except images.InvalidImage as e:
                raise ImageConversionFailed() from e
            parts.append(_image_part(jpeg))
        return parts

    async def extract_recipe_from_images(self, image_data: list[bytes]) -> ExtractedRecipe:
        if not image_data:
            raise ValueError("Provide at least one image.")
        self._require_key()
        parts = await self._vision_parts(image_data)
        content = await self._complete(
            [
                _system(prompts.EXTRACT_RECIPE_FROM_IMAGE_PROMPT),
                _user([{"type": "text", "text": prompts.IMAGE_USER_PROMPT}, *parts]),
            ],
            max_tokens=1000,
            temperature=0.1,
            json_mode=True,
        )
        return parse_recipe_response(loads_object(content))

    async def extract_recipe_from_text(self, text: str) -> ExtractedRecipe:
        content = await self._complete(
            [
                _system(prompts.EXTRACT_RECIPE_FROM_TEXT_PROMPT),
                _user(prompts.content_user_prompt(text)),
            ],
            max_tokens=1000,
            temperature=0.1,
            json_mode=True,
        )
        return parse_recipe_response(loads_object(content))

    async def fetch_page(self, url: str) -> str:
        self._require_key()
        if not is_valid_url(url):
            raise InvalidURL()
        try:
            return await data.fetch_html(url.strip(), client=self.web_client)
        except data.PageFetchFailed as e:
            raise InvalidResponse(str(e)) from e

    async def extract_recipe_from_url(self, url: str) -> ExtractedRecipe:
        html = await self.fetch_page(url)
        return await self.extract_recipe_from_text(data.html_to_text(html))

    async def generate_description(
        self,
        title: str,
        ingredients: list[str],
        instructions: list[str] | None = None,
    ) -> str:
        self._require_key()
        if not title:
            return ""
        instructions = [] if instructions is None else instructions

        prompt = f"Generate a description for this recipe:\nTitle: {title}"
        ingredients_text = ", ".join(i for i in ingredients if i.strip())
        if ingredients_text:
            prompt += f"\nIngredients: {ingredients_text}"
        if any(i.strip() for i in instructions):
            prompt += f"\nCooking method: {' '.join(instructions[:3])}"

        content = await self._complete(
            [_system(prompts.DESCRIPTION_PROMPT), _user(prompt)],
            max_tokens=150,
            temperature=0.7,
        )
        return content.strip()

    async def detect_cuisine(self, title: str, ingredients: list[str]) -> str | None:
        self._require_key()
        if not title:
            return None

        prompt = f"Determine the cuisine type for this recipe:\nTitle: {title}"
        ingredients_text = ", ".join(i for i in ingredients if i.strip())
        if ingredients_text:
            prompt += f"\nIngredients: {ingredients_text}"

        content = await self._complete(
            [_system(prompts.cuisine_prompt(ALL_CUISINES)), _user(prompt)],
            max_tokens=50,
            temperature=0.3,
        )
        return match_cuisine(content)

    async def extract_time(self, title: str, instructions: list[str]) -> tuple[int, int]:
        """Prep and cook minutes, falling back to 15 and 30."""
        self._require_key()
        if not instructions:
            return DEFAULT_PREP_TIME, DEFAULT_COOK_TIME

        instructions_text = " ".join(i for i in instructions if i.strip())
        content = await self._complete(
            [
                _system(prompts.TIME_PROMPT),
                _user(prompts.time_user_prompt(title, instructions_text)),
            ],
            max_tokens=100,
            temperature=0.1,
            json_mode=True,
        )
        try:
            times = loads_object(content)
        except JsonParsingFailed:
            logger.warning("Unparsable time estimate: %r", content)
            return DEFAULT_PREP_TIME, DEFAULT_COOK_TIME
        return (
            _int(times.get("prepTime"), DEFAULT_PREP_TIME),
            _int(times.get("cookTime"), DEFAULT_COOK_TIME),
        )

    async def detect_difficulty(
        self,
        title: str,
        ingredients: list[str],
        instructions: list[str] | None = None,
    ) -> Difficulty:
        self._require_key()
        if not title:
            return Difficulty.c
        instructions = [] if instructions is None else instructions

        prompt = f"Determine the difficulty level for this recipe:\nTitle: {title}"
        ingredients_text = ", ".join(i for i in ingredients if i.strip())
        if ingredients_text:
            prompt += f"\nIngredients: {ingredients_text}"
        instructions_text = " ".join(i for i in instructions if i.strip())
        if instructions_text:
            prompt += f"\nInstructions: {instructions_text}"
        prompt += "\n\nReturn only one letter: C, B, A, S, or SS"

        content = await self._complete(
            [_system(prompts.DIFFICULTY_PROMPT), _user(prompt)],
            max_tokens=10,
            temperature=0.3,
        )
        answer = content.strip().upper()
        try:
            return Difficulty(answer)
        except ValueError:
            return Difficulty.c

    async def translate_to_english(self, text: str) -> str:
        if not text.strip():
            return text
        return await self.qa(prompts.TRANSLATE_PROMPT.format(text=text))

    async def image_text(self, image: bytes) -> str:
        """Read the text off a photo of a recipe."""
        self._require_key()
        parts = await self._vision_parts([image])
        content = await self._complete(
            [_user([{"type": "text", "text": prompts.IMAGE_TEXT_PROMPT}, *parts])],
            max_tokens=1500,
            temperature=0,
        )
        return content.strip()
