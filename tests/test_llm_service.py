import json
from typing import Any, Callable

import httpx
import openai
import pytest

from misoto.aopenai import (
    ApiError,
    ApiKeyNotConfigured,
    HttpError,
    ImageConversionFailed,
    InvalidResponse,
    InvalidURL,
    JsonParsingFailed,
    NoRecipeDetected,
    chat_completion,
    extract_json,
    loads_object,
)
from misoto.llm_service import LLMService, is_valid_url, parse_recipe_response
from misoto.models import Difficulty, IngredientItem


API = "https://api.test/v1/"

Handler = Callable[[httpx.Request], httpx.Response]


def completion(content: str) -> dict[str, Any]:
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "created": 0,
        "model": "gpt-4o",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ],
    }


class Endpoint:
    """Answers chat/completions with queued replies and keeps the requests."""

    def __init__(self, *replies: str | httpx.Response) -> None:
        self.replies = list(replies)
        self.requests: list[dict[str, Any]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        reply = self.replies.pop(0)
        if isinstance(reply, httpx.Response):
            return reply
        return httpx.Response(200, json=completion(reply))

    @property
    def last(self) -> dict[str, Any]:
        return self.requests[-1]


def client(handler: Handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(base_url=API, transport=httpx.MockTransport(handler))


def service(handler: Handler, **kwargs: Any) -> LLMService:
    return LLMService(http_client=client(handler), api_key="test-key", **kwargs)


RECIPE_JSON = json.dumps(
    {
        "title": "Mapo Tofu",
        "description": "Silky tofu in a numbing sauce.",
        "servings": 2,
        "prepTime": "10",
        "cookTime": 15,
        "dishIngredients": [
            {"amount": "400", "unit": "g", "name": "Tofu"},
            {"amount": 1, "unit": None, "name": "Leek"},
            {"amount": "2", "unit": "tbsp"},
            "chili",
        ],
        "sauceIngredients": [{"amount": 1.5, "unit": "tbsp", "name": "Doubanjiang"}],
        "instructions": ["Simmer the tofu.", 3],
        "tips": "not a list",
    }
)


def test_parse_recipe_response() -> None:
    got = parse_recipe_response(json.loads(RECIPE_JSON))
    assert got.title == "Mapo Tofu"
    assert got.servings == 2
    assert got.prep_time == 0
    assert got.cook_time == 15
    assert got.dish_ingredients == [
        IngredientItem(amount="400", unit="g", name="Tofu"),
        IngredientItem(amount="1", unit="", name="Leek"),
    ]
    assert got.sauce_ingredients == [IngredientItem(amount="1.5", unit="tbsp", name="Doubanjiang")]
    assert got.marinade_ingredients == []
    assert got.instructions == ["Simmer the tofu."]
    assert got.tips == []


def test_parse_recipe_response_empty() -> None:
    with pytest.raises(NoRecipeDetected):
        parse_recipe_response({"title": "", "instructions": [], "dishIngredients": []})


@pytest.mark.parametrize(
    "content,expected",
    (
        ('```json\n{"a": 1}\n```', '{"a": 1}'),
        ('```\n{"a": 1}```', '{"a": 1}'),
        (' {"a": 1} ', '{"a": 1}'),
    ),
)
def test_extract_json(content: str, expected: str) -> None:
    assert extract_json(content) == expected


@pytest.mark.parametrize("content", ("not json", "[1, 2]", "```json\n```"))
def test_loads_object_rejects(content: str) -> None:
    with pytest.raises(JsonParsingFailed):
        loads_object(content)


@pytest.mark.parametrize(
    "url,expected",
    (
        ("https://example.com/recipe", True),
        (" http://example.com ", True),
        ("ftp://example.com", False),
        ("example.com/recipe", False),
        ("", False),
    ),
)
def test_is_valid_url(url: str, expected: bool) -> None:
    assert is_valid_url(url) is expected


@pytest.mark.asyncio
async def test_chat_completion_request_body() -> None:
    endpoint = Endpoint("hello")
    got = await chat_completion(
        client(endpoint),
        [{"role": "user", "content": "hi"}],
        model="gpt-test",
        max_tokens=10,
        temperature=0.5,
        json_mode=True,
    )
    assert got == "hello"
    assert endpoint.last == {
        "model": "gpt-test",
        "messages": [{"role": "user", "content": "hi"}],
        "max_tokens": 10,
        "temperature": 0.5,
        "response_format": {"type": "json_object"},
    }


@pytest.mark.asyncio
async def test_chat_completion_api_error() -> None:
    endpoint = Endpoint(httpx.Response(400, json={"error": {"message": "bad model"}}))
    with pytest.raises(ApiError) as e:
        await chat_completion(client(endpoint), [], max_tokens=1, temperature=0)
    assert e.value.detail == "bad model"
    assert str(e.value) == "OpenAI API error: bad model"


@pytest.mark.asyncio
async def test_chat_completion_http_error() -> None:
    endpoint = Endpoint(httpx.Response(503, text="unavailable"))
    with pytest.raises(HttpError) as e:
        await chat_completion(client(endpoint), [], max_tokens=1, temperature=0)
    assert e.value.status_code == 503


@pytest.mark.asyncio
async def test_chat_completion_invalid_response() -> None:
    endpoint = Endpoint(httpx.Response(200, json={"choices": []}))
    with pytest.raises(InvalidResponse):
        await chat_completion(client(endpoint), [], max_tokens=1, temperature=0)


@pytest.mark.asyncio
async def test_missing_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    endpoint = Endpoint()
    llm = LLMService(http_client=client(endpoint))
    with pytest.raises(ApiKeyNotConfigured):
        await llm.extract_recipe_from_text("2 eggs")
    with pytest.raises(ApiKeyNotConfigured):
        await llm.generate_description("Soup", [])
    assert endpoint.requests == []


@pytest.mark.asyncio
async def test_extract_recipe_from_images(png: bytes) -> None:
    endpoint = Endpoint(f"```json\n{RECIPE_JSON}\n```")
    got = await service(endpoint, model="gpt-vision").extract_recipe_from_images([png, png])

    assert got.title == "Mapo Tofu"
    body = endpoint.last
    assert body["model"] == "gpt-vision"
    assert body["max_tokens"] == 1000
    assert body["response_format"] == {"type": "json_object"}
    parts = body["messages"][1]["content"]
    assert parts[0]["type"] == "text"
    assert [p["type"] for p in parts[1:]] == ["image_url", "image_url"]
    assert parts[1]["image_url"]["url"].startswith("data:image/jpeg;base64,")


@pytest.mark.asyncio
async def test_extract_recipe_from_images_needs_images() -> None:
    with pytest.raises(ValueError):
        await service(Endpoint()).extract_recipe_from_images([])


@pytest.mark.asyncio
async def test_bad_image_data() -> None:
    endpoint = Endpoint()
    with pytest.raises(ImageConversionFailed):
        await service(endpoint).extract_recipe_from_images([b"not an image"])
    assert endpoint.requests == []


@pytest.mark.asyncio
async def test_extract_recipe_from_text_no_recipe() -> None:
    endpoint = Endpoint(json.dumps({"title": "", "instructions": []}))
    with pytest.raises(NoRecipeDetected):
        await service(endpoint).extract_recipe_from_text("The weather is nice.")


@pytest.mark.asyncio
async def test_extract_recipe_from_text_bad_json() -> None:
    with pytest.raises(JsonParsingFailed):
        await service(Endpoint("Sure! Here is your recipe")).extract_recipe_from_text("2 eggs")


@pytest.mark.asyncio
async def test_extract_recipe_from_url() -> None:
    def site(request: httpx.Request) -> httpx.Response:
        assert request.url == "https://recipes.test/mapo"
        return httpx.Response(200, html="<html><body><h1>Mapo Tofu</h1><script>x()</script></body></html>")

    endpoint = Endpoint(RECIPE_JSON)
    llm = service(endpoint, web_client=httpx.AsyncClient(transport=httpx.MockTransport(site)))
    got = await llm.extract_recipe_from_url("https://recipes.test/mapo")

    assert got.title == "Mapo Tofu"
    user_prompt = endpoint.last["messages"][1]["content"]
    assert "Mapo Tofu" in user_prompt
    assert "x()" not in user_prompt


@pytest.mark.asyncio
async def test_fetch_page_invalid_url() -> None:
    with pytest.raises(InvalidURL):
        await service(Endpoint()).fetch_page("not a url")


@pytest.mark.asyncio
async def test_fetch_page_failure() -> None:
    site = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(404)))
    llm = service(Endpoint(), web_client=site)
    with pytest.raises(InvalidResponse):
        await llm.fetch_page("https://recipes.test/missing")


@pytest.mark.asyncio
async def test_generate_description() -> None:
    endpoint = Endpoint("  A numbing Sichuan classic.  ")
    llm = service(endpoint)
    got = await llm.generate_description("Mapo Tofu", ["Tofu", " "], ["Fry", "Simmer", "Serve", "Eat"])

    assert got == "A numbing Sichuan classic."
    prompt = endpoint.last["messages"][1]["content"]
    assert "Ingredients: Tofu" in prompt
    assert "Cooking method: Fry Simmer Serve" in prompt
    assert endpoint.last["max_tokens"] == 150
    assert await llm.generate_description("", ["Tofu"]) == ""


@pytest.mark.asyncio
@pytest.mark.parametrize("answer,expected", (("Chinese", "Chinese"), ("japanese\n", "Japanese"), ("Martian", "Other")))
async def test_detect_cuisine(answer: str, expected: str) -> None:
    assert await service(Endpoint(answer)).detect_cuisine("Mapo Tofu", ["Tofu"]) == expected


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "answer,expected",
    (
        ('{"prepTime": 5, "cookTime": 45}', (5, 45)),
        ('{"prepTime": "5"}', (15, 30)),
        ("about an hour", (15, 30)),
    ),
)
async def test_extract_time(answer: str, expected: tuple[int, int]) -> None:
    assert await service(Endpoint(answer)).extract_time("Stew", ["Simmer for 45 minutes."]) == expected


@pytest.mark.asyncio
async def test_extract_time_without_instructions() -> None:
    endpoint = Endpoint()
    assert await service(endpoint).extract_time("Stew", []) == (15, 30)
    assert endpoint.requests == []


@pytest.mark.asyncio
@pytest.mark.parametrize("answer,expected", (("s", Difficulty.s), (" SS ", Difficulty.ss), ("Easy", Difficulty.c)))
async def test_detect_difficulty(answer: str, expected: Difficulty) -> None:
    assert await service(Endpoint(answer)).detect_difficulty("Souffle", ["Eggs"]) == expected


@pytest.mark.asyncio
async def test_image_text(png: bytes) -> None:
    endpoint = Endpoint(" 2 eggs\nSalt ")
    assert await service(endpoint).image_text(png) == "2 eggs\nSalt"
    assert endpoint.last["temperature"] == 0
    assert endpoint.last["max_tokens"] == 1500


def openai_client(handler: Handler) -> openai.AsyncClient:
    return openai.AsyncClient(
        api_key="test-key",
        base_url=API,
        max_retries=0,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


@pytest.mark.asyncio
async def test_translate_to_english() -> None:
    endpoint = Endpoint(" Two eggs ")
    llm = LLMService(openai_client(endpoint), api_key="test-key")
    assert await llm.translate_to_english("Deux oeufs") == "Two eggs"
    assert "Deux oeufs" in endpoint.last["messages"][0]["content"]
    assert await llm.translate_to_english("  ") == "  "


@pytest.mark.asyncio
async def test_qa_status_error() -> None:
    endpoint = Endpoint(httpx.Response(429, json={"error": {"message": "slow down"}}))
    llm = LLMService(openai_client(endpoint), api_key="test-key")
    with pytest.raises(ApiError):
        await llm.qa("hello")


@pytest.mark.asyncio
async def test_aclose_closes_both_clients() -> None:
    llm = LLMService(api_key="test-key")
    openai_client = llm.openai_client
    await llm.aclose()
    assert llm.http_client.is_closed
    assert openai_client.is_closed()
