import json
import logging
from typing import Any

import httpx
import openai


logger = logging.getLogger(__name__)


OPENAI_BASE_URL = "https://api.openai.com/v1/"
TIMEOUT = 60 * 2
DEFAULT_MODEL = "gpt-4o"


class OpenAIError(Exception):
    message = "OpenAI request failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(self.message if message is None else message)


class ApiKeyNotConfigured(OpenAIError):
    message = "OpenAI API key is not configured. Set OPENAI_API_KEY."


class ImageConversionFailed(OpenAIError):
    message = "Failed to convert image to base64 format"


class InvalidURL(OpenAIError):
    message = "Invalid URL"


class InvalidResponse(OpenAIError):
    message = "Invalid response from OpenAI API"


class HttpError(OpenAIError):
    def __init__(self, status_code: int) -> None:
        self.status_code = status_code
        super().__init__(f"HTTP error: {status_code}")


class ApiError(OpenAIError):
    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"OpenAI API error: {detail}")


class JsonParsingFailed(OpenAIError):
    message = "Failed to parse JSON response from OpenAI"


class NoRecipeDetected(OpenAIError):
    message = "No recipe is detected, please try again."


def openai_client_factory(
    token: str | None = None,
    *,
    base_url: str = OPENAI_BASE_URL,
    timeout: float = TIMEOUT,
) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=base_url,
        headers={
            "Authorization": f"Bearer {token or ''}",
            "Content-Type": "application/json",
        },
        timeout=timeout,
    )


def extract_json(content: str) -> str:
    """Strip markdown code fences the model sometimes wraps JSON in."""
    text = content.strip()
    if text.startswith("```json"):
        text = text[7:]
    elif text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


def loads_object(content: str) -> dict[str, Any]:
    try:
        data = json.loads(extract_json(content))
    except json.JSONDecodeError as e:
        raise JsonParsingFailed() from e
    if not isinstance(data, dict):
        raise JsonParsingFailed()
    return data  # pyright: ignore[reportUnknownVariableType]


def _error_message(resp: httpx.Response) -> str | None:
    try:
        body = resp.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        error = body.get("error")  # pyright: ignore[reportUnknownMemberType, reportUnknownVariableType]
        if isinstance(error, dict):
            message = error.get("message")  # pyright: ignore[reportUnknownMemberType, reportUnknownVariableType]
            if isinstance(message, str):
                return message
    return None


async def chat_completion(
    http_client: httpx.AsyncClient,
    messages: list[dict[str, Any]],
    *,
    model: str = DEFAULT_MODEL,
    max_tokens: int,
    temperature: float,
    json_mode: bool = False,
) -> str:
    """POST chat/completions and return the first choice's text."""
    body: dict[str, Any] = {
        "model": model,
        "messages": messages,
        "max_tokens": max_tokens,
        "temperature": temperature,
    }
    if json_mode:
        body["response_format"] = {"type": "json_object"}

    resp = await http_client.post("chat/completions", json=body)
    if resp.status_code != 200:
        message = _error_message(resp)
        logger.warning("Completion failed with %s: %s", resp.status_code, message)
        if message is not None:
            raise ApiError(message)
        raise HttpError(resp.status_code)

    try:
        content = resp.json()["choices"][0]["message"]["content"]
    except (ValueError, KeyError, IndexError, TypeError) as e:
        raise InvalidResponse() from e
    if not isinstance(content, str):
        raise InvalidResponse()
    return content


async def quick_chat(
    msg: str,
    *,
    openai_client: openai.AsyncClient | None = None,
    model: str | None = None,
) -> str:
    openai_client = openai.AsyncClient() if openai_client is None else openai_client
    model = DEFAULT_MODEL if model is None else model
    resp = await openai_client.chat.completions.create(
        model=model,
        messages=[{"role": "user", "content": msg}],
    )
    ans = resp.choices[0].message.content or ""
    return ans.strip()
