from io import BytesIO
from pathlib import Path
from typing import Any, AsyncIterator, Callable

from databases import Database
from PIL import Image
import pytest
import pytest_asyncio

from misoto.aopenai import InvalidResponse
from misoto.db import create_tables
from misoto.llm_service import LLMService
from misoto.models import Difficulty, ExtractedRecipe, IngredientItem
from misoto.storage import LocalStorage


BASE_URL = "http://testserver/storage"


def image_bytes(size: tuple[int, int] = (64, 48), mode: str = "RGB", format: str = "PNG") -> bytes:
    buffer = BytesIO()
    Image.new(mode, size).save(buffer, format=format)
    return buffer.getvalue()


@pytest.fixture
def png() -> bytes:
    return image_bytes()


@pytest.fixture
def make_image() -> Callable[..., bytes]:
    return image_bytes


@pytest_asyncio.fixture
async def db(tmp_path: Path) -> AsyncIterator[Database]:
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'misoto-test.db'}")
    await database.connect()
    await create_tables(database)
    yield database
    await database.disconnect()


@pytest.fixture
def store(tmp_path: Path) -> LocalStorage:
    return LocalStorage(tmp_path / "storage", BASE_URL)


SAMPLE = ExtractedRecipe(
    title="Garlic Chicken",
    description="",
    dish_ingredients=[IngredientItem(amount="500", unit="g", name="Chicken Breast")],
    seasoning_ingredients=[IngredientItem(amount="2", unit="clove", name="Garlic")],
    instructions=["Fry the garlic.", "Add the chicken."],
)


class FakeLLM(LLMService):
    """Canned answers in place of the completion endpoint."""

    def __init__(self) -> None:
        super().__init__(api_key="test-key")
        self.calls: list[str] = []
        self.failing: set[str] = set()
        self.ocr_text = ""
        self.html = "<html><body><p>Nothing here</p></body></html>"
        self.extracted = SAMPLE
        self.description = "A fragrant weeknight chicken."
        self.cuisine = "Chinese"
        self.times = (10, 20)
        self.difficulty = Difficulty.b

    def _call(self, name: str) -> None:
        self.calls.append(name)
        if name in self.failing:
            raise InvalidResponse()

    async def image_text(self, image: bytes) -> str:
        self._call("image_text")
        return self.ocr_text

    async def translate_to_english(self, text: str) -> str:
        self._call("translate_to_english")
        return text

    async def fetch_page(self, url: str) -> str:
        self._call("fetch_page")
        return self.html

    async def extract_recipe_from_text(self, text: str) -> ExtractedRecipe:
        self._call("extract_recipe_from_text")
        return self.extracted

    async def extract_recipe_from_images(self, image_data: list[bytes]) -> ExtractedRecipe:
        self._call("extract_recipe_from_images")
        return self.extracted

    async def generate_description(self, title: str, ingredients: list[str], instructions: Any = None) -> str:
        self._call("generate_description")
        return self.description

    async def detect_cuisine(self, title: str, ingredients: list[str]) -> str | None:
        self._call("detect_cuisine")
        return self.cuisine

    async def extract_time(self, title: str, instructions: list[str]) -> tuple[int, int]:
        self._call("extract_time")
        return self.times

    async def detect_difficulty(self, title: str, ingredients: list[str], instructions: Any = None) -> Difficulty:
        self._call("detect_difficulty")
        return self.difficulty


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()
