import httpx
import pytest

from misoto.aopenai import NoRecipeDetected
from misoto.extraction import (
    CostOptimizedExtractor,
    NoContentFound,
    NoImages,
    NoTextExtracted,
    ParsingFailed,
    RecipeExtractor,
    extract_metadata,
    merge,
)
from misoto.forms import RecipeForm
from misoto.models import Difficulty, ExtractedRecipe, IngredientItem

from conftest import SAMPLE, FakeLLM
from test_text_parser import RECIPE


RECIPE_PAGE = f"""
<html><body>
  <nav>Home | Shop</nav>
  <article>
    <img src="/img/stir-fry.jpg" width="800" height="600">
    <h1>Garlic Chicken Stir Fry</h1>
    <p>Serves 2. Prep time: 10 mins.</p>
    <pre>{RECIPE}</pre>
  </article>
</body></html>
"""


def test_extract_metadata() -> None:
    parsed = ExtractedRecipe(
        title="Soup",
        description="Serves 4. Prep time: 10 mins",
        instructions=["Cook: 25 minutes"],
    )
    assert extract_metadata(parsed) == (4, 10, 25)
    assert extract_metadata(ExtractedRecipe(title="Soup")) == (0, 0, 0)


def test_merge_prefers_refined_values() -> None:
    original = ExtractedRecipe(
        title="Garlic Chicken",
        description="From the photo.",
        servings=2,
        dish_ingredients=[IngredientItem(amount="500", unit="g", name="Chicken")],
        instructions=["Fry."],
    )
    refined = ExtractedRecipe(
        title="",
        servings=0,
        cook_time=20,
        dish_ingredients=[IngredientItem(amount="500", unit="g", name="Chicken Breast")],
        sauce_ingredients=[IngredientItem(amount="2", unit="tbsp", name="Oyster Sauce")],
        tips=["Use a hot wok."],
    )
    got = merge(original, refined)
    assert got.title == "Garlic Chicken"
    assert got.description == "From the photo."
    assert got.servings == 2
    assert got.cook_time == 20
    assert got.dish_ingredients[0].name == "Chicken Breast"
    assert got.sauce_ingredients[0].name == "Oyster Sauce"
    assert got.instructions == ["Fry."]
    assert got.tips == ["Use a hot wok."]


@pytest.mark.asyncio
async def test_cost_optimized_extraction(fake_llm: FakeLLM, png: bytes) -> None:
    fake_llm.ocr_text = "###\n" + RECIPE
    got = await CostOptimizedExtractor(fake_llm).extract([png])

    assert got.title == "Garlic Chicken Stir Fry"
    assert [i.name for i in got.dish_ingredients] == ["Soy Sauce", "Rice", "Chicken Breast", "Salt"]
    assert [i.name for i in got.marinade_ingredients] == ["Sesame Oil"]
    assert len(got.instructions) == 3
    assert fake_llm.calls == ["image_text", "translate_to_english"]


@pytest.mark.asyncio
async def test_cost_optimized_reads_every_photo(fake_llm: FakeLLM, png: bytes) -> None:
    fake_llm.ocr_text = RECIPE
    await CostOptimizedExtractor(fake_llm).extract([png, png, png])
    assert fake_llm.calls.count("image_text") == 3


@pytest.mark.asyncio
async def test_cost_optimized_translation_failure(fake_llm: FakeLLM, png: bytes) -> None:
    fake_llm.ocr_text = RECIPE
    fake_llm.failing.add("translate_to_english")
    got = await CostOptimizedExtractor(fake_llm).extract([png])
    assert got.title == "Garlic Chicken Stir Fry"


@pytest.mark.asyncio
async def test_cost_optimized_refinement(fake_llm: FakeLLM, png: bytes) -> None:
    fake_llm.ocr_text = RECIPE
    fake_llm.extracted = ExtractedRecipe(title="Garlic Chicken Stir-Fry", servings=2)
    got = await CostOptimizedExtractor(fake_llm, use_ai_refinement=True).extract([png])

    assert got.title == "Garlic Chicken Stir-Fry"
    assert got.servings == 2
    assert [i.name for i in got.marinade_ingredients] == ["Sesame Oil"]


@pytest.mark.asyncio
async def test_cost_optimized_refinement_failure(fake_llm: FakeLLM, png: bytes) -> None:
    fake_llm.ocr_text = RECIPE
    fake_llm.failing.add("extract_recipe_from_text")
    got = await CostOptimizedExtractor(fake_llm, use_ai_refinement=True).extract([png])
    assert got.title == "Garlic Chicken Stir Fry"


@pytest.mark.asyncio
async def test_cost_optimized_errors(fake_llm: FakeLLM, png: bytes) -> None:
    extractor = CostOptimizedExtractor(fake_llm)
    with pytest.raises(NoImages):
        await extractor.extract([])

    fake_llm.ocr_text = "###\n1234"
    with pytest.raises(NoTextExtracted):
        await extractor.extract([png])

    fake_llm.ocr_text = "Call the office\nParking on the table"
    with pytest.raises(ParsingFailed):
        await extractor.extract([png])


@pytest.mark.asyncio
async def test_from_images_enriches(fake_llm: FakeLLM, png: bytes) -> None:
    fake_llm.ocr_text = RECIPE
    form = await RecipeExtractor(fake_llm).from_images([png])

    assert form.title == "Garlic Chicken Stir Fry"
    assert form.description == "A fragrant weeknight chicken."
    assert form.cuisine == "Chinese"
    assert (form.prep_time, form.cook_time) == (10, 20)
    assert form.servings == 4
    assert form.difficulty == Difficulty.b
    assert form.source_images == [png]
    assert fake_llm.calls[-4:] == [
        "generate_description",
        "detect_cuisine",
        "extract_time",
        "detect_difficulty",
    ]


@pytest.mark.asyncio
async def test_from_images_direct_keeps_found_times(fake_llm: FakeLLM, png: bytes) -> None:
    fake_llm.extracted = SAMPLE.model_copy(update={"prep_time": 5, "cook_time": 12})
    form = await RecipeExtractor(fake_llm, use_cost_optimized=False).from_images([png])

    assert (form.prep_time, form.cook_time) == (5, 12)
    assert "extract_recipe_from_images" in fake_llm.calls
    assert "image_text" not in fake_llm.calls
    assert "extract_time" not in fake_llm.calls


@pytest.mark.asyncio
async def test_from_images_needs_images(fake_llm: FakeLLM) -> None:
    with pytest.raises(NoImages):
        await RecipeExtractor(fake_llm).from_images([])


@pytest.mark.asyncio
async def test_enrichment_failures_are_skipped(fake_llm: FakeLLM) -> None:
    fake_llm.failing.update({"generate_description", "detect_cuisine", "extract_time"})
    form = await RecipeExtractor(fake_llm).from_text("Garlic chicken, two cloves of garlic")

    assert form.title == "Garlic Chicken"
    assert form.description == (
        "A delicious Asian dish featuring Chicken Breast. "
        "This dish offers a aromatic flavor profile. "
        "Seasoned with aromatic spices and herbs."
    )
    assert form.cuisine is None
    assert (form.prep_time, form.cook_time) == (15, 30)
    assert form.difficulty == Difficulty.b


@pytest.mark.asyncio
async def test_enrich_keeps_chosen_cuisine(fake_llm: FakeLLM) -> None:
    form = await RecipeExtractor(fake_llm).enrich(RecipeForm(title="Green Curry", cuisine="Thai"))
    assert form.cuisine == "Thai"
    assert "detect_cuisine" not in fake_llm.calls


@pytest.mark.asyncio
async def test_from_link_downloads_recipe_image(fake_llm: FakeLLM, png: bytes) -> None:
    def site(request: httpx.Request) -> httpx.Response:
        assert str(request.url) == "https://recipes.test/img/stir-fry.jpg"
        return httpx.Response(200, content=png)

    fake_llm.html = RECIPE_PAGE
    extractor = RecipeExtractor(fake_llm, web_client=httpx.AsyncClient(transport=httpx.MockTransport(site)))
    form = await extractor.from_link("https://recipes.test/stir-fry")

    assert form.title == "Garlic Chicken"
    assert form.new_images == [png]
    assert fake_llm.calls[:2] == ["fetch_page", "extract_recipe_from_text"]


@pytest.mark.asyncio
async def test_from_link_without_image(fake_llm: FakeLLM) -> None:
    form = await RecipeExtractor(fake_llm).from_link("https://recipes.test/plain")
    assert form.new_images == []


@pytest.mark.asyncio
async def test_from_webpage(fake_llm: FakeLLM) -> None:
    form = await RecipeExtractor(fake_llm).from_webpage(RECIPE_PAGE, "https://recipes.test/stir-fry")
    assert form.title == "Garlic Chicken"
    assert "fetch_page" not in fake_llm.calls


@pytest.mark.asyncio
async def test_from_webpage_without_recipe(fake_llm: FakeLLM) -> None:
    extractor = RecipeExtractor(fake_llm)
    page = "<html><body><article>" + "The board approved the budget. " * 10 + "</article></body></html>"
    with pytest.raises(NoRecipeDetected):
        await extractor.from_webpage(page, "https://news.test/")
    with pytest.raises(NoContentFound):
        await extractor.from_webpage("<html><body><nav>Menu</nav></body></html>", "https://news.test/")
    assert fake_llm.calls == []


@pytest.mark.asyncio
async def test_blank_model_description_falls_back_to_template(fake_llm: FakeLLM) -> None:
    fake_llm.description = ""
    form = await RecipeExtractor(fake_llm).enrich(
        RecipeForm(
            title="Miso Glazed Salmon",
            dish_ingredients=[IngredientItem(amount="2", unit="", name="Salmon Fillets"), IngredientItem()],
        )
    )
    assert form.description == (
        "A delicious Japanese dish featuring Salmon Fillets. "
        "This dish offers a balanced flavor profile."
    )


@pytest.mark.asyncio
async def test_model_description_is_kept(fake_llm: FakeLLM) -> None:
    form = await RecipeExtractor(fake_llm).enrich(RecipeForm(title="Miso Glazed Salmon"))
    assert form.description == "A fragrant weeknight chicken."
