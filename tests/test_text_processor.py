import pytest

from misoto import text_processor

from test_text_parser import RECIPE


def test_process_leaves_clean_text_alone() -> None:
    assert text_processor.process(RECIPE) == RECIPE.strip()


@pytest.mark.parametrize("raw", ("", "   ", "\n\n"))
def test_process_blank(raw: str) -> None:
    assert text_processor.process(raw) == raw


def test_normalize() -> None:
    given = "  Title \r\n\r\n 2 eggs  \r"
    assert text_processor.normalize(given) == "Title\n\n2 eggs"


def test_fix_ocr_issues() -> None:
    got = text_processor.fix_ocr_issues("Ingrediants : 2 garli cloves ,")
    assert got == "ingredients: 2 garlic cloves,"


@pytest.mark.parametrize(
    "line,expected",
    (
        ("12. chicken wings", "12 chicken wings"),
        ("2. tbsp oil", "2 tbsp oil"),
        ("– 2 onions", "- 2 onions"),
        ("1 Preheat the oven", "1. Preheat the oven"),
        ("Serve hot", "Serve hot"),
    ),
)
def test_improve_structure(line: str, expected: str) -> None:
    assert text_processor.improve_structure(line) == expected


@pytest.mark.parametrize(
    "line,expected",
    (
        ("2 cups flour", True),
        ("Soy Sauce", True),
        ("###", False),
        ("A1234", False),
        ("x", False),
        ("12/34", False),
    ),
)
def test_is_valid_ocr_line(line: str, expected: bool) -> None:
    assert text_processor.is_valid_ocr_line(line) is expected


def test_filter_ocr_lines() -> None:
    assert text_processor.filter_ocr_lines("Soy Sauce\n###\n  Rice  \n") == "Soy Sauce\nRice"
