import pytest

from misoto import cuisines, units


@pytest.mark.parametrize(
    "unit,amount,expected",
    (
        ("cup", "2", "cups"),
        ("cup", "1", "cup"),
        ("cup", "0.5", "cup"),
        ("pinch", "3", "pinches"),
        ("clove", "1.5", "cloves"),
        ("tbsp", "4", "tbsp"),
        ("cup", "some", "cup"),
    ),
)
def test_pluralize(unit: str, amount: str, expected: str) -> None:
    assert units.pluralize(unit, amount) == expected


def test_common_units_order() -> None:
    got = units.common_units()
    assert got[:2] == ["", "x"]
    assert got[2:] == sorted(got[2:])
    assert "tbsp" in got


@pytest.mark.parametrize(
    "value,expected",
    ((2.0, "2"), (1.5, "1.5"), (0.333, "0.33"), (0.25, "0.25"), (1.10, "1.1")),
)
def test_format_decimal(value: float, expected: str) -> None:
    assert units.format_decimal(value) == expected


def test_format_ingredient() -> None:
    assert units.format_ingredient("2", "clove", "Garlic") == "2 cloves Garlic"
    assert units.format_ingredient("3", "", "Eggs") == "3 Eggs"
    assert units.format_ingredient("", "", "Salt") == "Salt"


def test_display_name() -> None:
    assert units.display_name("", "1") == "-"
    assert units.menu_display_name("tsp") == "Teaspoon (tsp)"
    assert units.menu_display_name("handful") == "handful"


def test_search_cuisines() -> None:
    assert cuisines.search_cuisines("") == cuisines.ALL_CUISINES
    assert cuisines.search_cuisines("  JAP ") == ["Japanese"]
    assert "Indian" in cuisines.search_cuisines("ind")
    assert cuisines.search_cuisines("martian") == []


@pytest.mark.parametrize(
    "answer,expected",
    (("Thai", "Thai"), (" thai\n", "Thai"), ("Thai food", "Other"), ("", "Other")),
)
def test_match_cuisine(answer: str, expected: str) -> None:
    assert cuisines.match_cuisine(answer) == expected
