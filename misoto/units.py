"""Ingredient units: display names, plurals and amount formatting."""

UNIT_DISPLAY_NAMES = {
    "": "-",
    "x": "x",
    "tsp": "Teaspoon (tsp)",
    "tbsp": "Tablespoon (tbsp)",
    "cup": "Cup",
    "oz": "Ounce (oz)",
    "lb": "Pound (lb)",
    "g": "Gram (g)",
    "kg": "Kilogram (kg)",
    "ml": "Milliliter (ml)",
    "l": "Liter (l)",
    "pinch": "Pinch",
    "piece": "Piece",
    "pcs": "Pieces (pcs)",
    "pc": "Piece (pc)",
    "slice": "Slice",
    "clove": "Clove",
    "bunch": "Bunch",
    "head": "Head",
    "strand": "Strand",
    "strands": "Strands",
}


PLURAL_FORMS = {
    "cup": "cups",
    "pinch": "pinches",
    "piece": "pieces",
    "pc": "pieces",
    "slice": "slices",
    "clove": "cloves",
    "bunch": "bunches",
    "head": "heads",
    "strand": "strands",
}


def common_units() -> list[str]:
    """Units offered on the form: empty first, then "x", then alphabetical."""
    others = sorted(u for u in UNIT_DISPLAY_NAMES if u not in ("", "x"))
    return ["", "x"] + others


def menu_display_name(unit: str) -> str:
    return UNIT_DISPLAY_NAMES.get(unit, unit)


def parse_amount(amount: str) -> float | None:
    try:
        return float(amount.strip())
    except ValueError:
        return None


def pluralize(unit: str, amount: str) -> str:
    value = parse_amount(amount)
    if value is not None and value > 1:
        return PLURAL_FORMS.get(unit, unit)
    return unit


def display_name(unit: str, amount: str) -> str:
    if not unit:
        return "-"
    return pluralize(unit, amount)


def format_decimal(value: float) -> str:
    if value % 1 == 0:
        return "%.0f" % value
    formatted = "%.2f" % value
    return formatted.rstrip("0").rstrip(".")


def format_ingredient(amount: str, unit: str, name: str) -> str:
    """One ingredient line, pluralising the unit for amounts above one."""
    if not unit:
        return f"{amount} {name}" if amount else name
    return f"{amount} {pluralize(unit, amount)} {name}"
