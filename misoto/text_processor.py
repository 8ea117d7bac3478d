import logging
import re


logger = logging.getLogger(__name__)


CORRECTIONS = {
    "ingrediant": "ingredient",
    "ingrediants": "ingredients",
    "instrucion": "instruction",
    "instrucions": "instructions",
    "tablespon": "tablespoon",
    "teaspon": "teaspoon",
    "garli": "garlic",
}

_CORRECTION_PATTERNS = [
    (re.compile(rf"\b{wrong}\b", re.IGNORECASE), right)
    for wrong, right in CORRECTIONS.items()
]

_LIKELY_MEASUREMENT = re.compile(
    r"\d+\s*(tbsp|tsp|cup|cups|oz|lb|g|kg|ml|l|tablespoon|teaspoon|piece|pieces"
    r"|pinch|dash|clove|cloves|slice|slices|bunch|bunches|head|heads|strand"
    r"|strands|gram|grams|kilogram|kilograms|ounce|ounces|pound|pounds"
    r"|milliliter|milliliters|liter|liters)",
    re.IGNORECASE,
)

_INGREDIENT_HINTS = [
    "chicken", "beef", "pork", "fish", "garlic", "onion", "tomato", "pepper",
    "salt", "sugar", "oil", "butter", "flour", "rice", "noodle", "vegetable",
    "herb", "spice",
]  # fmt: skip

_NUMBERED_AMOUNT = re.compile(r"^([–—•-]?\s*)(\d+)\.\s+")
_NUMBERED_UNIT = re.compile(
    r"(\d+)\.\s+(ml|kg|g|l|tsp|tbsp|oz|lb|cup|cups|tablespoon|teaspoon|gr|gram|grams)",
    re.IGNORECASE,
)
_LEADING_DASH = re.compile(r"^[–—]\s*")
_LEADING_NUMBER = re.compile(r"^(\d+)(.*)$")

_OCR_GARBAGE = [
    re.compile(p)
    for p in (
        r"^[#*°]+$",
        r"^\d+[#*°]+$",
        r"^[A-Z]{1,2}\d+",
        r"^\d+[/]\d+[#*°]+",
        r"^[#*°]{2,}",
        r"^[A-Z][#*°]+$",
        r"^[A-Z][#*°]+\s*$",
        r"^[a-z][#*°]+$",
    )
]


def is_valid_ocr_line(text: str) -> bool:
    """Drop what a text recogniser reads off packaging, stamps and codes."""
    if len(text) < 2:
        return False
    letters = sum(1 for c in text if c.isalpha())
    visible = sum(1 for c in text if not c.isspace())
    if visible and letters / visible < 0.3:
        return False
    if any(p.search(text) for p in _OCR_GARBAGE):
        return False
    return letters > 0


def filter_ocr_lines(text: str) -> str:
    return "\n".join(
        line for line in (raw.strip() for raw in text.splitlines()) if is_valid_ocr_line(line)
    )


def normalize(text: str) -> str:
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    return "\n".join(line.strip() for line in text.split("\n")).strip()


def fix_ocr_issues(text: str) -> str:
    for pattern, right in _CORRECTION_PATTERNS:
        text = pattern.sub(right, text)
    return text.replace(" ,", ",").replace(" .", ".").replace(" :", ":")


def is_likely_ingredient_line(line: str) -> bool:
    if _LIKELY_MEASUREMENT.search(line):
        return True
    lowered = line.lower()
    return any(h in lowered for h in _INGREDIENT_HINTS)


def improve_structure(text: str) -> str:
    lines: list[str] = []
    for line in text.split("\n"):
        line = line.strip()
        if not line:
            continue
        if is_likely_ingredient_line(line):
            # "12. chicken wings" and "30. ml" are OCR reading a stray dot.
            line = _NUMBERED_AMOUNT.sub(r"\1\2 ", line)
            line = _NUMBERED_UNIT.sub(r"\1 \2", line)
            line = _LEADING_DASH.sub("- ", line)
        elif line[0].isdigit():
            m = _LEADING_NUMBER.match(line)
            if m:
                number, rest = m.group(1), m.group(2).strip(". )")
                if rest:
                    line = f"{number}. {rest}"
        lines.append(line)
    return "\n".join(lines)


def process(raw: str) -> str:
    """Clean recognised text ahead of parsing, falling back to the raw text."""
    if not raw.strip():
        return raw
    text = normalize(raw)
    if not text:
        logger.warning("Normalisation removed all text, using raw text")
        return raw
    text = improve_structure(fix_ocr_issues(text))
    if not text.strip():
        logger.warning("Processed text is empty, using raw text")
        return raw
    return text
