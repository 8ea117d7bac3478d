"""Offline recipe parser for recognised text.

Turns the lines a text recogniser gives back into a title, a description,
categorised ingredients and numbered instructions. Everything here is
heuristic: OCR output is noisy, so lines are filtered for garbage and for
text that has nothing to do with food before they are sorted into sections.
"""

from enum import Enum
import re

from misoto.models import ExtractedRecipe, IngredientCategory, IngredientItem
from misoto.units import format_decimal


UNITS = [
    "tsp",
    "tbsp",
    "tablespoon",
    "teaspoon",
    "cup",
    "cups",
    "oz",
    "ounce",
    "ounces",
    "lb",
    "pound",
    "pounds",
    "g",
    "gram",
    "grams",
    "kg",
    "kilogram",
    "kilograms",
    "ml",
    "milliliter",
    "milliliters",
    "l",
    "liter",
    "liters",
    "pinch",
    "pinches",
    "dash",
    "dashes",
    "piece",
    "pieces",
    "pcs",
    "pc",
    "slice",
    "slices",
    "clove",
    "cloves",
    "bunch",
    "bunches",
    "head",
    "heads",
    "strand",
    "strands",
]

_UNITS_ALT = "|".join(UNITS)

CONCATENATED_UNITS = ["ml", "kg", "g", "l", "tsp", "tbsp", "oz", "lb"]

LOWERCASE_WORDS = {
    "tsp",
    "tbsp",
    "cup",
    "cups",
    "oz",
    "lb",
    "g",
    "kg",
    "ml",
    "l",
    "of",
    "a",
    "an",
    "the",
    "with",
    "and",
    "or",
}

ACTION_VERBS = [
    "heat", "add", "mix", "stir", "cook", "bake", "roast", "grill", "fry",
    "saute", "steam", "boil", "simmer", "braise", "combine", "whisk", "beat",
    "fold", "knead", "roll", "cut", "slice", "dice", "chop", "mince", "grate",
    "peel", "core", "seed", "trim", "marinate", "season", "taste", "preheat",
    "warm", "cool", "chill", "freeze", "thaw", "defrost", "rest", "serve",
    "garnish", "decorate", "plate", "present", "drizzle", "pour", "sprinkle",
    "dust", "coat", "place", "put", "set", "bring", "remove", "take", "get",
    "use", "prepare", "make", "create", "arrange", "layer", "spread",
]  # fmt: skip

INSTRUCTION_STARTERS = [
    "preheat", "mix", "add", "remove", "bake", "cook", "fry", "stir", "combine",
    "season", "heat", "place", "put", "set", "bring", "boil", "simmer", "grill",
    "roast",
]  # fmt: skip

FOOD_KEYWORDS = [
    # ingredients
    "chicken", "beef", "pork", "fish", "seafood", "shrimp", "salmon", "tuna",
    "lamb", "turkey", "rice", "noodle", "pasta", "bread", "flour", "sugar",
    "salt", "pepper", "garlic", "onion", "tomato", "potato", "carrot", "celery",
    "chili", "ginger", "herb", "spice", "oil", "butter", "milk", "cream",
    "cheese", "egg", "yogurt", "sauce", "soy", "vinegar", "lemon", "lime",
    "orange", "apple", "banana", "berry", "fruit", "vegetable", "lettuce",
    "cucumber", "zucchini", "eggplant", "mushroom", "spinach", "broccoli",
    "cauliflower", "bean", "lentil", "chickpea", "tofu", "tempeh", "nut",
    "almond", "walnut", "peanut", "sesame", "coconut", "avocado", "olive",
    "basil", "oregano", "thyme", "rosemary", "parsley", "cilantro", "mint",
    "dill", "sage", "bay", "cumin", "coriander", "turmeric", "paprika",
    "cinnamon", "nutmeg", "clove", "cardamom", "star anise", "fennel",
    "mustard", "honey", "maple", "molasses", "syrup", "jam", "jelly",
    "marmalade", "chocolate", "cocoa", "vanilla",
    # cooking methods
    "cook", "bake", "roast", "grill", "fry", "saute", "steam", "boil",
    "simmer", "braise", "stir", "mix", "blend", "whisk", "beat", "fold",
    "knead", "roll", "cut", "slice", "dice", "chop", "mince", "grate", "peel",
    "core", "seed", "trim", "marinate", "season", "taste", "preheat", "heat",
    "warm", "cool", "chill", "freeze", "thaw", "defrost", "rest", "serve",
    "garnish", "decorate", "plate", "present", "drizzle", "pour", "sprinkle",
    "dust", "coat",
    # recipe structure
    "ingredient", "instruction", "step", "method", "preparation",
    "cooking time", "serving", "portion", "serves", "yield", "recipe", "dish",
    "meal", "course", "appetizer", "entree", "main", "dessert", "snack",
    "breakfast", "lunch", "dinner", "brunch", "supper",
    # units
    "cup", "tablespoon", "teaspoon", "ounce", "pound", "gram", "kilogram",
    "milliliter", "liter", "piece", "bunch", "head", "strand", "pinch",
    "dash", "drop",
    # descriptors
    "fresh", "dried", "frozen", "canned", "organic", "raw", "cooked",
    "roasted", "grilled", "fried", "steamed", "boiled", "baked", "crispy",
    "tender", "juicy", "flavorful", "aromatic", "spicy", "sweet", "sour",
    "bitter", "salty", "umami", "savory", "rich", "light", "heavy",
    # asian cooking
    "wok", "stir-fry", "dim sum", "dumpling", "oyster", "hoisin", "szechuan",
    "sichuan", "cantonese", "spring onion", "scallion", "bok choy", "napa",
]  # fmt: skip

NON_FOOD_KEYWORDS = [
    "computer", "phone", "laptop", "software", "hardware", "internet",
    "website", "email", "document", "file", "folder", "application", "program",
    "code", "programming", "developer", "business", "meeting", "office",
    "work", "job", "career", "company", "corporation", "vehicle", "car",
    "truck", "bike", "motorcycle", "airplane", "train", "bus", "taxi",
    "building", "house", "apartment", "room", "furniture", "chair", "table",
    "desk", "bed", "clothing", "shirt", "pants", "shoes", "jacket", "dress",
    "suit", "uniform", "animal", "dog", "cat", "bird", "pet", "wildlife", "zoo",
    "sport", "game", "player", "team", "coach", "stadium", "ball", "racket",
    "music", "song", "album", "artist", "concert", "instrument", "guitar",
    "piano", "movie", "film", "actor", "actress", "director", "cinema",
    "theater", "book", "novel", "author", "writer", "publisher", "library",
    "school", "university", "college", "student", "teacher", "professor",
    "class", "medicine", "doctor", "hospital", "patient", "treatment",
    "surgery", "disease", "machine", "engine", "motor", "battery", "wire",
    "cable", "plug", "socket",
]  # fmt: skip

# Short words that are ordinary in recipes and must not read as OCR noise.
COMMON_SHORT_WORDS = {
    "a", "an", "the", "in", "on", "of", "to", "and", "or", "at", "by", "for",
    "is", "it", "as", "up", "if", "so", "all", "off", "out", "per", "own",
    "add", "mix", "oil", "egg", "soy", "fry", "cut", "pan", "wok", "pot",
    "lid", "hot", "dry", "cup", "tsp", "lb", "oz", "kg", "ml", "g", "l",
    "low", "big", "few", "set", "put", "get", "use", "top", "tea", "jam",
    "ham", "fig", "yam", "bun", "ice", "rum", "nut", "bay", "pea", "rib",
    "new", "raw", "red", "min", "hr",
}  # fmt: skip

INSTRUCTION_KEYWORDS = [
    "step", "first", "next", "then", "finally", "add", "remove", "place", "put",
    "take", "get", "use", "combine", "mix", "stir",
]  # fmt: skip

GARBAGE_PATTERNS = [
    re.compile(p)
    for p in (
        r"^[#*°]{2,}",
        r"^\d+[#*°]+$",
        r"^[A-Z]{1,3}\d+[/]?\d*[#*°]*$",
        r"^[#*°]+\d+",
        r"^\d+[/]\d+[#*°]+",
        r"^[#*°]{1,2}$",
        r"^[A-Z][#*°]+$",
        r"^[A-Z][#*°]+\s*$",
        r"^[a-z][#*°]+$",
        r"^[A-Z][#*°]+\s",
        r"\b\d+ban\b",
        r"^[A-Z][a-z]+,\s*[A-Z][a-z]+\s+[A-Z][a-z]+",
    )
]

_ARTIFACTS = [
    (re.compile(r"^[#*°]+\s*"), ""),
    (re.compile(r"\s*[#*°]+$"), ""),
    (re.compile(r"^[A-Z]{1,3}\d+[/]?\d*[#*°]*\s+"), ""),
    (re.compile(r"^[A-Z][#*°]+\s+"), ""),
    (re.compile(r"\s+[A-Z][#*°]+$"), ""),
    (re.compile(r"\s+[A-Za-z][#*°]+\s+"), " "),
]

MEASUREMENT = re.compile(
    r"\d+\s*(tbsp|tsp|cup|cups|oz|lb|g|kg|ml|l|tablespoon|teaspoon|piece|pieces"
    r"|slice|slices|clove|cloves|bunch|bunches|head|heads|strand|strands|pinch"
    r"|pinches|dash|dashes)"
)
_BARE_MEASUREMENT = re.compile(
    r"\d+\s*(tbsp|tsp|cup|cups|oz|lb|g|kg|ml|l|tablespoon|teaspoon)", re.IGNORECASE
)
_INGREDIENT_START = re.compile(r"^\d+\s+[a-z]+")
_COOKING_ACTION = re.compile(
    r"\b(cook|bake|roast|grill|fry|saute|steam|boil|simmer|stir|mix|blend|whisk"
    r"|cut|slice|dice|chop|mince|grate|peel|marinate|season|heat|preheat|serve"
    r"|garnish|drizzle|pour|sprinkle)\b"
)
_NON_FOOD = re.compile(r"\b(" + "|".join(NON_FOOD_KEYWORDS) + r")\b")

_INGREDIENT_LINE = [
    re.compile(p)
    for p in (
        r"\d+\s*(tbsp|tsp|cup|cups|oz|lb|g|kg|ml|l)",
        r"\d+\s*(tablespoon|teaspoon)",
        r"^\d+",
        r"^[•\-\*]",
        r"\d+\s*x\s*",
    )
]
_INGREDIENT_WORDS = ["cup", "tbsp", "tsp", "oz", "lb", "gram", "kg", "ml", "liter"]

_INSTRUCTION_LINE = [
    re.compile(p) for p in (r"^\d+[.)]", r"^step\s+\d+", r"^\d+\.", r"^[•\-\*]")
]
_INSTRUCTION_WORDS = ["step", "method", "direction", "first", "next", "then", "finally"]

_FULL_INGREDIENT = re.compile(
    rf"^(\d+/\d+|\d+(?:\s+\d+/\d+)?)\s+({_UNITS_ALT})\s+(.+)$", re.IGNORECASE
)
_AMOUNT_INGREDIENT = re.compile(r"^(\d+/\d+|\d+(?:\s+\d+/\d+)?)\s+(.+)$")
_UNIT_ONLY_INGREDIENT = re.compile(
    rf"^(({_UNITS_ALT})(?:\s+of)?)\s+(.+)$", re.IGNORECASE
)
_MIXED_NUMBER = re.compile(r"^\s*(\d+)\s+(\d+)/(\d+)\s*$")
_FRACTION = re.compile(r"^\s*(\d+)/(\d+)\s*$")

_NOTE_ACTIONS = ["slice", "juice", "grind", "cut", "dice", "chop", "mince", "grate", "peel", "trim"]
_NOTE_UNITS = {
    "tsp", "tbsp", "cup", "cups", "oz", "lb", "g", "kg", "ml", "l",
    "piece", "pieces", "slice", "slices", "clove", "cloves",
}  # fmt: skip


class Section(Enum):
    unknown = "unknown"
    title = "title"
    description = "description"
    ingredients = "ingredients"
    instructions = "instructions"


def _words(line: str) -> list[str]:
    return line.lower().split()


def _first_word(line: str) -> str:
    words = _words(line)
    return words[0].strip(".,:;!?") if words else ""


def _has_letter(text: str) -> bool:
    return any(c.isalpha() for c in text)


def starts_with_action_verb(line: str) -> bool:
    return _first_word(line) in ACTION_VERBS


def is_new_instruction_start(line: str) -> bool:
    return _first_word(line) in INSTRUCTION_STARTERS


def is_ingredient_line(line: str) -> bool:
    if any(p.search(line) for p in _INGREDIENT_LINE):
        return True
    lowered = line.lower()
    return any(w in lowered for w in _INGREDIENT_WORDS)


def is_instruction_line(line: str) -> bool:
    if any(p.search(line) for p in _INSTRUCTION_LINE):
        return True
    lowered = line.lower().strip()
    if any(lowered.startswith(w) for w in _INSTRUCTION_WORDS):
        return True
    return starts_with_action_verb(lowered)


def is_food_related(text: str) -> bool:
    lowered = text.lower()
    if _NON_FOOD.search(lowered):
        return False

    if (
        MEASUREMENT.search(lowered)
        or any(k in lowered for k in FOOD_KEYWORDS)
        or _INGREDIENT_START.search(lowered)
        or _COOKING_ACTION.search(lowered)
    ):
        return True

    # A bare "Salt" or "Fish Sauce" is still an ingredient.
    words = lowered.split()
    if len(words) <= 2 and all(len(w) >= 3 and w.isascii() and w.isalpha() for w in words):
        return True

    return any(
        lowered.startswith(k) or f" {k} " in lowered for k in INSTRUCTION_KEYWORDS
    )


def _is_noise(word: str) -> bool:
    if re.search(r"\d+[a-z]{2,}", word):
        return True
    return (
        len(word) <= 3
        and bool(re.fullmatch(r"[a-z]+", word))
        and word not in COMMON_SHORT_WORDS
    )


def is_valid_recipe_line(line: str) -> bool:
    if any(p.search(line) for p in GARBAGE_PATTERNS):
        return False

    words = [w for w in re.split(r"[ ,]", line) if w.strip()]
    if len(words) >= 3:
        unique = {w.lower().strip(".,:;!?()'\"") for w in words}
        if len(unique) / len(words) < 0.5:
            return False

        if any(_is_noise(w.lower()) for w in words):
            meaningful = [
                w
                for w in words
                if re.fullmatch(r"[a-z]{4,}", w.lower().strip(".,:;!?()'\""))
            ]
            if len(meaningful) < len(words) // 2:
                return False

    if not _has_letter(line):
        return bool(_BARE_MEASUREMENT.search(line))

    letters = sum(1 for c in line if c.isalpha())
    visible = sum(1 for c in line if not c.isspace())
    if visible and letters / visible < 0.2:
        return False

    return is_food_related(line)


def _strip_artifacts(text: str) -> str:
    for pattern, repl in _ARTIFACTS:
        text = pattern.sub(repl, text)
    return text.strip()


def clean_ingredient(text: str) -> str:
    return _strip_artifacts(text)


def clean_instruction(text: str) -> str:
    cleaned = _strip_artifacts(text)
    if cleaned.lower() == "done":
        return ""
    return cleaned


def parse_ingredient_line(line: str) -> str:
    line = re.sub(r"^[•\-\*]\s*", "", line)
    line = re.sub(r"^\d+[.)]\s*", "", line)
    return line.strip()


def parse_instruction_line(line: str) -> str:
    line = re.sub(r"^\d+[.)]\s*", "", line)
    line = re.sub(r"^step\s+\d+[.:]?\s*", "", line, flags=re.IGNORECASE)
    line = re.sub(r"^[•\-\*]\s*", "", line)
    return line.strip()


def capitalize_each_word(text: str) -> str:
    words: list[str] = []
    for word in text.split(" "):
        if word.lower() in LOWERCASE_WORDS:
            words.append(word.lower())
        else:
            words.append(word[:1].upper() + word[1:].lower())
    return " ".join(words)


def convert_fraction_to_decimal(text: str) -> str:
    """ "1 1/2" -> "1.5", "3/4" -> "0.75". Anything else comes back trimmed."""
    text = text.strip()
    if m := _MIXED_NUMBER.match(text):
        whole, num, den = (float(g) for g in m.groups())
        if den:
            return format_decimal(whole + num / den)
    if m := _FRACTION.match(text):
        num, den = (float(g) for g in m.groups())
        if den:
            return format_decimal(num / den)
    return text


def split_concatenated_units(text: str) -> str:
    for unit in CONCATENATED_UNITS:
        text = re.sub(
            rf"(\d+(?:\.\d+)?)({re.escape(unit)})", r"\1 \2", text, flags=re.IGNORECASE
        )
    return text


def parse_ingredient_item(text: str) -> IngredientItem:
    cleaned = split_concatenated_units(clean_ingredient(text))

    if m := _FULL_INGREDIENT.match(cleaned):
        return IngredientItem(
            amount=convert_fraction_to_decimal(m.group(1)),
            unit=m.group(2).strip().lower(),
            name=capitalize_each_word(m.group(3).strip()),
        )

    if m := _AMOUNT_INGREDIENT.match(cleaned):
        amount = convert_fraction_to_decimal(m.group(1))
        name = m.group(2).strip()
        first, _, rest = name.partition(" ")
        if first.lower() in UNITS:
            return IngredientItem(
                amount=amount, unit=first.lower(), name=capitalize_each_word(rest)
            )
        return IngredientItem(amount=amount, unit="", name=capitalize_each_word(name))

    if m := _UNIT_ONLY_INGREDIENT.match(cleaned):
        return IngredientItem(
            amount="1",
            unit=m.group(2).strip().lower(),
            name=capitalize_each_word(m.group(3).strip()),
        )

    return IngredientItem(amount="", unit="", name=capitalize_each_word(cleaned))


def _is_category_header(lowered: str) -> bool:
    return lowered in ("marinades", "marinade", "seasonings", "seasoning") or (
        "調味料" in lowered
    )


def _is_parenthetical_note(line: str) -> bool:
    lowered = line.lower()
    return (
        line.startswith("(")
        and line.endswith(")")
        and not any(u in lowered for u in ("tsp", "tbsp", "cup"))
        and not re.match(r"^\d+", line)
    )


def _is_preparation_note(line: str) -> bool:
    """Lines like "Grind Lemon Rind" that describe the ingredient above."""
    lowered = line.lower()
    if re.match(r"^\d+", line):
        return False
    if any(w.strip(".,()") in _NOTE_UNITS for w in lowered.split()):
        return False
    return any(a in lowered for a in _NOTE_ACTIONS)


def parse(text: str) -> ExtractedRecipe:
    lines = [
        line
        for line in (raw.strip() for raw in text.splitlines())
        if line and is_valid_recipe_line(line)
    ]

    title = ""
    description_lines: list[str] = []
    ingredients: list[tuple[str, IngredientCategory]] = []
    instructions: list[str] = []
    section = Section.unknown
    category = IngredientCategory.dish

    for index, line in enumerate(lines):
        lowered = line.lower()

        if lowered in ("procedures", "procedure"):
            section = Section.instructions
            continue
        if lowered in ("marinades", "marinade"):
            if section == Section.ingredients:
                category = IngredientCategory.marinade
            continue
        if lowered in ("seasonings", "seasoning") or "調味料" in lowered:
            if section == Section.ingredients:
                category = IngredientCategory.seasoning
            continue
        if lowered == "done":
            continue

        if "ingredient" in lowered or "材料" in lowered:
            section = Section.ingredients
            category = IngredientCategory.dish
            continue
        if any(w in lowered for w in ("instruction", "step", "method", "directions")):
            section = Section.instructions
            continue
        if any(w in lowered for w in ("recipe", "dish", "menu")) and not title:
            section = Section.title

        match section:
            case Section.title:
                if not title:
                    title = line
                else:
                    description_lines.append(line)
                    section = Section.description

            case Section.description:
                if is_ingredient_line(line):
                    section = Section.ingredients
                    ingredients.append((parse_ingredient_line(line), category))
                elif is_instruction_line(line):
                    section = Section.instructions
                    instructions.append(parse_instruction_line(line))
                elif len(line) > 5 and _has_letter(line):
                    description_lines.append(line)

            case Section.ingredients:
                if is_instruction_line(line):
                    section = Section.instructions
                    instructions.append(parse_instruction_line(line))
                elif not is_ingredient_line(line) and not description_lines:
                    description_lines.append(line)
                else:
                    ingredients.append((parse_ingredient_line(line), category))

            case Section.instructions:
                step = parse_instruction_line(line)
                if not step:
                    continue
                if not instructions:
                    instructions.append(step)
                    continue
                last = instructions[-1]
                is_new = (
                    last.endswith((".", "!", "?"))
                    or is_new_instruction_start(step)
                    or (starts_with_action_verb(step) and len(step) > 5)
                    or (step[0].isupper() and len(step) > 10)
                )
                if is_new:
                    instructions.append(step)
                else:
                    instructions[-1] = f"{last} {step}"

            case Section.unknown:
                if index == 0:
                    title = line
                    if len(line) < 100 and (line == line.upper() or len(line) > 3):
                        section = Section.title
                    else:
                        section = Section.description
                elif is_ingredient_line(line):
                    section = Section.ingredients
                    ingredients.append((parse_ingredient_line(line), category))
                elif is_instruction_line(line):
                    section = Section.instructions
                    instructions.append(parse_instruction_line(line))
                elif len(line) > 5 and _has_letter(line):
                    description_lines.append(line)

    if not title:
        title = next((line for line in lines if len(line) > 3), "")
    title = re.sub(r"^[#*]+\s*", "", title)
    title = re.sub(r"\s*[#*]+$", "", title).strip()

    groups: dict[IngredientCategory, list[IngredientItem]] = {
        IngredientCategory.dish: [],
        IngredientCategory.marinade: [],
        IngredientCategory.seasoning: [],
    }
    previous: tuple[IngredientItem, IngredientCategory] | None = None

    for line, line_category in ingredients:
        line = line.strip()
        if not line or not is_valid_recipe_line(line):
            continue
        if _is_category_header(line.lower()):
            continue

        is_note = _is_parenthetical_note(line)
        if (is_note or _is_preparation_note(line)) and previous is not None:
            note = line[1:-1] if is_note else line
            item, item_category = previous
            merged = item.model_copy(update={"name": f"{item.name} ({note})"})
            items = groups[item_category]
            if items:
                items[-1] = merged
            previous = (merged, item_category)
            continue

        item = parse_ingredient_item(line)
        if not item.name.strip():
            previous = None
            continue

        original = line.lower()
        if (
            MEASUREMENT.search(original)
            or is_food_related(item.name.lower())
            or is_food_related(original)
        ):
            groups[line_category].append(item)
            previous = (item, line_category)
        else:
            previous = None

    steps = [
        cleaned
        for cleaned in (
            clean_instruction(i) for i in instructions if i.strip() and is_valid_recipe_line(i)
        )
        if cleaned and cleaned.lower() != "done"
    ]

    description = " ".join(
        line for line in description_lines if is_valid_recipe_line(line)
    ).strip()

    return ExtractedRecipe(
        title=title,
        description=description,
        dish_ingredients=groups[IngredientCategory.dish],
        marinade_ingredients=groups[IngredientCategory.marinade],
        seasoning_ingredients=groups[IngredientCategory.seasoning],
        instructions=[f"{n}. {step}" for n, step in enumerate(steps, start=1)],
    )
