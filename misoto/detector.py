"""Score text for how much it looks like a recipe.

Used on web pages before anything is sent to the completion endpoint, so a
news article or a shop front never costs a request.
"""

import re


MIN_LENGTH = 120
MAX_LENGTH = 50000
THRESHOLD = 2

RECIPE_KEYWORDS = [
    "ingredient", "ingredients", "instruction", "instructions", "directions",
    "recipe", "method", "steps", "preparation", "servings", "serves", "yield",
    "how to", "make",
]  # fmt: skip

COOKING_VERBS = [
    "preheat", "bake", "cook", "simmer", "boil", "fry", "sauté", "roast", "mix",
    "combine", "add", "heat", "stir", "whisk", "beat", "fold", "knead", "roll",
    "season", "chop", "slice", "dice", "cut", "peel", "grate", "pour",
    "sprinkle", "steam", "grill", "marinate", "brush", "glaze",
]  # fmt: skip

COMMON_INGREDIENTS = [
    "salt", "pepper", "garlic", "onion", "butter", "oil", "flour", "sugar",
    "egg", "eggs", "milk", "cheese", "chicken", "beef", "pork", "fish",
    "tomato", "carrot", "potato", "water", "vinegar", "lemon", "herb", "spice",
    "rice", "pasta", "noodle", "bread", "meat", "vegetable", "fruit", "sauce",
    "broth", "stock", "soy", "ginger", "scallion", "chili", "sesame",
]  # fmt: skip

MEASUREMENT = re.compile(
    r"\d+\s*(cup|cups|tbsp|tsp|oz|lb|g|kg|ml|l|gram|grams|ounce|ounces|pound"
    r"|pounds|tablespoon|tablespoons|teaspoon|teaspoons)",
    re.IGNORECASE,
)

STEPS = [
    re.compile(r"\d+\.\s+[A-Za-z]", re.IGNORECASE),
    re.compile(r"step\s+\d+|step\s+[a-z]+:", re.IGNORECASE),
]

INGREDIENT_LIST = [
    re.compile(r"ingredient[s]?:", re.IGNORECASE),
    re.compile(
        r"\d+\s+\w+\s+(cup|tbsp|tsp|oz|lb|g|kg|ml|l|gram|ounce|pound)", re.IGNORECASE
    ),
    re.compile(r"^[\s]*[-•]\s*\w+", re.IGNORECASE),
    re.compile(r"\n[\s]*[-•]\s*\w+", re.IGNORECASE),
]

TIMES = [
    re.compile(r"(prep|cook|preparation|cooking)\s+time", re.IGNORECASE),
    re.compile(r"\d+\s*(minute|minutes|min|hour|hours|hr)", re.IGNORECASE),
    re.compile(r"serves?\s+\d+|servings?:\s*\d+", re.IGNORECASE),
]

_INGREDIENT_WORDS = [
    re.compile(rf"\b{re.escape(i)}\b", re.IGNORECASE) for i in COMMON_INGREDIENTS
]


def _tiered(count: int) -> int:
    if count >= 2:
        return 2
    return 1 if count == 1 else 0


def recipe_score(text: str) -> int:
    lowered = text.lower()
    score = 0

    if any(k in lowered for k in RECIPE_KEYWORDS):
        score += 2
    if MEASUREMENT.search(text):
        score += 2
    score += _tiered(sum(1 for v in COOKING_VERBS if v in lowered))
    if any(p.search(text) for p in STEPS):
        score += 1
    if any(p.search(text) for p in INGREDIENT_LIST):
        score += 1
    if any(p.search(text) for p in TIMES):
        score += 1
    score += _tiered(sum(1 for p in _INGREDIENT_WORDS if p.search(text)))
    return score


def detect_recipe_in_text(text: str) -> bool:
    if not text.strip():
        return False
    if not MIN_LENGTH < len(text) < MAX_LENGTH:
        return False
    return recipe_score(text) >= THRESHOLD
