"""Template descriptions for recipes, no network involved."""

from misoto.models import IngredientItem


# First match wins, so the specific cuisines come before the broad hints.
CUISINE_KEYWORDS = [
    ("japanese", "Japanese"),
    ("chinese", "Chinese"),
    ("thai", "Thai"),
    ("indian", "Indian"),
    ("italian", "Italian"),
    ("mexican", "Mexican"),
    ("french", "French"),
    ("korean", "Korean"),
    ("vietnamese", "Vietnamese"),
    ("mediterranean", "Mediterranean"),
    ("asian", "Asian"),
    ("wok", "Asian"),
    ("soy", "Asian"),
    ("mirin", "Japanese"),
    ("sake", "Japanese"),
    ("miso", "Japanese"),
    ("ginger", "Asian"),
    ("garlic", "Asian"),
    ("sesame", "Asian"),
    ("curry", "Indian"),
    ("coconut", "Thai"),
    ("lemongrass", "Thai"),
    ("fish sauce", "Thai"),
    ("oyster sauce", "Chinese"),
    ("hoisin", "Chinese"),
    ("szechuan", "Chinese"),
    ("sichuan", "Chinese"),
    ("parmesan", "Italian"),
    ("basil", "Italian"),
    ("oregano", "Italian"),
    ("cilantro", "Mexican"),
    ("cumin", "Mexican"),
    ("chili", "Mexican"),
]

COOKING_METHODS = [
    ("stir-fry", "stir-frying"),
    ("wok", "stir-frying"),
    ("deep-fry", "deep-frying"),
    ("fry", "frying"),
    ("roast", "roasting"),
    ("bake", "baking"),
    ("grill", "grilling"),
    ("steam", "steaming"),
    ("braise", "braising"),
    ("simmer", "simmering"),
    ("boil", "boiling"),
    ("marinate", "marinating"),
]

FLAVOURS = [
    ("sweet", ["sugar", "honey", "brown sugar", "mirin"]),
    ("spicy", ["pepper", "chili", "spicy", "szechuan"]),
    ("tangy", ["lemon", "lime", "vinegar", "citrus"]),
    ("umami-rich", ["soy", "miso", "oyster", "fish sauce"]),
    ("aromatic", ["ginger", "garlic", "herb", "spice"]),
]

STAPLES = {"salt", "pepper", "oil", "water", "sugar", "flour", "butter", "garlic", "onion", "ginger"}


def detect_cuisine(title: str, ingredients: list[str]) -> str:
    combined = f"{title} {' '.join(ingredients)}".lower()
    for keyword, cuisine in CUISINE_KEYWORDS:
        if keyword in combined:
            return cuisine
    return "delicious"


def main_ingredients(ingredients: list[str], limit: int = 5) -> list[str]:
    main: list[str] = []
    for ingredient in ingredients:
        base = ingredient.lower().split("(")[0].strip()
        if base not in STAPLES and len(base) > 3:
            main.append(ingredient)
    return main[:limit]


def detect_cooking_method(title: str, ingredients: list[str]) -> str:
    combined = f"{title} {' '.join(ingredients)}".lower()
    for keyword, method in COOKING_METHODS:
        if keyword in combined:
            return method
    return ""


def detect_flavour_profile(ingredients: list[str]) -> str:
    text = " ".join(ingredients).lower()
    flavours = [name for name, hints in FLAVOURS if any(h in text for h in hints)]
    return " and ".join(flavours) if flavours else "balanced"


def generate_description(
    title: str,
    *,
    dish: list[IngredientItem],
    marinade: list[IngredientItem] | None = None,
    seasoning: list[IngredientItem] | None = None,
) -> str:
    marinade = [] if marinade is None else marinade
    seasoning = [] if seasoning is None else seasoning
    names = [i.name for i in marinade + seasoning + dish if i.name]
    if not title or not names:
        return ""

    cuisine = detect_cuisine(title, names)
    main = main_ingredients(names)
    method = detect_cooking_method(title, names)
    flavour = detect_flavour_profile(names)

    if main:
        parts = [f"A delicious {cuisine} dish featuring {', '.join(main[:3])}."]
    else:
        parts = [f"A flavorful {cuisine} recipe."]
    parts.append(f"This dish offers a {flavour} flavor profile.")
    if method:
        parts.append(f"Prepared using {method} techniques.")
    if marinade:
        parts.append("The marinade enhances the flavors with carefully selected ingredients.")
    if seasoning:
        parts.append("Seasoned with aromatic spices and herbs.")

    description = " ".join(parts)
    description = description[:1].upper() + description[1:]
    if not description.endswith((".", "!", "?")):
        description += "."
    return description
