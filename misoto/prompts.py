_FRACTIONS = """IMPORTANT: Convert all fractions and mixed numbers to decimals:
- "1/2" → "0.5"
- "1 1/2" or "1½" → "1.5"
- "3 1/2" or "3½" → "3.5"
- "2 1/4" → "2.25"
- "1/4" → "0.25"
- "3/4" → "0.75"
Mixed numbers (whole number + fraction) must be converted to a single decimal number.
All output in English."""


EXTRACT_RECIPE_FROM_IMAGE_PROMPT = f"""Extract recipe from image. Detect language, translate to English, return JSON only.

Sections: dishIngredients, marinadeIngredients, seasoningIngredients, instructions.
Ingredients: amount (number/decimals), unit (tbsp/tsp/cup/g/kg/ml/l/oz/lb/piece/pinch), name (Capitalized Words).
{_FRACTIONS}

JSON format:
{{"title":"Recipe Title","description":"Description","dishIngredients":[{{"amount":"12","unit":"","name":"Item"}}],"marinadeIngredients":[],"seasoningIngredients":[],"instructions":["Step 1","Step 2"]}}"""


EXTRACT_RECIPE_FROM_TEXT_PROMPT = f"""Extract recipe from text. Detect language, translate to English, return JSON only.

Sections: dishIngredients, marinadeIngredients, seasoningIngredients, batterIngredients, sauceIngredients, baseIngredients, doughIngredients, toppingIngredients, instructions, tips.
Only use the extra sections when the recipe has them, otherwise leave them empty.
Ingredients: amount (number/decimals), unit (tbsp/tsp/cup/g/kg/ml/l/oz/lb/piece/pinch), name (Capitalized Words).
Include servings, prepTime and cookTime (minutes) as integers when stated, otherwise 0.
{_FRACTIONS}

JSON format:
{{"title":"Recipe Title","description":"Description","servings":4,"prepTime":15,"cookTime":30,"dishIngredients":[{{"amount":"12","unit":"","name":"Item"}}],"marinadeIngredients":[],"seasoningIngredients":[],"batterIngredients":[],"sauceIngredients":[],"baseIngredients":[],"doughIngredients":[],"toppingIngredients":[],"instructions":["Step 1","Step 2"],"tips":[]}}"""


IMAGE_USER_PROMPT = "Extract recipe from image. Return JSON only."


def content_user_prompt(text: str) -> str:
    return f"Extract recipe from content. Return JSON only.\n\nContent:\n{text}"


DESCRIPTION_PROMPT = (
    "You are a culinary expert. Generate a brief, appetizing description "
    "(2-3 sentences) for a recipe.\n"
    "The description should be engaging, highlight key ingredients or cooking "
    "methods, and make the dish sound appealing.\n"
    "Keep it concise and professional."
)


def cuisine_prompt(cuisines: list[str]) -> str:
    return (
        "You are a culinary expert. Analyze the recipe and determine the most "
        "suitable cuisine type.\n"
        f"Return ONLY the cuisine name from this list: {', '.join(cuisines)}\n"
        'If the cuisine is not clearly identifiable, return "Other".\n'
        "Return only the cuisine name, nothing else."
    )


TIME_PROMPT = (
    "You are a culinary expert. Analyze the recipe instructions and extract "
    "preparation time and cooking time in minutes.\n"
    'Return ONLY a JSON object with "prepTime" and "cookTime" as integers (in minutes).\n'
    "If time cannot be determined, use reasonable defaults: prepTime: 15, cookTime: 30.\n"
    'Look for time indicators like "minutes", "mins", "hours", "hrs", '
    '"marinate for X", "cook for X", etc.'
)


def time_user_prompt(title: str, instructions: str) -> str:
    return (
        "Extract preparation and cooking time from this recipe:\n"
        f"Title: {title}\n"
        f"Instructions: {instructions}\n\n"
        'Return JSON only: {"prepTime": 15, "cookTime": 30}'
    )


DIFFICULTY_PROMPT = (
    "You are a culinary expert. Analyze the recipe and determine the difficulty level.\n"
    "Difficulty levels: C (easiest), B, A, S, SS (hardest).\n"
    "Consider: number of ingredients, complexity of techniques, cooking time, "
    "skill level required.\n"
    "Return ONLY one letter: C, B, A, S, or SS."
)


TRANSLATE_PROMPT = (
    "Translate the following recipe text to English. Keep the line breaks, "
    "quantities and units exactly as they are. If the text is already in "
    "English return it unchanged. Respond only with the text.\n\n"
    "Text:\n{text}"
)


IMAGE_TEXT_PROMPT = (
    "Transcribe all the text in this image exactly as written, line by line. "
    "Do not add, translate or summarise anything. Respond only with the text."
)
