ALL_CUISINES = [
    # Asian
    "Chinese",
    "Japanese",
    "Korean",
    "Thai",
    "Vietnamese",
    "Indian",
    "Indonesian",
    "Malaysian",
    "Singaporean",
    "Filipino",
    "Burmese",
    "Cambodian",
    "Laotian",
    "Sri Lankan",
    "Pakistani",
    "Bangladeshi",
    # European
    "Italian",
    "French",
    "Spanish",
    "Greek",
    "Turkish",
    "German",
    "British",
    "Irish",
    "Scottish",
    "Polish",
    "Russian",
    "Swedish",
    "Norwegian",
    "Danish",
    "Finnish",
    "Dutch",
    "Belgian",
    "Swiss",
    "Austrian",
    "Portuguese",
    "Czech",
    "Hungarian",
    "Romanian",
    "Bulgarian",
    # Middle Eastern and North African
    "Lebanese",
    "Israeli",
    "Iranian",
    "Iraqi",
    "Syrian",
    "Egyptian",
    "Moroccan",
    "Tunisian",
    "Algerian",
    "Yemeni",
    # African
    "Ethiopian",
    "Nigerian",
    "South African",
    "Ghanaian",
    "Kenyan",
    "Senegalese",
    "Tanzanian",
    # Americas
    "American",
    "Mexican",
    "Tex-Mex",
    "Cuban",
    "Brazilian",
    "Argentinian",
    "Peruvian",
    "Colombian",
    "Chilean",
    "Venezuelan",
    "Jamaican",
    "Caribbean",
    # Oceania
    "Australian",
    "New Zealand",
    # Other
    "Fusion",
    "Mediterranean",
    "Middle Eastern",
    "International",
    "Vegetarian",
    "Vegan",
    "Other",
]


def search_cuisines(query: str) -> list[str]:
    query = query.strip().lower()
    if not query:
        return list(ALL_CUISINES)
    return [c for c in ALL_CUISINES if query in c.lower()]


def match_cuisine(answer: str) -> str:
    """Map a free text answer onto the known cuisines, "Other" if none fits."""
    answer = answer.strip()
    if answer in ALL_CUISINES:
        return answer
    for cuisine in ALL_CUISINES:
        if cuisine.lower() == answer.lower():
            return cuisine
    return "Other"
