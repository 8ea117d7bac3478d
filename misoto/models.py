from datetime import datetime, timezone
from enum import Enum, IntEnum
import re
from typing import Any
import uuid

import markdown2  # pyright: ignore[reportMissingTypeStubs]
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from misoto.units import format_decimal, format_ingredient


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Difficulty(Enum):
    c = "C"
    b = "B"
    a = "A"
    s = "S"
    ss = "SS"

    @property
    def level(self) -> int:
        return list(Difficulty).index(self) + 1

    @classmethod
    def from_level(cls, level: int) -> "Difficulty":
        levels = list(cls)
        if 1 <= level <= len(levels):
            return levels[level - 1]
        return cls.c


class SpicyLevel(IntEnum):
    none = 0
    one = 1
    two = 2
    three = 3
    four = 4
    five = 5

    @property
    def chili_count(self) -> int:
        return int(self)


class IngredientCategory(Enum):
    dish = "dish"
    marinade = "marinade"
    seasoning = "seasoning"
    batter = "batter"
    sauce = "sauce"
    base = "base"
    dough = "dough"
    topping = "topping"


class IngredientItem(BaseModel):
    """An editable ingredient row: amount and unit are kept as typed."""

    amount: str = ""
    unit: str = ""
    name: str = ""

    @field_validator("amount", mode="before")
    @classmethod
    def amount_as_text(cls, value: Any) -> Any:
        if isinstance(value, bool):
            return ""
        if isinstance(value, (int, float)):
            return format_decimal(float(value))
        return "" if value is None else value

    @property
    def display_string(self) -> str:
        if not self.unit:
            return f"{self.amount} {self.name}" if self.amount else self.name
        return f"{self.amount} {self.unit} {self.name}"

    @property
    def is_blank(self) -> bool:
        return not self.name.strip()


class Ingredient(IngredientItem):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()).upper())
    category: IngredientCategory | None = None

    @classmethod
    def from_legacy(cls, text: str) -> "Ingredient":
        """Stored recipes used to keep ingredients as "2 cup flour" strings."""
        parts = text.strip().split(" ")
        if len(parts) >= 2:
            try:
                float(parts[0])
            except ValueError:
                pass
            else:
                if len(parts) >= 3:
                    return cls(amount=parts[0], unit=parts[1], name=" ".join(parts[2:]))
                return cls(amount=parts[0], unit="", name=parts[1])
        return cls(amount="", unit="", name=text)


class Instruction(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str
    image_url: str | None = Field(default=None, alias="imageURL")
    video_url: str | None = Field(default=None, alias="videoURL")


_STEP_NUMBER = re.compile(r"^\d+\.\s*")


class Recipe(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=new_id)
    title: str
    description: str = ""
    ingredients: list[Ingredient] = []
    instructions: list[Instruction] = []
    prep_time: int = Field(default=0, alias="prepTime")
    cook_time: int = Field(default=0, alias="cookTime")
    servings: int = 1
    difficulty: Difficulty = Difficulty.c
    spicy_level: SpicyLevel = Field(default=SpicyLevel.none, alias="spicyLevel")
    tips: list[str] = []
    cuisine: str | None = None
    # Single image fields predate the lists and are kept in sync with them.
    image_url: str | None = Field(default=None, alias="imageURL")
    image_urls: list[str] = Field(default=[], alias="imageURLs")
    source_image_url: str | None = Field(default=None, alias="sourceImageURL")
    source_image_urls: list[str] = Field(default=[], alias="sourceImages")
    author_id: str = Field(alias="authorID")
    author_name: str = Field(default="", alias="authorName")
    author_username: str | None = Field(default=None, alias="authorUsername")
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")
    updated_at: datetime = Field(default_factory=utcnow, alias="updatedAt")
    favorite_count: int = Field(default=0, alias="favoriteCount")

    @model_validator(mode="before")
    @classmethod
    def decode_document(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)  # pyright: ignore[reportUnknownArgumentType]
        for name, field in cls.model_fields.items():
            if field.alias and name in data and field.alias not in data:
                data[field.alias] = data.pop(name)

        # Missing and null mean the same thing in stored documents.
        for key in (
            "description",
            "authorName",
            "servings",
            "prepTime",
            "cookTime",
            "favoriteCount",
            "tips",
            "ingredients",
            "instructions",
        ):
            if data.get(key) is None:
                data.pop(key, None)

        ingredients = data.get("ingredients")
        if isinstance(ingredients, list):
            data["ingredients"] = [
                Ingredient.from_legacy(i) if isinstance(i, str) else i
                for i in ingredients  # pyright: ignore[reportUnknownVariableType]
            ]

        difficulty = data.get("difficulty")
        if not isinstance(difficulty, Difficulty):
            valid = {d.value for d in Difficulty}
            data["difficulty"] = difficulty if difficulty in valid else Difficulty.c

        data["spicyLevel"] = _decode_spicy_level(data.get("spicyLevel"))

        images = data.get("imageURLs")
        if isinstance(images, list):
            if data.get("imageURL") is None and images:
                data["imageURL"] = images[0]
        else:
            single = data.get("imageURL")
            data["imageURLs"] = [single] if single else []

        sources = data.get("sourceImages")
        if isinstance(sources, list):
            if data.get("sourceImageURL") is None and sources:
                data["sourceImageURL"] = sources[0]
        else:
            single = data.get("sourceImageURL")
            data["sourceImages"] = [single] if single else []

        if data.get("createdAt") is None:
            data["createdAt"] = utcnow()
        if data.get("updatedAt") is None:
            data["updatedAt"] = data["createdAt"]
        return data

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    def ingredient_groups(self) -> dict[IngredientCategory, list[Ingredient]]:
        """Ingredients by category in form order, uncategorised ones under dish."""
        groups: dict[IngredientCategory, list[Ingredient]] = {
            c: [] for c in IngredientCategory
        }
        for ingredient in self.ingredients:
            groups[ingredient.category or IngredientCategory.dish].append(ingredient)
        return {c: items for c, items in groups.items() if items}

    @property
    def markdown(self) -> str:
        lines = [f"# {self.title}", ""]
        if self.description:
            lines += [self.description, ""]

        facts = [
            f"**Difficulty:** {self.difficulty.value}",
            f"**Prep:** {self.prep_time} min",
            f"**Cook:** {self.cook_time} min",
            f"**Serves:** {self.servings}",
        ]
        if self.cuisine:
            facts.insert(0, f"**Cuisine:** {self.cuisine}")
        if self.spicy_level:
            facts.append(f"**Spice:** {'🌶' * self.spicy_level.chili_count}")
        lines += [" | ".join(facts), ""]

        lines += ["## Ingredients", ""]
        groups = self.ingredient_groups()
        for category, items in groups.items():
            if len(groups) > 1:
                lines += [f"### {category.value.capitalize()}", ""]
            for item in items:
                lines.append(f"- {format_ingredient(item.amount, item.unit, item.name)}")
            lines.append("")

        lines += ["## Instructions", ""]
        for n, instruction in enumerate(self.instructions, start=1):
            lines.append(f"{n}. {_STEP_NUMBER.sub('', instruction.text)}")
        lines.append("")

        if self.tips:
            lines += ["## Tips", ""]
            lines += [f"- {tip}" for tip in self.tips]
            lines.append("")

        if self.author_name:
            lines.append(f"*By {self.author_name}*")
        return "\n".join(lines).strip() + "\n"

    @property
    def html(self) -> str:
        return markdown2.markdown(  # pyright: ignore[reportUnknownVariableType, reportUnknownMemberType]
            self.markdown, safe_mode="escape"
        )


def _decode_spicy_level(value: Any) -> SpicyLevel:
    if isinstance(value, SpicyLevel):
        return value
    if isinstance(value, str):
        try:
            value = int(value.strip())
        except ValueError:
            return SpicyLevel.none
    if isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= 5:
        return SpicyLevel(value)
    return SpicyLevel.none


class AppUser(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    email: str | None = None
    display_name: str = Field(alias="displayName")
    username: str | None = None
    profile_image_url: str | None = Field(default=None, alias="profileImageURL")
    bio: str | None = None
    follower_count: int = Field(default=0, alias="followerCount")
    following_count: int = Field(default=0, alias="followingCount")
    recipe_count: int = Field(default=0, alias="recipeCount")
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")
    updated_at: datetime = Field(default_factory=utcnow, alias="updatedAt")

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class Favorite(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=new_id)
    user_id: str = Field(alias="userID")
    recipe_id: str = Field(alias="recipeID")
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")


class Follow(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=new_id)
    follower_id: str = Field(alias="followerID")
    following_id: str = Field(alias="followingID")
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")


class FeedbackEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=new_id)
    user_id: str = Field(alias="userID")
    type: str
    name: str
    subtitle: str
    email: str | None = None
    timestamp: datetime = Field(default_factory=utcnow)
    app_version: str = Field(alias="appVersion")


class ExtractedRecipe(BaseModel):
    """What an extraction produced, before it lands in a form."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str = ""
    description: str = ""
    servings: int = 0
    prep_time: int = 0
    cook_time: int = 0
    dish_ingredients: list[IngredientItem] = []
    marinade_ingredients: list[IngredientItem] = []
    seasoning_ingredients: list[IngredientItem] = []
    batter_ingredients: list[IngredientItem] = []
    sauce_ingredients: list[IngredientItem] = []
    base_ingredients: list[IngredientItem] = []
    dough_ingredients: list[IngredientItem] = []
    topping_ingredients: list[IngredientItem] = []
    instructions: list[str] = []
    tips: list[str] = []

    def ingredient_groups(self) -> dict[IngredientCategory, list[IngredientItem]]:
        return {c: getattr(self, f"{c.value}_ingredients") for c in IngredientCategory}

    @property
    def all_ingredients(self) -> list[IngredientItem]:
        return [i for items in self.ingredient_groups().values() for i in items]

    @property
    def is_empty(self) -> bool:
        has_instructions = any(i.strip() for i in self.instructions)
        return not self.title.strip() and not self.all_ingredients and not has_instructions
