"""The editable recipe form behind uploading, extracting and editing recipes.

A form keeps everything as typed (amounts are text, rows may be blank) and
only becomes a ``Recipe`` in ``build_recipe`` or ``apply_to_recipe``, which
also push any attached media to storage.
"""

import logging
import uuid

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from misoto.models import (
    Difficulty,
    ExtractedRecipe,
    Ingredient,
    IngredientCategory,
    IngredientItem,
    Instruction,
    Recipe,
    SpicyLevel,
    new_id,
    utcnow,
)
from misoto.storage import LocalStorage, StorageError
from misoto.units import pluralize


logger = logging.getLogger(__name__)


MAX_IMAGES = 5


class FormError(Exception):
    pass


def _object_name() -> str:
    return str(uuid.uuid4()).upper()


class InstructionDraft(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(default_factory=new_id)
    text: str = ""
    image: bytes | None = None
    video: bytes | None = None
    # Media already in storage, when editing.
    image_url: str | None = None
    video_url: str | None = None


class RecipeForm(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str = ""
    description: str = ""
    dish_ingredients: list[IngredientItem] = Field(default_factory=lambda: [IngredientItem()])
    marinade_ingredients: list[IngredientItem] = []
    seasoning_ingredients: list[IngredientItem] = []
    batter_ingredients: list[IngredientItem] = []
    sauce_ingredients: list[IngredientItem] = []
    base_ingredients: list[IngredientItem] = []
    dough_ingredients: list[IngredientItem] = []
    topping_ingredients: list[IngredientItem] = []
    instructions: list[InstructionDraft] = Field(default_factory=lambda: [InstructionDraft()])
    prep_time: int = 15
    cook_time: int = 30
    servings: int = 4
    difficulty: Difficulty = Difficulty.c
    spicy_level: SpicyLevel = SpicyLevel.none
    tips: list[str] = []
    cuisine: str | None = None
    new_images: list[bytes] = []
    existing_image_urls: list[str] = []
    source_images: list[bytes] = []
    source_image_urls: list[str] = []

    def to_json(self) -> dict[str, object]:
        """The form without any raw media, for sending back to a client."""
        return self.model_dump(
            mode="json",
            by_alias=True,
            exclude={
                "new_images": True,
                "source_images": True,
                "instructions": {"__all__": {"image", "video"}},
            },
        )

    def ingredients(self, category: IngredientCategory) -> list[IngredientItem]:
        return getattr(self, f"{category.value}_ingredients")

    def add_ingredient(self, category: IngredientCategory = IngredientCategory.dish) -> None:
        self.ingredients(category).append(IngredientItem())

    def remove_ingredient(self, category: IngredientCategory, index: int) -> None:
        items = self.ingredients(category)
        if 0 <= index < len(items):
            items.pop(index)

    def add_instruction(self) -> None:
        self.instructions.append(InstructionDraft())

    def remove_instruction(self, index: int) -> None:
        if len(self.instructions) > 1 and 0 <= index < len(self.instructions):
            self.instructions.pop(index)

    def move_instructions(self, source: set[int], destination: int) -> None:
        """Move the instructions at ``source`` so they land before ``destination``.

        ``destination`` is an index into the list as it was before the move.
        """
        items = list(self.instructions)
        indices = sorted((i for i in source if 0 <= i < len(items)), reverse=True)
        moved: list[InstructionDraft] = []
        for index in indices:
            moved.insert(0, items.pop(index))

        before = sum(1 for i in indices if i < destination)
        target = max(0, destination - before)
        for offset, item in enumerate(moved):
            items.insert(min(target + offset, len(items)), item)
        self.instructions = items

    def _instruction(self, index: int) -> InstructionDraft | None:
        if 0 <= index < len(self.instructions):
            return self.instructions[index]
        return None

    def set_instruction_image(self, index: int, image: bytes) -> None:
        if (draft := self._instruction(index)) is not None:
            draft.image = image

    def set_instruction_video(self, index: int, video: bytes) -> None:
        if (draft := self._instruction(index)) is not None:
            draft.video = video

    def set_instruction_video_url(self, index: int, url: str) -> None:
        if (draft := self._instruction(index)) is not None:
            draft.video_url = url

    def remove_instruction_media(self, index: int) -> None:
        if (draft := self._instruction(index)) is not None:
            draft.image = None
            draft.video = None
            draft.image_url = None
            draft.video_url = None

    @property
    def image_count(self) -> int:
        return len(self.new_images) + len(self.existing_image_urls)

    def add_image(self, image: bytes) -> bool:
        if self.image_count >= MAX_IMAGES:
            return False
        self.new_images.append(image)
        return True

    def remove_image(self, index: int) -> None:
        if 0 <= index < len(self.new_images):
            self.new_images.pop(index)

    def remove_existing_image(self, index: int) -> None:
        if 0 <= index < len(self.existing_image_urls):
            self.existing_image_urls.pop(index)

    def named_ingredients(self) -> list[tuple[IngredientCategory, IngredientItem]]:
        return [
            (category, item)
            for category in IngredientCategory
            for item in self.ingredients(category)
            if not item.is_blank
        ]

    def ingredient_strings(self) -> list[str]:
        return [item.display_string for _, item in self.named_ingredients()]

    def instruction_texts(self) -> list[str]:
        return [d.text for d in self.instructions if d.text.strip()]

    def validate_form(self, require_dish: bool = False) -> None:
        if not self.title.strip():
            raise FormError("Title is required")
        if require_dish:
            if all(i.is_blank for i in self.dish_ingredients):
                raise FormError("At least one dish ingredient is required")
        elif not self.named_ingredients():
            raise FormError("At least one ingredient is required")
        if not self.instruction_texts():
            raise FormError("At least one instruction is required")

    @classmethod
    def from_extracted(
        cls, extracted: ExtractedRecipe, *, source_images: list[bytes] | None = None
    ) -> "RecipeForm":
        form = cls(
            title=extracted.title,
            description=extracted.description,
            instructions=[InstructionDraft(text=t) for t in extracted.instructions],
            tips=list(extracted.tips),
            source_images=[] if source_images is None else list(source_images),
        )
        for category, items in extracted.ingredient_groups().items():
            setattr(form, f"{category.value}_ingredients", [i.model_copy() for i in items])
        if extracted.servings > 0:
            form.servings = extracted.servings
        if extracted.prep_time > 0:
            form.prep_time = extracted.prep_time
        if extracted.cook_time > 0:
            form.cook_time = extracted.cook_time

        if not form.dish_ingredients:
            form.dish_ingredients = [IngredientItem()]
        if not form.instructions:
            form.instructions = [InstructionDraft()]
        return form

    @classmethod
    def from_recipe(cls, recipe: Recipe) -> "RecipeForm":
        form = cls(
            title=recipe.title,
            description=recipe.description,
            dish_ingredients=[],
            instructions=[
                InstructionDraft(text=i.text, image_url=i.image_url, video_url=i.video_url)
                for i in recipe.instructions
            ],
            prep_time=recipe.prep_time,
            cook_time=recipe.cook_time,
            servings=recipe.servings,
            difficulty=recipe.difficulty,
            spicy_level=recipe.spicy_level,
            tips=list(recipe.tips),
            cuisine=recipe.cuisine,
            existing_image_urls=list(recipe.image_urls),
            source_image_urls=list(recipe.source_image_urls),
        )
        for category, items in recipe.ingredient_groups().items():
            setattr(
                form,
                f"{category.value}_ingredients",
                [IngredientItem(amount=i.amount, unit=i.unit, name=i.name) for i in items],
            )
        if not form.dish_ingredients:
            form.dish_ingredients = [IngredientItem()]
        if not form.instructions:
            form.instructions = [InstructionDraft()]
        return form

    def _ingredients(self) -> list[Ingredient]:
        return [
            Ingredient(
                amount=item.amount.strip(),
                unit=pluralize(item.unit.strip(), item.amount.strip()),
                name=item.name.strip(),
                category=category,
            )
            for category, item in self.named_ingredients()
        ]

    async def _upload_images(
        self, storage: LocalStorage, images: list[bytes], folder: str
    ) -> list[str]:
        urls: list[str] = []
        for image in images:
            try:
                urls.append(await storage.upload_image(image, f"{folder}/{_object_name()}.jpg"))
            except StorageError as e:
                logger.warning("Skipping image that failed to upload to %s: %s", folder, e)
        return urls

    async def _instructions(self, storage: LocalStorage) -> list[Instruction]:
        instructions: list[Instruction] = []
        for draft in self.instructions:
            if not draft.text.strip():
                continue
            image_url, video_url = draft.image_url, draft.video_url
            if draft.image is not None:
                image_url = await storage.upload_image(
                    draft.image, f"recipe-instructions/{_object_name()}.jpg"
                )
            if draft.video is not None:
                video_url = await storage.upload_video(
                    draft.video, f"recipe-instructions/{_object_name()}.mp4"
                )
            instructions.append(
                Instruction(text=draft.text.strip(), image_url=image_url, video_url=video_url)
            )
        return instructions

    def _fields(self) -> dict[str, object]:
        cuisine = self.cuisine.strip() if self.cuisine else ""
        return {
            "title": self.title.strip(),
            "description": self.description.strip(),
            "ingredients": self._ingredients(),
            "prep_time": self.prep_time,
            "cook_time": self.cook_time,
            "servings": self.servings,
            "difficulty": self.difficulty,
            "spicy_level": self.spicy_level,
            "tips": [t.strip() for t in self.tips if t.strip()],
            "cuisine": cuisine or None,
        }

    async def build_recipe(
        self,
        storage: LocalStorage,
        *,
        author_id: str,
        author_name: str,
        author_username: str | None = None,
        require_dish: bool = False,
    ) -> Recipe:
        self.validate_form(require_dish)

        image_urls = await self._upload_images(storage, self.new_images, "recipes")
        image_urls = self.existing_image_urls + image_urls
        source_urls = await self._upload_images(storage, self.source_images, "source-images")
        source_urls = self.source_image_urls + source_urls
        instructions = await self._instructions(storage)

        return Recipe(
            **self._fields(),
            instructions=instructions,
            image_url=image_urls[0] if image_urls else None,
            image_urls=image_urls,
            source_image_url=source_urls[0] if source_urls else None,
            source_image_urls=source_urls,
            author_id=author_id,
            author_name=author_name,
            author_username=author_username,
        )

    async def apply_to_recipe(
        self, recipe: Recipe, storage: LocalStorage, *, require_dish: bool = False
    ) -> Recipe:
        """Write the form back onto ``recipe``, syncing its images with storage."""
        self.validate_form(require_dish)

        for url in recipe.image_urls:
            if url in self.existing_image_urls:
                continue
            try:
                await storage.delete_file_from_url(url)
            except StorageError as e:
                logger.warning("Could not delete removed image %s: %s", url, e)

        uploaded = await self._upload_images(storage, self.new_images, "recipes")
        image_urls = self.existing_image_urls + uploaded
        sources = await self._upload_images(storage, self.source_images, "source-images")
        source_urls = self.source_image_urls + sources
        instructions = await self._instructions(storage)

        for name, value in self._fields().items():
            setattr(recipe, name, value)
        recipe.instructions = instructions
        recipe.image_urls = image_urls
        recipe.image_url = image_urls[0] if image_urls else None
        recipe.source_image_urls = source_urls
        recipe.source_image_url = source_urls[0] if source_urls else None
        recipe.updated_at = utcnow()
        return recipe
