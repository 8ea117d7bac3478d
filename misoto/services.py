import logging

from databases import Database
from pydantic import ValidationError

from misoto.db import (
    FavoritesRepository,
    RecipeError,
    RecipeNotFound,
    RecipesRepository,
    UsersRepository,
)
from misoto.models import Favorite, Recipe, utcnow


logger = logging.getLogger(__name__)


__all__ = ["RecipeError", "RecipeNotFound", "RecipeService", "Unauthorized"]


class Unauthorized(RecipeError):
    def __init__(self, message: str = "You are not allowed to change this recipe.") -> None:
        super().__init__(message)


class RecipeService:
    def __init__(
        self,
        db: Database,
        *,
        recipes: RecipesRepository | None = None,
        users: UsersRepository | None = None,
        favorites: FavoritesRepository | None = None,
    ) -> None:
        self.recipes = RecipesRepository(db) if recipes is None else recipes
        self.users = UsersRepository(db) if users is None else users
        self.favorites = FavoritesRepository(db) if favorites is None else favorites

    async def create_recipe(self, recipe: Recipe, user_id: str) -> Recipe:
        await self.recipes.create(recipe)
        await self.users.increment(user_id, "recipe_count", 1)
        logger.info("Created recipe %s for %s", recipe.id, user_id)
        return recipe

    async def fetch_all_recipes(self) -> list[Recipe]:
        return await self.recipes.list_all()

    async def fetch_recipe(self, id: str) -> Recipe | None:
        try:
            return await self.recipes.get(id)
        except RecipeNotFound:
            return None
        except (ValueError, ValidationError) as e:
            logger.warning("Recipe %s could not be decoded: %s", id, e)
            return None

    async def fetch_recipes_by_user(self, user_id: str) -> list[Recipe]:
        return await self.recipes.list_by_author(user_id)

    async def update_recipe(self, recipe: Recipe) -> Recipe:
        if not await self.recipes.exists(recipe.id):
            raise RecipeNotFound(recipe.id)
        recipe.updated_at = utcnow()
        return await self.recipes.update(recipe)

    async def delete_recipe(self, id: str, user_id: str | None) -> None:
        if not user_id:
            raise Unauthorized()
        recipe = await self.fetch_recipe(id)
        if recipe is None or recipe.author_id != user_id:
            raise Unauthorized()
        await self.recipes.delete(id)
        await self.users.increment(user_id, "recipe_count", -1)
        logger.info("Deleted recipe %s", id)

    async def add_favorite(self, recipe_id: str, user_id: str | None) -> None:
        if not user_id:
            raise Unauthorized("Sign in to save favourites.")
        if not await self.recipes.exists(recipe_id):
            raise RecipeNotFound(recipe_id)
        if await self.favorites.get(user_id, recipe_id) is not None:
            return
        await self.favorites.create(Favorite(user_id=user_id, recipe_id=recipe_id))
        await self.recipes.increment_favorites(recipe_id, 1)

    async def remove_favorite(self, recipe_id: str, user_id: str | None) -> None:
        if not user_id:
            raise Unauthorized("Sign in to save favourites.")
        if await self.favorites.get(user_id, recipe_id) is None:
            return
        await self.favorites.delete(user_id, recipe_id)
        await self.recipes.increment_favorites(recipe_id, -1)

    async def fetch_favorites(self, user_id: str) -> list[Favorite]:
        return await self.favorites.list_for_user(user_id)

    async def is_favorite(self, recipe_id: str, user_id: str) -> bool:
        return await self.favorites.get(user_id, recipe_id) is not None

    async def fetch_favorite_recipes(self, user_id: str) -> list[Recipe]:
        """Favourited recipes, newest recipe first."""
        recipes: list[Recipe] = []
        for favorite in await self.fetch_favorites(user_id):
            recipe = await self.fetch_recipe(favorite.recipe_id)
            if recipe is not None:
                recipes.append(recipe)
        recipes.sort(key=lambda r: r.created_at, reverse=True)
        return recipes
