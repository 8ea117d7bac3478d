from datetime import datetime, timezone

from databases import Database
import pytest

from misoto.db import (
    RecipeNotFound,
    RecipesRepository,
    UserNotFound,
    UsersRepository,
)
from misoto.models import AppUser, Ingredient, Instruction, Recipe
from misoto.services import RecipeService, Unauthorized


def recipe(title: str, author_id: str = "u1", day: int = 1) -> Recipe:
    return Recipe(
        title=title,
        authorID=author_id,
        createdAt=datetime(2024, 1, day, tzinfo=timezone.utc),
        ingredients=[Ingredient(amount="2", unit="cup", name="Rice")],
        instructions=[Instruction(text="Cook the rice.")],
    )


async def add_user(db: Database, id: str, display_name: str = "Cook", username: str | None = None) -> AppUser:
    return await UsersRepository(db).create(AppUser(id=id, display_name=display_name, username=username))


@pytest.mark.asyncio
async def test_recipe_round_trip(db: Database) -> None:
    repo = RecipesRepository(db)
    given = recipe("Congee")
    await repo.create(given)
    got = await repo.get(given.id)
    assert got == given
    assert await repo.exists(given.id)
    assert not await repo.exists("missing")


@pytest.mark.asyncio
async def test_get_missing_recipe(db: Database) -> None:
    with pytest.raises(RecipeNotFound):
        await RecipesRepository(db).get("missing")


@pytest.mark.asyncio
async def test_create_and_list_newest_first(db: Database) -> None:
    await add_user(db, "u1")
    await add_user(db, "u2")
    service = RecipeService(db)
    for title, author, day in (("Old", "u1", 1), ("New", "u1", 3), ("Other", "u2", 2)):
        await service.create_recipe(recipe(title, author, day), author)

    assert [r.title for r in await service.fetch_all_recipes()] == ["New", "Other", "Old"]
    assert [r.title for r in await service.fetch_recipes_by_user("u1")] == ["New", "Old"]
    assert (await UsersRepository(db).get("u1")).recipe_count == 2


@pytest.mark.asyncio
async def test_undecodable_rows_are_skipped(db: Database) -> None:
    service = RecipeService(db)
    good = await service.create_recipe(recipe("Good"), "u1")
    await db.execute(  # pyright: ignore[reportUnknownMemberType]
        "INSERT INTO Recipes(id, author_id, created_at, favorite_count, document) "
        "VALUES ('bad', 'u1', '2024-02-01', 0, '{\"title\": 12')"
    )
    await db.execute(  # pyright: ignore[reportUnknownMemberType]
        "INSERT INTO Recipes(id, author_id, created_at, favorite_count, document) "
        "VALUES ('nameless', 'u1', '2024-02-02', 0, '{\"authorID\": \"u1\"}')"
    )

    assert [r.id for r in await service.fetch_all_recipes()] == [good.id]
    assert await service.fetch_recipe("bad") is None
    assert await service.fetch_recipe("nameless") is None
    assert await service.fetch_recipe("missing") is None


@pytest.mark.asyncio
async def test_update_recipe(db: Database) -> None:
    service = RecipeService(db)
    given = await service.create_recipe(recipe("Congee"), "u1")
    before = given.updated_at

    given.title = "Chicken Congee"
    await service.update_recipe(given)

    got = await service.fetch_recipe(given.id)
    assert got is not None
    assert got.title == "Chicken Congee"
    assert got.updated_at > before
    assert got.created_at == given.created_at


@pytest.mark.asyncio
async def test_update_missing_recipe(db: Database) -> None:
    with pytest.raises(RecipeNotFound):
        await RecipeService(db).update_recipe(recipe("Ghost"))


@pytest.mark.asyncio
async def test_update_keeps_favorite_count(db: Database) -> None:
    service = RecipeService(db)
    given = await service.create_recipe(recipe("Congee"), "u1")
    await service.add_favorite(given.id, "u2")

    # The caller's copy still says 0 favourites.
    given.description = "Comfort in a bowl."
    await service.update_recipe(given)

    got = await service.fetch_recipe(given.id)
    assert got is not None
    assert got.favorite_count == 1
    assert got.description == "Comfort in a bowl."


@pytest.mark.asyncio
async def test_delete_recipe(db: Database) -> None:
    await add_user(db, "u1")
    service = RecipeService(db)
    given = await service.create_recipe(recipe("Congee"), "u1")

    await service.delete_recipe(given.id, "u1")

    assert await service.fetch_recipe(given.id) is None
    assert (await UsersRepository(db).get("u1")).recipe_count == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("user_id", (None, "", "u2"))
async def test_delete_recipe_unauthorized(db: Database, user_id: str | None) -> None:
    service = RecipeService(db)
    given = await service.create_recipe(recipe("Congee"), "u1")
    with pytest.raises(Unauthorized):
        await service.delete_recipe(given.id, user_id)
    assert await service.fetch_recipe(given.id) is not None


@pytest.mark.asyncio
async def test_delete_missing_recipe(db: Database) -> None:
    with pytest.raises(Unauthorized):
        await RecipeService(db).delete_recipe("missing", "u1")


@pytest.mark.asyncio
async def test_favorites(db: Database) -> None:
    service = RecipeService(db)
    first = await service.create_recipe(recipe("First"), "u1")
    second = await service.create_recipe(recipe("Second", day=2), "u1")

    await service.add_favorite(first.id, "u2")
    await service.add_favorite(first.id, "u2")
    await service.add_favorite(second.id, "u2")

    assert await service.is_favorite(first.id, "u2")
    assert not await service.is_favorite(first.id, "u3")
    assert len(await service.fetch_favorites("u2")) == 2
    assert [r.title for r in await service.fetch_favorite_recipes("u2")] == ["Second", "First"]
    got = await service.fetch_recipe(first.id)
    assert got is not None and got.favorite_count == 1

    await service.remove_favorite(first.id, "u2")
    await service.remove_favorite(first.id, "u2")
    got = await service.fetch_recipe(first.id)
    assert got is not None and got.favorite_count == 0
    assert not await service.is_favorite(first.id, "u2")


@pytest.mark.asyncio
async def test_favorite_needs_user(db: Database) -> None:
    service = RecipeService(db)
    with pytest.raises(Unauthorized):
        await service.add_favorite("r1", None)
    with pytest.raises(Unauthorized):
        await service.remove_favorite("r1", "")


@pytest.mark.asyncio
async def test_favorite_recipes_newest_recipe_first(db: Database) -> None:
    service = RecipeService(db)
    old = await service.create_recipe(recipe("Old", day=1), "u1")
    new = await service.create_recipe(recipe("New", day=5), "u1")

    await service.add_favorite(new.id, "u2")
    await service.add_favorite(old.id, "u2")

    assert [r.title for r in await service.fetch_favorite_recipes("u2")] == ["New", "Old"]


@pytest.mark.asyncio
async def test_favorite_missing_recipe(db: Database) -> None:
    service = RecipeService(db)
    with pytest.raises(RecipeNotFound):
        await service.add_favorite("missing", "u2")
    assert await service.fetch_favorites("u2") == []


@pytest.mark.asyncio
async def test_favorites_of_deleted_recipes_are_dropped(db: Database) -> None:
    service = RecipeService(db)
    given = await service.create_recipe(recipe("Congee"), "u1")
    await service.add_favorite(given.id, "u2")
    await service.delete_recipe(given.id, "u1")
    assert await service.fetch_favorite_recipes("u2") == []


@pytest.mark.asyncio
async def test_user_counters(db: Database) -> None:
    users = UsersRepository(db)
    await add_user(db, "u1")
    await users.increment("u1", "follower_count", 2)
    await users.increment("u1", "follower_count", -5)
    await users.increment("u1", "following_count", 1)

    got = await users.get("u1")
    assert got.follower_count == 0
    assert got.following_count == 1
    with pytest.raises(ValueError):
        await users.increment("u1", "id", 1)


@pytest.mark.asyncio
async def test_user_update_leaves_counters(db: Database) -> None:
    users = UsersRepository(db)
    user = await add_user(db, "u1", "Mei")
    await users.increment("u1", "recipe_count", 3)

    user.bio = "Dumplings daily"
    await users.update(user)

    got = await users.get("u1")
    assert got.bio == "Dumplings daily"
    assert got.recipe_count == 3


@pytest.mark.asyncio
async def test_find_users(db: Database) -> None:
    users = UsersRepository(db)
    await add_user(db, "u1", "Mei Lin", "MeiCooks")
    await add_user(db, "u2", "Mark", None)

    assert await users.find("missing") is None
    with pytest.raises(UserNotFound):
        await users.get("missing")
    assert [u.id for u in await users.find_by_username("meicooks")] == ["u1"]
    assert [u.id for u in await users.search_by_display_name("M")] == ["u2", "u1"]
    assert [u.id for u in await users.search_by_display_name("Mei")] == ["u1"]
    assert await users.search_by_display_name("mei") == []
