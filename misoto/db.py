import json
import logging
from typing import Any

from databases import Database
from databases.interfaces import Record
from pydantic import ValidationError

from misoto.models import AppUser, Favorite, FeedbackEntry, Follow, Recipe


logger = logging.getLogger(__name__)


CREATE_RECIPES_TABLE = """
CREATE TABLE IF NOT EXISTS Recipes (
    id VARCHAR(64) PRIMARY KEY,
    author_id VARCHAR(128) NOT NULL,
    created_at VARCHAR(64) NOT NULL,
    favorite_count INTEGER NOT NULL DEFAULT 0,
    document TEXT NOT NULL
)
"""

CREATE_USERS_TABLE = """
CREATE TABLE IF NOT EXISTS Users (
    id VARCHAR(128) PRIMARY KEY,
    email VARCHAR(256),
    display_name VARCHAR(256) NOT NULL,
    username VARCHAR(64),
    profile_image_url VARCHAR(1024),
    bio TEXT,
    follower_count INTEGER NOT NULL DEFAULT 0,
    following_count INTEGER NOT NULL DEFAULT 0,
    recipe_count INTEGER NOT NULL DEFAULT 0,
    created_at VARCHAR(64) NOT NULL,
    updated_at VARCHAR(64) NOT NULL
)
"""

CREATE_FAVORITES_TABLE = """
CREATE TABLE IF NOT EXISTS Favorites (
    id VARCHAR(64) PRIMARY KEY,
    user_id VARCHAR(128) NOT NULL,
    recipe_id VARCHAR(64) NOT NULL,
    created_at VARCHAR(64) NOT NULL,
    UNIQUE (user_id, recipe_id)
)
"""

CREATE_FOLLOWS_TABLE = """
CREATE TABLE IF NOT EXISTS Follows (
    id VARCHAR(64) PRIMARY KEY,
    follower_id VARCHAR(128) NOT NULL,
    following_id VARCHAR(128) NOT NULL,
    created_at VARCHAR(64) NOT NULL,
    UNIQUE (follower_id, following_id)
)
"""

CREATE_FEEDBACK_TABLE = """
CREATE TABLE IF NOT EXISTS Feedback (
    id VARCHAR(64) PRIMARY KEY,
    user_id VARCHAR(128) NOT NULL,
    type VARCHAR(64) NOT NULL,
    name VARCHAR(256) NOT NULL,
    subtitle TEXT NOT NULL,
    email VARCHAR(256),
    timestamp VARCHAR(64) NOT NULL,
    app_version VARCHAR(32) NOT NULL
)
"""


CREATE_RECIPE = """
INSERT INTO Recipes(id, author_id, created_at, favorite_count, document)
VALUES (:id, :author_id, :created_at, :favorite_count, :document)
"""

GET_RECIPE = "SELECT * FROM Recipes WHERE id = :id"

LIST_RECIPES = "SELECT * FROM Recipes ORDER BY created_at DESC"

LIST_RECIPES_BY_AUTHOR = (
    "SELECT * FROM Recipes WHERE author_id = :author_id ORDER BY created_at DESC"
)

UPDATE_RECIPE = """
UPDATE Recipes SET author_id = :author_id, created_at = :created_at, document = :document
WHERE id = :id
"""

DELETE_RECIPE = "DELETE FROM Recipes WHERE id = :id"

INCREMENT_FAVORITES = """
UPDATE Recipes SET favorite_count = MAX(0, favorite_count + :delta) WHERE id = :id
"""


CREATE_USER = """
INSERT INTO Users(
    id, email, display_name, username, profile_image_url, bio,
    follower_count, following_count, recipe_count, created_at, updated_at
) VALUES (
    :id, :email, :display_name, :username, :profile_image_url, :bio,
    :follower_count, :following_count, :recipe_count, :created_at, :updated_at
)
"""

GET_USER = "SELECT * FROM Users WHERE id = :id"

UPDATE_USER = """
UPDATE Users SET email = :email, display_name = :display_name, username = :username,
    profile_image_url = :profile_image_url, bio = :bio, updated_at = :updated_at
WHERE id = :id
"""

FIND_USERS_BY_USERNAME = "SELECT * FROM Users WHERE lower(username) = lower(:username)"

SEARCH_USERS = """
SELECT * FROM Users WHERE display_name >= :start AND display_name < :end
ORDER BY display_name LIMIT :limit
"""

# Column names can't be bound as parameters.
COUNTERS = ("follower_count", "following_count", "recipe_count")


CREATE_FAVORITE = """
INSERT INTO Favorites(id, user_id, recipe_id, created_at)
VALUES (:id, :user_id, :recipe_id, :created_at)
"""

GET_FAVORITE = "SELECT * FROM Favorites WHERE user_id = :user_id AND recipe_id = :recipe_id"

DELETE_FAVORITE = "DELETE FROM Favorites WHERE user_id = :user_id AND recipe_id = :recipe_id"

LIST_FAVORITES = "SELECT * FROM Favorites WHERE user_id = :user_id ORDER BY created_at DESC"


CREATE_FOLLOW = """
INSERT INTO Follows(id, follower_id, following_id, created_at)
VALUES (:id, :follower_id, :following_id, :created_at)
"""

GET_FOLLOW = (
    "SELECT * FROM Follows WHERE follower_id = :follower_id AND following_id = :following_id"
)

DELETE_FOLLOW = (
    "DELETE FROM Follows WHERE follower_id = :follower_id AND following_id = :following_id"
)

LIST_FOLLOWERS = "SELECT follower_id FROM Follows WHERE following_id = :user_id"

LIST_FOLLOWING = "SELECT following_id FROM Follows WHERE follower_id = :user_id"


CREATE_FEEDBACK = """
INSERT INTO Feedback(id, user_id, type, name, subtitle, email, timestamp, app_version)
VALUES (:id, :user_id, :type, :name, :subtitle, :email, :timestamp, :app_version)
"""

LIST_FEEDBACK = "SELECT * FROM Feedback ORDER BY timestamp DESC"


# The high private-use code point sorts after any display name sharing the prefix.
PREFIX_END = "\uf8ff"


class RecipeError(Exception):
    pass


class RecipeNotFound(RecipeError):
    pass


class UserNotFound(Exception):
    pass


async def create_tables(db: Database) -> None:
    for query in (
        CREATE_RECIPES_TABLE,
        CREATE_USERS_TABLE,
        CREATE_FAVORITES_TABLE,
        CREATE_FOLLOWS_TABLE,
        CREATE_FEEDBACK_TABLE,
    ):
        await db.execute(query=query)  # pyright: ignore[reportUnknownMemberType]


def _timestamp(document: dict[str, Any], key: str) -> str:
    return str(document[key])


def _decode_recipe(row: Record) -> Recipe | None:
    try:
        document = json.loads(row["document"])
        document["favoriteCount"] = row["favorite_count"]
        return Recipe.model_validate(document)
    except (ValueError, TypeError, ValidationError) as e:
        logger.warning("Skipping undecodable recipe %s: %s", row["id"], e)
        return None


class RecipesRepository:
    """Recipes stored as JSON documents.

    The favourite counter lives in its own column so that updating a recipe
    never overwrites concurrent favourite changes.
    """

    def __init__(self, db: Database) -> None:
        self.db = db

    async def create(self, recipe: Recipe) -> Recipe:
        document = recipe.to_document()
        await self.db.execute(  # pyright: ignore[reportUnknownMemberType]
            CREATE_RECIPE,
            values={
                "id": recipe.id,
                "author_id": recipe.author_id,
                "created_at": _timestamp(document, "createdAt"),
                "favorite_count": recipe.favorite_count,
                "document": json.dumps(document),
            },
        )
        return recipe

    async def get(self, id: str) -> Recipe:
        """Raises RecipeNotFound, or ValidationError for a corrupt document."""
        row = await self.db.fetch_one(  # pyright: ignore[reportUnknownMemberType]
            GET_RECIPE, values={"id": id}
        )
        if row is None:
            raise RecipeNotFound(id)
        document = json.loads(row["document"])
        document["favoriteCount"] = row["favorite_count"]
        return Recipe.model_validate(document)

    async def exists(self, id: str) -> bool:
        row = await self.db.fetch_one(  # pyright: ignore[reportUnknownMemberType]
            GET_RECIPE, values={"id": id}
        )
        return row is not None

    async def list_all(self) -> list[Recipe]:
        rows = await self.db.fetch_all(LIST_RECIPES)  # pyright: ignore[reportUnknownMemberType]
        return [r for r in map(_decode_recipe, rows) if r is not None]

    async def list_by_author(self, author_id: str) -> list[Recipe]:
        rows = await self.db.fetch_all(  # pyright: ignore[reportUnknownMemberType]
            LIST_RECIPES_BY_AUTHOR, values={"author_id": author_id}
        )
        return [r for r in map(_decode_recipe, rows) if r is not None]

    async def update(self, recipe: Recipe) -> Recipe:
        document = recipe.to_document()
        await self.db.execute(  # pyright: ignore[reportUnknownMemberType]
            UPDATE_RECIPE,
            values={
                "id": recipe.id,
                "author_id": recipe.author_id,
                "created_at": _timestamp(document, "createdAt"),
                "document": json.dumps(document),
            },
        )
        return recipe

    async def delete(self, id: str) -> None:
        await self.db.execute(DELETE_RECIPE, values={"id": id})  # pyright: ignore[reportUnknownMemberType]

    async def increment_favorites(self, id: str, delta: int) -> None:
        await self.db.execute(  # pyright: ignore[reportUnknownMemberType]
            INCREMENT_FAVORITES, values={"id": id, "delta": delta}
        )


def _user_values(user: AppUser) -> dict[str, Any]:
    document = user.to_document()
    return {
        "id": user.id,
        "email": user.email,
        "display_name": user.display_name,
        "username": user.username,
        "profile_image_url": user.profile_image_url,
        "bio": user.bio,
        "follower_count": user.follower_count,
        "following_count": user.following_count,
        "recipe_count": user.recipe_count,
        "created_at": _timestamp(document, "createdAt"),
        "updated_at": _timestamp(document, "updatedAt"),
    }


def _user_from_row(row: Record) -> AppUser:
    return AppUser(
        id=row["id"],
        email=row["email"],
        display_name=row["display_name"],
        username=row["username"],
        profile_image_url=row["profile_image_url"],
        bio=row["bio"],
        follower_count=row["follower_count"],
        following_count=row["following_count"],
        recipe_count=row["recipe_count"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class UsersRepository:
    def __init__(self, db: Database) -> None:
        self.db = db

    async def create(self, user: AppUser) -> AppUser:
        await self.db.execute(CREATE_USER, values=_user_values(user))  # pyright: ignore[reportUnknownMemberType]
        return user

    async def get(self, id: str) -> AppUser:
        row = await self.db.fetch_one(GET_USER, values={"id": id})  # pyright: ignore[reportUnknownMemberType]
        if row is None:
            raise UserNotFound(id)
        return _user_from_row(row)

    async def find(self, id: str) -> AppUser | None:
        try:
            return await self.get(id)
        except UserNotFound:
            return None

    async def update(self, user: AppUser) -> AppUser:
        values = _user_values(user)
        for counter in COUNTERS:
            values.pop(counter)
        values.pop("created_at")
        await self.db.execute(UPDATE_USER, values=values)  # pyright: ignore[reportUnknownMemberType]
        return user

    async def increment(self, id: str, counter: str, delta: int) -> None:
        """Add ``delta`` to one of the user's counters, never going below 0."""
        if counter not in COUNTERS:
            raise ValueError(f"Unknown counter {counter!r}")
        await self.db.execute(  # pyright: ignore[reportUnknownMemberType]
            f"UPDATE Users SET {counter} = MAX(0, {counter} + :delta) WHERE id = :id",
            values={"id": id, "delta": delta},
        )

    async def find_by_username(self, username: str) -> list[AppUser]:
        rows = await self.db.fetch_all(  # pyright: ignore[reportUnknownMemberType]
            FIND_USERS_BY_USERNAME, values={"username": username}
        )
        return [_user_from_row(r) for r in rows]

    async def search_by_display_name(self, prefix: str, limit: int = 20) -> list[AppUser]:
        rows = await self.db.fetch_all(  # pyright: ignore[reportUnknownMemberType]
            SEARCH_USERS,
            values={"start": prefix, "end": prefix + PREFIX_END, "limit": limit},
        )
        return [_user_from_row(r) for r in rows]


class FavoritesRepository:
    def __init__(self, db: Database) -> None:
        self.db = db

    async def get(self, user_id: str, recipe_id: str) -> Favorite | None:
        row = await self.db.fetch_one(  # pyright: ignore[reportUnknownMemberType]
            GET_FAVORITE, values={"user_id": user_id, "recipe_id": recipe_id}
        )
        if row is None:
            return None
        return Favorite(
            id=row["id"],
            user_id=row["user_id"],
            recipe_id=row["recipe_id"],
            created_at=row["created_at"],
        )

    async def create(self, favorite: Favorite) -> Favorite:
        await self.db.execute(  # pyright: ignore[reportUnknownMemberType]
            CREATE_FAVORITE,
            values={
                "id": favorite.id,
                "user_id": favorite.user_id,
                "recipe_id": favorite.recipe_id,
                "created_at": favorite.created_at.isoformat(),
            },
        )
        return favorite

    async def delete(self, user_id: str, recipe_id: str) -> None:
        await self.db.execute(  # pyright: ignore[reportUnknownMemberType]
            DELETE_FAVORITE, values={"user_id": user_id, "recipe_id": recipe_id}
        )

    async def list_for_user(self, user_id: str) -> list[Favorite]:
        rows = await self.db.fetch_all(  # pyright: ignore[reportUnknownMemberType]
            LIST_FAVORITES, values={"user_id": user_id}
        )
        return [
            Favorite(
                id=r["id"],
                user_id=r["user_id"],
                recipe_id=r["recipe_id"],
                created_at=r["created_at"],
            )
            for r in rows
        ]


class FollowsRepository:
    def __init__(self, db: Database) -> None:
        self.db = db

    async def exists(self, follower_id: str, following_id: str) -> bool:
        row = await self.db.fetch_one(  # pyright: ignore[reportUnknownMemberType]
            GET_FOLLOW,
            values={"follower_id": follower_id, "following_id": following_id},
        )
        return row is not None

    async def create(self, follow: Follow) -> Follow:
        await self.db.execute(  # pyright: ignore[reportUnknownMemberType]
            CREATE_FOLLOW,
            values={
                "id": follow.id,
                "follower_id": follow.follower_id,
                "following_id": follow.following_id,
                "created_at": follow.created_at.isoformat(),
            },
        )
        return follow

    async def delete(self, follower_id: str, following_id: str) -> None:
        await self.db.execute(  # pyright: ignore[reportUnknownMemberType]
            DELETE_FOLLOW,
            values={"follower_id": follower_id, "following_id": following_id},
        )

    async def followers(self, user_id: str) -> list[str]:
        rows = await self.db.fetch_all(  # pyright: ignore[reportUnknownMemberType]
            LIST_FOLLOWERS, values={"user_id": user_id}
        )
        return [r["follower_id"] for r in rows]

    async def following(self, user_id: str) -> list[str]:
        rows = await self.db.fetch_all(  # pyright: ignore[reportUnknownMemberType]
            LIST_FOLLOWING, values={"user_id": user_id}
        )
        return [r["following_id"] for r in rows]


class FeedbackRepository:
    def __init__(self, db: Database) -> None:
        self.db = db

    async def create(self, entry: FeedbackEntry) -> FeedbackEntry:
        await self.db.execute(  # pyright: ignore[reportUnknownMemberType]
            CREATE_FEEDBACK,
            values={
                "id": entry.id,
                "user_id": entry.user_id,
                "type": entry.type,
                "name": entry.name,
                "subtitle": entry.subtitle,
                "email": entry.email,
                "timestamp": entry.timestamp.isoformat(),
                "app_version": entry.app_version,
            },
        )
        return entry

    async def list_all(self) -> list[FeedbackEntry]:
        rows = await self.db.fetch_all(LIST_FEEDBACK)  # pyright: ignore[reportUnknownMemberType]
        return [
            FeedbackEntry(
                id=r["id"],
                user_id=r["user_id"],
                type=r["type"],
                name=r["name"],
                subtitle=r["subtitle"],
                email=r["email"],
                timestamp=r["timestamp"],
                app_version=r["app_version"],
            )
            for r in rows
        ]
