import logging

from databases import Database

from misoto.db import FollowsRepository, UsersRepository
from misoto.models import AppUser, Follow


logger = logging.getLogger(__name__)


SEARCH_LIMIT = 20


class FriendsError(Exception):
    pass


class Unauthorized(FriendsError):
    def __init__(self) -> None:
        super().__init__("Sign in to follow other cooks.")


class CannotFollowSelf(FriendsError):
    def __init__(self) -> None:
        super().__init__("You cannot follow yourself.")


class FriendsService:
    def __init__(
        self,
        db: Database,
        *,
        users: UsersRepository | None = None,
        follows: FollowsRepository | None = None,
    ) -> None:
        self.users = UsersRepository(db) if users is None else users
        self.follows = FollowsRepository(db) if follows is None else follows

    async def follow_user(self, following_id: str, follower_id: str | None) -> None:
        if not follower_id:
            raise Unauthorized()
        if following_id == follower_id:
            raise CannotFollowSelf()
        if await self.follows.exists(follower_id, following_id):
            return
        await self.follows.create(Follow(follower_id=follower_id, following_id=following_id))
        await self.users.increment(follower_id, "following_count", 1)
        await self.users.increment(following_id, "follower_count", 1)
        logger.info("%s now follows %s", follower_id, following_id)

    async def unfollow_user(self, following_id: str, follower_id: str | None) -> None:
        if not follower_id:
            raise Unauthorized()
        if not await self.follows.exists(follower_id, following_id):
            return
        await self.follows.delete(follower_id, following_id)
        await self.users.increment(follower_id, "following_count", -1)
        await self.users.increment(following_id, "follower_count", -1)

    async def _load(self, ids: list[str]) -> list[AppUser]:
        users: list[AppUser] = []
        for id in ids:
            user = await self.users.find(id)
            if user is not None:
                users.append(user)
        return users

    async def fetch_followers(self, user_id: str) -> list[AppUser]:
        return await self._load(await self.follows.followers(user_id))

    async def fetch_following(self, user_id: str) -> list[AppUser]:
        return await self._load(await self.follows.following(user_id))

    async def is_following(self, following_id: str, follower_id: str | None) -> bool:
        if not follower_id:
            return False
        return await self.follows.exists(follower_id, following_id)

    async def search_users(self, query: str) -> list[AppUser]:
        if not query:
            return []
        # The store only supports a case-sensitive range, narrow it afterwards.
        candidates = await self.users.search_by_display_name(query, limit=SEARCH_LIMIT)
        lowered = query.lower()
        return [u for u in candidates if u.display_name.lower().startswith(lowered)]
