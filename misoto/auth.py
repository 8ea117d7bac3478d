import logging

from databases import Database

from misoto.db import UsersRepository
from misoto.models import AppUser, utcnow
from misoto.storage import LocalStorage


logger = logging.getLogger(__name__)


MIN_USERNAME_LENGTH = 4
MAX_USERNAME_LENGTH = 15


class AuthError(Exception):
    pass


class NotAuthenticated(AuthError):
    def __init__(self) -> None:
        super().__init__("Please sign in first.")


class InvalidUsername(AuthError):
    def __init__(self) -> None:
        super().__init__(
            f"Username must be between {MIN_USERNAME_LENGTH} and {MAX_USERNAME_LENGTH} characters."
        )


class UsernameTaken(AuthError):
    def __init__(self, alternatives: list[str] | None = None) -> None:
        self.alternatives = [] if alternatives is None else alternatives
        super().__init__("This username is already taken")


def clean_username(username: str) -> str:
    username = username.strip()
    return username[1:] if username.startswith("@") else username


def username_alternatives(username: str) -> list[str]:
    """Suggestions for a taken username, each within the length limit."""
    base = clean_username(username)
    suggestions: list[str] = []
    for prefix, suffix in (("", "1"), ("", "_cooks"), ("the_", ""), ("", "123")):
        room = MAX_USERNAME_LENGTH - len(prefix) - len(suffix)
        candidate = f"{prefix}{base[:room]}{suffix}"
        if candidate != base and candidate not in suggestions:
            suggestions.append(candidate)
    return suggestions[:3]


class AuthService:
    """Users and their profiles.

    Identity comes from the caller (the X-User-ID header of the app); this
    service only keeps the user records in step with it.
    """

    def __init__(
        self,
        db: Database,
        *,
        storage: LocalStorage | None = None,
        users: UsersRepository | None = None,
    ) -> None:
        self.users = UsersRepository(db) if users is None else users
        self.storage = storage

    async def create_or_update_user(
        self, user_id: str, email: str | None, display_name: str = "User"
    ) -> None:
        user = await self.users.find(user_id)
        if user is None:
            await self.users.create(AppUser(id=user_id, email=email, display_name=display_name))
            logger.info("Created user %s", user_id)
            return
        user.email = email
        user.display_name = display_name
        user.updated_at = utcnow()
        await self.users.update(user)

    async def sign_in(
        self, user_id: str, email: str | None, display_name: str = "User"
    ) -> AppUser:
        await self.create_or_update_user(user_id, email, display_name)
        return await self.users.get(user_id)

    async def load_user(self, user_id: str | None) -> AppUser | None:
        if not user_id:
            return None
        return await self.users.find(user_id)

    async def _require_user(self, user_id: str | None) -> AppUser:
        user = await self.load_user(user_id)
        if user is None:
            raise NotAuthenticated()
        return user

    async def check_username_availability(self, username: str, user_id: str | None) -> bool:
        matches = await self.users.find_by_username(clean_username(username))
        return all(u.id == user_id for u in matches)

    async def update_profile(
        self,
        user_id: str | None,
        display_name: str,
        username: str | None,
        bio: str | None,
    ) -> AppUser:
        user = await self._require_user(user_id)

        cleaned = clean_username(username) if username else ""
        if cleaned:
            if not MIN_USERNAME_LENGTH <= len(cleaned) <= MAX_USERNAME_LENGTH:
                raise InvalidUsername()
            if not await self.check_username_availability(cleaned, user.id):
                raise UsernameTaken(username_alternatives(cleaned))

        user.display_name = display_name.strip() or user.display_name
        user.username = cleaned or None
        user.bio = bio.strip() if bio and bio.strip() else None
        user.updated_at = utcnow()
        return await self.users.update(user)

    async def upload_profile_image(self, user_id: str | None, data: bytes) -> str:
        user = await self._require_user(user_id)
        if self.storage is None:
            raise RuntimeError("No storage configured for profile images")
        url = await self.storage.upload_image(data, f"profile-images/{user.id}.jpg")
        user.profile_image_url = url
        user.updated_at = utcnow()
        await self.users.update(user)
        return url
