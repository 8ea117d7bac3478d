from enum import Enum
import logging
import re

from databases import Database

from misoto.db import FeedbackRepository
from misoto.models import FeedbackEntry


logger = logging.getLogger(__name__)


EMAIL = re.compile(r"[A-Z0-9a-z._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,64}")


class FeedbackType(Enum):
    feature_request = "feature_request"
    general_feedback = "general_feedback"
    translation_suggestion = "translation_suggestion"


class FeedbackError(Exception):
    pass


class NotAuthenticated(FeedbackError):
    def __init__(self) -> None:
        super().__init__("Sign in to send feedback.")


class EmptySubtitle(FeedbackError):
    def __init__(self) -> None:
        super().__init__("Please write your feedback.")


class InvalidEmail(FeedbackError):
    def __init__(self) -> None:
        super().__init__("Please enter a valid email address.")


class SubmissionFailed(FeedbackError):
    pass


def is_valid_email(email: str) -> bool:
    return EMAIL.fullmatch(email) is not None


class FeedbackService:
    def __init__(
        self,
        db: Database,
        *,
        app_version: str = "1.0.0",
        repository: FeedbackRepository | None = None,
    ) -> None:
        self.repository = FeedbackRepository(db) if repository is None else repository
        self.app_version = app_version

    async def submit_feedback(
        self,
        type: FeedbackType,
        name: str,
        subtitle: str,
        email: str | None,
        user_id: str | None,
    ) -> FeedbackEntry:
        if not user_id:
            raise NotAuthenticated()
        subtitle = subtitle.strip()
        if not subtitle:
            raise EmptySubtitle()
        email = email.strip() if email else None
        if email and not is_valid_email(email):
            raise InvalidEmail()

        entry = FeedbackEntry(
            user_id=user_id,
            type=type.value,
            name=name.strip(),
            subtitle=subtitle,
            email=email or None,
            app_version=self.app_version,
        )
        try:
            await self.repository.create(entry)
        except Exception as e:
            logger.exception("Could not store feedback")
            raise SubmissionFailed(f"Failed to submit feedback: {e}") from e
        return entry
