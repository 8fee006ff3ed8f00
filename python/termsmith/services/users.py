"""User lookups for authenticated requests."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from termsmith.db.models import User
from termsmith.errors import ApiErrorCode, NotFoundError, SessionIntegrityError
from termsmith.schemas.user import UserOut


def _find_active_user(db: Session, user_id: UUID) -> User | None:
    return db.scalar(select(User).where(User.id == user_id, User.deleted_at.is_(None)))


def get_active_user(db: Session, user_id: UUID) -> User:
    """Load the user behind a verified session.

    Raises:
        SessionIntegrityError: If the row is missing or soft-deleted.
    """
    user = _find_active_user(db, user_id)
    if user is None:
        raise SessionIntegrityError(user_id)
    return user


def get_user_out_or_404(db: Session, user_id: UUID) -> UserOut:
    """The caller's account for display.

    Raises:
        NotFoundError: E_USER_NOT_FOUND if the row is missing or soft-deleted.
    """
    user = _find_active_user(db, user_id)
    if user is None:
        raise NotFoundError(ApiErrorCode.E_USER_NOT_FOUND, "User not found")
    return UserOut.model_validate(user)
