"""Local identity provider.

Accounts are keyed by email and stored alongside the tracking data.  There
are no passwords: whoever runs the program on this machine may sign in as
any registered account.  Verifying credentials belongs to a real identity
service, which would replace this class behind the same methods.
"""
from __future__ import annotations

import logging
from typing import Optional

from daywell import config
from daywell.data import SqliteStore
from daywell.errors import NotAuthenticatedError, ValidationError
from daywell.models import UserProfile

logger = logging.getLogger(__name__)


class LocalIdentity:
    """Tracks which registered user is signed in."""

    def __init__(self, store: SqliteStore, default_email: Optional[str] = None) -> None:
        self.store = store
        self.default_email = default_email if default_email is not None else config.DEFAULT_USER

    def current(self) -> Optional[int]:
        """
        Return the signed-in owner id, or ``None``.

        The default account only applies to a database nobody has signed in
        to or out of yet; an explicit sign-out stays signed out.
        """
        user_id = self.store.get_current_identity()
        if user_id is not None:
            return user_id
        if self.default_email and not self.store.identity_recorded():
            user = self.store.find_user_by_email(self.default_email)
            if user is not None:
                return user.id
        return None

    def require(self) -> int:
        user_id = self.current()
        if user_id is None:
            raise NotAuthenticatedError()
        return user_id

    def register(
        self,
        name: str,
        email: str,
        age: Optional[int] = None,
        profession: Optional[str] = None,
    ) -> UserProfile:
        """Create an account and sign in as it."""
        if not name.strip():
            raise ValidationError("Name is required.")
        if "@" not in email:
            raise ValidationError(f"Invalid email: {email!r}")
        if age is not None and age <= 0:
            raise ValidationError("Age must be a positive number.")
        user = self.store.create_user(name, email, age, profession)
        self.store.set_current_identity(user.id)
        return user

    def sign_in(self, email: str) -> UserProfile:
        user = self.store.find_user_by_email(email)
        if user is None:
            raise NotAuthenticatedError(f"No account for {email}")
        self.store.set_current_identity(user.id)
        logger.info("Signed in as %s", user.email)
        return user

    def sign_out(self) -> None:
        self.store.set_current_identity(None)
        logger.info("Signed out")

    def profile(self) -> UserProfile:
        user = self.store.get_user(self.require())
        if user is None:
            # The stored identity points at a user that no longer exists.
            self.store.set_current_identity(None)
            raise NotAuthenticatedError("Authentication session expired.")
        return user

    def update_profile(
        self,
        name: Optional[str] = None,
        age: Optional[int] = None,
        profession: Optional[str] = None,
    ) -> UserProfile:
        """Change only the fields that are given."""
        user = self.profile()
        if name is not None:
            if not name.strip():
                raise ValidationError("Name is required.")
            user.name = name.strip()
        if age is not None:
            if age <= 0:
                raise ValidationError("Age must be a positive number.")
            user.age = age
        if profession is not None:
            user.profession = profession or None
        return self.store.update_user(user)
