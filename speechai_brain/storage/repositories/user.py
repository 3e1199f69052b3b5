"""
User repository.

Users live under ``users/{userId}``. Emails are unique (compared after
trimming and lower-casing). Passwords are stored as bcrypt hashes.
"""

import asyncio
import logging
import re
from typing import Optional

import bcrypt

from ..documents import DocumentStore, get_document_store, join_path
from ..exceptions import (
    ConflictError,
    PermissionDeniedError,
    UnauthorizedError,
    UserNotFoundError,
    ValidationError,
)
from ..locks import KeyedLock
from ..models import User

logger = logging.getLogger("speechai.storage.user")

USERS = "users"
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def normalize_email(email: str) -> str:
    return email.strip().lower()


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(email))


async def _hash_password(password: str) -> str:
    hashed = await asyncio.to_thread(bcrypt.hashpw, password.encode(), bcrypt.gensalt())
    return hashed.decode()


async def _check_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    return await asyncio.to_thread(bcrypt.checkpw, password.encode(), password_hash.encode())


class UserRepository:
    """Repository for registered users."""

    def __init__(self, store: Optional[DocumentStore] = None, locks: Optional[KeyedLock] = None):
        self._store = store
        self._locks = locks or KeyedLock()

    @property
    def store(self) -> DocumentStore:
        return self._store or get_document_store()

    async def _find_by_email(self, email: str) -> Optional[User]:
        matches = await self.store.find(USERS, "email", normalize_email(email))
        if not matches:
            return None
        user_id, doc = matches[-1]
        return User.from_document(user_id, doc)

    @staticmethod
    def _validate_email(email: Optional[str]) -> str:
        if not email or not email.strip():
            raise ValidationError("Email is required.")
        email = normalize_email(email)
        if not is_valid_email(email):
            raise ValidationError("Invalid email format.")
        return email

    async def register_user(self, email: str, password: str) -> User:
        """
        Register a new user.

        Raises:
            ValidationError: missing email/password or malformed email
            ConflictError: email already registered
        """
        if not email or not password:
            raise ValidationError("Email and password are required.")
        email = self._validate_email(email)

        async with self._locks.hold(USERS, "email"):
            if await self._find_by_email(email):
                raise ConflictError("Email is already in use.")

            user = User(
                id=self.store.new_key(),
                email=email,
                password_hash=await _hash_password(password),
            )
            await self.store.set(join_path(USERS, user.id), user.to_document())

        logger.info("Registered user %s", user.id)
        return user

    async def login_user(self, email: str, password: str) -> User:
        """Check credentials and return the user."""
        if not email or not password:
            raise ValidationError("Email and password are required.")

        user = await self._find_by_email(email)
        if user is None or not await _check_password(password, user.password_hash):
            logger.info("Failed login for %s", normalize_email(email))
            raise UnauthorizedError("Invalid email or password.")
        return user

    async def get_user_by_id(self, user_id: str) -> User:
        doc = await self.store.get(join_path(USERS, user_id))
        if doc is None:
            raise UserNotFoundError(user_id)
        return User.from_document(user_id, doc)

    async def get_all_users(self) -> list[User]:
        return [User.from_document(user_id, doc) for user_id, doc in await self.store.children(USERS)]

    async def get_user_id_by_email(self, email: str) -> str:
        user = await self._find_by_email(email)
        if user is None:
            raise UserNotFoundError(normalize_email(email))
        return user.id

    async def delete_user(self, user_id: str) -> None:
        await self.get_user_by_id(user_id)
        await self.store.delete(join_path(USERS, user_id))
        logger.info("Deleted user %s", user_id)

    async def update_user(
        self,
        user_id: str,
        email: Optional[str] = None,
        password: Optional[str] = None,
        is_admin: Optional[bool] = None,
    ) -> User:
        """
        Update a user's email, password or admin flag.

        Fields left as None are unchanged.
        """
        async with self._locks.hold(USERS, "email"):
            user = await self.get_user_by_id(user_id)

            if email is not None:
                email = self._validate_email(email)
                existing = await self._find_by_email(email)
                if existing and existing.id != user_id:
                    raise ConflictError("Email is already in use.")
                user.email = email
            if password is not None:
                if not password:
                    raise ValidationError("Password must not be empty.")
                user.password_hash = await _hash_password(password)
            if is_admin is not None:
                user.is_admin = is_admin

            await self.store.set(join_path(USERS, user_id), user.to_document())

        logger.info("Updated user %s", user_id)
        return user

    async def _require_admin(self, requested_by: Optional[str]) -> User:
        denied = "Permission denied: Only admins can toggle admin status."
        if not requested_by:
            raise PermissionDeniedError(denied)
        try:
            requester = await self.get_user_by_id(requested_by)
        except (UserNotFoundError, ValidationError):
            raise PermissionDeniedError(denied) from None
        if not requester.is_admin:
            logger.warning("Non-admin %s tried to toggle admin status", requested_by)
            raise PermissionDeniedError(denied)
        return requester

    async def toggle_admin_status_by_email(self, email: str, requested_by: Optional[str]) -> User:
        """
        Flip the admin flag of the user with *email*.

        *requested_by* must be the id of an existing admin.
        """
        await self._require_admin(requested_by)

        user = await self._find_by_email(self._validate_email(email))
        if user is None:
            raise UserNotFoundError(normalize_email(email))

        user.is_admin = not user.is_admin
        await self.store.update(join_path(USERS, user.id), {"isAdmin": user.is_admin})
        logger.info("Admin status for %s is now %s", user.id, user.is_admin)
        return user


# Global repository instance
_user_repo: Optional[UserRepository] = None


def get_user_repo() -> UserRepository:
    """Get the global user repository."""
    global _user_repo
    if _user_repo is None:
        _user_repo = UserRepository()
    return _user_repo
