"""Credential store: user signup and password verification.

Passwords are hashed with bcrypt through passlib; bcrypt embeds a per-hash
salt, so the stored hash is all that is needed to verify later.
"""
import asyncio
import logging

from fastapi import Depends
from passlib.context import CryptContext
from pydantic import EmailStr, TypeAdapter, ValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from notesbuzz.database import get_session_factory
from notesbuzz.exceptions import Conflict, InvalidInput, StorageError
from notesbuzz.models.user import User

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
# bcrypt ignores everything past 72 bytes
MAX_PASSWORD_BYTES = 72

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
_email_adapter = TypeAdapter(EmailStr)


def validate_signup(username: str, email: str, password: str) -> list[dict[str, str]]:
    """Return one ``{"field", "message"}`` entry per invalid field."""
    errors = []
    if not username.strip():
        errors.append({"field": "username", "message": "Username is required"})
    try:
        _email_adapter.validate_python(email)
    except ValidationError:
        errors.append({"field": "email", "message": "Valid email is required"})
    if len(password) < MIN_PASSWORD_LENGTH:
        errors.append({
            "field": "password",
            "message": f"Password must be at least {MIN_PASSWORD_LENGTH} characters long",
        })
    elif len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        errors.append({
            "field": "password",
            "message": f"Password must be at most {MAX_PASSWORD_BYTES} bytes long",
        })
    return errors


class CredentialStore:
    """Creates users and checks their passwords."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def create(self, username: str, email: str, password: str) -> User:
        """Store a new user with a hashed password.

        Raises:
            InvalidInput: username blank, email malformed or password too short/long.
            Conflict: username or email already exists.
            StorageError: database failure.
        """
        username = username.strip()
        email = email.strip()
        errors = validate_signup(username, email, password)
        if errors:
            raise InvalidInput("Validation failed", errors=errors)

        # bcrypt is CPU-bound; keep it off the event loop
        password_hash = await asyncio.to_thread(pwd_context.hash, password)
        user = User(username=username, email=email, password_hash=password_hash)

        async with self._session_factory() as db:
            db.add(user)
            try:
                await db.commit()
            except IntegrityError as exc:
                await db.rollback()
                logger.info("Signup conflict for username=%r email=%r", username, email)
                raise Conflict("Username or email already exists") from exc
            except SQLAlchemyError as exc:
                logger.exception("Failed to create user %r", username)
                raise StorageError("Error creating user") from exc
            await db.refresh(user)

        logger.info("Created user %r (id=%s)", user.username, user.id)
        return user

    async def verify(self, username: str, password: str) -> bool:
        """Check a username/password pair. Unknown usernames return False."""
        username = username.strip()
        try:
            async with self._session_factory() as db:
                result = await db.execute(select(User).where(User.username == username))
                user = result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            logger.exception("Failed to look up user %r", username)
            raise StorageError("Error during login") from exc

        # no stored password is this long; a truncated match must not pass
        too_long = len(password.encode("utf-8")) > MAX_PASSWORD_BYTES
        if user is None or too_long:
            # same hashing cost as a real check
            await asyncio.to_thread(pwd_context.dummy_verify)
            return False
        return await asyncio.to_thread(pwd_context.verify, password, user.password_hash)


def get_credential_store(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> CredentialStore:
    """FastAPI dependency building a CredentialStore on the shared session factory."""
    return CredentialStore(session_factory)
