"""
User API Backend — User Service (Business Logic)
==================================================

What:  Persistence rules for user accounts: lookup, creation, update,
       password hashing and verification.
Why:   Keeps SQLAlchemy and bcrypt out of controllers and pipeline steps.
How:   Stateless; every call receives the request's AsyncSession.
Who:   Called by the user controllers and the authentication step.

Error Handling Strategy:
    Driver/ORM failures are logged and wrapped in DatabaseError, which hides
    internal details from the client. A duplicate email is a client error
    (ValidationError), whether caught by the pre-check or by the unique
    constraint on flush.
"""

import base64
import hashlib
import logging
from typing import Optional

import bcrypt
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from userapi.exceptions import DatabaseError, ValidationError
from userapi.models.user import User, utcnow
from userapi.schemas.user import UserCreate, UserUpdate

logger = logging.getLogger(__name__)


# ── Password Hashing ──────────────────────────────────────────────────────
# bcrypt is CPU-bound (~250ms at the default cost), so both helpers run in
# the threadpool to keep the event loop free. bcrypt reads at most 72 bytes,
# so it is fed a fixed-size digest and every character of a password counts.

def _digest(password: str) -> bytes:
    """SHA-256 of the password, base64-encoded: 44 bytes, no NULs."""
    return base64.b64encode(hashlib.sha256(password.encode("utf-8")).digest())


def _hash(password: str) -> str:
    return bcrypt.hashpw(_digest(password), bcrypt.gensalt()).decode("utf-8")


def _check(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(_digest(password), hashed.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


async def hash_password(password: str) -> str:
    return await run_in_threadpool(_hash, password)


async def verify_password(password: str, hashed: str) -> bool:
    return await run_in_threadpool(_check, password, hashed)


class UserService:
    """
    Business logic layer for user operations.

    Responsibilities:
        - get_by_email(): lookup used by authentication
        - create_user(): duplicate check, hashing, insert
        - update_user(): partial update of names and password
    """

    async def get_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        """Returns the user with this email (case-insensitive), or None."""
        try:
            result = await db.execute(select(User).where(User.email == email.lower()))
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error looking up user by email: %s", str(e))
            raise DatabaseError(
                message="Could not look up the user. Please try again.",
                context={"error_type": type(e).__name__},
            )

    async def create_user(self, db: AsyncSession, data: UserCreate) -> User:
        """
        Create a new account.

        Raises:
            ValidationError: the email is already registered (→ 400)
            DatabaseError: insert failed (→ 500)
        """
        if await self.get_by_email(db, data.email) is not None:
            raise ValidationError(
                message="A user with this email already exists",
                field="email",
            )

        now = utcnow()
        user = User(
            first_name=data.first_name,
            last_name=data.last_name,
            email=data.email,
            password=await hash_password(data.password),
            account_created=now,
            account_updated=now,
        )
        try:
            db.add(user)
            await db.flush()  # Assigns the UUID; commit happens in the session scope
        except IntegrityError:
            # Lost a race with a concurrent signup for the same email
            raise ValidationError(
                message="A user with this email already exists",
                field="email",
            )
        except SQLAlchemyError as e:
            logger.error("Database error creating user: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not create the user. Please try again.",
                context={"error_type": type(e).__name__},
            )

        logger.info("User created: %s", user.id)
        return user

    async def update_user(self, db: AsyncSession, user: User, data: UserUpdate) -> User:
        """Apply the fields present in `data`; the password is re-hashed."""
        changes = data.changes()
        if "password" in changes:
            changes["password"] = await hash_password(changes["password"])

        for field, value in changes.items():
            setattr(user, field, value)
        user.account_updated = utcnow()

        try:
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error updating user %s: %s", user.id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not update the user. Please try again.",
                context={"user_id": str(user.id)},
            )

        logger.info("User %s updated: %s", user.id, ", ".join(sorted(changes)))
        return user


user_service = UserService()
