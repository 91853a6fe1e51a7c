"""
User API Backend — User SQLAlchemy Model
==========================================

What:  ORM model representing the `users` table in PostgreSQL.
How:   Inherits from the shared DeclarativeBase; Alembic reads this for migrations.
Who:   Used by UserService for CRUD operations and by the auth step for lookups.

Table Design Rationale:
    - UUID primary key: non-sequential, safe to expose in responses
    - email: the login name for HTTP Basic auth, unique
    - password: bcrypt hash only; the plain value never reaches the database
    - account_created / account_updated: UTC with timezone
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID, TIMESTAMP

from userapi.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """
    A registered account.

    Lifecycle:
        1. Created by POST /v1/user
        2. Read by GET /v1/user/self (authenticated)
        3. Names and password changed by PUT /v1/user/self; email is fixed
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )

    first_name: Mapped[str] = mapped_column(String(255), nullable=False)
    last_name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Lookup key for authentication; the unique constraint backs the
    # duplicate check in UserService.create_user
    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
    )

    password: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="bcrypt hash",
    )

    account_created: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    account_updated: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}')>"
