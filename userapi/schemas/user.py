"""
User API Backend — Pydantic Request/Response Schemas
======================================================

What:  Pydantic models defining the API contract for the user endpoints.
Why:   The validation step checks request bodies against these before any
       controller runs; response models control exactly which fields leave
       the service (never the password hash).
How:   Request models forbid unknown fields, so a client cannot set `id`,
       `account_created` or, on update, `email`.
"""

import re
import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Deliberately loose: one "@", no spaces, a dot in the domain
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128


def _check_name(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be blank")
    return value.strip()


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class UserCreate(BaseModel):
    """
    What:  Body of POST /v1/user.
    All four fields are required; anything else in the body is rejected.
    """
    model_config = ConfigDict(extra="forbid")

    first_name: str = Field(min_length=1, max_length=255)
    last_name: str = Field(min_length=1, max_length=255)
    email: str = Field(max_length=255, description="Login name for HTTP Basic auth")
    password: str = Field(min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH)

    @field_validator("first_name", "last_name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _check_name(v)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        """Emails are compared case-insensitively, so they are stored lowercased."""
        v = v.strip()
        if not EMAIL_PATTERN.match(v):
            raise ValueError("is not a valid email address")
        return v.lower()


class UserUpdate(BaseModel):
    """
    What:  Body of PUT /v1/user/self.
    Any subset of the three updatable fields, but at least one, and none
    of them null. `email` is not updatable and is rejected like any other
    unknown field.
    """
    model_config = ConfigDict(extra="forbid")

    first_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    password: Optional[str] = Field(default=None, min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH)

    @field_validator("first_name", "last_name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        return v if v is None else _check_name(v)

    @model_validator(mode="after")
    def require_changes(self) -> "UserUpdate":
        if not self.model_fields_set:
            raise ValueError("at least one of first_name, last_name, password is required")
        nulls = sorted(name for name in self.model_fields_set if getattr(self, name) is None)
        if nulls:
            raise ValueError(f"fields must not be null: {', '.join(nulls)}")
        return self

    def changes(self) -> dict:
        """Only the fields the client actually sent."""
        return self.model_dump(exclude_unset=True)


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class UserResponse(BaseModel):
    """
    What:  Public representation of a user.
    Who:   Returned by POST /v1/user (201) and GET /v1/user/self (200).
    """
    id: uuid.UUID
    first_name: str
    last_name: str
    email: str
    account_created: datetime
    account_updated: datetime

    model_config = ConfigDict(from_attributes=True)


class ErrorResponse(BaseModel):
    """
    What:  Standardized error response format for all API errors.

    Example:
        {
            "error": "method_not_allowed",
            "message": "Method DELETE is not allowed on this resource",
            "details": {"allowed_methods": ["GET", "PUT"]},
            "request_id": "1f0c2a9b"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """Returned by GET /healthz."""
    status: str = Field(description="healthy or unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="connected or disconnected")
    uptime_seconds: float = Field(description="Seconds since service started")
