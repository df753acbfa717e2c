"""Pydantic schemas for user accounts.

Learn: Separate "input" schemas from the "Read" schema. UserRead is the
only shape a user ever leaves the API in; it has no password_hash field,
so the hash cannot leak through a response by accident.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from edtech.auth.password import MAX_PASSWORD_BYTES

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+$"


def check_password_length(value: str) -> str:
    """Reject passwords bcrypt cannot hash whole (over 72 UTF-8 bytes)."""
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"password must be at most {MAX_PASSWORD_BYTES} bytes")
    return value


class UserRead(BaseModel):
    id: uuid.UUID
    name: str
    surname: str
    email: str
    role_id: int
    status: str
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class UserUpdate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    surname: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)


class PasswordChange(BaseModel):
    password: str = Field(..., min_length=1, max_length=72)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return check_password_length(value)


class MessageResponse(BaseModel):
    message: str
