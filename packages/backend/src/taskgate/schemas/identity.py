"""Pydantic schemas for auth, profile, and admin endpoints.

Learn: Pydantic v2 models validate request/response data. Separate
"request" schemas (input) from "Read" schemas (output) for clean APIs.
Read schemas never include password_hash.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from taskgate.db.models import NAME_MAX_LENGTH


# ─── Auth ────────────────────────────────────────────────

class RegisterRequest(BaseModel):
    """Fields are optional so missing ones surface as our 400, not a 422."""
    name: Optional[str] = Field(None, max_length=NAME_MAX_LENGTH)
    email: Optional[str] = None
    password: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


# ─── Identities ─────────────────────────────────────────

class IdentityRead(BaseModel):
    id: uuid.UUID
    name: Optional[str]
    email: str
    role: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class SessionRead(BaseModel):
    """Session read: profile fields from the store, role from the session token."""
    id: uuid.UUID
    name: Optional[str]
    email: str
    image: Optional[str]
    role: str
    created_at: datetime


class ProfileRead(BaseModel):
    id: uuid.UUID
    name: Optional[str]
    email: str
    image: Optional[str]
    role: Optional[str]

    model_config = {"from_attributes": True}


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=NAME_MAX_LENGTH)
    avatar_data: Optional[str] = Field(None, alias="avatarData")

    model_config = ConfigDict(populate_by_name=True)


# ─── Admin ──────────────────────────────────────────────

class RoleUpdate(BaseModel):
    """role is validated by the service so bad values map to Validation."""
    role: Optional[str] = None


class RoleRead(BaseModel):
    id: uuid.UUID
    role: str

    model_config = {"from_attributes": True}
