"""
Pydantic models for user accounts and sessions.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from api.models.base import APIBaseModel, UTCDatetime

USER_KEY_PREFIX = "user:"
USER_EMAIL_KEY_PREFIX = "user-email:"


class Role(str, Enum):
    """Account roles; worker and admin are the elevated ones."""

    USER = "user"
    WORKER = "worker"
    ADMIN = "admin"

    @property
    def is_elevated(self) -> bool:
        return self in (Role.WORKER, Role.ADMIN)


class UserRecord(APIBaseModel):
    """User document stored under ``user:<id>``."""

    id: str
    email: str
    name: str
    role: Role = Role.USER
    avatar: Optional[str] = None
    neighborhood: Optional[str] = None
    password_hash: str = Field(..., alias="passwordHash")
    created_at: UTCDatetime = Field(..., alias="createdAt")

    def to_document(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class UserResponse(APIBaseModel):
    """User information returned to clients."""

    id: str = Field(..., description="User id")
    email: str = Field(..., description="User email")
    name: str = Field(..., description="User display name")
    role: Role = Field(Role.USER, description="Account role")
    avatar: Optional[str] = Field(None, description="Avatar identifier or URL")
    neighborhood: Optional[str] = Field(None, description="Home neighborhood")

    @classmethod
    def from_record(cls, record: UserRecord) -> "UserResponse":
        return cls(
            id=record.id,
            email=record.email,
            name=record.name,
            role=record.role,
            avatar=record.avatar,
            neighborhood=record.neighborhood,
        )


class SignUpRequest(BaseModel):
    """Request body for creating an account; a role in the body is ignored."""

    email: str = Field(..., min_length=3, max_length=254)
    password: str = Field(..., min_length=6, max_length=128)
    name: str = Field(..., min_length=1, max_length=100)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        value = value.strip().lower()
        if "@" not in value:
            raise ValueError("invalid email address")
        return value


class SignInRequest(BaseModel):
    """Request body for signing in."""

    email: str
    password: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class ProfileUpdateRequest(BaseModel):
    """Profile fields a user may change; omitted fields stay as they are."""

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    avatar: Optional[str] = None
    neighborhood: Optional[str] = Field(None, max_length=100)


class Session(BaseModel):
    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    expires_at: UTCDatetime = Field(..., description="Token expiry")


class SignUpResponse(BaseModel):
    user: UserResponse


class SignInResponse(BaseModel):
    user: UserResponse
    session: Session


class UserEnvelope(BaseModel):
    user: UserResponse
