"""Request and response models using Pydantic."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator
from pydantic_core import PydanticCustomError

from .types import ArticleRecord, UserRecord


class SignupRequest(BaseModel):
    """New identity registration."""

    username: str = Field(..., min_length=1, max_length=50)
    email: str = Field(..., min_length=3, max_length=254)
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("username", mode="before")
    @classmethod
    def validate_username(cls, value: str) -> str:
        if not isinstance(value, str) or not value.strip():
            raise PydanticCustomError("empty_username", "Username cannot be empty", {"input": value})
        return value.strip()

    @field_validator("email", mode="before")
    @classmethod
    def validate_email(cls, value: str) -> str:
        if not isinstance(value, str) or "@" not in value:
            raise PydanticCustomError(
                "invalid_email", "Email address is not valid", {"input": value}
            )
        return value.strip().lower()


class LoginRequest(BaseModel):
    """Credentials for an existing identity."""

    email: str = Field(..., min_length=1, max_length=254)
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        if not isinstance(value, str):
            return value
        return value.strip().lower()


class UserResponse(BaseModel):
    """Public view of an identity."""

    id: str
    username: str
    email: str

    @classmethod
    def from_record(cls, record: UserRecord) -> "UserResponse":
        return cls(id=record["id"], username=record["username"], email=record["email"])


class AuthResponse(BaseModel):
    """Returned by signup and login."""

    message: str
    token: str
    user: UserResponse


class VerifyResponse(BaseModel):
    user: UserResponse


class MessageResponse(BaseModel):
    message: str


class AuthorResponse(BaseModel):
    """Article owner, expanded to the public handle."""

    id: str
    username: str | None = None


class ArticleResponse(BaseModel):
    """An article as returned by the API."""

    id: str
    title: str
    subtitle: str | None = None
    content: str
    image_url: str = ""
    author: AuthorResponse
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, record: ArticleRecord) -> "ArticleResponse":
        return cls(
            id=record["id"],
            title=record["title"],
            subtitle=record["subtitle"],
            content=record["content"],
            image_url=record["image_url"] or "",
            author=AuthorResponse(
                id=record["author_id"], username=record.get("author_username")
            ),
            created_at=record["created_at"],
            updated_at=record["updated_at"],
        )
