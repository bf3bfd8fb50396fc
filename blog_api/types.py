"""Type definitions for the Blog API."""

from datetime import datetime

from typing_extensions import NotRequired, TypedDict


class UserRecord(TypedDict):
    """Database record for a registered identity."""

    id: str
    username: str
    email: str
    password_hash: str
    created_at: datetime
    updated_at: datetime


class ArticleRecord(TypedDict):
    """Database record for an article, with its author's handle expanded."""

    id: str
    title: str
    subtitle: str | None
    content: str
    image_url: str
    author_id: str
    author_username: NotRequired[str | None]
    created_at: datetime
    updated_at: datetime


class ArticleChanges(TypedDict, total=False):
    """Fields an update is allowed to touch."""

    title: str
    subtitle: str | None
    content: str
    image_url: str


class HealthStatus(TypedDict):
    """Health status of system components."""

    storage: bool
    images: bool
