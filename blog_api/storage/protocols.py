"""Storage protocol definitions using typing.Protocol."""

from typing import Protocol

from ..types import ArticleChanges, ArticleRecord, UserRecord


class UserRepository(Protocol):
    """Repository protocol for identity persistence."""

    async def create_user(self, record: UserRecord) -> None:
        """Persist a new identity.

        Raises:
            ValidationError: If the username or email is already taken.
        """
        ...

    async def get_user(self, user_id: str) -> UserRecord | None:
        """Get an identity by id."""
        ...

    async def find_user_by_email(self, email: str) -> UserRecord | None:
        """Get an identity by contact address."""
        ...

    async def find_user_by_username_or_email(self, username: str, email: str) -> UserRecord | None:
        """Get any identity holding either the handle or the address."""
        ...


class ArticleRepository(Protocol):
    """Repository protocol for article persistence."""

    async def create_article(self, record: ArticleRecord) -> None:
        """Persist a new article."""
        ...

    async def get_article(self, article_id: str) -> ArticleRecord | None:
        """Get an article with its author's handle."""
        ...

    async def list_articles(self) -> list[ArticleRecord]:
        """Get all articles, newest first."""
        ...

    async def update_article(self, article_id: str, changes: ArticleChanges) -> ArticleRecord | None:
        """Apply changes in a single write and return the stored result."""
        ...

    async def delete_article(self, article_id: str) -> None:
        """Remove an article."""
        ...


class Repository(UserRepository, ArticleRepository, Protocol):
    """Full record store used by the application."""

    async def health_check(self) -> bool:
        """Check if repository is healthy."""
        ...

    async def startup(self) -> None:
        """Initialize repository on startup."""
        ...

    async def shutdown(self) -> None:
        """Cleanup repository on shutdown."""
        ...
