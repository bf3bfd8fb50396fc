"""SQL repository implementation."""

import asyncio
import sqlite3
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import databases
import sqlalchemy as sa
from loguru import logger

from ..exceptions import ValidationError
from ..retry import with_startup_retry
from ..types import ArticleChanges, ArticleRecord, UserRecord


def _is_unique_violation(error: Exception) -> bool:
    # asyncpg raises UniqueViolationError, other DB-API drivers IntegrityError
    return isinstance(error, sqlite3.IntegrityError) or type(error).__name__ in (
        "UniqueViolationError",
        "IntegrityError",
    )


def _as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything we write is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class SQLRepository:
    """SQLite/PostgreSQL repository for users and articles using databases."""

    def __init__(self, database_url: str):
        """Initialize SQL repository.

        Args:
            database_url: Database connection URL.
        """
        self.database = databases.Database(database_url)
        self.metadata = sa.MetaData()

        self.users = sa.Table(
            "users",
            self.metadata,
            sa.Column("id", sa.String, primary_key=True),
            sa.Column("username", sa.String, nullable=False, unique=True),
            sa.Column("email", sa.String, nullable=False, unique=True),
            sa.Column("password_hash", sa.String, nullable=False),
            sa.Column("created_at", sa.DateTime, nullable=False),
            sa.Column("updated_at", sa.DateTime, nullable=False),
        )

        self.articles = sa.Table(
            "articles",
            self.metadata,
            sa.Column("id", sa.String, primary_key=True),
            sa.Column("title", sa.Text, nullable=False),
            sa.Column("subtitle", sa.Text),
            sa.Column("content", sa.Text, nullable=False),
            sa.Column("image_url", sa.Text, nullable=False, default=""),
            sa.Column("author_id", sa.String, sa.ForeignKey("users.id"), nullable=False, index=True),
            sa.Column("created_at", sa.DateTime, nullable=False, index=True),
            sa.Column("updated_at", sa.DateTime, nullable=False),
        )

    async def startup(self) -> None:
        """Initialize database connection and create tables."""
        sync_url = self._get_sync_url()
        if sync_url.startswith("sqlite:///"):
            Path(sync_url.removeprefix("sqlite:///")).parent.mkdir(parents=True, exist_ok=True)

        await self._connect()

        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, self._create_tables_sync, sync_url)
        logger.info("Record store ready", url=self.database.url.obscure_password)

    async def shutdown(self) -> None:
        """Close database connection."""
        await self.database.disconnect()

    @with_startup_retry("Record store")
    async def _connect(self) -> None:
        await self.database.connect()

    async def health_check(self) -> bool:
        """Check if database is accessible.

        Returns:
            True if database is healthy, False otherwise.
        """
        try:
            await self.database.execute("SELECT 1")
            return True
        except (ConnectionError, TimeoutError, OSError):
            logger.exception("Database health check failed")
            return False

    # Users

    async def create_user(self, record: UserRecord) -> None:
        """Insert a user.

        Raises:
            ValidationError: If the username or email is already taken.
        """
        try:
            await self.database.execute(self.users.insert().values(**record))
        except Exception as e:
            if _is_unique_violation(e):
                raise ValidationError("User already exists") from e
            raise

    async def get_user(self, user_id: str) -> UserRecord | None:
        row = await self.database.fetch_one(self.users.select().where(self.users.c.id == user_id))
        return self._user_from_row(row) if row else None

    async def find_user_by_email(self, email: str) -> UserRecord | None:
        row = await self.database.fetch_one(self.users.select().where(self.users.c.email == email))
        return self._user_from_row(row) if row else None

    async def find_user_by_username_or_email(self, username: str, email: str) -> UserRecord | None:
        query = self.users.select().where(
            sa.or_(self.users.c.username == username, self.users.c.email == email)
        )
        row = await self.database.fetch_one(query)
        return self._user_from_row(row) if row else None

    # Articles

    async def create_article(self, record: ArticleRecord) -> None:
        values = {k: v for k, v in record.items() if k != "author_username"}
        await self.database.execute(self.articles.insert().values(**values))

    async def get_article(self, article_id: str) -> ArticleRecord | None:
        query = self._article_select().where(self.articles.c.id == article_id)
        row = await self.database.fetch_one(query)
        return self._article_from_row(row) if row else None

    async def list_articles(self) -> list[ArticleRecord]:
        """Get all articles.

        Returns:
            Article records ordered by creation time descending.
        """
        query = self._article_select().order_by(self.articles.c.created_at.desc())
        rows = await self.database.fetch_all(query)
        return [self._article_from_row(row) for row in rows]

    async def update_article(self, article_id: str, changes: ArticleChanges) -> ArticleRecord | None:
        """Apply an update as one statement and read the result back.

        Args:
            article_id: Article identifier.
            changes: Columns to overwrite; ``updated_at`` is always refreshed.

        Returns:
            The stored article, or None if it no longer exists.
        """
        query = (
            self.articles.update()
            .where(self.articles.c.id == article_id)
            .values(**changes, updated_at=datetime.now(UTC))
        )
        await self.database.execute(query)
        return await self.get_article(article_id)

    async def delete_article(self, article_id: str) -> None:
        await self.database.execute(self.articles.delete().where(self.articles.c.id == article_id))

    def _article_select(self) -> sa.Select:
        joined = self.articles.outerjoin(self.users, self.articles.c.author_id == self.users.c.id)
        return sa.select(self.articles, self.users.c.username.label("author_username")).select_from(
            joined
        )

    @staticmethod
    def _user_from_row(row: Any) -> UserRecord:
        return {
            "id": row["id"],
            "username": row["username"],
            "email": row["email"],
            "password_hash": row["password_hash"],
            "created_at": _as_utc(row["created_at"]),
            "updated_at": _as_utc(row["updated_at"]),
        }

    @staticmethod
    def _article_from_row(row: Any) -> ArticleRecord:
        return {
            "id": row["id"],
            "title": row["title"],
            "subtitle": row["subtitle"],
            "content": row["content"],
            "image_url": row["image_url"] or "",
            "author_id": row["author_id"],
            "author_username": row["author_username"],
            "created_at": _as_utc(row["created_at"]),
            "updated_at": _as_utc(row["updated_at"]),
        }

    def _get_sync_url(self) -> str:
        """Get synchronous database URL for table creation."""
        url_str = str(self.database.url)
        for driver in ("+aiosqlite", "+asyncpg", "+aiopg"):
            url_str = url_str.replace(driver, "")
        return url_str

    def _create_tables_sync(self, sync_url: str) -> None:
        """Synchronously create database tables."""
        engine = sa.create_engine(sync_url)
        self.metadata.create_all(engine)
        engine.dispose()
