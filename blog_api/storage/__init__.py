"""Storage module with a factory for the record store."""

from urllib.parse import urlparse

from loguru import logger

from ..exceptions import ConfigurationError
from .protocols import ArticleRepository, Repository, UserRepository
from .sql import SQLRepository

SUPPORTED_SCHEMES = ("sqlite", "postgresql")


def create_repository(database_url: str) -> Repository:
    """Create repository instance based on database URL.

    Args:
        database_url: Database URL, e.g. ``sqlite+aiosqlite:///./data/blog.db``.

    Returns:
        Repository instance.
    """
    scheme = urlparse(database_url).scheme.split("+", 1)[0]
    if scheme not in SUPPORTED_SCHEMES:
        raise ConfigurationError(f"Unsupported database scheme: {scheme!r}")

    logger.info(f"Creating {scheme} repository")
    return SQLRepository(database_url)


__all__ = [
    "ArticleRepository",
    "Repository",
    "SQLRepository",
    "UserRepository",
    "create_repository",
]
