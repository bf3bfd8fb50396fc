"""Blog API - articles with bearer-token auth and image uploads."""

__version__ = "1.0.0"

from .api import create_app  # noqa: E402
from .articles import ArticleService  # noqa: E402
from .accounts import AccountService  # noqa: E402
from .media import ImageUploader  # noqa: E402
from .tokens import TokenClaims, TokenIssuer  # noqa: E402

__all__ = [
    "AccountService",
    "ArticleService",
    "ImageUploader",
    "TokenClaims",
    "TokenIssuer",
    "create_app",
]
