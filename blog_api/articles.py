"""Article lifecycle: create, read, update and delete with ownership checks."""

import uuid
from datetime import UTC, datetime

from loguru import logger

from .exceptions import AuthorizationError, NotFoundError
from .media import ImageUpload, ImageUploader
from .storage import ArticleRepository
from .tokens import TokenClaims
from .types import ArticleChanges, ArticleRecord


class ArticleService:
    """Article operations.

    Writes follow a fixed order: authorize, upload the image (if any), then
    persist. A failed upload aborts the write before anything is stored.
    """

    def __init__(self, repository: ArticleRepository, uploader: ImageUploader) -> None:
        """Initialize with injected dependencies."""
        self.repository = repository
        self.uploader = uploader

    async def create(
        self,
        owner: TokenClaims,
        title: str,
        subtitle: str | None,
        content: str,
        image: ImageUpload | None = None,
    ) -> ArticleRecord:
        """Create an article owned by the caller.

        Raises:
            UploadError: If the image is rejected or cannot be stored. No
                article is written in that case.
        """
        image_url = ""
        if image is not None:
            image_url = await self.uploader.upload(image.data, image.content_type)

        now = datetime.now(UTC)
        article: ArticleRecord = {
            "id": uuid.uuid4().hex,
            "title": title,
            "subtitle": subtitle,
            "content": content,
            "image_url": image_url,
            "author_id": owner.user_id,
            "created_at": now,
            "updated_at": now,
        }
        try:
            await self.repository.create_article(article)
        except Exception:
            await self.uploader.discard(image_url)
            raise
        logger.info("Post created", post_id=article["id"], user_id=owner.user_id)

        stored = await self.repository.get_article(article["id"])
        if stored is None:
            return {**article, "author_username": owner.username}
        return stored

    async def get(self, article_id: str) -> ArticleRecord:
        """Get a single article.

        Raises:
            NotFoundError: If no such article exists.
        """
        article = await self.repository.get_article(article_id)
        if article is None:
            raise NotFoundError("Post not found")
        return article

    async def list(self) -> list[ArticleRecord]:
        """Get every article, newest first."""
        return await self.repository.list_articles()

    async def update(
        self,
        owner: TokenClaims,
        article_id: str,
        title: str | None = None,
        subtitle: str | None = None,
        content: str | None = None,
        image: ImageUpload | None = None,
    ) -> ArticleRecord:
        """Update an article the caller owns.

        Fields passed as None keep their stored value. Without a new image the
        stored image URL is left exactly as it was.

        Raises:
            NotFoundError: If no such article exists.
            AuthorizationError: If the caller is not the owner.
            UploadError: If the new image cannot be stored; the article is
                left unchanged.
        """
        existing = await self._load_owned(owner, article_id, action="edit")

        changes: ArticleChanges = {}
        if title is not None:
            changes["title"] = title
        if subtitle is not None:
            changes["subtitle"] = subtitle
        if content is not None:
            changes["content"] = content
        if image is not None:
            changes["image_url"] = await self.uploader.upload(image.data, image.content_type)

        new_image_url = changes.get("image_url", "")
        try:
            updated = await self.repository.update_article(article_id, changes)
        except Exception:
            await self.uploader.discard(new_image_url)
            raise
        if updated is None:
            # Deleted between the ownership check and the write
            await self.uploader.discard(new_image_url)
            raise NotFoundError("Post not found")
        logger.info("Post updated", post_id=article_id, user_id=owner.user_id, fields=sorted(changes))

        if "image_url" in changes and existing["image_url"]:
            await self.uploader.discard(existing["image_url"])
        return updated

    async def delete(self, owner: TokenClaims, article_id: str) -> None:
        """Delete an article the caller owns.

        The stored image is removed afterwards on a best-effort basis; a
        cleanup failure never fails the delete.

        Raises:
            NotFoundError: If no such article exists.
            AuthorizationError: If the caller is not the owner.
        """
        existing = await self._load_owned(owner, article_id, action="delete")
        await self.repository.delete_article(article_id)
        logger.info("Post deleted", post_id=article_id, user_id=owner.user_id)

        await self.uploader.discard(existing["image_url"])

    async def _load_owned(self, owner: TokenClaims, article_id: str, action: str) -> ArticleRecord:
        article = await self.repository.get_article(article_id)
        if article is None:
            raise NotFoundError("Post not found")
        if article["author_id"] != owner.user_id:
            logger.warning(
                "Ownership check failed", post_id=article_id, user_id=owner.user_id, action=action
            )
            raise AuthorizationError(f"Not authorized to {action} this post")
        return article
