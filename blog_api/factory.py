"""Service factory for dependency injection - configuration-driven setup."""

from dataclasses import dataclass

from loguru import logger

from .accounts import AccountService
from .articles import ArticleService
from .config import Settings
from .media import DisabledImageStore, ImageStore, ImageUploader, S3ImageStore
from .passwords import PasswordHasher
from .storage import Repository, create_repository
from .tokens import TokenIssuer


@dataclass
class Services:
    """Everything a request handler needs, built once per process."""

    repository: Repository
    image_store: ImageStore
    tokens: TokenIssuer
    accounts: AccountService
    articles: ArticleService


class ServiceFactory:
    """Factory for creating configured service instances."""

    @staticmethod
    def build(
        settings: Settings,
        repository: Repository | None = None,
        image_store: ImageStore | None = None,
    ) -> Services:
        """Wire services together without starting any backing connection."""
        repository = repository or create_repository(settings.database_url)
        image_store = image_store or ServiceFactory._create_image_store(settings)

        tokens = TokenIssuer(
            secret_key=settings.secret_key or "",
            algorithm=settings.jwt_algorithm,
            ttl=settings.token_ttl,
        )
        uploader = ImageUploader(
            image_store, max_bytes=settings.max_image_bytes, folder=settings.image_folder
        )

        return Services(
            repository=repository,
            image_store=image_store,
            tokens=tokens,
            accounts=AccountService(repository, PasswordHasher(settings.bcrypt_rounds), tokens),
            articles=ArticleService(repository, uploader),
        )

    @staticmethod
    async def create(settings: Settings) -> Services:
        """Create and start fully configured services."""
        services = ServiceFactory.build(settings)

        await services.repository.startup()
        await services.image_store.startup()

        logger.info("Services created successfully")
        return services

    @staticmethod
    def _create_image_store(settings: Settings) -> ImageStore:
        """Create image store based on configuration."""
        if settings.image_storage_enabled:
            return S3ImageStore(
                bucket=settings.s3_bucket or "",
                region=settings.s3_region,
                endpoint_url=settings.s3_endpoint_url,
                public_base_url=settings.s3_public_base_url,
            )
        return DisabledImageStore()

    @staticmethod
    async def shutdown(services: Services) -> None:
        """Clean shutdown of all service components."""
        logger.info("Shutting down services")

        try:
            await services.repository.shutdown()
            logger.debug("Repository shutdown complete")
        except (ConnectionError, TimeoutError, OSError) as e:
            logger.warning(f"Repository shutdown failed: {e}")

        try:
            await services.image_store.shutdown()
            logger.debug("Image store shutdown complete")
        except (ConnectionError, TimeoutError, OSError) as e:
            logger.warning(f"Image store shutdown failed: {e}")

        logger.info("Shutdown complete")
