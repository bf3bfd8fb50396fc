"""Tests for service wiring and application lifecycle."""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi import FastAPI

from blog_api.accounts import AccountService
from blog_api.api import create_app, lifespan
from blog_api.articles import ArticleService
from blog_api.config import Settings
from blog_api.factory import ServiceFactory
from blog_api.media import DisabledImageStore, S3ImageStore
from blog_api.storage import SQLRepository


class TestServiceFactory:
    """Test building services from settings."""

    def test_build_without_bucket_uses_disabled_store(self, settings):
        services = ServiceFactory.build(settings)

        assert isinstance(services.repository, SQLRepository)
        assert isinstance(services.image_store, DisabledImageStore)
        assert isinstance(services.accounts, AccountService)
        assert isinstance(services.articles, ArticleService)

    def test_build_with_bucket_uses_s3(self, tmp_path):
        settings = Settings(
            database_url=f"sqlite+aiosqlite:///{tmp_path / 'blog.db'}",
            s3_bucket="blog-images-bucket",
            s3_region="eu-west-1",
        )

        services = ServiceFactory.build(settings)

        assert isinstance(services.image_store, S3ImageStore)
        assert services.image_store.bucket == "blog-images-bucket"

    def test_token_issuer_follows_settings(self, settings):
        services = ServiceFactory.build(settings)

        assert services.tokens.secret_key == settings.secret_key
        assert services.tokens.ttl == settings.token_ttl
        assert services.articles.uploader.max_bytes == settings.max_image_bytes

    @pytest.mark.asyncio
    async def test_create_starts_components(self, settings):
        with (
            patch.object(SQLRepository, "startup", new_callable=AsyncMock) as repo_startup,
            patch.object(DisabledImageStore, "startup", new_callable=AsyncMock) as store_startup,
        ):
            await ServiceFactory.create(settings)

        repo_startup.assert_awaited_once()
        store_startup.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_shutdown_tolerates_connection_errors(self, settings):
        services = ServiceFactory.build(settings)
        services.repository = AsyncMock()
        services.repository.shutdown.side_effect = ConnectionError("gone")
        services.image_store = AsyncMock()

        await ServiceFactory.shutdown(services)

        services.image_store.shutdown.assert_awaited_once()


class TestLifespan:
    """Test application lifecycle management."""

    @pytest.mark.asyncio
    async def test_lifespan_creates_and_stops_services(self, settings):
        app = create_app(settings)
        mock_services = AsyncMock()

        with (
            patch("blog_api.api.ServiceFactory.create", new=AsyncMock(return_value=mock_services)),
            patch("blog_api.api.ServiceFactory.shutdown", new=AsyncMock()) as mock_shutdown,
        ):
            async with lifespan(app):
                assert app.state.services is mock_services

            mock_shutdown.assert_awaited_once_with(mock_services)
            assert app.state.services is None

    @pytest.mark.asyncio
    async def test_lifespan_leaves_injected_services_alone(self, settings, services):
        app = create_app(settings, services)

        with patch("blog_api.api.ServiceFactory.shutdown", new=AsyncMock()) as mock_shutdown:
            async with lifespan(app):
                assert app.state.services is services

        mock_shutdown.assert_not_awaited()
        assert app.state.services is services

    @pytest.mark.asyncio
    async def test_lifespan_propagates_startup_error(self, settings):
        app = FastAPI()
        app.state.settings = settings
        app.state.services = None

        with patch(
            "blog_api.api.ServiceFactory.create",
            new=AsyncMock(side_effect=ConnectionError("Database connection failed")),
        ):
            with pytest.raises(ConnectionError, match="Database connection failed"):
                async with lifespan(app):
                    pass
