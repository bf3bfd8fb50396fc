"""Configuration using pydantic-settings."""

from datetime import timedelta
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings

# Values that must never be used to sign tokens outside of a throwaway shell.
WEAK_SECRETS = frozenset(
    {
        "fallback_secret",
        "change-me",
        "changeme",
        "secret",
        "your-secret-key-change-in-production",
    }
)


class Settings(BaseSettings):
    """Application settings, built once at startup and passed to components."""

    host: str = "0.0.0.0"  # nosec B104 - Required for container deployment
    port: int = 5000
    log_level: str = "INFO"
    log_file: str | None = None

    database_url: str = "sqlite+aiosqlite:///./data/blog.db"

    # JWT settings
    secret_key: str | None = None
    jwt_algorithm: str = "HS256"
    token_ttl_hours: int = 24

    bcrypt_rounds: int = 12

    # Image upload settings
    max_image_bytes: int = 5 * 1024 * 1024
    image_folder: str = "blog-images"
    s3_bucket: str | None = None
    s3_region: str = "us-east-1"
    s3_endpoint_url: str | None = None
    s3_public_base_url: str | None = None

    auth_rate_limit: str = "10/minute"
    cors_origins: list[str] = ["*"]

    @property
    def token_ttl(self) -> timedelta:
        """Lifetime of an issued bearer token."""
        return timedelta(hours=self.token_ttl_hours)

    @property
    def image_storage_enabled(self) -> bool:
        """Check if an object-storage bucket is configured."""
        return bool(self.s3_bucket)

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Refuse to start without a real signing secret."""
        if not self.secret_key:
            raise ValueError(
                "BLOG_SECRET_KEY not set. "
                "Please set the BLOG_SECRET_KEY environment variable."
            )
        if self.secret_key.lower() in WEAK_SECRETS:
            raise ValueError("BLOG_SECRET_KEY is a known placeholder value; choose a real secret.")
        return self

    @model_validator(mode="after")
    def validate_bcrypt_rounds(self) -> "Settings":
        """bcrypt only accepts work factors between 4 and 31."""
        if not 4 <= self.bcrypt_rounds <= 31:
            raise ValueError("BLOG_BCRYPT_ROUNDS must be between 4 and 31")
        return self

    class Config:
        """Pydantic config."""

        env_prefix = "BLOG_"
        env_file = ".env"
        extra = "ignore"
        frozen = True


@lru_cache
def get_settings() -> Settings:
    """Get settings instance (for dependency injection)."""
    return Settings()
