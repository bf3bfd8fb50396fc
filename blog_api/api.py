"""FastAPI application and route handlers."""

import sys
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends, FastAPI, File, Form, Query, Request, UploadFile, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from . import __version__
from .accounts import AccountService
from .articles import ArticleService
from .config import Settings, get_settings
from .exceptions import BlogAPIError
from .factory import Services, ServiceFactory
from .media import ImageUpload
from .middleware import add_request_id, get_current_user
from .models import (
    ArticleResponse,
    AuthResponse,
    LoginRequest,
    MessageResponse,
    SignupRequest,
    UserResponse,
    VerifyResponse,
)
from .tokens import TokenClaims

limiter = Limiter(key_func=get_remote_address)


def _auth_rate_limit() -> str:
    return get_settings().auth_rate_limit


def configure_logging(settings: Settings) -> None:
    """Configure logging - should be called at startup, not import time."""
    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=settings.log_level,
        serialize=False,
    )
    if settings.log_file:
        logger.add(
            settings.log_file,
            rotation="10 MB",
            retention="7 days",
            compression="zip",
            level=settings.log_level,
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle."""
    settings: Settings = app.state.settings
    configure_logging(settings)

    # Services injected ahead of time (tests, embedding) are not ours to stop.
    owned = getattr(app.state, "services", None) is None
    if owned:
        app.state.services = await ServiceFactory.create(settings)

    logger.info("Application started successfully")

    yield

    if owned:
        await ServiceFactory.shutdown(app.state.services)
        app.state.services = None
    logger.info("Application shutdown complete")


# Dependencies


def get_services(request: Request) -> Services:
    """Get the services container for this application."""
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise RuntimeError("Service not initialized")
    return services


def get_account_service(services: Annotated[Services, Depends(get_services)]) -> AccountService:
    return services.accounts


def get_article_service(services: Annotated[Services, Depends(get_services)]) -> ArticleService:
    return services.articles


CurrentUser = Annotated[TokenClaims, Depends(get_current_user)]
Accounts = Annotated[AccountService, Depends(get_account_service)]
Articles = Annotated[ArticleService, Depends(get_article_service)]


async def read_image(request: Request, upload: UploadFile | None) -> ImageUpload | None:
    """Read an uploaded file into memory, or None if no file was sent.

    At most one byte past the configured ceiling is read, which is enough for
    the uploader to reject oversized input.
    """
    if upload is None or not upload.filename:
        return None

    settings: Settings = request.app.state.settings
    try:
        data = await upload.read(settings.max_image_bytes + 1)
    finally:
        await upload.close()
    return ImageUpload(data=data, content_type=upload.content_type or "", filename=upload.filename)


# Auth routes

auth_router = APIRouter(prefix="/api/auth", tags=["auth"])


@auth_router.post("/signup", status_code=status.HTTP_201_CREATED)
@limiter.limit(_auth_rate_limit)
async def signup_endpoint(
    request: Request, payload: SignupRequest, accounts: Accounts
) -> AuthResponse:
    """Register a new user and return a bearer token."""
    result = await accounts.signup(payload.username, payload.email, payload.password)
    return AuthResponse(
        message="User created successfully",
        token=result.token,
        user=UserResponse.from_record(result.user),
    )


@auth_router.post("/login")
@limiter.limit(_auth_rate_limit)
async def login_endpoint(request: Request, payload: LoginRequest, accounts: Accounts) -> AuthResponse:
    """Exchange email and password for a bearer token."""
    result = await accounts.login(payload.email, payload.password)
    return AuthResponse(
        message="Login successful",
        token=result.token,
        user=UserResponse.from_record(result.user),
    )


@auth_router.post("/logout")
async def logout_endpoint(accounts: Accounts) -> MessageResponse:
    """Acknowledge a logout; the client discards its token."""
    await accounts.logout()
    return MessageResponse(message="Logout successful")


@auth_router.get("/verify")
async def verify_endpoint(claims: CurrentUser, accounts: Accounts) -> VerifyResponse:
    """Return the user a valid token belongs to."""
    user = await accounts.verify(claims)
    return VerifyResponse(user=UserResponse.from_record(user))


# Post routes

posts_router = APIRouter(prefix="/api/posts", tags=["posts"])


@posts_router.get("")
async def list_posts_endpoint(articles: Articles) -> list[ArticleResponse]:
    """List all posts, newest first."""
    return [ArticleResponse.from_record(record) for record in await articles.list()]


@posts_router.get("/{post_id}")
async def get_post_endpoint(post_id: str, articles: Articles) -> ArticleResponse:
    """Fetch a single post."""
    return ArticleResponse.from_record(await articles.get(post_id))


@posts_router.post("", status_code=status.HTTP_201_CREATED)
async def create_post_endpoint(
    request: Request,
    claims: CurrentUser,
    articles: Articles,
    title: Annotated[str, Form(min_length=1)],
    content: Annotated[str, Form(min_length=1)],
    subtitle: Annotated[str | None, Form()] = None,
    image: Annotated[UploadFile | None, File()] = None,
) -> ArticleResponse:
    """Create a post, optionally with an image."""
    upload = await read_image(request, image)
    record = await articles.create(claims, title, subtitle, content, upload)
    return ArticleResponse.from_record(record)


@posts_router.put("/{post_id}")
async def update_post_endpoint(
    request: Request,
    post_id: str,
    claims: CurrentUser,
    articles: Articles,
    title: Annotated[str | None, Form(min_length=1)] = None,
    subtitle: Annotated[str | None, Form()] = None,
    content: Annotated[str | None, Form(min_length=1)] = None,
    image: Annotated[UploadFile | None, File()] = None,
) -> ArticleResponse:
    """Update a post the caller owns."""
    upload = await read_image(request, image)
    record = await articles.update(claims, post_id, title, subtitle, content, upload)
    return ArticleResponse.from_record(record)


@posts_router.delete("/{post_id}")
async def delete_post_endpoint(
    post_id: str, claims: CurrentUser, articles: Articles
) -> MessageResponse:
    """Delete a post the caller owns."""
    await articles.delete(claims, post_id)
    return MessageResponse(message="Post deleted successfully")


# Health routes

health_router = APIRouter(tags=["health"])


@health_router.get("/api/health")
async def health_endpoint(
    services: Annotated[Services, Depends(get_services)],
    detailed: bool = Query(False, description="Include backing service checks"),
) -> dict[str, Any]:
    """Liveness check.

    Args:
        detailed: If True, also probes the record store and image storage.

    """
    result: dict[str, Any] = {
        "status": "OK",
        "timestamp": datetime.now(UTC).isoformat(),
    }

    if detailed:
        result["version"] = __version__
        result["services"] = {
            "storage": await services.repository.health_check(),
            "images": await services.image_store.health_check(),
        }

    return result


@health_router.get("/")
async def root_endpoint() -> dict[str, str]:
    """API information endpoint."""
    return {
        "name": "Blog API",
        "version": __version__,
        "status": "running",
        "docs": "/docs",
    }


# Error handlers


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Handle validation errors with clean messages."""
    error_messages = []

    for error in exc.errors():
        field = error["loc"][-1] if error["loc"] else "field"
        message = error.get("msg", f"Invalid {field}")

        match error["type"]:
            case "missing":
                message = f"Required field '{field}' is missing"
            case "json_invalid":
                message = "Invalid JSON format"

        error_messages.append(message)

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "Validation failed",
            "message": "; ".join(error_messages),
            "details": error_messages,
        },
    )


async def blog_api_exception_handler(request: Request, exc: BlogAPIError) -> JSONResponse:
    """Handle domain-specific errors."""
    if exc.status_code >= 500:
        logger.error(f"Blog API error: {exc}", type=exc.__class__.__name__, path=request.url.path)
    else:
        logger.warning(f"Blog API error: {exc}", type=exc.__class__.__name__, path=request.url.path)

    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log unexpected failures and hide their details from the caller."""
    logger.exception(f"Unexpected error handling {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


def create_app(settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Configuration; read from the environment when omitted.
        services: Pre-built services. When omitted they are created and
            started by the lifespan handler.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Blog API",
        version=__version__,
        description="Articles with bearer-token auth and image uploads",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.services = services

    app.middleware("http")(add_request_id)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.limiter = limiter  # Required by slowapi
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(BlogAPIError, blog_api_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(auth_router)
    app.include_router(posts_router)
    app.include_router(health_router)

    app.openapi_tags = [
        {"name": "auth", "description": "Authentication"},
        {"name": "posts", "description": "Blog posts"},
        {"name": "health", "description": "Health checks"},
    ]
    return app
