"""Request tracking middleware and bearer-token authentication."""

import uuid

from fastapi import Request
from loguru import logger

from .exceptions import AuthenticationError, MissingTokenError
from .tokens import TokenClaims, TokenIssuer


async def add_request_id(request: Request, call_next):
    """Add request ID to context for tracking.

    Args:
        request: Incoming FastAPI request.
        call_next: Next middleware or handler in chain.

    Returns:
        Response with X-Request-ID header.

    """
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    request.state.request_id = request_id

    with logger.contextualize(request_id=request_id):
        logger.debug(
            "Request started",
            method=request.method,
            path=request.url.path,
            client=request.client.host if request.client else None,
        )

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        logger.debug(
            "Request completed",
            status_code=response.status_code,
        )

        return response


def extract_bearer_token(header: str | None) -> str | None:
    """Pull the token out of an ``Authorization: Bearer <token>`` header.

    Anything other than exactly two whitespace-separated parts with a
    ``Bearer`` scheme is treated as no token at all.
    """
    if not header:
        return None
    parts = header.split()
    if len(parts) != 2:
        return None
    scheme, token = parts
    if scheme.lower() != "bearer":
        return None
    return token


async def get_current_user(request: Request) -> TokenClaims:
    """Authenticate the request from its bearer token.

    The verified claims are attached to ``request.state.user`` for the rest
    of the request. The identity is not looked up in the store.

    Raises:
        MissingTokenError: If no well-formed bearer header is present.
        InvalidTokenError: If the token signature or structure is bad.
        ExpiredTokenError: If the token has expired.
    """
    token = extract_bearer_token(request.headers.get("Authorization"))
    if token is None:
        raise MissingTokenError()

    issuer: TokenIssuer = request.app.state.services.tokens
    try:
        claims = issuer.verify(token)
    except AuthenticationError as e:
        logger.debug("Token rejected", reason=e.__class__.__name__, path=request.url.path)
        raise

    request.state.user = claims
    return claims
