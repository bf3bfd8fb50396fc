"""AWS Lambda entry point wrapping the ASGI app with Mangum."""

from typing import Any

from loguru import logger
from mangum import Mangum

from .api import create_app

# Lifespan stays on so the record store and image storage are started.
handler = Mangum(create_app(), lifespan="auto")


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """Translate an API Gateway event into an ASGI request and back."""
    method = event.get("httpMethod") or event.get("requestContext", {}).get("http", {}).get("method")
    path = event.get("path") or event.get("rawPath")
    logger.info("Lambda invocation", method=method, path=path)

    response: dict[str, Any] = handler(event, context)
    logger.info("Lambda invocation finished", status_code=response.get("statusCode"))
    return response
