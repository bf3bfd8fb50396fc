"""Entry point for python -m blog_api."""

import uvicorn

from .api import create_app
from .config import get_settings


def main() -> None:
    """Run the blog API server."""
    settings = get_settings()
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
