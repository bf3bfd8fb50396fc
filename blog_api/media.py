"""Image upload orchestration and object-storage backends."""

import asyncio
import io
import random
import time
from dataclasses import dataclass
from typing import Any, Protocol

from loguru import logger
from PIL import Image, UnidentifiedImageError

from .exceptions import UploadError

MAX_IMAGE_BYTES = 5 * 1024 * 1024
# Decoded size ceiling; a small compressed buffer can still expand to a huge bitmap.
MAX_IMAGE_PIXELS = 24_000_000
STORED_FORMAT = "PNG"
STORED_CONTENT_TYPE = "image/png"

# Modes PNG can hold without conversion.
_PNG_MODES = {"1", "L", "LA", "I", "I;16", "P", "RGB", "RGBA"}


@dataclass(frozen=True)
class ImageUpload:
    """An image received with a request, held in memory."""

    data: bytes
    content_type: str
    filename: str | None = None


class ImageStore(Protocol):
    """Protocol for external object storage."""

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        """Store an object and return its public URL."""
        ...

    async def delete(self, url: str) -> None:
        """Remove a previously stored object."""
        ...

    async def health_check(self) -> bool: ...
    async def startup(self) -> None: ...
    async def shutdown(self) -> None: ...


class S3ImageStore:
    """S3 (or S3-compatible) object storage using boto3."""

    def __init__(
        self,
        bucket: str,
        region: str | None = None,
        endpoint_url: str | None = None,
        public_base_url: str | None = None,
    ) -> None:
        """Initialize S3 image store.

        Args:
            bucket: Bucket that receives uploaded images.
            region: AWS region.
            endpoint_url: Override for S3-compatible providers.
            public_base_url: Base URL objects are served from. Defaults to the
                bucket's virtual-hosted URL.
        """
        self.bucket = bucket
        self.region = region
        self.endpoint_url = endpoint_url
        self.public_base_url = (
            public_base_url or f"https://{bucket}.s3.{region or 'us-east-1'}.amazonaws.com"
        ).rstrip("/")
        self.client: Any = None

    async def startup(self) -> None:
        """Initialize the S3 client."""
        import boto3

        self.client = boto3.client("s3", region_name=self.region, endpoint_url=self.endpoint_url)
        logger.info(f"Image storage using S3 bucket: {self.bucket}")

    async def shutdown(self) -> None:
        """No cleanup needed for S3."""
        pass

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        """Upload an object and return its public URL.

        Raises:
            UploadError: If the provider rejects the request or is unreachable.
        """
        from botocore.exceptions import BotoCoreError, ClientError

        loop = asyncio.get_event_loop()
        try:
            await loop.run_in_executor(
                None,
                lambda: self.client.put_object(
                    Bucket=self.bucket, Key=key, Body=data, ContentType=content_type
                ),
            )
        except (BotoCoreError, ClientError) as e:
            raise UploadError(details={"provider_error": str(e)}) from e
        return f"{self.public_base_url}/{key}"

    async def delete(self, url: str) -> None:
        """Delete the object behind a URL produced by :meth:`put`."""
        prefix = f"{self.public_base_url}/"
        if not url.startswith(prefix):
            raise ValueError(f"URL does not belong to bucket {self.bucket}: {url}")

        key = url.removeprefix(prefix)
        loop = asyncio.get_event_loop()
        await loop.run_in_executor(
            None, lambda: self.client.delete_object(Bucket=self.bucket, Key=key)
        )

    async def health_check(self) -> bool:
        """Check that the bucket is reachable."""
        from botocore.exceptions import BotoCoreError, ClientError

        try:
            loop = asyncio.get_event_loop()
            await loop.run_in_executor(None, lambda: self.client.head_bucket(Bucket=self.bucket))
            return True
        except (BotoCoreError, ClientError) as e:
            logger.warning(f"S3 health check failed: {e}")
            return False


class DisabledImageStore:
    """Image store used when no bucket is configured."""

    async def startup(self) -> None:
        logger.warning("No image storage configured; image uploads will be rejected")

    async def shutdown(self) -> None:
        pass

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        raise UploadError("Image storage is not configured")

    async def delete(self, url: str) -> None:
        pass

    async def health_check(self) -> bool:
        return True


def generate_image_key(folder: str) -> str:
    """Build a best-effort unique object key from the time and a random number."""
    return f"{folder}/blog-{int(time.time() * 1000)}-{random.randint(0, 10**9)}.png"  # nosec B311


def normalize_image(data: bytes, max_pixels: int = MAX_IMAGE_PIXELS) -> bytes:
    """Decode an image and re-encode it as PNG.

    The dimensions are read from the header and checked before any pixel
    data is decoded.

    Raises:
        UploadError: If the payload is not a readable image or is too large.
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            width, height = img.size
            if width * height > max_pixels:
                raise UploadError(
                    "Image dimensions are too large",
                    details={"width": width, "height": height, "max_pixels": max_pixels},
                )
            img.load()
            if img.mode not in _PNG_MODES:
                img = img.convert("RGBA")
            out = io.BytesIO()
            img.save(out, format=STORED_FORMAT)
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
        raise UploadError("Uploaded file is not a valid image") from e
    return out.getvalue()


class ImageUploader:
    """Validate an image and hand it to object storage.

    Every call creates a new remote object; nothing is retried.
    """

    def __init__(
        self,
        store: ImageStore,
        max_bytes: int = MAX_IMAGE_BYTES,
        folder: str = "blog-images",
    ) -> None:
        self.store = store
        self.max_bytes = max_bytes
        self.folder = folder

    async def upload(self, data: bytes, content_type: str | None) -> str:
        """Store an image and return its public URL.

        Input is checked before any network call: the content type must be
        ``image/*`` and the buffer must fit under ``max_bytes``.

        Raises:
            UploadError: If the input is rejected or the provider fails.
        """
        if not content_type or not content_type.lower().startswith("image/"):
            raise UploadError("Only image files are allowed")
        if len(data) > self.max_bytes:
            raise UploadError(
                f"Image exceeds the {self.max_bytes // (1024 * 1024)} MiB limit",
                details={"size": len(data), "max_bytes": self.max_bytes},
            )

        loop = asyncio.get_event_loop()
        png = await loop.run_in_executor(None, normalize_image, data)

        key = generate_image_key(self.folder)
        try:
            url = await self.store.put(key, png, STORED_CONTENT_TYPE)
        except UploadError as e:
            logger.error(f"Image upload failed: {e.message}", key=key, **e.details)
            raise UploadError(e.message) from e
        except Exception as e:
            logger.error(f"Image upload failed: {e}", key=key)
            raise UploadError() from e

        logger.info("Image stored", key=key, size=len(png))
        return url

    async def discard(self, url: str) -> None:
        """Best-effort removal of a stored image; failures are only logged."""
        if not url:
            return
        try:
            await self.store.delete(url)
        except Exception as e:  # noqa: BLE001
            logger.warning(f"Image cleanup failed (non-critical): {e}", url=url)
        else:
            logger.debug("Image removed", url=url)
