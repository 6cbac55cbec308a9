"""
Object storage client for Horizon News.
Talks to the image bucket's REST API; uploaded objects are publicly readable.
"""

import logging
from typing import Optional
from urllib.parse import quote

import httpx

from config import settings
from exceptions import FetchError, StorageError
from resilience import RetryConfig, fetch_with_retry

logger = logging.getLogger(__name__)


class BucketStorage:
    """Client for a single storage bucket."""

    def __init__(
        self,
        base_url: str,
        service_key: str,
        bucket: str,
        client: Optional[httpx.AsyncClient] = None,
        retry_config: Optional[RetryConfig] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.bucket = bucket
        self.headers = {
            "Authorization": f"Bearer {service_key}",
            "apikey": service_key,
        }
        self.client = client
        self.retry_config = retry_config

    def _object_url(self, path: str = "") -> str:
        url = f"{self.base_url}/storage/v1/object/{self.bucket}"
        if path:
            url = f"{url}/{quote(path)}"
        return url

    def public_url(self, path: str) -> str:
        """Publicly resolvable URL of an object."""
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{quote(path)}"

    async def upload(self, path: str, content: bytes, content_type: str) -> str:
        """
        Upload an object without overwriting an existing one.

        Uploads are not retried: a replayed upload would collide with the
        object the first attempt may already have written.

        Args:
            path: Object key inside the bucket
            content: File bytes
            content_type: MIME type stored with the object

        Returns:
            The object key

        Raises:
            StorageError: If the bucket rejects the upload
        """
        headers = {
            **self.headers,
            "Content-Type": content_type,
            "cache-control": "3600",
            "x-upsert": "false",
        }
        try:
            if self.client is not None:
                response = await self.client.post(self._object_url(path), content=content, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=30.0) as client:
                    response = await client.post(self._object_url(path), content=content, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Storage upload of {path} failed: {e}")
            raise StorageError(f"Storage upload error: {e}") from e

        if response.status_code >= 400:
            logger.error(f"Storage upload of {path} rejected: {response.status_code} {response.text}")
            raise StorageError(
                f"Storage upload error: status {response.status_code}",
                details={"path": path, "status": response.status_code},
            )

        logger.info(f"Uploaded {path} to bucket {self.bucket}")
        return path

    async def remove(self, paths: list[str]) -> None:
        """
        Delete objects from the bucket.

        Raises:
            StorageError: If every removal attempt failed
        """
        try:
            await fetch_with_retry(
                self._object_url(),
                method="DELETE",
                headers=self.headers,
                json={"prefixes": paths},
                config=self.retry_config,
                client=self.client,
            )
        except FetchError as e:
            raise StorageError(
                f"Storage removal error: {e.message}",
                details={"paths": paths},
            ) from e
        logger.info(f"Removed {len(paths)} object(s) from bucket {self.bucket}")


def create_storage() -> BucketStorage:
    """Build the bucket client from application settings."""
    return BucketStorage(
        base_url=settings().storage_url,
        service_key=settings().storage_service_key,
        bucket=settings().storage_bucket,
    )
