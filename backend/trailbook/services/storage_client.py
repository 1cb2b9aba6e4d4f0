"""
StorageClient - resolves durable URLs for objects uploaded via presigned PUT.

Bytes never pass through this service; the client only derives the public
URL for a key and, optionally, confirms that the object exists.
"""

import logging
from typing import Optional
from urllib.parse import quote

import requests

from ..core.config import settings

logger = logging.getLogger(__name__)


class StorageUnavailableError(RuntimeError):
    """Raised when an object cannot be confirmed in storage."""


class StorageClient:
    def __init__(
        self,
        bucket: Optional[str] = None,
        region: Optional[str] = None,
        public_base_url: Optional[str] = None,
        verify_uploads: Optional[bool] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.bucket = bucket if bucket is not None else settings.storage_bucket
        self.region = region or settings.storage_region
        self.public_base_url = (
            public_base_url if public_base_url is not None else settings.storage_public_base_url
        )
        self.verify_uploads = (
            settings.storage_verify_uploads if verify_uploads is None else verify_uploads
        )
        self.timeout = timeout or settings.storage_request_timeout_seconds

    def public_url(self, object_key: str) -> str:
        """Durable URL for ``object_key``."""
        key = quote(object_key.lstrip("/"), safe="/")
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{key}"
        if not self.bucket:
            raise StorageUnavailableError("Storage bucket is not configured")
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    def confirm_upload(self, object_key: str) -> str:
        """
        Resolve the URL and, when verification is enabled, HEAD the object.

        Raises:
            StorageUnavailableError: object missing or storage unreachable
        """
        url = self.public_url(object_key)
        if not self.verify_uploads:
            return url

        try:
            resp = requests.head(url, timeout=self.timeout, allow_redirects=True)
        except requests.RequestException as e:
            logger.warning(f"HEAD {object_key} failed: {e}")
            raise StorageUnavailableError(f"Storage unreachable for {object_key}") from e

        if not 200 <= resp.status_code < 300:
            logger.warning(f"Object {object_key} not found in storage: status={resp.status_code}")
            raise StorageUnavailableError(f"Object {object_key} not available (status {resp.status_code})")
        return url
