"""Cloudinary client for uploading room photos to a publicly fetchable URL."""

import hashlib
import json
import time
from contextlib import nullcontext
from typing import Callable, Optional

import httpx
import structlog

from restyle.services.exceptions import (
    ConfigurationError,
    UploadEncodingError,
    UploadInvalidResponseError,
    UploadNetworkError,
    UploadNoDataError,
    UploadTimeoutError,
)
from restyle.services.imaging import prepare_upload_image

logger = structlog.get_logger(__name__)


def sign_upload_params(folder: str, timestamp: int, api_secret: str) -> str:
    """Compute the Cloudinary signature for a signed upload.

    Cloudinary signs the alphabetically sorted parameters joined as
    key=value pairs with the API secret appended, hashed with SHA-1.

    Args:
        folder: Destination folder name
        timestamp: Unix timestamp (seconds) sent with the request
        api_secret: Cloudinary API secret (never sent over the wire)

    Returns:
        Lowercase hex SHA-1 digest
    """
    to_sign = f"folder={folder}&timestamp={timestamp}{api_secret}"
    return hashlib.sha1(to_sign.encode("utf-8")).hexdigest()


class CloudinaryUploader:
    """Signed image upload client for the Cloudinary upload API."""

    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        folder: str = "coze_interior_designs",
        max_dimension: int = 1024,
        jpeg_quality: int = 70,
        timeout: float = 60.0,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize Cloudinary uploader.

        Args:
            cloud_name: Cloudinary cloud name (part of the upload URL)
            api_key: Cloudinary API key
            api_secret: Cloudinary API secret used for request signing
            folder: Default destination folder
            max_dimension: Longest side of the uploaded image in pixels
            jpeg_quality: JPEG quality factor for the re-encoded upload
            timeout: Request timeout in seconds
            http_client: Shared client; a short-lived one is created per upload if omitted
            clock: Source of the signed Unix timestamp
        """
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.folder = folder
        self.max_dimension = max_dimension
        self.jpeg_quality = jpeg_quality
        self.timeout = timeout
        self._http_client = http_client
        self._clock = clock

    @property
    def upload_url(self) -> str:
        return f"https://api.cloudinary.com/v1_1/{self.cloud_name}/image/upload"

    def _client(self):
        if self._http_client is not None:
            return nullcontext(self._http_client)
        return httpx.AsyncClient(timeout=self.timeout)

    async def upload(self, image: bytes, folder: Optional[str] = None) -> str:
        """Downscale, re-encode and upload an image.

        Args:
            image: Encoded source image bytes
            folder: Destination folder (defaults to the configured folder)

        Returns:
            HTTPS URL of the uploaded asset (the response's secure_url)

        Raises:
            ConfigurationError: Cloud name, API key or secret missing
            UploadEncodingError: Image could not be decoded or re-encoded
            UploadNetworkError: Transport failure (UploadTimeoutError on timeout)
            UploadNoDataError: Empty response body
            UploadInvalidResponseError: Body is not JSON or has no secure_url
        """
        if not (self.cloud_name and self.api_key and self.api_secret):
            raise ConfigurationError("Cloudinary credentials not configured")

        folder = folder or self.folder

        try:
            payload = prepare_upload_image(
                image, max_dimension=self.max_dimension, quality=self.jpeg_quality
            )
        except ValueError as e:
            logger.error("upload.encoding_failed", error=str(e))
            raise UploadEncodingError(str(e)) from e

        timestamp = int(self._clock())
        signature = sign_upload_params(folder, timestamp, self.api_secret)

        logger.info(
            "upload.started",
            folder=folder,
            source_bytes=len(image),
            upload_bytes=len(payload),
        )

        try:
            async with self._client() as client:
                response = await client.post(
                    self.upload_url,
                    data={
                        "api_key": self.api_key,
                        "timestamp": str(timestamp),
                        "folder": folder,
                        "signature": signature,
                    },
                    files={"file": ("image.jpg", payload, "image/jpeg")},
                    timeout=self.timeout,
                )
        except httpx.TimeoutException as e:
            logger.error("upload.failed", error_type="timeout", error=str(e))
            raise UploadTimeoutError(f"Upload timed out after {self.timeout}s: {e}") from e
        except httpx.HTTPError as e:
            logger.error("upload.failed", error_type=type(e).__name__, error=str(e))
            raise UploadNetworkError(f"Upload network error: {e}") from e

        logger.debug("upload.response", status_code=response.status_code)

        if not response.content:
            raise UploadNoDataError("No data received from Cloudinary")

        try:
            result = json.loads(response.content)
        except ValueError as e:
            raise UploadInvalidResponseError(f"Cloudinary returned non-JSON body: {e}") from e

        secure_url = result.get("secure_url") if isinstance(result, dict) else None
        if not isinstance(secure_url, str) or not secure_url:
            detail = _error_detail(result)
            logger.error(
                "upload.failed",
                error_type="invalid_response",
                status_code=response.status_code,
                detail=detail,
            )
            raise UploadInvalidResponseError(
                f"Cloudinary response has no secure_url (HTTP {response.status_code}): {detail}"
            )

        logger.info("upload.succeeded", url=secure_url)
        return secure_url


def _error_detail(result: object) -> str:
    """Pull Cloudinary's {"error": {"message": ...}} text out of a response."""
    if isinstance(result, dict):
        error = result.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
    return "unexpected response shape"
