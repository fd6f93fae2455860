"""Coze workflow client for interior design generation with error classification."""

import json
from contextlib import nullcontext
from typing import Any, Optional
from urllib.parse import urlparse

import httpx
import structlog

from restyle.services.exceptions import (
    APIError,
    ConfigurationError,
    ConnectivityError,
    ImageProcessingError,
    InvalidResponseError,
    InvalidURLError,
    NetworkError,
    NoDataReceivedError,
    RateLimitedError,
    RequestTimeoutError,
)
from restyle.services.imaging import ensure_decodable

logger = structlog.get_logger(__name__)

RATE_LIMIT_CODE = 4024


def parse_workflow_response(body: bytes) -> str:
    """Extract the generated image URL from a workflow run response.

    The response is a two-level envelope: the outer object carries
    code/msg/data, and data is itself a JSON-encoded string whose object
    exposes the result URL under "Output".

    Args:
        body: Raw response body

    Returns:
        Non-empty Output URL string

    Raises:
        RateLimitedError: Outer code is 4024
        APIError: Any other non-zero outer code
        InvalidResponseError: Either level fails to parse, or Output is missing/empty
    """
    try:
        outer = json.loads(body)
    except ValueError as e:
        raise InvalidResponseError(f"Workflow response is not JSON: {e}") from e

    if not isinstance(outer, dict):
        raise InvalidResponseError("Workflow response is not a JSON object")

    code = outer.get("code")
    if isinstance(code, bool):
        raise InvalidResponseError(f"Workflow response code is not an integer: {code!r}")
    if isinstance(code, int) and code != 0:
        message = outer.get("msg") or "Unknown error"
        if code == RATE_LIMIT_CODE:
            raise RateLimitedError(f"API rate limited: {message}")
        raise APIError(code=code, message=message)

    data = outer.get("data")
    if not isinstance(data, str):
        raise InvalidResponseError("Workflow response has no data string")

    try:
        inner = json.loads(data)
    except ValueError as e:
        raise InvalidResponseError(f"Workflow data field is not JSON: {e}") from e

    if not isinstance(inner, dict):
        raise InvalidResponseError("Workflow data field is not a JSON object")

    inner_msg = inner.get("msg")
    if isinstance(inner_msg, str) and inner_msg:
        if "tls handshake timeout" in inner_msg.lower():
            # Upstream fetch of the input image logged a timeout but the
            # workflow may still have produced an Output
            logger.warning("generation.upstream_handshake_timeout", workflow_msg=inner_msg)
        else:
            logger.debug("generation.workflow_message", workflow_msg=inner_msg)

    output = inner.get("Output")
    if not isinstance(output, str) or not output:
        raise InvalidResponseError("Workflow result has no Output URL")

    return output


def _validate_output_url(url: str) -> str:
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidURLError(f"Invalid Output URL: {url!r}")
    return url


def _classify_transport_error(e: httpx.HTTPError, action: str) -> NetworkError:
    if isinstance(e, httpx.TimeoutException):
        return RequestTimeoutError(f"{action} timed out: {e}")
    if isinstance(e, httpx.ConnectError):
        return ConnectivityError(f"{action} could not reach host: {e}")
    return NetworkError(f"{action} network error: {e}")


class CozeWorkflowClient:
    """Runs the interior design workflow and downloads its result image."""

    def __init__(
        self,
        api_token: str,
        workflow_id: str,
        base_url: str = "https://api.coze.cn/v1/workflow/run",
        timeout: float = 300.0,
        download_timeout: float = 60.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize workflow client.

        Args:
            api_token: Static bearer credential (COZE_API_TOKEN)
            workflow_id: Workflow to run
            base_url: Workflow run endpoint
            timeout: Timeout for the workflow run request in seconds
            download_timeout: Timeout for fetching the result image in seconds
            http_client: Shared client; a short-lived one is created per call if omitted
        """
        self.api_token = api_token
        self.workflow_id = workflow_id
        self.base_url = base_url
        self.timeout = timeout
        self.download_timeout = download_timeout
        self._http_client = http_client
        self.headers = {
            "Authorization": f"Bearer {api_token}",
            "Content-Type": "application/json",
        }

    def _client(self):
        if self._http_client is not None:
            return nullcontext(self._http_client)
        return httpx.AsyncClient()

    def build_payload(self, image_url: str, prompt: str) -> dict[str, Any]:
        return {
            "parameters": {
                "Image_Input": image_url,
                "Prompt": prompt,
            },
            "workflow_id": self.workflow_id,
        }

    async def generate(self, image_url: str, prompt: str) -> bytes:
        """Run the design workflow on an uploaded photo and download the result.

        Args:
            image_url: Public URL of the uploaded room photo
            prompt: Style instruction for the workflow

        Returns:
            Encoded bytes of the generated design image

        Raises:
            ConfigurationError: Token or workflow id missing
            RateLimitedError: Workflow API rate limit (code 4024)
            APIError: Other non-zero workflow code
            InvalidResponseError: Envelope could not be parsed
            InvalidURLError: Output is not an http(s) URL
            NetworkError: Transport failure (ConnectivityError, RequestTimeoutError)
            NoDataReceivedError: Empty response or image body
            ImageProcessingError: Downloaded bytes are not an image
        """
        if not self.api_token or not self.workflow_id:
            raise ConfigurationError("COZE_API_TOKEN and COZE_WORKFLOW_ID must be configured")

        logger.info("generation.started", workflow_id=self.workflow_id, image_url=image_url)

        try:
            async with self._client() as client:
                response = await client.post(
                    self.base_url,
                    headers=self.headers,
                    json=self.build_payload(image_url, prompt),
                    timeout=self.timeout,
                )
        except httpx.HTTPError as e:
            classified = _classify_transport_error(e, "Workflow request")
            logger.error(
                "generation.failed",
                error_type=type(classified).__name__,
                error_message=str(classified),
            )
            raise classified from e

        logger.debug("generation.response", status_code=response.status_code)

        if not response.content:
            raise NoDataReceivedError("No data received from workflow API")

        try:
            output_url = parse_workflow_response(response.content)
        except (RateLimitedError, APIError, InvalidResponseError) as e:
            logger.error(
                "generation.failed",
                error_type=type(e).__name__,
                error_message=str(e),
                status_code=response.status_code,
            )
            raise

        output_url = _validate_output_url(output_url)
        logger.info("generation.output_ready", output_url=output_url)

        return await self.download_image(output_url)

    async def download_image(self, url: str) -> bytes:
        """Fetch a generated image and check that it decodes.

        Raises:
            NetworkError: Transport failure or HTTP error status
            NoDataReceivedError: Empty body
            ImageProcessingError: Body is not a decodable image
        """
        try:
            async with self._client() as client:
                response = await client.get(url, timeout=self.download_timeout)
        except httpx.HTTPError as e:
            classified = _classify_transport_error(e, "Image download")
            logger.error(
                "generation.download_failed",
                error_type=type(classified).__name__,
                error_message=str(classified),
            )
            raise classified from e

        if response.status_code >= 400:
            logger.error("generation.download_failed", status_code=response.status_code)
            raise NetworkError(f"Image download failed with HTTP {response.status_code}")

        data = response.content
        if not data:
            raise NoDataReceivedError("No image data received")

        try:
            width, height = ensure_decodable(data)
        except ValueError as e:
            logger.error("generation.download_failed", error_type="undecodable", error=str(e))
            raise ImageProcessingError(f"Failed to process downloaded image: {e}") from e

        logger.info("generation.downloaded", size_bytes=len(data), width=width, height=height)
        return data
