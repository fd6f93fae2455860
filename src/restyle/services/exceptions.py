"""Service error hierarchy for asset upload and design generation.

This module defines the exception hierarchy for service-level errors:
- ServiceError: Base for all service errors
- Transport kinds: NetworkError, ConnectivityError, RequestTimeoutError
- Payload kinds: NoDataReceivedError, InvalidResponseError, ImageProcessingError, InvalidURLError
- Remote verdicts: RateLimitedError, APIError
- StorageError: Local persistence of a finished job failed
- UploadError: Upload-stage variants of the kinds above

No error is retried inside the pipeline. The job orchestrator is the only
place that turns these into user-visible outcomes.
"""


class ServiceError(Exception):
    """Base exception for all service errors."""

    retryable: bool = False


class NetworkError(ServiceError):
    """Transport failure while talking to a remote host."""

    pass


class ConnectivityError(NetworkError):
    """Remote host could not be reached (offline, DNS, refused connection)."""

    def __init__(self, message: str = "Internet connection appears to be offline"):
        super().__init__(message)
        self.message = message


class RequestTimeoutError(NetworkError):
    """Request exceeded its configured timeout."""

    pass


class NoDataReceivedError(ServiceError):
    """Remote host answered with an empty body."""

    def __init__(self, message: str = "No data received from server"):
        super().__init__(message)


class InvalidResponseError(ServiceError):
    """Response body could not be parsed or lacks the expected fields."""

    def __init__(self, message: str = "Invalid response from server"):
        super().__init__(message)


class ImageProcessingError(ServiceError):
    """Image bytes could not be decoded or re-encoded."""

    def __init__(self, message: str = "Failed to process image"):
        super().__init__(message)


class InvalidURLError(ServiceError):
    """A URL returned by a remote service is not usable."""

    def __init__(self, message: str = "Invalid URL"):
        super().__init__(message)


class RateLimitedError(ServiceError):
    """Workflow API rejected the call with its rate-limit code.

    Retryable later, but never retried automatically.
    """

    retryable = True

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class APIError(ServiceError):
    """Workflow API returned a non-zero business code."""

    def __init__(self, code: int, message: str):
        super().__init__(f"API Error {code}: {message}")
        self.code = code
        self.message = message


class ConfigurationError(ServiceError):
    """Required credentials or endpoints are not configured."""

    pass


class StorageError(ServiceError):
    """A finished job could not be written to the design store."""

    def __init__(self, message: str = "Failed to save design"):
        super().__init__(message)


# Upload-specific errors
class UploadError(ServiceError):
    """Base exception for asset upload errors."""

    pass


class UploadNetworkError(UploadError, NetworkError):
    """Transport failure during upload."""

    pass


class UploadTimeoutError(UploadNetworkError, RequestTimeoutError):
    """Upload request timed out."""

    pass


class UploadNoDataError(UploadError, NoDataReceivedError):
    """Upload response body was empty."""

    pass


class UploadInvalidResponseError(UploadError, InvalidResponseError):
    """Upload response was not JSON or had no secure_url."""

    pass


class UploadEncodingError(UploadError, ImageProcessingError):
    """Image could not be decoded or re-encoded for upload."""

    pass
