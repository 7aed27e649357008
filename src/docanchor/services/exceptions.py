"""Service error hierarchy for pinning, persistence and configuration.

This module defines the exception hierarchy for service-level errors:
- ServiceError: Base for all service errors; carries the HTTP status and a
  user-safe message for the API error handler
- TransientError: Retryable errors (network, rate limits, 5xx). Retried by the
  pinning gateway only
- PermanentError: Non-retryable errors (authentication, validation, configuration)
- Record errors: validation, duplicate content id, not found
"""


class ServiceError(Exception):
    """Base exception for all service errors."""

    status_code: int = 500
    error_code: str = "InternalError"
    public_message: str = "Internal Server Error"


class TransientError(ServiceError):
    """Transient error that may succeed on retry.

    Examples:
    - Network timeouts
    - Rate limit exceeded (429)
    - Service unavailable (5xx)
    """

    status_code = 502
    error_code = "TransientNetwork"
    public_message = "Failed to upload file to IPFS"


class PermanentError(ServiceError):
    """Permanent error that will not succeed on retry.

    Examples:
    - Authentication failures (401, 403)
    - Invalid request parameters (400)
    - Configuration errors
    """


# Configuration errors
class ConfigurationError(PermanentError):
    """Required configuration (secrets, connection strings) is missing or unusable."""

    status_code = 500
    error_code = "ConfigurationFatal"


class DatabaseUnavailableError(ConfigurationError):
    """Database could not be reached during startup."""


# IPFS-specific errors
class IPFSRateLimitError(TransientError):
    """Rate limit exceeded (429)."""


class IPFSNetworkError(TransientError):
    """Network timeout or connection failure."""


class IPFSServiceUnavailableError(TransientError):
    """Pinning service answered with a 5xx status."""


class IPFSAuthError(ConfigurationError):
    """Authentication failure (401, 403)."""

    public_message = "Server configuration error: pinning service rejected credentials"


class IPFSValidationError(PermanentError):
    """Bad request (400) or a success response without a content identifier."""

    status_code = 502
    error_code = "UpstreamUnavailable"
    public_message = "Failed to upload file to IPFS"


class UpstreamUnavailableError(ServiceError):
    """Pinning service still failing after the configured retries."""

    status_code = 502
    error_code = "UpstreamUnavailable"
    public_message = "Failed to upload file to IPFS"


# Request validation (uploaded file shape)
class FileRejectedError(ServiceError):
    """Uploaded file is missing, of the wrong type, or too large."""

    status_code = 400
    error_code = "ValidationFailed"

    def __init__(self, message: str):
        super().__init__(message)
        self.public_message = message


# Metadata store errors
class RecordError(ServiceError):
    """Base exception for upload record persistence errors."""


class ValidationFailedError(RecordError):
    """One or more record fields violate their constraints.

    ``errors`` holds one ``{"field": ..., "message": ...}`` entry per violation.
    """

    status_code = 400
    error_code = "ValidationFailed"
    public_message = "Validation error"

    def __init__(self, errors: list[dict[str, str]]):
        super().__init__("; ".join(f"{e['field']}: {e['message']}" for e in errors))
        self.errors = errors


class DuplicateResourceError(RecordError):
    """Unique constraint violated."""

    status_code = 409
    error_code = "DuplicateResource"
    public_message = "Resource already exists"


class DuplicateContentIdError(DuplicateResourceError):
    """An upload record with this content identifier already exists."""

    error_code = "DuplicateContentId"
    public_message = "CID already exists"

    def __init__(self, cid: str):
        super().__init__(f"Upload record for CID {cid} already exists")
        self.cid = cid


class NotFoundError(RecordError):
    """Requested resource does not exist."""

    status_code = 404
    error_code = "NotFound"
    public_message = "Not found"


class RecordNotFoundError(NotFoundError):
    """No upload record for the requested content identifier."""

    public_message = "Upload not found"

    def __init__(self, cid: str):
        super().__init__(f"No upload record for CID {cid}")
        self.cid = cid
