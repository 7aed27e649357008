"""Pinning gateway: validate an uploaded document and pin it with bounded retries.

Per-request lifecycle::

    received -> validated -> forwarding -> succeeded
                                  |
                                  +-> retrying -> forwarding ...
                                  +-> failed

Every retry is a fresh, independent upload; Pinata deduplicates identical content by
hash, so a retry after an ambiguous failure does not leave a partial pin behind.
"""

import asyncio
from enum import Enum

import structlog

from docanchor.core.config import Settings
from docanchor.core.retry import RetryExhausted, SleepFunc, linear_backoff, retry_async
from docanchor.services.exceptions import (
    ConfigurationError,
    FileRejectedError,
    TransientError,
    UpstreamUnavailableError,
)
from docanchor.services.ipfs.pinata_client import PinataClient, PinnedFile
from docanchor.validators import ACCEPTED_FILE_TYPES, sanitize_filename, validate_file

logger = structlog.get_logger()


class PinRequestState(str, Enum):
    """Pinning request lifecycle state (logged on every transition)."""

    RECEIVED = "received"
    VALIDATED = "validated"
    FORWARDING = "forwarding"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class PinningGateway:
    """Backend side of ``POST /api/upload/ipfs``."""

    def __init__(
        self,
        pinata: PinataClient,
        max_file_size: int,
        max_retries: int = 2,
        retry_delay_seconds: float = 1.0,
        accepted_types: tuple[str, ...] = ACCEPTED_FILE_TYPES,
        sleep: SleepFunc = asyncio.sleep,
    ):
        """Initialize gateway.

        Args:
            pinata: Client for the pinning service
            max_file_size: Upload ceiling in bytes
            max_retries: Additional attempts after the first transient failure
            retry_delay_seconds: Linear backoff base (delay = base * attempt)
            accepted_types: Accepted MIME types
            sleep: Awaitable sleep used between attempts
        """
        self.pinata = pinata
        self.max_file_size = max_file_size
        self.max_retries = max_retries
        self.retry_delay_seconds = retry_delay_seconds
        self.accepted_types = accepted_types
        self.sleep = sleep

    @classmethod
    def from_settings(
        cls, settings: Settings, pinata: PinataClient | None = None
    ) -> "PinningGateway":
        return cls(
            pinata=pinata or PinataClient.from_settings(settings),
            max_file_size=settings.max_file_size_bytes,
            max_retries=settings.pinata_max_retries,
            retry_delay_seconds=settings.pinata_retry_delay_seconds,
        )

    def ensure_configured(self) -> None:
        """Raise ConfigurationError when the pinning credentials are missing.

        Checked on every request so a misconfigured deployment answers 500 uniformly
        instead of attempting (and retrying) unauthenticated uploads.
        """
        if not self.pinata.has_credentials:
            logger.error("pinning.credentials_missing")
            raise ConfigurationError("Server configuration error: Pinata API keys not set")

    def validate(self, filename: str | None, content_type: str | None, size: int | None) -> str:
        """Validate type and size; return the sanitised file name.

        Raises:
            FileRejectedError: Unsupported MIME type or file above the ceiling
        """
        check = validate_file(content_type, size, self.accepted_types, self.max_file_size)
        if not check.valid:
            logger.info(
                "pinning.rejected",
                reason=check.error,
                content_type=content_type,
                size=size,
            )
            raise FileRejectedError(check.error or "Invalid file")
        return sanitize_filename(filename)

    async def pin(
        self, filename: str | None, content: bytes, content_type: str | None
    ) -> PinnedFile:
        """Validate, sanitise and pin one file.

        Returns:
            PinnedFile from the first successful attempt

        Raises:
            ConfigurationError: Credentials missing or rejected by Pinata
            FileRejectedError: File failed validation
            UpstreamUnavailableError: Still failing after max_retries retries
            IPFSValidationError: Pinata rejected the request as malformed
        """
        logger.info("pinning.state", state=PinRequestState.RECEIVED.value, size=len(content))
        self.ensure_configured()

        safe_name = self.validate(filename, content_type, len(content))
        logger.info(
            "pinning.state",
            state=PinRequestState.VALIDATED.value,
            file_name=safe_name,
            content_type=content_type,
        )

        attempt = 0

        async def _attempt() -> PinnedFile:
            nonlocal attempt
            attempt += 1
            state = PinRequestState.FORWARDING if attempt == 1 else PinRequestState.RETRYING
            logger.info(
                "pinning.state",
                state=state.value,
                attempt=attempt,
            )
            return await self.pinata.pin_file(safe_name, content, content_type or "")

        try:
            pinned = await retry_async(
                _attempt,
                max_attempts=self.max_retries + 1,
                delay=linear_backoff(self.retry_delay_seconds),
                retry_on=(TransientError,),
                operation_name="pinata.pin_file",
                sleep=self.sleep,
            )
        except RetryExhausted as e:
            logger.error(
                "pinning.state",
                state=PinRequestState.FAILED.value,
                attempts=e.attempts,
                error_type=type(e.last_error).__name__,
                error=str(e.last_error),
            )
            raise UpstreamUnavailableError(str(e)) from e
        except Exception as e:
            logger.error(
                "pinning.state",
                state=PinRequestState.FAILED.value,
                attempts=attempt,
                error_type=type(e).__name__,
                error=str(e),
            )
            raise

        logger.info(
            "pinning.state",
            state=PinRequestState.SUCCEEDED.value,
            cid=pinned.cid,
            pin_size=pinned.pin_size,
            attempts=attempt,
        )
        return pinned
