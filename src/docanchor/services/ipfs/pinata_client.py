"""Pinata IPFS client for pinning uploaded documents."""

import json
from dataclasses import dataclass
from typing import Optional

import httpx

from docanchor.core.config import Settings
from docanchor.services.exceptions import (
    ConfigurationError,
    IPFSAuthError,
    IPFSNetworkError,
    IPFSRateLimitError,
    IPFSServiceUnavailableError,
    IPFSValidationError,
)


@dataclass(frozen=True)
class PinnedFile:
    """Pinata's answer for a successful pin."""

    cid: str
    pin_size: Optional[int]
    timestamp: Optional[str]


class PinataClient:
    """File pinning client for the Pinata service.

    Credentials are either a JWT (``Authorization: Bearer``) or the legacy
    ``pinata_api_key`` / ``pinata_secret_api_key`` header pair.
    """

    def __init__(
        self,
        jwt_token: str = "",
        api_key: str = "",
        secret_key: str = "",
        base_url: str = "https://api.pinata.cloud",
        cid_version: int = 0,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize Pinata client.

        Args:
            jwt_token: Pinata API JWT (PINATA_JWT), preferred when set
            api_key: Pinata API key (PINATA_API_KEY)
            secret_key: Pinata API secret (PINATA_SECRET_KEY)
            base_url: Pinata API root
            cid_version: 0 for "Qm..." identifiers, 1 for "b..." identifiers
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests inject httpx.MockTransport)
        """
        self.jwt_token = jwt_token
        self.api_key = api_key
        self.secret_key = secret_key
        self.base_url = base_url.rstrip("/")
        self.cid_version = cid_version
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: httpx.AsyncBaseTransport | None = None
    ) -> "PinataClient":
        return cls(
            jwt_token=settings.pinata_jwt,
            api_key=settings.pinata_api_key,
            secret_key=settings.pinata_secret_key,
            base_url=settings.pinata_api_url,
            cid_version=settings.pinata_cid_version,
            timeout=settings.pinata_timeout_seconds,
            transport=transport,
        )

    @property
    def has_credentials(self) -> bool:
        return bool(self.jwt_token) or bool(self.api_key and self.secret_key)

    def _auth_headers(self) -> dict[str, str]:
        if self.jwt_token:
            return {"Authorization": f"Bearer {self.jwt_token}"}
        if self.api_key and self.secret_key:
            return {
                "pinata_api_key": self.api_key,
                "pinata_secret_api_key": self.secret_key,
            }
        raise ConfigurationError("Pinata credentials are not configured")

    async def pin_file(self, filename: str, content: bytes, content_type: str) -> PinnedFile:
        """Upload one file to IPFS via Pinata ``pinFileToIPFS``.

        Args:
            filename: Already sanitised file name (also used as the pin name)
            content: Raw file bytes
            content_type: MIME type forwarded with the multipart part

        Returns:
            PinnedFile with the content identifier, pinned size and pin timestamp

        Raises:
            ConfigurationError: No credentials configured
            TransientError: Network timeout, rate limit (429), service unavailable (5xx)
            PermanentError: Invalid credentials (401/403), bad request (400),
                response without a content identifier
        """
        headers = self._auth_headers()
        pinata_metadata = {"name": filename}
        pinata_options = {"cidVersion": self.cid_version}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    f"{self.base_url}/pinning/pinFileToIPFS",
                    headers=headers,
                    files={"file": (filename, content, content_type)},
                    data={
                        "pinataOptions": json.dumps(pinata_options),
                        "pinataMetadata": json.dumps(pinata_metadata),
                    },
                )
        except httpx.TimeoutException as e:
            raise IPFSNetworkError(f"Request timeout after {self.timeout}s: {str(e)}") from e
        except httpx.TransportError as e:
            raise IPFSNetworkError(f"Network error: {str(e)}") from e

        # Error classification
        status = response.status_code
        if status == 429:
            raise IPFSRateLimitError(f"Rate limit exceeded: {response.text[:500]}")
        elif status >= 500:
            raise IPFSServiceUnavailableError(
                f"Service unavailable ({status}): {response.text[:500]}"
            )
        elif status == 401:
            raise IPFSAuthError(
                "Unauthorized: Invalid API credentials. "
                "Check PINATA_JWT or PINATA_API_KEY/PINATA_SECRET_KEY configuration."
            )
        elif status == 403:
            raise IPFSAuthError(
                "Forbidden: Access denied. "
                "Check that the Pinata key has pinFileToIPFS permission and quota left."
            )
        elif status >= 400:
            raise IPFSValidationError(f"Bad request ({status}): {response.text[:500]}")

        try:
            result = response.json()
        except ValueError as e:
            raise IPFSValidationError(
                f"Unexpected response from Pinata: {response.text[:200]}"
            ) from e

        cid = result.get("IpfsHash") if isinstance(result, dict) else None
        if not cid:
            raise IPFSValidationError(f"Unexpected response from Pinata: {result!r}"[:300])

        return PinnedFile(
            cid=cid,
            pin_size=result.get("PinSize"),
            timestamp=result.get("Timestamp"),
        )
