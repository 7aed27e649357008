"""HTTP client for the metadata store endpoints (``/api/upload``)."""

from dataclasses import dataclass
from typing import Optional

import httpx
import structlog

from docanchor.client.exceptions import MalformedResponse
from docanchor.client.http import BackendClient
from docanchor.models.upload import UploadRead

logger = structlog.get_logger()

RECORDS_PATH = "/api/upload"


@dataclass(frozen=True)
class UploadPage:
    uploads: list[UploadRead]
    total: int
    limit: int
    skip: int
    has_more: bool


class RecordsClient(BackendClient):
    def __init__(
        self,
        server_url: str,
        timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(server_url, timeout, http_client)

    @staticmethod
    def _json(response: httpx.Response) -> object:
        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponse(
                f"Unexpected response from server: {response.text[:200]}"
            ) from e

    @staticmethod
    def _parse_upload(body: object) -> UploadRead:
        if not isinstance(body, dict) or not isinstance(body.get("upload"), dict):
            raise MalformedResponse(f"Unexpected response from server: {body!r}"[:300])
        try:
            return UploadRead.model_validate(body["upload"])
        except ValueError as e:
            # pydantic ValidationError
            raise MalformedResponse(f"Unexpected response from server: {body!r}"[:300]) from e

    async def create_record(
        self,
        cid: str,
        file_name: Optional[str] = None,
        file_size: Optional[int] = None,
        file_type: Optional[str] = None,
        wallet_address: Optional[str] = None,
        transaction_hash: Optional[str] = None,
    ) -> UploadRead:
        """Store a record; raises ``ServerRejected`` on 400/409 and ``NoResponse`` offline."""
        payload = {
            "cid": cid,
            "fileName": file_name,
            "fileSize": file_size,
            "fileType": file_type,
            "walletAddress": wallet_address.lower() if wallet_address else None,
            "transactionHash": transaction_hash,
        }
        response = await self.request(
            "POST", RECORDS_PATH, json={k: v for k, v in payload.items() if v is not None}
        )
        self.raise_for_status(response)
        upload = self._parse_upload(self._json(response))
        logger.info("records_client.created", cid=upload.cid)
        return upload

    async def get_by_cid(self, cid: str) -> Optional[UploadRead]:
        """Stored record for ``cid``, or None when the server answers 404."""
        response = await self.request("GET", f"{RECORDS_PATH}/cid/{cid}")
        if response.status_code == 404:
            return None
        self.raise_for_status(response)
        return self._parse_upload(self._json(response))

    async def list_by_wallet(
        self, wallet_address: str, limit: int = 10, skip: int = 0
    ) -> UploadPage:
        response = await self.request(
            "GET",
            f"{RECORDS_PATH}/wallet/{wallet_address}",
            params={"limit": limit, "skip": skip},
        )
        self.raise_for_status(response)
        body = self._json(response)
        try:
            pagination = body["pagination"]
            return UploadPage(
                uploads=[UploadRead.model_validate(u) for u in body["uploads"]],
                total=int(pagination["total"]),
                limit=int(pagination["limit"]),
                skip=int(pagination["skip"]),
                has_more=bool(pagination["hasMore"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedResponse(f"Unexpected response from server: {body!r}"[:300]) from e
