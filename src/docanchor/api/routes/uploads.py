"""Upload record API endpoints.

This module implements the metadata store REST surface:
- POST /api/upload - Create an upload record (content identifier, file metadata,
  wallet address, anchoring transaction hash)
- GET /api/upload/cid/{cid} - Look up a record by content identifier
- GET /api/upload/wallet/{wallet_address} - Paginated records of one wallet
- GET /api/upload - Paginated listing of every record

Wallet addresses are stored lowercase, so wallet lookups are case-insensitive.
"""

import structlog
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from docanchor.api.dependencies import PageParams, get_page_params, get_uow_factory
from docanchor.models.upload import UploadCreate, UploadRead
from docanchor.services.exceptions import RecordNotFoundError
from docanchor.validators import mask_address

logger = structlog.get_logger()
router = APIRouter(prefix="/api/upload", tags=["uploads"])


# Response Models


class CreateUploadResponse(BaseModel):
    """Response model for a newly stored record."""

    success: bool = True
    message: str = "Upload record created successfully"
    upload: UploadRead


class UploadDetailResponse(BaseModel):
    success: bool = True
    upload: UploadRead


class Pagination(BaseModel):
    """Paging window echoed back with every listing."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total: int = Field(..., description="Total number of records matching the query")
    limit: int = Field(..., description="Maximum number of records per page")
    skip: int = Field(..., description="Number of records skipped")
    has_more: bool = Field(..., description="True if records exist past this page")

    @classmethod
    def build(cls, total: int, page: PageParams, returned: int) -> "Pagination":
        return cls(
            total=total,
            limit=page.limit,
            skip=page.skip,
            has_more=page.skip + returned < total,
        )


class UploadListResponse(BaseModel):
    """Response model for paginated record listings."""

    success: bool = True
    uploads: list[UploadRead] = Field(..., description="Records on this page, newest first")
    pagination: Pagination


# API Endpoints


@router.post("", response_model=CreateUploadResponse, status_code=status.HTTP_201_CREATED)
async def create_upload(
    payload: UploadCreate,
    uow_factory=Depends(get_uow_factory),
) -> CreateUploadResponse:
    """Store the metadata of a pinned (and usually anchored) document.

    Uniqueness of ``cid`` is enforced by the database index; a second request for
    the same identifier fails with 409 even when both arrive concurrently.

    Raises:
        ValidationFailed 400: One entry per violated field constraint
        DuplicateContentId 409: A record for this CID already exists

    Example:
        POST /api/upload
        {
            "cid": "QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG",
            "fileName": "contract.pdf",
            "fileSize": 48213,
            "fileType": "application/pdf",
            "walletAddress": "0xAbC0000000000000000000000000000000000001",
            "transactionHash": "0x5c50...e3a1"
        }

        Response 201:
        {
            "success": true,
            "message": "Upload record created successfully",
            "upload": {"id": "...", "cid": "Qm...", "walletAddress": "0xabc...", ...}
        }
    """
    async with await uow_factory() as uow:
        record = await uow.uploads.add(payload.to_record())
        upload = UploadRead.from_record(record)

    logger.info(
        "upload_record_created",
        cid=upload.cid,
        wallet=mask_address(upload.wallet_address),
        has_transaction=upload.transaction_hash is not None,
    )
    return CreateUploadResponse(upload=upload)


@router.get("/cid/{cid}", response_model=UploadDetailResponse)
async def get_upload_by_cid(
    cid: str,
    uow_factory=Depends(get_uow_factory),
) -> UploadDetailResponse:
    """Get the record stored for a content identifier.

    Raises:
        NotFound 404: No record for this CID
    """
    async with await uow_factory() as uow:
        record = await uow.uploads.get_by_cid(cid)

    if record is None:
        logger.info("upload_record_not_found", cid=cid)
        raise RecordNotFoundError(cid)

    return UploadDetailResponse(upload=UploadRead.from_record(record))


@router.get("/wallet/{wallet_address}", response_model=UploadListResponse)
async def list_uploads_by_wallet(
    wallet_address: str,
    page: PageParams = Depends(get_page_params),
    uow_factory=Depends(get_uow_factory),
) -> UploadListResponse:
    """Get a page of records stored for a wallet, newest first.

    Example:
        GET /api/upload/wallet/0xABC0000000000000000000000000000000000001?limit=2&skip=0

        Response 200:
        {
            "success": true,
            "uploads": [{...}, {...}],
            "pagination": {"total": 3, "limit": 2, "skip": 0, "hasMore": true}
        }
    """
    async with await uow_factory() as uow:
        records = await uow.uploads.list_by_wallet(
            wallet_address, limit=page.limit, offset=page.skip
        )
        total = await uow.uploads.count_by_wallet(wallet_address)

    logger.info(
        "wallet_uploads_retrieved",
        wallet=mask_address(wallet_address),
        returned=len(records),
        total=total,
    )
    return UploadListResponse(
        uploads=[UploadRead.from_record(r) for r in records],
        pagination=Pagination.build(total, page, len(records)),
    )


@router.get("", response_model=UploadListResponse)
async def list_uploads(
    page: PageParams = Depends(get_page_params),
    uow_factory=Depends(get_uow_factory),
) -> UploadListResponse:
    """Get a page of every stored record, newest first."""
    async with await uow_factory() as uow:
        records = await uow.uploads.list_all(limit=page.limit, offset=page.skip)
        total = await uow.uploads.count_all()

    logger.debug("uploads_retrieved", returned=len(records), total=total)
    return UploadListResponse(
        uploads=[UploadRead.from_record(r) for r in records],
        pagination=Pagination.build(total, page, len(records)),
    )
