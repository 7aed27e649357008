"""Pinning gateway endpoint: POST /api/upload/ipfs.

Accepts a multipart form with exactly one ``file`` part, validates it and pins it
through the gateway. Pinning credentials never leave the server.
"""

import structlog
from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from starlette.datastructures import UploadFile

from docanchor.api.dependencies import get_pinning_gateway
from docanchor.services.exceptions import FileRejectedError
from docanchor.services.ipfs.gateway import PinningGateway

logger = structlog.get_logger()
router = APIRouter(prefix="/api/upload", tags=["pinning"])

FILE_FIELD = "file"


class PinnedContentData(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    content_id: str = Field(..., description="IPFS content identifier")
    pin_size_bytes: int | None = Field(default=None, description="Size reported by Pinata")
    pinned_at: str | None = Field(default=None, description="Pin timestamp reported by Pinata")


class PinResponse(BaseModel):
    success: bool = True
    message: str = "File uploaded to IPFS successfully"
    data: PinnedContentData


def _single_upload(form) -> UploadFile:
    uploads = [value for _, value in form.multi_items() if isinstance(value, UploadFile)]
    if not any(isinstance(value, UploadFile) for value in form.getlist(FILE_FIELD)):
        raise FileRejectedError("No file provided")
    if len(uploads) > 1:
        raise FileRejectedError("Only one file can be uploaded per request")
    return uploads[0]


@router.post("/ipfs", response_model=PinResponse)
async def pin_file(
    request: Request,
    gateway: PinningGateway = Depends(get_pinning_gateway),
) -> PinResponse:
    """Pin one uploaded document to IPFS.

    Raises:
        ValidationFailed 400: No file, several files, unsupported type or oversized file
        ConfigurationFatal 500: Pinning credentials missing or rejected
        UpstreamUnavailable 502: Pinning service unreachable after retries

    Example:
        POST /api/upload/ipfs (multipart/form-data, field "file")

        Response 200:
        {
            "success": true,
            "message": "File uploaded to IPFS successfully",
            "data": {
                "contentId": "QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG",
                "pinSizeBytes": 48213,
                "pinnedAt": "2024-05-01T12:00:00.000Z"
            }
        }
    """
    gateway.ensure_configured()

    async with request.form() as form:
        upload = _single_upload(form)

        # Reject by declared size before buffering the body when the part size is known
        if upload.size is not None:
            gateway.validate(upload.filename, upload.content_type, upload.size)

        content = await upload.read()
        pinned = await gateway.pin(upload.filename, content, upload.content_type)

    return PinResponse(
        data=PinnedContentData(
            content_id=pinned.cid,
            pin_size_bytes=pinned.pin_size,
            pinned_at=pinned.timestamp,
        )
    )
