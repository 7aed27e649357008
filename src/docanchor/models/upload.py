"""UploadRecord entity - index of pinned documents and their anchoring transactions."""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic import Field as PydanticField
from pydantic.alias_generators import to_camel
from sqlalchemy import Index
from sqlmodel import Field, SQLModel

from docanchor.core.timezone import utcnow
from docanchor.validators import (
    is_valid_cid,
    is_valid_transaction_hash,
    is_valid_wallet_address,
)


class UploadRecord(SQLModel, table=True):
    """UploadRecord maps a content identifier to its file metadata and anchoring tx.

    The pinning service and the blockchain are the source of truth; this row is a
    convenience index. ``cid`` uniqueness is enforced by the unique index so that
    concurrent inserts of the same CID cannot both succeed.
    """

    __tablename__ = "uploads"  # type: ignore[assignment]
    __table_args__ = (
        Index("ix_uploads_wallet_address_created_at", "wallet_address", "created_at"),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    cid: str = Field(max_length=255, unique=True, index=True)
    file_name: Optional[str] = Field(default=None, max_length=255)
    file_size: Optional[int] = Field(default=None, ge=0)
    file_type: Optional[str] = Field(default=None, max_length=100)
    wallet_address: Optional[str] = Field(default=None, max_length=42, index=True)
    transaction_hash: Optional[str] = Field(default=None, max_length=66, index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow, sa_column_kwargs={"onupdate": utcnow})


def _blank_to_none(v: Optional[str]) -> Optional[str]:
    if v is None or v == "":
        return None
    return v


class UploadCreate(BaseModel):
    """Validated input for a new upload record (wire names are camelCase).

    Every field is validated independently so a single request reports all
    violations at once.
    """

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    cid: str
    file_name: Optional[str] = PydanticField(default=None, alias="fileName")
    file_size: Optional[int] = PydanticField(default=None, alias="fileSize", ge=0)
    file_type: Optional[str] = PydanticField(default=None, alias="fileType")
    wallet_address: Optional[str] = PydanticField(default=None, alias="walletAddress")
    transaction_hash: Optional[str] = PydanticField(default=None, alias="transactionHash")

    @field_validator("cid")
    @classmethod
    def validate_cid(cls, v: str) -> str:
        """Require a CIDv0 (Qm + 44 base58) or CIDv1 (b + base32) identifier."""
        if not v:
            raise ValueError("CID is required")
        if not is_valid_cid(v):
            raise ValueError(f"{v} is not a valid IPFS CID (CIDv0 or CIDv1)")
        return v

    @field_validator("file_name", "file_type")
    @classmethod
    def validate_descriptive(cls, v: Optional[str]) -> Optional[str]:
        return _blank_to_none(v)

    @field_validator("wallet_address")
    @classmethod
    def validate_wallet_address(cls, v: Optional[str]) -> Optional[str]:
        """Normalize wallet address to lowercase; must be 0x + 40 hex characters."""
        v = _blank_to_none(v)
        if v is None:
            return None
        if not is_valid_wallet_address(v):
            raise ValueError("Wallet address must be 0x followed by 40 hex characters")
        return v.lower()

    @field_validator("transaction_hash")
    @classmethod
    def validate_transaction_hash(cls, v: Optional[str]) -> Optional[str]:
        """Validate transaction hash format (0x + 64 hex characters)."""
        v = _blank_to_none(v)
        if v is None:
            return None
        if not is_valid_transaction_hash(v):
            raise ValueError("Transaction hash must be 0x followed by 64 hex characters")
        return v

    def to_record(self) -> UploadRecord:
        """Build the table entity from validated input."""
        return UploadRecord(
            cid=self.cid,
            file_name=self.file_name,
            file_size=self.file_size,
            file_type=self.file_type,
            wallet_address=self.wallet_address,
            transaction_hash=self.transaction_hash,
        )


class UploadRead(BaseModel):
    """Stored record as returned by the API (camelCase keys)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: UUID
    cid: str
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    file_type: Optional[str] = None
    wallet_address: Optional[str] = None
    transaction_hash: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, record: UploadRecord) -> "UploadRead":
        return cls.model_validate(record)
