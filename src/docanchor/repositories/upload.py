"""UploadRecord repository.

Provides data access methods for UploadRecord entities with atomic duplicate
detection and case-insensitive wallet lookup.
"""

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from docanchor.models.upload import UploadRecord
from docanchor.services.exceptions import DuplicateContentIdError


class UploadRepository:
    """Repository for UploadRecord entities.

    Methods:
    - add: Insert new record, DuplicateContentIdError on CID conflict
    - get_by_cid: Exact CID lookup
    - list_by_wallet / count_by_wallet: Paginated per-wallet listing
    - list_all / count_all: Paginated listing of every record
    """

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

    async def add(self, record: UploadRecord) -> UploadRecord:
        """Insert a new upload record.

        Relies on the unique index on ``cid`` rather than a prior SELECT, so two
        concurrent requests for the same CID cannot both succeed. After a conflict the
        session must be rolled back (UnitOfWork does this on exit).

        Args:
            record: UploadRecord entity to persist

        Returns:
            Persisted record with generated ID and timestamps

        Raises:
            DuplicateContentIdError: A record with the same CID already exists
        """
        self.session.add(record)
        try:
            await self.session.flush()
        except IntegrityError as e:
            raise DuplicateContentIdError(record.cid) from e
        return record

    async def get_by_cid(self, cid: str) -> UploadRecord | None:
        """Retrieve upload record by content identifier (exact match).

        Args:
            cid: IPFS content identifier

        Returns:
            UploadRecord if found, None otherwise
        """
        result = await self.session.execute(
            select(UploadRecord).where(UploadRecord.cid == cid)  # type: ignore[arg-type]
        )
        return result.scalar_one_or_none()

    async def list_by_wallet(
        self, wallet_address: str, limit: int = 10, offset: int = 0
    ) -> list[UploadRecord]:
        """Retrieve a page of records for a wallet (case-insensitive), newest first.

        Stored addresses are lowercase, so the input is lowercased before comparison.

        Args:
            wallet_address: Ethereum wallet address (0x...)
            limit: Maximum number of records to return
            offset: Number of records to skip

        Returns:
            List of records ordered by creation time (newest first)
        """
        result = await self.session.execute(
            select(UploadRecord)
            .where(UploadRecord.wallet_address == wallet_address.lower())  # type: ignore[arg-type]
            .order_by(UploadRecord.created_at.desc())  # type: ignore[attr-defined]
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def count_by_wallet(self, wallet_address: str) -> int:
        """Count records for a wallet (case-insensitive)."""
        result = await self.session.execute(
            select(func.count())
            .select_from(UploadRecord)
            .where(UploadRecord.wallet_address == wallet_address.lower())  # type: ignore[arg-type]
        )
        return int(result.scalar_one())

    async def list_all(self, limit: int = 10, offset: int = 0) -> list[UploadRecord]:
        """Retrieve a page of all records, newest first.

        Args:
            limit: Maximum number of records to return
            offset: Number of records to skip

        Returns:
            List of records ordered by creation time (newest first)
        """
        result = await self.session.execute(
            select(UploadRecord)
            .order_by(UploadRecord.created_at.desc())  # type: ignore[attr-defined]
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def count_all(self) -> int:
        """Count every upload record."""
        result = await self.session.execute(select(func.count()).select_from(UploadRecord))
        return int(result.scalar_one())
