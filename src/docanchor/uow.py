"""Transaction boundary for upload record access.

One ``UnitOfWork`` wraps one session: the block commits when it exits cleanly and
rolls back on any exception, including the ``DuplicateContentIdError`` raised by
the repository when the unique CID index rejects an insert.
"""

from typing import Awaitable, Callable

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from docanchor.repositories.upload import UploadRepository

logger = structlog.get_logger()


class UnitOfWork:
    """Session plus the repositories bound to it.

    Example:
        async with await uow_factory() as uow:
            record = await uow.uploads.add(UploadRecord(cid=cid))
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.uploads = UploadRepository(session)

    async def __aenter__(self) -> "UnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        try:
            if exc_type is None:
                await self.session.commit()
                logger.debug("transaction.committed")
            else:
                await self.session.rollback()
                logger.info("transaction.rolled_back", exc_type=exc_type.__name__)
        finally:
            await self.session.close()

        # Never suppress the exception
        return False


UnitOfWorkFactory = Callable[[], Awaitable[UnitOfWork]]


def create_uow_factory(session_factory: async_sessionmaker[AsyncSession]) -> UnitOfWorkFactory:
    """Bind ``session_factory``; each call of the result opens a fresh session."""

    async def _create_uow() -> UnitOfWork:
        return UnitOfWork(session_factory())

    return _create_uow
