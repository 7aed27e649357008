"""Tests for UploadRepository and the UnitOfWork transaction boundary."""

from datetime import datetime, timedelta

import pytest

from docanchor.models.upload import UploadRecord
from docanchor.repositories.upload import UploadRepository
from docanchor.services.exceptions import DuplicateContentIdError
from tests.conftest import CID_V0, CID_V1, TX_HASH, WALLET, make_cid


@pytest.mark.asyncio
async def test_add_and_get_by_cid(session):
    repo = UploadRepository(session)
    record = await repo.add(
        UploadRecord(
            cid=CID_V0,
            file_name="contract.pdf",
            file_size=2048,
            file_type="application/pdf",
            wallet_address=WALLET.lower(),
            transaction_hash=TX_HASH,
        )
    )
    await session.commit()

    assert record.id is not None
    assert record.created_at is not None

    found = await repo.get_by_cid(CID_V0)
    assert found is not None
    assert found.file_name == "contract.pdf"
    assert found.transaction_hash == TX_HASH

    assert await repo.get_by_cid(CID_V1) is None


@pytest.mark.asyncio
async def test_duplicate_cid_rejected_by_unique_index(uow_factory):
    async with await uow_factory() as uow:
        await uow.uploads.add(UploadRecord(cid=CID_V0, file_name="first.pdf"))

    with pytest.raises(DuplicateContentIdError) as exc_info:
        async with await uow_factory() as uow:
            await uow.uploads.add(UploadRecord(cid=CID_V0, file_name="second.pdf"))

    assert exc_info.value.cid == CID_V0

    # The first record is neither overwritten nor duplicated
    async with await uow_factory() as uow:
        stored = await uow.uploads.get_by_cid(CID_V0)
        assert stored is not None
        assert stored.file_name == "first.pdf"
        assert await uow.uploads.count_all() == 1


@pytest.mark.asyncio
async def test_wallet_lookup_is_case_insensitive(session):
    repo = UploadRepository(session)
    await repo.add(UploadRecord(cid=CID_V0, wallet_address=WALLET.lower()))
    await session.commit()

    assert len(await repo.list_by_wallet(WALLET.upper().replace("0X", "0x"))) == 1
    assert len(await repo.list_by_wallet(WALLET)) == 1
    assert await repo.count_by_wallet(WALLET) == 1


@pytest.mark.asyncio
async def test_wallet_listing_newest_first_with_pagination(session):
    repo = UploadRepository(session)
    base = datetime(2024, 1, 1, 12, 0, 0)
    for i in range(5):
        await repo.add(
            UploadRecord(
                cid=make_cid(i),
                wallet_address=WALLET.lower(),
                created_at=base + timedelta(minutes=i),
            )
        )
    await repo.add(UploadRecord(cid=make_cid(10), wallet_address="0x" + "1" * 40))
    await session.commit()

    first_page = await repo.list_by_wallet(WALLET, limit=2, offset=0)
    second_page = await repo.list_by_wallet(WALLET, limit=2, offset=2)

    assert [r.cid for r in first_page] == [make_cid(4), make_cid(3)]
    assert [r.cid for r in second_page] == [make_cid(2), make_cid(1)]
    assert await repo.count_by_wallet(WALLET) == 5
    assert await repo.count_all() == 6
    assert len(await repo.list_all(limit=100)) == 6


@pytest.mark.asyncio
async def test_uow_rolls_back_on_exception(uow_factory):
    with pytest.raises(RuntimeError):
        async with await uow_factory() as uow:
            await uow.uploads.add(UploadRecord(cid=CID_V0))
            raise RuntimeError("abort")

    async with await uow_factory() as uow:
        assert await uow.uploads.get_by_cid(CID_V0) is None
