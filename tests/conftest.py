"""pytest fixtures for docanchor tests.

Provides:
- utc_timezone: Autouse fixture enforcing UTC timezone
- engine: Function-scoped in-memory SQLite engine with tables created
- session: Function-scoped database session
- uow_factory: Function-scoped UnitOfWork factory
- settings: Backend settings for tests (Pinata JWT set, no retry delay)
- fake_pinata: Scriptable stand-in for Pinata's pinFileToIPFS endpoint
- app / api_client: Application wired to the test database and fake Pinata
- FakeWalletProvider: Scriptable EIP-1193 wallet (accounts, transactions, receipts)
"""

import json
import os
from typing import Any, AsyncGenerator, Callable, Optional

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from docanchor.app import create_app
from docanchor.client.exceptions import ProviderRpcError
from docanchor.core.config import Settings
from docanchor.core.database import create_engine, create_session_factory, create_tables
from docanchor.services.ipfs.gateway import PinningGateway
from docanchor.services.ipfs.pinata_client import PinataClient
from docanchor.uow import create_uow_factory

SQLITE_MEMORY_URL = "sqlite+aiosqlite:///:memory:"

CID_V0 = "QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG"
CID_V0_OTHER = "QmT78zSuBmuS4z925WZfrqQ1qHaJ56DQaTfyMUF7F8ff5o"
CID_V1 = "bafybeigdyrzt5sfp7udm7hu76uh7y26nf3efuylqabf3oclgtqy55fbzdi"
WALLET = "0xAbC0000000000000000000000000000000000001"
TX_HASH = "0x" + "ab" * 32

BASE58 = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"


def make_cid(i: int) -> str:
    """Distinct, well-formed CIDv0 for index ``i``."""
    return "Qm" + BASE58[i % 58] * 43 + BASE58[(i // 58) % 58]


async def no_sleep(_seconds: float) -> None:
    return None


class FakePinata:
    """Records requests and answers with queued responses (success by default)."""

    def __init__(self, cid: str = CID_V0):
        self.cid = cid
        self.requests: list[httpx.Request] = []
        self.queue: list[httpx.Response | Exception] = []

    def success(self, size: int = 1024) -> httpx.Response:
        return httpx.Response(
            200,
            json={"IpfsHash": self.cid, "PinSize": size, "Timestamp": "2024-05-01T12:00:00.000Z"},
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.queue:
            item = self.queue.pop(0)
            if isinstance(item, Exception):
                raise item
            return item
        return self.success(size=len(request.content))

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def metadata(self, index: int = -1) -> dict:
        """``pinataMetadata`` JSON sent with a recorded request."""
        body = self.requests[index].content
        marker = b'name="pinataMetadata"\r\n\r\n'
        start = body.index(marker) + len(marker)
        end = body.index(b"\r\n", start)
        return json.loads(body[start:end])


@pytest.fixture(scope="session", autouse=True)
def utc_timezone():
    """Enforce UTC timezone for all tests."""
    os.environ["TZ"] = "UTC"
    yield


@pytest_asyncio.fixture(scope="function")
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory database per test."""
    engine = create_engine(SQLITE_MEMORY_URL)
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = create_session_factory(engine)
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture(scope="function")
async def uow_factory(engine: AsyncEngine):
    return create_uow_factory(create_session_factory(engine))


@pytest.fixture
def settings() -> Settings:
    return Settings(
        DATABASE_URL=SQLITE_MEMORY_URL,
        PINATA_JWT="test-jwt",
        PINATA_RETRY_DELAY_SECONDS=0,
        RATE_LIMIT_MAX_REQUESTS=1000,
        ALLOWED_ORIGINS="http://localhost:3000",
    )


@pytest.fixture
def fake_pinata() -> FakePinata:
    return FakePinata()


def make_gateway(settings: Settings, fake_pinata: FakePinata, **overrides) -> PinningGateway:
    pinata = PinataClient.from_settings(settings, transport=fake_pinata.transport)
    options = {
        "max_file_size": settings.max_file_size_bytes,
        "max_retries": settings.pinata_max_retries,
        "retry_delay_seconds": settings.pinata_retry_delay_seconds,
        "sleep": no_sleep,
    }
    options.update(overrides)
    return PinningGateway(pinata, **options)


@pytest_asyncio.fixture(scope="function")
async def app(settings: Settings, fake_pinata: FakePinata):
    """Application on its own in-memory database, pinning through FakePinata."""
    app = create_app(settings)
    await create_tables(app.state.engine)
    app.state.pinning_gateway = make_gateway(settings, fake_pinata)
    yield app
    await app.state.engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def api_client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


MINED = {"status": "0x1", "blockNumber": "0x10"}


class FakeWalletProvider:
    """In-memory wallet answering the JSON-RPC methods the upload flow uses.

    ``errors`` maps a method to the exception it raises, ``hooks`` maps a method to
    a callable run before answering. ``receipt`` is returned after ``pending_polls``
    empty answers; ``receipt=None`` means the transaction is never mined.
    """

    def __init__(
        self,
        accounts: Optional[list[str]] = None,
        authorised: bool = False,
        tx_hash: str = TX_HASH,
    ):
        self.accounts = list(accounts if accounts is not None else [WALLET])
        self.authorised = authorised
        self.tx_hash = tx_hash
        self.receipt: Optional[dict] = MINED
        self.pending_polls = 0
        self.chain_id = "0x1"
        self.balance = hex(10**18)
        self.errors: dict[str, Exception] = {}
        self.hooks: dict[str, Callable[[], Any]] = {}
        self.calls: list[tuple[str, list]] = []
        self.sent: list[dict] = []
        self.listeners: dict[str, list[Callable[..., Any]]] = {}

    def methods(self) -> list[str]:
        return [method for method, _ in self.calls]

    async def request(self, method: str, params: Optional[list] = None) -> Any:
        params = list(params or [])
        self.calls.append((method, params))
        if method in self.hooks:
            self.hooks[method]()
        if method in self.errors:
            raise self.errors[method]

        if method == "eth_requestAccounts":
            self.authorised = True
            return list(self.accounts)
        if method == "eth_accounts":
            return list(self.accounts) if self.authorised else []
        if method == "eth_sendTransaction":
            self.sent.append(params[0])
            return self.tx_hash
        if method == "eth_getTransactionReceipt":
            if self.receipt is None or self.pending_polls > 0:
                self.pending_polls -= 1
                return None
            return dict(self.receipt)
        if method == "eth_chainId":
            return self.chain_id
        if method == "eth_getBalance":
            return self.balance
        if method == "wallet_switchEthereumChain":
            return None
        raise ProviderRpcError(-32601, f"Method {method} not supported")

    def on(self, event: str, callback: Callable[..., Any]) -> None:
        self.listeners.setdefault(event, []).append(callback)

    def remove_listener(self, event: str, callback: Callable[..., Any]) -> None:
        self.listeners[event].remove(callback)

    def emit(self, event: str, *args: Any) -> None:
        for callback in list(self.listeners.get(event, [])):
            callback(*args)
