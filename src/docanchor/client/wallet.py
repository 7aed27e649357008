"""Wallet connector over an injected EIP-1193 style provider.

The provider is passed in explicitly; nothing is read from global scope. A
provider exposes ``request(method, params)`` (awaitable), ``on(event, callback)``
and ``remove_listener(event, callback)``, and reports JSON-RPC failures as
``ProviderRpcError`` carrying the EIP-1193 ``code``.

Anchoring payload: the content identifier's UTF-8 bytes, hex encoded with a
``0x`` prefix, sent as the ``data`` of a transaction to the user's own address.
"""

import asyncio
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Optional, Protocol

import structlog
from eth_utils import from_wei, to_hex, to_text

from docanchor.client.exceptions import (
    CHAIN_NOT_ADDED_CODE,
    USER_REJECTED_CODE,
    ChainNotAdded,
    ConnectionRejected,
    InsufficientFunds,
    ProviderMissing,
    TransactionTimeout,
    UserRejected,
)

logger = structlog.get_logger()

ACCOUNTS_CHANGED = "accountsChanged"
AccountsCallback = Callable[[list[str]], Any]


class WalletProvider(Protocol):
    async def request(self, method: str, params: Optional[list] = None) -> Any: ...

    def on(self, event: str, callback: Callable[..., Any]) -> None: ...

    def remove_listener(self, event: str, callback: Callable[..., Any]) -> None: ...


def encode_payload(cid: str) -> str:
    """Content identifier -> ``0x``-prefixed hex of its UTF-8 bytes."""
    return to_hex(text=cid)


def decode_payload(data: str) -> str:
    """Reverse of :func:`encode_payload`; NUL characters are stripped."""
    if not data or data in ("0x", "0X"):
        return ""
    return to_text(hexstr=data).replace("\x00", "")


def _to_int(value: Any) -> int:
    # JSON-RPC providers answer quantities as hex strings; web3 answers ints
    if isinstance(value, str):
        return int(value, 16)
    return int(value)


def _error_code(exc: BaseException) -> Optional[int]:
    code = getattr(exc, "code", None)
    return code if isinstance(code, int) else None


def _is_insufficient_funds(exc: BaseException) -> bool:
    return "insufficient funds" in str(exc).lower()


@dataclass(frozen=True)
class Receipt:
    """Outcome of a mined transaction."""

    tx_hash: str
    status: int
    block_number: Optional[int]

    @property
    def success(self) -> bool:
        return self.status == 1

    @classmethod
    def from_rpc(cls, tx_hash: str, raw: dict) -> "Receipt":
        block = raw.get("blockNumber")
        return cls(
            tx_hash=tx_hash,
            status=_to_int(raw.get("status", 0)),
            block_number=_to_int(block) if block is not None else None,
        )


class PendingTransaction:
    """A submitted transaction awaiting its receipt."""

    def __init__(self, provider: WalletProvider, tx_hash: str, data: str):
        self.provider = provider
        self.hash = tx_hash
        self.data = data

    async def wait(self, timeout: float = 120.0, poll_interval: float = 1.0) -> Receipt:
        """Poll ``eth_getTransactionReceipt`` until the transaction is mined.

        Raises:
            TransactionTimeout: No receipt within ``timeout`` seconds
        """
        try:
            async with asyncio.timeout(timeout):
                while True:
                    raw = await self.provider.request("eth_getTransactionReceipt", [self.hash])
                    if raw:
                        receipt = Receipt.from_rpc(self.hash, dict(raw))
                        logger.info(
                            "wallet.transaction_mined",
                            tx_hash=self.hash,
                            status=receipt.status,
                            block_number=receipt.block_number,
                        )
                        return receipt
                    await asyncio.sleep(poll_interval)
        except TimeoutError as e:
            logger.warning("wallet.transaction_timeout", tx_hash=self.hash, timeout=timeout)
            raise TransactionTimeout(self.hash, timeout) from e


class Signer:
    """Sends transactions from one connected account."""

    def __init__(self, provider: WalletProvider, address: str):
        self.provider = provider
        self.address = address

    async def send_transaction(self, to_address: str, payload: bytes) -> PendingTransaction:
        """Ask the wallet to sign and broadcast a zero-value transaction carrying ``payload``.

        Raises:
            UserRejected: The user declined the signature prompt
            InsufficientFunds: The account cannot pay for gas
        """
        data = to_hex(payload)
        tx = {"from": self.address, "to": to_address, "value": "0x0", "data": data}
        try:
            tx_hash = await self.provider.request("eth_sendTransaction", [tx])
        except Exception as e:
            if _error_code(e) == USER_REJECTED_CODE:
                logger.info("wallet.transaction_rejected", address=self.address)
                raise UserRejected(str(e)) from e
            if _is_insufficient_funds(e):
                logger.warning("wallet.insufficient_funds", address=self.address)
                raise InsufficientFunds(str(e)) from e
            raise

        tx_hash = tx_hash if isinstance(tx_hash, str) else to_hex(tx_hash)
        logger.info("wallet.transaction_submitted", tx_hash=tx_hash, payload_bytes=len(payload))
        return PendingTransaction(self.provider, tx_hash, data)


class Subscription:
    """Handle for one provider event listener; ``unsubscribe`` is idempotent."""

    def __init__(self, provider: WalletProvider, event: str, callback: Callable[..., Any]):
        self._provider = provider
        self._event = event
        self._callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self._provider.remove_listener(self._event, self._callback)


class WalletConnector:
    """Account access, chain queries and transaction signing through a provider."""

    def __init__(self, provider: Optional[WalletProvider]):
        self.provider = provider

    def _require_provider(self) -> WalletProvider:
        if self.provider is None:
            raise ProviderMissing("No wallet provider available")
        return self.provider

    async def connect(self) -> Signer:
        """Prompt for account access and return a signer for the first account.

        Raises:
            ProviderMissing: No provider was supplied
            ConnectionRejected: User declined, or the provider failed the request
        """
        provider = self._require_provider()
        try:
            accounts = await provider.request("eth_requestAccounts", [])
        except Exception as e:
            if _error_code(e) == USER_REJECTED_CODE:
                logger.info("wallet.connection_rejected")
                raise ConnectionRejected("User rejected the connection request") from e
            logger.error("wallet.connection_failed", error=str(e), error_type=type(e).__name__)
            raise ConnectionRejected(f"Failed to connect wallet: {e}") from e

        if not accounts:
            raise ConnectionRejected("Wallet returned no accounts")

        logger.info("wallet.connected", address=accounts[0])
        return Signer(provider, accounts[0])

    async def restore(self) -> Optional[Signer]:
        """Signer for an already authorised account, without prompting the user."""
        accounts = await self.get_accounts()
        return Signer(self._require_provider(), accounts[0]) if accounts else None

    async def is_connected(self) -> bool:
        """True when the provider reports at least one authorised account. Never raises."""
        if self.provider is None:
            return False
        try:
            return bool(await self.provider.request("eth_accounts", []))
        except Exception as e:
            logger.warning("wallet.accounts_check_failed", error=str(e))
            return False

    async def get_accounts(self) -> list[str]:
        accounts = await self._require_provider().request("eth_accounts", [])
        return list(accounts or [])

    async def get_chain_id(self) -> int:
        return _to_int(await self._require_provider().request("eth_chainId", []))

    async def get_balance(self, address: str) -> Decimal:
        """Balance of ``address`` in ether."""
        wei = _to_int(await self._require_provider().request("eth_getBalance", [address, "latest"]))
        return Decimal(from_wei(wei, "ether"))

    async def switch_chain(self, chain_id: int) -> None:
        """Ask the wallet to switch networks.

        Raises:
            ChainNotAdded: The wallet does not know ``chain_id`` (code 4902)
        """
        try:
            await self._require_provider().request(
                "wallet_switchEthereumChain", [{"chainId": hex(chain_id)}]
            )
        except Exception as e:
            if _error_code(e) == CHAIN_NOT_ADDED_CODE:
                raise ChainNotAdded(
                    f"Chain {chain_id} is not available in the wallet, please add it"
                ) from e
            raise

    def subscribe_accounts(self, callback: AccountsCallback) -> Subscription:
        """Register ``callback(accounts)`` for account changes."""
        provider = self._require_provider()
        provider.on(ACCOUNTS_CHANGED, callback)
        return Subscription(provider, ACCOUNTS_CHANGED, callback)
