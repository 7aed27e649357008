"""Tests for the web3-backed wallet provider (node forwarding and local signing)."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from eth_account import Account

from docanchor.client.exceptions import ProviderRpcError
from docanchor.client.wallet import encode_payload
from docanchor.client.web3_provider import Web3WalletProvider
from tests.conftest import CID_V0, TX_HASH, WALLET

# Well-known test key, never funded
PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"

GWEI = 10**9


async def _value(value):
    return value


class FakeEth:
    """The slice of ``AsyncWeb3.eth`` used for local signing."""

    def __init__(self):
        self.get_transaction_count = AsyncMock(return_value=7)
        self.estimate_gas = AsyncMock(return_value=22_000)
        self.get_block = AsyncMock(return_value={"baseFeePerGas": 10 * GWEI})
        self.send_raw_transaction = AsyncMock(return_value=bytes.fromhex(TX_HASH[2:]))

    @property
    def chain_id(self):
        return _value(11155111)

    @property
    def max_priority_fee(self):
        return _value(2 * GWEI)


class RecordingAccount:
    def __init__(self, account):
        self._account = account
        self.address = account.address
        self.signed: list[dict] = []

    def sign_transaction(self, transaction: dict):
        self.signed.append(dict(transaction))
        return self._account.sign_transaction(transaction)


def make_w3(response: dict | None = None):
    node = SimpleNamespace(
        make_request=AsyncMock(return_value=response or {"jsonrpc": "2.0", "id": 1}),
        disconnect=AsyncMock(),
    )
    return SimpleNamespace(eth=FakeEth(), provider=node)


@pytest.mark.asyncio
class TestNodeForwarding:
    async def test_result_is_returned(self):
        w3 = make_w3({"jsonrpc": "2.0", "id": 1, "result": [WALLET]})
        provider = Web3WalletProvider(w3)

        assert await provider.request("eth_accounts") == [WALLET]
        w3.provider.make_request.assert_awaited_once_with("eth_accounts", [])

    async def test_error_object_keeps_its_code(self):
        w3 = make_w3({"jsonrpc": "2.0", "id": 1, "error": {"code": 4001, "message": "denied"}})
        provider = Web3WalletProvider(w3)

        with pytest.raises(ProviderRpcError) as exc_info:
            await provider.request("eth_sendTransaction", [{}])

        assert exc_info.value.code == 4001
        assert exc_info.value.message == "denied"

    async def test_error_string_becomes_internal_error(self):
        provider = Web3WalletProvider(make_w3({"jsonrpc": "2.0", "id": 1, "error": "boom"}))

        with pytest.raises(ProviderRpcError) as exc_info:
            await provider.request("eth_chainId")

        assert exc_info.value.code == -32603

    async def test_close_disconnects(self):
        w3 = make_w3()

        await Web3WalletProvider(w3).close()

        w3.provider.disconnect.assert_awaited_once()


@pytest.mark.asyncio
class TestLocalSigner:
    async def test_accounts_answered_locally(self):
        w3 = make_w3()
        account = Account.from_key(PRIVATE_KEY)
        provider = Web3WalletProvider(w3, account)

        assert await provider.request("eth_requestAccounts") == [account.address]
        assert await provider.request("eth_accounts") == [account.address]
        w3.provider.make_request.assert_not_awaited()

    async def test_send_transaction_signs_and_broadcasts(self):
        w3 = make_w3()
        account = RecordingAccount(Account.from_key(PRIVATE_KEY))
        provider = Web3WalletProvider(w3, account)
        tx = {"from": account.address, "to": WALLET, "value": "0x0", "data": encode_payload(CID_V0)}

        tx_hash = await provider.request("eth_sendTransaction", [tx])

        assert tx_hash == TX_HASH
        signed = account.signed[0]
        assert signed["nonce"] == 7
        assert signed["chainId"] == 11155111
        assert signed["gas"] == 22_000
        assert signed["value"] == 0
        assert signed["data"] == encode_payload(CID_V0)
        assert signed["maxPriorityFeePerGas"] == int(2 * GWEI * 1.2)
        assert signed["maxFeePerGas"] == 2 * 10 * GWEI + int(2 * GWEI * 1.2)
        w3.eth.get_transaction_count.assert_awaited_once_with(account.address, "pending")
        w3.eth.send_raw_transaction.assert_awaited_once()

    async def test_signing_without_local_account_is_rejected(self):
        w3 = make_w3()
        provider = Web3WalletProvider(w3)

        with pytest.raises(ProviderRpcError) as exc_info:
            await provider._send_signed({"to": WALLET, "value": "0x0"})

        assert exc_info.value.code == -32603
        w3.eth.send_raw_transaction.assert_not_awaited()


def test_event_listeners():
    provider = Web3WalletProvider(make_w3())
    seen = []

    provider.on("accountsChanged", seen.append)
    provider.emit("accountsChanged", [WALLET])
    provider.remove_listener("accountsChanged", seen.append)
    provider.remove_listener("accountsChanged", seen.append)
    provider.emit("accountsChanged", [])

    assert seen == [[WALLET]]
