"""Tests for the wallet connector, signer and transaction receipts."""

from decimal import Decimal

import pytest

from docanchor.client.exceptions import (
    ChainNotAdded,
    ConnectionRejected,
    InsufficientFunds,
    ProviderMissing,
    ProviderRpcError,
    TransactionTimeout,
    UserRejected,
)
from docanchor.client.wallet import WalletConnector, decode_payload, encode_payload
from tests.conftest import CID_V0, CID_V1, TX_HASH, WALLET, FakeWalletProvider


class TestPayload:
    def test_encodes_utf8_bytes_as_hex(self):
        assert encode_payload(CID_V0) == "0x" + CID_V0.encode("utf-8").hex()

    def test_decode_reverses_encode(self):
        assert decode_payload(encode_payload(CID_V1)) == CID_V1

    def test_decode_strips_nul_padding(self):
        padded = "0x" + CID_V0.encode().hex() + "0000"
        assert decode_payload(padded) == CID_V0

    @pytest.mark.parametrize("data", ["", "0x"])
    def test_decode_empty(self, data):
        assert decode_payload(data) == ""


@pytest.mark.asyncio
class TestConnect:
    async def test_connect_returns_signer_for_first_account(self):
        provider = FakeWalletProvider(accounts=[WALLET, "0x" + "2" * 40])

        signer = await WalletConnector(provider).connect()

        assert signer.address == WALLET
        assert provider.methods() == ["eth_requestAccounts"]

    async def test_user_rejection(self):
        provider = FakeWalletProvider()
        provider.errors["eth_requestAccounts"] = ProviderRpcError(4001, "User rejected")

        with pytest.raises(ConnectionRejected, match="User rejected the connection request"):
            await WalletConnector(provider).connect()

    async def test_provider_failure_becomes_connection_rejected(self):
        provider = FakeWalletProvider()
        provider.errors["eth_requestAccounts"] = ProviderRpcError(-32603, "internal")

        with pytest.raises(ConnectionRejected, match="Failed to connect wallet"):
            await WalletConnector(provider).connect()

    async def test_no_accounts(self):
        with pytest.raises(ConnectionRejected):
            await WalletConnector(FakeWalletProvider(accounts=[])).connect()

    async def test_missing_provider(self):
        connector = WalletConnector(None)

        with pytest.raises(ProviderMissing):
            await connector.connect()
        assert await connector.is_connected() is False

    async def test_is_connected_and_restore_do_not_prompt(self):
        provider = FakeWalletProvider()
        connector = WalletConnector(provider)

        assert await connector.is_connected() is False
        assert await connector.restore() is None

        provider.authorised = True
        assert await connector.is_connected() is True
        restored = await connector.restore()
        assert restored is not None and restored.address == WALLET
        assert "eth_requestAccounts" not in provider.methods()

    async def test_is_connected_never_raises(self):
        provider = FakeWalletProvider()
        provider.errors["eth_accounts"] = ProviderRpcError(-32603, "disconnected")

        assert await WalletConnector(provider).is_connected() is False


@pytest.mark.asyncio
class TestSigner:
    async def test_sends_zero_value_transaction_to_own_address(self):
        provider = FakeWalletProvider()
        signer = await WalletConnector(provider).connect()

        pending = await signer.send_transaction(signer.address, CID_V0.encode("utf-8"))

        assert pending.hash == TX_HASH
        assert pending.data == encode_payload(CID_V0)
        assert provider.sent == [
            {"from": WALLET, "to": WALLET, "value": "0x0", "data": encode_payload(CID_V0)}
        ]

    async def test_user_rejection(self):
        provider = FakeWalletProvider()
        provider.errors["eth_sendTransaction"] = ProviderRpcError(4001, "User denied signature")
        signer = await WalletConnector(provider).connect()

        with pytest.raises(UserRejected):
            await signer.send_transaction(signer.address, b"x")

    async def test_insufficient_funds(self):
        provider = FakeWalletProvider()
        provider.errors["eth_sendTransaction"] = ProviderRpcError(
            -32000, "insufficient funds for gas * price + value"
        )
        signer = await WalletConnector(provider).connect()

        with pytest.raises(InsufficientFunds):
            await signer.send_transaction(signer.address, b"x")

    async def test_other_errors_propagate(self):
        provider = FakeWalletProvider()
        provider.errors["eth_sendTransaction"] = ProviderRpcError(-32603, "nonce too low")
        signer = await WalletConnector(provider).connect()

        with pytest.raises(ProviderRpcError) as exc_info:
            await signer.send_transaction(signer.address, b"x")
        assert exc_info.value.code == -32603


@pytest.mark.asyncio
class TestReceipt:
    async def test_polls_until_mined(self):
        provider = FakeWalletProvider()
        provider.pending_polls = 2
        signer = await WalletConnector(provider).connect()
        pending = await signer.send_transaction(signer.address, b"x")

        receipt = await pending.wait(timeout=5, poll_interval=0)

        assert receipt.success
        assert receipt.block_number == 16
        assert provider.methods().count("eth_getTransactionReceipt") == 3

    async def test_reverted_transaction(self):
        provider = FakeWalletProvider()
        provider.receipt = {"status": "0x0", "blockNumber": "0x11"}
        signer = await WalletConnector(provider).connect()
        pending = await signer.send_transaction(signer.address, b"x")

        receipt = await pending.wait(timeout=5, poll_interval=0)

        assert not receipt.success

    async def test_timeout(self):
        provider = FakeWalletProvider()
        provider.receipt = None
        signer = await WalletConnector(provider).connect()
        pending = await signer.send_transaction(signer.address, b"x")

        with pytest.raises(TransactionTimeout) as exc_info:
            await pending.wait(timeout=0.05, poll_interval=0.01)
        assert exc_info.value.tx_hash == TX_HASH


@pytest.mark.asyncio
class TestChainQueries:
    async def test_chain_id_and_balance(self):
        provider = FakeWalletProvider()
        provider.chain_id = "0x89"
        provider.balance = hex(15 * 10**17)
        connector = WalletConnector(provider)

        assert await connector.get_chain_id() == 137
        assert await connector.get_balance(WALLET) == Decimal("1.5")
        assert provider.calls[-1] == ("eth_getBalance", [WALLET, "latest"])

    async def test_switch_chain(self):
        provider = FakeWalletProvider()

        await WalletConnector(provider).switch_chain(11155111)

        assert provider.calls[-1] == ("wallet_switchEthereumChain", [{"chainId": "0xaa36a7"}])

    async def test_switch_to_unknown_chain(self):
        provider = FakeWalletProvider()
        provider.errors["wallet_switchEthereumChain"] = ProviderRpcError(4902, "Unrecognized chain")

        with pytest.raises(ChainNotAdded):
            await WalletConnector(provider).switch_chain(31337)


def test_account_subscription_is_revocable_once():
    provider = FakeWalletProvider()
    seen: list[list[str]] = []
    subscription = WalletConnector(provider).subscribe_accounts(seen.append)

    provider.emit("accountsChanged", [WALLET])
    subscription.unsubscribe()
    subscription.unsubscribe()
    provider.emit("accountsChanged", [])

    assert seen == [[WALLET]]
    assert provider.listeners["accountsChanged"] == []
