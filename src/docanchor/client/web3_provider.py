"""EIP-1193 style wallet provider backed by web3.py.

Lets the upload workflow run outside a browser. Two modes:

- Node-managed accounts: every request is forwarded to the JSON-RPC node as is.
- Local signer: with a private key, account requests answer the key's address and
  ``eth_sendTransaction`` is built, signed locally (EIP-1559 fees) and broadcast with
  ``eth_sendRawTransaction``. Everything else is forwarded to the node.
"""

from typing import Any, Callable, Optional

import structlog
from eth_account import Account
from eth_account.signers.local import LocalAccount
from eth_utils import to_hex
from web3 import AsyncHTTPProvider, AsyncWeb3

from docanchor.client.exceptions import ProviderRpcError

logger = structlog.get_logger()

# JSON-RPC "internal error" code used when the node's error has no code
INTERNAL_ERROR_CODE = -32603


class Web3WalletProvider:
    """Wallet provider over an ``AsyncWeb3`` connection."""

    def __init__(
        self,
        w3: AsyncWeb3,
        account: Optional[LocalAccount] = None,
        fee_buffer: float = 1.2,
    ):
        """Initialize provider.

        Args:
            w3: Connected AsyncWeb3 instance
            account: Local signing account; node-managed accounts when omitted
            fee_buffer: Multiplier applied to the priority fee (default: 20% headroom)
        """
        self.w3 = w3
        self.account = account
        self.fee_buffer = fee_buffer
        self._listeners: dict[str, list[Callable[..., Any]]] = {}

    @classmethod
    def from_rpc_url(cls, rpc_url: str, private_key: str = "") -> "Web3WalletProvider":
        w3 = AsyncWeb3(AsyncHTTPProvider(rpc_url))
        account = Account.from_key(private_key) if private_key else None
        return cls(w3, account)

    async def request(self, method: str, params: Optional[list] = None) -> Any:
        params = list(params or [])
        if self.account is not None:
            if method in ("eth_requestAccounts", "eth_accounts"):
                return [self.account.address]
            if method == "eth_sendTransaction":
                return await self._send_signed(params[0])
        return await self._forward(method, params)

    async def _forward(self, method: str, params: list) -> Any:
        response = await self.w3.provider.make_request(method, params)  # type: ignore[arg-type]
        error = response.get("error")
        if error:
            if isinstance(error, dict):
                raise ProviderRpcError(
                    int(error.get("code", INTERNAL_ERROR_CODE)),
                    str(error.get("message", "")),
                    error.get("data"),
                )
            raise ProviderRpcError(INTERNAL_ERROR_CODE, str(error))
        return response.get("result")

    async def _send_signed(self, tx: dict) -> str:
        """Build, sign and broadcast ``tx`` with the local account; return the tx hash."""
        if self.account is None:
            raise ProviderRpcError(INTERNAL_ERROR_CODE, "No local account to sign the transaction")
        sender = self.account.address

        nonce = await self.w3.eth.get_transaction_count(sender, "pending")
        chain_id = await self.w3.eth.chain_id

        value = tx.get("value", 0)
        transaction: dict[str, Any] = {
            "from": sender,
            "to": AsyncWeb3.to_checksum_address(tx["to"]),
            "value": int(value, 16) if isinstance(value, str) else int(value),
            "data": tx.get("data", "0x"),
            "nonce": nonce,
            "chainId": chain_id,
        }
        transaction["gas"] = await self.w3.eth.estimate_gas(transaction)  # type: ignore[arg-type]

        # EIP-1559 fee parameters
        max_priority_fee = int(await self.w3.eth.max_priority_fee * self.fee_buffer)
        latest_block = await self.w3.eth.get_block("latest")
        base_fee = latest_block.get("baseFeePerGas", 0)
        transaction["maxPriorityFeePerGas"] = max_priority_fee
        transaction["maxFeePerGas"] = int(base_fee * 2 + max_priority_fee)

        signed = self.account.sign_transaction(transaction)
        tx_hash = await self.w3.eth.send_raw_transaction(signed.raw_transaction)
        tx_hash_hex = to_hex(tx_hash)

        logger.info(
            "web3_provider.transaction_sent",
            tx_hash=tx_hash_hex,
            nonce=nonce,
            gas=transaction["gas"],
            chain_id=chain_id,
        )
        return tx_hash_hex

    def on(self, event: str, callback: Callable[..., Any]) -> None:
        self._listeners.setdefault(event, []).append(callback)

    def remove_listener(self, event: str, callback: Callable[..., Any]) -> None:
        callbacks = self._listeners.get(event, [])
        if callback in callbacks:
            callbacks.remove(callback)

    def emit(self, event: str, *args: Any) -> None:
        """Invoke every listener registered for ``event``."""
        for callback in list(self._listeners.get(event, [])):
            callback(*args)

    async def close(self) -> None:
        await self.w3.provider.disconnect()
