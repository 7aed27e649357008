"""Client-side error hierarchy for the wallet, pinning and records clients.

- ClientError: Base for everything the upload workflow can raise
- Wallet errors: provider missing, connection/transaction rejected, insufficient
  funds, confirmation timeout, unknown chain
- HTTP errors: cancelled upload, server rejection, no response, malformed body
"""

# EIP-1193 provider error codes
USER_REJECTED_CODE = 4001
CHAIN_NOT_ADDED_CODE = 4902


class ClientError(Exception):
    """Base exception for all client errors."""


class ProviderRpcError(ClientError):
    """Error returned by the wallet provider for a JSON-RPC request."""

    def __init__(self, code: int, message: str, data: object = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data


# Wallet errors
class ProviderMissing(ClientError):
    """No wallet provider was supplied."""


class ConnectionRejected(ClientError):
    """The user declined the account request or the provider failed it."""


class UserRejected(ClientError):
    """The user declined to sign the transaction (provider code 4001)."""


class InsufficientFunds(ClientError):
    """The account cannot pay for the transaction."""


class TransactionTimeout(ClientError):
    """No receipt arrived within the confirmation timeout."""

    def __init__(self, tx_hash: str, timeout: float):
        super().__init__(f"Transaction {tx_hash} not confirmed within {timeout}s")
        self.tx_hash = tx_hash
        self.timeout = timeout


class ChainNotAdded(ClientError):
    """The requested chain is unknown to the wallet (provider code 4902)."""


# HTTP errors
class UploadCancelled(ClientError):
    """The upload was cancelled before the server answered."""


class ServerRejected(ClientError):
    """The server answered with a non-2xx status."""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"Upload failed ({status_code}): {message}")
        self.status_code = status_code
        self.message = message


class NoResponse(ClientError):
    """Timeout or network failure before any response arrived."""


class MalformedResponse(ClientError):
    """The server answered 2xx with a body that lacks the expected fields."""
