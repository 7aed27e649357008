"""Upload orchestrator: select a document, pin it, anchor its CID on chain, record it.

Stages of one flow::

    IDLE -> FILE_SELECTED -> UPLOADING -> AWAITING_SIGNATURE -> CONFIRMING -> PERSISTING -> DONE

Any failure passes through ERROR and hands control back to FILE_SELECTED (the file
is kept) or IDLE. No stage retries an earlier one; the user restarts the flow. The
transaction is the durable result, so a failed database save still ends in DONE
with the transaction hash reported.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

import structlog

from docanchor.client.exceptions import (
    ClientError,
    ConnectionRejected,
    InsufficientFunds,
    ProviderMissing,
    UploadCancelled,
    UserRejected,
)
from docanchor.client.pinning import LocalFile, PinningClient
from docanchor.client.records import RecordsClient
from docanchor.client.wallet import Signer, Subscription, WalletConnector, decode_payload
from docanchor.validators import (
    ACCEPTED_FILE_TYPES,
    MAX_FILE_SIZE,
    mask_address,
    validate_file,
)

logger = structlog.get_logger()

# Status messages shown to the user
CONNECT_WALLET = "Please connect your wallet."
SELECT_FILE = "Please upload a file."
CONNECTION_FAILED = "Connection failed. Please try again."
UPLOADING = "Uploading to IPFS..."
PINNED = "File uploaded with Pinata. Saving transaction to Blockchain..."
CONFIRMED = "Transaction confirmed. Saving to database..."
SAVED = "Transaction and Database Save Successful!"
SAVE_FAILED = "Transaction successful, but failed to save to database."
TRANSACTION_FAILED = "Transaction failed. Please try again."
PIN_FAILED = "IPFS upload failed. Please try again."
TRANSACTION_CANCELLED = "Transaction cancelled by user."
INSUFFICIENT_FUNDS = "Insufficient funds for transaction. Please fund your wallet."
GENERIC_ERROR = "An error occurred. Please try again."


class UploadStage(str, Enum):
    IDLE = "idle"
    FILE_SELECTED = "file_selected"
    UPLOADING = "uploading"
    AWAITING_SIGNATURE = "awaiting_signature"
    CONFIRMING = "confirming"
    PERSISTING = "persisting"
    DONE = "done"
    ERROR = "error"


# Stages from which a new file may be selected
SELECTABLE_STAGES = (UploadStage.IDLE, UploadStage.FILE_SELECTED, UploadStage.DONE)


@dataclass
class UploadState:
    """Everything the user sees about the current flow. Never persisted."""

    file: Optional[LocalFile] = None
    progress: int = 0
    status: str = ""
    loading: bool = False
    wallet_connected: bool = False
    account: Optional[str] = None
    transaction_hash: str = ""
    decoded_payload: str = ""
    stage: UploadStage = UploadStage.IDLE
    history: list[UploadStage] = field(default_factory=list)


StateListener = Callable[[UploadState], None]


class UploadOrchestrator:
    """Drives one user's upload flows against a wallet, the pinning gateway and the store."""

    def __init__(
        self,
        wallet: WalletConnector,
        pinning: PinningClient,
        records: RecordsClient,
        gateway_base_url: str = "https://gateway.pinata.cloud",
        transaction_timeout: float = 120.0,
        database_save_timeout: float = 10.0,
        poll_interval: float = 1.0,
        max_file_size: int = MAX_FILE_SIZE,
        accepted_types: tuple[str, ...] = ACCEPTED_FILE_TYPES,
        on_change: Optional[StateListener] = None,
    ):
        """Initialize orchestrator.

        Args:
            wallet: Connector over the injected wallet provider
            pinning: Client for POST /api/upload/ipfs
            records: Client for the metadata store
            gateway_base_url: Public IPFS gateway used by gateway_url()
            transaction_timeout: Seconds to wait for the receipt
            database_save_timeout: Seconds to wait for the record to be stored
            poll_interval: Receipt polling interval in seconds
            max_file_size: Largest accepted file in bytes
            accepted_types: Accepted MIME types
            on_change: Called with the state after every update
        """
        self.wallet = wallet
        self.pinning = pinning
        self.records = records
        self.gateway_base_url = gateway_base_url.rstrip("/")
        self.transaction_timeout = transaction_timeout
        self.database_save_timeout = database_save_timeout
        self.poll_interval = poll_interval
        self.max_file_size = max_file_size
        self.accepted_types = accepted_types
        self.on_change = on_change

        self.state = UploadState()
        self._signer: Optional[Signer] = None
        self._subscription: Optional[Subscription] = None
        self._cancel = asyncio.Event()
        self._generation = 0
        self._detached = False

    # State updates

    def _update(self, **changes) -> None:
        if self._detached:
            return
        for name, value in changes.items():
            setattr(self.state, name, value)
        if self.on_change is not None:
            self.on_change(self.state)

    def _enter(self, stage: UploadStage, **changes) -> None:
        if self._detached:
            return
        self.state.history.append(stage)
        self._update(stage=stage, **changes)

    def _current(self, generation: int) -> bool:
        """False once the flow was superseded by a logout, disconnect or detach."""
        return not self._detached and generation == self._generation

    def _abort_in_flight(self) -> None:
        self._generation += 1
        self._cancel.set()
        self._cancel = asyncio.Event()

    # Wallet

    async def attach(self) -> None:
        """Subscribe to account changes and restore an authorised account without prompting."""
        self._detached = False
        if self.wallet.provider is None:
            return
        self._subscription = self.wallet.subscribe_accounts(self._on_accounts_changed)

        try:
            signer = await self.wallet.restore()
        except ClientError as e:
            logger.warning("upload.restore_failed", error=str(e))
            return
        if signer is not None:
            self._signer = signer
            self._update(wallet_connected=True, account=signer.address)
            logger.info("upload.connection_restored", account=mask_address(signer.address))

    def detach(self) -> None:
        """Revoke the account subscription, abort any in-flight flow and stop updating state."""
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        self._abort_in_flight()
        self._detached = True

    async def connect_wallet(self) -> bool:
        try:
            signer = await self.wallet.connect()
        except (ProviderMissing, ConnectionRejected) as e:
            self._update(status=str(e) or CONNECTION_FAILED)
            return False

        self._signer = signer
        self._update(wallet_connected=True, account=signer.address, status="")
        return True

    def disconnect(self) -> None:
        """Forget the account and reset the flow to IDLE."""
        self._abort_in_flight()
        self._signer = None
        if self._detached:
            return
        self.state = UploadState()
        self._update()

    def _on_accounts_changed(self, accounts: list[str]) -> None:
        if accounts:
            provider = self.wallet.provider
            if provider is not None:
                self._signer = Signer(provider, accounts[0])
            self._update(account=accounts[0])
            logger.info("upload.account_changed", account=mask_address(accounts[0]))
        else:
            logger.info("upload.forced_logout")
            self.disconnect()

    # Flow

    def select_file(self, file: LocalFile) -> bool:
        """Hold ``file`` for the next upload; invalid files only update the status."""
        if self.state.stage not in SELECTABLE_STAGES:
            logger.info("upload.select_ignored", stage=self.state.stage.value)
            return False

        check = validate_file(file.content_type, file.size, self.accepted_types, self.max_file_size)
        if not check.valid:
            self._update(status=check.error or GENERIC_ERROR)
            return False

        self.state.history = []
        self._enter(
            UploadStage.FILE_SELECTED,
            file=file,
            status="",
            transaction_hash="",
            decoded_payload="",
            progress=0,
        )
        return True

    def _fail(self, generation: int, status: str) -> None:
        if not self._current(generation):
            return
        self._enter(UploadStage.ERROR, status=status)
        next_stage = UploadStage.FILE_SELECTED if self.state.file else UploadStage.IDLE
        self._enter(next_stage, loading=False)

    async def upload_and_record(self) -> UploadState:
        """Run pin -> sign -> confirm -> persist for the selected file."""
        if not self.state.wallet_connected or self._signer is None:
            self._update(status=CONNECT_WALLET)
            return self.state
        if self.state.file is None:
            self._update(status=SELECT_FILE)
            return self.state
        if self.state.loading:
            return self.state

        file = self.state.file
        signer = self._signer
        generation = self._generation
        cancel = self._cancel

        def on_progress(percent: int) -> None:
            if self._current(generation):
                self._update(progress=percent)

        self._enter(UploadStage.UPLOADING, loading=True, progress=0, status=UPLOADING)
        log = logger.bind(file_name=file.name, account=mask_address(signer.address))

        try:
            pinned = await self.pinning.upload(file, on_progress=on_progress, cancel=cancel)
        except UploadCancelled:
            log.info("upload.cancelled")
            return self.state
        except ClientError as e:
            log.warning("upload.pin_failed", error=str(e), error_type=type(e).__name__)
            self._fail(generation, PIN_FAILED)
            return self.state
        except Exception as e:
            log.error("upload.pin_error", error=str(e), error_type=type(e).__name__)
            self._fail(generation, PIN_FAILED)
            return self.state

        if not self._current(generation):
            return self.state
        log = log.bind(cid=pinned.content_id)
        self._enter(UploadStage.AWAITING_SIGNATURE, status=PINNED)

        try:
            payload = pinned.content_id.encode("utf-8")
            pending = await signer.send_transaction(signer.address, payload)
            if not self._current(generation):
                return self.state
            self._enter(UploadStage.CONFIRMING)
            receipt = await pending.wait(self.transaction_timeout, self.poll_interval)
        except UserRejected:
            log.info("upload.transaction_rejected")
            self._fail(generation, TRANSACTION_CANCELLED)
            return self.state
        except InsufficientFunds:
            log.warning("upload.insufficient_funds")
            self._fail(generation, INSUFFICIENT_FUNDS)
            return self.state
        except Exception as e:
            log.error("upload.transaction_error", error=str(e), error_type=type(e).__name__)
            self._fail(generation, GENERIC_ERROR)
            return self.state

        if not self._current(generation):
            return self.state
        if not receipt.success:
            log.warning("upload.transaction_failed", tx_hash=receipt.tx_hash)
            self._fail(generation, TRANSACTION_FAILED)
            return self.state

        self._enter(UploadStage.PERSISTING, status=CONFIRMED)
        decoded = decode_payload(pending.data)

        try:
            await asyncio.wait_for(
                self.records.create_record(
                    cid=pinned.content_id,
                    file_name=file.name,
                    file_size=file.size,
                    file_type=file.content_type,
                    wallet_address=signer.address.lower(),
                    transaction_hash=pending.hash,
                ),
                timeout=self.database_save_timeout,
            )
            status = SAVED
        except (ClientError, TimeoutError) as e:
            log.warning("upload.record_save_failed", error=str(e), error_type=type(e).__name__)
            status = SAVE_FAILED
        except Exception as e:
            # The transaction is already mined; the flow still ends in DONE
            log.error("upload.record_save_error", error=str(e), error_type=type(e).__name__)
            status = SAVE_FAILED

        if not self._current(generation):
            return self.state
        self._enter(
            UploadStage.DONE,
            status=status,
            transaction_hash=pending.hash,
            decoded_payload=decoded,
            file=None,
            loading=False,
        )
        log.info("upload.completed", tx_hash=pending.hash, recorded=status == SAVED)
        return self.state

    def gateway_url(self) -> Optional[str]:
        """Public gateway link for the content anchored by the last successful flow."""
        if not self.state.decoded_payload:
            return None
        return f"{self.gateway_base_url}/ipfs/{self.state.decoded_payload}"
