"""Upload workflow client: wallet connector, pinning and records clients, orchestrator."""

from docanchor.client.orchestrator import UploadOrchestrator, UploadStage, UploadState
from docanchor.client.pinning import LocalFile, PinnedContent, PinningClient
from docanchor.client.records import RecordsClient
from docanchor.client.wallet import WalletConnector, decode_payload, encode_payload

__all__ = [
    "LocalFile",
    "PinnedContent",
    "PinningClient",
    "RecordsClient",
    "UploadOrchestrator",
    "UploadStage",
    "UploadState",
    "WalletConnector",
    "decode_payload",
    "encode_payload",
]
