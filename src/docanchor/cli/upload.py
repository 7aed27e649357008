"""CLI command for pinning a document and anchoring its CID on chain.

Usage:
    python -m docanchor.cli.upload FILE [OPTIONS]

Examples:
    # Upload through a local API server, signing with a node-managed account
    python -m docanchor.cli.upload contract.pdf --rpc-url http://localhost:8545

    # Sign locally with a private key (or set WALLET_PRIVATE_KEY)
    python -m docanchor.cli.upload scan.png --private-key 0x...

    # Verbose logging
    python -m docanchor.cli.upload scan.png -v

Exit codes: 0 when the transaction succeeded (even if the database save failed),
1 otherwise.
"""

import asyncio
import sys
from argparse import ArgumentParser, Namespace
from pathlib import Path

import structlog

from docanchor.client.config import ClientSettings
from docanchor.client.orchestrator import UploadOrchestrator, UploadStage, UploadState
from docanchor.client.pinning import LocalFile, PinningClient
from docanchor.client.records import RecordsClient
from docanchor.client.wallet import WalletConnector
from docanchor.client.web3_provider import Web3WalletProvider
from docanchor.core.config import setup_structlog
from docanchor.validators import format_file_size

logger = structlog.get_logger()


def parse_args(argv: list[str] | None = None) -> Namespace:
    """Parse command-line arguments."""
    parser = ArgumentParser(
        description="Pin a PDF/PNG/JPEG document to IPFS and anchor its CID on chain",
    )

    parser.add_argument("file", type=Path, help="Document to upload (PDF, PNG or JPEG)")

    parser.add_argument(
        "--server-url",
        help="docanchor API base URL (default: SERVER_URL or http://localhost:5001)",
    )

    parser.add_argument(
        "--rpc-url",
        help="JSON-RPC endpoint of the chain (default: RPC_URL)",
    )

    parser.add_argument(
        "--private-key",
        help="Sign locally with this key instead of a node-managed account "
        "(default: WALLET_PRIVATE_KEY)",
    )

    parser.add_argument(
        "--gateway-url",
        help="Public IPFS gateway for the result link (default: PINATA_GATEWAY_URL)",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging (DEBUG level)",
    )

    return parser.parse_args(argv)


class StatusPrinter:
    """Prints each new status message and progress milestones."""

    def __init__(self):
        self.last_status = ""
        self.last_progress = -1

    def __call__(self, state: UploadState) -> None:
        if state.status and state.status != self.last_status:
            self.last_status = state.status
            print(state.status)
        if state.stage == UploadStage.UPLOADING and state.progress != self.last_progress:
            if state.progress % 10 == 0:
                print(f"  {state.progress}%")
            self.last_progress = state.progress


async def async_main(argv: list[str] | None = None) -> int:
    """Main CLI entry point (async).

    Returns:
        Exit code: 0 (transaction confirmed), 1 (error)
    """
    args = parse_args(argv)
    settings = ClientSettings()

    setup_structlog("DEBUG" if args.verbose else "WARNING")

    if not args.file.is_file():
        print(f"File not found: {args.file}", file=sys.stderr)
        return 1

    file = LocalFile.from_path(args.file)
    print(f"{file.name} ({file.content_type}, {format_file_size(file.size)})")

    provider = Web3WalletProvider.from_rpc_url(
        args.rpc_url or settings.rpc_url,
        args.private_key or settings.wallet_private_key,
    )
    server_url = args.server_url or settings.server_url
    orchestrator = UploadOrchestrator(
        wallet=WalletConnector(provider),
        pinning=PinningClient(server_url, timeout=settings.upload_timeout_seconds),
        records=RecordsClient(server_url, timeout=settings.database_save_timeout_seconds),
        gateway_base_url=args.gateway_url or settings.pinata_gateway_url,
        transaction_timeout=settings.transaction_timeout_seconds,
        database_save_timeout=settings.database_save_timeout_seconds,
        on_change=StatusPrinter(),
    )

    try:
        await orchestrator.attach()
        if not orchestrator.state.wallet_connected and not await orchestrator.connect_wallet():
            return 1
        if not orchestrator.select_file(file):
            return 1

        state = await orchestrator.upload_and_record()
        if state.stage != UploadStage.DONE:
            return 1

        print(f"Transaction hash: {state.transaction_hash}")
        print(f"View on IPFS: {orchestrator.gateway_url()}")
        return 0

    finally:
        orchestrator.detach()
        await provider.close()


def main() -> int:
    """Synchronous wrapper for async main."""
    try:
        return asyncio.run(async_main())
    except KeyboardInterrupt:
        # asyncio.run cancels the flow and re-raises Ctrl-C here
        logger.warning("upload.interrupted")
        return 1


if __name__ == "__main__":
    sys.exit(main())
