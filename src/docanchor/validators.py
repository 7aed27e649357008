"""Format rules shared by the backend and the upload client.

Covers content identifiers (CIDv0/CIDv1), wallet addresses, transaction hashes,
accepted upload files and file name sanitisation.
"""

import re
from dataclasses import dataclass

# CIDv0: "Qm" + 44 base58 characters (46 total)
CID_V0_PATTERN = re.compile(r"^Qm[1-9A-HJ-NP-Za-km-z]{44}$")
# CIDv1: multibase prefix "b" + lowercase base32
CID_V1_PATTERN = re.compile(r"^b[a-z2-7]{58,}$")
WALLET_ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")
TRANSACTION_HASH_PATTERN = re.compile(r"^0x[a-fA-F0-9]{64}$")

ACCEPTED_FILE_TYPES: tuple[str, ...] = ("application/pdf", "image/png", "image/jpeg")
FILE_TYPE_LABELS = {
    "application/pdf": "PDF",
    "image/png": "PNG",
    "image/jpeg": "JPEG/JPG",
}
MAX_FILE_SIZE = 100 * 1024 * 1024
MAX_FILE_NAME_LENGTH = 255

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")
_REPEATED_DOTS = re.compile(r"\.{2,}")


def is_valid_cid(cid: str | None) -> bool:
    """True for a CIDv0 or CIDv1 string."""
    if not cid:
        return False
    return bool(CID_V0_PATTERN.match(cid) or CID_V1_PATTERN.match(cid))


def is_valid_wallet_address(address: str | None) -> bool:
    """True for ``0x`` followed by 40 hex digits (any case)."""
    if not address:
        return False
    return bool(WALLET_ADDRESS_PATTERN.match(address))


def is_valid_transaction_hash(tx_hash: str | None) -> bool:
    """True for ``0x`` followed by 64 hex digits."""
    if not tx_hash:
        return False
    return bool(TRANSACTION_HASH_PATTERN.match(tx_hash))


def sanitize_filename(name: str | None) -> str:
    """Make an uploaded file name safe to forward and log.

    Removes every character outside ``[A-Za-z0-9._-]``, collapses runs of dots into
    one, and truncates to 255 characters. Returns ``"file"`` when nothing survives.
    """
    cleaned = _UNSAFE_FILENAME_CHARS.sub("", name or "")
    cleaned = _REPEATED_DOTS.sub(".", cleaned)
    cleaned = cleaned[:MAX_FILE_NAME_LENGTH]
    return cleaned or "file"


@dataclass(frozen=True)
class FileCheck:
    """Outcome of a file validation; ``error`` is set when ``valid`` is False."""

    valid: bool
    error: str | None = None


def format_size_limit(max_size_bytes: int) -> str:
    """Human label for a byte ceiling, e.g. ``100 MB``."""
    megabytes = max_size_bytes / 1024 / 1024
    if megabytes == int(megabytes):
        return f"{int(megabytes)} MB"
    return f"{megabytes:.2f} MB"


def validate_file(
    content_type: str | None,
    size: int | None,
    accepted_types: tuple[str, ...] = ACCEPTED_FILE_TYPES,
    max_size_bytes: int = MAX_FILE_SIZE,
) -> FileCheck:
    """Check a file's MIME type, then its size."""
    if content_type is None and size is None:
        return FileCheck(False, "No file provided")

    if content_type not in accepted_types:
        return FileCheck(
            False, "Invalid file type. Only PDF, PNG, and JPEG files are allowed."
        )

    if size is not None and size > max_size_bytes:
        return FileCheck(
            False, f"File size exceeds the {format_size_limit(max_size_bytes)} limit."
        )

    return FileCheck(True)


def format_file_size(num_bytes: int) -> str:
    """Format a byte count for display (``2.5 MB``)."""
    if num_bytes <= 0:
        return "0 Bytes"

    units = ("Bytes", "KB", "MB", "GB")
    index = 0
    scaled = float(num_bytes)
    while scaled >= 1024 and index < len(units) - 1:
        scaled /= 1024
        index += 1
    value: float | int = round(scaled, 2)
    if value == int(value):
        value = int(value)
    return f"{value} {units[index]}"


def mask_address(address: str | None) -> str:
    """Shorten an address for display: first 5 and last 4 characters."""
    if not address:
        return ""
    return f"{address[:5]}...{address[-4:]}"
