"""Tests for shared format rules (CIDs, addresses, files, display helpers)."""

import pytest

from docanchor.validators import (
    MAX_FILE_SIZE,
    format_file_size,
    is_valid_cid,
    is_valid_transaction_hash,
    is_valid_wallet_address,
    mask_address,
    sanitize_filename,
    validate_file,
)
from tests.conftest import CID_V0, CID_V1, TX_HASH, WALLET


class TestContentIdentifiers:
    def test_cid_v0_accepted(self):
        assert len(CID_V0) == 46
        assert is_valid_cid(CID_V0)

    def test_cid_v1_accepted(self):
        assert is_valid_cid(CID_V1)

    @pytest.mark.parametrize(
        "cid",
        [
            "",
            None,
            CID_V0[:-1],  # 45 characters
            CID_V0 + "a",  # 47 characters
            "Qm" + "0" * 44,  # "0" is not base58
            "Qm" + "l" * 44,  # "l" is not base58
            "b" + "a" * 57,  # CIDv1 too short
            "bafy" + "A" * 56,  # uppercase is not base32 lowercase
            "not-a-cid",
        ],
    )
    def test_malformed_cids_rejected(self, cid):
        assert not is_valid_cid(cid)


def test_wallet_address_format():
    assert is_valid_wallet_address(WALLET)
    assert is_valid_wallet_address(WALLET.lower())
    assert not is_valid_wallet_address(WALLET[:-1])
    assert not is_valid_wallet_address("AbC0000000000000000000000000000000000001")
    assert not is_valid_wallet_address("0x" + "g" * 40)


def test_transaction_hash_format():
    assert is_valid_transaction_hash(TX_HASH)
    assert not is_valid_transaction_hash(TX_HASH[:-2])
    assert not is_valid_transaction_hash(None)


class TestSanitizeFilename:
    def test_keeps_safe_characters(self):
        assert sanitize_filename("report_2024-v1.pdf") == "report_2024-v1.pdf"

    def test_strips_unsafe_characters(self):
        assert sanitize_filename("my report (final)!.pdf") == "myreportfinal.pdf"

    def test_collapses_repeated_dots(self):
        assert sanitize_filename("../../etc/passwd") == ".etcpasswd"
        assert sanitize_filename("a....pdf") == "a.pdf"

    def test_truncates_to_255_characters(self):
        assert len(sanitize_filename("a" * 300 + ".pdf")) == 255

    def test_empty_result_becomes_file(self):
        assert sanitize_filename("çàé ()") == "file"
        assert sanitize_filename(None) == "file"


class TestValidateFile:
    def test_accepts_supported_types_within_limit(self):
        for content_type in ("application/pdf", "image/png", "image/jpeg"):
            assert validate_file(content_type, 1024).valid

    def test_rejects_unsupported_type(self):
        check = validate_file("image/gif", 1024)
        assert not check.valid
        assert check.error == "Invalid file type. Only PDF, PNG, and JPEG files are allowed."

    def test_rejects_oversized_file(self):
        check = validate_file("application/pdf", MAX_FILE_SIZE + 1)
        assert not check.valid
        assert check.error == "File size exceeds the 100 MB limit."

    def test_exactly_at_limit_is_accepted(self):
        assert validate_file("application/pdf", MAX_FILE_SIZE).valid

    def test_type_checked_before_size(self):
        check = validate_file("text/plain", MAX_FILE_SIZE + 1)
        assert "Invalid file type" in (check.error or "")

    def test_nothing_provided(self):
        assert validate_file(None, None).error == "No file provided"


@pytest.mark.parametrize(
    "num_bytes, expected",
    [
        (0, "0 Bytes"),
        (512, "512 Bytes"),
        (1024, "1 KB"),
        (1536, "1.5 KB"),
        (2 * 1024 * 1024, "2 MB"),
        (5 * 1024 * 1024 * 1024, "5 GB"),
    ],
)
def test_format_file_size(num_bytes, expected):
    assert format_file_size(num_bytes) == expected


def test_mask_address():
    assert mask_address(WALLET) == "0xAbC...0001"
    assert mask_address(None) == ""
