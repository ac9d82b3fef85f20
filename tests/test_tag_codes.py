"""Unit tests for tag code generation and the QR scan payload."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import base64
import re

import pytest
from unittest.mock import patch
from app.exceptions import InvalidScanPayload
from app.utils.tag_codes import (
    build_scan_payload,
    decode_scan_payload,
    generate_code,
    generate_unique_codes,
    looks_like_code,
)

CODE_RE = re.compile(r"^TAG-[A-Z0-9]{8}$")


class TestGenerateCode:
    def test_code_format(self):
        for _ in range(200):
            assert CODE_RE.match(generate_code())

    def test_custom_length_and_prefix(self):
        code = generate_code(length=4, prefix="NFC-")
        assert code.startswith("NFC-")
        assert len(code) == 8

    def test_unique_codes_are_distinct(self):
        codes = generate_unique_codes(500)
        assert len(codes) == 500
        assert len(set(codes)) == 500

    def test_taken_codes_are_regenerated(self):
        sequence = iter(["TAG-AAAAAAAA", "TAG-BBBBBBBB", "TAG-CCCCCCCC", "TAG-DDDDDDDD"])
        with patch("app.utils.tag_codes.generate_code", side_effect=lambda: next(sequence)):
            codes = generate_unique_codes(2, is_taken=lambda c: {"TAG-AAAAAAAA"} & set(c))
        assert codes == ["TAG-BBBBBBBB", "TAG-CCCCCCCC"]

    def test_duplicate_candidates_within_batch_are_skipped(self):
        sequence = iter(["TAG-AAAAAAAA", "TAG-AAAAAAAA", "TAG-BBBBBBBB"])
        with patch("app.utils.tag_codes.generate_code", side_effect=lambda: next(sequence)):
            codes = generate_unique_codes(2)
        assert codes == ["TAG-AAAAAAAA", "TAG-BBBBBBBB"]


class TestLooksLikeCode:
    def test_code_shaped(self):
        assert looks_like_code("TAG-AB12CD34")

    def test_uuid_is_not_code_shaped(self):
        assert not looks_like_code("3f2b8c1e-0d4a-4e5b-9c7d-1a2b3c4d5e6f")

    def test_lowercase_suffix_rejected(self):
        assert not looks_like_code("TAG-ab12cd34")

    def test_prefix_only_rejected(self):
        assert not looks_like_code("TAG-")


class TestScanPayload:
    def test_payload_has_version_header(self):
        payload = build_scan_payload("TAG-AB12CD34")
        assert payload.startswith("CC::1:")
        assert "TAG-AB12CD34" not in payload

    def test_decode_recovers_code(self):
        assert decode_scan_payload(build_scan_payload("TAG-AB12CD34")) == "TAG-AB12CD34"

    def test_payload_is_xor_of_code_and_key(self):
        payload = build_scan_payload("TAG-AB12CD34", key="k")
        raw = base64.b64decode(payload[len("CC::1:"):])
        assert bytes(b ^ ord("k") for b in raw) == b"TAG-AB12CD34"

    def test_foreign_qr_rejected(self):
        with pytest.raises(InvalidScanPayload):
            decode_scan_payload("https://example.com/some-qr")

    def test_unknown_version_rejected(self):
        payload = build_scan_payload("TAG-AB12CD34").replace("CC::1:", "CC::9:")
        with pytest.raises(InvalidScanPayload):
            decode_scan_payload(payload)

    def test_bad_base64_rejected(self):
        with pytest.raises(InvalidScanPayload):
            decode_scan_payload("CC::1:***not-base64***")

    def test_wrong_key_rejected(self):
        payload = build_scan_payload("TAG-AB12CD34", key="right-key")
        with pytest.raises(InvalidScanPayload):
            decode_scan_payload(payload, key="wrong-key")
