"""Tests for admin batch issuance and the printable sheet."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import re

import pytest
from unittest.mock import patch
from app.exceptions import BatchTooLarge
from app.models.tag import Tag
from app.services import batch_service
from app.services.sheet_service import qr_png, render_tag_sheet
from conftest import make_blank_tag


class TestQuantity:
    @pytest.mark.parametrize("raw", [None, 0, -5, "abc", ""])
    def test_invalid_defaults_to_100(self, raw):
        assert batch_service.normalize_quantity(raw) == 100

    def test_numeric_string_accepted(self):
        assert batch_service.normalize_quantity("25") == 25

    def test_cap(self):
        assert batch_service.normalize_quantity(10000) == 10000
        with pytest.raises(BatchTooLarge, match="Quantity cannot exceed 10000"):
            batch_service.normalize_quantity(10001)


class TestIssueBatch:
    def test_creates_blank_unique_tags_and_pdf(self, db):
        result = batch_service.issue_batch(db, 25)
        assert result.created == 25
        assert len(set(result.codes)) == 25
        assert result.sheet.startswith(b"%PDF")

        tags = db.query(Tag).all()
        assert len(tags) == 25
        assert all(t.status == "created" and t.owner_id is None for t in tags)
        assert all(t.allow_masked_call and t.allow_whatsapp and t.allow_sms for t in tags)
        assert not any(t.show_emergency_contact for t in tags)

    def test_existing_codes_are_skipped(self, db):
        make_blank_tag(db, "TAG-AAAAAAAA")
        sequence = iter(["TAG-AAAAAAAA", "TAG-BBBBBBBB", "TAG-CCCCCCCC"])
        with patch("app.utils.tag_codes.generate_code", side_effect=lambda: next(sequence)):
            result = batch_service.issue_batch(db, 2, with_sheet=False)
        assert result.codes == ["TAG-BBBBBBBB", "TAG-CCCCCCCC"]
        assert db.query(Tag).count() == 3

    def test_inserts_span_several_chunks(self, db):
        result = batch_service.issue_batch(db, 250, with_sheet=False)
        assert result.created == 250
        assert db.query(Tag).count() == 250

    def test_too_large_creates_nothing(self, db):
        with pytest.raises(BatchTooLarge):
            batch_service.issue_batch(db, 20000)
        assert db.query(Tag).count() == 0

    def test_first_blank_code(self, db):
        assert batch_service.first_blank_code(db) is None
        make_blank_tag(db, "TAG-AAAAAAAA")
        assert batch_service.first_blank_code(db) == "TAG-AAAAAAAA"


class TestSheet:
    def test_single_qr_sheet(self):
        assert render_tag_sheet(["TAG-AB12CD34"]).startswith(b"%PDF")

    def test_page_breaks_after_twenty_codes(self):
        # 4 columns x 5 rows fit on one A4 page
        pdf = render_tag_sheet([f"TAG-{i:08d}" for i in range(41)])
        page_count = max(int(n) for n in re.findall(rb"/Count (\d+)", pdf))
        assert page_count == 3

    def test_qr_encodes_scan_payload_not_code(self):
        with patch("app.services.sheet_service.qr_png", wraps=qr_png) as make_qr:
            render_tag_sheet(["TAG-AB12CD34"])
        assert make_qr.call_args[0][0].startswith("CC::1:")
