"""Tests for public tag resolution: redaction, blank lock, scan log."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import threading

import pytest
from app.exceptions import TagDisabled, TagNotFound
from app.models.tag import Tag
from app.models.tag_scan import TagScan
from app.services import resolution_service, tag_service
from conftest import file_sessionmaker, make_blank_tag


def _active(db, **flags):
    make_blank_tag(db)
    tag = tag_service.claim_tag(db, "TAG-AB12CD34", "U1", plate_number="MH12AB1234")
    tag.emergency_contact_name = "Asha"
    tag.emergency_contact_phone = "9998887777"
    for key, value in flags.items():
        setattr(tag, key, value)
    db.commit()
    return tag


class TestRedaction:
    def test_default_view(self, db):
        _active(db)
        view = resolution_service.resolve_public(db, "TAG-AB12CD34")
        assert view["plate_number"] == "MH12AB1234"
        assert view["contact"] == {"masked_call": True, "whatsapp": True, "sms": True}
        assert "emergency_contact" not in view
        assert "owner_id" not in view

    def test_view_exposes_only_public_fields(self, db):
        _active(db)
        view = resolution_service.resolve_public(db, "TAG-AB12CD34")
        assert set(view) == {"code", "is_blank", "plate_number", "nickname", "vehicle_type", "contact"}

    def test_masked_call_disabled(self, db):
        _active(db, allow_masked_call=False)
        view = resolution_service.resolve_public(db, "TAG-AB12CD34")
        assert view["contact"] == {"masked_call": False, "whatsapp": True, "sms": True}

    def test_sms_disabled(self, db):
        _active(db, allow_sms=False)
        view = resolution_service.resolve_public(db, "TAG-AB12CD34")
        assert view["contact"] == {"masked_call": True, "whatsapp": True, "sms": False}

    def test_whatsapp_disabled(self, db):
        _active(db, allow_whatsapp=False)
        view = resolution_service.resolve_public(db, "TAG-AB12CD34")
        assert view["contact"]["whatsapp"] is False
        assert view["contact"]["masked_call"] is True

    def test_emergency_block_only_when_shown(self, db):
        _active(db, show_emergency_contact=True)
        view = resolution_service.resolve_public(db, "TAG-AB12CD34")
        assert view["emergency_contact"] == {"name": "Asha", "phone": "9998887777"}
        assert set(view) == {
            "code", "is_blank", "plate_number", "nickname", "vehicle_type", "contact", "emergency_contact",
        }

    def test_resolve_by_id(self, db):
        tag = _active(db)
        view = resolution_service.resolve_public(db, tag.id)
        assert view["code"] == "TAG-AB12CD34"


class TestBlankTags:
    def test_untrusted_gets_locked_view(self, db):
        make_blank_tag(db)
        view = resolution_service.resolve_public(db, "TAG-AB12CD34", trusted_app=False)
        assert view["status"] == "locked"
        assert "download_url" in view
        assert "code" not in view and "id" not in view

    def test_app_sees_blank_tag(self, db):
        tag = make_blank_tag(db)
        view = resolution_service.resolve_public(db, "TAG-AB12CD34", trusted_app=True)
        assert view["is_blank"] is True
        assert view["id"] == tag.id

    def test_blank_scan_not_logged(self, db):
        make_blank_tag(db)
        resolution_service.resolve_public(db, "TAG-AB12CD34")
        assert db.query(TagScan).count() == 0


class TestScanLog:
    def test_each_resolution_appends_one_scan(self, db):
        tag = _active(db)
        for i in range(5):
            resolution_service.resolve_public(db, "TAG-AB12CD34", location=f"Gate {i}")

        scans = db.query(TagScan).filter(TagScan.tag_id == tag.id).order_by(TagScan.id).all()
        assert len(scans) == 5
        assert [s.location for s in scans] == [f"Gate {i}" for i in range(5)]
        for prev, cur in zip(scans, scans[1:]):
            assert cur.scanned_at >= prev.scanned_at

        db.expire_all()
        assert db.query(Tag).filter(Tag.id == tag.id).one().scan_count == 5

    def test_concurrent_scans_are_all_recorded(self, tmp_path):
        engine, Session = file_sessionmaker(tmp_path / "scans.db")
        with Session() as s:
            make_blank_tag(s)
            tag_id = tag_service.claim_tag(s, "TAG-AB12CD34", "U1").id

        workers = 8
        barrier = threading.Barrier(workers)
        errors = []

        def scan(i):
            session = Session()
            try:
                barrier.wait()
                resolution_service.resolve_public(session, "TAG-AB12CD34", location=f"Gate {i}")
            except Exception as e:
                errors.append(e)
            finally:
                session.close()

        threads = [threading.Thread(target=scan, args=(i,)) for i in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        with Session() as s:
            assert s.query(TagScan).filter(TagScan.tag_id == tag_id).count() == workers
            assert s.query(Tag).filter(Tag.id == tag_id).one().scan_count == workers
        engine.dispose()

    def test_default_location(self, db):
        _active(db)
        resolution_service.resolve_public(db, "TAG-AB12CD34")
        assert db.query(TagScan).one().location == "Unknown"

    def test_scan_history_is_paginated_newest_first(self, db):
        tag = _active(db)
        for i in range(4):
            resolution_service.resolve_public(db, "TAG-AB12CD34", location=f"L{i}")
        total, scans = tag_service.list_scans(db, tag.id, "U1", limit=2)
        assert total == 4
        assert [s.location for s in scans] == ["L3", "L2"]


class TestUnavailable:
    def test_unknown_identifier(self, db):
        with pytest.raises(TagNotFound):
            resolution_service.resolve_public(db, "TAG-NOPE0000")

    def test_disabled_tag_is_gone_and_not_logged(self, db):
        tag = _active(db)
        tag_service.disable_tag(db, tag.id, "U1")
        with pytest.raises(TagDisabled):
            resolution_service.resolve_public(db, "TAG-AB12CD34")
        assert db.query(TagScan).count() == 0
