# app/services/tag_service.py
"""
Tag lifecycle: claim, register, edit, privacy toggles, disable/reactivate.

State machine:
  created ──claim──▶ active ──disable──▶ disabled ──reactivate (admin)──▶ active

Claiming and privacy toggles are single UPDATEs guarded by their
precondition, so two concurrent claims can never both win. Edits, disable
and reactivate load the owned row, change it and commit.
The emergency phone is never written here; see otp_service.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from sqlalchemy import not_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import settings
from app.exceptions import (
    DuplicateTagCode,
    Forbidden,
    TagAlreadyClaimed,
    TagNotFound,
    UnknownPrivacyFlag,
)
from app.models.tag import Tag, TAG_STATUS_ACTIVE, TAG_STATUS_CREATED, TAG_STATUS_DISABLED
from app.models.tag_scan import TagScan
from app.utils.clock import utcnow
from app.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_NICKNAME = "My Vehicle"

PHONE_FIELD = "emergency_contact_phone"

# Fields an owner may edit. The phone is listed so it can travel in a
# pending patch, but it is only ever applied by a verified OTP.
EDITABLE_FIELDS = (
    "nickname",
    "plate_number",
    "vehicle_type",
    "vehicle_color",
    "vehicle_make",
    "vehicle_model",
    "emergency_contact_name",
    PHONE_FIELD,
)


class PrivacyFlag(str, Enum):
    ALLOW_MASKED_CALL = "allow_masked_call"
    ALLOW_WHATSAPP = "allow_whatsapp"
    ALLOW_SMS = "allow_sms"
    SHOW_EMERGENCY_CONTACT = "show_emergency_contact"


@dataclass
class UpdateOutcome:
    tag: Tag
    otp_required: bool = False


# ── Lookups ──────────────────────────────────────────────────────────────────

def get_tag(db: Session, tag_id: str) -> Tag:
    tag = db.query(Tag).filter(Tag.id == tag_id).first()
    if not tag:
        raise TagNotFound("Tag not found")
    return tag


def get_owned_tag(db: Session, tag_id: str, caller_id: str) -> Tag:
    """Tag by id, only if `caller_id` owns it."""
    tag = get_tag(db, tag_id)
    if tag.owner_id is None or tag.owner_id != caller_id:
        logger.warning(f"[TAG] User {caller_id} tried to access tag {tag.code} owned by {tag.owner_id}")
        raise Forbidden()
    return tag


def find_by_code(db: Session, code: str) -> Optional[Tag]:
    return db.query(Tag).filter(Tag.code == code).first()


def list_owner_tags(db: Session, owner_id: str) -> list:
    return (
        db.query(Tag)
        .filter(Tag.owner_id == owner_id)
        .order_by(Tag.activated_at.desc(), Tag.created_at.desc())
        .all()
    )


def list_scans(db: Session, tag_id: str, caller_id: str, limit: int = None, offset: int = 0):
    """Owner's scan history, newest first. Returns (total, scans)."""
    tag = get_owned_tag(db, tag_id, caller_id)
    limit = limit or settings.SCAN_PAGE_SIZE
    q = db.query(TagScan).filter(TagScan.tag_id == tag.id)
    total = q.count()
    scans = q.order_by(TagScan.scanned_at.desc(), TagScan.id.desc()).offset(offset).limit(limit).all()
    return total, scans


# ── Claim / register ─────────────────────────────────────────────────────────

def claim_tag(
    db: Session,
    code: str,
    owner_id: str,
    nickname: Optional[str] = None,
    plate_number: Optional[str] = None,
    vehicle_type: Optional[str] = None,
) -> Tag:
    """
    Bind a blank tag to `owner_id` and activate it.
    Raises TagNotFound for unknown codes, TagAlreadyClaimed if anyone
    (including the caller) already owns it.
    """
    now = utcnow()
    values = {
        "owner_id": owner_id,
        "status": TAG_STATUS_ACTIVE,
        "nickname": nickname or DEFAULT_NICKNAME,
        "plate_number": plate_number or "",
        "activated_at": now,
        "updated_at": now,
    }
    if vehicle_type:
        values["vehicle_type"] = vehicle_type

    claimed = (
        db.query(Tag)
        .filter(Tag.code == code, Tag.owner_id.is_(None), Tag.status == TAG_STATUS_CREATED)
        .update(values, synchronize_session=False)
    )
    if not claimed:
        db.rollback()
        if not find_by_code(db, code):
            logger.info(f"[CLAIM] Unknown code {code} (user {owner_id})")
            raise TagNotFound()
        logger.warning(f"[CLAIM] {code} already claimed: rejected for user {owner_id}")
        raise TagAlreadyClaimed()

    db.commit()
    tag = find_by_code(db, code)
    logger.info(f"[CLAIM] {code} activated by user {owner_id}")
    return tag


def register_tag(
    db: Session,
    code: str,
    owner_id: str,
    nickname: Optional[str] = None,
    plate_number: Optional[str] = None,
    vehicle_type: Optional[str] = None,
) -> Tag:
    """
    Register a code the system has never issued (e.g. a third-party NFC
    sticker) as a new active tag owned by the caller.
    """
    if find_by_code(db, code):
        raise DuplicateTagCode()

    now = utcnow()
    tag = Tag(
        code=code,
        owner_id=owner_id,
        status=TAG_STATUS_ACTIVE,
        vehicle_type=vehicle_type or "car",
        nickname=nickname or DEFAULT_NICKNAME,
        plate_number=plate_number or "",
        created_at=now,
        activated_at=now,
        updated_at=now,
    )
    db.add(tag)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise DuplicateTagCode()
    db.refresh(tag)
    logger.info(f"[CLAIM] New tag {code} registered by user {owner_id}")
    return tag


# ── Field updates ────────────────────────────────────────────────────────────

def apply_fields(tag: Tag, patch: dict):
    """Copy editable, non-phone keys of `patch` onto `tag` (partial update)."""
    for field, value in patch.items():
        if field not in EDITABLE_FIELDS or field == PHONE_FIELD:
            continue
        if field == "vehicle_type" and not value:
            continue
        setattr(tag, field, value)


def phone_change_requested(tag: Tag, patch: dict) -> bool:
    new_phone = patch.get(PHONE_FIELD)
    return bool(new_phone) and new_phone != tag.emergency_contact_phone


def update_tag(db: Session, tag_id: str, caller_id: str, patch: dict) -> UpdateOutcome:
    """
    Apply an owner's edit. `patch` holds only the keys the client sent.

    If it changes the emergency phone, NOTHING is written and the outcome
    says otp_required; the client must go through send/verify OTP with the
    whole patch. Sending an empty phone does not clear the stored one.
    """
    tag = get_owned_tag(db, tag_id, caller_id)

    if phone_change_requested(tag, patch):
        logger.info(f"[TAG] {tag.code} phone change requested: OTP required, nothing saved")
        return UpdateOutcome(tag=tag, otp_required=True)

    apply_fields(tag, patch)
    tag.updated_at = utcnow()
    db.commit()
    db.refresh(tag)
    logger.info(f"[TAG] {tag.code} updated: {sorted(k for k in patch if k != PHONE_FIELD)}")
    return UpdateOutcome(tag=tag, otp_required=False)


# ── Privacy ──────────────────────────────────────────────────────────────────

def toggle_privacy_flag(db: Session, tag_id: str, caller_id: str, flag) -> Tag:
    try:
        flag = PrivacyFlag(flag)
    except ValueError:
        raise UnknownPrivacyFlag(f"Unknown privacy setting: {flag}")

    tag = get_owned_tag(db, tag_id, caller_id)
    column = getattr(Tag, flag.value)
    db.query(Tag).filter(Tag.id == tag.id).update(
        {column: not_(column), Tag.updated_at: utcnow()},
        synchronize_session=False,
    )
    db.commit()
    db.refresh(tag)
    logger.info(f"[PRIVACY] {tag.code} {flag.value} → {getattr(tag, flag.value)}")
    return tag


# ── Disable / reactivate ─────────────────────────────────────────────────────

def disable_tag(db: Session, tag_id: str, caller_id: str) -> Tag:
    """Owner switches the tag off. Public scans then get 410."""
    tag = get_owned_tag(db, tag_id, caller_id)
    if tag.status == TAG_STATUS_DISABLED:
        return tag
    now = utcnow()
    tag.status = TAG_STATUS_DISABLED
    tag.disabled_at = now
    tag.updated_at = now
    db.commit()
    db.refresh(tag)
    logger.warning(f"[TAG] {tag.code} disabled by owner {caller_id}")
    return tag


def reactivate_tag(db: Session, tag_id: str) -> Tag:
    """Admin only. Disabled tags keep their owner and come back active."""
    tag = get_tag(db, tag_id)
    if tag.status != TAG_STATUS_DISABLED:
        return tag
    tag.status = TAG_STATUS_ACTIVE if tag.owner_id else TAG_STATUS_CREATED
    tag.disabled_at = None
    tag.updated_at = utcnow()
    db.commit()
    db.refresh(tag)
    logger.warning(f"[ADMIN] {tag.code} reactivated → {tag.status}")
    return tag
