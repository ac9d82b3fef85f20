# app/services/otp_service.py
"""
OTP gate for emergency-contact phone changes.

Flow:
  1. PATCH /tags/{id} with a new phone → otp_required, nothing saved
  2. send_phone_change_otp  → 6-digit code to the NEW phone, full patch parked
  3. verify_phone_change_otp → patch + phone committed together, entry consumed

One pending entry per (tag, phone); sending again replaces it.
"""

import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import settings
from app.exceptions import InvalidOtp, NoPendingOtp, OtpExpired
from app.models.tag import Tag
from app.services.pending_change_store import PendingChangeStore
from app.services.sms_service import SmsSender, get_sms_sender
from app.services.tag_service import EDITABLE_FIELDS, PHONE_FIELD, apply_fields, get_owned_tag
from app.utils.clock import utcnow
from app.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class OtpDispatch:
    phone: str
    sent: bool
    expires_at: datetime
    otp: Optional[str] = None   # only populated when OTP_DEBUG is on


def generate_otp() -> str:
    """Uniform 6-digit code in [100000, 999999]."""
    return str(secrets.randbelow(900000) + 100000)


def _clean_patch(patch: Optional[dict]) -> dict:
    return {k: v for k, v in (patch or {}).items() if k in EDITABLE_FIELDS and k != PHONE_FIELD}


def _otp_message(otp: str) -> str:
    minutes = max(1, settings.OTP_TTL_SECONDS // 60)
    return f"Your CarCard verification code is {otp}. It expires in {minutes} minute(s)."


async def send_phone_change_otp(
    db: Session,
    tag_id: str,
    caller_id: str,
    phone: str,
    pending_patch: Optional[dict] = None,
    sender: Optional[SmsSender] = None,
) -> OtpDispatch:
    tag = get_owned_tag(db, tag_id, caller_id)
    otp = generate_otp()
    store = PendingChangeStore(db)

    try:
        entry = store.put(tag.id, phone, otp, _clean_patch(pending_patch), settings.OTP_TTL_SECONDS)
        db.commit()
    except IntegrityError:
        # Concurrent send for the same key inserted first; replace it
        db.rollback()
        entry = store.put(tag.id, phone, otp, _clean_patch(pending_patch), settings.OTP_TTL_SECONDS)
        db.commit()

    sender = sender or get_sms_sender()
    sent = await sender.send(phone, _otp_message(otp))
    if settings.OTP_DEBUG:
        logger.info(f"[OTP] {tag.code} code={otp} (debug)")
    logger.info(f"[OTP] {tag.code} phone-change OTP issued, sms_sent={sent}, expires={entry.expires_at}")

    return OtpDispatch(
        phone=phone,
        sent=sent,
        expires_at=entry.expires_at,
        otp=otp if settings.OTP_DEBUG else None,
    )


def verify_phone_change_otp(
    db: Session,
    tag_id: str,
    caller_id: str,
    phone: str,
    otp: str,
    pending_patch: Optional[dict] = None,
) -> Tag:
    """
    Commit the parked patch plus the new phone. Non-null fields sent with
    the verify call override the parked ones.
    """
    tag = get_owned_tag(db, tag_id, caller_id)
    store = PendingChangeStore(db)

    entry = store.get(tag.id, phone)
    if entry is None:
        raise NoPendingOtp()

    if entry.expires_at < utcnow():
        store.delete(entry)
        db.commit()
        logger.info(f"[OTP] {tag.code} expired OTP removed")
        raise OtpExpired()

    if entry.otp != (otp or "").strip():
        logger.warning(f"[OTP] {tag.code} wrong code submitted")
        raise InvalidOtp()

    changes = dict(entry.pending_changes or {})
    changes.update({k: v for k, v in _clean_patch(pending_patch).items() if v is not None})

    if not store.delete(entry):
        # Consumed by a concurrent verify
        db.rollback()
        raise NoPendingOtp()

    apply_fields(tag, changes)
    tag.emergency_contact_phone = phone
    tag.updated_at = utcnow()
    db.commit()
    db.refresh(tag)
    logger.info(f"[OTP] {tag.code} emergency phone verified and saved with {sorted(changes)}")
    return tag
