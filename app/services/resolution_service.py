# app/services/resolution_service.py
"""
Public tag resolution: what a stranger sees after scanning a sticker.

  blank tag, CarCard app   → blank view (app starts activation)
  blank tag, anything else → locked view, no tag data at all
  active tag               → plate/nickname/type + contact affordances
                             allowed by the owner's privacy flags;
                             every such view appends one scan
  disabled tag             → TagDisabled (410), no scan
"""

from typing import Optional

from sqlalchemy.orm import Session

from app.config import settings
from app.exceptions import TagDisabled, TagNotFound
from app.models.tag import Tag, TAG_STATUS_DISABLED
from app.models.tag_scan import TagScan
from app.utils.clock import utcnow
from app.utils.logger import get_logger
from app.utils.tag_codes import looks_like_code

logger = get_logger(__name__)

LOCKED_MESSAGE = "This CarCard tag has not been activated yet. Open it with the CarCard app to set it up."


def find_by_identifier(db: Session, identifier: str) -> Optional[Tag]:
    """Code-shaped identifiers are tried as a code first, everything else as an id first."""
    by_code = db.query(Tag).filter(Tag.code == identifier)
    by_id = db.query(Tag).filter(Tag.id == identifier)
    first, second = (by_code, by_id) if looks_like_code(identifier) else (by_id, by_code)
    return first.first() or second.first()


def record_scan(db: Session, tag: Tag, location: Optional[str] = None) -> TagScan:
    """Append one scan row and bump the counter in the same transaction."""
    scan = TagScan(
        tag_id=tag.id,
        location=location or settings.DEFAULT_SCAN_LOCATION,
        scanned_at=utcnow(),
    )
    db.add(scan)
    db.query(Tag).filter(Tag.id == tag.id).update(
        {Tag.scan_count: Tag.scan_count + 1},
        synchronize_session=False,
    )
    db.commit()
    return scan


def public_view(tag: Tag) -> dict:
    view = {
        "code": tag.code,
        "is_blank": False,
        "plate_number": tag.plate_number,
        "nickname": tag.nickname,
        "vehicle_type": tag.vehicle_type,
        "contact": {
            "masked_call": bool(tag.allow_masked_call),
            "whatsapp": bool(tag.allow_whatsapp),
            "sms": bool(tag.allow_sms),
        },
    }
    if tag.show_emergency_contact:
        view["emergency_contact"] = {
            "name": tag.emergency_contact_name,
            "phone": tag.emergency_contact_phone,
        }
    return view


def blank_view(tag: Tag) -> dict:
    return {"id": tag.id, "code": tag.code, "status": tag.status, "is_blank": True}


def locked_view() -> dict:
    return {"status": "locked", "message": LOCKED_MESSAGE, "download_url": settings.APP_DOWNLOAD_URL}


def resolve_public(
    db: Session,
    identifier: str,
    trusted_app: bool = False,
    location: Optional[str] = None,
) -> dict:
    tag = find_by_identifier(db, identifier)
    if not tag:
        raise TagNotFound("Tag not found")

    if tag.status == TAG_STATUS_DISABLED:
        logger.info(f"[SCAN] {tag.code} is disabled: not resolved")
        raise TagDisabled()

    if tag.is_blank:
        if trusted_app:
            logger.info(f"[SCAN] Blank tag {tag.code} opened in app")
            return blank_view(tag)
        logger.info(f"[SCAN] Blank tag {tag.code} scanned outside the app: locked")
        return locked_view()

    record_scan(db, tag, location)
    db.refresh(tag)
    logger.info(f"[SCAN] {tag.code} scanned at {location or settings.DEFAULT_SCAN_LOCATION} (total {tag.scan_count})")
    return public_view(tag)
