# app/services/batch_service.py
"""
Admin batch issuance: N fresh blank tags + a printable QR sheet.

Codes are checked against the DB chunk by chunk before insert; the unique
index on tags.code still rejects anything that slips through, in which
case the whole batch is retried with new codes. Either every tag of the
batch is stored or none is.
"""

from dataclasses import dataclass, field

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import settings
from app.exceptions import BatchTooLarge
from app.models.tag import Tag, TAG_STATUS_CREATED
from app.services.sheet_service import render_tag_sheet
from app.utils.clock import utcnow
from app.utils.logger import get_logger
from app.utils.tag_codes import generate_unique_codes

logger = get_logger(__name__)

MAX_INSERT_ATTEMPTS = 3


@dataclass
class BatchResult:
    created: int
    codes: list = field(default_factory=list)
    sheet: bytes = b""


def normalize_quantity(quantity) -> int:
    """Missing, non-numeric or < 1 → default size; above the cap → BatchTooLarge."""
    try:
        value = int(quantity)
    except (TypeError, ValueError):
        return settings.DEFAULT_BATCH_SIZE
    if value < 1:
        return settings.DEFAULT_BATCH_SIZE
    if value > settings.MAX_BATCH_SIZE:
        raise BatchTooLarge(f"Quantity cannot exceed {settings.MAX_BATCH_SIZE}")
    return value


def _chunks(items: list, size: int):
    for i in range(0, len(items), size):
        yield items[i:i + size]


def _existing_codes(db: Session, codes: list) -> set:
    taken = set()
    for chunk in _chunks(codes, settings.BATCH_INSERT_CHUNK):
        taken.update(row[0] for row in db.query(Tag.code).filter(Tag.code.in_(chunk)).all())
    return taken


def _blank_tag(code: str, now) -> Tag:
    return Tag(
        code=code,
        status=TAG_STATUS_CREATED,
        vehicle_type="car",
        allow_masked_call=True,
        allow_whatsapp=True,
        allow_sms=True,
        show_emergency_contact=False,
        scan_count=0,
        created_at=now,
    )


def _insert_codes(db: Session, codes: list):
    now = utcnow()
    for chunk in _chunks(codes, settings.BATCH_INSERT_CHUNK):
        db.add_all([_blank_tag(code, now) for code in chunk])
        db.flush()


def issue_batch(db: Session, quantity=None, with_sheet: bool = True) -> BatchResult:
    count = normalize_quantity(quantity)

    for attempt in range(1, MAX_INSERT_ATTEMPTS + 1):
        codes = generate_unique_codes(count, is_taken=lambda candidates: _existing_codes(db, candidates))
        try:
            _insert_codes(db, codes)
            break
        except IntegrityError:
            db.rollback()
            logger.warning(f"[BATCH] Code collision on insert (attempt {attempt}/{MAX_INSERT_ATTEMPTS}): regenerating")
    else:
        raise RuntimeError(f"Could not store a batch of {count} unique tags")

    try:
        sheet = render_tag_sheet(codes) if with_sheet else b""
    except Exception:
        db.rollback()
        raise
    db.commit()

    logger.info(f"[BATCH] Generated {len(codes)} blank tags")
    return BatchResult(created=len(codes), codes=codes, sheet=sheet)


def first_blank_code(db: Session):
    """Any unclaimed code: handy for manual activation testing."""
    tag = (
        db.query(Tag)
        .filter(Tag.status == TAG_STATUS_CREATED, Tag.owner_id.is_(None))
        .order_by(Tag.created_at)
        .first()
    )
    return tag.code if tag else None
