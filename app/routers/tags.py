# app/routers/tags.py
"""
Tag endpoints for the CarCard app (authenticated owners) and the public
scan page (anonymous).
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.exceptions import Forbidden
from app.schemas.tag import (
    OtpSendIn,
    OtpSendOut,
    OtpVerifyIn,
    PrivacyToggleIn,
    ScanPageOut,
    ScanPayloadIn,
    ScanPayloadOut,
    TagActivateIn,
    TagFieldsIn,
    TagOut,
    TagUpdateOut,
)
from app.services import otp_service, resolution_service, tag_service
from app.utils.auth import get_current_user_id
from app.utils.client_trust import get_trusted_app
from app.utils.tag_codes import decode_scan_payload

router = APIRouter()


# ── Public ───────────────────────────────────────────────────────────────────

@router.get("/tags/public/{identifier}", summary="Resolve a scanned tag (anonymous)")
def resolve_public_tag(
    identifier: str,
    location: Optional[str] = None,
    trusted_app: bool = Depends(get_trusted_app),
    db: Session = Depends(get_db),
):
    """
    Accepts a tag code or id. Returns the privacy-filtered view of an active
    tag, a blank view (app only) or a locked view for unactivated tags.
    """
    return resolution_service.resolve_public(db, identifier, trusted_app=trusted_app, location=location)


@router.post("/tags/scan-payload/decode", response_model=ScanPayloadOut, summary="Decode a CarCard QR payload (app only)")
def decode_payload(body: ScanPayloadIn, trusted_app: bool = Depends(get_trusted_app)):
    if not trusted_app:
        raise Forbidden("Only the CarCard app can decode tag QR codes")
    return {"code": decode_scan_payload(body.payload)}


# ── Owner ────────────────────────────────────────────────────────────────────

@router.post("/tags/activate", response_model=TagOut, summary="Claim a blank tag")
def activate_tag(
    body: TagActivateIn,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return tag_service.claim_tag(
        db, body.code, user_id,
        nickname=body.nickname, plate_number=body.plate_number, vehicle_type=body.vehicle_type,
    )


@router.post("/tags", response_model=TagOut, status_code=201, summary="Register an unknown code as a new tag")
def register_tag(
    body: TagActivateIn,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return tag_service.register_tag(
        db, body.code, user_id,
        nickname=body.nickname, plate_number=body.plate_number, vehicle_type=body.vehicle_type,
    )


@router.get("/tags", response_model=list[TagOut], summary="List my tags")
def list_my_tags(user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    return tag_service.list_owner_tags(db, user_id)


@router.get("/tags/{tag_id}", response_model=TagOut, summary="Tag detail (owner)")
def get_my_tag(tag_id: str, user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    return tag_service.get_owned_tag(db, tag_id, user_id)


@router.get("/tags/{tag_id}/scans", response_model=ScanPageOut, summary="Scan history (owner)")
def get_scan_history(
    tag_id: str,
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    total, scans = tag_service.list_scans(db, tag_id, user_id, limit=limit, offset=offset)
    return {"total": total, "limit": limit or settings.SCAN_PAGE_SIZE, "offset": offset, "items": scans}


@router.patch("/tags/{tag_id}", response_model=TagUpdateOut, summary="Edit tag details")
def update_tag(
    tag_id: str,
    body: TagFieldsIn,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    A changed emergency phone is never saved here: the response comes back
    with otp_required=true and the client continues with /otp/send.
    """
    outcome = tag_service.update_tag(db, tag_id, user_id, body.patch())
    message = "OTP verification required to change the emergency phone" if outcome.otp_required else "Tag updated"
    return {"otp_required": outcome.otp_required, "message": message, "tag": outcome.tag}


@router.patch("/tags/{tag_id}/privacy", response_model=TagOut, summary="Toggle a privacy setting")
def toggle_privacy(
    tag_id: str,
    body: PrivacyToggleIn,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return tag_service.toggle_privacy_flag(db, tag_id, user_id, body.flag)


@router.post("/tags/{tag_id}/disable", response_model=TagOut, summary="Disable a tag")
def disable_tag(tag_id: str, user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    return tag_service.disable_tag(db, tag_id, user_id)


# ── Emergency phone OTP ──────────────────────────────────────────────────────

@router.post("/tags/{tag_id}/otp/send", response_model=OtpSendOut, summary="Send OTP to a new emergency phone")
async def send_otp(
    tag_id: str,
    body: OtpSendIn,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    changes = body.changes.patch() if body.changes else {}
    dispatch = await otp_service.send_phone_change_otp(db, tag_id, user_id, body.phone, changes)
    return {"phone": dispatch.phone, "sent": dispatch.sent, "expires_at": dispatch.expires_at, "otp": dispatch.otp}


@router.post("/tags/{tag_id}/otp/verify", response_model=TagOut, summary="Verify OTP and save the pending changes")
def verify_otp(
    tag_id: str,
    body: OtpVerifyIn,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    changes = body.changes.patch() if body.changes else {}
    return otp_service.verify_phone_change_otp(db, tag_id, user_id, body.phone, body.otp, changes)
