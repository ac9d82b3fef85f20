# app/routers/admin.py
"""
Admin endpoints. Guarded by AdminKeyMiddleware (X-API-Key) in main.py.
"""

from typing import Optional

from fastapi import APIRouter, Body, Depends
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.tag import BatchGenerateIn, TagOut
from app.services import batch_service, tag_service

router = APIRouter(prefix="/admin")


@router.post(
    "/tags/generate",
    summary="Generate a batch of blank tags as a printable PDF",
    response_class=Response,
    responses={200: {"content": {"application/pdf": {}}}},
)
def generate_tags(body: Optional[BatchGenerateIn] = Body(default=None), db: Session = Depends(get_db)):
    """Quantity defaults to 100 when missing or invalid; at most 10000 per batch."""
    result = batch_service.issue_batch(db, body.quantity if body else None)
    return Response(
        content=result.sheet,
        media_type="application/pdf",
        headers={
            "Content-Disposition": "attachment; filename=generated_tags.pdf",
            "X-Tags-Created": str(result.created),
        },
    )


@router.post("/tags/{tag_id}/reactivate", response_model=TagOut, summary="Re-enable a disabled tag")
def reactivate_tag(tag_id: str, db: Session = Depends(get_db)):
    return tag_service.reactivate_tag(db, tag_id)
