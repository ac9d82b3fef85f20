# app/services/pending_change_store.py
"""
Storage for OTP-gated changes, keyed by (tag_id, phone).

Backed by the pending_changes table so entries survive restarts and are
shared by every API worker. Writes go through the caller's session; the
caller commits.
"""

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from app.models.pending_change import PendingChange
from app.utils.clock import utcnow


class PendingChangeStore:
    def __init__(self, db: Session):
        self.db = db

    def put(self, tag_id: str, phone: str, otp: str, changes: dict, ttl_seconds: int) -> PendingChange:
        """Store a new entry, replacing any previous one for the same key (last send wins)."""
        now = utcnow()
        self.purge_expired(now, tag_id=tag_id)
        self.db.query(PendingChange).filter(
            PendingChange.tag_id == tag_id,
            PendingChange.phone == phone,
        ).delete(synchronize_session="fetch")

        entry = PendingChange(
            tag_id=tag_id,
            phone=phone,
            otp=otp,
            expires_at=now + timedelta(seconds=ttl_seconds),
            pending_changes=dict(changes or {}),
            created_at=now,
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def get(self, tag_id: str, phone: str) -> Optional[PendingChange]:
        return (
            self.db.query(PendingChange)
            .filter(PendingChange.tag_id == tag_id, PendingChange.phone == phone)
            .first()
        )

    def delete(self, entry: PendingChange) -> bool:
        """False if someone else consumed the entry first."""
        deleted = (
            self.db.query(PendingChange)
            .filter(PendingChange.id == entry.id)
            .delete(synchronize_session="fetch")
        )
        return deleted == 1

    def purge_expired(self, now: Optional[datetime] = None, tag_id: Optional[str] = None) -> int:
        """Drop entries past their expiry, optionally only those of one tag."""
        query = self.db.query(PendingChange).filter(PendingChange.expires_at < (now or utcnow()))
        if tag_id is not None:
            query = query.filter(PendingChange.tag_id == tag_id)
        return query.delete(synchronize_session="fetch")
