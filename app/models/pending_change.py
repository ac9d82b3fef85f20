# app/models/pending_change.py
"""
Pending emergency-phone changes awaiting OTP verification.
At most one row per (tag_id, phone); a new send replaces the previous row.
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON, UniqueConstraint
from app.database import Base


class PendingChange(Base):
    __tablename__ = "pending_changes"
    __table_args__ = (UniqueConstraint("tag_id", "phone", name="uq_pending_changes_tag_phone"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    tag_id = Column(String(36), ForeignKey("tags.id"), nullable=False, index=True)
    phone = Column(String(32), nullable=False)
    otp = Column(String(6), nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)
    pending_changes = Column(JSON, nullable=False, default=dict)   # full field patch captured at send time
    created_at = Column(DateTime, nullable=False)

    def __repr__(self):
        return f"<PendingChange tag={self.tag_id} phone={self.phone} expires={self.expires_at}>"
