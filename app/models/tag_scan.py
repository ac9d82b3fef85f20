# app/models/tag_scan.py
"""
Scan log: one row per public resolution of an active tag.
Append-only: rows are inserted by resolution_service and never updated or deleted.
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from app.database import Base


class TagScan(Base):
    __tablename__ = "tag_scans"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tag_id = Column(String(36), ForeignKey("tags.id"), nullable=False, index=True)
    location = Column(String(200), nullable=False, default="Unknown")
    scanned_at = Column(DateTime, nullable=False, index=True)

    def __repr__(self):
        return f"<TagScan tag={self.tag_id} at={self.scanned_at} loc={self.location}>"
