# app/models/tag.py
"""
Tags table: one row per physical QR/NFC tag.

Lifecycle: created (blank, no owner) → active (claimed) → disabled.
`code` is what is printed on the sticker; `id` is the stable internal key
used by the app and never changes once issued.
"""

import uuid
from sqlalchemy import Column, Integer, String, DateTime, Boolean
from app.database import Base

TAG_STATUS_CREATED = "created"
TAG_STATUS_ACTIVE = "active"
TAG_STATUS_DISABLED = "disabled"


def _new_id() -> str:
    return str(uuid.uuid4())


class Tag(Base):
    __tablename__ = "tags"

    id = Column(String(36), primary_key=True, default=_new_id)
    code = Column(String(32), unique=True, nullable=False, index=True)
    owner_id = Column(String(64), index=True)                          # null while blank
    status = Column(String(20), nullable=False, default=TAG_STATUS_CREATED, index=True)

    # Vehicle
    vehicle_type = Column(String(20), nullable=False, default="car")   # car | bike | business | other
    plate_number = Column(String(32))
    nickname = Column(String(100))
    vehicle_color = Column(String(50))
    vehicle_make = Column(String(50))
    vehicle_model = Column(String(50))

    # Emergency contact: phone only changes through a verified OTP
    emergency_contact_name = Column(String(100))
    emergency_contact_phone = Column(String(32))

    # Privacy flags
    allow_masked_call = Column(Boolean, nullable=False, default=True)
    allow_whatsapp = Column(Boolean, nullable=False, default=True)
    allow_sms = Column(Boolean, nullable=False, default=True)
    show_emergency_contact = Column(Boolean, nullable=False, default=False)

    scan_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime)
    activated_at = Column(DateTime)
    disabled_at = Column(DateTime)

    @property
    def is_blank(self) -> bool:
        return self.status == TAG_STATUS_CREATED and self.owner_id is None

    def __repr__(self):
        return f"<Tag {self.code} status={self.status} owner={self.owner_id}>"
