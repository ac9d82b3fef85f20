# app/schemas/tag.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Literal, Optional, Union

VehicleType = Literal["car", "bike", "business", "other"]


class TagActivateIn(BaseModel):
    code: str = Field(min_length=1, max_length=32)
    nickname: Optional[str] = Field(default=None, max_length=100)
    plate_number: Optional[str] = Field(default=None, max_length=32)
    vehicle_type: Optional[VehicleType] = None


class TagFieldsIn(BaseModel):
    """Editable tag fields. Only keys the client actually sends are applied."""
    nickname: Optional[str] = Field(default=None, max_length=100)
    plate_number: Optional[str] = Field(default=None, max_length=32)
    vehicle_type: Optional[VehicleType] = None
    vehicle_color: Optional[str] = Field(default=None, max_length=50)
    vehicle_make: Optional[str] = Field(default=None, max_length=50)
    vehicle_model: Optional[str] = Field(default=None, max_length=50)
    emergency_contact_name: Optional[str] = Field(default=None, max_length=100)
    emergency_contact_phone: Optional[str] = Field(default=None, max_length=32)

    def patch(self) -> dict:
        return self.model_dump(exclude_unset=True)


class TagOut(BaseModel):
    id: str
    code: str
    owner_id: Optional[str]
    status: str
    vehicle_type: str
    plate_number: Optional[str]
    nickname: Optional[str]
    vehicle_color: Optional[str]
    vehicle_make: Optional[str]
    vehicle_model: Optional[str]
    emergency_contact_name: Optional[str]
    emergency_contact_phone: Optional[str]
    allow_masked_call: bool
    allow_whatsapp: bool
    allow_sms: bool
    show_emergency_contact: bool
    scan_count: int
    created_at: datetime
    updated_at: Optional[datetime]
    activated_at: Optional[datetime]
    disabled_at: Optional[datetime]

    class Config:
        from_attributes = True


class TagUpdateOut(BaseModel):
    otp_required: bool
    message: str
    tag: TagOut


class PrivacyToggleIn(BaseModel):
    flag: str   # allow_masked_call | allow_whatsapp | allow_sms | show_emergency_contact


class OtpSendIn(BaseModel):
    phone: str = Field(min_length=5, max_length=32)
    changes: Optional[TagFieldsIn] = None


class OtpSendOut(BaseModel):
    phone: str
    sent: bool
    expires_at: datetime
    otp: Optional[str] = None


class OtpVerifyIn(BaseModel):
    phone: str = Field(min_length=5, max_length=32)
    otp: str = Field(min_length=6, max_length=6)
    changes: Optional[TagFieldsIn] = None


class ScanOut(BaseModel):
    id: int
    location: str
    scanned_at: datetime

    class Config:
        from_attributes = True


class ScanPageOut(BaseModel):
    total: int
    limit: int
    offset: int
    items: list[ScanOut]


class BatchGenerateIn(BaseModel):
    quantity: Optional[Union[int, str]] = None


class ScanPayloadIn(BaseModel):
    payload: str


class ScanPayloadOut(BaseModel):
    code: str
