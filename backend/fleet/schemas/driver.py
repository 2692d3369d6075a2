from datetime import date, datetime
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import Optional, Literal

DriverStatus = Literal["available", "on_duty", "off_duty", "break"]


class DriverCreate(BaseModel):
    email: EmailStr
    full_name: str = Field(min_length=1, max_length=200)
    phone: Optional[str] = None
    license_number: str = Field(min_length=1, max_length=64)
    license_expiry: date


class DriverUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: Optional[DriverStatus] = None
    license_number: Optional[str] = Field(default=None, min_length=1, max_length=64)
    license_expiry: Optional[date] = None


class LocationUpdate(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    job_id: Optional[str] = None
    speed: Optional[float] = Field(default=None, ge=0)
    heading: Optional[float] = Field(default=None, ge=0, lt=360)
    accuracy: Optional[float] = Field(default=None, ge=0)
    timestamp: Optional[datetime] = None
