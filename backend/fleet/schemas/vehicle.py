from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Literal

VehicleStatus = Literal["available", "in_use", "maintenance", "out_of_service"]


class VehicleCreate(BaseModel):
    license_plate: str = Field(min_length=1, max_length=32)
    make: str = Field(min_length=1)
    model: str = Field(min_length=1)
    year: int = Field(ge=1900, le=2100)
    fuel_capacity: float = Field(gt=0)
    mileage: int = Field(ge=0)
    current_fuel: Optional[float] = Field(default=None, ge=0)
    status: VehicleStatus = "available"
    last_maintenance: Optional[datetime] = None
    next_maintenance: Optional[datetime] = None


class VehicleUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    license_plate: Optional[str] = Field(default=None, min_length=1, max_length=32)
    make: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = Field(default=None, ge=1900, le=2100)
    fuel_capacity: Optional[float] = Field(default=None, gt=0)
    mileage: Optional[int] = Field(default=None, ge=0)
    current_fuel: Optional[float] = Field(default=None, ge=0)
    status: Optional[VehicleStatus] = None
    last_maintenance: Optional[datetime] = None
    next_maintenance: Optional[datetime] = None
