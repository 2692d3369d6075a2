from datetime import datetime
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Optional, Literal

from fleet.lifecycle import as_utc

JobStatus = Literal["pending", "assigned", "in_progress", "completed", "cancelled"]
Priority = Literal["low", "medium", "high", "urgent"]

# optional fields a dispatcher may blank out
CLEARABLE = ("description", "notes", "estimated_distance", "estimated_duration")


class Location(BaseModel):
    address: str = Field(min_length=1)
    latitude: float = Field(ge=-90, le=90, validation_alias=AliasChoices("latitude", "lat"))
    longitude: float = Field(ge=-180, le=180, validation_alias=AliasChoices("longitude", "lon", "lng"))
    contact_name: Optional[str] = None
    contact_phone: Optional[str] = None
    notes: Optional[str] = None


class JobCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    priority: Priority = "medium"
    pickup_location: Location
    dropoff_location: Location
    scheduled_pickup: datetime
    scheduled_delivery: datetime
    driver_id: Optional[str] = None
    vehicle_id: Optional[str] = None
    notes: Optional[str] = None
    estimated_distance: Optional[float] = Field(default=None, ge=0)
    estimated_duration: Optional[int] = Field(default=None, ge=0)

    @field_validator("scheduled_pickup", "scheduled_delivery")
    @classmethod
    def schedule_in_utc(cls, value):
        return as_utc(value)

    @model_validator(mode="after")
    def check_schedule(self):
        if self.scheduled_delivery < self.scheduled_pickup:
            raise ValueError("scheduled_delivery must not be before scheduled_pickup")
        if self.vehicle_id and not self.driver_id:
            raise ValueError("vehicle_id requires driver_id")
        return self


class JobUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: Optional[JobStatus] = None
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    priority: Optional[Priority] = None
    pickup_location: Optional[Location] = None
    dropoff_location: Optional[Location] = None
    scheduled_pickup: Optional[datetime] = None
    scheduled_delivery: Optional[datetime] = None
    driver_id: Optional[str] = None
    vehicle_id: Optional[str] = None
    notes: Optional[str] = None
    estimated_distance: Optional[float] = Field(default=None, ge=0)
    estimated_duration: Optional[int] = Field(default=None, ge=0)

    @field_validator("scheduled_pickup", "scheduled_delivery")
    @classmethod
    def schedule_in_utc(cls, value):
        return as_utc(value)

    def field_edits(self) -> dict:
        """Explicitly sent fields other than status and assignment."""
        sent = {
            k: v for k, v in self.model_dump(exclude_unset=True).items()
            if v is not None or k in CLEARABLE
        }
        for key in ("status", "driver_id", "vehicle_id"):
            sent.pop(key, None)
        return sent
