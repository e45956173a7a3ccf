from __future__ import annotations

from datetime import date
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class AppointmentStatus(str, Enum):
    UPCOMING = "Upcoming"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    NO_SHOW = "NoShow"


class BookedSlot(BaseModel):
    id: int
    slot_date: date
    slot_time: str


class AppointmentBase(BaseModel):
    patient_name: str = "Unknown Patient"
    mobile_number: str = "N/A"
    diseases: str = "General Consultation"
    scheduled_date: date
    scheduled_time: str = ""


class Appointment(AppointmentBase):
    id: int
    status: AppointmentStatus = AppointmentStatus.UPCOMING
    patient_id: Optional[int] = None
    gender: Optional[str] = None
    age: Optional[int] = None
    meet_link: Optional[str] = None
    is_already_registered: Optional[bool] = None
    booked_slots: List[BookedSlot] = Field(default_factory=list)


class AppointmentCreate(AppointmentBase):
    patient_id: int
    notes: Optional[str] = None


class AppointmentUpdate(BaseModel):
    patient_name: Optional[str] = None
    mobile_number: Optional[str] = None
    diseases: Optional[str] = None
    scheduled_date: Optional[date] = None
    scheduled_time: Optional[str] = None
    status: Optional[AppointmentStatus] = None
    meet_link: Optional[str] = None
    notes: Optional[str] = None

    def local_changes(self) -> dict:
        """Fields that are merged into the cached appointment."""
        return self.model_dump(exclude_unset=True, exclude_none=True, exclude={"notes"})
