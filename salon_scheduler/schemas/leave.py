
from uuid import UUID
from typing import Optional
from pydantic import BaseModel, UUID4, model_validator
from datetime import date, time, datetime

from salon_scheduler.models.leave import LeaveReason, LeaveStatus, LeaveAvailability


# Leave - Create (POST /leaves)
class LeaveCreate(BaseModel):
    barber_id: UUID4
    salon_id: Optional[UUID4] = None
    start_date: date
    end_date: date
    start_time: Optional[time] = None   # only for availability="available"
    end_time: Optional[time] = None
    availability: LeaveAvailability = LeaveAvailability.unavailable
    reason: Optional[LeaveReason] = None

    @model_validator(mode="after")
    def _date_order(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


# Leave - Decision (PATCH /leaves/{id}/decision)
class LeaveDecision(BaseModel):
    status: LeaveStatus
    response_reason: Optional[str] = None


# Leave - DB response
class Leave(BaseModel):
    id: UUID4
    barber_id: UUID4
    salon_id: Optional[UUID4] = None
    start_date: date
    end_date: date
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    reason: Optional[LeaveReason] = None
    status: LeaveStatus
    availability: LeaveAvailability
    approved_by: Optional[UUID] = None
    response_reason: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
