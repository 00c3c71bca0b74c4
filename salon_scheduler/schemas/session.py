
from typing import Optional, List
from pydantic import BaseModel, UUID4, Field, model_validator
from datetime import date, time, datetime

from salon_scheduler.models.barber import SchedulingMode, BarberPosition
from salon_scheduler.models.leave import LeaveReason
from salon_scheduler.schemas.leave import Leave
from salon_scheduler.schemas.slot import Slot


# One requested working day (each item in available_days)
class SessionDay(BaseModel):
    date: date
    start_time: str = Field(..., examples=["09:00"])   # rounded to the slot grid
    end_time: str = Field(..., examples=["18:00"])


# Session - Create (POST /sessions)
class SessionCreate(BaseModel):
    barber_id: UUID4
    salon_id: UUID4
    available_days: List[SessionDay] = Field(..., min_length=1)


# Session - Update (PATCH /sessions/{id})
class SessionUpdate(BaseModel):
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    make_unavailable: bool = False
    reason: Optional[LeaveReason] = None


# Session - DB response
class WorkingSession(BaseModel):
    id: UUID4
    barber_id: UUID4
    salon_id: UUID4
    session_date: date
    start_time: time
    end_time: time
    remaining_time: int
    mode: SchedulingMode
    position: BarberPosition
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SessionWithSlots(WorkingSession):
    slots: List[Slot] = []


class RejectedDate(BaseModel):
    date: date
    reason: str
    message: str


# Response for POST /sessions
class SessionCreateResponse(BaseModel):
    sessions: List[WorkingSession]
    slots: List[Slot]
    rejected_dates: List[RejectedDate] = []


# Response for PATCH /sessions/{id}: either the re-bounded session or the leave it became
class SessionEditResponse(BaseModel):
    session: Optional[WorkingSession] = None
    slots: List[Slot] = []
    leave: Optional[Leave] = None

    @model_validator(mode="after")
    def _one_outcome(self):
        if self.session is None and self.leave is None:
            raise ValueError("Edit produced neither a session nor a leave")
        return self


# Response for GET /barbers/{id}/slots
class SlotListResponse(BaseModel):
    barber_id: UUID4
    date: date
    sessions: List[SessionWithSlots]
