
from uuid import UUID
from typing import Optional, List
from pydantic import BaseModel, UUID4, Field
from datetime import date, time, datetime

from salon_scheduler.models.appointment import AppointmentStatus, AppointmentKind


# Customer details shared by slot bookings and walk-in check-ins
class AppointmentCreate(BaseModel):
    customer_name: Optional[str] = None
    mobile_number: Optional[str] = None
    service_ids: List[UUID4] = []


class WalkInCreate(AppointmentCreate):
    barber_id: UUID4


class StatusUpdate(BaseModel):
    status: AppointmentStatus


class TransferRequest(BaseModel):
    barber_id: UUID4


class WaitExtension(BaseModel):
    minutes: int = Field(..., gt=0)


class ServiceSummary(BaseModel):
    id: UUID4
    name: str
    default_service_time: int

    class Config:
        from_attributes = True


# Appointment - DB response
class Appointment(BaseModel):
    id: UUID4
    user_id: Optional[UUID] = None
    barber_id: UUID4
    salon_id: UUID4
    slot_id: Optional[UUID4] = None
    kind: AppointmentKind
    status: AppointmentStatus
    customer_name: Optional[str] = None
    mobile_number: Optional[str] = None
    appointment_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    wait_extension_minutes: int = 0
    check_in_time: Optional[datetime] = None
    in_salon_time: Optional[datetime] = None
    complete_time: Optional[datetime] = None
    cancel_time: Optional[datetime] = None
    services: List[ServiceSummary] = []

    class Config:
        from_attributes = True


# Response for GET /appointments/{id}/wait
class QueuePlacement(BaseModel):
    appointment_id: Optional[UUID4] = None
    queue_position: int
    estimated_wait_time: int

    class Config:
        from_attributes = True


# Response for GET /barbers/{id}/wait-estimate
class WaitEstimate(BaseModel):
    queue_position: int
    estimated_wait_time: int
    remaining_capacity: int
    is_expired: bool
    capacity_status: str
    session_id: Optional[UUID4] = None

    class Config:
        from_attributes = True
