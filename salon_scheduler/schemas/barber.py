
from typing import Optional
from pydantic import BaseModel, UUID4

from salon_scheduler.models.barber import SchedulingMode, BarberPosition


# Barber - Profile update (PATCH /barbers/{id}/profile)
class BarberProfileUpdate(BaseModel):
    mode: Optional[SchedulingMode] = None
    position: Optional[BarberPosition] = None


class Barber(BaseModel):
    id: UUID4
    salon_id: UUID4
    name: str
    mode: SchedulingMode
    position: BarberPosition
    is_active: bool = True

    class Config:
        from_attributes = True


class BarberProfileSyncResponse(BaseModel):
    barber: Barber
    sessions_updated: int
    slots_created: int
    appointments_canceled: int
