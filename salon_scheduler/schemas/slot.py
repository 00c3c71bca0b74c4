
from pydantic import BaseModel, UUID4
from datetime import date, time


# Slot - DB response
class Slot(BaseModel):
    id: UUID4
    session_id: UUID4
    salon_id: UUID4
    slot_date: date
    start_time: time
    end_time: time
    is_booked: bool = False

    class Config:
        from_attributes = True
