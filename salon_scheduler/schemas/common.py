
from typing import Any, Dict, List
from pydantic import BaseModel


# Error responses: body of every SchedulingError the API returns
class ErrorResponse(BaseModel):
    error: str
    message: str
    detail: Dict[str, Any] = {}


# Booking that a rejected session edit would have orphaned
class AffectedBooking(BaseModel):
    slot_id: str
    date: str
    original_time: str


class ConflictResponse(ErrorResponse):
    affected: List[AffectedBooking] = []
