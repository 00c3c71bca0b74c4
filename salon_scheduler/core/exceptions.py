"""
Typed failures raised by the scheduling engine.

Each error carries a stable code, an HTTP status for the API layer and an
optional structured payload the caller can act on (for example the list
of bookings a rejected time edit would have orphaned).
"""

from typing import Any, Dict, List, Optional


class SchedulingError(Exception):
    code = "scheduling_error"
    status_code = 400

    def __init__(self, message: str, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail or {}


class InvalidRange(SchedulingError):
    """End not after start, malformed time, or a time rounding past midnight."""
    code = "invalid_range"
    status_code = 422


class ConflictBookedOutsideRange(SchedulingError):
    code = "conflict_booked_outside_range"
    status_code = 409

    def __init__(self, message: str, affected: List[Dict[str, Any]]):
        super().__init__(message, {"affected": affected})
        self.affected = affected


class SlotAlreadyBooked(SchedulingError):
    code = "slot_already_booked"
    status_code = 409


class InvalidTransition(SchedulingError):
    code = "invalid_transition"
    status_code = 409


class NoCapacity(SchedulingError):
    code = "no_capacity"
    status_code = 409


class NotFound(SchedulingError):
    code = "not_found"
    status_code = 404
