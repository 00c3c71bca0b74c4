from salon_scheduler.schemas.common import ErrorResponse, AffectedBooking, ConflictResponse
from salon_scheduler.schemas.slot import Slot
from salon_scheduler.schemas.leave import Leave, LeaveCreate, LeaveDecision
from salon_scheduler.schemas.session import (
    SessionDay, SessionCreate, SessionUpdate, WorkingSession, SessionWithSlots,
    RejectedDate, SessionCreateResponse, SessionEditResponse, SlotListResponse,
)
from salon_scheduler.schemas.appointment import (
    Appointment, AppointmentCreate, WalkInCreate, StatusUpdate, TransferRequest,
    WaitExtension, ServiceSummary, QueuePlacement, WaitEstimate,
)
from salon_scheduler.schemas.barber import Barber, BarberProfileUpdate, BarberProfileSyncResponse
